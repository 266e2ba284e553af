"""
Structured Logging - Monitoring Layer

Console logging for the gateway, JSON in production and text elsewhere,
with the current connection's identifiers attached to every record.

@.architecture
Incoming: app.py, ws/*.py, security/*.py, core/*.py via get_logger() --- {str log_level, str format_type, str connection_id/user_id/request_id}
Processing: configure_logging(), JSONFormatter.format(), set_connection_context(), StructuredLogger._log_with_context() --- {4 jobs: context_injection, formatting, log_configuration, structured_logging}
Outgoing: sys.stdout, All modules --- {StructuredLogger instances, JSON formatted logs, context variables}
"""

import logging
import json
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from contextvars import ContextVar

# Set per connection task by the hub and the message handler
connection_id_ctx: ContextVar[Optional[str]] = ContextVar('connection_id', default=None)
user_id_ctx: ContextVar[Optional[str]] = ContextVar('user_id', default=None)
request_id_ctx: ContextVar[Optional[str]] = ContextVar('request_id', default=None)

TEXT_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)-24s | [%(connection_id)s] [%(user_id)s] | %(message)s'


class JSONFormatter(logging.Formatter):
    """One JSON object per line, carrying the connection context."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        for key, var in (
            ('connection_id', connection_id_ctx),
            ('user_id', user_id_ctx),
            ('request_id', request_id_ctx),
        ):
            value = var.get()
            if value:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        if hasattr(record, 'extra_fields'):
            log_data['extra'] = record.extra_fields

        return json.dumps(log_data, default=str)


class ContextFilter(logging.Filter):
    """Fills the text format's connection placeholders."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.connection_id = connection_id_ctx.get() or '-'
        record.user_id = user_id_ctx.get() or '-'
        return True


class StructuredLogger:
    """
    Wrapper for Python logger with structured logging support.

    Keyword arguments passed to the log methods end up under the
    ``extra`` key of the JSON record.
    """

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    @property
    def name(self) -> str:
        return self._logger.name

    def _log_with_context(
        self,
        level: int,
        message: str,
        exc_info: Any = None,
        **kwargs: Any
    ) -> None:
        extra = {'extra_fields': kwargs} if kwargs else {}
        self._logger.log(level, message, exc_info=exc_info, extra=extra)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.ERROR, message, **kwargs)


def configure_logging(
    level: str = "INFO",
    format_type: str = "json",
    module_levels: Optional[Dict[str, str]] = None
) -> None:
    """
    Configure console logging for the application.

    Args:
        level: Default log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Output format ("json" or "text")
        module_levels: Per-module log levels (e.g. {"httpx": "WARNING"})
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if format_type == "json":
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(fmt=TEXT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(ContextFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [console_handler]

    for module_name, module_level in (module_levels or {}).items():
        logging.getLogger(module_name).setLevel(
            getattr(logging, module_level.upper(), logging.INFO)
        )


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)


def set_connection_context(
    connection_id: Optional[str] = None,
    user_id: Optional[str] = None,
    request_id: Optional[str] = None
) -> None:
    """
    Set context variables for the current connection task.

    Args:
        connection_id: Live connection identifier
        user_id: Identity resolved by admission
        request_id: Inbound message identifier
    """
    if connection_id:
        connection_id_ctx.set(connection_id)
    if user_id:
        user_id_ctx.set(user_id)
    if request_id:
        request_id_ctx.set(request_id)


def clear_connection_context() -> None:
    connection_id_ctx.set(None)
    user_id_ctx.set(None)
    request_id_ctx.set(None)


def get_connection_id() -> Optional[str]:
    return connection_id_ctx.get()


_QUIET_LIBRARIES = {
    'httpx': 'WARNING',
    'httpcore': 'WARNING',
    'asyncio': 'WARNING',
}

LOGGING_PRESETS = {
    'development': {
        'level': 'DEBUG',
        'format_type': 'text',
        'module_levels': _QUIET_LIBRARIES,
    },
    'production': {
        'level': 'INFO',
        'format_type': 'json',
        'module_levels': {**_QUIET_LIBRARIES, 'uvicorn.access': 'WARNING'},
    },
    'testing': {
        'level': 'WARNING',
        'format_type': 'text',
        'module_levels': {},
    }
}


def configure_from_preset(preset: str = 'development', **overrides: Any) -> None:
    """
    Configure logging from preset.

    Args:
        preset: Preset name ('development', 'production', or 'testing')
        **overrides: Override preset values
    """
    if preset not in LOGGING_PRESETS:
        raise ValueError(f"Unknown preset: {preset}. Available: {list(LOGGING_PRESETS.keys())}")

    config = LOGGING_PRESETS[preset].copy()
    config.update(overrides)

    configure_logging(**config)
