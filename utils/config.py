"""
Simple config loader for gateway components.
Reads the optional TOML config that sits next to the settings schema.

@.architecture
Incoming: config/gateway.toml, config/settings.py --- {TOML file, load_config calls}
Processing: load_config(), get_config_path() --- {2 jobs: config_loading, path_resolution}
Outgoing: config/settings.py --- {Dict[str, Any] config data}
"""

import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional

import toml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path(__file__).parent.parent / "config" / "gateway.toml"


def get_config_path() -> Path:
    """Config file location; GATEWAY_CONFIG_FILE overrides the bundled one."""
    override = os.getenv("GATEWAY_CONFIG_FILE")
    return Path(override) if override else DEFAULT_CONFIG_FILE


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from the TOML file.

    A missing file yields an empty dict so that environment variables and
    schema defaults still apply. A file that exists but cannot be parsed is
    a startup error.
    """
    config_file = path or get_config_path()
    if not config_file.exists():
        logger.debug(f"No config file at {config_file}, using environment and defaults")
        return {}

    with open(config_file, 'r') as f:
        return toml.load(f)
