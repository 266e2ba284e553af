"""Configuration package: settings schema and loader."""

from .settings import Settings, get_settings, reload_settings, validate_settings

__all__ = ["Settings", "get_settings", "reload_settings", "validate_settings"]
