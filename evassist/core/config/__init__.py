"""Configuration package: settings singleton and system constants."""

from evassist.core.config.settings import Settings, get_settings, reload_settings

__all__ = ["Settings", "get_settings", "reload_settings"]
