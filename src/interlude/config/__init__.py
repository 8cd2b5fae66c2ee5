"""Configuration module for Interlude."""

from .loader import Config, get_config, hour_in_window, reload_config

__all__ = ["Config", "get_config", "hour_in_window", "reload_config"]
