"""Configuration loader for Interlude.

Loads config.py from the project root, falling back to defaults.
"""

import importlib.util
import sys
from pathlib import Path
from types import ModuleType
from typing import Any

from . import defaults


def hour_in_window(hour: int, window: tuple[int, int]) -> bool:
    """Check whether a local hour falls inside a (start, end) window.

    The end hour is exclusive. Windows whose start is after their end wrap
    past midnight, so (23, 6) covers 23:00 through 05:59.
    """
    start, end = window
    if start == end:
        return True
    if start < end:
        return start <= hour < end
    return hour >= start or hour < end


class Config:
    """Configuration object with attribute access."""

    def __init__(self, load_user_config: bool = True) -> None:
        # Start with defaults (copied so mutating one Config never leaks)
        for key in defaults.CONFIG_KEYS:
            value = getattr(defaults, key)
            if isinstance(value, (dict, list)):
                value = value.copy()
            setattr(self, key, value)

        if load_user_config:
            self._load_user_config()

    def _load_user_config(self) -> None:
        """Load config.py from project root."""
        config_path = self._find_config_file()

        if config_path is None:
            return

        user_config = self._load_module_from_path(config_path)

        # Override defaults with user values
        for key in defaults.CONFIG_KEYS:
            if hasattr(user_config, key):
                setattr(self, key, getattr(user_config, key))

    def _find_config_file(self) -> Path | None:
        """Find config.py in current dir or parents."""
        current = Path.cwd()

        # Also check where the package is installed
        package_root = Path(__file__).parent.parent.parent.parent

        search_paths = [current, package_root]

        # Walk up from cwd
        while current != current.parent:
            search_paths.append(current)
            current = current.parent

        for path in search_paths:
            config_path = path / "config.py"
            if config_path.exists():
                return config_path

        return None

    def _load_module_from_path(self, path: Path) -> ModuleType:
        """Load a Python module from a file path."""
        spec = importlib.util.spec_from_file_location("interlude_user_config", path)
        if spec is None or spec.loader is None:
            raise RuntimeError(f"Could not load config from {path}")

        module = importlib.util.module_from_spec(spec)
        sys.modules["interlude_user_config"] = module
        spec.loader.exec_module(module)
        return module

    def get(self, key: str, default: Any = None) -> Any:
        """Get config value with optional default."""
        return getattr(self, key, default)

    def type_cooldown_minutes(self, intervention_type: str) -> float:
        """Get the type-specific cooldown for an intervention type.

        Args:
            intervention_type: Intervention type value, e.g. "reminder"

        Returns:
            Cooldown in minutes (falls back to the global cooldown)
        """
        return float(
            self.TYPE_COOLDOWN_MINUTES.get(
                intervention_type, self.GLOBAL_COOLDOWN_MINUTES
            )
        )

    def is_daytime(self, hour: int) -> bool:
        """Whether a local hour is inside the configured daytime window."""
        return hour_in_window(hour, tuple(self.DAYTIME_HOURS))

    def is_night(self, hour: int) -> bool:
        """Whether a local hour is inside the configured night window."""
        return hour_in_window(hour, tuple(self.NIGHT_HOURS))

    @property
    def data_path(self) -> Path:
        return Path(self.DATA_DIR)

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not isinstance(self.MONITORED_APPS, (list, tuple, set)):
            errors.append("MONITORED_APPS must be a list")
        elif not self.MONITORED_APPS:
            errors.append("MONITORED_APPS is empty")

        if not isinstance(self.TYPE_COOLDOWN_MINUTES, dict):
            errors.append("TYPE_COOLDOWN_MINUTES must be a dict")
        else:
            for name in ["reminder", "sustained_use"]:
                if name not in self.TYPE_COOLDOWN_MINUTES:
                    errors.append(f"TYPE_COOLDOWN_MINUTES missing '{name}'")

        for key in [
            "SESSION_GAP_SECONDS",
            "SUSTAINED_USE_THRESHOLD_MINUTES",
            "POLL_INTERVAL_ACTIVE",
            "POLL_INTERVAL_IDLE",
            "POLL_INTERVAL_SCREEN_OFF",
            "POLL_INTERVAL_POWER_SAVE",
            "GLOBAL_COOLDOWN_MINUTES",
        ]:
            if getattr(self, key) <= 0:
                errors.append(f"{key} must be positive")

        if self.MAX_INTERVENTIONS_PER_HOUR > self.MAX_INTERVENTIONS_PER_DAY:
            errors.append(
                "MAX_INTERVENTIONS_PER_HOUR cannot exceed MAX_INTERVENTIONS_PER_DAY"
            )

        if self.MAX_COMBINED_COOLDOWN_MULTIPLIER < 1.0:
            errors.append("MAX_COMBINED_COOLDOWN_MULTIPLIER must be at least 1.0")

        for key in ["DAYTIME_HOURS", "NIGHT_HOURS"]:
            window = getattr(self, key)
            if len(window) != 2 or not all(0 <= h <= 23 for h in window):
                errors.append(f"{key} must be a (start, end) pair of hours 0-23")

        return errors

    def __repr__(self) -> str:
        return f"<Config data_dir={self.DATA_DIR!r} apps={len(self.MONITORED_APPS)}>"


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Reload configuration from disk."""
    global _config
    _config = Config()
    return _config
