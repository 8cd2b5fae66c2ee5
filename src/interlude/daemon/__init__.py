"""Usage monitor daemon with adaptive polling."""

from interlude.daemon.monitor import PollingMode, UsageMonitorDaemon, select_polling_mode

__all__ = ["PollingMode", "UsageMonitorDaemon", "select_polling_mode"]
