"""Decision-log reporting."""

from interlude.observability.report import format_decisions, format_summary, format_timestamp

__all__ = ["format_decisions", "format_summary", "format_timestamp"]
