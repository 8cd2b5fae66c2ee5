"""Formatting for decision-log queries.

Renders stored DecisionExplanation records and their aggregate summary as
plain-text tables or JSON for the command line.
"""

import json
from datetime import datetime

from interlude.contracts.decision import DecisionExplanation


def format_timestamp(ts: datetime | str) -> str:
    """Format a timestamp for display."""
    if isinstance(ts, str):
        ts = datetime.fromisoformat(ts)
    return ts.strftime("%Y-%m-%d %H:%M:%S")


def _value(enum_or_none) -> str:
    return enum_or_none.value if enum_or_none is not None else "-"


def format_decisions(
    explanations: list[DecisionExplanation],
    output_format: str = "table",
    verbose: bool = False,
) -> str:
    """Render recent decisions.

    Args:
        explanations: Records to show, newest first
        output_format: 'table' or 'json'
        verbose: Include each record's detailed explanation

    Returns:
        Formatted output string
    """
    if not explanations:
        return "No decisions found."

    if output_format == "json":
        return json.dumps(
            [e.model_dump(mode="json") for e in explanations], indent=2, default=str
        )

    lines = [
        "Recent Decisions",
        "=" * 96,
        f"{'Time':<20} {'App':<28} {'Dec':<5} {'Score':>5} {'Persona':<20} {'Reason':<16}",
        "-" * 96,
    ]

    for e in explanations:
        score = "-" if e.opportunity_score is None else str(e.opportunity_score)
        lines.append(
            f"{format_timestamp(e.timestamp):<20} "
            f"{e.target_app[:28]:<28} "
            f"{e.decision.value:<5} "
            f"{score:>5} "
            f"{_value(e.persona):<20} "
            f"{_value(e.blocking_reason):<16}"
        )
        if verbose and e.detailed_explanation:
            for detail in e.detailed_explanation.splitlines():
                lines.append(f"    {detail}")

    return "\n".join(lines)


def format_summary(summary: dict, output_format: str = "table") -> str:
    """Render the aggregate summary produced by DecisionLogStore.summary()."""
    if output_format == "json":
        return json.dumps(summary, indent=2, default=str)

    avg_score = summary.get("avg_opportunity_score")
    avg_multiplier = summary.get("avg_applied_multiplier")

    lines = [
        f"Decision Summary (since {format_timestamp(summary['since'])})",
        "=" * 50,
        "",
        "Overview:",
        f"  Decisions:        {summary.get('total', 0):>10}",
        f"  Shown:            {summary.get('shown', 0):>10}",
        f"  Skipped:          {summary.get('skipped', 0):>10}",
        f"  Show rate:        {summary.get('show_rate', 0.0):>10.1%}",
        f"  Avg opportunity:  {avg_score if avg_score is not None else '-':>10}",
        f"  Avg multiplier:   {avg_multiplier if avg_multiplier is not None else '-':>10}",
    ]

    skip_reasons = summary.get("skip_reasons") or {}
    if skip_reasons:
        lines += ["", "Skip Reasons:", "-" * 50]
        for reason, count in skip_reasons.items():
            lines.append(f"  {reason:<30} {count:>5}")

    by_level = summary.get("by_opportunity_level") or {}
    if by_level:
        lines += ["", "By Opportunity Level:", "-" * 50]
        for level, counts in sorted(by_level.items()):
            lines.append(
                f"  {level:<12} show={counts.get('show', 0):<5} skip={counts.get('skip', 0):<5}"
            )

    by_persona = summary.get("by_persona") or {}
    if by_persona:
        lines += ["", "By Persona:", "-" * 50]
        for persona, count in sorted(by_persona.items(), key=lambda kv: -kv[1]):
            lines.append(f"  {persona:<30} {count:>5}")

    return "\n".join(lines)
