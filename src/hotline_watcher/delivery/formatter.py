"""
Report embed formatting.

Builds the transport-agnostic summary pushed to subscribers. The layout
is consumed by existing renderers and must stay byte-compatible,
including the ``,t`` tag separator and the literal ``\\n`` between links.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from ..errors import EventDecodeError
from ..events.models import Report, parse_timestamp

TAG_SEPARATOR = ",t"
LINK_SEPARATOR = "\\n"


@dataclass(frozen=True)
class Embed:
    """Formatted report summary."""

    title: str
    description: str
    footer_text: Optional[str]
    timestamp: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "footer": {"text": self.footer_text},
            "timestamp": self.timestamp,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_report(
    report: Report,
    webhook: bool = False,
    now: Optional[Callable[[], datetime]] = None,
) -> Embed:
    """
    Format a report as an embed.

    Args:
        report: Report to format
        webhook: Webhook embeds carry no footer text
        now: Clock used for the "Last Edit" relative time

    Returns:
        The formatted embed
    """
    reported_users = ", ".join(f"<@{user.id}> ({user.id})" for user in report.reported_users)
    description = f"**Users:** {reported_users}"

    if report.reason:
        description += f"\n\n**Reason:** {report.reason}"

    if report.tags:
        description += "\n\n**Tags:** " + TAG_SEPARATOR.join(tag.name for tag in report.tags)

    if report.links:
        description += "\n\n**Links:** " + LINK_SEPARATOR.join(f"<{link}>" for link in report.links)

    footer_text = None
    if not webhook:
        clock = now or _utcnow
        last_edit = relative_time(report.update_date, clock())
        footer_text = (
            f"Confirmations: {len(report.confirmation_users)} | Last Edit: {last_edit}"
        )

    return Embed(
        title=f"Report ID: {report.id}",
        description=description,
        footer_text=footer_text,
        timestamp=report.insert_date,
    )


def relative_time(value: Optional[str], now: datetime) -> str:
    """Humanized distance from ``now`` to ``value``, e.g. ``"5 minutes ago"``."""
    try:
        then = parse_timestamp(value)
    except EventDecodeError:
        return "Invalid date"

    delta = (now - then).total_seconds()
    phrase = humanize_seconds(abs(delta))
    return f"{phrase} ago" if delta >= 0 else f"in {phrase}"


def humanize_seconds(seconds: float) -> str:
    """Describe a duration using coarse calendar thresholds."""
    minutes = round(seconds / 60)
    hours = round(seconds / 3600)
    days = round(seconds / 86400)

    if seconds < 45:
        return "a few seconds"
    if seconds < 90:
        return "a minute"
    if minutes < 45:
        return f"{minutes} minutes"
    if minutes < 90:
        return "an hour"
    if hours < 22:
        return f"{hours} hours"
    if hours < 36:
        return "a day"
    if days < 26:
        return f"{days} days"
    if days < 45:
        return "a month"
    if days < 320:
        return f"{max(2, round(days / 30.4))} months"
    if days < 548:
        return "a year"
    return f"{max(2, round(days / 365))} years"
