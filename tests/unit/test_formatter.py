"""
Unit tests for report embed formatting.
"""

from datetime import datetime, timedelta, timezone

import pytest

from hotline_watcher.delivery.formatter import format_report, humanize_seconds, relative_time
from hotline_watcher.events.models import Report, Tag, User


class TestFormatReport:
    """Test format_report."""

    def test_scenario_description(self, sample_report, clock):
        """Users, reason and tags blocks are present; links block is not."""
        embed = format_report(sample_report, webhook=True, now=clock)

        assert embed.title == "Report ID: 42"
        assert embed.description == (
            "**Users:** <@111> (111), <@222> (222)"
            "\n\n**Reason:** abuse"
            "\n\n**Tags:** spam"
        )
        assert "**Links:**" not in embed.description

    def test_webhook_has_no_footer(self, sample_report, clock):
        """Webhook embeds carry a null footer text."""
        embed = format_report(sample_report, webhook=True, now=clock)

        assert embed.footer_text is None
        assert embed.to_dict()["footer"] == {"text": None}

    def test_footer_for_non_webhook(self, sample_report, clock):
        """Non-webhook embeds show confirmations and the last edit."""
        embed = format_report(sample_report, webhook=False, now=clock)

        assert embed.footer_text == "Confirmations: 1 | Last Edit: 5 minutes ago"

    def test_timestamp_is_insert_date(self, sample_report, clock):
        """The embed timestamp is the report's insert date, unmodified."""
        embed = format_report(sample_report, webhook=True, now=clock)

        assert embed.timestamp == "2024-06-01T10:00:00.000Z"

    def test_tag_and_link_separators(self, clock):
        """Tags join with ',t' and links with a literal backslash-n."""
        report = Report(
            id=1,
            tags=[Tag(id=1, name="spam"), Tag(id=2, name="raid")],
            links=["https://a.example", "https://b.example"],
            reported_users=[User(id="5")],
        )

        embed = format_report(report, webhook=True, now=clock)

        assert "**Tags:** spam,traid" in embed.description
        assert "**Links:** <https://a.example>\\n<https://b.example>" in embed.description
        assert "\n<https://b.example>" not in embed.description

    def test_empty_reason_omitted(self, clock):
        """An empty reason produces no Reason block."""
        report = Report(id=1, reason="", reported_users=[User(id="5")])

        embed = format_report(report, webhook=True, now=clock)

        assert embed.description == "**Users:** <@5> (5)"

    def test_deterministic(self, sample_report, clock):
        """Same input and clock give identical embeds."""
        assert format_report(sample_report, False, now=clock) == format_report(
            sample_report, False, now=clock
        )


class TestRelativeTime:
    """Test relative time rendering."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [
            (10, "a few seconds"),
            (60, "a minute"),
            (5 * 60, "5 minutes"),
            (60 * 60, "an hour"),
            (3 * 3600, "3 hours"),
            (30 * 3600, "a day"),
            (4 * 86400, "4 days"),
            (30 * 86400, "a month"),
            (61 * 86400, "2 months"),
            (400 * 86400, "a year"),
            (800 * 86400, "2 years"),
        ],
    )
    def test_humanize(self, seconds, expected):
        """Durations use coarse calendar thresholds."""
        assert humanize_seconds(seconds) == expected

    def test_past_and_future(self, now):
        """Past instants read 'ago', future ones 'in'."""
        past = (now - timedelta(hours=3)).isoformat()
        future = (now + timedelta(hours=3)).isoformat()

        assert relative_time(past, now) == "3 hours ago"
        assert relative_time(future, now) == "in 3 hours"

    def test_naive_timestamp_is_utc(self):
        """Timestamps without offset are read as UTC."""
        now = datetime(2024, 1, 1, 0, 10, tzinfo=timezone.utc)

        assert relative_time("2024-01-01T00:00:00", now) == "10 minutes ago"

    def test_invalid(self, now):
        """Missing dates render as 'Invalid date'."""
        assert relative_time(None, now) == "Invalid date"
        assert relative_time("yesterday", now) == "Invalid date"
