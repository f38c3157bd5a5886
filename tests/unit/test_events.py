"""
Unit tests for event models and event encoding.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from hotline_watcher.errors import EventDecodeError
from hotline_watcher.events.codec import decode_event, dumps, encode_event
from hotline_watcher.events.models import (
    Action,
    Event,
    EventPayload,
    EventType,
    Report,
    Subscription,
)


def _event_body(**overrides):
    body = {
        "type": "NEW_REPORT",
        "data": {
            "report": {
                "id": 1,
                "reporter": {"id": "10"},
                "tags": [{"id": 5, "name": "spam"}],
                "reason": "abuse",
                "links": ["https://example.com/a"],
                "reportedUsers": [{"id": "11"}],
                "confirmationUsers": [],
                "insertDate": "2024-06-01T10:00:00.000Z",
                "updateDate": "2024-06-01T10:00:00.000Z",
            },
        },
    }
    body.update(overrides)
    return json.dumps(body).encode()


class TestEventType:
    """Test event type and action mapping."""

    @pytest.mark.parametrize(
        "action,event_type",
        [
            (Action.NEW, EventType.NEW_REPORT),
            (Action.EDIT, EventType.EDIT_REPORT),
            (Action.DELETE, EventType.DELETE_REPORT),
        ],
    )
    def test_mapping(self, action, event_type):
        """Actions and event types map onto each other."""
        assert action.event_type is event_type
        assert event_type.action is action

    def test_unknown_type(self):
        """Unknown type tags are decode errors."""
        with pytest.raises(EventDecodeError):
            EventType.parse("NEW_REPORT_FOR_SUBSCRIPTION")


class TestDecodeEvent:
    """Test decoding queue messages."""

    def test_decode_new_report(self):
        """A plain upstream event decodes with defaults."""
        event = decode_event(_event_body())

        assert event.type == EventType.NEW_REPORT
        assert event.action == Action.NEW
        assert event.not_before is None
        assert event.data.attempt == 0
        assert event.data.subscription_id is None
        assert event.data.old_report is None
        assert event.data.report.tag_ids == [5]
        assert event.data.report.reported_users[0].id == "11"

    def test_decode_legacy_subscription_key(self):
        """'subscription' is accepted as the targeted subscriber id."""
        body = json.loads(_event_body())
        body["data"]["subscription"] = 9
        body["data"]["attempt"] = 3

        event = decode_event(json.dumps(body))

        assert event.data.subscription_id == 9
        assert event.data.attempt == 3

    def test_decode_not_before(self):
        """notBefore is parsed as an aware UTC timestamp."""
        event = decode_event(_event_body(notBefore="2024-06-01T12:05:00Z"))

        assert event.not_before == datetime(2024, 6, 1, 12, 5, tzinfo=timezone.utc)

    def test_unknown_type_is_decode_error(self):
        """Events with unknown types are rejected."""
        with pytest.raises(EventDecodeError):
            decode_event(_event_body(type="SOMETHING_ELSE"))

    def test_missing_report(self):
        """Events without a report are rejected."""
        with pytest.raises(EventDecodeError):
            decode_event(json.dumps({"type": "EDIT_REPORT", "data": {"id": 3}}))

    def test_not_json(self):
        """Non-JSON bodies are decode errors."""
        with pytest.raises(EventDecodeError):
            decode_event(b"{{{")

    def test_not_an_object(self):
        """Top-level JSON must be an object."""
        with pytest.raises(EventDecodeError):
            decode_event(b"[1, 2]")

    def test_negative_attempt(self):
        """Attempt counters cannot be negative."""
        body = json.loads(_event_body())
        body["data"]["attempt"] = -1

        with pytest.raises(EventDecodeError):
            decode_event(json.dumps(body))

    def test_bad_not_before(self):
        """Unparsable notBefore values are rejected."""
        with pytest.raises(EventDecodeError):
            decode_event(_event_body(notBefore="tomorrow"))


class TestEncodeEvent:
    """Test encoding retry events."""

    def test_encode_cyclic_report(self, sample_report):
        """Reports with tag/category cycles encode and decode back."""
        event = Event(
            type=EventType.EDIT_REPORT,
            data=EventPayload(
                report=sample_report,
                old_report=sample_report,
                subscription_id=7,
                attempt=2,
            ),
            not_before=datetime(2024, 6, 1, 12, 5, tzinfo=timezone.utc),
        )

        decoded = decode_event(encode_event(event))

        assert decoded.type == EventType.EDIT_REPORT
        assert decoded.data.subscription_id == 7
        assert decoded.data.attempt == 2
        assert decoded.not_before == event.not_before
        tag = decoded.data.report.tags[0]
        assert tag.name == "spam"
        assert tag.category.tags[0] is tag
        assert decoded.data.old_report.tags[0] is tag

    def test_encode_uses_subscription_id_key(self, sample_report):
        """Retry events carry 'subscriptionId' on the wire."""
        event = Event(
            type=EventType.NEW_REPORT,
            data=EventPayload(report=sample_report, subscription_id=7, attempt=1),
            not_before=datetime(2024, 6, 1, 12, 5, tzinfo=timezone(timedelta(hours=2))),
        )

        raw = json.loads(encode_event(event))

        assert raw["type"] == "NEW_REPORT"
        assert raw["data"]["subscriptionId"] == 7
        assert raw["data"]["attempt"] == 1
        assert "oldReport" not in raw["data"]
        assert raw["notBefore"] == "2024-06-01T10:05:00+00:00"


class TestSubscription:
    """Test subscription model rules."""

    def test_webhook_expects_204(self):
        """Webhook subscribers always expect 204."""
        sub = Subscription.from_dict(
            {"id": 1, "url": "https://x", "expectedResponseCode": 200, "discordWebhook": True}
        )

        assert sub.expected_status == 204
        assert sub.expected_response_code == 200

    def test_generic_uses_stored_code(self):
        """Generic subscribers use their configured code."""
        sub = Subscription.from_dict({"id": 1, "url": "https://x", "expectedResponseCode": 202})

        assert sub.expected_status == 202
        assert not sub.discord_webhook

    def test_webhook_rejects_deletions(self, webhook_subscription, generic_subscription):
        """Only generic subscribers accept deletions."""
        assert not webhook_subscription.accepts(Action.DELETE)
        assert webhook_subscription.accepts(Action.EDIT)
        assert generic_subscription.accepts(Action.DELETE)


class TestReport:
    """Test report conversion."""

    def test_to_dict_round_trip(self, sample_report):
        """Reports render back to their camelCase wire form."""
        data = sample_report.to_dict()

        assert data["reportedUsers"] == [
            {"id": "111", "insertDate": None},
            {"id": "222", "insertDate": None},
        ]
        assert data["tags"][0]["category"]["tags"][0] is data["tags"][0]

        again = Report.from_dict(data)
        assert again.tag_ids == [5]
        assert again.reason == "abuse"

    def test_encoded_report_is_cycle_safe(self, sample_report):
        """Encoding a cyclic report terminates and marks the back-reference."""
        encoded = dumps(sample_report.to_dict())

        assert '"$ref"' in encoded
