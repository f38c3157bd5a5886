"""
Domain models for report events and subscriptions.

Models are built from, and rendered back to, the camelCase dictionaries
used on the queue and by the directory service. Tags and categories point
at each other, so conversion in both directions threads a ``memo`` keyed
by object identity to keep shared references shared.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..errors import EventDecodeError

EntityId = Union[int, str]
Memo = Dict[int, Any]


class Action(str, Enum):
    """Action sent to generic subscribers."""

    NEW = "new"
    EDIT = "edit"
    DELETE = "delete"

    @property
    def event_type(self) -> "EventType":
        return _ACTION_TO_TYPE[self]


class EventType(str, Enum):
    """Queue event types."""

    NEW_REPORT = "NEW_REPORT"
    EDIT_REPORT = "EDIT_REPORT"
    DELETE_REPORT = "DELETE_REPORT"

    @property
    def action(self) -> Action:
        return _TYPE_TO_ACTION[self]

    @classmethod
    def parse(cls, value: Any) -> "EventType":
        try:
            return cls(value)
        except ValueError:
            raise EventDecodeError(f"Unknown event type: {value!r}")


_ACTION_TO_TYPE = {
    Action.NEW: EventType.NEW_REPORT,
    Action.EDIT: EventType.EDIT_REPORT,
    Action.DELETE: EventType.DELETE_REPORT,
}
_TYPE_TO_ACTION = {event_type: action for action, event_type in _ACTION_TO_TYPE.items()}


def _require(data: Dict[str, Any], key: str, owner: str) -> Any:
    if not isinstance(data, dict):
        raise EventDecodeError(f"{owner} must be an object, got {type(data).__name__}")
    if key not in data:
        raise EventDecodeError(f"{owner} is missing required field '{key}'")
    return data[key]


def _list_of(data: Dict[str, Any], key: str, owner: str) -> List[Any]:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise EventDecodeError(f"{owner}.{key} must be a list")
    return value


@dataclass
class User:
    """A platform user referenced by a report."""

    id: EntityId
    insert_date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], memo: Optional[Memo] = None) -> "User":
        return cls(id=_require(data, "id", "User"), insert_date=data.get("insertDate"))

    def to_dict(self, memo: Optional[Memo] = None) -> Dict[str, Any]:
        return {"id": self.id, "insertDate": self.insert_date}


@dataclass(eq=False)
class Category:
    """Tag category. ``tags`` points back at the tags of this category."""

    id: EntityId
    name: str
    tags: List["Tag"] = field(default_factory=list)
    insert_date: Optional[str] = None
    update_date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], memo: Optional[Memo] = None) -> "Category":
        memo = {} if memo is None else memo
        if id(data) in memo:
            return memo[id(data)]

        category = cls(
            id=_require(data, "id", "Category"),
            name=data.get("name", ""),
            insert_date=data.get("insertDate"),
            update_date=data.get("updateDate"),
        )
        memo[id(data)] = category
        category.tags = [Tag.from_dict(tag, memo) for tag in _list_of(data, "tags", "Category")]
        return category

    def to_dict(self, memo: Optional[Memo] = None) -> Dict[str, Any]:
        memo = {} if memo is None else memo
        if id(self) in memo:
            return memo[id(self)]

        result: Dict[str, Any] = {"id": self.id, "name": self.name}
        memo[id(self)] = result
        result["tags"] = [tag.to_dict(memo) for tag in self.tags]
        result["insertDate"] = self.insert_date
        result["updateDate"] = self.update_date
        return result


@dataclass(eq=False)
class Tag:
    """Report tag, used as the subscription filter key."""

    id: EntityId
    name: str
    category: Optional[Category] = None
    insert_date: Optional[str] = None
    update_date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], memo: Optional[Memo] = None) -> "Tag":
        memo = {} if memo is None else memo
        if id(data) in memo:
            return memo[id(data)]

        tag = cls(
            id=_require(data, "id", "Tag"),
            name=data.get("name", ""),
            insert_date=data.get("insertDate"),
            update_date=data.get("updateDate"),
        )
        memo[id(data)] = tag
        if data.get("category") is not None:
            tag.category = Category.from_dict(data["category"], memo)
        return tag

    def to_dict(self, memo: Optional[Memo] = None) -> Dict[str, Any]:
        memo = {} if memo is None else memo
        if id(self) in memo:
            return memo[id(self)]

        result: Dict[str, Any] = {"id": self.id, "name": self.name}
        memo[id(self)] = result
        result["category"] = self.category.to_dict(memo) if self.category else None
        result["insertDate"] = self.insert_date
        result["updateDate"] = self.update_date
        return result


@dataclass
class Report:
    """A moderation report. Treated as read-only once decoded."""

    id: EntityId
    reporter: Optional[User] = None
    tags: List[Tag] = field(default_factory=list)
    reason: str = ""
    guild_id: Optional[str] = None
    links: List[str] = field(default_factory=list)
    reported_users: List[User] = field(default_factory=list)
    confirmation_users: List[User] = field(default_factory=list)
    insert_date: Optional[str] = None
    update_date: Optional[str] = None

    @property
    def tag_ids(self) -> List[EntityId]:
        return [tag.id for tag in self.tags]

    @classmethod
    def from_dict(cls, data: Dict[str, Any], memo: Optional[Memo] = None) -> "Report":
        memo = {} if memo is None else memo
        reporter = data.get("reporter") if isinstance(data, dict) else None

        return cls(
            id=_require(data, "id", "Report"),
            reporter=User.from_dict(reporter, memo) if reporter is not None else None,
            tags=[Tag.from_dict(tag, memo) for tag in _list_of(data, "tags", "Report")],
            reason=data.get("reason") or "",
            guild_id=data.get("guildId"),
            links=[str(link) for link in _list_of(data, "links", "Report")],
            reported_users=[
                User.from_dict(user, memo) for user in _list_of(data, "reportedUsers", "Report")
            ],
            confirmation_users=[
                User.from_dict(user, memo)
                for user in _list_of(data, "confirmationUsers", "Report")
            ],
            insert_date=data.get("insertDate"),
            update_date=data.get("updateDate"),
        )

    def to_dict(self, memo: Optional[Memo] = None) -> Dict[str, Any]:
        memo = {} if memo is None else memo
        result: Dict[str, Any] = {
            "id": self.id,
            "reporter": self.reporter.to_dict(memo) if self.reporter else None,
            "tags": [tag.to_dict(memo) for tag in self.tags],
            "reason": self.reason,
            "links": list(self.links),
            "reportedUsers": [user.to_dict(memo) for user in self.reported_users],
            "confirmationUsers": [user.to_dict(memo) for user in self.confirmation_users],
            "insertDate": self.insert_date,
            "updateDate": self.update_date,
        }
        if self.guild_id is not None:
            result["guildId"] = self.guild_id
        return result


@dataclass
class Consumer:
    """Owner of one or more subscriptions. Passed through untouched."""

    id: EntityId
    name: str = ""
    description: str = ""
    permissions: int = 0
    insert_date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], memo: Optional[Memo] = None) -> "Consumer":
        return cls(
            id=_require(data, "id", "Consumer"),
            name=data.get("name", ""),
            description=data.get("description", ""),
            permissions=data.get("permissions", 0),
            insert_date=data.get("insertDate"),
        )


@dataclass
class Subscription:
    """A delivery target registered with the directory service."""

    id: EntityId
    url: str
    expected_response_code: int = 200
    discord_webhook: bool = False
    tags: List[Tag] = field(default_factory=list)
    consumer: Optional[Consumer] = None

    @property
    def expected_status(self) -> int:
        """Status code that counts as a successful delivery."""
        return 204 if self.discord_webhook else self.expected_response_code

    def accepts(self, action: Action) -> bool:
        """Webhook subscribers never receive deletions."""
        return not (self.discord_webhook and action == Action.DELETE)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], memo: Optional[Memo] = None) -> "Subscription":
        memo = {} if memo is None else memo
        consumer = data.get("consumer") if isinstance(data, dict) else None

        return cls(
            id=_require(data, "id", "Subscription"),
            url=_require(data, "url", "Subscription"),
            expected_response_code=int(data.get("expectedResponseCode") or 200),
            discord_webhook=bool(data.get("discordWebhook", False)),
            tags=[Tag.from_dict(tag, memo) for tag in _list_of(data, "tags", "Subscription")],
            consumer=Consumer.from_dict(consumer, memo) if isinstance(consumer, dict) else None,
        )


@dataclass
class EventPayload:
    """Data carried by a report event."""

    report: Report
    old_report: Optional[Report] = None
    subscription_id: Optional[EntityId] = None
    attempt: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EventPayload":
        memo: Memo = {}
        report = Report.from_dict(_require(data, "report", "Event data"), memo)
        old_report = data.get("oldReport")

        # Older producers used "subscription" for the targeted subscriber id.
        subscription_id = data.get("subscriptionId", data.get("subscription"))

        attempt = data.get("attempt") or 0
        if not isinstance(attempt, int) or isinstance(attempt, bool) or attempt < 0:
            raise EventDecodeError(f"Invalid attempt counter: {attempt!r}")

        return cls(
            report=report,
            old_report=Report.from_dict(old_report, memo) if old_report is not None else None,
            subscription_id=subscription_id,
            attempt=attempt,
        )

    def to_dict(self) -> Dict[str, Any]:
        memo: Memo = {}
        result: Dict[str, Any] = {"report": self.report.to_dict(memo), "attempt": self.attempt}
        if self.old_report is not None:
            result["oldReport"] = self.old_report.to_dict(memo)
        if self.subscription_id is not None:
            result["subscriptionId"] = self.subscription_id
        return result


@dataclass
class Event:
    """One unit of queue traffic: a report change or a scheduled retry."""

    type: EventType
    data: EventPayload
    not_before: Optional[datetime] = None

    @property
    def action(self) -> Action:
        return self.type.action

    def is_due(self, now: datetime) -> bool:
        return self.not_before is None or self.not_before <= now

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        event_type = EventType.parse(_require(data, "type", "Event"))
        payload = EventPayload.from_dict(_require(data, "data", "Event"))
        not_before = data.get("notBefore")

        return cls(
            type=event_type,
            data=payload,
            not_before=parse_timestamp(not_before) if not_before is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.type.value, "data": self.data.to_dict()}
        if self.not_before is not None:
            result["notBefore"] = self.not_before.astimezone(timezone.utc).isoformat()
        return result


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    if not isinstance(value, str):
        raise EventDecodeError(f"Timestamp must be a string, got {value!r}")

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise EventDecodeError(f"Invalid timestamp: {value!r}", original_error=e)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
