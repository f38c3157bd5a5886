"""
Cycle-safe JSON encoding.

Reports reference tags, tags reference their category and the category
lists its tags again, so a naive ``json.dumps`` recurses forever. This
codec tracks container identity: any dict or list reached more than once
is written in full the first time with an ``"$id"`` and replaced by
``{"$ref": n}`` afterwards. Lists that need an id are wrapped as
``{"$id": n, "$values": [...]}``.

Data without shared or circular references encodes as plain JSON, and
plain JSON decodes unchanged.
"""

import json
from typing import Any, Dict, List, Union

from ..errors import CodecError, EventDecodeError
from .models import Event

ID_KEY = "$id"
REF_KEY = "$ref"
VALUES_KEY = "$values"


def dumps(value: Any) -> str:
    """Encode a graph of dicts, lists and scalars to a JSON string."""
    counts: Dict[int, int] = {}
    _count_references(value, counts)
    shared = {key for key, count in counts.items() if count > 1}

    try:
        return json.dumps(_annotate(value, shared, {}), separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise CodecError(f"Unable to encode value: {e}", original_error=e)


def loads(data: Union[str, bytes]) -> Any:
    """Decode JSON produced by :func:`dumps` (or plain JSON)."""
    try:
        raw = json.loads(data)
    except (TypeError, ValueError) as e:
        raise CodecError(f"Invalid JSON payload: {e}", original_error=e)

    return _resolve(raw, {})


def _count_references(value: Any, counts: Dict[int, int]) -> None:
    if not isinstance(value, (dict, list)):
        return

    key = id(value)
    counts[key] = counts.get(key, 0) + 1
    if counts[key] > 1:
        return

    children = value.values() if isinstance(value, dict) else value
    for child in children:
        _count_references(child, counts)


def _annotate(value: Any, shared: set, assigned: Dict[int, int]) -> Any:
    if not isinstance(value, (dict, list)):
        return value

    key = id(value)
    if key in assigned:
        return {REF_KEY: assigned[key]}

    if key in shared:
        ref_id = len(assigned) + 1
        assigned[key] = ref_id
        if isinstance(value, dict):
            node: Dict[str, Any] = {ID_KEY: ref_id}
            for name, child in value.items():
                node[name] = _annotate(child, shared, assigned)
            return node
        return {ID_KEY: ref_id, VALUES_KEY: [_annotate(child, shared, assigned) for child in value]}

    if isinstance(value, dict):
        return {name: _annotate(child, shared, assigned) for name, child in value.items()}
    return [_annotate(child, shared, assigned) for child in value]


def _reference_id(node: Dict[str, Any], key: str) -> int:
    ref_id = node[key]
    # bool is an int subclass but never a valid id
    if not isinstance(ref_id, int) or isinstance(ref_id, bool):
        raise CodecError(f"Invalid {key} value: {ref_id!r}")
    return ref_id


def _resolve(node: Any, table: Dict[int, Any]) -> Any:
    if isinstance(node, list):
        return [_resolve(child, table) for child in node]

    if not isinstance(node, dict):
        return node

    if REF_KEY in node and len(node) == 1:
        ref_id = _reference_id(node, REF_KEY)
        if ref_id not in table:
            raise CodecError(f"Unknown reference: {ref_id!r}")
        return table[ref_id]

    if ID_KEY in node:
        ref_id = _reference_id(node, ID_KEY)
        if ref_id in table:
            raise CodecError(f"Duplicate reference id: {ref_id!r}")

        if VALUES_KEY in node and len(node) == 2:
            if not isinstance(node[VALUES_KEY], list):
                raise CodecError(f"Invalid {VALUES_KEY} for id {ref_id}: expected a list")
            items: List[Any] = []
            table[ref_id] = items
            items.extend(_resolve(child, table) for child in node[VALUES_KEY])
            return items

        result: Dict[str, Any] = {}
        table[ref_id] = result
        for name, child in node.items():
            if name != ID_KEY:
                result[name] = _resolve(child, table)
        return result

    return {name: _resolve(child, table) for name, child in node.items()}


def encode_event(event: Event) -> bytes:
    """Serialize an event for publishing."""
    return dumps(event.to_dict()).encode("utf-8")


def decode_event(body: Union[str, bytes]) -> Event:
    """
    Decode a queue message body into an event.

    Raises:
        EventDecodeError: If the body is not valid JSON or not an event
    """
    try:
        raw = loads(body)
    except CodecError as e:
        raise EventDecodeError(f"Malformed event payload: {e.message}", original_error=e)

    if not isinstance(raw, dict):
        raise EventDecodeError(f"Event must be an object, got {type(raw).__name__}")

    return Event.from_dict(raw)
