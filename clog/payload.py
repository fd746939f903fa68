"""Hook payload parsing: raw hook JSON -> Session + Event."""

import json
from dataclasses import dataclass
from datetime import datetime, timezone

from clog.extract import loads
from clog.models import Event, Session

REQUIRED_FIELDS = ("session_id", "cwd", "hook_event_name")

_STRING_FIELDS = (
    "permission_mode", "source", "model", "agent_type", "prompt",
    "tool_name", "tool_use_id", "error",
    "message", "title", "notification_type",
    "agent_id", "agent_transcript_path",
    "trigger_type", "custom_instructions", "reason",
)
_BOOL_FIELDS = ("is_interrupt", "stop_hook_active")
_JSON_FIELDS = ("tool_input", "tool_response", "permission_suggestions")


class PayloadError(ValueError):
    """The hook payload was not valid JSON or lacked a required field."""


@dataclass
class ParsedPayload:
    session: Session
    event: Event


def _optional_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise PayloadError(f"{key} must be a string")
    return value


def _optional_bool(data: dict, key: str) -> bool | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise PayloadError(f"{key} must be a boolean")
    return value


def _optional_json(data: dict, key: str) -> str | None:
    if key not in data or data[key] is None:
        return None
    return json.dumps(data[key], ensure_ascii=False)


def parse_payload(raw: bytes | str) -> ParsedPayload:
    """Parse a hook event. Raises PayloadError on bad JSON or missing fields."""
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        data = loads(raw)
    except ValueError as e:
        raise PayloadError(f"unmarshal payload: {e}") from e
    if not isinstance(data, dict):
        raise PayloadError("payload must be a JSON object")

    for key in REQUIRED_FIELDS:
        if not isinstance(data.get(key), str) or not data[key]:
            raise PayloadError("missing required fields (session_id, cwd, hook_event_name)")

    now = datetime.now(timezone.utc)

    session = Session(
        id=data["session_id"],
        cwd=data["cwd"],
        transcript_path=_optional_str(data, "transcript_path") or "",
        created_at=now,
    )

    fields = {key: _optional_str(data, key) for key in _STRING_FIELDS}
    fields.update({key: _optional_bool(data, key) for key in _BOOL_FIELDS})
    fields.update({key: _optional_json(data, key) for key in _JSON_FIELDS})

    event = Event(
        session_id=session.id,
        event_type=data["hook_event_name"],
        timestamp=now,
        **fields,
    )
    return ParsedPayload(session=session, event=event)
