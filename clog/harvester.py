"""Transcript harvester: turns new transcript bytes into user/assistant turns."""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from clog.extract import extract_text, parse_timestamp, raw_value
from clog.models import HarvestResult, Turn
from clog.scanner import MAX_LINE_BYTES, scan_records

logger = logging.getLogger(__name__)

HARVESTED_ROLES = ("user", "assistant")


def _str_field(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class TurnPayload:
    role: str
    content: str    # "content" field as written in the transcript, "" when absent
    model: str = ""

    @classmethod
    def from_dict(cls, d: dict, raw_content: str | None = None) -> "TurnPayload":
        if not isinstance(d, dict):
            raise TypeError("message must be an object")
        content = ""
        if raw_content is not None:
            content = raw_content
        elif "content" in d:
            content = json.dumps(d["content"], ensure_ascii=False)
        return cls(
            role=_str_field(d, "role"),
            content=content,
            model=_str_field(d, "model"),
        )


@dataclass(frozen=True)
class LogRecord:
    type: str
    uuid: str
    parent_uuid: str = ""
    timestamp: str = ""
    message: TurnPayload | None = None

    @classmethod
    def from_dict(cls, d: dict, line: str = "") -> "LogRecord | None":
        """Build a record from one decoded line. Returns None if the shape is wrong.

        With the line's source text, the message content is kept byte for byte.
        """
        try:
            payload = None
            if d.get("message") is not None:
                raw_content = raw_value(line, "message", "content") if line else None
                payload = TurnPayload.from_dict(d["message"], raw_content)
            return cls(
                type=_str_field(d, "type"),
                uuid=_str_field(d, "uuid"),
                parent_uuid=_str_field(d, "parentUuid"),
                timestamp=_str_field(d, "timestamp"),
                message=payload,
            )
        except TypeError as e:
            logger.debug("Skipping record with unexpected shape: %s", e)
            return None


def harvest(session_id: str, path: str, from_offset: int,
            max_line_bytes: int = MAX_LINE_BYTES) -> HarvestResult:
    """Read *path* from *from_offset* and return its new turns plus the new offset.

    Raises OSError if the transcript can't be opened and LineTooLongError if a
    line exceeds *max_line_bytes*. Either way no partial result is returned.
    """
    turns: list[Turn] = []

    with open(path, "rb") as fh:
        if from_offset > 0:
            fh.seek(from_offset)

        # Shared fallback for every record in this batch lacking a timestamp
        now = datetime.now(timezone.utc)

        for data, line in scan_records(fh, max_line_bytes):
            record = LogRecord.from_dict(data, line)
            if record is None or record.message is None:
                continue
            if record.message.role not in HARVESTED_ROLES:
                continue

            turns.append(Turn(
                session_id=session_id,
                uuid=record.uuid,
                parent_uuid=record.parent_uuid,
                role=record.message.role,
                content=extract_text(record.message.content),
                raw_content=record.message.content,
                model=record.message.model,
                timestamp=parse_timestamp(record.timestamp, now),
            ))

        new_offset = fh.tell()

    logger.debug("Harvested %d turn(s) from %s [%d, %d)",
                 len(turns), path, from_offset, new_offset)
    return HarvestResult(turns=turns, new_offset=new_offset)
