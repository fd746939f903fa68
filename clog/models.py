"""Domain models shared across the session logger."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Session:
    id: str
    cwd: str
    transcript_path: str
    created_at: datetime


@dataclass
class Event:
    """A single hook event. Each event type fills only its own fields."""

    session_id: str
    event_type: str          # hook_event_name, e.g. "Stop", "PostToolUse"
    timestamp: datetime
    permission_mode: str | None = None

    # SessionStart
    source: str | None = None
    model: str | None = None
    agent_type: str | None = None

    # UserPromptSubmit
    prompt: str | None = None

    # Tool events; *_input/*_response/suggestions hold raw JSON text
    tool_name: str | None = None
    tool_input: str | None = None
    tool_use_id: str | None = None
    tool_response: str | None = None
    permission_suggestions: str | None = None
    error: str | None = None
    is_interrupt: bool | None = None

    # Notification
    message: str | None = None
    title: str | None = None
    notification_type: str | None = None

    # Subagent
    agent_id: str | None = None
    agent_transcript_path: str | None = None
    stop_hook_active: bool | None = None

    # PreCompact
    trigger_type: str | None = None
    custom_instructions: str | None = None

    # SessionEnd
    reason: str | None = None


@dataclass(frozen=True)
class Turn:
    """One user or assistant message harvested from a transcript."""

    session_id: str
    uuid: str
    parent_uuid: str
    role: str                # "user" or "assistant"
    content: str             # display text
    raw_content: str         # content field exactly as it appeared in the transcript
    model: str
    timestamp: datetime


@dataclass
class HarvestResult:
    turns: list[Turn] = field(default_factory=list)
    new_offset: int = 0


@dataclass
class StoredMessage:
    id: int
    session_id: str
    role: str
    content: str
    timestamp: datetime


@dataclass
class SearchResult:
    id: int
    session_id: str
    role: str
    content: str
    score: float
    timestamp: datetime


@dataclass
class ToolResult:
    session_id: str
    tool_name: str
    tool_input: str          # raw JSON
    tool_response: str       # raw JSON
    timestamp: datetime


@dataclass
class SummaryResult:
    session_id: str
    summary: str
    model: str
    generated_at: datetime
    cwd: str


@dataclass(frozen=True)
class TimeFilter:
    since: datetime | None = None
    until: datetime | None = None
