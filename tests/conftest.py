"""Shared pytest fixtures for the clog test suite."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from clog.config import Config
from clog.models import Turn
from clog.store import Store


def user_line(uuid: str, content="hello", **extra) -> str:
    record = {"type": "user", "uuid": uuid,
              "message": {"role": "user", "content": content}}
    record.update(extra)
    return json.dumps(record)


def assistant_line(uuid: str, text="answer", model="claude-3", **extra) -> str:
    record = {"type": "assistant", "uuid": uuid,
              "message": {"role": "assistant", "model": model,
                          "content": [{"type": "text", "text": text}]}}
    record.update(extra)
    return json.dumps(record)


def make_turn(uuid: str, content: str = "hello", session_id: str = "sess-1",
              role: str = "user", timestamp: datetime | None = None) -> Turn:
    return Turn(
        session_id=session_id,
        uuid=uuid,
        parent_uuid="",
        role=role,
        content=content,
        raw_content=json.dumps(content),
        model="",
        timestamp=timestamp or datetime(2024, 6, 15, 14, 30, tzinfo=timezone.utc),
    )


@pytest.fixture()
def transcript(tmp_path):
    """Return a writer that creates transcript.jsonl from the given lines."""
    path = tmp_path / "transcript.jsonl"

    def _write(*lines: str, mode: str = "w") -> str:
        with open(path, mode, encoding="utf-8") as f:
            for line in lines:
                f.write(line + "\n")
        return str(path)

    return _write


@pytest.fixture()
def store(tmp_path):
    """An initialized Store backed by a DuckDB file in tmp_path."""
    st = Store(str(tmp_path / "events.duckdb"))
    st.init_core_schema()
    yield st
    st.close()


@pytest.fixture()
def config(tmp_path) -> Config:
    return Config(log_base=str(tmp_path / "logs"))
