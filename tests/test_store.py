"""Tests for the DuckDB store."""

import json
from datetime import datetime, timedelta, timezone

import duckdb
import pytest

from clog.models import Event, Session, TimeFilter
from clog.store import Store, append_time_clauses, format_float_array, from_db_time, to_db_time

from conftest import make_turn

T0 = datetime(2024, 6, 15, 14, 30, tzinfo=timezone.utc)


def _session(session_id="sess-1", cwd="/home/dev/project"):
    return Session(id=session_id, cwd=cwd, transcript_path="/tmp/t.jsonl", created_at=T0)


def _tool_event(tool_name, ts, command="ls", response="ok"):
    return Event(
        session_id="sess-1",
        event_type="PostToolUse",
        timestamp=ts,
        tool_name=tool_name,
        tool_input=json.dumps({"command": command}),
        tool_response=json.dumps({"stdout": response}),
    )


class TestHelpers:
    def test_to_db_time_strips_zone(self):
        ts = datetime(2024, 6, 15, 16, 30, tzinfo=timezone(timedelta(hours=2)))
        assert to_db_time(ts) == datetime(2024, 6, 15, 14, 30)

    def test_from_db_time_marks_utc(self):
        assert from_db_time(datetime(2024, 6, 15, 14, 30)) == T0
        assert from_db_time(None) is None

    def test_format_float_array(self):
        assert format_float_array([0.5, 1, -2.25]) == "[0.5,1.0,-2.25]"

    def test_time_clauses_none(self):
        assert append_time_clauses(None, "ts", False, []) == ("", [])

    def test_time_clauses_where_then_and(self):
        tf = TimeFilter(since=T0, until=T0 + timedelta(hours=1))
        sql, params = append_time_clauses(tf, "ts", False, [])
        assert sql == " WHERE ts >= ? AND ts <= ?"
        assert params == [datetime(2024, 6, 15, 14, 30), datetime(2024, 6, 15, 15, 30)]

    def test_time_clauses_after_existing_where(self):
        sql, params = append_time_clauses(TimeFilter(until=T0), "m.ts", True, ["x"])
        assert sql == " AND m.ts <= ?"
        assert params == ["x", datetime(2024, 6, 15, 14, 30)]


class TestOffsets:
    def test_unknown_path_is_zero(self, store):
        assert store.get_offset("/never/seen.jsonl") == 0

    def test_commit_then_get(self, store):
        store.commit_offset("/t.jsonl", 123)
        assert store.get_offset("/t.jsonl") == 123

    def test_last_write_wins(self, store):
        store.commit_offset("/t.jsonl", 500)
        store.commit_offset("/t.jsonl", 200)
        assert store.get_offset("/t.jsonl") == 200

    def test_offsets_per_path(self, store):
        store.commit_offset("/a.jsonl", 10)
        store.commit_offset("/b.jsonl", 20)
        assert store.get_offset("/a.jsonl") == 10
        assert store.get_offset("/b.jsonl") == 20


class TestSaveHarvestedMessages:
    def test_saves_turns_and_offset(self, store):
        store.save_harvested_messages([make_turn("u1", "one"), make_turn("u2", "two")],
                                      "/t.jsonl", 99)
        messages = store.session_messages("sess-1", 10)
        assert [m.content for m in messages] == ["one", "two"]
        assert messages[0].timestamp == T0
        assert store.get_offset("/t.jsonl") == 99

    def test_duplicate_uuid_kept_once(self, store):
        store.save_harvested_messages([make_turn("u1", "original")], "/t.jsonl", 10)
        store.save_harvested_messages([make_turn("u1", "replayed"), make_turn("u2", "new")],
                                      "/t.jsonl", 20)
        messages = store.session_messages("sess-1", 10)
        assert [m.content for m in messages] == ["original", "new"]
        assert store.get_offset("/t.jsonl") == 20

    def test_offset_only_commit(self, store):
        store.save_harvested_messages([], "/t.jsonl", 42)
        assert store.get_offset("/t.jsonl") == 42
        assert store.session_messages("sess-1", 10) == []

    def test_failure_rolls_back(self, store):
        store.save_harvested_messages([make_turn("u1")], "/t.jsonl", 10)
        bad = make_turn("u3", role=None)
        with pytest.raises(duckdb.Error):
            store.save_harvested_messages([make_turn("u2"), bad], "/t.jsonl", 30)

        assert store.get_offset("/t.jsonl") == 10
        assert [m.content for m in store.session_messages("sess-1", 10)] == ["hello"]

    def test_session_messages_skip_empty_content(self, store):
        store.save_harvested_messages([make_turn("u1", ""), make_turn("u2", "kept")],
                                      "/t.jsonl", 1)
        assert [m.content for m in store.session_messages("sess-1", 10)] == ["kept"]

    def test_session_messages_oldest_first(self, store):
        store.save_harvested_messages([
            make_turn("u1", "late", timestamp=T0 + timedelta(minutes=5)),
            make_turn("u2", "early", timestamp=T0),
        ], "/t.jsonl", 1)
        assert [m.content for m in store.session_messages("sess-1", 10)] == ["early", "late"]

    def test_persists_across_connections(self, tmp_path):
        db = str(tmp_path / "events.duckdb")
        with Store(db) as st:
            st.init_core_schema()
            st.save_harvested_messages([make_turn("u1")], "/t.jsonl", 7)
        with Store(db) as st:
            st.init_core_schema()
            assert st.get_offset("/t.jsonl") == 7
            assert len(st.session_messages("sess-1", 10)) == 1


class TestSessionsAndEvents:
    def test_upsert_session_updates_transcript_path(self, store):
        store.upsert_session(_session())
        store.upsert_session(Session(id="sess-1", cwd="/home/dev/project",
                                     transcript_path="/tmp/new.jsonl", created_at=T0))
        store.save_summary("sess-1", "did things", "m")
        [result] = store.list_summaries(10)
        assert result.cwd == "/home/dev/project"

    def test_insert_event_with_all_fields_empty(self, store):
        store.insert_event(Event(session_id="sess-1", event_type="Stop", timestamp=T0))
        assert store.tool_search("*", 10) == []


class TestTextSearch:
    def test_case_insensitive(self, store):
        store.save_harvested_messages([
            make_turn("u1", "Fix the DuckDB schema"),
            make_turn("u2", "unrelated"),
        ], "/t.jsonl", 1)
        results = store.text_search("duckdb", 10)
        assert [r.content for r in results] == ["Fix the DuckDB schema"]
        assert results[0].score == 0.0

    def test_wildcard_characters_are_literal(self, store):
        store.save_harvested_messages([
            make_turn("u1", "100% done"),
            make_turn("u2", "100 percent"),
        ], "/t.jsonl", 1)
        assert [r.content for r in store.text_search("100%", 10)] == ["100% done"]

    def test_newest_first_and_limit(self, store):
        store.save_harvested_messages([
            make_turn(f"u{i}", f"match {i}", timestamp=T0 + timedelta(minutes=i))
            for i in range(5)
        ], "/t.jsonl", 1)
        results = store.text_search("match", 2)
        assert [r.content for r in results] == ["match 4", "match 3"]

    def test_time_filter(self, store):
        store.save_harvested_messages([
            make_turn("u1", "match old", timestamp=T0 - timedelta(days=2)),
            make_turn("u2", "match new", timestamp=T0),
        ], "/t.jsonl", 1)
        tf = TimeFilter(since=T0 - timedelta(days=1))
        assert [r.content for r in store.text_search("match", 10, tf)] == ["match new"]
        tf = TimeFilter(until=T0 - timedelta(days=1))
        assert [r.content for r in store.text_search("match", 10, tf)] == ["match old"]


class TestToolSearch:
    def test_all_tools(self, store):
        store.insert_event(_tool_event("Bash", T0))
        store.insert_event(_tool_event("Read", T0 + timedelta(minutes=1)))
        store.insert_event(Event(session_id="sess-1", event_type="PreToolUse",
                                 timestamp=T0, tool_name="Bash"))
        results = store.tool_search("*", 10)
        assert [r.tool_name for r in results] == ["Read", "Bash"]
        assert json.loads(results[1].tool_input) == {"command": "ls"}
        assert json.loads(results[1].tool_response) == {"stdout": "ok"}
        assert results[1].timestamp == T0

    def test_empty_pattern_matches_all(self, store):
        store.insert_event(_tool_event("Bash", T0))
        assert len(store.tool_search("", 10)) == 1

    def test_name_filter_case_insensitive(self, store):
        store.insert_event(_tool_event("Bash", T0))
        store.insert_event(_tool_event("Read", T0))
        assert [r.tool_name for r in store.tool_search("bash", 10)] == ["Bash"]

    def test_time_filter(self, store):
        store.insert_event(_tool_event("Bash", T0 - timedelta(hours=3), command="old"))
        store.insert_event(_tool_event("Bash", T0, command="new"))
        results = store.tool_search("Bash", 10, TimeFilter(since=T0 - timedelta(hours=1)))
        assert [json.loads(r.tool_input)["command"] for r in results] == ["new"]


class TestSummaries:
    def test_save_and_list(self, store):
        store.upsert_session(_session())
        store.save_summary("sess-1", "Added a parser.", "gpt-4o-mini")
        [result] = store.list_summaries(10)
        assert result.session_id == "sess-1"
        assert result.summary == "Added a parser."
        assert result.model == "gpt-4o-mini"
        assert result.generated_at.tzinfo is not None

    def test_save_replaces_existing(self, store):
        store.upsert_session(_session())
        store.save_summary("sess-1", "first", "m1")
        store.save_summary("sess-1", "second", "m2")
        [result] = store.list_summaries(10)
        assert (result.summary, result.model) == ("second", "m2")

    def test_time_filter_excludes_old(self, store):
        store.upsert_session(_session())
        store.save_summary("sess-1", "s", "m")
        future = datetime.now(timezone.utc) + timedelta(days=1)
        assert store.list_summaries(10, TimeFilter(since=future)) == []


class TestEmbeddings:
    def _seed(self, store):
        store.init_embedding_schema(3)
        store.save_harvested_messages([
            make_turn("u1", "about parsing"),
            make_turn("u2", "about storage", timestamp=T0 + timedelta(minutes=1)),
            make_turn("u3", "not embedded yet", timestamp=T0 + timedelta(minutes=2)),
        ], "/t.jsonl", 1)
        ids = [m.id for m in store.session_messages("sess-1", 10)]
        store.save_embedding(ids[0], [1.0, 0.0, 0.0])
        store.save_embedding(ids[1], [0.0, 1.0, 0.0])
        return ids

    def test_unembedded_messages(self, store):
        ids = self._seed(store)
        assert [m.id for m in store.unembedded_messages(10)] == [ids[2]]

    def test_save_embedding_twice_is_noop(self, store):
        ids = self._seed(store)
        store.save_embedding(ids[0], [0.0, 0.0, 1.0])
        results = store.search_similar([1.0, 0.0, 0.0], 1)
        assert results[0].id == ids[0]

    def test_search_similar_ranks_by_cosine(self, store):
        ids = self._seed(store)
        results = store.search_similar([0.9, 0.1, 0.0], 10)
        assert [r.id for r in results] == [ids[0], ids[1]]
        assert results[0].score > results[1].score
        assert results[0].content == "about parsing"

    def test_search_similar_time_filter(self, store):
        ids = self._seed(store)
        tf = TimeFilter(since=T0 + timedelta(seconds=30))
        results = store.search_similar([1.0, 0.0, 0.0], 10, tf)
        assert [r.id for r in results] == [ids[1]]

    def test_init_embedding_schema_idempotent(self, store):
        store.init_embedding_schema(3)
        store.init_embedding_schema(3)
        assert store.unembedded_messages(10) == []
