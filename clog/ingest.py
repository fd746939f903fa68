"""Hook ingestion: store the event, harvest the transcript, summarize on session end."""

import os
import logging

import duckdb

from clog.config import Config
from clog.harvester import harvest
from clog.payload import parse_payload
from clog.scanner import LineTooLongError
from clog.store import Store
from clog import summary

logger = logging.getLogger(__name__)

# Events after which the transcript has new complete turns worth reading
HARVEST_EVENTS = frozenset({"Stop", "SubagentStop", "SessionEnd", "PreCompact"})

SUMMARY_MESSAGE_LIMIT = 500


def harvest_messages(store: Store, session_id: str, transcript_path: str,
                     config: Config) -> int:
    """Harvest new turns from a transcript and commit them with the new offset.

    Returns the number of turns read. Raises OSError / LineTooLongError from
    the harvest, in which case nothing is committed.
    """
    offset = store.get_offset(transcript_path)

    size = os.path.getsize(transcript_path)
    if size < offset:
        # File shrank or was replaced; known uuids make the replay harmless
        logger.info("Transcript %s truncated (%d < %d), reading from start",
                    transcript_path, size, offset)
        offset = 0

    result = harvest(session_id, transcript_path, offset, config.max_line_bytes)

    if result.turns or result.new_offset != offset:
        store.save_harvested_messages(result.turns, transcript_path, result.new_offset)
    return len(result.turns)


def summarize_session(store: Store, session_id: str, config: Config) -> bool:
    """Generate and store a summary if a chat provider is configured."""
    summarizer = summary.new_from_env(config)
    if summarizer is None:
        return False

    try:
        messages = store.session_messages(session_id, SUMMARY_MESSAGE_LIMIT)
        if not messages:
            return False
        text = summarizer.summarize(messages)
    finally:
        summarizer.close()

    store.save_summary(session_id, text, summarizer.model)
    logger.info("Saved summary for session %s (%s)", session_id, summarizer.model)
    return True


def run_hook(raw: bytes, config: Config):
    """Process one hook event. Harvest and summary failures are logged, not raised."""
    parsed = parse_payload(raw)
    session, event = parsed.session, parsed.event

    os.makedirs(config.log_dir(session.cwd), exist_ok=True)

    with Store(config.db_path(session.cwd)) as store:
        store.init_core_schema()
        store.upsert_session(session)
        store.insert_event(event)

        if event.event_type in HARVEST_EVENTS and session.transcript_path:
            try:
                n = harvest_messages(store, session.id, session.transcript_path, config)
                logger.info("Harvested %d turn(s) for session %s", n, session.id)
            except (OSError, LineTooLongError, duckdb.Error) as e:
                logger.error("harvest: %s", e)

        if event.event_type == "SessionEnd":
            try:
                summarize_session(store, session.id, config)
            except summary.SummaryError as e:
                logger.error("summary: %s", e)
