"""Line scanner for append-only JSONL transcripts.

Reads complete lines from the current position of a binary file handle and
yields each one that decodes to a JSON object, together with its text.
Invalid UTF-8 and unpaired surrogate escapes decode to U+FFFD. Blank and
malformed lines are skipped. A trailing line with no newline yet is left
unread: the handle is rewound to its start so ``fh.tell()`` never moves past
an incomplete record.
"""

import logging
from typing import BinaryIO, Iterator

from clog.extract import loads

logger = logging.getLogger(__name__)

MAX_LINE_BYTES = 10 * 1024 * 1024


class LineTooLongError(ValueError):
    """A single transcript line exceeded the configured size cap."""

    def __init__(self, offset: int, limit: int):
        super().__init__(f"line at byte {offset} exceeds {limit} bytes")
        self.offset = offset
        self.limit = limit


def scan_records(fh: BinaryIO,
                 max_line_bytes: int = MAX_LINE_BYTES) -> Iterator[tuple[dict, str]]:
    """Yield (record, line text) for each complete JSON object line up to EOF."""
    skipped = 0
    while True:
        start = fh.tell()
        line = fh.readline(max_line_bytes + 1)
        if not line:
            break

        if not line.endswith(b"\n"):
            if len(line) > max_line_bytes:
                raise LineTooLongError(start, max_line_bytes)
            # Incomplete tail: leave it for the next scan
            fh.seek(start)
            logger.debug("Unterminated line at byte %d left for next scan", start)
            break

        text = line.rstrip(b"\r\n").decode("utf-8", errors="replace")
        if not text.strip():
            continue

        try:
            record = loads(text)
        except ValueError as e:
            skipped += 1
            logger.debug("Skipping malformed line at byte %d: %s", start, e)
            continue

        if not isinstance(record, dict):
            skipped += 1
            continue

        yield record, text

    if skipped:
        logger.debug("Skipped %d unparseable line(s)", skipped)
