"""Text and timestamp extraction from raw transcript content."""

import json
import re
from datetime import datetime, timezone
from json.decoder import WHITESPACE, scanstring

# RFC 3339 with optional fractional seconds of any precision
RFC3339_PATTERN = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)

# A \uD800-\uDFFF escape; json.loads turns an unpaired one into a lone surrogate
SURROGATE_ESCAPE = re.compile(r"\\u[dD][89a-fA-F]")
LONE_SURROGATE = re.compile("[\ud800-\udfff]")

_decoder = json.JSONDecoder()


def replace_surrogates(value):
    """Swap unpaired UTF-16 surrogates in decoded JSON for U+FFFD."""
    if isinstance(value, str):
        return LONE_SURROGATE.sub("\ufffd", value)
    if isinstance(value, list):
        return [replace_surrogates(v) for v in value]
    if isinstance(value, dict):
        return {replace_surrogates(k): replace_surrogates(v) for k, v in value.items()}
    return value


def loads(text: str):
    """json.loads whose strings are always valid UTF-8 text."""
    data = json.loads(text)
    if SURROGATE_ESCAPE.search(text):
        data = replace_surrogates(data)
    return data


def raw_value(text: str, *keys: str) -> str | None:
    """Return the source text of the value at *keys* inside a JSON object.

    ``raw_value('{"m": {"c": [1, 2]}}', "m", "c")`` gives ``'[1, 2]'`` exactly
    as written. As with json.loads, the last of duplicate keys wins. Returns
    None if a key is missing or a level is not an object. *text* must already
    be valid JSON.
    """
    start = 0
    end = len(text)
    for key in keys:
        span = _member_span(text, start, key)
        if span is None:
            return None
        start, end = span
    return text[start:end]


def _member_span(text: str, idx: int, key: str) -> tuple[int, int] | None:
    idx = WHITESPACE.match(text, idx).end()
    if text[idx:idx + 1] != "{":
        return None
    idx = WHITESPACE.match(text, idx + 1).end()

    found = None
    while text[idx:idx + 1] == '"':
        name, idx = scanstring(text, idx + 1)
        idx = WHITESPACE.match(text, idx).end() + 1  # past ':'
        idx = WHITESPACE.match(text, idx).end()
        _, end = _decoder.raw_decode(text, idx)
        if name == key:
            found = (idx, end)
        idx = WHITESPACE.match(text, end).end()
        if text[idx:idx + 1] != ",":
            break
        idx = WHITESPACE.match(text, idx + 1).end()
    return found


def extract_text(raw: str) -> str:
    """Pull display text out of a message's raw JSON content.

    User messages carry a plain JSON string; assistant messages carry an
    array of content blocks, of which only non-empty "text" blocks are kept
    and joined with newlines. Anything else comes back as the raw text.
    """
    if not raw:
        return ""

    try:
        content = loads(raw)
    except ValueError:
        return raw

    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return raw

    parts = []
    for block in content:
        if not isinstance(block, dict):
            continue
        text = block.get("text")
        if block.get("type") == "text" and isinstance(text, str) and text:
            parts.append(text)
    return "\n".join(parts)


def parse_timestamp(raw: str | None, fallback: datetime) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime, or return *fallback*."""
    if not raw or not isinstance(raw, str):
        return fallback

    match = RFC3339_PATTERN.match(raw)
    if not match:
        return fallback

    date_part, time_part, fraction, zone = match.groups()
    text = f"{date_part}T{time_part}"
    if fraction:
        # datetime only resolves microseconds; extra digits are dropped
        text += "." + fraction[:6].ljust(6, "0")
    text += "+00:00" if zone in ("Z", "z") else zone

    try:
        return datetime.fromisoformat(text).astimezone(timezone.utc)
    except ValueError:
        return fallback
