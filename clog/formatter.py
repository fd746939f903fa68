"""Format search, tool and summary results as text."""

import json

from clog.embedding import truncate
from clog.models import SearchResult, SummaryResult, ToolResult

TIME_FORMAT = "%Y-%m-%d %H:%M"

# Most useful tool_input field per tool
TOOL_INPUT_KEYS = {
    "Bash": "command",
    "Read": "file_path",
    "Edit": "file_path",
    "Write": "file_path",
    "Glob": "pattern",
    "Grep": "pattern",
    "WebFetch": "url",
    "WebSearch": "query",
    "Task": "prompt",
}


def format_tool_input(tool_name: str, raw_input: str) -> str:
    if not raw_input:
        return "(no input)"
    try:
        data = json.loads(raw_input)
    except ValueError:
        return truncate(raw_input, 120)

    key = TOOL_INPUT_KEYS.get(tool_name)
    if key and isinstance(data, dict) and isinstance(data.get(key), str):
        return truncate(data[key], 120)
    return truncate(raw_input, 120)


def format_results(results: list[SearchResult]) -> str:
    blocks = []
    for i, r in enumerate(results, 1):
        ts = r.timestamp.strftime(TIME_FORMAT)
        if r.score > 0:
            header = f"[{i}] score={r.score:.4f}  {ts}  [{r.role}]  session={r.session_id[:8]}"
        else:
            header = f"[{i}] {ts}  [{r.role}]  session={r.session_id[:8]}"
        blocks.append(f"{header}\n    {truncate(r.content, 200)}\n")
    return "\n".join(blocks)


def format_tool_results(results: list[ToolResult], verbose: bool = False) -> str:
    blocks = []
    for i, r in enumerate(results, 1):
        lines = [
            f"[{i}] {r.timestamp.strftime(TIME_FORMAT)}  {r.tool_name}  session={r.session_id[:8]}",
            f"    {format_tool_input(r.tool_name, r.tool_input)}",
        ]
        if verbose and r.tool_response:
            lines.append(f"    → {truncate(r.tool_response, 200)}")
        blocks.append("\n".join(lines) + "\n")
    return "\n".join(blocks)


def format_summaries(results: list[SummaryResult]) -> str:
    blocks = []
    for i, r in enumerate(results, 1):
        header = (f"[{i}] {r.generated_at.strftime(TIME_FORMAT)}  session={r.session_id[:8]}"
                  f"  {r.cwd}")
        blocks.append(f"{header}\n    {r.summary}\n")
    return "\n".join(blocks)
