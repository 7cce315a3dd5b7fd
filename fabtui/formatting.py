"""Text formatting for roster rows, chat entries and pending items."""

from __future__ import annotations

from datetime import datetime, timedelta

from rich.text import Text

from fabtui.daemon.models import ChatEntry, parse_timestamp

MAX_TOOL_INPUT = 80
MAX_RESULT_LINES = 5
RESULT_INDENT = "     "


def format_duration(d: timedelta) -> str:
    """Concise duration: 42s, 5m, 2h15m, 3d4h."""
    seconds = max(0, int(d.total_seconds()))
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h{minutes % 60}m"
    return f"{hours // 24}d{hours % 24}h"


def truncate(text: str, max_len: int) -> str:
    """Collapse to one line and cut to `max_len` with an ellipsis."""
    text = text.replace("\n", " ").strip()
    if len(text) > max_len:
        return text[: max(0, max_len - 3)] + "..."
    return text


def truncate_description(desc: str, max_len: int) -> str:
    return truncate(desc, max(max_len, 10))


def format_time(timestamp: str) -> str:
    """Wall-clock time of an RFC 3339 timestamp, e.g. "3:04 PM". Empty if unparseable."""
    if not timestamp:
        return ""
    sentinel = datetime.min
    parsed = parse_timestamp(timestamp, sentinel)
    if parsed is sentinel:
        return ""
    return parsed.astimezone().strftime("%I:%M %p").lstrip("0")


def _count(n: int, singular: str, plural: str) -> str:
    return f"{n} {singular if n == 1 else plural}"


def summarize_tool_result(tool_name: str, result: str, max_width: int = 120) -> str:
    """One-line summaries for Read and Grep; the first few lines otherwise."""
    if tool_name == "Read":
        line_count = result.count("\n")
        if result and not result.endswith("\n"):
            line_count += 1
        return "Read " + _count(line_count, "line", "lines")
    if tool_name == "Grep":
        matches = sum(1 for line in result.split("\n") if line.strip())
        if not matches:
            return "No matches"
        return _count(matches, "match", "matches")

    lines = result.split("\n")
    if len(lines) > MAX_RESULT_LINES:
        lines = lines[:MAX_RESULT_LINES] + ["..."]
    width = max(max_width, 10)
    lines = [line if len(line) <= width else line[: width - 3] + "..." for line in lines]
    return ("\n" + RESULT_INDENT).join(lines)


def entry_prefix(role: str, backend: str = "") -> str:
    if role == "user":
        return "You: "
    name = backend or "claude"
    return name[:1].upper() + name[1:] + ": "


def format_entry(entry: ChatEntry, backend: str = "", last_tool: str = "") -> Text:
    """Render one chat entry. `last_tool` names the tool a bare result belongs to."""
    text = Text()
    if entry.role in ("user", "assistant"):
        time_str = format_time(entry.timestamp)
        if time_str:
            text.append(time_str + " ", style="dim")
        style = "bold cyan" if entry.role == "user" else "bold green"
        text.append(entry_prefix(entry.role, backend), style=style)
        text.append(entry.content)
        return text
    if entry.role == "tool":
        lines = []
        if entry.tool_name:
            lines.append(
                Text.assemble(
                    "  ",
                    (f"[{entry.tool_name}]", "magenta"),
                    " ",
                    truncate(entry.tool_input, MAX_TOOL_INPUT),
                )
            )
        if entry.tool_result:
            lines.append(
                Text.assemble(
                    "  ",
                    ("->", "dim"),
                    " ",
                    summarize_tool_result(entry.tool_name or last_tool, entry.tool_result),
                )
            )
        return Text("\n").join(lines)
    return Text(entry.content)


def format_entries(entries: list[ChatEntry], backend: str = "") -> Text:
    """Render a transcript, linking tool results to the most recent tool name."""
    rendered = []
    last_tool = ""
    for entry in entries:
        if entry.role == "tool" and entry.tool_name:
            last_tool = entry.tool_name
        line = format_entry(entry, backend, last_tool)
        if line.plain:
            rendered.append(line)
    return Text("\n").join(rendered)
