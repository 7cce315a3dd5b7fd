"""Token usage for the current 5-hour billing window.

Reads Claude Code's JSONL session logs under ~/.claude/projects and reports
output tokens as a share of the configured plan limit. Display only.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from fabtui.config import CONFIG

log = logging.getLogger(__name__)

CLAUDE_PROJECTS = Path.home() / ".claude" / "projects"
WINDOW_HOURS = 5

PRO_OUTPUT_TOKENS = 500_000
MAX_OUTPUT_TOKENS = 2_000_000


@dataclass
class TokenUsage:
    """Aggregated token counts from assistant messages."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    message_count: int = 0
    first_message_at: datetime | None = None
    last_message_at: datetime | None = None

    @property
    def total_input_tokens(self) -> int:
        return self.input_tokens + self.cache_creation_tokens + self.cache_read_tokens

    @property
    def total_tokens(self) -> int:
        return self.total_input_tokens + self.output_tokens

    def _seen(self, ts: datetime) -> None:
        if self.first_message_at is None or ts < self.first_message_at:
            self.first_message_at = ts
        if self.last_message_at is None or ts > self.last_message_at:
            self.last_message_at = ts

    def add(self, other: TokenUsage) -> None:
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.cache_creation_tokens += other.cache_creation_tokens
        self.cache_read_tokens += other.cache_read_tokens
        self.message_count += other.message_count
        for ts in (other.first_message_at, other.last_message_at):
            if ts is not None:
                self._seen(ts)

    def percent(self, output_limit: int) -> float:
        """Output tokens as a fraction of `output_limit`. Zero limit yields 0."""
        if output_limit <= 0:
            return 0.0
        return self.output_tokens / output_limit


@dataclass
class BillingWindow:
    start: datetime
    end: datetime

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts < self.end

    def time_remaining(self, now: datetime | None = None) -> timedelta:
        now = now or datetime.now(timezone.utc)
        return max(self.end - now, timedelta(0))


@dataclass
class UsageSnapshot:
    percent: int
    remaining: timedelta


def current_window(now: datetime | None = None) -> BillingWindow:
    """Windows start at midnight UTC and repeat every five hours."""
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    start_hour = (now.hour // WINDOW_HOURS) * WINDOW_HOURS
    start = now.replace(hour=start_hour, minute=0, second=0, microsecond=0)
    return BillingWindow(start=start, end=start + timedelta(hours=WINDOW_HOURS))


def output_token_limit() -> int:
    """Configured output-token limit: explicit value, else the plan default."""
    usage_config = CONFIG.get("usage", {})
    if usage_config.get("output-tokens"):
        return int(usage_config["output-tokens"])
    if usage_config.get("plan") == "max":
        return MAX_OUTPUT_TOKENS
    return PRO_OUTPUT_TOKENS


def _parse_ts(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        ts = datetime.fromisoformat(text)
    except ValueError:
        return None
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def parse_session_file(path: Path, window: BillingWindow | None = None) -> TokenUsage:
    """Sum assistant-message usage in one session log, optionally within `window`."""
    usage = TokenUsage()
    with open(path, encoding="utf-8", errors="replace") as f:
        for line in f:
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue
            if not isinstance(entry, dict) or entry.get("type") != "assistant":
                continue
            message = entry.get("message")
            tokens = message.get("usage") if isinstance(message, dict) else None
            if not isinstance(tokens, dict):
                continue
            ts = _parse_ts(entry.get("timestamp"))
            if window is not None and (ts is None or not window.contains(ts)):
                continue
            usage.input_tokens += tokens.get("input_tokens", 0)
            usage.output_tokens += tokens.get("output_tokens", 0)
            usage.cache_creation_tokens += tokens.get("cache_creation_input_tokens", 0)
            usage.cache_read_tokens += tokens.get("cache_read_input_tokens", 0)
            usage.message_count += 1
            if ts is not None:
                usage._seen(ts)
    return usage


def usage_in_window(window: BillingWindow, root: Path = CLAUDE_PROJECTS) -> TokenUsage:
    """Usage across every project's session logs inside `window`."""
    total = TokenUsage()
    if not root.is_dir():
        return total
    cutoff = window.start.timestamp()
    for path in root.glob("*/*.jsonl"):
        try:
            # Logs untouched since the window opened cannot contain entries in it
            if path.stat().st_mtime < cutoff:
                continue
            total.add(parse_session_file(path, window))
        except OSError:
            log.debug(f"Skipping unreadable session log {path}", exc_info=True)
    return total


def fetch_usage(
    limit: int | None = None,
    now: datetime | None = None,
    root: Path = CLAUDE_PROJECTS,
) -> UsageSnapshot:
    """Blocking; run via asyncio.to_thread()."""
    window = current_window(now)
    usage = usage_in_window(window, root)
    limit = output_token_limit() if limit is None else limit
    return UsageSnapshot(
        percent=round(usage.percent(limit) * 100),
        remaining=window.time_remaining(now),
    )
