"""Header bar: branding, connection state and session indicators."""

from __future__ import annotations

from datetime import timedelta

from rich.text import Text
from textual.widgets import Static

from fabtui.enums import ConnectionState
from fabtui.formatting import format_duration
from fabtui.usage import UsageSnapshot

BAR_WIDTH = 10
SEPARATOR = (" │ ", "dim")


def render_usage_meter(percent: int, remaining: timedelta) -> Text:
    """e.g. "Usage: ████░░░░░░ 45% (2h15m)". Color rises with usage."""
    filled = max(0, min(percent * BAR_WIDTH // 100, BAR_WIDTH))
    if percent >= 90:
        bar_style = "red"
    elif percent >= 70:
        bar_style = "yellow"
    else:
        bar_style = "green"
    suffix = f" {percent}%"
    if remaining > timedelta(0):
        suffix += f" ({format_duration(remaining)})"
    return Text.assemble(
        ("Usage: ", "dim"),
        ("█" * filled + "░" * (BAR_WIDTH - filled), bar_style),
        (suffix, "dim"),
    )


def render_header(
    *,
    connection: ConnectionState,
    agent_count: int,
    running_count: int,
    commit_count: int = 0,
    usage: UsageSnapshot | None = None,
    width: int = 100,
) -> Text:
    left = Text("🚌 fab", style="bold")
    if connection == ConnectionState.DISCONNECTED:
        left.append(" ● disconnected", style="bold red")
    elif connection == ConnectionState.RECONNECTING:
        left.append(" ◌ reconnecting...", style="yellow")

    stats: list[Text] = []
    if connection == ConnectionState.CONNECTED:
        if agent_count:
            stats.append(Text(f"{running_count}/{agent_count} running", style="dim"))
        if commit_count:
            stats.append(Text(f"{commit_count} commits", style="dim"))
        if usage is not None:
            stats.append(render_usage_meter(usage.percent, usage.remaining))
    right = Text(SEPARATOR[0], style=SEPARATOR[1]).join(stats)

    spacer = " " * max(1, width - len(left) - len(right))
    return Text.assemble(left, spacer, right)


class StatusHeader(Static):
    """One-line header above the panes."""

    DEFAULT_CSS = """
    StatusHeader {
        height: 1;
        padding: 0 1;
        background: $surface;
    }
    """

    def show(
        self,
        *,
        connection: ConnectionState,
        agent_count: int,
        running_count: int,
        commit_count: int,
        usage: UsageSnapshot | None,
    ) -> None:
        width = self.content_region.width or 100
        self.update(
            render_header(
                connection=connection,
                agent_count=agent_count,
                running_count=running_count,
                commit_count=commit_count,
                usage=usage,
                width=width,
            )
        )
