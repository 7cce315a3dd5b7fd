"""Agent list pane: one row per roster entry with a state indicator."""

from __future__ import annotations

from datetime import datetime

from rich.text import Text
from textual.widgets import Static

from fabtui.daemon.models import AgentStatus, utcnow
from fabtui.enums import AgentState
from fabtui.formatting import format_duration, truncate_description
from fabtui.roster import ACTIVE_STATES, MANAGER_ID, Roster
from fabtui.widgets.primitives import spinner_glyph

ATTENTION_ICON = "!"

STATE_ICONS = {
    AgentState.IDLE: "○",
    AgentState.DONE: "✓",
    AgentState.ERROR: "✗",
    AgentState.STOPPING: "◌",
    AgentState.STOPPED: "■",
}

STATE_STYLES = {
    AgentState.RUNNING: "cyan",
    AgentState.DONE: "cyan",
    AgentState.ERROR: "red",
}


def state_indicator(agent: AgentStatus, frame: int, attention: bool) -> tuple[str, str]:
    """(glyph, style) for an agent's state column."""
    if attention:
        return ATTENTION_ICON, "bold yellow"
    if agent.state in ACTIVE_STATES:
        glyph = spinner_glyph(frame)
    else:
        glyph = STATE_ICONS.get(agent.state, "?")
    return glyph, STATE_STYLES.get(agent.state, "dim")


def render_agent_row(
    agent: AgentStatus,
    *,
    selected: bool = False,
    attention: bool = False,
    frame: int = 0,
    now: datetime | None = None,
    width: int = 60,
) -> Text:
    """State, id, project, task and description, with the age right-aligned."""
    now = now or utcnow()
    glyph, glyph_style = state_indicator(agent, frame, attention)
    id_style = "bold magenta" if agent.id == MANAGER_ID else "bold"
    left = Text.assemble(
        (glyph, glyph_style),
        " ",
        (agent.id, id_style),
        " ",
        (agent.project, "dim"),
    )
    if agent.task:
        left.append(" ")
        left.append(agent.task, style="italic")

    age = format_duration(now - agent.started_at)
    # Two columns of padding plus at least one space before the age
    room = width - 2 - len(left) - len(age) - 2
    if agent.description and room > 3:
        left.append(" ")
        left.append(truncate_description(agent.description, room), style="dim")
    left.truncate(max(1, width - 2 - len(age) - 1))

    spacer = " " * max(1, width - 2 - len(left) - len(age))
    row = Text.assemble(left, spacer, (age, "dim"))
    if selected:
        row.stylize("reverse")
    return row


def render_agent_list(
    roster: Roster,
    attention: set[str] | frozenset[str] = frozenset(),
    *,
    frame: int = 0,
    now: datetime | None = None,
    width: int = 60,
) -> Text:
    if not roster:
        return Text("No agents", style="dim italic")
    now = now or utcnow()
    rows = [
        render_agent_row(
            agent,
            selected=i == roster.selected,
            attention=agent.id in attention,
            frame=frame,
            now=now,
            width=width,
        )
        for i, agent in enumerate(roster)
    ]
    return Text("\n").join(rows)


class AgentList(Static):
    """Roster pane. Highlights its border while it has focus."""

    DEFAULT_CSS = """
    AgentList {
        width: 1fr;
        max-width: 64;
        min-width: 30;
        height: 100%;
        padding: 0 1;
        border: round $panel;
        border-title-color: $text-muted;
    }
    AgentList.focused {
        border: round $primary;
        border-title-color: $primary;
    }
    """

    def on_mount(self) -> None:
        self.border_title = "Agents"

    def show(
        self,
        roster: Roster,
        attention: set[str],
        *,
        frame: int,
        focused: bool,
    ) -> None:
        self.set_class(focused, "focused")
        width = self.content_region.width or 60
        self.border_title = f"Agents ({len(roster)})" if roster else "Agents"
        self.update(render_agent_list(roster, attention, frame=frame, width=width + 2))
