"""Prompts shown under the transcript: pending items, abort confirmation, plan picker."""

from __future__ import annotations

from rich.text import Text
from textual.widgets import Static

from fabtui.daemon.models import PermissionRequest, StagedAction, UserQuestion
from fabtui.enums import ActionType
from fabtui.formatting import truncate
from fabtui.mode import ModeState
from fabtui.pending import OTHER_LABEL, QuestionCursor

OTHER_DESCRIPTION = "Enter custom response"

ACTION_ICONS = {
    ActionType.SEND_MESSAGE: "✉",
    ActionType.QUIT: "⏹",
}


def render_permission(request: PermissionRequest, width: int = 80) -> Text:
    tool_input = request.tool_input.strip()
    if tool_input.startswith("{") and tool_input.endswith("}"):
        tool_input = tool_input[1:-1]
    tool_input = truncate(tool_input, max(width - 40, 20))
    return Text.assemble(
        ("🔐 Permission:", "bold yellow"),
        " ",
        (f"[{request.tool_name}]", "magenta"),
        " ",
        tool_input,
    )


def render_action(action: StagedAction, width: int = 80) -> Text:
    icon = ACTION_ICONS.get(action.type, "•")
    return Text.assemble(
        (f"{icon} Staged {action.type or 'action'}:", "bold yellow"),
        " ",
        truncate(action.payload, max(width - 30, 20)),
    )


def render_question(question: UserQuestion, cursor: QuestionCursor, active: bool = False) -> Text:
    """The current question of the set with its options and the trailing Other entry."""
    if cursor.index >= len(question.questions):
        return Text()
    q = question.questions[cursor.index]
    lines = [Text.assemble(("❓ ", ""), (q.question, "bold"))]
    if len(question.questions) > 1:
        lines[0].append(f"  ({cursor.index + 1}/{len(question.questions)})", style="dim")
    options = [(opt.label, opt.description) for opt in q.options]
    options.append((OTHER_LABEL, OTHER_DESCRIPTION))
    for i, (label, description) in enumerate(options):
        if i == cursor.selected:
            line = Text("▶ " + label, style="bold reverse" if active else "bold")
        else:
            line = Text("  " + label)
        if description:
            line.append(" - " + description, style="dim")
        lines.append(line)
    return Text("\n").join(lines)


def render_abort(agent_id: str) -> Text:
    return Text.assemble(
        (f"⚠ Abort agent {agent_id}?", "bold red"),
        " ",
        ("(y: confirm, n: cancel)", "dim"),
    )


def render_plan_picker(mode: ModeState) -> Text:
    lines = [
        Text.assemble(("Project: ", "bold"), mode.plan_filter, ("█", "dim")),
    ]
    if not mode.plan_filtered:
        lines.append(Text("No matching projects", style="dim italic"))
    for i, project in enumerate(mode.plan_filtered):
        if i == mode.plan_index:
            lines.append(Text("▶ " + project, style="bold reverse"))
        else:
            lines.append(Text("  " + project))
    return Text("\n").join(lines)


class PendingPanel(Static):
    """Shows whatever currently waits on the operator for the displayed agent."""

    DEFAULT_CSS = """
    PendingPanel {
        height: auto;
        max-height: 14;
        padding: 0 1;
        border: round $warning;
        display: none;
    }
    PendingPanel.visible {
        display: block;
    }
    PendingPanel.abort {
        border: round $error;
    }
    """

    def show(self, content: Text | None, *, abort: bool = False) -> None:
        self.set_class(content is not None, "visible")
        self.set_class(abort, "abort")
        self.update(content if content is not None else "")


class PlanPicker(Static):
    """Fuzzy project picker for starting a planner."""

    DEFAULT_CSS = """
    PlanPicker {
        height: auto;
        max-height: 16;
        padding: 0 1;
        border: round $primary;
        border-title-color: $primary;
        display: none;
    }
    PlanPicker.visible {
        display: block;
    }
    """

    def on_mount(self) -> None:
        self.border_title = "New Plan Agent"

    def show(self, mode: ModeState) -> None:
        visible = mode.is_plan_project_select
        self.set_class(visible, "visible")
        if visible:
            self.update(render_plan_picker(mode))
