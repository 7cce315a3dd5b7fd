"""Main supervision screen."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import Screen

from fabtui.enums import Focus, Mode
from fabtui.keybindings import help_text
from fabtui.widgets import (
    AgentList,
    ChatView,
    HelpBar,
    InputBar,
    PendingPanel,
    PlanPicker,
    StatusHeader,
)
from fabtui.widgets.prompts import (
    render_abort,
    render_action,
    render_permission,
    render_question,
)

if TYPE_CHECKING:
    from fabtui.model import Model


def pending_content(model: Model) -> tuple[Text | None, bool]:
    """What the pending panel shows, and whether it is the abort prompt."""
    if model.mode.is_abort_confirming:
        return render_abort(model.mode.abort_agent_id), True
    question = model.active_question
    if question is not None and not model.answering_other:
        return render_question(question, model.question_cursor, model.mode.is_user_question), False
    permission = model.active_permission
    if permission is not None:
        return render_permission(permission), False
    action = model.active_action
    if action is not None:
        return render_action(action), False
    return None, False


def chat_title(model: Model) -> str:
    agent = model.chat_agent
    if agent is None:
        return "Chat"
    title = f"{agent.id} · {agent.project}" if agent.project else agent.id
    if model.mode.is_plan_prompt:
        return f"New Plan Agent · {model.mode.plan_project}"
    return title


def legend(model: Model) -> str:
    return help_text(
        model.mode.mode,
        model.mode.focus,
        permission=model.active_permission is not None,
        action=model.active_action is not None,
        question=model.active_question is not None,
    )


class SupervisorScreen(Screen, inherit_bindings=False):
    """Header, agent list beside the chat column, help bar at the bottom.

    Keys are not bound here; the app forwards every key to the model.
    """

    DEFAULT_CSS = """
    SupervisorScreen #main {
        height: 1fr;
    }
    SupervisorScreen #chat-column {
        width: 2fr;
        height: 100%;
    }
    """

    def compose(self) -> ComposeResult:
        yield StatusHeader(id="header")
        with Horizontal(id="main"):
            yield AgentList(id="agent-list")
            with Vertical(id="chat-column"):
                yield ChatView(id="chat-view")
                yield PlanPicker(id="plan-picker")
                yield PendingPanel(id="pending-panel")
                yield InputBar(id="input-bar")
        yield HelpBar(id="help-bar")

    def show_model(self, model: Model) -> None:
        """Re-render every widget from the model. Never mutates it."""
        mode = model.mode
        self.query_one(StatusHeader).show(
            connection=model.connection.state,
            agent_count=len(model.roster),
            running_count=model.roster.running_count,
            commit_count=model.commit_count,
            usage=model.usage,
        )
        self.query_one(AgentList).show(
            model.roster,
            model.pending.attention,
            frame=model.spinner_frame,
            focused=mode.is_normal and mode.focus == Focus.AGENT_LIST,
        )
        agent = model.chat_agent
        self.query_one(ChatView).show(
            chat_title(model),
            model.chat_agent_id,
            model.chat_entries,
            backend=agent.backend if agent else "",
            lines_from_bottom=model.chat_scroll,
            focused=mode.focus == Focus.CHAT_VIEW and not mode.is_plan_project_select,
        )
        self.query_one(PlanPicker).show(mode)
        content, abort = pending_content(model)
        self.query_one(PendingPanel).show(content, abort=abort)
        self.query_one(InputBar).show(
            model.input,
            active=mode.mode in (Mode.INPUT, Mode.PLAN_PROMPT),
            label="PLAN" if mode.is_plan_prompt else "INPUT",
        )
        self.query_one(HelpBar).show(legend(model), model.error)
