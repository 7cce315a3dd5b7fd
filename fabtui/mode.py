"""Interaction mode and keyboard focus state machine.

Exactly one Mode is active at a time. Focus may only be changed directly while
in Normal mode; every other mode pins focus when it is entered. Transitions
raise a ModeError subclass on misuse rather than silently doing nothing.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from fabtui.enums import Focus, Mode


class ModeError(Exception):
    """Base class for mode protocol violations."""


class InvalidTransition(ModeError):
    """The requested transition is not legal from the current mode."""


class AlreadyInMode(ModeError):
    """The requested mode is already active."""


class MissingAgentID(ModeError):
    """Abort confirmation was requested without an agent id."""


def fuzzy_match(text: str, pattern: str) -> bool:
    """Case-insensitive subsequence match. An empty pattern matches everything."""
    chars = iter(text.casefold())
    return all(c in chars for c in pattern.casefold())


def filter_projects(projects: list[str], pattern: str) -> list[str]:
    return [p for p in projects if fuzzy_match(p, pattern)]


@dataclass
class ModeState:
    mode: Mode = Mode.NORMAL
    focus: Focus = Focus.AGENT_LIST
    abort_agent_id: str = ""

    # Plan flow
    plan_projects: list[str] = field(default_factory=list)
    plan_filter: str = ""
    plan_filtered: list[str] = field(default_factory=list)
    plan_index: int = 0
    plan_project: str = ""

    @property
    def is_normal(self) -> bool:
        return self.mode == Mode.NORMAL

    @property
    def is_inputting(self) -> bool:
        return self.mode == Mode.INPUT

    @property
    def is_abort_confirming(self) -> bool:
        return self.mode == Mode.ABORT_CONFIRM

    @property
    def is_user_question(self) -> bool:
        return self.mode == Mode.USER_QUESTION

    @property
    def is_plan_project_select(self) -> bool:
        return self.mode == Mode.PLAN_PROJECT_SELECT

    @property
    def is_plan_prompt(self) -> bool:
        return self.mode == Mode.PLAN_PROMPT

    def _require(self, mode: Mode, action: str) -> None:
        if self.mode != mode:
            raise InvalidTransition(f"cannot {action} in {self.mode} mode")

    def _require_entry(self, target: Mode, also_from: tuple[Mode, ...] = ()) -> None:
        """Entering `target` is legal from Normal and from `also_from`."""
        if self.mode == target:
            raise AlreadyInMode(f"already in {target} mode")
        if self.mode != Mode.NORMAL and self.mode not in also_from:
            raise InvalidTransition(f"cannot enter {target} mode from {self.mode} mode")

    # Focus

    def set_focus(self, focus: Focus) -> None:
        self._require(Mode.NORMAL, "change focus")
        self.focus = focus

    def cycle_focus(self) -> Focus:
        """Toggle between the agent list and the chat view."""
        self._require(Mode.NORMAL, "cycle focus")
        self.focus = Focus.CHAT_VIEW if self.focus == Focus.AGENT_LIST else Focus.AGENT_LIST
        return self.focus

    # Input

    def enter_input_mode(self) -> None:
        self._require_entry(Mode.INPUT, also_from=(Mode.USER_QUESTION,))
        self.mode = Mode.INPUT
        self.focus = Focus.INPUT_LINE

    def exit_input_mode(self) -> None:
        self._require(Mode.INPUT, "exit input mode")
        self.mode = Mode.NORMAL
        self.focus = Focus.CHAT_VIEW

    # Abort confirmation

    def enter_abort_confirm(self, agent_id: str) -> None:
        if not agent_id:
            raise MissingAgentID("abort confirmation requires an agent id")
        self._require_entry(Mode.ABORT_CONFIRM, also_from=(Mode.USER_QUESTION,))
        self.mode = Mode.ABORT_CONFIRM
        self.abort_agent_id = agent_id

    def confirm_abort(self) -> str:
        """Leave abort confirmation, returning the agent to abort."""
        self._require(Mode.ABORT_CONFIRM, "confirm abort")
        agent_id = self.abort_agent_id
        self.mode = Mode.NORMAL
        self.abort_agent_id = ""
        return agent_id

    def cancel_abort(self) -> None:
        self._require(Mode.ABORT_CONFIRM, "cancel abort")
        self.mode = Mode.NORMAL
        self.abort_agent_id = ""

    # User question

    def enter_user_question_mode(self) -> None:
        self._require_entry(Mode.USER_QUESTION)
        self.mode = Mode.USER_QUESTION
        self.focus = Focus.CHAT_VIEW

    def exit_user_question_mode(self) -> None:
        self._require(Mode.USER_QUESTION, "exit user question mode")
        self.mode = Mode.NORMAL
        self.focus = Focus.CHAT_VIEW

    # Plan project selection

    def enter_plan_project_select(self, projects: list[str]) -> None:
        self._require_entry(Mode.PLAN_PROJECT_SELECT)
        self.mode = Mode.PLAN_PROJECT_SELECT
        self.focus = Focus.CHAT_VIEW
        self.plan_projects = list(projects)
        self.plan_filter = ""
        self.plan_filtered = list(projects)
        self.plan_index = 0

    def plan_select_up(self) -> None:
        self._require(Mode.PLAN_PROJECT_SELECT, "move selection")
        if self.plan_index > 0:
            self.plan_index -= 1

    def plan_select_down(self) -> None:
        self._require(Mode.PLAN_PROJECT_SELECT, "move selection")
        if self.plan_index < len(self.plan_filtered) - 1:
            self.plan_index += 1

    def set_plan_filter(self, text: str) -> None:
        self._require(Mode.PLAN_PROJECT_SELECT, "filter projects")
        self.plan_filter = text
        self.plan_filtered = filter_projects(self.plan_projects, text)
        self.plan_index = 0

    def select_plan_project(self) -> str:
        """Choose the highlighted project and move on to the plan prompt."""
        self._require(Mode.PLAN_PROJECT_SELECT, "select project")
        if not self.plan_filtered:
            raise InvalidTransition("no projects match the filter")
        if not 0 <= self.plan_index < len(self.plan_filtered):
            raise InvalidTransition(f"selection index {self.plan_index} out of range")
        project = self.plan_filtered[self.plan_index]
        self._clear_plan_selection()
        self.mode = Mode.PLAN_PROMPT
        self.focus = Focus.INPUT_LINE
        self.plan_project = project
        return project

    def cancel_plan_project_select(self) -> None:
        self._require(Mode.PLAN_PROJECT_SELECT, "cancel project selection")
        self._clear_plan_selection()
        self.mode = Mode.NORMAL
        self.focus = Focus.AGENT_LIST

    def selected_plan_project(self) -> str:
        """Highlighted project in the filtered list, or ""."""
        if 0 <= self.plan_index < len(self.plan_filtered):
            return self.plan_filtered[self.plan_index]
        return ""

    def _clear_plan_selection(self) -> None:
        self.plan_projects = []
        self.plan_filter = ""
        self.plan_filtered = []
        self.plan_index = 0

    # Plan prompt

    def exit_plan_prompt_mode(self) -> str:
        """Leave the plan prompt, returning the chosen project."""
        self._require(Mode.PLAN_PROMPT, "exit plan prompt")
        project = self.plan_project
        self.plan_project = ""
        self.mode = Mode.NORMAL
        self.focus = Focus.CHAT_VIEW
        return project

    def cancel_plan_prompt_mode(self) -> None:
        self._require(Mode.PLAN_PROMPT, "cancel plan prompt")
        self.plan_project = ""
        self.mode = Mode.NORMAL
        self.focus = Focus.AGENT_LIST

    def validate(self) -> None:
        """Raise ModeError if the carried fields disagree with the mode."""
        if self.mode == Mode.ABORT_CONFIRM:
            if not self.abort_agent_id:
                raise MissingAgentID("abort confirmation without an agent id")
        elif self.abort_agent_id:
            raise ModeError(f"{self.mode} mode carries abort agent {self.abort_agent_id!r}")
        if (self.mode == Mode.PLAN_PROMPT) != bool(self.plan_project):
            raise ModeError(f"{self.mode} mode with plan project {self.plan_project!r}")
        if self.mode == Mode.INPUT and self.focus != Focus.INPUT_LINE:
            raise ModeError("input mode without input focus")
