"""The dispatch loop's state and transition function.

Model.update() applies exactly one message and returns the asynchronous
commands to start next. It never awaits anything itself; the runtime (the
Textual app, or a test) runs the commands and feeds their results back in.
Presentation reads a Model but never mutates it.
"""

from __future__ import annotations

import logging
import re
from typing import Callable

from fabtui import commands as cmd
from fabtui import keybindings as keys
from fabtui.commands import Command
from fabtui.connection import MAX_RECONNECTS, ConnectionSupervisor
from fabtui.daemon.models import (
    AgentStatus,
    ChatEntry,
    PermissionRequest,
    PlannerStatus,
    StagedAction,
    StreamEvent,
    UserQuestion,
    utcnow,
)
from fabtui.enums import AgentKind, AgentState, EventType, Focus
from fabtui.errors import log_exception
from fabtui.input_line import (
    DEFAULT_PLACEHOLDER,
    OTHER_PLACEHOLDER,
    PLAN_PLACEHOLDER,
    InputLine,
)
from fabtui.messages import (
    AbortCompleted,
    ActionResolved,
    AgentListLoaded,
    ChatHistoryLoaded,
    ErrorExpired,
    KeyPressed,
    MessageSent,
    PermissionResponded,
    PlannerStarted,
    ProjectsLoaded,
    QuestionAnswered,
    ReconnectResult,
    StagedActionsLoaded,
    StatsLoaded,
    StreamEventReceived,
    StreamStarted,
    Tick,
    UsageUpdated,
    ViewportChanged,
)
from fabtui.mode import ModeError, ModeState
from fabtui.pending import PendingItems, QuestionCursor
from fabtui.protocols import Daemon, EventSource
from fabtui.roster import (
    MANAGER_ID,
    Roster,
    manager_agent,
    parse_started_at,
    planner_agent,
    to_display_id,
)
from fabtui.usage import UsageSnapshot

log = logging.getLogger(__name__)

ERROR_TIMEOUT = 5.0  # seconds
USAGE_REFRESH_SECONDS = 30.0
STATS_REFRESH_TICKS = 300  # 30s at 100ms per tick

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")


def _handler_name(message: object) -> str:
    """KeyPressed -> _on_key_pressed, mirroring Textual's handler naming."""
    return "_on_" + _CAMEL.sub("_", type(message).__name__).lower()


def _printable(message: KeyPressed) -> str:
    char = message.character
    if char and len(char) == 1 and char.isprintable():
        return char
    return ""


class Model:
    """All client state, owned by the dispatch loop."""

    def __init__(
        self,
        client: Daemon,
        *,
        projects: list[str] | None = None,
        initial_agent_id: str = "",
        max_reconnects: int = MAX_RECONNECTS,
        error_timeout: float = ERROR_TIMEOUT,
        usage_limit: int | None = None,
    ) -> None:
        self.client = client
        self.projects = list(projects or [])
        self.initial_agent_id = initial_agent_id
        self.error_timeout = error_timeout
        self.usage_limit = usage_limit

        self.mode = ModeState()
        self.roster = Roster()
        self.pending = PendingItems()
        self.connection = ConnectionSupervisor(max_reconnects=max_reconnects)
        self.stream: EventSource | None = None
        self.attaching = False

        # Detail view
        self.chat_agent_id = ""
        self.chat_project = ""
        self.chat_entries: list[ChatEntry] = []
        # Lines scrolled up from the bottom; 0 follows new entries
        self.chat_scroll = 0
        self.chat_max_scroll = 0
        self.page_size = 10

        self.input = InputLine()
        self.question_cursor = QuestionCursor()
        self.answering_other = False

        self.pending_planner_id = ""
        self.spinner_frame = 0
        self.commit_count = 0
        self.usage: UsageSnapshot | None = None
        self.last_usage_fetch: float | None = None
        self.stats_ticks = 0

        self.error = ""
        self.error_generation = 0
        self.should_quit = False

        self._event_handlers: dict[str, Callable[[StreamEvent], list[Command]]] = {
            EventType.CHAT_ENTRY: self._event_chat_entry,
            EventType.OUTPUT: self._event_ignored,
            EventType.STATE: self._event_state,
            EventType.INFO: self._event_info,
            EventType.CREATED: self._event_created,
            EventType.DELETED: self._event_deleted,
            EventType.PERMISSION_REQUEST: self._event_permission_request,
            EventType.USER_QUESTION: self._event_user_question,
            EventType.ACTION_QUEUED: self._event_action_queued,
            EventType.MANAGER_CHAT_ENTRY: self._event_manager_chat_entry,
            EventType.MANAGER_STATE: self._event_manager_state,
            EventType.PLANNER_CREATED: self._event_planner_created,
            EventType.PLANNER_STATE: self._event_planner_state,
            EventType.PLANNER_INFO: self._event_planner_info,
            EventType.PLANNER_DELETED: self._event_planner_deleted,
            EventType.PLANNER_CHAT_ENTRY: self._event_planner_chat_entry,
            EventType.PLAN_COMPLETE: self._event_plan_complete,
        }

    # Derived state

    @property
    def chat_agent(self) -> AgentStatus | None:
        return self.roster.get(self.chat_agent_id) if self.chat_agent_id else None

    @property
    def active_question(self) -> UserQuestion | None:
        return self.pending.questions.for_agent(self.chat_agent_id)

    @property
    def active_permission(self) -> PermissionRequest | None:
        return self.pending.permissions.for_agent(self.chat_agent_id)

    @property
    def active_action(self) -> StagedAction | None:
        return self.pending.actions.for_agent(self.chat_agent_id)

    # Entry points

    def init(self, now: float) -> list[Command]:
        """Commands to run once at startup."""
        self.last_usage_fetch = now
        return [
            cmd.fetch_agent_list(self.client, self.projects),
            cmd.fetch_usage(self.usage_limit),
        ]

    def update(self, message: object) -> list[Command]:
        """Apply one message; return the commands to start next."""
        handler = getattr(self, _handler_name(message), None)
        if handler is None:
            log.debug(f"Unhandled message {type(message).__name__}")
            return []
        try:
            return handler(message)
        except ModeError as e:
            return [self.set_error(log_exception(e, "Invalid mode transition"))]

    def set_error(self, error: BaseException | str) -> Command:
        """Show `error` in the status slot and schedule its expiry."""
        self.error = str(error)
        self.error_generation += 1
        log.info(f"Status error: {self.error}")
        return cmd.expire_error(self.error_generation, self.error_timeout)

    # Selection helpers

    def _show_agent(self, agent: AgentStatus) -> None:
        self.chat_agent_id = agent.id
        self.chat_project = agent.project
        self.chat_entries = []
        self.chat_scroll = 0
        self.answering_other = False
        self.question_cursor.sync(self.active_question)

    def _clear_chat(self) -> None:
        self.chat_agent_id = ""
        self.chat_project = ""
        self.chat_entries = []
        self.chat_scroll = 0
        self.answering_other = False
        self.question_cursor.sync(None)
        if self.mode.is_user_question:
            self.mode.exit_user_question_mode()

    def _select_current_agent(self) -> list[Command]:
        """Display the agent under the list cursor, fetching its history."""
        agent = self.roster.selected_agent
        if agent is None or agent.id == self.chat_agent_id:
            return []
        self._show_agent(agent)
        return [cmd.fetch_chat_history(self.client, agent.id, agent.project)]

    def _remove_agent(self, agent_id: str) -> list[Command]:
        was_displayed = agent_id == self.chat_agent_id
        if self.roster.remove(agent_id) is None:
            return []
        self.pending.prune(self.roster.ids())
        self._pending_changed()
        if was_displayed:
            self._clear_chat()
            if self.roster:
                return self._select_current_agent()
        return []

    def _prune_stale_state(self) -> list[Command]:
        """Drop state for agents missing from a freshly fetched roster."""
        valid = self.roster.ids()
        dropped = self.pending.prune(valid)
        if dropped:
            log.debug(f"Pruned {dropped} pending items for departed agents")
        self._pending_changed()
        if self.chat_agent_id and self.chat_agent_id not in valid:
            self._clear_chat()
            if self.roster:
                return self._select_current_agent()
        return []

    def _pending_changed(self) -> None:
        self.pending.refresh_attention()
        question = self.active_question
        self.question_cursor.sync(question)
        if question is None:
            self.answering_other = False
            if self.mode.is_user_question:
                self.mode.exit_user_question_mode()

    def _append_entry(self, entry: ChatEntry | None, agent_id: str) -> None:
        if entry is None or agent_id != self.chat_agent_id:
            return
        self.chat_entries.append(entry)
        if self.chat_scroll:
            # Keep the viewport on the same lines while new entries arrive
            self.chat_scroll += 1

    def _scroll(self, delta: int) -> None:
        self.chat_scroll = max(0, min(self.chat_scroll + delta, self.chat_max_scroll))

    # Keyboard

    def _on_key_pressed(self, message: KeyPressed) -> list[Command]:
        if message.key == "ctrl+c":
            return self._quit()
        if self.mode.is_inputting:
            return self._input_key(message)
        if self.mode.is_plan_project_select:
            return self._plan_select_key(message)
        if self.mode.is_plan_prompt:
            return self._plan_prompt_key(message)
        if self.mode.is_user_question:
            return self._question_key(message.key)
        if self.mode.is_abort_confirming:
            return self._abort_confirm_key(message.key)
        return self._normal_key(message.key)

    def _quit(self) -> list[Command]:
        log.info("Quit requested")
        self.should_quit = True
        return []

    def _edit_input(self, message: KeyPressed) -> None:
        key = message.key
        if key in keys.BACKSPACE:
            self.input.backspace()
        elif key in keys.DELETE:
            self.input.delete()
        elif key in keys.LEFT:
            self.input.move_left()
        elif key in keys.RIGHT:
            self.input.move_right()
        elif key in keys.HOME:
            self.input.move_home()
        elif key in keys.END:
            self.input.move_end()
        elif char := _printable(message):
            self.input.insert(char)

    def _input_key(self, message: KeyPressed) -> list[Command]:
        key = message.key
        if keys.CANCEL.matches(key):
            self.input.clear()
            self.input.placeholder = DEFAULT_PLACEHOLDER
            self.answering_other = False
            self.mode.exit_input_mode()
        elif keys.SUBMIT.matches(key):
            return self._submit_input()
        elif keys.TAB.matches(key):
            self.mode.exit_input_mode()
        elif keys.HISTORY_UP.matches(key):
            self.input.history_up()
        elif keys.HISTORY_DOWN.matches(key):
            self.input.history_down()
        else:
            self._edit_input(message)
        return []

    def _submit_input(self) -> list[Command]:
        text = self.input.value
        if not text.strip():
            return []
        question = self.active_question
        if self.answering_other and question is not None:
            header, _, _ = self.question_cursor.current(question)
            log.debug(f"Free-form answer for question {question.id} ({header})")
            self._finish_input(text)
            self.answering_other = False
            if self.question_cursor.record(question, header, text):
                return [self._send_answers(question)]
            self.mode.enter_user_question_mode()
            return []
        if not self.chat_agent_id:
            return []
        self.chat_entries.append(
            ChatEntry(role="user", content=text, timestamp=utcnow().isoformat())
        )
        self.chat_scroll = 0
        command = cmd.send_message(self.client, self.chat_agent_id, self.chat_project, text)
        self._finish_input(text)
        return [command]

    def _finish_input(self, text: str) -> None:
        self.input.add_to_history(text)
        self.input.clear()
        self.input.placeholder = DEFAULT_PLACEHOLDER
        self.mode.exit_input_mode()

    def _plan_select_key(self, message: KeyPressed) -> list[Command]:
        key = message.key
        if keys.CANCEL.matches(key):
            self.mode.cancel_plan_project_select()
        elif keys.SUBMIT.matches(key):
            try:
                project = self.mode.select_plan_project()
            except ModeError as e:
                return [self.set_error(e)]
            log.debug(f"Plan project selected: {project}")
            self.input.clear()
            self.input.placeholder = PLAN_PLACEHOLDER
        elif key == "up":
            self.mode.plan_select_up()
        elif key == "down":
            self.mode.plan_select_down()
        elif key in keys.BACKSPACE:
            self.mode.set_plan_filter(self.mode.plan_filter[:-1])
        elif char := _printable(message):
            self.mode.set_plan_filter(self.mode.plan_filter + char)
        return []

    def _plan_prompt_key(self, message: KeyPressed) -> list[Command]:
        key = message.key
        if keys.CANCEL.matches(key):
            self.mode.cancel_plan_prompt_mode()
            self.input.clear()
            self.input.placeholder = DEFAULT_PLACEHOLDER
        elif keys.SUBMIT.matches(key):
            prompt = self.input.value
            if not prompt.strip():
                return []
            project = self.mode.exit_plan_prompt_mode()
            self.input.clear()
            self.input.placeholder = DEFAULT_PLACEHOLDER
            return [cmd.start_planner(self.client, project, prompt)]
        else:
            self._edit_input(message)
        return []

    def _question_key(self, key: str) -> list[Command]:
        question = self.active_question
        if question is None:
            self.mode.exit_user_question_mode()
            return []
        if keys.CANCEL.matches(key):
            self.mode.exit_user_question_mode()
        elif keys.UP.matches(key):
            self.question_cursor.move_up(question)
        elif keys.DOWN.matches(key):
            self.question_cursor.move_down(question)
        elif keys.SUBMIT.matches(key) or keys.APPROVE.matches(key):
            return self._choose_answer(question)
        elif keys.QUIT.matches(key):
            return self._quit()
        return []

    def _choose_answer(self, question: UserQuestion) -> list[Command]:
        """Answer the highlighted option, or switch to free-form input for Other."""
        cursor = self.question_cursor
        if cursor.submitted:
            log.debug(f"Question {question.id} already answered, waiting for the daemon")
            return []
        if self.mode.is_user_question:
            self.mode.exit_user_question_mode()
        if cursor.finished(question):
            # Empty question set
            return [self._send_answers(question)]
        header, label, is_other = cursor.current(question)
        if is_other:
            log.debug(f"Question {question.id} ({header}): entering free-form answer")
            self.mode.enter_input_mode()
            self.input.clear()
            self.input.placeholder = OTHER_PLACEHOLDER
            self.answering_other = True
            return []
        log.info(f"Answering question {question.id}: {header} = {label}")
        if cursor.record(question, header, label):
            return [self._send_answers(question)]
        # More questions in this set
        self.mode.enter_user_question_mode()
        return []

    def _send_answers(self, question: UserQuestion) -> Command:
        return cmd.answer_question(self.client, question.id, self.question_cursor.submit())

    def _abort_confirm_key(self, key: str) -> list[Command]:
        if keys.APPROVE.matches(key):
            agent_id = self.mode.confirm_abort()
            agent = self.roster.get(agent_id)
            project = agent.project if agent else self.chat_project
            log.info(f"Aborting agent {agent_id}")
            return [cmd.abort_agent(self.client, agent_id, project, force=False)]
        if keys.REJECT.matches(key) or keys.CANCEL.matches(key):
            self.mode.cancel_abort()
        elif keys.QUIT.matches(key):
            return self._quit()
        return []

    def _normal_key(self, key: str) -> list[Command]:
        focus = self.mode.focus
        if keys.QUIT.matches(key):
            return self._quit()
        if keys.TAB.matches(key):
            self.mode.cycle_focus()
        elif keys.SUBMIT.matches(key) and focus == Focus.AGENT_LIST:
            commands = self._select_current_agent()
            if self.chat_agent_id:
                self.mode.set_focus(Focus.CHAT_VIEW)
            return commands
        elif keys.SUBMIT.matches(key) and self.active_question is not None:
            self.mode.enter_user_question_mode()
        elif keys.FOCUS_CHAT.matches(key) or keys.SUBMIT.matches(key):
            if self.chat_agent_id:
                self.mode.enter_input_mode()
        elif keys.APPROVE.matches(key):
            return self._approve()
        elif keys.REJECT.matches(key):
            return self._reject()
        elif keys.ABORT.matches(key):
            if self.chat_agent_id:
                self.mode.enter_abort_confirm(self.chat_agent_id)
        elif keys.RECONNECT.matches(key):
            if self.connection.request_manual_reconnect():
                log.info("Manual reconnect requested")
                return [cmd.attempt_reconnect(self.client, self.connection.delay, self.projects)]
        elif keys.PLAN.matches(key):
            return [cmd.fetch_projects(self.client)]
        elif focus == Focus.AGENT_LIST:
            return self._agent_list_key(key)
        elif focus == Focus.CHAT_VIEW:
            self._chat_view_key(key)
        return []

    def _agent_list_key(self, key: str) -> list[Command]:
        if keys.UP.matches(key):
            self.roster.move_up()
        elif keys.DOWN.matches(key):
            self.roster.move_down()
        elif keys.TOP.matches(key):
            self.roster.move_to_top()
        elif keys.BOTTOM.matches(key):
            self.roster.move_to_bottom()
        else:
            return []
        return self._select_current_agent()

    def _chat_view_key(self, key: str) -> None:
        question = self.active_question
        if keys.UP.matches(key):
            if question is not None:
                self.question_cursor.move_up(question)
            else:
                self._scroll(1)
        elif keys.DOWN.matches(key):
            if question is not None:
                self.question_cursor.move_down(question)
            else:
                self._scroll(-1)
        elif keys.TOP.matches(key):
            self.chat_scroll = self.chat_max_scroll
        elif keys.BOTTOM.matches(key):
            self.chat_scroll = 0
        elif keys.PAGE_UP.matches(key):
            self._scroll(self.page_size)
        elif keys.PAGE_DOWN.matches(key):
            self._scroll(-self.page_size)

    def _approve(self) -> list[Command]:
        """Resolve the active item: question, then permission, then action."""
        item = self.pending.active_for(self.chat_agent_id)
        if isinstance(item, UserQuestion):
            return self._choose_answer(item)
        if isinstance(item, PermissionRequest):
            log.info(f"Allowing {item.tool_name} for {item.agent_id} ({item.id})")
            return [cmd.respond_permission(self.client, item.id, allow=True)]
        if isinstance(item, StagedAction):
            log.info(f"Approving action {item.id} ({item.type}) for {item.agent_id}")
            return [cmd.resolve_action(self.client, item.id, approve=True)]
        return []

    def _reject(self) -> list[Command]:
        item = self.pending.rejectable_for(self.chat_agent_id)
        if isinstance(item, PermissionRequest):
            log.info(f"Denying {item.tool_name} for {item.agent_id} ({item.id})")
            return [cmd.respond_permission(self.client, item.id, allow=False)]
        if isinstance(item, StagedAction):
            log.info(f"Rejecting action {item.id} for {item.agent_id}")
            return [cmd.resolve_action(self.client, item.id, approve=False)]
        return []

    # Timers and view

    def _on_tick(self, message: Tick) -> list[Command]:
        self.spinner_frame += 1
        commands: list[Command] = []
        if (
            self.last_usage_fetch is None
            or message.now - self.last_usage_fetch >= USAGE_REFRESH_SECONDS
        ):
            self.last_usage_fetch = message.now
            commands.append(cmd.fetch_usage(self.usage_limit))
        self.stats_ticks += 1
        if self.stats_ticks >= STATS_REFRESH_TICKS and self.connection.is_connected:
            self.stats_ticks = 0
            commands.append(cmd.fetch_stats(self.client))
        return commands

    def _on_viewport_changed(self, message: ViewportChanged) -> list[Command]:
        self.chat_max_scroll = max(0, message.max_scroll)
        self.page_size = max(1, message.page_size)
        self._scroll(0)
        return []

    def _on_error_expired(self, message: ErrorExpired) -> list[Command]:
        if message.generation == self.error_generation:
            self.error = ""
        return []

    def _on_usage_updated(self, message: UsageUpdated) -> list[Command]:
        if message.error is not None:
            log.debug(f"Usage fetch failed: {message.error}")
        else:
            self.usage = message.usage
        return []

    # Daemon call results

    def _on_agent_list_loaded(self, message: AgentListLoaded) -> list[Command]:
        if message.error is not None:
            return [self.set_error(message.error)]
        self.roster.replace(message.agents)
        commands = self._prune_stale_state()

        if self.pending_planner_id:
            planner_id = to_display_id(self.pending_planner_id, AgentKind.PLANNER)
            if self.roster.select(planner_id):
                log.debug(f"Selecting newly started planner {planner_id}")
                commands.extend(self._select_current_agent())
            else:
                log.debug(f"Started planner {planner_id} not in roster, giving up on it")
            self.pending_planner_id = ""
        elif not self.chat_agent_id and self.roster:
            if self.initial_agent_id:
                if not self.roster.select(self.initial_agent_id):
                    log.warning(f"Agent {self.initial_agent_id} not found")
                self.initial_agent_id = ""
            commands.extend(self._select_current_agent())

        if not self.connection.attached and not self.attaching and self.connection.is_connected:
            log.debug("Attaching to event stream")
            self.attaching = True
            commands.append(cmd.attach_stream(self.client, self.projects))
        commands.append(cmd.fetch_staged_actions(self.client))
        commands.append(cmd.fetch_stats(self.client))
        return commands

    def _on_chat_history_loaded(self, message: ChatHistoryLoaded) -> list[Command]:
        if message.error is not None:
            return [self.set_error(message.error)]
        if message.agent_id == self.chat_agent_id:
            self.chat_entries = list(message.entries)
            self.chat_scroll = 0
        return []

    def _on_message_sent(self, message: MessageSent) -> list[Command]:
        if message.error is not None:
            return [self.set_error(message.error)]
        return []

    def _on_staged_actions_loaded(self, message: StagedActionsLoaded) -> list[Command]:
        if message.error is not None:
            return [self.set_error(message.error)]
        self.pending.actions.replace(message.actions)
        self._pending_changed()
        return []

    def _on_stats_loaded(self, message: StatsLoaded) -> list[Command]:
        if message.stats is not None:
            self.commit_count = message.stats.commit_count
        elif message.error is not None:
            log.debug(f"Stats fetch failed: {message.error}")
        return []

    def _on_action_resolved(self, message: ActionResolved) -> list[Command]:
        if message.error is not None:
            return [self.set_error(message.error)]
        self.pending.actions.remove(message.action_id)
        self._pending_changed()
        return [cmd.fetch_staged_actions(self.client)]

    def _on_permission_responded(self, message: PermissionResponded) -> list[Command]:
        commands: list[Command] = []
        if message.error is not None:
            commands.append(self.set_error(message.error))
            if not self.client.is_connected() and self.connection.request_reconnect():
                log.debug("Connection lost while responding to permission, reconnecting")
                self.stream = None
                commands.append(
                    cmd.attempt_reconnect(self.client, self.connection.delay, self.projects)
                )
        else:
            self.pending.permissions.remove(message.request_id)
        self._pending_changed()
        return commands

    def _on_question_answered(self, message: QuestionAnswered) -> list[Command]:
        if message.error is not None:
            # Let the operator start over on the same question
            self.question_cursor.sync(None)
            self._pending_changed()
            return [self.set_error(message.error)]
        self.pending.questions.remove(message.question_id)
        self._pending_changed()
        return []

    def _on_abort_completed(self, message: AbortCompleted) -> list[Command]:
        if message.error is not None:
            return [self.set_error(message.error)]
        return []

    def _on_projects_loaded(self, message: ProjectsLoaded) -> list[Command]:
        if message.error is not None:
            return [self.set_error(message.error)]
        if not message.projects:
            return [self.set_error("no projects configured")]
        try:
            self.mode.enter_plan_project_select(message.projects)
        except ModeError as e:
            return [self.set_error(e)]
        return []

    def _on_planner_started(self, message: PlannerStarted) -> list[Command]:
        if message.error is not None:
            return [self.set_error(message.error)]
        log.info(f"Planner {message.planner_id} started for {message.project}")
        self.pending_planner_id = message.planner_id
        return [cmd.fetch_agent_list(self.client, self.projects)]

    # Stream and connection

    def _on_stream_started(self, message: StreamStarted) -> list[Command]:
        self.stream = message.stream
        self.attaching = False
        self.connection.connected()
        return [cmd.wait_for_event(message.stream)]

    def _on_stream_event_received(self, message: StreamEventReceived) -> list[Command]:
        if message.stream is not self.stream:
            log.debug("Ignoring result from a replaced event stream")
            return []
        if message.error is not None or message.event is None:
            self.attaching = False
            self.stream = None
            log.info(f"Event stream lost: {message.error}")
            if self.connection.stream_failed():
                return [cmd.attempt_reconnect(self.client, self.connection.delay, self.projects)]
            return [self.set_error("connection lost (press 'r' to reconnect)")]
        commands = self._handle_stream_event(message.event)
        commands.append(cmd.wait_for_event(self.stream))
        return commands

    def _on_reconnect_result(self, message: ReconnectResult) -> list[Command]:
        if message.error is None and message.stream is not None:
            log.info("Reconnected to daemon")
            self.stream = message.stream
            self.connection.connected()
            return [
                cmd.fetch_agent_list(self.client, self.projects),
                cmd.wait_for_event(message.stream),
            ]
        log.debug(f"Reconnect attempt {self.connection.attempts + 1} failed: {message.error}")
        if self.connection.reconnect_failed():
            return [cmd.attempt_reconnect(self.client, self.connection.delay, self.projects)]
        return [
            self.set_error(
                f"connection lost after {self.connection.attempts} attempts "
                "(press 'r' to reconnect)"
            )
        ]

    # Stream events

    def _handle_stream_event(self, event: StreamEvent) -> list[Command]:
        log.debug(f"Stream event {event.type} agent={event.agent_id}")
        handler = self._event_handlers.get(event.type)
        if handler is None:
            log.debug(f"Unknown stream event type {event.type!r}")
            return []
        return handler(event)

    def _event_ignored(self, event: StreamEvent) -> list[Command]:
        return []

    def _event_chat_entry(self, event: StreamEvent) -> list[Command]:
        self._append_entry(event.chat_entry, event.agent_id)
        return []

    def _event_state(self, event: StreamEvent) -> list[Command]:
        self.roster.update_state(event.agent_id, event.state)
        return []

    def _event_info(self, event: StreamEvent) -> list[Command]:
        self.roster.update_info(event.agent_id, event.task, event.description)
        return []

    def _event_created(self, event: StreamEvent) -> list[Command]:
        self.roster.add(
            AgentStatus(
                id=event.agent_id,
                project=event.project,
                state=AgentState.STARTING,
                started_at=parse_started_at(event.started_at),
            )
        )
        if not self.chat_agent_id:
            return self._select_current_agent()
        return []

    def _event_deleted(self, event: StreamEvent) -> list[Command]:
        return self._remove_agent(event.agent_id)

    def _event_permission_request(self, event: StreamEvent) -> list[Command]:
        if event.permission_request is not None:
            self.pending.permissions.add(event.permission_request)
            self._pending_changed()
        return []

    def _event_user_question(self, event: StreamEvent) -> list[Command]:
        if event.user_question is not None:
            self.pending.questions.add(event.user_question)
            self._pending_changed()
        return []

    def _event_action_queued(self, event: StreamEvent) -> list[Command]:
        if event.staged_action is not None:
            self.pending.actions.add(event.staged_action)
            self._pending_changed()
        return []

    def _event_manager_chat_entry(self, event: StreamEvent) -> list[Command]:
        self._append_entry(event.chat_entry, MANAGER_ID)
        return []

    def _event_manager_state(self, event: StreamEvent) -> list[Command]:
        state = event.manager_state or event.state
        if state == AgentState.STOPPED:
            return self._remove_agent(MANAGER_ID)
        if MANAGER_ID not in self.roster and state in (AgentState.STARTING, AgentState.RUNNING):
            self.roster.add(manager_agent(state, event.started_at))
        else:
            self.roster.update_state(MANAGER_ID, state)
        return []

    def _event_planner_created(self, event: StreamEvent) -> list[Command]:
        planner = planner_agent(
            PlannerStatus(id=event.agent_id, project=event.project, started_at=event.started_at)
        )
        self.roster.add(planner)
        if self.pending_planner_id and self.pending_planner_id == event.agent_id:
            self.pending_planner_id = ""
            self.roster.select(planner.id)
            return self._select_current_agent()
        if not self.chat_agent_id:
            return self._select_current_agent()
        return []

    def _event_planner_state(self, event: StreamEvent) -> list[Command]:
        self.roster.update_state(to_display_id(event.agent_id, AgentKind.PLANNER), event.state)
        return []

    def _event_planner_info(self, event: StreamEvent) -> list[Command]:
        self.roster.update_info(
            to_display_id(event.agent_id, AgentKind.PLANNER), event.task, event.description
        )
        return []

    def _event_planner_deleted(self, event: StreamEvent) -> list[Command]:
        return self._remove_agent(to_display_id(event.agent_id, AgentKind.PLANNER))

    def _event_planner_chat_entry(self, event: StreamEvent) -> list[Command]:
        self._append_entry(event.chat_entry, to_display_id(event.agent_id, AgentKind.PLANNER))
        return []

    def _event_plan_complete(self, event: StreamEvent) -> list[Command]:
        log.info(f"Plan complete for {event.project} by planner {event.agent_id}: {event.data}")
        return []
