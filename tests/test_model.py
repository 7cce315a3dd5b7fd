"""Tests for the dispatch loop: keys, command results and stream events."""

from __future__ import annotations

from datetime import timedelta

import pytest

from fabtui.commands import attempt_reconnect
from fabtui.daemon import ConnectionFailedError, ServerError, StreamClosedError
from fabtui.daemon.models import Stats
from fabtui.enums import ConnectionState, Focus, Mode
from fabtui.input_line import DEFAULT_PLACEHOLDER, OTHER_PLACEHOLDER, PLAN_PLACEHOLDER
from fabtui.messages import (
    AgentListLoaded,
    ChatHistoryLoaded,
    ErrorExpired,
    KeyPressed,
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
from fabtui.model import STATS_REFRESH_TICKS, USAGE_REFRESH_SECONDS, Model
from fabtui.roster import MANAGER_ID
from fabtui.usage import UsageSnapshot
from tests.conftest import FakeStream, names


@pytest.fixture
def model(daemon):
    return Model(daemon, error_timeout=0.01, usage_limit=1000)


def press(model: Model, *keys: str) -> list:
    commands = []
    for key in keys:
        character = key if len(key) == 1 else None
        commands.extend(model.update(KeyPressed(key=key, character=character)))
    return commands


def type_text(model: Model, text: str) -> None:
    for char in text:
        key = "space" if char == " " else char
        model.update(KeyPressed(key=key, character=char))


def deliver(model: Model, event) -> list:
    if model.stream is None:
        model.update(StreamStarted(stream=FakeStream()))
    return model.update(StreamEventReceived(event=event, stream=model.stream))


@pytest.fixture
def loaded(model, agent_factory):
    """Model with agents a1 and a2 on the roster and a1 displayed."""
    model.update(AgentListLoaded(agents=[agent_factory("a1"), agent_factory("a2")]))
    return model


# Startup and roster fetches


def test_init_fetches_agents_and_usage(model):
    assert names(model.init(0.0)) == ["fetch_agent_list", "fetch_usage"]


def test_first_agent_list_selects_and_attaches(model, agent_factory):
    commands = model.update(AgentListLoaded(agents=[agent_factory("a1"), agent_factory("a2")]))
    assert names(commands) == [
        "fetch_chat_history",
        "attach_stream",
        "fetch_staged_actions",
        "fetch_stats",
    ]
    assert model.chat_agent_id == "a1"
    assert model.attaching


def test_agent_list_does_not_attach_twice(loaded, agent_factory):
    commands = loaded.update(AgentListLoaded(agents=[agent_factory("a1")]))
    assert "attach_stream" not in names(commands)


def test_initial_agent_is_selected(daemon, agent_factory):
    model = Model(daemon, initial_agent_id="a2")
    model.update(AgentListLoaded(agents=[agent_factory("a1"), agent_factory("a2")]))
    assert model.chat_agent_id == "a2"
    assert model.roster.selected_agent.id == "a2"


def test_agent_list_error_sets_error(model):
    commands = model.update(AgentListLoaded(error=ConnectionFailedError("dial daemon: refused")))
    assert names(commands) == ["expire_error"]
    assert "refused" in model.error


def test_reload_prunes_departed_agent_state(loaded, agent_factory, event_factory, permission_factory):
    deliver(loaded, event_factory("permission_request", permission_request=permission_factory()))
    assert loaded.pending.attention == {"a1"}

    commands = loaded.update(AgentListLoaded(agents=[agent_factory("a2")]))

    assert len(loaded.pending.permissions) == 0
    assert loaded.pending.attention == set()
    assert loaded.chat_agent_id == "a2"
    assert names(commands) == ["fetch_chat_history", "fetch_staged_actions", "fetch_stats"]


def test_chat_history_only_applies_to_displayed_agent(loaded, entry_factory):
    loaded.update(ChatHistoryLoaded(agent_id="a2", entries=[entry_factory("other")]))
    assert loaded.chat_entries == []
    loaded.update(ChatHistoryLoaded(agent_id="a1", entries=[entry_factory("mine")]))
    assert [e.content for e in loaded.chat_entries] == ["mine"]


# Navigation


def test_moving_cursor_switches_displayed_agent(loaded):
    commands = press(loaded, "j")
    assert names(commands) == ["fetch_chat_history"]
    assert loaded.chat_agent_id == "a2"
    assert press(loaded, "j") == []


def test_tab_and_enter_change_focus(loaded):
    press(loaded, "tab")
    assert loaded.mode.focus == Focus.CHAT_VIEW
    press(loaded, "tab")
    assert loaded.mode.focus == Focus.AGENT_LIST
    press(loaded, "enter")
    assert loaded.mode.focus == Focus.CHAT_VIEW


def test_chat_scrolling_is_clamped(loaded):
    press(loaded, "tab")
    loaded.update(ViewportChanged(max_scroll=50, page_size=10))
    press(loaded, "k")
    assert loaded.chat_scroll == 1
    press(loaded, "ctrl+u")
    assert loaded.chat_scroll == 11
    press(loaded, "g", "ctrl+u")
    assert loaded.chat_scroll == 50
    press(loaded, "G", "j")
    assert loaded.chat_scroll == 0


# Input


def test_send_message_from_input_mode(loaded):
    press(loaded, "i")
    assert loaded.mode.is_inputting
    type_text(loaded, "run tests")
    commands = press(loaded, "enter")

    assert names(commands) == ["send_message"]
    assert loaded.mode.is_normal
    assert loaded.input.value == ""
    assert loaded.input.history == ["run tests"]
    assert loaded.chat_entries[-1].role == "user"
    assert loaded.chat_entries[-1].content == "run tests"


@pytest.mark.asyncio
async def test_send_message_routes_to_agent(loaded, daemon):
    press(loaded, "i")
    type_text(loaded, "hi")
    (command,) = press(loaded, "enter")
    result = await command()
    assert result.error is None
    daemon.agent_send_message.assert_awaited_once_with("a1", "hi")


def test_blank_input_is_not_sent(loaded):
    press(loaded, "i")
    type_text(loaded, "   ")
    assert press(loaded, "enter") == []
    assert loaded.mode.is_inputting


def test_escape_discards_and_tab_keeps_text(loaded):
    press(loaded, "i")
    type_text(loaded, "draft")
    press(loaded, "tab")
    assert loaded.mode.is_normal
    assert loaded.input.value == "draft"

    press(loaded, "i", "escape")
    assert loaded.mode.is_normal
    assert loaded.input.value == ""


def test_input_keys_are_text_not_commands(loaded):
    press(loaded, "i")
    type_text(loaded, "qjx")
    assert loaded.input.value == "qjx"
    assert not loaded.should_quit


def test_ctrl_c_quits_from_any_mode(loaded):
    press(loaded, "i")
    press(loaded, "ctrl+c")
    assert loaded.should_quit


def test_q_quits_in_normal_mode(loaded):
    press(loaded, "q")
    assert loaded.should_quit


# Approve / reject


@pytest.mark.asyncio
async def test_approve_permission(loaded, daemon, event_factory, permission_factory):
    deliver(loaded, event_factory("permission_request", permission_request=permission_factory()))
    (command,) = press(loaded, "y")
    assert command.__name__ == "respond_permission"
    result = await command()
    daemon.respond_permission.assert_awaited_once_with("perm-1", "allow", "", False)

    loaded.update(result)
    assert len(loaded.pending.permissions) == 0
    assert loaded.pending.attention == set()


@pytest.mark.asyncio
async def test_deny_permission_over_action(
    loaded, daemon, event_factory, permission_factory, action_factory
):
    deliver(loaded, event_factory("action_queued", staged_action=action_factory()))
    deliver(loaded, event_factory("permission_request", permission_request=permission_factory()))
    (command,) = press(loaded, "n")
    await command()
    daemon.respond_permission.assert_awaited_once_with("perm-1", "deny", "denied by user", False)
    daemon.reject_action.assert_not_awaited()


@pytest.mark.asyncio
async def test_approve_and_reject_action(loaded, daemon, event_factory, action_factory):
    deliver(loaded, event_factory("action_queued", staged_action=action_factory()))
    (command,) = press(loaded, "y")
    result = await command()
    daemon.approve_action.assert_awaited_once_with("act-1")
    assert names(loaded.update(result)) == ["fetch_staged_actions"]
    assert len(loaded.pending.actions) == 0

    deliver(loaded, event_factory("action_queued", staged_action=action_factory("act-2")))
    (command,) = press(loaded, "n")
    await command()
    daemon.reject_action.assert_awaited_once_with("act-2", "rejected by user")


def test_question_wins_approve_and_cannot_be_rejected(
    loaded, event_factory, permission_factory, question_factory
):
    deliver(loaded, event_factory("permission_request", permission_request=permission_factory()))
    deliver(loaded, event_factory("user_question", user_question=question_factory()))
    assert names(press(loaded, "y")) == ["answer_question"]

    loaded.update(QuestionAnswered(question_id="q-1"))
    deliver(loaded, event_factory("user_question", user_question=question_factory("q-2")))
    # n skips the question and acts on the permission
    assert names(press(loaded, "n")) == ["respond_permission"]


def test_keys_do_nothing_without_pending_items(loaded):
    assert press(loaded, "y") == []
    assert press(loaded, "n") == []


def test_permission_error_while_disconnected_reconnects(
    loaded, daemon, event_factory, permission_factory
):
    deliver(loaded, event_factory("permission_request", permission_request=permission_factory()))
    daemon.is_connected.return_value = False
    commands = loaded.update(
        PermissionResponded(request_id="perm-1", error=ConnectionFailedError("broken pipe"))
    )
    assert names(commands) == ["expire_error", "attempt_reconnect"]
    assert loaded.connection.state == ConnectionState.RECONNECTING
    assert len(loaded.pending.permissions) == 1


# User questions


@pytest.mark.asyncio
async def test_question_mode_answers_selected_option(loaded, daemon, event_factory, question_factory):
    deliver(loaded, event_factory("user_question", user_question=question_factory()))
    press(loaded, "tab", "enter")
    assert loaded.mode.is_user_question

    press(loaded, "j")
    (command,) = press(loaded, "enter")
    assert loaded.mode.is_normal
    await command()
    daemon.respond_user_question.assert_awaited_once_with("q-1", {"Approach": "Safe"})


def test_multi_question_set_collects_answers(loaded, event_factory, question_factory):
    deliver(
        loaded,
        event_factory("user_question", user_question=question_factory(headers=("Approach", "Scope"))),
    )
    assert press(loaded, "y") == []
    assert loaded.mode.is_user_question
    assert loaded.question_cursor.answers == {"Approach": "Fast"}

    press(loaded, "j")
    assert names(press(loaded, "enter")) == ["answer_question"]
    assert loaded.question_cursor.answers == {"Approach": "Fast", "Scope": "Safe"}


@pytest.mark.asyncio
async def test_other_option_takes_free_form_answer(loaded, daemon, event_factory, question_factory):
    deliver(loaded, event_factory("user_question", user_question=question_factory()))
    press(loaded, "tab", "enter", "k")
    assert press(loaded, "enter") == []
    assert loaded.mode.is_inputting
    assert loaded.input.placeholder == OTHER_PLACEHOLDER
    assert loaded.answering_other

    type_text(loaded, "both")
    (command,) = press(loaded, "enter")
    await command()
    daemon.respond_user_question.assert_awaited_once_with("q-1", {"Approach": "both"})
    assert loaded.input.placeholder == DEFAULT_PLACEHOLDER
    assert not loaded.answering_other


def test_answered_question_leaves_pending(loaded, event_factory, question_factory):
    deliver(loaded, event_factory("user_question", user_question=question_factory()))
    press(loaded, "y")
    loaded.update(QuestionAnswered(question_id="q-1"))
    assert loaded.active_question is None
    assert loaded.pending.attention == set()


def test_failed_answer_restarts_question(loaded, event_factory, question_factory):
    deliver(
        loaded,
        event_factory("user_question", user_question=question_factory(headers=("A", "B"))),
    )
    press(loaded, "y", "y")
    commands = loaded.update(QuestionAnswered(question_id="q-1", error=ServerError("respond", "gone")))
    assert names(commands) == ["expire_error"]
    assert loaded.question_cursor.index == 0
    assert loaded.question_cursor.answers == {}


@pytest.mark.asyncio
async def test_repeated_approve_sends_answers_once(loaded, daemon, event_factory, question_factory):
    deliver(loaded, event_factory("user_question", user_question=question_factory()))
    (command,) = press(loaded, "y")
    # Still pending until the daemon confirms
    assert press(loaded, "y") == []
    assert press(loaded, "tab", "enter", "enter") == []
    assert loaded.mode.is_user_question
    await command()
    daemon.respond_user_question.assert_awaited_once_with("q-1", {"Approach": "Fast"})
    assert loaded.question_cursor.answers == {"Approach": "Fast"}


def test_approve_after_failed_answer_resends(loaded, event_factory, question_factory):
    deliver(loaded, event_factory("user_question", user_question=question_factory()))
    press(loaded, "y")
    loaded.update(QuestionAnswered(question_id="q-1", error=ServerError("respond", "gone")))
    assert names(press(loaded, "y")) == ["answer_question"]


@pytest.mark.asyncio
async def test_empty_question_set_is_answered_with_nothing(
    loaded, daemon, event_factory, question_factory
):
    deliver(loaded, event_factory("user_question", user_question=question_factory(headers=())))
    (command,) = press(loaded, "y")
    assert press(loaded, "y") == []
    await command()
    daemon.respond_user_question.assert_awaited_once_with("q-1", {})


# Abort


@pytest.mark.asyncio
async def test_abort_confirmed(loaded, daemon):
    press(loaded, "x")
    assert loaded.mode.is_abort_confirming
    assert loaded.mode.abort_agent_id == "a1"
    (command,) = press(loaded, "y")
    assert loaded.mode.is_normal
    await command()
    daemon.agent_abort.assert_awaited_once_with("a1", False)


def test_abort_cancelled(loaded):
    press(loaded, "x", "n")
    assert loaded.mode.is_normal
    press(loaded, "x", "escape")
    assert loaded.mode.is_normal
    assert loaded.mode.abort_agent_id == ""


def test_abort_needs_displayed_agent(model):
    assert press(model, "x") == []
    assert model.mode.is_normal


# Planner flow


@pytest.mark.asyncio
async def test_plan_flow_starts_and_selects_planner(loaded, daemon, agent_factory):
    assert names(press(loaded, "p")) == ["fetch_projects"]
    loaded.update(ProjectsLoaded(projects=["alpha", "beta"]))
    assert loaded.mode.is_plan_project_select

    type_text(loaded, "b")
    assert loaded.mode.plan_filtered == ["beta"]
    press(loaded, "enter")
    assert loaded.mode.is_plan_prompt
    assert loaded.input.placeholder == PLAN_PLACEHOLDER

    type_text(loaded, "add auth")
    (command,) = press(loaded, "enter")
    assert loaded.mode.is_normal
    result = await command()
    daemon.plan_start.assert_awaited_once_with("beta", "add auth")
    assert result.planner_id == "p1"

    assert names(loaded.update(result)) == ["fetch_agent_list"]
    loaded.update(
        AgentListLoaded(
            agents=[agent_factory("a1"), agent_factory("a2"), agent_factory("plan:p1", project="beta")]
        )
    )
    assert loaded.chat_agent_id == "plan:p1"
    assert loaded.pending_planner_id == ""


def test_plan_select_escape_and_backspace(loaded):
    press(loaded, "p")
    loaded.update(ProjectsLoaded(projects=["alpha", "beta"]))
    type_text(loaded, "z")
    assert loaded.mode.plan_filtered == []
    press(loaded, "backspace")
    assert loaded.mode.plan_filtered == ["alpha", "beta"]
    press(loaded, "escape")
    assert loaded.mode.is_normal
    assert loaded.mode.focus == Focus.AGENT_LIST


def test_plan_select_with_no_match_reports_error(loaded):
    press(loaded, "p")
    loaded.update(ProjectsLoaded(projects=["alpha"]))
    type_text(loaded, "z")
    assert names(press(loaded, "enter")) == ["expire_error"]
    assert loaded.mode.is_plan_project_select


def test_no_projects_is_an_error(loaded):
    loaded.update(ProjectsLoaded(projects=[]))
    assert loaded.mode.is_normal
    assert loaded.error == "no projects configured"


def test_planner_not_in_roster_is_abandoned(loaded, agent_factory):
    loaded.update(PlannerStarted(planner_id="p9", project="alpha"))
    loaded.update(AgentListLoaded(agents=[agent_factory("a1")]))
    assert loaded.pending_planner_id == ""
    assert loaded.chat_agent_id == "a1"


def test_mode_errors_become_status_errors(loaded):
    press(loaded, "i")
    commands = loaded.update(ProjectsLoaded(projects=["alpha"]))
    assert names(commands) == ["expire_error"]
    assert loaded.mode.is_inputting
    assert "cannot enter" in loaded.error


# Stream and reconnect


def test_stream_started_waits_for_events(model):
    stream = FakeStream()
    model.attaching = True
    assert names(model.update(StreamStarted(stream=stream))) == ["wait_for_event"]
    assert model.stream is stream
    assert not model.attaching
    assert model.connection.attached


def test_stream_event_rearms_receive(loaded, event_factory):
    commands = deliver(loaded, event_factory("state", state="idle"))
    assert names(commands) == ["wait_for_event"]
    assert loaded.roster.get("a1").state == "idle"


def test_result_from_replaced_stream_is_ignored(loaded):
    loaded.update(StreamStarted(stream=FakeStream()))
    old = FakeStream()
    assert loaded.update(StreamEventReceived(error=StreamClosedError(), stream=old)) == []
    assert loaded.connection.is_connected


def test_stream_failure_backs_off_then_gives_up(daemon, agent_factory):
    model = Model(daemon, max_reconnects=2, error_timeout=0.01)
    model.update(AgentListLoaded(agents=[agent_factory("a1")]))
    model.update(StreamStarted(stream=FakeStream()))

    commands = model.update(StreamEventReceived(error=StreamClosedError(), stream=model.stream))
    assert names(commands) == ["attempt_reconnect"]
    assert model.connection.state == ConnectionState.RECONNECTING
    assert model.stream is None

    assert names(model.update(ReconnectResult(error=ConnectionFailedError("refused")))) == [
        "attempt_reconnect"
    ]
    assert model.connection.delay == 1.0

    commands = model.update(ReconnectResult(error=ConnectionFailedError("refused")))
    assert names(commands) == ["expire_error"]
    assert model.connection.state == ConnectionState.DISCONNECTED
    assert model.error == "connection lost after 2 attempts (press 'r' to reconnect)"


def test_manual_reconnect_only_when_disconnected(daemon, agent_factory):
    model = Model(daemon, max_reconnects=0, error_timeout=0.01)
    model.update(AgentListLoaded(agents=[agent_factory("a1")]))
    assert press(model, "r") == []

    model.update(StreamStarted(stream=FakeStream()))
    commands = model.update(StreamEventReceived(error=StreamClosedError(), stream=model.stream))
    assert names(commands) == ["expire_error"]
    assert model.error == "connection lost (press 'r' to reconnect)"

    assert names(press(model, "r")) == ["attempt_reconnect"]
    assert model.connection.state == ConnectionState.RECONNECTING


def test_reconnect_success_refetches_roster(loaded):
    loaded.update(StreamStarted(stream=FakeStream()))
    loaded.update(StreamEventReceived(error=StreamClosedError(), stream=loaded.stream))
    fresh = FakeStream()
    commands = loaded.update(ReconnectResult(stream=fresh))
    assert names(commands) == ["fetch_agent_list", "wait_for_event"]
    assert loaded.stream is fresh
    assert loaded.connection.is_connected
    assert loaded.connection.attempts == 0


@pytest.mark.asyncio
async def test_attempt_reconnect_command(daemon):
    daemon.is_connected.return_value = False
    result = await attempt_reconnect(daemon, 0, ["alpha"])()
    daemon.connect.assert_awaited_once()
    daemon.stream_events.assert_awaited_once_with(["alpha"])
    assert result.stream is daemon.stream


# Stream events


def test_created_agent_is_appended_and_shown_when_idle(model, event_factory):
    commands = deliver(model, event_factory("created", agent_id="a3", project="beta"))
    assert names(commands) == ["fetch_chat_history", "wait_for_event"]
    assert model.chat_agent_id == "a3"
    assert model.roster.get("a3").state == "starting"


def test_deleted_displayed_agent_moves_on(loaded, event_factory, permission_factory):
    deliver(loaded, event_factory("permission_request", permission_request=permission_factory()))
    commands = deliver(loaded, event_factory("deleted"))
    assert "a1" not in loaded.roster
    assert len(loaded.pending.permissions) == 0
    assert loaded.chat_agent_id == "a2"
    assert names(commands) == ["fetch_chat_history", "wait_for_event"]


def test_chat_entries_only_for_displayed_agent(loaded, event_factory, entry_factory):
    deliver(loaded, event_factory("chat_entry", chat_entry=entry_factory("for a1")))
    deliver(loaded, event_factory("chat_entry", agent_id="a2", chat_entry=entry_factory("for a2")))
    assert [e.content for e in loaded.chat_entries] == ["for a1"]


def test_info_event_updates_task(loaded, event_factory):
    deliver(loaded, event_factory("info", task="FAB-12", description="fix login"))
    agent = loaded.roster.get("a1")
    assert (agent.task, agent.description) == ("FAB-12", "fix login")


def test_manager_lifecycle(loaded, event_factory):
    deliver(loaded, event_factory("manager_state", agent_id="", manager_state="running"))
    assert loaded.roster.agents[0].id == MANAGER_ID
    assert loaded.roster.selected_agent.id == "a1"

    deliver(loaded, event_factory("manager_state", agent_id="", manager_state="stopped"))
    assert MANAGER_ID not in loaded.roster


def test_planner_events_use_prefixed_ids(loaded, event_factory):
    deliver(loaded, event_factory("planner_created", agent_id="p9", project="beta"))
    assert "plan:p9" in loaded.roster

    deliver(loaded, event_factory("planner_state", agent_id="p9", state="idle"))
    assert loaded.roster.get("plan:p9").state == "idle"

    deliver(loaded, event_factory("planner_deleted", agent_id="p9"))
    assert "plan:p9" not in loaded.roster


def test_unknown_event_type_is_ignored(loaded, event_factory):
    assert names(deliver(loaded, event_factory("mystery"))) == ["wait_for_event"]


# Timers and results


def test_error_expiry_respects_generation(model):
    model.set_error("first")
    model.set_error("second")
    model.update(ErrorExpired(generation=1))
    assert model.error == "second"
    model.update(ErrorExpired(generation=2))
    assert model.error == ""


def test_tick_refreshes_usage_and_stats(model):
    model.init(100.0)
    assert model.update(Tick(now=101.0)) == []
    assert model.spinner_frame == 1
    assert names(model.update(Tick(now=100.0 + USAGE_REFRESH_SECONDS))) == ["fetch_usage"]

    model.stats_ticks = STATS_REFRESH_TICKS - 1
    assert names(model.update(Tick(now=131.0))) == ["fetch_stats"]
    assert model.stats_ticks == 0


def test_stats_not_polled_while_disconnected(model):
    model.init(0.0)
    model.connection.stream_failed()
    model.stats_ticks = STATS_REFRESH_TICKS - 1
    assert model.update(Tick(now=1.0)) == []


def test_stats_usage_and_actions_results(model, action_factory):
    model.update(StatsLoaded(stats=Stats(commit_count=7)))
    assert model.commit_count == 7

    snapshot = UsageSnapshot(percent=40, remaining=timedelta(hours=1))
    model.update(UsageUpdated(usage=snapshot))
    assert model.usage is snapshot

    model.update(StagedActionsLoaded(actions=[action_factory(agent_id="a5")]))
    assert model.pending.attention == {"a5"}


def test_unknown_message_is_ignored(model):
    assert model.update(object()) == []
    assert model.mode.mode == Mode.NORMAL
