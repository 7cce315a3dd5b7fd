"""Asynchronous tasks issued by the dispatch loop.

Each factory returns a zero-argument coroutine function. Running it performs
one piece of slow work (usually a daemon call) and returns the message to feed
back into the loop. Daemon and socket failures come back inside the message;
they are never raised to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from fabtui.daemon.errors import DaemonError, StreamClosedError
from fabtui.daemon.models import utcnow
from fabtui.enums import AgentKind, PermissionBehavior
from fabtui.messages import (
    AbortCompleted,
    ActionResolved,
    AgentListLoaded,
    ChatHistoryLoaded,
    ErrorExpired,
    Message,
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
    UsageUpdated,
)
from fabtui.protocols import Daemon, EventSource
from fabtui.roster import MANAGER_ID, planner_agent, to_backend_id
from fabtui.usage import fetch_usage as compute_usage

log = logging.getLogger(__name__)

Command = Callable[[], Awaitable["Message | None"]]

# Failures a command reports back instead of raising
FAILURES = (DaemonError, OSError)

DENY_MESSAGE = "denied by user"
REJECT_REASON = "rejected by user"


def fetch_agent_list(client: Daemon, projects: list[str] | None = None) -> Command:
    """Fetch agents and planners, merged into one roster."""

    async def fetch_agent_list() -> AgentListLoaded:
        try:
            if not client.is_connected():
                await client.connect()
            agents = await client.agent_list("")
        except FAILURES as e:
            log.error(f"Agent list failed: {e}")
            return AgentListLoaded(error=e)
        try:
            planners = await client.plan_list("")
        except FAILURES as e:
            log.info(f"Planner list failed, showing agents only: {e}")
            planners = []
        now = utcnow()
        agents.extend(planner_agent(p, now) for p in planners)
        if projects:
            agents = [a for a in agents if a.project in projects or a.id == MANAGER_ID]
        log.debug(f"Fetched {len(agents)} agents ({len(planners)} planners)")
        return AgentListLoaded(agents=agents)

    return fetch_agent_list


def fetch_chat_history(client: Daemon, agent_id: str, project: str) -> Command:
    async def fetch_chat_history() -> ChatHistoryLoaded:
        kind, backend_id = to_backend_id(agent_id)
        try:
            if kind == AgentKind.MANAGER:
                entries = await client.manager_chat_history(project, 0)
            elif kind == AgentKind.PLANNER:
                entries = await client.plan_chat_history(backend_id, 0)
            else:
                entries = await client.agent_chat_history(backend_id, 0)
        except FAILURES as e:
            return ChatHistoryLoaded(agent_id=agent_id, error=e)
        return ChatHistoryLoaded(agent_id=agent_id, entries=entries)

    return fetch_chat_history


def send_message(client: Daemon, agent_id: str, project: str, content: str) -> Command:
    async def send_message() -> MessageSent:
        kind, backend_id = to_backend_id(agent_id)
        try:
            if kind == AgentKind.MANAGER:
                await client.manager_send_message(project, content)
            elif kind == AgentKind.PLANNER:
                await client.plan_send_message(backend_id, content)
            else:
                await client.agent_send_message(backend_id, content)
        except FAILURES as e:
            return MessageSent(agent_id=agent_id, error=e)
        return MessageSent(agent_id=agent_id)

    return send_message


def respond_permission(client: Daemon, request_id: str, allow: bool) -> Command:
    async def respond_permission() -> PermissionResponded:
        try:
            if allow:
                await client.respond_permission(request_id, PermissionBehavior.ALLOW, "", False)
            else:
                await client.respond_permission(
                    request_id, PermissionBehavior.DENY, DENY_MESSAGE, False
                )
        except FAILURES as e:
            return PermissionResponded(request_id=request_id, error=e)
        return PermissionResponded(request_id=request_id)

    return respond_permission


def answer_question(client: Daemon, question_id: str, answers: dict[str, str]) -> Command:
    async def answer_question() -> QuestionAnswered:
        try:
            await client.respond_user_question(question_id, dict(answers))
        except FAILURES as e:
            return QuestionAnswered(question_id=question_id, error=e)
        return QuestionAnswered(question_id=question_id)

    return answer_question


def resolve_action(client: Daemon, action_id: str, approve: bool) -> Command:
    async def resolve_action() -> ActionResolved:
        try:
            if approve:
                await client.approve_action(action_id)
            else:
                await client.reject_action(action_id, REJECT_REASON)
        except FAILURES as e:
            return ActionResolved(action_id=action_id, approved=approve, error=e)
        return ActionResolved(action_id=action_id, approved=approve)

    return resolve_action


def abort_agent(client: Daemon, agent_id: str, project: str, force: bool = False) -> Command:
    """Stop an agent. Manager and planner stops are always graceful."""

    async def abort_agent() -> AbortCompleted:
        kind, backend_id = to_backend_id(agent_id)
        try:
            if kind == AgentKind.MANAGER:
                await client.manager_stop(project)
            elif kind == AgentKind.PLANNER:
                await client.plan_stop(backend_id)
            else:
                await client.agent_abort(backend_id, force)
        except FAILURES as e:
            return AbortCompleted(agent_id=agent_id, error=e)
        return AbortCompleted(agent_id=agent_id)

    return abort_agent


def fetch_projects(client: Daemon) -> Command:
    async def fetch_projects() -> ProjectsLoaded:
        try:
            projects = await client.project_list()
        except FAILURES as e:
            return ProjectsLoaded(error=e)
        return ProjectsLoaded(projects=sorted(projects, key=str.lower))

    return fetch_projects


def start_planner(client: Daemon, project: str, prompt: str) -> Command:
    async def start_planner() -> PlannerStarted:
        try:
            planner_id = await client.plan_start(project, prompt)
        except FAILURES as e:
            return PlannerStarted(project=project, error=e)
        return PlannerStarted(planner_id=planner_id, project=project)

    return start_planner


def fetch_staged_actions(client: Daemon) -> Command:
    async def fetch_staged_actions() -> StagedActionsLoaded:
        try:
            actions = await client.list_staged_actions("")
        except FAILURES as e:
            return StagedActionsLoaded(error=e)
        return StagedActionsLoaded(actions=actions)

    return fetch_staged_actions


def fetch_stats(client: Daemon) -> Command:
    async def fetch_stats() -> StatsLoaded:
        try:
            stats = await client.stats("")
        except FAILURES as e:
            return StatsLoaded(error=e)
        return StatsLoaded(stats=stats)

    return fetch_stats


def attach_stream(client: Daemon, projects: list[str] | None = None) -> Command:
    async def attach_stream() -> StreamStarted | StreamEventReceived:
        try:
            stream = await client.stream_events(projects)
        except FAILURES as e:
            return StreamEventReceived(error=e)
        return StreamStarted(stream=stream)

    return attach_stream


def wait_for_event(stream: EventSource) -> Command:
    """Receive one event. Must not be issued again until it has resolved."""

    async def wait_for_event() -> StreamEventReceived:
        try:
            event = await stream.recv()
        except FAILURES as e:
            return StreamEventReceived(error=e, stream=stream)
        if event is None:
            return StreamEventReceived(error=StreamClosedError(), stream=stream)
        return StreamEventReceived(event=event, stream=stream)

    return wait_for_event


def attempt_reconnect(client: Daemon, delay: float, projects: list[str] | None = None) -> Command:
    async def attempt_reconnect() -> ReconnectResult:
        await asyncio.sleep(delay)
        try:
            if not client.is_connected():
                await client.connect()
            stream = await client.stream_events(projects)
        except FAILURES as e:
            return ReconnectResult(error=e)
        return ReconnectResult(stream=stream)

    return attempt_reconnect


def fetch_usage(limit: int | None = None) -> Command:
    async def fetch_usage() -> UsageUpdated:
        try:
            usage = await asyncio.to_thread(compute_usage, limit)
        except (OSError, ValueError) as e:
            return UsageUpdated(error=e)
        return UsageUpdated(usage=usage)

    return fetch_usage


def expire_error(generation: int, timeout: float) -> Command:
    async def expire_error() -> ErrorExpired:
        await asyncio.sleep(timeout)
        return ErrorExpired(generation=generation)

    return expire_error
