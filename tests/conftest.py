"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from fabtui.daemon import DaemonClient, StreamClosedError
from fabtui.daemon.models import (
    AgentStatus,
    ChatEntry,
    PermissionRequest,
    Question,
    QuestionOption,
    StagedAction,
    Stats,
    StreamEvent,
    UserQuestion,
)
from fabtui.usage import UsageSnapshot

STARTED = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


class FakeStream:
    """Event source fed from a queue. Push an exception to make recv() raise it."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def recv(self) -> StreamEvent:
        item = await self.queue.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True

    def push(self, event: StreamEvent) -> None:
        self.queue.put_nowait(event)

    def fail(self, error: BaseException | None = None) -> None:
        self.queue.put_nowait(error or StreamClosedError())


def names(commands) -> list[str]:
    """Command names, for asserting what the dispatch loop scheduled."""
    return [c.__name__ for c in commands]


async def settle(pilot, rounds: int = 6) -> None:
    """Let workers finish and their results get dispatched."""
    for _ in range(rounds):
        await pilot.pause(0.01)


@pytest.fixture
def daemon():
    """A DaemonClient double with sensible empty responses.

    Every coroutine method is an AsyncMock (spec=DaemonClient); `daemon.stream` is
    the FakeStream returned by stream_events().
    """
    client = MagicMock(spec=DaemonClient)
    client.socket_path = "/tmp/fab-test.sock"
    client.is_connected.return_value = True
    client.agent_list.return_value = []
    client.plan_list.return_value = []
    client.project_list.return_value = ["alpha", "beta"]
    client.list_staged_actions.return_value = []
    client.stats.return_value = Stats(commit_count=3)
    client.agent_chat_history.return_value = []
    client.manager_chat_history.return_value = []
    client.plan_chat_history.return_value = []
    client.plan_start.return_value = "p1"
    client.stream = FakeStream()
    client.stream_events.return_value = client.stream
    return client


@pytest.fixture
def no_usage():
    """Skip reading real session logs for the usage meter."""
    snapshot = UsageSnapshot(percent=12, remaining=STARTED - STARTED)
    with patch("fabtui.commands.compute_usage", return_value=snapshot):
        yield snapshot


@pytest.fixture
def agent_factory():
    """Create AgentStatus instances with sensible defaults.

    Usage::

        def test_example(agent_factory):
            agent = agent_factory("a1", state="idle")
    """

    def _factory(agent_id: str = "a1", **overrides: Any) -> AgentStatus:
        defaults: dict[str, Any] = {
            "project": "alpha",
            "state": "running",
            "started_at": STARTED,
        }
        defaults.update(overrides)
        return AgentStatus(id=agent_id, **defaults)

    return _factory


@pytest.fixture
def permission_factory():
    def _factory(request_id: str = "perm-1", agent_id: str = "a1", **overrides: Any):
        defaults: dict[str, Any] = {
            "project": "alpha",
            "tool_name": "Bash",
            "tool_input": '{"command":"ls"}',
        }
        defaults.update(overrides)
        return PermissionRequest(id=request_id, agent_id=agent_id, **defaults)

    return _factory


@pytest.fixture
def action_factory():
    def _factory(action_id: str = "act-1", agent_id: str = "a1", **overrides: Any):
        defaults: dict[str, Any] = {
            "project": "alpha",
            "type": "send_message",
            "payload": "run the tests",
        }
        defaults.update(overrides)
        return StagedAction(id=action_id, agent_id=agent_id, **defaults)

    return _factory


@pytest.fixture
def question_factory():
    """UserQuestion with one question per header, each offering `options`."""

    def _factory(
        question_id: str = "q-1",
        agent_id: str = "a1",
        headers: tuple[str, ...] = ("Approach",),
        options: tuple[str, ...] = ("Fast", "Safe"),
    ) -> UserQuestion:
        return UserQuestion(
            id=question_id,
            agent_id=agent_id,
            project="alpha",
            questions=[
                Question(
                    question=f"Which {header.lower()}?",
                    header=header,
                    options=[QuestionOption(label=o) for o in options],
                )
                for header in headers
            ],
        )

    return _factory


@pytest.fixture
def event_factory():
    """Build StreamEvents; keyword arguments map onto StreamEvent fields."""

    def _factory(event_type: str, agent_id: str = "a1", **fields: Any) -> StreamEvent:
        return StreamEvent(type=event_type, agent_id=agent_id, **fields)

    return _factory


@pytest.fixture
def entry_factory():
    def _factory(content: str = "hello", role: str = "assistant", **fields: Any) -> ChatEntry:
        return ChatEntry(role=role, content=content, **fields)

    return _factory
