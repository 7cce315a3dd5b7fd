"""Protocols for the daemon collaborator the dispatch loop depends on.

DaemonClient in fabtui.daemon implements these; tests substitute fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from fabtui.daemon.models import (
        AgentStatus,
        ChatEntry,
        PlannerStatus,
        StagedAction,
        Stats,
        StreamEvent,
    )


class EventSource(Protocol):
    """An attached event stream."""

    async def recv(self) -> StreamEvent:
        """Wait for the next event. Raises a DaemonError when the stream ends."""
        ...

    async def close(self) -> None: ...


class Daemon(Protocol):
    """The daemon's request surface as used by commands."""

    def is_connected(self) -> bool: ...

    async def connect(self) -> None: ...

    async def close(self) -> None:
        """Close all connections, unblocking any pending recv()."""
        ...

    async def stream_events(self, projects: list[str] | None = None) -> EventSource: ...

    async def agent_list(self, project: str = "") -> list[AgentStatus]: ...

    async def plan_list(self, project: str = "") -> list[PlannerStatus]: ...

    async def project_list(self) -> list[str]: ...

    async def agent_send_message(self, agent_id: str, content: str) -> None: ...

    async def manager_send_message(self, project: str, content: str) -> None: ...

    async def plan_send_message(self, planner_id: str, content: str) -> None: ...

    async def agent_chat_history(self, agent_id: str, limit: int = 0) -> list[ChatEntry]: ...

    async def manager_chat_history(self, project: str, limit: int = 0) -> list[ChatEntry]: ...

    async def plan_chat_history(self, planner_id: str, limit: int = 0) -> list[ChatEntry]: ...

    async def agent_abort(self, agent_id: str, force: bool = False) -> None: ...

    async def manager_stop(self, project: str) -> None: ...

    async def plan_stop(self, planner_id: str) -> None: ...

    async def plan_start(self, project: str, prompt: str) -> str: ...

    async def respond_permission(
        self, request_id: str, behavior: str, message: str = "", interrupt: bool = False
    ) -> None: ...

    async def respond_user_question(self, question_id: str, answers: dict[str, str]) -> None: ...

    async def list_staged_actions(self, project: str = "") -> list[StagedAction]: ...

    async def approve_action(self, action_id: str) -> None: ...

    async def reject_action(self, action_id: str, reason: str = "") -> None: ...

    async def stats(self, project: str = "") -> Stats: ...
