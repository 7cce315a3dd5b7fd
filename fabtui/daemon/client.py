"""Asyncio client for the fab daemon's Unix socket.

The daemon speaks newline-delimited JSON. Each request is answered by exactly
one response on the same connection, so requests are serialized with a lock.
The event stream lives on a second, dedicated connection that is attached once
and then only read from.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from pathlib import Path
from typing import Any

from fabtui.daemon.errors import (
    ConnectionFailedError,
    NotConnectedError,
    RequestTimeoutError,
    ServerError,
    StreamClosedError,
)
from fabtui.daemon.models import (
    AgentStatus,
    ChatEntry,
    PlannerStatus,
    StagedAction,
    Stats,
    StreamEvent,
)

log = logging.getLogger(__name__)

CONNECT_TIMEOUT = 5.0
REQUEST_TIMEOUT = 30.0
# Chat histories can be large; asyncio's default line limit is 64 KiB.
LINE_LIMIT = 16 * 1024 * 1024

MSG_ATTACH = "attach"
MSG_AGENT_LIST = "agent.list"
MSG_AGENT_SEND_MESSAGE = "agent.send_message"
MSG_AGENT_CHAT_HISTORY = "agent.chat_history"
MSG_AGENT_ABORT = "agent.abort"
MSG_PROJECT_LIST = "project.list"
MSG_LIST_STAGED_ACTIONS = "orchestrator.actions"
MSG_APPROVE_ACTION = "orchestrator.approve"
MSG_REJECT_ACTION = "orchestrator.reject"
MSG_PERMISSION_RESPOND = "permission.respond"
MSG_USER_QUESTION_RESPOND = "question.respond"
MSG_STATS = "stats"
MSG_MANAGER_SEND_MESSAGE = "manager.send_message"
MSG_MANAGER_CHAT_HISTORY = "manager.chat_history"
MSG_MANAGER_STOP = "manager.stop"
MSG_PLAN_START = "plan.start"
MSG_PLAN_LIST = "plan.list"
MSG_PLAN_SEND_MESSAGE = "plan.send_message"
MSG_PLAN_CHAT_HISTORY = "plan.chat_history"
MSG_PLAN_STOP = "plan.stop"


def _encode(message: dict) -> bytes:
    return json.dumps(message, separators=(",", ":")).encode() + b"\n"


def _decode(line: bytes) -> dict:
    """Parse one line. Anything but a JSON object raises ValueError."""
    data = json.loads(line)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


async def _open(socket_path: Path) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    try:
        return await asyncio.wait_for(
            asyncio.open_unix_connection(str(socket_path), limit=LINE_LIMIT),
            CONNECT_TIMEOUT,
        )
    except asyncio.TimeoutError as e:
        raise ConnectionFailedError(f"dial daemon: timed out connecting to {socket_path}") from e
    except OSError as e:
        raise ConnectionFailedError(f"dial daemon: {e}") from e


async def _close_writer(writer: asyncio.StreamWriter) -> None:
    writer.close()
    try:
        await writer.wait_closed()
    except (OSError, ConnectionError):
        log.debug("Error while closing daemon connection", exc_info=True)


class EventStream:
    """A dedicated, attached connection yielding StreamEvents."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self._reader = reader
        self._writer = writer
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def recv(self) -> StreamEvent:
        """Wait for the next event. Raises StreamClosedError at end of stream."""
        if self._closed:
            raise StreamClosedError()
        try:
            line = await self._reader.readline()
        except (OSError, ValueError) as e:
            raise StreamClosedError(f"decode event: {e}") from e
        if not line:
            raise StreamClosedError()
        try:
            data = _decode(line)
        except ValueError as e:
            raise StreamClosedError(f"decode event: {e}") from e
        return StreamEvent.from_dict(data)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await _close_writer(self._writer)


class DaemonClient:
    """Request/response client plus event stream factory."""

    def __init__(self, socket_path: Path | str):
        self.socket_path = Path(socket_path)
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)
        self._stream: EventStream | None = None

    def is_connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    async def connect(self) -> None:
        if self.is_connected():
            return
        self._reader, self._writer = await _open(self.socket_path)
        log.debug(f"Connected to daemon at {self.socket_path}")

    async def close(self) -> None:
        """Close the event stream and the request connection."""
        await self.stop_event_stream()
        writer = self._writer
        self._reader = None
        self._writer = None
        if writer is not None:
            await _close_writer(writer)

    async def _drop(self) -> None:
        writer = self._writer
        self._reader = None
        self._writer = None
        if writer is not None:
            await _close_writer(writer)

    async def send(self, msg_type: str, payload: Any = None) -> dict:
        """Send one request and return the raw response envelope."""
        async with self._lock:
            if not self.is_connected():
                raise NotConnectedError()
            assert self._reader is not None and self._writer is not None
            request: dict[str, Any] = {"type": msg_type, "id": f"req-{next(self._ids)}"}
            if payload is not None:
                request["payload"] = payload
            try:
                self._writer.write(_encode(request))
                await self._writer.drain()
                line = await asyncio.wait_for(self._reader.readline(), REQUEST_TIMEOUT)
            except asyncio.TimeoutError as e:
                await self._drop()
                raise RequestTimeoutError(msg_type, REQUEST_TIMEOUT) from e
            except (OSError, ValueError) as e:
                await self._drop()
                raise ConnectionFailedError(f"{msg_type}: {e}") from e
            if not line:
                await self._drop()
                raise ConnectionFailedError(f"{msg_type}: daemon closed the connection")
            try:
                return _decode(line)
            except ValueError as e:
                raise ConnectionFailedError(f"decode response: {e}") from e

    async def call(self, msg_type: str, operation: str, payload: Any = None) -> dict:
        """Send a request, raise ServerError on failure, return the payload."""
        response = await self.send(msg_type, payload)
        if not response.get("success"):
            raise ServerError(operation, response.get("error") or "unknown error")
        result = response.get("payload")
        return result if isinstance(result, dict) else {}

    # Event stream

    async def stream_events(self, projects: list[str] | None = None) -> EventStream:
        """Open a dedicated attached connection, replacing any previous one."""
        await self.stop_event_stream()
        reader, writer = await _open(self.socket_path)
        request = {
            "type": MSG_ATTACH,
            "id": "event-stream",
            "payload": {"projects": list(projects or [])},
        }
        try:
            writer.write(_encode(request))
            await writer.drain()
            line = await asyncio.wait_for(reader.readline(), REQUEST_TIMEOUT)
            response = _decode(line) if line else {}
        except (OSError, ValueError, asyncio.TimeoutError) as e:
            await _close_writer(writer)
            raise ConnectionFailedError(f"attach: {e}") from e
        if not response.get("success"):
            await _close_writer(writer)
            raise ServerError("attach", response.get("error") or "no response")
        self._stream = EventStream(reader, writer)
        return self._stream

    async def stop_event_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            await stream.close()

    # Agents

    async def agent_list(self, project: str = "") -> list[AgentStatus]:
        result = await self.call(MSG_AGENT_LIST, "agent list", {"project": project})
        return [AgentStatus.from_dict(a) for a in result.get("agents") or []]

    async def agent_send_message(self, agent_id: str, content: str) -> None:
        await self.call(
            MSG_AGENT_SEND_MESSAGE, "send message", {"id": agent_id, "content": content}
        )

    async def agent_chat_history(self, agent_id: str, limit: int = 0) -> list[ChatEntry]:
        result = await self.call(
            MSG_AGENT_CHAT_HISTORY, "agent chat history", {"id": agent_id, "limit": limit}
        )
        return [ChatEntry.from_dict(e) for e in result.get("entries") or []]

    async def agent_abort(self, agent_id: str, force: bool = False) -> None:
        await self.call(MSG_AGENT_ABORT, "agent abort", {"id": agent_id, "force": force})

    # Projects and orchestration

    async def project_list(self) -> list[str]:
        result = await self.call(MSG_PROJECT_LIST, "project list")
        return [p.get("name", "") for p in result.get("projects") or []]

    async def list_staged_actions(self, project: str = "") -> list[StagedAction]:
        result = await self.call(MSG_LIST_STAGED_ACTIONS, "list actions", {"project": project})
        return [StagedAction.from_dict(a) for a in result.get("actions") or []]

    async def approve_action(self, action_id: str) -> None:
        await self.call(MSG_APPROVE_ACTION, "approve action", {"id": action_id})

    async def reject_action(self, action_id: str, reason: str = "") -> None:
        await self.call(
            MSG_REJECT_ACTION, "reject action", {"id": action_id, "reason": reason}
        )

    async def respond_permission(
        self, request_id: str, behavior: str, message: str = "", interrupt: bool = False
    ) -> None:
        await self.call(
            MSG_PERMISSION_RESPOND,
            "respond permission",
            {"id": request_id, "behavior": behavior, "message": message, "interrupt": interrupt},
        )

    async def respond_user_question(self, question_id: str, answers: dict[str, str]) -> None:
        await self.call(
            MSG_USER_QUESTION_RESPOND,
            "respond user question",
            {"id": question_id, "answers": answers},
        )

    async def stats(self, project: str = "") -> Stats:
        return Stats.from_dict(await self.call(MSG_STATS, "stats", {"project": project}))

    # Manager

    async def manager_send_message(self, project: str, content: str) -> None:
        await self.call(
            MSG_MANAGER_SEND_MESSAGE,
            "manager send message",
            {"project": project, "content": content},
        )

    async def manager_chat_history(self, project: str, limit: int = 0) -> list[ChatEntry]:
        result = await self.call(
            MSG_MANAGER_CHAT_HISTORY,
            "manager chat history",
            {"project": project, "limit": limit},
        )
        return [ChatEntry.from_dict(e) for e in result.get("entries") or []]

    async def manager_stop(self, project: str) -> None:
        await self.call(MSG_MANAGER_STOP, "manager stop", {"project": project})

    # Planners

    async def plan_start(self, project: str, prompt: str) -> str:
        """Start a planner. Returns the daemon's (bare) planner id."""
        result = await self.call(
            MSG_PLAN_START, "plan start", {"project": project, "prompt": prompt}
        )
        return str(result.get("id") or "")

    async def plan_list(self, project: str = "") -> list[PlannerStatus]:
        result = await self.call(MSG_PLAN_LIST, "plan list", {"project": project})
        return [PlannerStatus.from_dict(p) for p in result.get("planners") or []]

    async def plan_send_message(self, planner_id: str, content: str) -> None:
        await self.call(
            MSG_PLAN_SEND_MESSAGE, "plan send message", {"id": planner_id, "content": content}
        )

    async def plan_chat_history(self, planner_id: str, limit: int = 0) -> list[ChatEntry]:
        result = await self.call(
            MSG_PLAN_CHAT_HISTORY, "plan chat history", {"id": planner_id, "limit": limit}
        )
        return [ChatEntry.from_dict(e) for e in result.get("entries") or []]

    async def plan_stop(self, planner_id: str) -> None:
        await self.call(MSG_PLAN_STOP, "plan stop", {"id": planner_id})
