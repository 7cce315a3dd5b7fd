"""Dataclasses for payloads exchanged with the fab daemon."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone


def _str_id(value: object) -> str:
    """Coerce an ID (int, str, or None) to str. None becomes ""."""
    return "" if value is None else str(value)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: object, now: datetime | None = None) -> datetime:
    """Parse an RFC 3339 timestamp, falling back to `now` when absent or invalid."""
    fallback = now or utcnow()
    if not isinstance(value, str) or not value:
        return fallback
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return fallback
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _tool_input(value: object) -> str:
    """Tool input arrives as raw JSON or a decoded object; keep it as text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True)


@dataclass
class AgentStatus:
    """One roster row."""

    id: str
    project: str = ""
    state: str = "starting"
    worktree: str = ""
    started_at: datetime = field(default_factory=utcnow)
    task: str = ""
    description: str = ""
    backend: str = ""

    @classmethod
    def from_dict(cls, data: dict, now: datetime | None = None) -> AgentStatus:
        return cls(
            id=_str_id(data.get("id")),
            project=data.get("project") or "",
            state=data.get("state") or "starting",
            worktree=data.get("worktree") or "",
            started_at=parse_timestamp(data.get("started_at"), now),
            task=data.get("task") or "",
            description=data.get("description") or "",
            backend=data.get("backend") or "",
        )


@dataclass
class PlannerStatus:
    """A planner as reported by plan.list (bare id, not yet re-keyed)."""

    id: str
    project: str = ""
    state: str = "starting"
    workdir: str = ""
    started_at: str = ""
    backend: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> PlannerStatus:
        return cls(
            id=_str_id(data.get("id")),
            project=data.get("project") or "",
            state=data.get("state") or "starting",
            workdir=data.get("workdir") or data.get("work_dir") or "",
            started_at=data.get("started_at") or "",
            backend=data.get("backend") or "",
        )


@dataclass
class ChatEntry:
    role: str
    content: str = ""
    timestamp: str = ""
    tool_name: str = ""
    tool_input: str = ""
    tool_result: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> ChatEntry:
        return cls(
            role=data.get("role") or "",
            content=data.get("content") or "",
            timestamp=data.get("timestamp") or "",
            tool_name=data.get("tool_name") or "",
            tool_input=_tool_input(data.get("tool_input")),
            tool_result=data.get("tool_result") or "",
        )


@dataclass
class PermissionRequest:
    """A tool call awaiting the operator's allow/deny."""

    id: str
    agent_id: str
    project: str = ""
    tool_name: str = ""
    tool_input: str = ""
    requested_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> PermissionRequest:
        return cls(
            id=_str_id(data.get("id")),
            agent_id=_str_id(data.get("agent_id")),
            project=data.get("project") or "",
            tool_name=data.get("tool_name") or "",
            tool_input=_tool_input(data.get("tool_input")),
            requested_at=data.get("requested_at") or "",
        )


@dataclass
class QuestionOption:
    label: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> QuestionOption:
        return cls(label=data.get("label") or "", description=data.get("description") or "")


@dataclass
class Question:
    question: str
    header: str = ""
    options: list[QuestionOption] = field(default_factory=list)
    multi_select: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> Question:
        return cls(
            question=data.get("question") or "",
            header=data.get("header") or "",
            options=[QuestionOption.from_dict(o) for o in data.get("options") or []],
            multi_select=bool(data.get("multiSelect", data.get("multi_select", False))),
        )


@dataclass
class UserQuestion:
    """A set of questions asked by an agent (AskUserQuestion)."""

    id: str
    agent_id: str
    project: str = ""
    questions: list[Question] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> UserQuestion:
        return cls(
            id=_str_id(data.get("id")),
            agent_id=_str_id(data.get("agent_id")),
            project=data.get("project") or "",
            questions=[Question.from_dict(q) for q in data.get("questions") or []],
        )


@dataclass
class StagedAction:
    """An orchestrator action waiting for approval."""

    id: str
    agent_id: str
    project: str = ""
    type: str = ""
    payload: str = ""
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> StagedAction:
        return cls(
            id=_str_id(data.get("id")),
            agent_id=_str_id(data.get("agent_id")),
            project=data.get("project") or "",
            type=data.get("type") or "",
            payload=data.get("payload") or "",
            created_at=data.get("created_at") or "",
        )


@dataclass
class Stats:
    commit_count: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> Stats:
        return cls(commit_count=int(data.get("commit_count") or 0))


@dataclass
class StreamEvent:
    """One event from the attach stream. Kind-specific fields are optional."""

    type: str
    agent_id: str = ""
    project: str = ""
    data: str = ""
    state: str = ""
    task: str = ""
    description: str = ""
    started_at: str = ""
    manager_state: str = ""
    chat_entry: ChatEntry | None = None
    permission_request: PermissionRequest | None = None
    user_question: UserQuestion | None = None
    staged_action: StagedAction | None = None

    @classmethod
    def from_dict(cls, data: dict) -> StreamEvent:
        def sub(key: str, factory):
            value = data.get(key)
            return factory(value) if isinstance(value, dict) else None

        return cls(
            type=data.get("type") or "",
            agent_id=_str_id(data.get("agent_id")),
            project=data.get("project") or "",
            data=data.get("data") or "",
            state=data.get("state") or "",
            task=data.get("task") or "",
            description=data.get("description") or "",
            started_at=data.get("started_at") or "",
            manager_state=data.get("manager_state") or "",
            chat_entry=sub("chat_entry", ChatEntry.from_dict),
            permission_request=sub("permission_request", PermissionRequest.from_dict),
            user_question=sub("user_question", UserQuestion.from_dict),
            staged_action=sub("staged_action", StagedAction.from_dict),
        )
