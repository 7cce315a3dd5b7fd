"""Messages consumed by the dispatch loop.

Keyboard input, periodic ticks, and the results of asynchronous daemon calls all
arrive as one of these. Results carry the exception instead of raising it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fabtui.daemon.models import AgentStatus, ChatEntry, StagedAction, Stats, StreamEvent
    from fabtui.protocols import EventSource
    from fabtui.usage import UsageSnapshot


@dataclass
class KeyPressed:
    key: str
    character: str | None = None


@dataclass
class Tick:
    """Fired every 100ms. `now` is a monotonic timestamp in seconds."""

    now: float


@dataclass
class ViewportChanged:
    """The chat view's scrollable extent changed."""

    max_scroll: int
    page_size: int


@dataclass
class ErrorExpired:
    generation: int


@dataclass
class AgentListLoaded:
    agents: list[AgentStatus] = field(default_factory=list)
    error: Exception | None = None


@dataclass
class ChatHistoryLoaded:
    agent_id: str
    entries: list[ChatEntry] = field(default_factory=list)
    error: Exception | None = None


@dataclass
class MessageSent:
    agent_id: str
    error: Exception | None = None


@dataclass
class PermissionResponded:
    request_id: str
    error: Exception | None = None


@dataclass
class QuestionAnswered:
    question_id: str
    error: Exception | None = None


@dataclass
class ActionResolved:
    action_id: str
    approved: bool
    error: Exception | None = None


@dataclass
class AbortCompleted:
    agent_id: str
    error: Exception | None = None


@dataclass
class PlannerStarted:
    planner_id: str = ""
    project: str = ""
    error: Exception | None = None


@dataclass
class ProjectsLoaded:
    projects: list[str] = field(default_factory=list)
    error: Exception | None = None


@dataclass
class StagedActionsLoaded:
    actions: list[StagedAction] = field(default_factory=list)
    error: Exception | None = None


@dataclass
class StatsLoaded:
    stats: Stats | None = None
    error: Exception | None = None


@dataclass
class StreamStarted:
    stream: EventSource


@dataclass
class StreamEventReceived:
    """One receive on `stream` finished. `stream` is None when attaching failed."""

    event: StreamEvent | None = None
    error: Exception | None = None
    stream: EventSource | None = None


@dataclass
class ReconnectResult:
    stream: EventSource | None = None
    error: Exception | None = None


@dataclass
class UsageUpdated:
    usage: UsageSnapshot | None = None
    error: Exception | None = None


Message = (
    KeyPressed
    | Tick
    | ViewportChanged
    | ErrorExpired
    | AgentListLoaded
    | ChatHistoryLoaded
    | MessageSent
    | PermissionResponded
    | QuestionAnswered
    | ActionResolved
    | AbortCompleted
    | PlannerStarted
    | ProjectsLoaded
    | StagedActionsLoaded
    | StatsLoaded
    | StreamStarted
    | StreamEventReceived
    | ReconnectResult
    | UsageUpdated
)
