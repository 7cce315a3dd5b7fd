"""Ordered roster of agents, reconciled from roster fetches and stream events.

The manager and planners are not plain agents on the daemon side. The manager
always appears under the id "manager" and is kept first. Planners arrive with a
bare id and are re-keyed with PLANNER_PREFIX for display; to_backend_id undoes
that before any call goes back to the daemon.
"""

from __future__ import annotations

import logging
from datetime import datetime

from fabtui.daemon.models import AgentStatus, PlannerStatus, parse_timestamp
from fabtui.enums import AgentKind, AgentState

log = logging.getLogger(__name__)

MANAGER_ID = "manager"
PLANNER_PREFIX = "plan:"
DEFAULT_BACKEND = "claude"

ACTIVE_STATES = frozenset({AgentState.STARTING, AgentState.RUNNING})


def to_display_id(backend_id: str, kind: AgentKind = AgentKind.WORKER) -> str:
    """Map a daemon-side id to the id shown in the roster."""
    if kind == AgentKind.MANAGER:
        return MANAGER_ID
    if kind == AgentKind.PLANNER:
        return PLANNER_PREFIX + backend_id
    return backend_id


def to_backend_id(display_id: str) -> tuple[AgentKind, str]:
    """Inverse of to_display_id: the agent kind and the id the daemon knows."""
    if display_id == MANAGER_ID:
        return AgentKind.MANAGER, MANAGER_ID
    if display_id.startswith(PLANNER_PREFIX):
        return AgentKind.PLANNER, display_id[len(PLANNER_PREFIX) :]
    return AgentKind.WORKER, display_id


def agent_kind(display_id: str) -> AgentKind:
    return to_backend_id(display_id)[0]


def parse_started_at(value: str | None, now: datetime | None = None) -> datetime:
    """Best-effort start time: the parsed timestamp, else `now`."""
    return parse_timestamp(value, now)


def count_running(agents: list[AgentStatus]) -> int:
    return sum(1 for a in agents if a.state in ACTIVE_STATES)


def planner_agent(planner: PlannerStatus, now: datetime | None = None) -> AgentStatus:
    """Roster row for a planner reported by plan.list."""
    return AgentStatus(
        id=to_display_id(planner.id, AgentKind.PLANNER),
        project=planner.project,
        state=planner.state,
        worktree=planner.workdir,
        started_at=parse_started_at(planner.started_at, now),
        description="Planner",
        backend=planner.backend or DEFAULT_BACKEND,
    )


def manager_agent(state: str, started_at: str = "", now: datetime | None = None) -> AgentStatus:
    return AgentStatus(
        id=MANAGER_ID,
        project="manager",
        state=state,
        started_at=parse_started_at(started_at, now),
        description="Manager",
    )


class Roster:
    """Agents in display order plus the list cursor."""

    def __init__(self, agents: list[AgentStatus] | None = None) -> None:
        self.agents: list[AgentStatus] = []
        self.selected = 0
        self.running_count = 0
        self.replace(agents or [])

    def __len__(self) -> int:
        return len(self.agents)

    def __iter__(self):
        return iter(self.agents)

    def __contains__(self, agent_id: object) -> bool:
        return self.index_of(str(agent_id)) >= 0

    def _changed(self) -> None:
        self.running_count = count_running(self.agents)
        if not self.agents:
            self.selected = 0
        else:
            self.selected = max(0, min(self.selected, len(self.agents) - 1))

    def ids(self) -> set[str]:
        return {a.id for a in self.agents}

    def index_of(self, agent_id: str) -> int:
        for i, agent in enumerate(self.agents):
            if agent.id == agent_id:
                return i
        return -1

    def get(self, agent_id: str) -> AgentStatus | None:
        i = self.index_of(agent_id)
        return self.agents[i] if i >= 0 else None

    # Reconciliation

    def replace(self, agents: list[AgentStatus]) -> None:
        """Replace the whole roster, keeping arrival order with the manager first."""
        managers = [a for a in agents if a.id == MANAGER_ID]
        others = [a for a in agents if a.id != MANAGER_ID]
        self.agents = managers[:1] + others
        self._changed()

    def add(self, agent: AgentStatus) -> None:
        """Append a created agent (the manager is prepended).

        An id already on the roster is updated in place instead of duplicated.
        """
        i = self.index_of(agent.id)
        if i >= 0:
            self.agents[i] = agent
        elif agent.id == MANAGER_ID:
            self.agents.insert(0, agent)
            if len(self.agents) > 1:
                self.selected += 1
        else:
            self.agents.append(agent)
        self._changed()

    def remove(self, agent_id: str) -> AgentStatus | None:
        i = self.index_of(agent_id)
        if i < 0:
            return None
        removed = self.agents.pop(i)
        if i < self.selected:
            self.selected -= 1
        self._changed()
        return removed

    def update_state(self, agent_id: str, state: str) -> bool:
        """Set an agent's state. Unknown ids are ignored."""
        agent = self.get(agent_id)
        if agent is None:
            log.debug(f"Ignoring state {state!r} for unknown agent {agent_id}")
            return False
        agent.state = state
        self._changed()
        return True

    def update_info(self, agent_id: str, task: str, description: str) -> bool:
        """Set an agent's task and description. Unknown ids are ignored."""
        agent = self.get(agent_id)
        if agent is None:
            log.debug(f"Ignoring info for unknown agent {agent_id}")
            return False
        agent.task = task
        agent.description = description
        return True

    # Cursor

    @property
    def selected_agent(self) -> AgentStatus | None:
        if 0 <= self.selected < len(self.agents):
            return self.agents[self.selected]
        return None

    def select(self, agent_id: str) -> bool:
        i = self.index_of(agent_id)
        if i < 0:
            return False
        self.selected = i
        return True

    def move_up(self) -> None:
        if self.selected > 0:
            self.selected -= 1

    def move_down(self) -> None:
        if self.selected < len(self.agents) - 1:
            self.selected += 1

    def move_to_top(self) -> None:
        self.selected = 0

    def move_to_bottom(self) -> None:
        self.selected = max(0, len(self.agents) - 1)
