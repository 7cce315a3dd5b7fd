"""Registries of items waiting on the operator.

There are three independent kinds: permission requests, user questions and
staged actions. Each is keyed by its own id and owned by an agent. Several
agents may each have items of every kind pending at once; for any one agent
only the first item of a kind is active.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Iterator, TypeVar, Union

from fabtui.daemon.models import PermissionRequest, UserQuestion, StagedAction

OTHER_LABEL = "Other"

T = TypeVar("T", PermissionRequest, UserQuestion, StagedAction)

PendingItem = Union[PermissionRequest, UserQuestion, StagedAction]


class Registry(Generic[T]):
    """Items in arrival order with lookup by owning agent."""

    def __init__(self, items: list[T] | None = None) -> None:
        self.items: list[T] = list(items or [])

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def add(self, item: T) -> None:
        """Append an item. Re-delivery of a known id replaces it in place."""
        for i, existing in enumerate(self.items):
            if existing.id == item.id:
                self.items[i] = item
                return
        self.items.append(item)

    def remove(self, item_id: str) -> T | None:
        for i, item in enumerate(self.items):
            if item.id == item_id:
                return self.items.pop(i)
        return None

    def replace(self, items: list[T]) -> None:
        self.items = list(items)

    def for_agent(self, agent_id: str) -> T | None:
        """First item owned by `agent_id`, or None."""
        if not agent_id:
            return None
        return next((item for item in self.items if item.agent_id == agent_id), None)

    def prune(self, valid_agent_ids: set[str]) -> list[T]:
        """Drop items whose agent is not in `valid_agent_ids`; return them."""
        kept = [item for item in self.items if item.agent_id in valid_agent_ids]
        dropped = [item for item in self.items if item.agent_id not in valid_agent_ids]
        self.items = kept
        return dropped

    def agent_ids(self) -> set[str]:
        return {item.agent_id for item in self.items}


@dataclass
class PendingItems:
    """The three registries plus the derived attention set."""

    permissions: Registry[PermissionRequest] = field(default_factory=Registry)
    questions: Registry[UserQuestion] = field(default_factory=Registry)
    actions: Registry[StagedAction] = field(default_factory=Registry)
    attention: set[str] = field(default_factory=set)

    def refresh_attention(self) -> set[str]:
        """Recompute the ids of agents with anything pending."""
        self.attention = (
            self.permissions.agent_ids()
            | self.questions.agent_ids()
            | self.actions.agent_ids()
        )
        return self.attention

    def active_for(self, agent_id: str) -> PendingItem | None:
        """What the approve key acts on: question, then permission, then action."""
        return (
            self.questions.for_agent(agent_id)
            or self.permissions.for_agent(agent_id)
            or self.actions.for_agent(agent_id)
        )

    def rejectable_for(self, agent_id: str) -> PermissionRequest | StagedAction | None:
        """What the reject key acts on. Questions can only be answered."""
        return self.permissions.for_agent(agent_id) or self.actions.for_agent(agent_id)

    def prune(self, valid_agent_ids: set[str]) -> int:
        """Drop permissions and questions of agents that no longer exist.

        Staged actions are left alone; they are refetched from the daemon.
        """
        dropped = len(self.permissions.prune(valid_agent_ids))
        dropped += len(self.questions.prune(valid_agent_ids))
        self.refresh_attention()
        return dropped


@dataclass
class QuestionCursor:
    """Option cursor for the active user question.

    A question set may hold several questions; answers are collected one
    question at a time and submitted together after the last one. The cursor
    ranges over the options plus a trailing "Other" entry for a free-form answer.
    """

    question_id: str = ""
    index: int = 0
    selected: int = 0
    answers: dict[str, str] = field(default_factory=dict)
    submitted: bool = False

    def sync(self, question: UserQuestion | None) -> None:
        """Reset when the active question changes."""
        question_id = question.id if question else ""
        if question_id != self.question_id:
            self.question_id = question_id
            self.index = 0
            self.selected = 0
            self.answers = {}
            self.submitted = False

    def _option_count(self, question: UserQuestion) -> int:
        if self.index >= len(question.questions):
            return 0
        return len(question.questions[self.index].options)

    def move_up(self, question: UserQuestion) -> None:
        if self.index >= len(question.questions):
            return
        if self.selected > 0:
            self.selected -= 1
        else:
            self.selected = self._option_count(question)

    def move_down(self, question: UserQuestion) -> None:
        if self.index >= len(question.questions):
            return
        if self.selected < self._option_count(question):
            self.selected += 1
        else:
            self.selected = 0

    def current(self, question: UserQuestion) -> tuple[str, str, bool]:
        """(header, label, is_other) for the highlighted entry."""
        if self.index >= len(question.questions):
            return "", "", False
        q = question.questions[self.index]
        if self.selected >= len(q.options):
            return q.header, "", True
        return q.header, q.options[self.selected].label, False

    def record(self, question: UserQuestion, header: str, answer: str) -> bool:
        """Store an answer and advance. Returns True once every question is answered."""
        self.answers[header] = answer
        self.index += 1
        self.selected = 0
        return self.finished(question)

    def finished(self, question: UserQuestion) -> bool:
        return self.index >= len(question.questions)

    def submit(self) -> dict[str, str]:
        """Mark the set as sent. Answers stay readable until the next sync."""
        self.submitted = True
        return dict(self.answers)
