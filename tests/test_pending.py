"""Tests for pending-item registries and the question cursor."""

from fabtui.pending import PendingItems, QuestionCursor, Registry


def test_registry_redelivery_replaces_in_place(permission_factory):
    registry = Registry()
    registry.add(permission_factory("p1", tool_name="Bash"))
    registry.add(permission_factory("p2", agent_id="a2"))
    registry.add(permission_factory("p1", tool_name="Edit"))
    assert [p.id for p in registry] == ["p1", "p2"]
    assert registry.items[0].tool_name == "Edit"


def test_for_agent_returns_first_in_arrival_order(permission_factory):
    registry = Registry([permission_factory("p1"), permission_factory("p2")])
    assert registry.for_agent("a1").id == "p1"
    registry.remove("p1")
    assert registry.for_agent("a1").id == "p2"
    assert registry.for_agent("") is None
    assert registry.for_agent("a9") is None


def test_prune_returns_dropped(permission_factory):
    registry = Registry([permission_factory("p1"), permission_factory("p2", agent_id="gone")])
    dropped = registry.prune({"a1"})
    assert [p.id for p in dropped] == ["p2"]
    assert [p.id for p in registry] == ["p1"]


def test_attention_is_union_of_owners(permission_factory, question_factory, action_factory):
    pending = PendingItems()
    pending.permissions.add(permission_factory(agent_id="a1"))
    pending.questions.add(question_factory(agent_id="a2"))
    pending.actions.add(action_factory(agent_id="a3"))
    assert pending.refresh_attention() == {"a1", "a2", "a3"}


def test_active_precedence_question_permission_action(
    permission_factory, question_factory, action_factory
):
    pending = PendingItems()
    pending.actions.add(action_factory())
    assert pending.active_for("a1").id == "act-1"
    pending.permissions.add(permission_factory())
    assert pending.active_for("a1").id == "perm-1"
    pending.questions.add(question_factory())
    assert pending.active_for("a1").id == "q-1"


def test_rejectable_skips_questions(permission_factory, question_factory, action_factory):
    pending = PendingItems()
    pending.questions.add(question_factory())
    assert pending.rejectable_for("a1") is None
    pending.actions.add(action_factory())
    assert pending.rejectable_for("a1").id == "act-1"
    pending.permissions.add(permission_factory())
    assert pending.rejectable_for("a1").id == "perm-1"


def test_prune_leaves_staged_actions(permission_factory, question_factory, action_factory):
    pending = PendingItems()
    pending.permissions.add(permission_factory(agent_id="gone"))
    pending.questions.add(question_factory(agent_id="gone"))
    pending.actions.add(action_factory(agent_id="gone"))
    assert pending.prune({"a1"}) == 2
    assert len(pending.actions) == 1
    assert pending.attention == {"gone"}


def test_cursor_wraps_through_other(question_factory):
    question = question_factory(options=("Fast", "Safe"))
    cursor = QuestionCursor()
    cursor.sync(question)
    cursor.move_up(question)
    assert cursor.current(question) == ("Approach", "", True)
    cursor.move_down(question)
    assert cursor.current(question) == ("Approach", "Fast", False)
    cursor.move_down(question)
    cursor.move_down(question)
    cursor.move_down(question)
    assert cursor.selected == 0


def test_cursor_resets_when_question_changes(question_factory):
    cursor = QuestionCursor()
    first = question_factory("q-1")
    cursor.sync(first)
    cursor.move_down(first)
    cursor.sync(first)
    assert cursor.selected == 1
    cursor.sync(question_factory("q-2"))
    assert cursor.selected == 0
    assert cursor.question_id == "q-2"


def test_record_collects_answers_across_questions(question_factory):
    question = question_factory(headers=("Approach", "Scope"))
    cursor = QuestionCursor()
    cursor.sync(question)
    assert not cursor.record(question, "Approach", "Fast")
    assert cursor.current(question)[0] == "Scope"
    assert cursor.record(question, "Scope", "just this file")
    assert cursor.answers == {"Approach": "Fast", "Scope": "just this file"}
