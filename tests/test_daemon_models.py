"""Tests for daemon payload parsing."""

from datetime import datetime, timezone

from fabtui.daemon.models import (
    AgentStatus,
    PlannerStatus,
    Question,
    StreamEvent,
    parse_timestamp,
)

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def test_agent_status_defaults_and_id_coercion():
    agent = AgentStatus.from_dict({"id": 12, "started_at": None}, now=NOW)
    assert agent.id == "12"
    assert agent.state == "starting"
    assert agent.started_at == NOW


def test_parse_timestamp_variants():
    assert parse_timestamp("2026-01-05T12:00:00Z").tzinfo is not None
    naive = parse_timestamp("2026-01-05T12:00:00")
    assert naive.tzinfo == timezone.utc
    assert parse_timestamp("garbage", NOW) is NOW
    assert parse_timestamp(1234, NOW) is NOW


def test_planner_accepts_either_workdir_key():
    assert PlannerStatus.from_dict({"id": "p1", "work_dir": "/w"}).workdir == "/w"
    assert PlannerStatus.from_dict({"id": "p1", "workdir": "/x"}).workdir == "/x"


def test_question_multi_select_aliases():
    assert Question.from_dict({"question": "?", "multiSelect": True}).multi_select
    assert Question.from_dict({"question": "?", "multi_select": True}).multi_select
    assert not Question.from_dict({"question": "?"}).multi_select


def test_stream_event_nested_payloads():
    event = StreamEvent.from_dict(
        {
            "type": "user_question",
            "agent_id": "a1",
            "user_question": {
                "id": "q-1",
                "agent_id": "a1",
                "questions": [
                    {
                        "question": "Which approach?",
                        "header": "Approach",
                        "options": [{"label": "Fast", "description": "skip tests"}],
                    }
                ],
            },
            "chat_entry": "not an object",
        }
    )
    assert event.user_question.questions[0].options[0].description == "skip tests"
    assert event.chat_entry is None
    assert event.permission_request is None


def test_stream_event_tolerates_nulls():
    event = StreamEvent.from_dict({"type": "state", "agent_id": None, "state": None})
    assert event.agent_id == ""
    assert event.state == ""
