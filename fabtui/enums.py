"""Enums for magic strings used throughout the codebase."""

from enum import Enum


class StrEnum(str, Enum):
    """String enum base class (compatible with Python < 3.11)."""

    def __str__(self) -> str:
        return self.value


class Mode(StrEnum):
    """The single active interaction mode."""

    NORMAL = "normal"
    INPUT = "input"
    ABORT_CONFIRM = "abort_confirm"
    USER_QUESTION = "user_question"
    PLAN_PROJECT_SELECT = "plan_project_select"
    PLAN_PROMPT = "plan_prompt"


class Focus(StrEnum):
    """Panel holding keyboard focus."""

    AGENT_LIST = "agent_list"
    CHAT_VIEW = "chat_view"
    INPUT_LINE = "input_line"


class ConnectionState(StrEnum):
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    DISCONNECTED = "disconnected"


class AgentState(StrEnum):
    """Agent lifecycle states reported by the daemon."""

    STARTING = "starting"
    RUNNING = "running"
    IDLE = "idle"
    DONE = "done"
    ERROR = "error"
    # Manager only
    STOPPING = "stopping"
    STOPPED = "stopped"


class AgentKind(StrEnum):
    WORKER = "worker"
    MANAGER = "manager"
    PLANNER = "planner"


class ActionType(StrEnum):
    """Staged orchestrator action types."""

    SEND_MESSAGE = "send_message"
    QUIT = "quit"


class PermissionBehavior(StrEnum):
    ALLOW = "allow"
    DENY = "deny"


class EventType(StrEnum):
    """Event types on the daemon's attach stream."""

    CHAT_ENTRY = "chat_entry"
    OUTPUT = "output"
    STATE = "state"
    INFO = "info"
    CREATED = "created"
    DELETED = "deleted"
    PERMISSION_REQUEST = "permission_request"
    USER_QUESTION = "user_question"
    ACTION_QUEUED = "action_queued"
    MANAGER_CHAT_ENTRY = "manager_chat_entry"
    MANAGER_STATE = "manager_state"
    PLANNER_CREATED = "planner_created"
    PLANNER_STATE = "planner_state"
    PLANNER_INFO = "planner_info"
    PLANNER_DELETED = "planner_deleted"
    PLANNER_CHAT_ENTRY = "planner_chat_entry"
    PLAN_COMPLETE = "plan_complete"
