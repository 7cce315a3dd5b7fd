"""Textual widgets for the supervision UI."""

from fabtui.widgets.agents import AgentList
from fabtui.widgets.chat_view import ChatView
from fabtui.widgets.footer import HelpBar
from fabtui.widgets.indicators import StatusHeader
from fabtui.widgets.input_bar import InputBar
from fabtui.widgets.prompts import PendingPanel, PlanPicker

__all__ = [
    "AgentList",
    "ChatView",
    "HelpBar",
    "InputBar",
    "PendingPanel",
    "PlanPicker",
    "StatusHeader",
]
