"""Key binding table and the per-context help legend."""

from __future__ import annotations

from dataclasses import dataclass

from fabtui.enums import Focus, Mode


@dataclass(frozen=True)
class KeyBinding:
    keys: tuple[str, ...]
    help_key: str
    description: str

    def matches(self, key: str) -> bool:
        return key in self.keys


QUIT = KeyBinding(("q", "ctrl+c"), "q", "quit")
TAB = KeyBinding(("tab",), "tab", "switch pane")
RECONNECT = KeyBinding(("r",), "r", "reconnect")
UP = KeyBinding(("k", "up"), "k", "up")
DOWN = KeyBinding(("j", "down"), "j", "down")
TOP = KeyBinding(("g", "home"), "g", "top")
BOTTOM = KeyBinding(("G", "shift+g", "end"), "G", "bottom")
PAGE_UP = KeyBinding(("ctrl+u", "pageup"), "pgup", "page up")
PAGE_DOWN = KeyBinding(("ctrl+d", "pagedown"), "pgdn", "page down")
APPROVE = KeyBinding(("y",), "y", "approve")
REJECT = KeyBinding(("n",), "n", "reject")
ABORT = KeyBinding(("x",), "x", "abort")
PLAN = KeyBinding(("p",), "p", "plan")
FOCUS_CHAT = KeyBinding(("i",), "i", "input")
SUBMIT = KeyBinding(("enter",), "enter", "send")
CANCEL = KeyBinding(("escape",), "esc", "cancel")
HISTORY_UP = KeyBinding(("up",), "↑", "history")
HISTORY_DOWN = KeyBinding(("down",), "↓", "history")

# Line editing inside the input line
BACKSPACE = ("backspace", "ctrl+h")
DELETE = ("delete",)
LEFT = ("left",)
RIGHT = ("right",)
HOME = ("home", "ctrl+a")
END = ("end", "ctrl+e")

ALL_BINDINGS = (
    QUIT,
    TAB,
    RECONNECT,
    UP,
    DOWN,
    TOP,
    BOTTOM,
    PAGE_UP,
    PAGE_DOWN,
    APPROVE,
    REJECT,
    ABORT,
    PLAN,
    FOCUS_CHAT,
    SUBMIT,
    CANCEL,
)


def help_text(
    mode: Mode,
    focus: Focus,
    *,
    permission: bool = False,
    action: bool = False,
    question: bool = False,
) -> str:
    """Legend for the keys that do something in the current context."""
    if mode == Mode.INPUT:
        return "enter: send  esc: cancel  ↑/↓: history  tab: switch pane"
    if mode == Mode.ABORT_CONFIRM:
        return "y: confirm abort  n/esc: cancel"
    if mode == Mode.USER_QUESTION:
        return "j/k: choose  enter/y: answer  esc: back"
    if mode == Mode.PLAN_PROJECT_SELECT:
        return "type to filter  ↑/↓: choose  enter: select  esc: cancel"
    if mode == Mode.PLAN_PROMPT:
        return "enter: start planner  esc: cancel"

    if focus == Focus.AGENT_LIST:
        nav = "j/k: navigate"
    else:
        nav = "j/k/pgup/pgdn: scroll"
    if question:
        return f"j/k: choose  y: answer  {nav}  tab: switch pane  q: quit"
    if permission:
        return f"y: allow  n: deny  {nav}  tab: switch pane  q: quit"
    if action:
        return f"y: approve  n: reject  {nav}  tab: switch pane  q: quit"
    return f"{nav}  i: input  p: plan  x: abort  tab: switch pane  q: quit"
