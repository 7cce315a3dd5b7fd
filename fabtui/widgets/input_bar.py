"""Single-line input bar under the chat view."""

from __future__ import annotations

from rich.text import Text
from textual.widgets import Static

from fabtui.input_line import InputLine


def render_input(line: InputLine, *, active: bool, label: str = "INPUT") -> Text:
    """The buffer with a block cursor when active, or the placeholder when empty."""
    text = Text()
    if active:
        text.append(f" {label} ", style="bold reverse")
        text.append(" ")
    else:
        text.append("> ", style="dim")
    if not line.value:
        if active:
            text.append(" ", style="reverse")
        text.append(line.placeholder, style="dim italic")
        return text
    if not active:
        text.append(line.value)
        return text
    before = line.value[: line.cursor]
    under = line.value[line.cursor : line.cursor + 1] or " "
    after = line.value[line.cursor + 1 :]
    text.append(before)
    text.append(under, style="reverse")
    text.append(after)
    return text


class InputBar(Static):
    DEFAULT_CSS = """
    InputBar {
        height: 3;
        padding: 0 1;
        border: round $panel;
    }
    InputBar.active {
        border: round $primary;
    }
    """

    def show(self, line: InputLine, *, active: bool, label: str = "INPUT") -> None:
        self.set_class(active, "active")
        self.update(render_input(line, active=active, label=label))
