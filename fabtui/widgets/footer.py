"""Help bar: the key legend for the current context, or the latest error."""

from __future__ import annotations

from rich.text import Text
from textual.widgets import Static


def render_help_bar(legend: str, error: str = "") -> Text:
    if error:
        return Text.assemble(("✗ ", "bold red"), (error, "red"))
    return Text(legend, style="dim")


class HelpBar(Static):
    can_focus = False

    DEFAULT_CSS = """
    HelpBar {
        height: 1;
        padding: 0 1;
        background: $surface;
    }
    HelpBar.error {
        background: $error 20%;
    }
    """

    def show(self, legend: str, error: str = "") -> None:
        self.set_class(bool(error), "error")
        self.update(render_help_bar(legend, error))
