"""Chat view: the transcript of the displayed agent."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import VerticalScroll
from textual.message import Message
from textual.widgets import Static

from fabtui.daemon.models import ChatEntry
from fabtui.formatting import format_entries


def render_transcript(agent_id: str, entries: list[ChatEntry], backend: str = "") -> Text:
    if not agent_id:
        return Text("Select an agent to view chat", style="dim italic")
    if not entries:
        return Text("Waiting for messages...", style="dim italic")
    return format_entries(entries, backend)


class ChatView(VerticalScroll):
    """Scrollable transcript.

    Scrolling is driven from outside: show() receives the offset in lines from
    the bottom, and the view reports its scrollable extent back through
    ViewportResized so the offset can be clamped.
    """

    can_focus = False

    DEFAULT_CSS = """
    ChatView {
        height: 1fr;
        padding: 0 1;
        border: round $panel;
        border-title-color: $text-muted;
        scrollbar-size-vertical: 1;
    }
    ChatView.focused {
        border: round $primary;
        border-title-color: $primary;
    }
    ChatView #chat-body {
        width: 100%;
    }
    """

    class ViewportResized(Message):
        """Posted when the scrollable extent or page height changes."""

        def __init__(self, max_scroll: int, page_size: int) -> None:
            self.max_scroll = max_scroll
            self.page_size = page_size
            super().__init__()

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._lines_from_bottom = 0
        self._viewport: tuple[int, int] = (-1, -1)

    def compose(self) -> ComposeResult:
        yield Static(id="chat-body")

    def on_mount(self) -> None:
        self.border_title = "Chat"

    def show(
        self,
        title: str,
        agent_id: str,
        entries: list[ChatEntry],
        *,
        backend: str = "",
        lines_from_bottom: int = 0,
        focused: bool = False,
    ) -> None:
        self.set_class(focused, "focused")
        self.border_title = title
        self._lines_from_bottom = lines_from_bottom
        self.query_one("#chat-body", Static).update(
            render_transcript(agent_id, entries, backend)
        )
        self.call_after_refresh(self._sync_scroll)

    def _sync_scroll(self) -> None:
        max_scroll = int(self.max_scroll_y)
        page_size = max(1, self.scrollable_content_region.height)
        if (max_scroll, page_size) != self._viewport:
            self._viewport = (max_scroll, page_size)
            self.post_message(self.ViewportResized(max_scroll, page_size))
        target = max(0, max_scroll - self._lines_from_bottom)
        self.scroll_to(y=target, animate=False)
