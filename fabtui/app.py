"""fab supervision TUI - Textual runtime around the dispatch loop."""

from __future__ import annotations

import logging
import time

from textual import events
from textual.app import App
from textual.message import Message
from textual.screen import Screen

from fabtui import config
from fabtui.commands import Command
from fabtui.config import CONFIG
from fabtui.daemon import DaemonClient
from fabtui.errors import log_exception, route_toasts
from fabtui.messages import KeyPressed, Tick, ViewportChanged
from fabtui.model import Model
from fabtui.protocols import Daemon
from fabtui.screens.supervisor import SupervisorScreen
from fabtui.theme import DEFAULT_THEME, all_themes
from fabtui.widgets import ChatView

log = logging.getLogger(__name__)

TICK_INTERVAL = 0.1  # seconds


class ModelUpdate(Message):
    """Carries a command result back onto the app's message queue."""

    def __init__(self, payload: object) -> None:
        self.payload = payload
        super().__init__()


class SupervisorApp(App, inherit_bindings=False):
    """Supervision client for the fab daemon.

    All state lives in `model`. Textual events become model messages, the
    commands the model returns run as workers, and their results come back
    through ModelUpdate so every message is applied one at a time on the
    app's queue.
    """

    TITLE = "fab"
    ENABLE_COMMAND_PALETTE = False

    def __init__(
        self,
        client: Daemon | None = None,
        *,
        projects: list[str] | None = None,
        initial_agent_id: str = "",
        theme_override: str | None = None,
        error_timeout: float | None = None,
        usage_limit: int | None = None,
    ) -> None:
        super().__init__()
        self.client = client or DaemonClient(config.socket_path())
        self.model = Model(
            self.client,
            projects=projects,
            initial_agent_id=initial_agent_id,
            max_reconnects=config.max_reconnects(),
            error_timeout=config.error_timeout() if error_timeout is None else error_timeout,
            usage_limit=usage_limit,
        )
        self._theme_override = theme_override
        self._view: SupervisorScreen | None = None
        self._quitting = False

    def get_default_screen(self) -> Screen:
        self._view = SupervisorScreen()
        return self._view

    async def on_mount(self) -> None:
        # Warnings and errors logged anywhere surface as toasts
        route_toasts(lambda msg, severity: self.notify(msg, severity=severity, timeout=5))

        for theme in all_themes():
            self.register_theme(theme)
        theme = self._theme_override or CONFIG.get("theme") or DEFAULT_THEME
        if theme not in self.available_themes:
            log.warning(f"Unknown theme '{theme}', using {DEFAULT_THEME}")
            theme = DEFAULT_THEME
        self.theme = theme

        log.info(f"Starting supervisor on {getattr(self.client, 'socket_path', 'daemon')}")
        self._run_commands(self.model.init(time.monotonic()))
        self.set_interval(TICK_INTERVAL, self._tick)
        self._render_model()

    async def _cleanup_and_exit(self) -> None:
        """Close the daemon connections, then exit."""
        route_toasts(None)
        try:
            await self.client.close()
        except OSError as e:
            log.debug(f"Error closing daemon client: {e}")
        self.exit()

    # Dispatch

    def update_model(self, message: object) -> None:
        """Apply one message to the model, start its commands, re-render."""
        commands = self.model.update(message)
        self._run_commands(commands)
        if self.model.should_quit:
            if not self._quitting:
                self._quitting = True
                self.run_worker(self._cleanup_and_exit())
            return
        self._render_model()

    def _run_commands(self, commands: list[Command]) -> None:
        for command in commands:
            self.run_worker(
                self._execute(command),
                name=getattr(command, "__name__", "command"),
                group="commands",
                exit_on_error=False,
            )

    async def _execute(self, command: Command) -> None:
        try:
            result = await command()
        except Exception as e:
            # Commands report daemon failures in their result; this is a bug
            message = log_exception(e, f"Command {getattr(command, '__name__', command)} crashed")
            self._run_commands([self.model.set_error(message)])
            self._render_model()
            return
        if result is not None:
            self.post_message(ModelUpdate(result))

    def on_model_update(self, event: ModelUpdate) -> None:
        self.update_model(event.payload)

    def _tick(self) -> None:
        self.update_model(Tick(now=time.monotonic()))

    def _render_model(self) -> None:
        if self._view is not None and self._view.is_mounted:
            self._view.show_model(self.model)

    # Textual events

    def on_key(self, event: events.Key) -> None:
        event.prevent_default()
        event.stop()
        self.update_model(KeyPressed(key=event.key, character=event.character))

    def on_chat_view_viewport_resized(self, event: ChatView.ViewportResized) -> None:
        if (event.max_scroll, event.page_size) == (
            self.model.chat_max_scroll,
            self.model.page_size,
        ):
            return
        self.update_model(ViewportChanged(max_scroll=event.max_scroll, page_size=event.page_size))
