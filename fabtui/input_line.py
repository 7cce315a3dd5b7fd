"""Single-line input buffer with cursor and submit history."""

from __future__ import annotations

from dataclasses import dataclass, field

MAX_HISTORY = 100
CHAR_LIMIT = 4096

DEFAULT_PLACEHOLDER = "Type a message..."
OTHER_PLACEHOLDER = "Enter your response..."
PLAN_PLACEHOLDER = "What would you like to plan?"


@dataclass
class InputLine:
    value: str = ""
    cursor: int = 0
    placeholder: str = DEFAULT_PLACEHOLDER
    history: list[str] = field(default_factory=list)
    # -1 means not browsing history
    history_index: int = -1
    saved_input: str = ""

    def clear(self) -> None:
        self.value = ""
        self.cursor = 0

    def set_value(self, value: str) -> None:
        self.value = value[:CHAR_LIMIT]
        self.cursor = len(self.value)

    def insert(self, text: str) -> None:
        room = CHAR_LIMIT - len(self.value)
        if room <= 0:
            return
        text = text[:room]
        self.value = self.value[: self.cursor] + text + self.value[self.cursor :]
        self.cursor += len(text)

    def backspace(self) -> None:
        if self.cursor == 0:
            return
        self.value = self.value[: self.cursor - 1] + self.value[self.cursor :]
        self.cursor -= 1

    def delete(self) -> None:
        self.value = self.value[: self.cursor] + self.value[self.cursor + 1 :]

    def move_left(self) -> None:
        self.cursor = max(0, self.cursor - 1)

    def move_right(self) -> None:
        self.cursor = min(len(self.value), self.cursor + 1)

    def move_home(self) -> None:
        self.cursor = 0

    def move_end(self) -> None:
        self.cursor = len(self.value)

    def add_to_history(self, text: str) -> None:
        """Record a submitted line, skipping blanks and immediate repeats."""
        if not text:
            return
        if not self.history or self.history[-1] != text:
            self.history.append(text)
            del self.history[:-MAX_HISTORY]
        self.reset_history_navigation()

    def history_up(self) -> bool:
        """Step to the previous (older) entry. Returns True if the value changed."""
        if not self.history:
            return False
        if self.history_index == -1:
            self.saved_input = self.value
            self.history_index = len(self.history) - 1
        elif self.history_index > 0:
            self.history_index -= 1
        else:
            return False
        self.set_value(self.history[self.history_index])
        return True

    def history_down(self) -> bool:
        """Step to the next (newer) entry, restoring the draft past the newest."""
        if self.history_index == -1:
            return False
        if self.history_index < len(self.history) - 1:
            self.history_index += 1
            self.set_value(self.history[self.history_index])
            return True
        self.history_index = -1
        self.set_value(self.saved_input)
        self.saved_input = ""
        return True

    def reset_history_navigation(self) -> None:
        self.history_index = -1
        self.saved_input = ""
