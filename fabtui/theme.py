"""Color themes.

The fab theme (and its light variant) ships built in. More can be added
under `themes:` in the config file; any color left out is taken from fab:

    themes:
      moonfly:
        primary: "#80a0ff"
        background: "#080808"
        warning: "#e3c78a"
    theme: moonfly
"""

from __future__ import annotations

from typing import Iterator

from textual.theme import BUILTIN_THEMES, Theme

from fabtui.config import CONFIG

DEFAULT_THEME = "fab"

# warning is used for agents waiting on the operator, error for the status line
_FAB_DARK = {
    "primary": "#2aa198",
    "secondary": "#5599dd",
    "accent": "#445566",
    "background": "black",
    "surface": "#111111",
    "panel": "#555555",
    "success": "#5fb85f",
    "warning": "#d7a300",
    "error": "#cc3333",
    "dark": True,
}
_FAB_LIGHT = {
    **_FAB_DARK,
    "primary": "#1b7a73",
    "secondary": "#2277bb",
    "accent": "#667788",
    "background": "#ffffff",
    "surface": "#f0f0f0",
    "panel": "#cccccc",
    "success": "#2f8a2f",
    "warning": "#997700",
    "dark": False,
}

FAB_THEME = Theme(name="fab", **_FAB_DARK)
FAB_LIGHT_THEME = Theme(name="fab-light", **_FAB_LIGHT)

# Keys a config theme may set; anything else is ignored
OVERRIDABLE = frozenset({"foreground", "boost", *_FAB_DARK})


def _configured() -> Iterator[tuple[str, dict]]:
    themes = CONFIG.get("themes") or {}
    if not isinstance(themes, dict):
        return
    for name, colors in themes.items():
        if isinstance(colors, dict):
            yield str(name), colors


def get_available_theme_names() -> set[str]:
    """Textual's built-in themes plus fab, fab-light and configured ones."""
    return (
        set(BUILTIN_THEMES)
        | {FAB_THEME.name, FAB_LIGHT_THEME.name}
        | {name for name, _ in _configured()}
    )


def load_custom_themes() -> list[Theme]:
    themes = []
    for name, colors in _configured():
        overrides = {k: v for k, v in colors.items() if k in OVERRIDABLE}
        themes.append(Theme(name=name, **{**_FAB_DARK, **overrides}))
    return themes


def all_themes() -> list[Theme]:
    """Every theme the app registers on startup, built-ins first."""
    return [FAB_THEME, FAB_LIGHT_THEME, *load_custom_themes()]
