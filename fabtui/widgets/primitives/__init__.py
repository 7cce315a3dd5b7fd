"""Primitive building blocks shared by the widgets."""

from fabtui.widgets.primitives.spinner import FRAMES, spinner_glyph

__all__ = ["FRAMES", "spinner_glyph"]
