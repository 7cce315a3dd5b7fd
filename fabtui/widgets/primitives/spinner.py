"""Spinner frames shared by every animated indicator.

The dispatch loop owns the frame counter (it advances once per tick), so
widgets only map a frame number to a glyph.
"""

FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"


def spinner_glyph(frame: int) -> str:
    return FRAMES[frame % len(FRAMES)]
