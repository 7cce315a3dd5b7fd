"""fabtui - terminal supervision client for the fab agent daemon."""

from fabtui.app import SupervisorApp
from fabtui.theme import FAB_THEME

__all__ = ["SupervisorApp", "FAB_THEME"]
__version__ = "0.1.0"
