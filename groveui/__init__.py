"""Grove UI - terminal control surface for Grove task worktrees."""

from groveui.app import GroveApp

__all__ = ["GroveApp"]
__version__ = "0.1.0"
