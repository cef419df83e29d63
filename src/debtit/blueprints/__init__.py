"""Blueprint exports."""

from . import plan

__all__ = ["plan"]
