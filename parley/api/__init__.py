"""Named operation surface over an Engine."""

from .operations import OPERATIONS, Result, dispatch, names

__all__ = ["OPERATIONS", "Result", "dispatch", "names"]
