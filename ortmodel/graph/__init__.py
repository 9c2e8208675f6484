"""Graph construction and resolution."""

from .graph import Graph  # noqa: F401

__all__ = ["Graph"]
