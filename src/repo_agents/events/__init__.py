"""Event context and payload helpers."""

from repo_agents.events.context import ValidationContext

__all__ = ["ValidationContext"]
