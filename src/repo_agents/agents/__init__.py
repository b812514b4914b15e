"""Agent definition package."""

from repo_agents.agents.loader import load_agent_definition, load_agent_file
from repo_agents.agents.types import AgentDefinition

__all__ = ["AgentDefinition", "load_agent_definition", "load_agent_file"]
