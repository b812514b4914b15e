"""Agent definition loading from parsed frontmatter."""

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from repo_agents.agents.types import AgentDefinition
from repo_agents.errors import AgentDefinitionError

logger = logging.getLogger(__name__)


def _format_errors(exc: ValidationError) -> str:
    parts: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(item) for item in err.get("loc", ())) or "agent"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


def load_agent_definition(data: Mapping[str, Any]) -> AgentDefinition:
    try:
        return AgentDefinition.model_validate(dict(data))
    except ValidationError as exc:
        raise AgentDefinitionError(f"Agent validation failed: {_format_errors(exc)}") from exc


def load_agent_file(path: str | Path) -> AgentDefinition:
    """Load an agent definition emitted by the markdown parser as JSON."""
    source = Path(path)
    try:
        raw = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise AgentDefinitionError(f"Failed to read agent definition {source}: {exc}") from exc
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise AgentDefinitionError(f"Agent definition {source} is not valid JSON") from exc
    if not isinstance(decoded, dict):
        raise AgentDefinitionError(f"Agent definition {source} must be a JSON object")
    agent = load_agent_definition(decoded)
    logger.debug("Loaded agent definition %s from %s", agent.name, source)
    return agent
