"""JSON persistence for the deduplication state artifact."""

import json
import logging
import os
from pathlib import Path

from repo_agents.dedup.store import DeduplicationState, init_deduplication_state

logger = logging.getLogger(__name__)


def load_state(path: str | Path) -> DeduplicationState:
    """Load persisted state; a missing or corrupt artifact starts from empty."""
    source = Path(path)
    if not source.exists():
        return init_deduplication_state()
    try:
        decoded = json.loads(source.read_text(encoding="utf-8"))
        if not isinstance(decoded, dict):
            raise ValueError("state artifact must be a JSON object")
        return DeduplicationState.from_dict(decoded)
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable deduplication state %s: %s", source, exc)
        return init_deduplication_state()


def save_state(path: str | Path, state: DeduplicationState) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_suffix(target.suffix + ".tmp")
    tmp.write_text(json.dumps(state.to_dict(), indent=2) + "\n", encoding="utf-8")
    os.replace(tmp, target)
    return target
