"""State machine loader for JSON-defined animation states."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from ..animation import StateMachineDefinition
from ..config.settings import PROJECT_ROOT, STATE_MACHINE_CONFIG_DIR

logger = logging.getLogger(__name__)


def load_state_machine_definition(path: Path | str) -> StateMachineDefinition:
    """
    Load an animation state machine definition from disk.

    Relative paths are tried against the state machine config directory
    first, then the project root.

    Raises:
        FileNotFoundError: if no file exists at the path
        ValueError: if the definition is invalid
    """
    config_path = Path(path)
    if not config_path.is_absolute():
        candidate = STATE_MACHINE_CONFIG_DIR / config_path
        config_path = candidate if candidate.exists() else PROJECT_ROOT / config_path
    config_path = config_path.resolve()

    if not config_path.exists():
        raise FileNotFoundError(f"State machine file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)

    definition = StateMachineDefinition.from_dict(payload)
    logger.info("Loaded state machine '%s' with %d states", definition.name, len(definition.states))
    return definition
