"""Entry points: validate a request, run the Agent, describe capabilities."""

from __future__ import annotations

import logging
from typing import Any

from grid_agent.agent import Agent
from grid_agent.config.settings import Settings, get_settings
from grid_agent.models import INPUT_TYPES, InputType, Task
from grid_agent.tools.registry import provider_status

logger = logging.getLogger(__name__)


class EntryValidationError(ValueError):
    """Request rejected before any Task exists."""


class MissingFieldsError(EntryValidationError):
    def __init__(self) -> None:
        super().__init__("Missing required fields: input and inputType")


class InvalidInputTypeError(EntryValidationError):
    def __init__(self) -> None:
        super().__init__('inputType must be either "url" or "text"')


def validate_request(input_text: Any, input_type: Any) -> tuple[str, InputType]:
    if not isinstance(input_text, str) or not input_text.strip() or not input_type:
        raise MissingFieldsError()
    if input_type not in INPUT_TYPES:
        raise InvalidInputTypeError()
    return input_text, input_type


def process_prompt(
    input_text: Any,
    input_type: Any,
    *,
    agent: Agent | None = None,
    settings: Settings | None = None,
) -> Task:
    """Validate the request and run a new Task to its terminal state."""
    text, kind = validate_request(input_text, input_type)
    runner = agent or Agent.from_settings(settings)
    task = runner.create_task(text, kind)
    logger.info("task_run event=created task_id=%s input_type=%s", task.id, kind)
    return runner.execute(task)


def get_agent_status(settings: Settings | None = None) -> dict[str, Any]:
    resolved = settings or get_settings()
    return {
        "status": "available",
        "models": {
            "planner": resolved.planner_model,
            "multimodal": resolved.multimodal_model,
            "search": resolved.search_model,
        },
        "providers": provider_status(resolved),
    }
