"""FastAPI app entrypoint for grid-agent."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from grid_agent.agent import Agent
from grid_agent.config.settings import Settings, get_settings
from grid_agent.models import Task, WireModel
from grid_agent.pipeline import EntryValidationError, get_agent_status, process_prompt

logger = logging.getLogger(__name__)


class AgentRequest(BaseModel):
    # Both fields are optional here so missing values reach the entry
    # validation and get its 400 message instead of a 422.
    model_config = ConfigDict(populate_by_name=True)

    input: str | None = None
    input_type: str | None = Field(default=None, alias="inputType")


class AgentResponse(WireModel):
    task: Task


def create_app(
    *,
    settings_override: Settings | None = None,
    agent: Agent | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()

    app = FastAPI(title=settings.app_name)
    app.state.settings = settings
    app.state.agent = agent or Agent.from_settings(settings)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/api/agent")
    def agent_status(request: Request) -> dict[str, Any]:
        return get_agent_status(request.app.state.settings)

    @app.post("/api/agent", response_model=AgentResponse)
    def run_agent(payload: AgentRequest, request: Request) -> AgentResponse:
        try:
            task = process_prompt(
                payload.input,
                payload.input_type,
                agent=request.app.state.agent,
            )
        except EntryValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except Exception as exc:  # noqa: BLE001
            logger.exception("api_request event=failed route=/api/agent")
            raise HTTPException(status_code=500, detail="Failed to process request") from exc

        logger.info(
            "api_request event=completed route=/api/agent task_id=%s status=%s",
            task.id,
            task.status,
        )
        return AgentResponse(task=task)

    return app


# Module-level app for `uvicorn grid_agent.api.main:app`.
app = create_app()
