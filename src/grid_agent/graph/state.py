"""Typed state contract for the grid workflow."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypedDict

from grid_agent.config.settings import Settings
from grid_agent.models import Analysis, Grid, Plan, SearchResults, Task
from grid_agent.tools.registry import AdapterSet


class AgentState(TypedDict, total=False):
    task_id: str
    user_input: str
    input_type: str
    plan: Plan
    search_results: SearchResults
    analysis: Analysis
    grid: Grid


def initial_state(task: Task) -> AgentState:
    return {
        "task_id": task.id,
        "user_input": task.input,
        "input_type": task.input_type,
    }


def input_label(task: Task) -> str:
    return "URL input" if task.input_type == "url" else "text input"


@dataclass(frozen=True)
class StageContext:
    """Everything a stage may touch besides the graph state."""

    task: Task
    settings: Settings
    adapters: AdapterSet
