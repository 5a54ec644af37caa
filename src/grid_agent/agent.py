"""Agent: drives one Task through the staged grid pipeline."""

from __future__ import annotations

import logging
from types import ModuleType

from grid_agent.config.settings import Settings, get_settings
from grid_agent.graph.nodes import analyze, generate, plan, search
from grid_agent.graph.state import AgentState, StageContext, initial_state
from grid_agent.graph.workflow import STAGES, StageNode, build_graph
from grid_agent.models import InputType, Task, TaskResult
from grid_agent.tools.registry import AdapterSet, build_adapters

logger = logging.getLogger(__name__)

_STAGE_MODULES: dict[str, ModuleType] = {
    "planning": plan,
    "searching": search,
    "analyzing": analyze,
    "generating": generate,
}


class Agent:
    """Runs the plan, search, analyze, and generate stages for a Task.

    Settings and adapters are fixed at construction, so a single Agent can
    execute several Tasks, including from different threads. Stage-level
    problems are absorbed by each stage's fallback; anything else that
    escapes a stage fails the Task. ``execute`` never raises.
    """

    def __init__(self, *, settings: Settings, adapters: AdapterSet) -> None:
        self.settings = settings
        self.adapters = adapters

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> Agent:
        resolved = settings or get_settings()
        return cls(settings=resolved, adapters=build_adapters(resolved))

    def create_task(self, input_text: str, input_type: InputType) -> Task:
        return Task(input=input_text, input_type=input_type)

    def execute(self, task: Task) -> Task:
        if task.status != "pending":
            logger.warning(
                "task_run event=skipped task_id=%s status=%s", task.id, task.status
            )
            return task

        logger.info(
            "task_run event=start task_id=%s input_type=%s status=%s",
            task.id,
            task.input_type,
            task.status,
        )
        try:
            workflow = build_graph(self._nodes(task))
            final_state: AgentState = workflow.invoke(initial_state(task))
            task.complete(
                TaskResult(
                    plan=final_state["plan"],
                    search_results=final_state["search_results"],
                    analysis=final_state["analysis"],
                    grid=final_state["grid"],
                )
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "task_run event=failed task_id=%s status=%s", task.id, task.status
            )
            if not task.is_terminal:
                task.fail(str(exc) or "Unknown error occurred")
            return task

        logger.info(
            "task_run event=completed task_id=%s status=%s messages=%d clusters=%d",
            task.id,
            task.status,
            len(task.messages),
            len(task.result.grid.clusters) if task.result else 0,
        )
        return task

    def _nodes(self, task: Task) -> dict[str, StageNode]:
        ctx = StageContext(task=task, settings=self.settings, adapters=self.adapters)
        return {stage: self._stage_node(stage, ctx) for stage in STAGES}

    @staticmethod
    def _stage_node(stage: str, ctx: StageContext) -> StageNode:
        module = _STAGE_MODULES[stage]

        def node(state: AgentState) -> AgentState:
            ctx.task.transition(stage)
            logger.info("task_run event=stage task_id=%s stage=%s", ctx.task.id, stage)
            return module.run(state, ctx)

        return node
