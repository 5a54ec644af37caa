"""Plan node: ask the planner model for a structured plan, else use the fallback plan."""

from __future__ import annotations

from pydantic import ValidationError

from grid_agent.graph.fallbacks import fallback_plan, log_fallback
from grid_agent.graph.response_parser import (
    ResponseParseError,
    extract_json,
    first_value,
    string_list,
)
from grid_agent.graph.state import AgentState, StageContext, input_label
from grid_agent.models import Plan, Task
from grid_agent.tools.gateway import call_with_timeout
from grid_agent.tools.results import AdapterFailure

SYSTEM_PROMPT = (
    "You are an AI assistant that creates structured plans for analyzing content and "
    "creating semantic video grids. Focus on identifying: 1) key themes and concepts, "
    "2) types of content to search for, 3) visual and audio elements to analyze, "
    "4) potential grid structure and organization, 5) criteria for clustering related "
    "content. Return JSON only with keys 'overview' (string), 'steps' (ordered list of "
    "strings), 'themes', 'contentTypes', and 'clusterCriteria' (lists of strings)."
)


def run(state: AgentState, ctx: StageContext) -> AgentState:
    task = ctx.task
    task.add_message("Planning approach to analyze content and create semantic relationships")
    task.add_message(f"Drafting a plan for {input_label(task)}")

    result = call_with_timeout(
        lambda: ctx.adapters.planner.complete(
            _user_prompt(task),
            system_prompt=SYSTEM_PROMPT,
            response_format="json",
        ),
        timeout_s=ctx.settings.llm_deadline_s(),
        label="planner",
    )

    if isinstance(result, AdapterFailure):
        log_fallback("plan", task.id, result.reason)
        plan = fallback_plan(task.input, task.input_type)
    else:
        try:
            plan = plan_from_completion(result.payload)
        except (ResponseParseError, ValidationError) as exc:
            log_fallback("plan", task.id, f"unparseable plan: {exc}")
            plan = fallback_plan(task.input, task.input_type)

    themes = ", ".join(plan.themes[:3]) if plan.themes else "none yet"
    task.add_message(f"Plan ready with {len(plan.steps)} steps; key themes: {themes}")
    return {"plan": plan}


def plan_from_completion(text: str) -> Plan:
    payload = extract_json(text)
    plan_payload = first_value(payload, "plan")
    if isinstance(plan_payload, dict):
        payload = plan_payload

    steps = string_list(first_value(payload, "steps", "plan_steps", "planSteps"))
    themes = string_list(first_value(payload, "themes", "keyThemes", "key_themes"))
    if not steps and not themes:
        raise ResponseParseError("plan had neither steps nor themes")

    overview = first_value(payload, "overview", "summary", "goal")
    return Plan(
        overview=overview if isinstance(overview, str) else "",
        steps=steps,
        themes=themes,
        content_types=string_list(first_value(payload, "contentTypes", "content_types")),
        cluster_criteria=string_list(
            first_value(
                payload,
                "clusterCriteria",
                "cluster_criteria",
                "clusteringCriteria",
                "clustering_criteria",
            )
        ),
        content=text,
    )


def _user_prompt(task: Task) -> str:
    if task.input_type == "url":
        return (
            f"I need a plan to analyze the content at: {task.input} "
            "and create a semantic video grid based on it."
        )
    return f"I need a plan to create a semantic video grid based on this topic: {task.input}"
