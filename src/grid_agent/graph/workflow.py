"""LangGraph workflow assembly for the grid pipeline."""

from __future__ import annotations

from collections.abc import Callable, Mapping

from langgraph.graph import END, StateGraph

from grid_agent.graph.state import AgentState

# Node names double as Task statuses; they must not collide with state keys.
STAGES: tuple[str, ...] = ("planning", "searching", "analyzing", "generating")

StageNode = Callable[[AgentState], AgentState]


def build_graph(nodes: Mapping[str, StageNode]):
    missing = [stage for stage in STAGES if stage not in nodes]
    if missing:
        raise ValueError(f"Missing graph nodes: {', '.join(missing)}")

    graph = StateGraph(AgentState)
    for stage in STAGES:
        graph.add_node(stage, nodes[stage])

    graph.set_entry_point(STAGES[0])
    for current, following in zip(STAGES, STAGES[1:]):
        graph.add_edge(current, following)
    graph.add_edge(STAGES[-1], END)

    return graph.compile()
