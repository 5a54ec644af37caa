"""Generate node: synthesize the final Grid from everything gathered so far."""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from grid_agent.graph.fallbacks import (
    FALLBACK_TAGS,
    MIN_PALETTE_COLORS,
    choose_palette,
    fallback_grid,
    grid_from_text,
    grid_title,
    grid_video_for,
    log_fallback,
    unique,
)
from grid_agent.graph.response_parser import (
    ResponseParseError,
    extract_json,
    first_value,
    string_list,
)
from grid_agent.graph.state import AgentState, StageContext, input_label
from grid_agent.models import (
    Analysis,
    ColorPalette,
    Grid,
    GridCluster,
    GridVideo,
    InputType,
    Task,
    Video,
)
from grid_agent.tools.gateway import call_with_timeout
from grid_agent.tools.results import AdapterFailure

SYSTEM_PROMPT = (
    "You are an AI assistant that creates structured semantic grids for organizing "
    "content. Create a final grid structure based on the analysis provided. The grid "
    "must have: 1) a concise but descriptive 'title', 2) a brief 'description', "
    "3) 'clusters', each with a 'name' and a list of 'videos' given as "
    '{"id", "title", "platform"} objects taken from the content items, 4) a list of '
    "'tags' for categorization, and 5) one 'colorPalette' with a 'name' and at least "
    "three 'colors'. Respond with JSON only, without any explanatory text."
)


def run(state: AgentState, ctx: StageContext) -> AgentState:
    task = ctx.task
    analysis = state["analysis"]
    videos = state["search_results"].related_videos

    task.add_message(
        f"Generating semantic grid structure with optimized clusters for {input_label(task)}"
    )
    task.add_message("Finalizing grid with metadata and relationships")

    result = call_with_timeout(
        lambda: ctx.adapters.planner.complete(
            _user_prompt(task, state),
            system_prompt=SYSTEM_PROMPT,
            response_format="json",
        ),
        timeout_s=ctx.settings.llm_deadline_s(),
        label="generator",
    )

    if isinstance(result, AdapterFailure):
        log_fallback("generate", task.id, result.reason)
        grid = fallback_grid(task.input, task.input_type)
    else:
        try:
            grid = grid_from_completion(
                result.payload,
                input_text=task.input,
                input_type=task.input_type,
                videos=videos,
                analysis=analysis,
            )
        except (ResponseParseError, ValidationError) as exc:
            log_fallback("generate", task.id, f"structuring grid from text: {exc}")
            grid = grid_from_text(
                result.payload,
                input_text=task.input,
                input_type=task.input_type,
                videos=videos,
                analysis=analysis,
            )

    video_count = sum(len(cluster.videos) for cluster in grid.clusters)
    task.add_message(
        f'Grid "{grid.title}" assembled with {len(grid.clusters)} clusters '
        f"and {video_count} videos"
    )
    return {"grid": grid}


def grid_from_completion(
    text: str,
    *,
    input_text: str,
    input_type: InputType,
    videos: list[Video],
    analysis: Analysis | None = None,
) -> Grid:
    """Parse the model's grid JSON and reconcile it with the candidate videos."""
    payload = extract_json(text)
    nested = first_value(payload, "grid")
    if isinstance(nested, dict):
        payload = nested

    known = {video.id: video for video in videos}
    clusters = _clusters(first_value(payload, "clusters", "semanticClusters"), known=known)
    if not clusters and analysis is not None:
        clusters = [
            GridCluster(
                name=cluster.name,
                videos=[
                    grid_video_for(known[video_id])
                    for video_id in cluster.videos
                    if video_id in known
                ],
            )
            for cluster in analysis.semantic_clusters
        ]
        clusters = [cluster for cluster in clusters if cluster.videos]
    if not clusters:
        raise ResponseParseError("grid had no clusters with videos")

    title = first_value(payload, "title", "name")
    description = first_value(payload, "description", "summary")
    tags = unique(string_list(first_value(payload, "tags", "keywords")))
    if not isinstance(title, str) or not title.strip():
        title = grid_title(input_text, input_type)
    return Grid(
        title=title.strip(),
        description=description.strip() if isinstance(description, str) else "",
        clusters=clusters,
        tags=tags or list(FALLBACK_TAGS),
        color_palette=_palette(
            first_value(payload, "colorPalette", "color_palette", "palette"), analysis
        ),
    )


def _clusters(raw: Any, *, known: dict[str, Video]) -> list[GridCluster]:
    if not isinstance(raw, list):
        return []
    clusters: list[GridCluster] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = first_value(item, "name", "title")
        if not isinstance(name, str) or not name.strip():
            continue
        refs = first_value(item, "videos", "items")
        grid_videos: list[GridVideo] = []
        seen: set[str] = set()
        for ref in refs if isinstance(refs, list) else []:
            grid_video = _resolve_video(ref, known)
            if grid_video is not None and grid_video.id not in seen:
                seen.add(grid_video.id)
                grid_videos.append(grid_video)
        if grid_videos:
            clusters.append(GridCluster(name=name.strip(), videos=grid_videos))
    return clusters


def _resolve_video(ref: Any, known: dict[str, Video]) -> GridVideo | None:
    if isinstance(ref, (str, int)):
        video = known.get(str(ref))
        return grid_video_for(video) if video else None
    if not isinstance(ref, dict):
        return None
    video_id = ref.get("id")
    video_id = str(video_id) if video_id is not None else ""
    if video_id in known:
        return grid_video_for(known[video_id])
    title = ref.get("title")
    # Model-invented entries are kept only when they carry an id and a title.
    if video_id and isinstance(title, str) and title.strip():
        platform = ref.get("platform")
        return GridVideo(
            id=video_id,
            title=title.strip(),
            platform=platform if isinstance(platform, str) and platform else "unknown",
        )
    return None


def _palette(raw: Any, analysis: Analysis | None) -> ColorPalette:
    if isinstance(raw, dict):
        name = first_value(raw, "name", "title")
        colors = string_list(first_value(raw, "colors", "colours"))
        if isinstance(name, str) and name.strip() and len(colors) >= MIN_PALETTE_COLORS:
            return ColorPalette(name=name.strip(), colors=colors)
    return choose_palette(analysis)


def _user_prompt(task: Task, state: AgentState) -> str:
    analysis = state["analysis"].model_dump(mode="json", by_alias=True, exclude={"raw_analysis"})
    videos = [
        video.model_dump(mode="json", by_alias=True)
        for video in state["search_results"].related_videos
    ]
    plan = state["plan"]
    return "\n".join(
        [
            f"Create a semantic grid for: {task.input}",
            "",
            f"Plan overview: {plan.overview or plan.content[:500]}",
            "",
            "Here is the analysis:",
            json.dumps(analysis, indent=2),
            "",
            "Here are the content items:",
            json.dumps(videos, indent=2),
        ]
    )
