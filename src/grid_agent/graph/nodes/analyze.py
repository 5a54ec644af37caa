"""Analyze node: multimodal model extracts themes, clusters, and color palettes."""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from grid_agent.graph.fallbacks import (
    MAX_PALETTES,
    MIN_PALETTES,
    fallback_analysis,
    fallback_palettes,
    log_fallback,
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
    ContentAnalysis,
    PaletteSuggestion,
    Plan,
    SearchResults,
    SemanticCluster,
    Task,
    Video,
)
from grid_agent.tools.gateway import call_with_timeout
from grid_agent.tools.results import AdapterFailure


def run(state: AgentState, ctx: StageContext) -> AgentState:
    task = ctx.task
    analyzer = ctx.adapters.analyzer
    plan = state["plan"]
    search_results = state["search_results"]
    videos = search_results.related_videos

    task.add_message(
        f"Analyzing visual and textual components of the {input_label(task)} "
        f"with {analyzer.model}"
    )
    task.add_message("Detecting patterns and relationships between content pieces")

    result = call_with_timeout(
        lambda: analyzer.complete(
            _prompt(task, plan, search_results),
            response_format="json",
        ),
        timeout_s=ctx.settings.llm_deadline_s(),
        label="analyzer",
    )

    if isinstance(result, AdapterFailure):
        log_fallback("analyze", task.id, result.reason)
        analysis = _fallback(task, videos)
    else:
        try:
            analysis = analysis_from_completion(result.payload, videos=videos)
        except (ResponseParseError, ValidationError) as exc:
            log_fallback("analyze", task.id, f"unparseable analysis: {exc}")
            analysis = _fallback(task, videos)
            analysis.raw_analysis = result.payload

    task.add_message(
        f"Identified {len(analysis.content_analysis.themes)} themes and "
        f"{len(analysis.semantic_clusters)} semantic clusters"
    )
    task.add_message(f"Suggested {len(analysis.color_palettes)} color palettes")
    return {"analysis": analysis}


def _fallback(task: Task, videos: list[Video]) -> Analysis:
    """Fallback analysis with its clusters narrowed to the candidate videos."""
    analysis = fallback_analysis(task.input, task.input_type)
    known_ids = {video.id for video in videos}
    clusters = [
        SemanticCluster(
            name=cluster.name,
            videos=[video_id for video_id in cluster.videos if video_id in known_ids],
        )
        for cluster in analysis.semantic_clusters
    ]
    analysis.semantic_clusters = [cluster for cluster in clusters if cluster.videos]
    return analysis


def analysis_from_completion(text: str, *, videos: list[Video]) -> Analysis:
    """Normalize a model's analysis JSON against the candidate videos.

    Cluster references to unknown video ids are dropped, empty clusters are
    removed, and palettes are padded from the fallback set (or truncated) so
    there are always between three and five.
    """
    payload = extract_json(text)
    nested = first_value(payload, "contentAnalysis", "content_analysis", "analysis")
    section = nested if isinstance(nested, dict) else payload

    content_analysis = ContentAnalysis(
        themes=string_list(first_value(section, "themes", "coreThemes", "core_themes")),
        visual_elements=string_list(
            first_value(section, "visualElements", "visual_elements")
        ),
        audio_elements=string_list(first_value(section, "audioElements", "audio_elements")),
        emotional_tone=_text(first_value(section, "emotionalTone", "emotional_tone", "tone")),
        pacing=_text(first_value(section, "pacing")),
    )
    clusters = _clusters(
        first_value(payload, "semanticClusters", "semantic_clusters", "clusters"),
        known_ids={video.id for video in videos},
    )
    palettes = _palettes(first_value(payload, "colorPalettes", "color_palettes", "palettes"))

    if not content_analysis.themes and not clusters and not palettes:
        raise ResponseParseError("analysis had no themes, clusters, or palettes")

    if not clusters and videos:
        name = content_analysis.themes[0].title() if content_analysis.themes else "Highlights"
        clusters = [SemanticCluster(name=name, videos=[video.id for video in videos])]

    return Analysis(
        content_analysis=content_analysis,
        semantic_clusters=clusters,
        color_palettes=_pad_palettes(palettes),
    )


def _clusters(raw: Any, *, known_ids: set[str]) -> list[SemanticCluster]:
    if not isinstance(raw, list):
        return []
    clusters: list[SemanticCluster] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = _text(first_value(item, "name", "title", "label"), default="")
        if not name:
            continue
        refs = first_value(item, "videos", "videoIds", "video_ids")
        video_ids: list[str] = []
        for ref in refs if isinstance(refs, list) else []:
            video_id = ref.get("id") if isinstance(ref, dict) else ref
            video_id = str(video_id) if video_id is not None else ""
            if video_id in known_ids and video_id not in video_ids:
                video_ids.append(video_id)
        if video_ids:
            clusters.append(SemanticCluster(name=name, videos=video_ids))
    return clusters


def _palettes(raw: Any) -> list[PaletteSuggestion]:
    if not isinstance(raw, list):
        return []
    palettes: list[PaletteSuggestion] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = _text(first_value(item, "name", "title"), default="")
        colors = string_list(first_value(item, "colors", "colours", "hex"))
        if name and colors:
            mood = _text(first_value(item, "mood", "feeling", "description"), default="")
            palettes.append(PaletteSuggestion(name=name, colors=colors, mood=mood))
    return palettes


def _pad_palettes(palettes: list[PaletteSuggestion]) -> list[PaletteSuggestion]:
    output = list(palettes[:MAX_PALETTES])
    names = {palette.name.lower() for palette in output}
    for palette in fallback_palettes():
        if len(output) >= MIN_PALETTES:
            break
        if palette.name.lower() not in names:
            output.append(palette)
            names.add(palette.name.lower())
    return output


def _prompt(task: Task, plan: Plan, search_results: SearchResults) -> str:
    videos = [video.model_dump(mode="json") for video in search_results.related_videos]
    return "\n".join(
        [
            "Analyze the following content and extract key themes, visual elements, "
            "and semantic relationships.",
            "",
            f"Input ({task.input_type}): {task.input}",
            f"Planned themes: {', '.join(plan.themes) or 'none'}",
            f"Clustering criteria: {', '.join(plan.cluster_criteria) or 'none'}",
            f"Related videos: {json.dumps(videos, indent=2)}",
            "",
            "Respond with a JSON object containing:",
            '- "contentAnalysis": {"themes": [...], "visualElements": [...], '
            '"audioElements": [...], "emotionalTone": "...", "pacing": "..."}',
            '- "semanticClusters": [{"name": "...", "videos": ["<video id>", ...]}] '
            "using only the video ids listed above",
            '- "colorPalettes": 3 to 5 entries of {"name": "...", "colors": ["#RRGGBB", ...], '
            '"mood": "..."}',
        ]
    )


def _text(value: Any, *, default: str = "unknown") -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, list):
        joined = ", ".join(string_list(value))
        return joined or default
    return default
