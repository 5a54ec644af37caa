"""Deterministic stand-ins for every stage output.

Each generator looks only at the task input and input type (never the
network) and returns the same record type the real stage produces, so later
stages and API consumers handle both paths identically. Grid ids and
timestamps are the only values that differ between two runs.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from grid_agent.models import (
    Analysis,
    ColorPalette,
    ContentAnalysis,
    Grid,
    GridCluster,
    GridVideo,
    InputType,
    PaletteSuggestion,
    Plan,
    SearchResults,
    SemanticCluster,
    Video,
)

logger = logging.getLogger(__name__)

FALLBACK_DESCRIPTION = (
    "An AI-generated semantic grid exploring interconnected themes and perspectives."
)
FALLBACK_TAGS: tuple[str, ...] = ("ai-generated", "semantic-analysis", "multimodal")
MIN_PALETTES = 3
MAX_PALETTES = 5
MIN_PALETTE_COLORS = 3

_FALLBACK_VIDEOS: tuple[tuple[str, str, str, str], ...] = (
    ("v1", "Introduction to the Topic", "YouTube", "https://youtube.com/watch?v=example1"),
    ("v2", "Deep Dive Analysis", "Vimeo", "https://vimeo.com/example2"),
    ("v3", "Expert Perspective", "YouTube", "https://youtube.com/watch?v=example3"),
    ("v4", "Historical Context", "TikTok", "https://tiktok.com/@example4"),
    ("v5", "Future Trends", "Instagram", "https://instagram.com/p/example5"),
)

_FALLBACK_CLUSTERS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Theoretical Foundations", ("v1", "v3")),
    ("Practical Applications", ("v2", "v5")),
    ("Cultural Impact", ("v4",)),
)

_FALLBACK_PALETTES: tuple[tuple[str, tuple[str, ...], str], ...] = (
    (
        "Midnight Focus",
        ("#0F172A", "#1E293B", "#334155", "#94A3B8", "#E2E8F0"),
        "calm and concentrated",
    ),
    (
        "Warm Analog",
        ("#3E2723", "#8D6E63", "#D7CCC8", "#FFB74D", "#FFF3E0"),
        "nostalgic and cozy",
    ),
    (
        "Electric Dusk",
        ("#1A1A2E", "#16213E", "#0F3460", "#E94560", "#F5F5F5"),
        "energetic and modern",
    ),
)

_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s+(.+?)\s*#*\s*$")
_BOLD_LINE_RE = re.compile(r"^\s*\*\*(.+?)\*\*:?\s*$")
_LIST_LINE_RE = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s+(.+?)\s*$")
_TITLE_LINE_RE = re.compile(r"^\s*title\s*:\s*(.+?)\s*$", re.IGNORECASE)


def grid_title(input_text: str, input_type: InputType) -> str:
    if input_type == "url":
        return "Explorations From Content Analysis"
    text = input_text.strip()
    return f"{text[:30]}..." if len(text) > 30 else text


def fallback_plan(input_text: str, input_type: InputType) -> Plan:
    request_line = (
        f"Analyze the content at URL: {input_text}"
        if input_type == "url"
        else f"Create a grid for topic: {input_text}"
    )
    content = "\n".join(
        [
            f"Task: {request_line}",
            "",
            "1. Understanding the request",
            "2. Key themes to explore",
            "3. Types of videos to include",
            "4. Potential cluster categories",
            "5. Multimodal analysis requirements",
        ]
    )
    return Plan(
        overview=request_line,
        steps=[
            "Extract key themes from the input",
            "Search for semantically similar content",
            "Group content into meaningful clusters",
            "Create a coherent grid structure",
        ],
        themes=["innovation", "design", "technology", "creativity"],
        content_types=["video", "article", "image", "audio"],
        cluster_criteria=["topic", "style", "platform", "creator"],
        content=content,
    )


def fallback_videos() -> list[Video]:
    return [
        Video(id=video_id, title=title, platform=platform, url=url)
        for video_id, title, platform, url in _FALLBACK_VIDEOS
    ]


def fallback_search_results(input_text: str, input_type: InputType) -> SearchResults:
    return SearchResults(related_videos=fallback_videos())


def fallback_palettes() -> list[PaletteSuggestion]:
    return [
        PaletteSuggestion(name=name, colors=list(colors), mood=mood)
        for name, colors, mood in _FALLBACK_PALETTES
    ]


def fallback_analysis(input_text: str, input_type: InputType) -> Analysis:
    return Analysis(
        content_analysis=ContentAnalysis(
            themes=["innovation", "design", "technology", "society", "culture"],
            visual_elements=["minimalism", "geometric patterns", "high contrast", "monochrome"],
            audio_elements=["ambient", "electronic", "spoken word", "silence"],
            emotional_tone="contemplative",
            pacing="methodical",
        ),
        semantic_clusters=[
            SemanticCluster(name=name, videos=list(video_ids))
            for name, video_ids in _FALLBACK_CLUSTERS
        ],
        color_palettes=fallback_palettes(),
    )


def fallback_grid(input_text: str, input_type: InputType) -> Grid:
    videos = {video.id: video for video in fallback_videos()}
    clusters = [
        GridCluster(
            name=name,
            videos=[grid_video_for(videos[video_id]) for video_id in video_ids],
        )
        for name, video_ids in _FALLBACK_CLUSTERS
    ]
    return Grid(
        title=grid_title(input_text, input_type),
        description=FALLBACK_DESCRIPTION,
        clusters=clusters,
        tags=list(FALLBACK_TAGS),
        color_palette=choose_palette(None),
    )


def choose_palette(analysis: Analysis | None) -> ColorPalette:
    """First suggested palette with enough colors, else the first fallback palette."""
    candidates = list(analysis.color_palettes) if analysis else []
    candidates.extend(fallback_palettes())
    for suggestion in candidates:
        colors = [color for color in suggestion.colors if color.strip()]
        if len(colors) >= MIN_PALETTE_COLORS:
            return ColorPalette(name=suggestion.name, colors=colors)
    name, colors, _ = _FALLBACK_PALETTES[0]
    return ColorPalette(name=name, colors=list(colors))


def grid_from_text(
    text: str,
    *,
    input_text: str,
    input_type: InputType,
    videos: list[Video],
    analysis: Analysis | None = None,
) -> Grid:
    """Best-effort Grid from a prose completion.

    Markdown headings, bold lines, and list items name the clusters; the first
    ``#`` heading or ``Title:`` line names the grid. Candidate videos are dealt
    round-robin across the clusters. Text without usable headings returns the
    fallback grid.
    """
    title: str | None = None
    names: list[str] = []
    description: str | None = None
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        title_match = _TITLE_LINE_RE.match(stripped)
        heading_match = _HEADING_RE.match(stripped)
        if title is None and (title_match or heading_match):
            title = (title_match or heading_match).group(1).strip("*_` ")
            continue
        label_match = (
            heading_match or _BOLD_LINE_RE.match(stripped) or _LIST_LINE_RE.match(stripped)
        )
        if label_match:
            label = _clean_label(label_match.group(1))
            if 0 < len(label) <= 60 and label not in names:
                names.append(label)
            continue
        if description is None and len(stripped) > 20:
            description = stripped

    pool = videos or fallback_videos()
    names = names[: min(6, len(pool))]
    if not names:
        return fallback_grid(input_text, input_type)

    buckets: list[list[GridVideo]] = [[] for _ in names]
    for index, video in enumerate(pool):
        buckets[index % len(names)].append(grid_video_for(video))

    tags = [_slug(theme) for theme in (analysis.content_analysis.themes if analysis else [])]
    tags.extend(FALLBACK_TAGS)
    return Grid(
        title=title or grid_title(input_text, input_type),
        description=description or FALLBACK_DESCRIPTION,
        clusters=[GridCluster(name=name, videos=bucket) for name, bucket in zip(names, buckets)],
        tags=unique(tag for tag in tags if tag),
        color_palette=choose_palette(analysis),
    )


def unique(values: Iterable[str]) -> list[str]:
    output: list[str] = []
    seen: set[str] = set()
    for value in values:
        key = value.lower()
        if key in seen:
            continue
        seen.add(key)
        output.append(value)
    return output


def grid_video_for(video: Video) -> GridVideo:
    return GridVideo(id=video.id, title=video.title, platform=video.platform)


def _clean_label(raw: str) -> str:
    label = raw.strip().strip("*_`").strip()
    return label.split(":", 1)[0].strip() if ":" in label else label


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def log_fallback(stage: str, task_id: str, reason: str) -> None:
    """Operator-facing record that a stage substituted fallback output."""
    logger.warning("stage_fallback stage=%s task_id=%s reason=%s", stage, task_id, reason)
