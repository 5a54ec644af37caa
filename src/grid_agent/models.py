"""Pydantic models shared across the agent, its stages, fallbacks, and the API.

Beginner terms used in this file:
- Model: a typed schema class used for validation/serialization.
- Literal: restricts a field to a fixed set of allowed string values.
- Alias: the camelCase name a field uses on the wire (``inputType``), while
  Python code keeps snake_case (``input_type``).
- Field(default_factory=...): creates a fresh default object per instance.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

InputType = Literal["url", "text"]
INPUT_TYPES: tuple[str, ...] = ("url", "text")

# Task lifecycle states, in the only order a run may visit them.
TaskStatus = Literal[
    "pending",
    "planning",
    "searching",
    "analyzing",
    "generating",
    "completed",
    "failed",
]
STAGE_ORDER: tuple[str, ...] = (
    "pending",
    "planning",
    "searching",
    "analyzing",
    "generating",
    "completed",
)
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})


class TaskStateError(RuntimeError):
    """Raised when a Task mutation would break its lifecycle invariants."""


class WireModel(BaseModel):
    """Base model that reads either spelling and writes camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Video(WireModel):
    """One candidate video found during search."""

    id: str
    title: str
    platform: str
    url: str = ""


class Creator(WireModel):
    name: str
    platform: str
    url: str | None = None


class Citation(WireModel):
    text: str = ""
    url: str


class Plan(WireModel):
    """Structured plan produced by the planning stage."""

    overview: str = ""
    steps: list[str] = Field(default_factory=list)
    themes: list[str] = Field(default_factory=list)
    content_types: list[str] = Field(default_factory=list)
    cluster_criteria: list[str] = Field(default_factory=list)
    # Narrative form of the plan, kept for display and for later prompts.
    content: str = ""


class SearchResults(WireModel):
    """Candidate material gathered by the search stage."""

    content: str | None = None
    links: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)
    related_videos: list[Video] = Field(default_factory=list)
    creators: list[Creator] = Field(default_factory=list)
    trends: list[str] = Field(default_factory=list)
    answer: str | None = None
    citations: list[Citation] = Field(default_factory=list)


class ContentAnalysis(WireModel):
    themes: list[str] = Field(default_factory=list)
    visual_elements: list[str] = Field(default_factory=list)
    audio_elements: list[str] = Field(default_factory=list)
    emotional_tone: str = "unknown"
    pacing: str = "unknown"


class SemanticCluster(WireModel):
    """Named cluster that references candidate video ids."""

    name: str
    videos: list[str] = Field(default_factory=list)


class PaletteSuggestion(WireModel):
    name: str
    colors: list[str] = Field(default_factory=list)
    mood: str = ""


class Analysis(WireModel):
    """Output of the analysis stage."""

    content_analysis: ContentAnalysis = Field(default_factory=ContentAnalysis)
    semantic_clusters: list[SemanticCluster] = Field(default_factory=list)
    color_palettes: list[PaletteSuggestion] = Field(default_factory=list)
    raw_analysis: str | None = None


class GridVideo(WireModel):
    id: str
    title: str
    platform: str = "unknown"


class GridCluster(WireModel):
    name: str
    videos: list[GridVideo] = Field(default_factory=list)


class ColorPalette(WireModel):
    name: str
    colors: list[str] = Field(default_factory=list)


class Grid(WireModel):
    """Final artifact: clustered videos plus tags and one color palette."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    description: str = ""
    clusters: list[GridCluster] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    color_palette: ColorPalette
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))


class TaskResult(WireModel):
    """Outputs of every stage, attached to a completed Task."""

    plan: Plan
    search_results: SearchResults
    analysis: Analysis
    grid: Grid


class Task(WireModel):
    """Mutable record of one pipeline run.

    Only the methods below change a Task. They enforce the lifecycle rules:
    status moves forward in stage order (or jumps to failed), messages only
    grow, and a terminal Task is never touched again.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), frozen=True)
    input: str = Field(frozen=True)
    input_type: InputType = Field(frozen=True)
    status: TaskStatus = "pending"
    messages: list[str] = Field(default_factory=list)
    result: TaskResult | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def add_message(self, message: str) -> None:
        self._ensure_open()
        self.messages.append(message)
        self.updated_at = datetime.now(tz=UTC)

    def transition(self, status: TaskStatus) -> None:
        """Advance to the next stage status."""
        self._ensure_open()
        if status == "failed":
            raise TaskStateError("Use fail() to move a task to failed.")
        if status == "completed":
            raise TaskStateError("Use complete() to move a task to completed.")
        self._advance(status)

    def complete(self, result: TaskResult) -> None:
        self._ensure_open()
        if self.status != "generating":
            raise TaskStateError(f"Cannot complete a task from status '{self.status}'.")
        self.result = result
        self.error = None
        self._advance("completed")

    def fail(self, error: str) -> None:
        self._ensure_open()
        self.result = None
        self.error = error or "Unknown error occurred"
        self.status = "failed"
        self.updated_at = datetime.now(tz=UTC)

    def _advance(self, status: str) -> None:
        current = STAGE_ORDER.index(self.status)
        target = STAGE_ORDER.index(status)
        if target != current + 1:
            raise TaskStateError(f"Invalid status transition: {self.status} -> {status}")
        self.status = status
        self.updated_at = datetime.now(tz=UTC)

    def _ensure_open(self) -> None:
        if self.is_terminal:
            raise TaskStateError(f"Task {self.id} is already {self.status}.")
