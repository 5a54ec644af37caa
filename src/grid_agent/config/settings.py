"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]

SafetyThreshold = Literal[
    "BLOCK_NONE",
    "BLOCK_ONLY_HIGH",
    "BLOCK_MEDIUM_AND_ABOVE",
    "BLOCK_LOW_AND_ABOVE",
]

# Provider harm categories keyed by the settings field that configures them.
SAFETY_CATEGORIES: dict[str, str] = {
    "safety_hate_speech": "HARM_CATEGORY_HATE_SPEECH",
    "safety_harassment": "HARM_CATEGORY_HARASSMENT",
    "safety_sexually_explicit": "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "safety_dangerous_content": "HARM_CATEGORY_DANGEROUS_CONTENT",
}


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "grid-agent"
    app_env: str = "dev"
    app_url: str = "https://retube.app"
    app_title: str = "Retube Grid Generator"

    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    planner_model: str = "anthropic/claude-3-opus"
    planner_max_tokens: int = Field(default=1000, ge=1)

    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    multimodal_model: str = "gemini-2.0-flash"

    perplexity_api_key: str = ""
    search_url: str = "https://api.perplexity.ai/search"
    search_model: str = "sonar-small-online"
    search_max_tokens: int = Field(default=1000, ge=1)
    search_focus: list[str] = Field(
        default_factory=lambda: ["videos", "multimedia", "content creators"]
    )

    reader_base_url: str = "https://r.jina.ai/"

    llm_timeout_s: float = Field(default=30.0, ge=0.5)
    llm_max_retries: int = Field(default=1, ge=0)
    llm_backoff_s: float = Field(default=0.2, ge=0.0)
    search_timeout_s: float = Field(default=20.0, ge=0.5)
    reader_timeout_s: float = Field(default=20.0, ge=0.5)

    # None leaves the category at the provider default.
    safety_hate_speech: SafetyThreshold | None = "BLOCK_MEDIUM_AND_ABOVE"
    safety_harassment: SafetyThreshold | None = "BLOCK_MEDIUM_AND_ABOVE"
    safety_sexually_explicit: SafetyThreshold | None = "BLOCK_MEDIUM_AND_ABOVE"
    safety_dangerous_content: SafetyThreshold | None = "BLOCK_MEDIUM_AND_ABOVE"

    model_config = SettingsConfigDict(
        env_prefix="GRID_AGENT_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_openrouter_api_key(self) -> str:
        return self.openrouter_api_key or os.getenv("OPENROUTER_API_KEY", "")

    def resolved_gemini_api_key(self) -> str:
        return self.gemini_api_key or os.getenv("GEMINI_API_KEY", "")

    def resolved_perplexity_api_key(self) -> str:
        return self.perplexity_api_key or os.getenv("PERPLEXITY_API_KEY", "")

    def llm_deadline_s(self) -> float:
        """Upper bound for one LLM call including its retries."""
        attempts = self.llm_max_retries + 1
        return self.llm_timeout_s * attempts + self.llm_backoff_s * self.llm_max_retries + 1.0

    def search_deadline_s(self) -> float:
        return self.search_timeout_s + 1.0

    def reader_deadline_s(self) -> float:
        return self.reader_timeout_s + 1.0

    def safety_settings(self) -> list[dict[str, str]]:
        settings: list[dict[str, str]] = []
        for field_name, category in SAFETY_CATEGORIES.items():
            threshold = getattr(self, field_name)
            if threshold:
                settings.append({"category": category, "threshold": threshold})
        return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
