"""Adapter set construction from runtime settings."""

from __future__ import annotations

from dataclasses import dataclass

from grid_agent.config.settings import Settings
from grid_agent.tools.llm import GeminiAdapter, LLMAdapter, OpenRouterChatAdapter
from grid_agent.tools.reader import JinaReaderAdapter, ReaderAdapter
from grid_agent.tools.search import PerplexitySearchAdapter, SearchAdapter


@dataclass(frozen=True)
class AdapterSet:
    """External collaborators used by one Agent; read-only after construction."""

    planner: LLMAdapter
    analyzer: LLMAdapter
    searcher: SearchAdapter
    reader: ReaderAdapter


def build_adapters(settings: Settings) -> AdapterSet:
    # Missing credentials still yield adapters; they answer with AdapterFailure
    # so each stage degrades to its fallback output.
    planner = OpenRouterChatAdapter(
        api_key=settings.resolved_openrouter_api_key(),
        model=settings.planner_model,
        base_url=settings.openrouter_base_url,
        max_tokens=settings.planner_max_tokens,
        app_url=settings.app_url,
        app_title=settings.app_title,
        timeout_s=settings.llm_timeout_s,
        max_retries=settings.llm_max_retries,
        backoff_s=settings.llm_backoff_s,
    )
    analyzer = GeminiAdapter(
        api_key=settings.resolved_gemini_api_key(),
        model=settings.multimodal_model,
        base_url=settings.gemini_base_url,
        safety_settings=settings.safety_settings(),
        timeout_s=settings.llm_timeout_s,
        max_retries=settings.llm_max_retries,
        backoff_s=settings.llm_backoff_s,
    )
    searcher = PerplexitySearchAdapter(
        api_key=settings.resolved_perplexity_api_key(),
        url=settings.search_url,
        timeout_s=settings.search_timeout_s,
    )
    reader = JinaReaderAdapter(
        base_url=settings.reader_base_url,
        timeout_s=settings.reader_timeout_s,
    )
    return AdapterSet(planner=planner, analyzer=analyzer, searcher=searcher, reader=reader)


def provider_status(settings: Settings) -> dict[str, bool]:
    """Which providers have the credentials they need."""
    return {
        "openrouter": bool(settings.resolved_openrouter_api_key()),
        "gemini": bool(settings.resolved_gemini_api_key()),
        "perplexity": bool(settings.resolved_perplexity_api_key()),
        "reader": bool(settings.reader_base_url),
    }
