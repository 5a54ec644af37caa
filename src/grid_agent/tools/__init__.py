"""External service adapters and their result types."""

from grid_agent.tools.gateway import call_with_timeout
from grid_agent.tools.llm import GeminiAdapter, LLMAdapter, OpenRouterChatAdapter
from grid_agent.tools.reader import JinaReaderAdapter, ReaderAdapter, ReaderDocument
from grid_agent.tools.registry import AdapterSet, build_adapters, provider_status
from grid_agent.tools.results import AdapterFailure, AdapterResult, AdapterSuccess
from grid_agent.tools.search import (
    PerplexitySearchAdapter,
    SearchAdapter,
    SearchRequest,
    SearchResponse,
    VideoContent,
    extract_video_content,
)

__all__ = [
    "AdapterFailure",
    "AdapterResult",
    "AdapterSet",
    "AdapterSuccess",
    "GeminiAdapter",
    "JinaReaderAdapter",
    "LLMAdapter",
    "OpenRouterChatAdapter",
    "PerplexitySearchAdapter",
    "ReaderAdapter",
    "ReaderDocument",
    "SearchAdapter",
    "SearchRequest",
    "SearchResponse",
    "VideoContent",
    "build_adapters",
    "call_with_timeout",
    "extract_video_content",
    "provider_status",
]
