from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import pytest

from grid_agent.agent import Agent
from grid_agent.config.settings import Settings
from grid_agent.tools.reader import ReaderDocument
from grid_agent.tools.registry import AdapterSet
from grid_agent.tools.results import AdapterFailure, AdapterResult, AdapterSuccess
from grid_agent.tools.search import SearchRequest, SearchResponse

PLAN_JSON = json.dumps(
    {
        "overview": "Map the lofi study music scene",
        "steps": ["Find popular lofi streams", "Group streams by mood"],
        "themes": ["lofi", "focus", "study"],
        "contentTypes": ["live streams", "playlists"],
        "clusterCriteria": ["mood", "tempo"],
    }
)

ANALYSIS_JSON = json.dumps(
    {
        "contentAnalysis": {
            "themes": ["focus", "calm"],
            "visualElements": ["anime loops", "night windows"],
            "audioElements": ["vinyl crackle", "soft piano"],
            "emotionalTone": "relaxed",
            "pacing": "slow",
        },
        "semanticClusters": [
            {"name": "Beats", "videos": ["v1", "v99"]},
            {"name": "Sessions", "videos": ["v2"]},
        ],
        "colorPalettes": [
            {"name": "Night Desk", "colors": ["#111111", "#222222", "#333333"], "mood": "quiet"}
        ],
    }
)

GRID_JSON = (
    "Here is your grid:\n```json\n"
    + json.dumps(
        {
            "title": "Lo-fi Study Grid",
            "description": "Streams and sessions for deep focus.",
            "clusters": [
                {
                    "name": "Beats",
                    "videos": [{"id": "v1", "title": "ignored", "platform": "YouTube"}],
                },
                {"name": "Sessions", "videos": ["v2"]},
                {"name": "Empty", "videos": ["v42"]},
            ],
            "tags": ["lofi", "Lofi", "study"],
            "colorPalette": {"name": "Night Desk", "colors": ["#111111", "#222222", "#333333"]},
        }
    )
    + "\n```"
)

SEARCH_RESPONSE = SearchResponse(
    answer="Top picks:\n- Lo-fi beats: calm instrumentals\n- Study vlogs\n",
    citations=[
        {"text": "Lofi Girl live", "url": "https://www.youtube.com/watch?v=jfKfPfyJRdk"},
        {"text": "Study with me", "url": "https://vimeo.com/123456"},
        {"text": "Lofi Girl channel", "url": "https://www.youtube.com/@lofigirl"},
    ],
)


class FakeHTTPResponse:
    """Stand-in for the object returned by ``urlopen``; dicts and lists are JSON-encoded."""

    def __init__(self, payload: object) -> None:
        if isinstance(payload, bytes):
            self._raw_body = payload
        else:
            self._raw_body = json.dumps(payload).encode("utf-8")

    def read(self) -> bytes:
        return self._raw_body

    def __enter__(self) -> FakeHTTPResponse:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        _ = (exc_type, exc, tb)
        return False


class FakeLLM:
    """Scripted LLM: returns (or raises) queued responses in order."""

    def __init__(self, *responses: Any, model: str = "fake-llm") -> None:
        self.model = model
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []
        self.on_call: Callable[[], None] | None = None

    def complete(
        self,
        prompt: str,
        *,
        system_prompt: str = "",
        response_format: str = "text",
        model: str | None = None,
    ) -> AdapterResult[str]:
        self.calls.append(
            {
                "prompt": prompt,
                "system_prompt": system_prompt,
                "response_format": response_format,
            }
        )
        if self.on_call is not None:
            self.on_call()
        if not self._responses:
            return AdapterFailure(reason="no scripted response")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return AdapterSuccess(response)
        return response


class FakeSearch:
    def __init__(self, result: AdapterResult[SearchResponse] | None = None) -> None:
        self.result = result or AdapterFailure(reason="missing_api_key")
        self.requests: list[SearchRequest] = []
        self.on_call: Callable[[], None] | None = None

    def search(self, search_request: SearchRequest) -> AdapterResult[SearchResponse]:
        self.requests.append(search_request)
        if self.on_call is not None:
            self.on_call()
        return self.result


class FakeReader:
    base_url = "https://r.jina.ai/"

    def __init__(self, result: AdapterResult[ReaderDocument] | None = None) -> None:
        self.result = result or AdapterFailure(reason="Jina Reader error: 500", status_code=500)
        self.urls: list[str] = []
        self.on_call: Callable[[], None] | None = None

    def endpoint_for(self, url: str) -> str:
        return f"{self.base_url}{url}"

    def extract(self, url: str) -> AdapterResult[ReaderDocument]:
        self.urls.append(url)
        if self.on_call is not None:
            self.on_call()
        return self.result


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        openrouter_api_key="",
        gemini_api_key="",
        perplexity_api_key="",
        llm_timeout_s=2.0,
        llm_max_retries=0,
        llm_backoff_s=0.0,
        search_timeout_s=2.0,
        reader_timeout_s=2.0,
    )


@pytest.fixture
def make_agent(settings: Settings) -> Callable[..., Agent]:
    """Agent over fake adapters; anything not given fails like a missing key."""

    def _make(
        *,
        planner: FakeLLM | None = None,
        analyzer: FakeLLM | None = None,
        searcher: FakeSearch | None = None,
        reader: FakeReader | None = None,
    ) -> Agent:
        adapters = AdapterSet(
            planner=planner or FakeLLM(model="fake-planner"),
            analyzer=analyzer or FakeLLM(model="fake-analyzer"),
            searcher=searcher or FakeSearch(),
            reader=reader or FakeReader(),
        )
        return Agent(settings=settings, adapters=adapters)

    return _make
