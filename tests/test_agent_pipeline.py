from __future__ import annotations

from urllib import parse, request

import pytest
from conftest import (
    ANALYSIS_JSON,
    GRID_JSON,
    PLAN_JSON,
    SEARCH_RESPONSE,
    FakeHTTPResponse,
    FakeLLM,
    FakeReader,
    FakeSearch,
)

from grid_agent.agent import Agent
from grid_agent.graph.fallbacks import FALLBACK_TAGS, fallback_plan
from grid_agent.models import STAGE_ORDER
from grid_agent.tools import llm
from grid_agent.tools.llm import GeminiAdapter, OpenRouterChatAdapter
from grid_agent.tools.reader import ReaderDocument
from grid_agent.tools.registry import AdapterSet
from grid_agent.tools.results import AdapterSuccess
from grid_agent.tools.search import PerplexitySearchAdapter


def test_text_input_with_all_adapters_succeeding(make_agent) -> None:
    planner = FakeLLM(PLAN_JSON, GRID_JSON, model="fake-planner")
    analyzer = FakeLLM(ANALYSIS_JSON, model="fake-analyzer")
    searcher = FakeSearch(AdapterSuccess(SEARCH_RESPONSE))
    agent = make_agent(planner=planner, analyzer=analyzer, searcher=searcher)

    task = agent.execute(agent.create_task("lofi study music", "text"))

    assert task.status == "completed"
    assert task.error is None
    result = task.result
    assert result is not None

    assert result.plan.steps == ["Find popular lofi streams", "Group streams by mood"]
    assert result.plan.themes == ["lofi", "focus", "study"]

    assert [video.id for video in result.search_results.related_videos] == ["v1", "v2"]
    assert result.search_results.related_videos[0].title == "Lofi Girl live"
    assert [creator.name for creator in result.search_results.creators] == ["lofigirl"]
    assert result.search_results.trends == ["Lo-fi beats", "Study vlogs"]

    analysis = result.analysis
    assert analysis.content_analysis.emotional_tone == "relaxed"
    assert [(c.name, c.videos) for c in analysis.semantic_clusters] == [
        ("Beats", ["v1"]),
        ("Sessions", ["v2"]),
    ]
    assert len(analysis.color_palettes) == 3
    assert analysis.color_palettes[0].name == "Night Desk"

    grid = result.grid
    assert grid.title == "Lo-fi Study Grid"
    assert [cluster.name for cluster in grid.clusters] == ["Beats", "Sessions"]
    assert grid.clusters[0].videos[0].title == "Lofi Girl live"
    assert grid.clusters[1].videos[0].platform == "Vimeo"
    assert grid.tags == ["lofi", "study"]
    assert grid.color_palette.name == "Night Desk"

    assert all(call["response_format"] == "json" for call in planner.calls)
    assert analyzer.calls[0]["response_format"] == "json"
    assert searcher.requests[0].query == (
        "Popular videos, creators, and trends about: lofi study music"
    )

    assert 'Searching the web for videos related to "lofi study music"' in task.messages
    assert "Found 2 candidate videos" in task.messages
    assert "Identified 1 creators and 2 trending topics" in task.messages
    assert "Identified 2 themes and 2 semantic clusters" in task.messages
    assert 'Grid "Lo-fi Study Grid" assembled with 2 clusters and 2 videos' in task.messages


def test_url_input_with_failed_extraction_uses_fallback_videos(make_agent) -> None:
    reader = FakeReader()
    agent = make_agent(reader=reader)

    task = agent.execute(agent.create_task("https://example.com/watch?v=abc", "url"))

    assert task.status == "completed"
    assert reader.urls == ["https://example.com/watch?v=abc"]
    assert (
        "Fetching content from URL using https://r.jina.ai/https://example.com/watch?v=abc"
        in task.messages
    )
    assert task.messages[0] == (
        "Planning approach to analyze content and create semantic relationships"
    )
    assert "Drafting a plan for URL input" in task.messages
    assert (
        "Analyzing visual and textual components of the URL input with fake-analyzer"
        in task.messages
    )
    assert (
        "Generating semantic grid structure with optimized clusters for URL input"
        in task.messages
    )
    videos = task.result.search_results.related_videos
    assert [video.id for video in videos] == ["v1", "v2", "v3", "v4", "v5"]
    assert task.result.grid.title == "Explorations From Content Analysis"


def test_url_input_extracts_videos_from_reader_document(make_agent) -> None:
    document = ReaderDocument(
        content="Watch the follow-up at https://youtu.be/abc123 today.",
        links=["https://www.youtube.com/watch?v=xyz", "https://example.com/about"],
        images=["https://example.com/cover.png"],
        link_titles={"https://www.youtube.com/watch?v=xyz": "Great talk"},
    )
    agent = make_agent(reader=FakeReader(AdapterSuccess(document)))

    task = agent.execute(agent.create_task("https://example.com/post", "url"))

    search_results = task.result.search_results
    assert [(video.id, video.title) for video in search_results.related_videos] == [
        ("v1", "Great talk"),
        ("v2", "YouTube video 2"),
    ]
    assert search_results.content.startswith("Watch the follow-up")
    assert "Extracted 2 links and 1 images from the page" in task.messages


def test_malformed_url_skips_reader_and_falls_back(make_agent) -> None:
    reader = FakeReader()
    agent = make_agent(reader=reader)

    task = agent.execute(agent.create_task("not a url", "url"))

    assert task.status == "completed"
    assert reader.urls == []
    assert len(task.result.search_results.related_videos) == 5


def test_all_fallback_runs_are_deterministic(make_agent) -> None:
    first = make_agent().execute(make_agent().create_task("urban gardening", "text"))
    second = make_agent().execute(make_agent().create_task("urban gardening", "text"))

    for task in (first, second):
        assert task.status == "completed"
        assert task.error is None

    first_grid, second_grid = first.result.grid, second.result.grid
    assert [c.name for c in first_grid.clusters] == [c.name for c in second_grid.clusters]
    assert len(first_grid.clusters) == 3
    assert set(first_grid.tags) == set(second_grid.tags) == set(FALLBACK_TAGS)
    assert first_grid.title == second_grid.title == "urban gardening"
    assert first_grid.color_palette == second_grid.color_palette
    assert first.result.plan == second.result.plan
    assert first.result.analysis == second.result.analysis


def test_status_only_moves_forward_through_stages(make_agent) -> None:
    planner = FakeLLM(PLAN_JSON, GRID_JSON)
    analyzer = FakeLLM(ANALYSIS_JSON)
    searcher = FakeSearch(AdapterSuccess(SEARCH_RESPONSE))
    agent = make_agent(planner=planner, analyzer=analyzer, searcher=searcher)
    task = agent.create_task("lofi study music", "text")

    seen: list[str] = [task.status]
    for adapter in (planner, analyzer, searcher):
        adapter.on_call = lambda: seen.append(task.status)

    agent.execute(task)
    seen.append(task.status)

    assert seen == list(STAGE_ORDER)


def test_messages_only_grow(make_agent) -> None:
    planner = FakeLLM(PLAN_JSON, GRID_JSON)
    analyzer = FakeLLM(ANALYSIS_JSON)
    searcher = FakeSearch(AdapterSuccess(SEARCH_RESPONSE))
    agent = make_agent(planner=planner, analyzer=analyzer, searcher=searcher)
    task = agent.create_task("lofi study music", "text")

    snapshots: list[list[str]] = []
    for adapter in (planner, analyzer, searcher):
        adapter.on_call = lambda: snapshots.append(list(task.messages))

    agent.execute(task)
    snapshots.append(list(task.messages))

    for earlier, later in zip(snapshots, snapshots[1:]):
        assert len(later) > len(earlier)
        assert later[: len(earlier)] == earlier


def test_unrecoverable_error_in_generation_fails_task(make_agent) -> None:
    planner = FakeLLM(PLAN_JSON, RuntimeError("generator exploded"))
    agent = make_agent(planner=planner)

    task = agent.execute(agent.create_task("lofi study music", "text"))

    assert task.status == "failed"
    assert task.error == "generator exploded"
    assert task.result is None
    assert (
        "Generating semantic grid structure with optimized clusters for text input"
        in task.messages
    )
    assert not any(message.startswith("Grid ") for message in task.messages)


def test_exception_without_message_gets_generic_error(make_agent) -> None:
    agent = make_agent(planner=FakeLLM(RuntimeError()))

    task = agent.execute(agent.create_task("lofi study music", "text"))

    assert task.status == "failed"
    assert task.error == "Unknown error occurred"
    assert task.result is None


def test_execute_leaves_non_pending_task_untouched(make_agent) -> None:
    agent = make_agent()
    task = agent.create_task("lofi study music", "text")
    task.fail("cancelled by caller")

    returned = agent.execute(task)

    assert returned is task
    assert task.status == "failed"
    assert task.error == "cancelled by caller"
    assert task.messages == []


def test_unparseable_analysis_keeps_raw_text(make_agent) -> None:
    analyzer = FakeLLM("I would rather describe this in prose.")
    agent = make_agent(planner=FakeLLM(PLAN_JSON), analyzer=analyzer)

    task = agent.execute(agent.create_task("lofi study music", "text"))

    assert task.status == "completed"
    analysis = task.result.analysis
    assert analysis.raw_analysis == "I would rather describe this in prose."
    assert analysis.content_analysis.emotional_tone == "contemplative"


def test_prose_grid_is_structured_from_headings(make_agent) -> None:
    prose = (
        "# Study Grid\n"
        "## Deep Focus\n"
        "## Chill Breaks\n"
        "A grid for long evenings of quiet concentration.\n"
    )
    planner = FakeLLM(PLAN_JSON, prose)
    searcher = FakeSearch(AdapterSuccess(SEARCH_RESPONSE))
    agent = make_agent(planner=planner, searcher=searcher)

    task = agent.execute(agent.create_task("lofi study music", "text"))

    grid = task.result.grid
    assert grid.title == "Study Grid"
    assert grid.description == "A grid for long evenings of quiet concentration."
    assert [(c.name, [v.id for v in c.videos]) for c in grid.clusters] == [
        ("Deep Focus", ["v1"]),
        ("Chill Breaks", ["v2"]),
    ]
    assert set(FALLBACK_TAGS) <= set(grid.tags)


def test_search_without_video_candidates_is_backfilled(make_agent) -> None:
    searcher = FakeSearch(AdapterSuccess(SEARCH_RESPONSE.model_copy(update={"citations": []})))
    agent = make_agent(searcher=searcher)

    task = agent.execute(agent.create_task("lofi study music", "text"))

    search_results = task.result.search_results
    assert search_results.answer is not None
    assert [video.id for video in search_results.related_videos] == ["v1", "v2", "v3", "v4", "v5"]


def test_fallback_clusters_only_reference_candidate_videos(make_agent) -> None:
    searcher = FakeSearch(AdapterSuccess(SEARCH_RESPONSE))
    agent = make_agent(searcher=searcher)

    task = agent.execute(agent.create_task("lofi study music", "text"))

    assert task.status == "completed"
    analysis = task.result.analysis
    assert [(c.name, c.videos) for c in analysis.semantic_clusters] == [
        ("Theoretical Foundations", ["v1"]),
        ("Practical Applications", ["v2"]),
    ]
    assert "Identified 5 themes and 2 semantic clusters" in task.messages


def test_unparseable_analysis_with_one_candidate_keeps_one_cluster(make_agent) -> None:
    response = SEARCH_RESPONSE.model_copy(
        update={"citations": [SEARCH_RESPONSE.citations[1]], "answer": None}
    )
    searcher = FakeSearch(AdapterSuccess(response))
    analyzer = FakeLLM("no json here at all")
    agent = make_agent(searcher=searcher, analyzer=analyzer)

    task = agent.execute(agent.create_task("lofi study music", "text"))

    analysis = task.result.analysis
    assert [video.id for video in task.result.search_results.related_videos] == ["v1"]
    assert [(c.name, c.videos) for c in analysis.semantic_clusters] == [
        ("Theoretical Foundations", ["v1"]),
    ]
    assert analysis.raw_analysis == "no json here at all"


@pytest.mark.parametrize(
    "bodies",
    [
        {
            "openrouter.ai": [b"\xff\xfe\x00", {"choices": [{"message": None}]}],
            "api.perplexity.ai": [{"answer": {"text": "lofi"}}],
            "generativelanguage.googleapis.com": [{"candidates": ["lofi"]}],
        },
        {
            "openrouter.ai": [[1, 2], {"choices": ["lofi"]}],
            "api.perplexity.ai": [[1, 2]],
            "generativelanguage.googleapis.com": [{"promptFeedback": "blocked"}],
        },
    ],
)
def test_malformed_provider_bodies_fall_back_instead_of_failing(
    settings, monkeypatch: pytest.MonkeyPatch, bodies: dict[str, list[object]]
) -> None:
    hosts: list[str] = []

    def malformed_urlopen(req: request.Request, timeout: float):
        host = parse.urlsplit(req.full_url).hostname
        hosts.append(host)
        return FakeHTTPResponse(bodies[host].pop(0))

    # All adapters share urllib.request, so one patch covers every provider.
    monkeypatch.setattr(llm.request, "urlopen", malformed_urlopen)
    adapters = AdapterSet(
        planner=OpenRouterChatAdapter(
            api_key="or-key", model="anthropic/claude-3-opus", max_retries=0, backoff_s=0.0
        ),
        analyzer=GeminiAdapter(api_key="gm-key", model="gemini-2.0-flash", max_retries=0),
        searcher=PerplexitySearchAdapter(api_key="pplx-key"),
        reader=FakeReader(),
    )
    agent = Agent(settings=settings, adapters=adapters)

    task = agent.execute(agent.create_task("lofi study music", "text"))

    assert task.status == "completed"
    assert task.error is None
    assert hosts == [
        "openrouter.ai",
        "api.perplexity.ai",
        "generativelanguage.googleapis.com",
        "openrouter.ai",
    ]
    result = task.result
    assert result.plan == fallback_plan("lofi study music", "text")
    assert [video.id for video in result.search_results.related_videos] == [
        "v1",
        "v2",
        "v3",
        "v4",
        "v5",
    ]
    assert result.analysis.content_analysis.emotional_tone == "contemplative"
    assert result.grid.title == "lofi study music"
    assert set(result.grid.tags) == set(FALLBACK_TAGS)
