"""Search node: URL extraction or web search, with fallback candidate videos."""

from __future__ import annotations

from urllib import parse

from grid_agent.graph.fallbacks import fallback_search_results, fallback_videos, log_fallback
from grid_agent.graph.state import AgentState, StageContext
from grid_agent.models import SearchResults, Task
from grid_agent.tools.gateway import call_with_timeout
from grid_agent.tools.platforms import find_urls, videos_from_urls
from grid_agent.tools.results import AdapterFailure, AdapterResult
from grid_agent.tools.search import SearchRequest, SearchResponse, extract_video_content


def run(state: AgentState, ctx: StageContext) -> AgentState:
    task = ctx.task
    if task.input_type == "url":
        search_results = _search_url(task, ctx)
    else:
        search_results = _search_text(task, ctx)

    if not search_results.related_videos:
        log_fallback("search", task.id, "no candidate videos in provider response")
        search_results.related_videos = fallback_videos()

    task.add_message(f"Found {len(search_results.related_videos)} candidate videos")
    if task.input_type == "url":
        task.add_message(
            f"Extracted {len(search_results.links)} links and "
            f"{len(search_results.images)} images from the page"
        )
    else:
        task.add_message(
            f"Identified {len(search_results.creators)} creators and "
            f"{len(search_results.trends)} trending topics"
        )
    return {"search_results": search_results}


def _search_url(task: Task, ctx: StageContext) -> SearchResults:
    reader = ctx.adapters.reader
    task.add_message(f"Fetching content from URL using {reader.endpoint_for(task.input)}")
    _announce_search(task)

    if not is_http_url(task.input):
        result: AdapterResult = AdapterFailure(reason="input is not an http(s) URL")
    else:
        result = call_with_timeout(
            lambda: reader.extract(task.input),
            timeout_s=ctx.settings.reader_deadline_s(),
            label="reader",
        )

    if isinstance(result, AdapterFailure):
        log_fallback("search", task.id, result.reason)
        return fallback_search_results(task.input, task.input_type)

    document = result.payload
    urls = list(document.links)
    urls.extend(find_urls(document.content))
    return SearchResults(
        content=document.content,
        links=document.links,
        images=document.images,
        related_videos=videos_from_urls(urls, titles=document.link_titles),
    )


def _search_text(task: Task, ctx: StageContext) -> SearchResults:
    settings = ctx.settings
    task.add_message(f'Searching the web for videos related to "{task.input}"')
    _announce_search(task)

    search_request = SearchRequest(
        query=f"Popular videos, creators, and trends about: {task.input}",
        model=settings.search_model,
        max_tokens=settings.search_max_tokens,
        focus=list(settings.search_focus),
    )
    result = call_with_timeout(
        lambda: ctx.adapters.searcher.search(search_request),
        timeout_s=settings.search_deadline_s(),
        label="search",
    )

    if isinstance(result, AdapterFailure):
        log_fallback("search", task.id, result.reason)
        return fallback_search_results(task.input, task.input_type)
    response: SearchResponse = result.payload
    if response.error:
        log_fallback("search", task.id, response.error)
        return fallback_search_results(task.input, task.input_type)

    content = extract_video_content(response)
    return SearchResults(
        related_videos=content.videos,
        creators=content.creators,
        trends=content.trends,
        answer=response.answer,
        citations=response.citations,
    )


def _announce_search(task: Task) -> None:
    task.add_message("Searching for related content and identifying key themes")
    task.add_message("Extracting entities and concepts for semantic mapping")


def is_http_url(value: str) -> bool:
    parsed = parse.urlparse(value.strip())
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)
