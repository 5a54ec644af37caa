"""Web search adapter and extraction of video material from search answers."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Protocol
from urllib import error, request

from pydantic import BaseModel, Field, ValidationError

from grid_agent.models import Citation, Creator, Video
from grid_agent.tools.platforms import creator_from_url, find_urls, videos_from_urls
from grid_agent.tools.results import AdapterFailure, AdapterResult, AdapterSuccess

logger = logging.getLogger(__name__)

_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+(.*\S)\s*$")


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    model: str = "sonar-small-online"
    max_tokens: int = Field(default=1000, ge=1)
    focus: list[str] = Field(default_factory=lambda: ["videos", "multimedia", "content creators"])
    include_answer: bool = True
    include_citations: bool = True


class SearchResponse(BaseModel):
    answer: str | None = None
    citations: list[Citation] = Field(default_factory=list)
    error: str | None = None


class VideoContent(BaseModel):
    """Videos, creators, and trend terms pulled out of one search response."""

    videos: list[Video] = Field(default_factory=list)
    creators: list[Creator] = Field(default_factory=list)
    trends: list[str] = Field(default_factory=list)


class SearchAdapter(Protocol):
    def search(self, search_request: SearchRequest) -> AdapterResult[SearchResponse]: ...


class PerplexitySearchAdapter:
    """POSTs search requests to the Perplexity search endpoint."""

    def __init__(
        self,
        *,
        api_key: str,
        url: str = "https://api.perplexity.ai/search",
        timeout_s: float = 20.0,
    ) -> None:
        self.api_key = api_key
        self.url = url
        self.timeout_s = timeout_s

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def search(self, search_request: SearchRequest) -> AdapterResult[SearchResponse]:
        if not self.enabled:
            return AdapterFailure(reason="missing_api_key")

        payload = {
            "query": search_request.query,
            "model": search_request.model,
            "max_tokens": search_request.max_tokens,
            "focus": search_request.focus,
            "include_answer": search_request.include_answer,
            "include_citations": search_request.include_citations,
        }
        req = request.Request(
            url=self.url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
        )
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                body = response.read().decode("utf-8", errors="replace")
        except error.HTTPError as exc:
            logger.warning(
                "search request failed status=%s query=%r", exc.code, search_request.query
            )
            return AdapterFailure(reason=f"Perplexity API error: {exc.code}", status_code=exc.code)
        except error.URLError as exc:
            return AdapterFailure(reason=f"Perplexity request failed: {exc.reason}")
        except TimeoutError:
            return AdapterFailure(
                reason=f"Perplexity request timed out after {self.timeout_s:.2f}s"
            )

        try:
            data = json.loads(body)
        except json.JSONDecodeError:
            return AdapterFailure(reason="Perplexity returned a non-JSON body")
        if not isinstance(data, dict):
            return AdapterFailure(reason="Perplexity returned an unexpected payload")
        try:
            search_response = SearchResponse(
                answer=data.get("answer"), citations=_citations(data.get("citations"))
            )
        except ValidationError as exc:
            logger.warning(
                "search response rejected query=%r errors=%d",
                search_request.query,
                exc.error_count(),
            )
            return AdapterFailure(reason="Perplexity returned an unexpected payload")
        return AdapterSuccess(search_response)


def extract_video_content(
    search_response: SearchResponse, *, max_trends: int = 5
) -> VideoContent:
    """Pull candidate videos, creators, and trend terms out of a search response.

    Citations whose URL points at a video page become videos (titled by the
    citation text); profile URLs become creators; short bulleted or numbered
    lines of the answer become trend terms.
    """
    if not search_response.answer and not search_response.citations:
        return VideoContent()

    titles = {citation.url: citation.text for citation in search_response.citations}
    urls = [citation.url for citation in search_response.citations]
    urls.extend(find_urls(search_response.answer or ""))
    videos = videos_from_urls(urls, titles=titles)

    creators: list[Creator] = []
    seen_creators: set[tuple[str, str]] = set()
    for url in urls:
        creator = creator_from_url(url)
        if creator is None:
            continue
        key = (creator.platform, creator.name.lower())
        if key in seen_creators:
            continue
        seen_creators.add(key)
        creators.append(creator)

    return VideoContent(
        videos=videos,
        creators=creators,
        trends=_trend_terms(search_response.answer or "", limit=max_trends),
    )


def _citations(raw: Any) -> list[Citation]:
    if not isinstance(raw, list):
        return []
    output: list[Citation] = []
    for item in raw:
        if isinstance(item, str) and item.strip():
            output.append(Citation(text="", url=item.strip()))
        elif isinstance(item, dict) and isinstance(item.get("url"), str):
            output.append(Citation(text=str(item.get("text") or ""), url=item["url"]))
    return output


def _trend_terms(answer: str, *, limit: int) -> list[str]:
    trends: list[str] = []
    for line in answer.splitlines():
        match = _BULLET_RE.match(line)
        if not match:
            continue
        term = match.group(1).strip("*_ ")
        if "://" in term:
            continue
        # "Term: explanation" keeps only the term.
        term = term.split(":", 1)[0].strip()
        if term and len(term) <= 60 and term not in trends:
            trends.append(term)
        if len(trends) >= limit:
            break
    return trends
