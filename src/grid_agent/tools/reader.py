"""URL content extraction through a Jina-style reader endpoint."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol
from urllib import error, parse, request

from pydantic import BaseModel, Field

from grid_agent.tools.results import AdapterFailure, AdapterResult, AdapterSuccess

logger = logging.getLogger(__name__)


class ReaderDocument(BaseModel):
    content: str = ""
    links: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)
    title: str | None = None
    # Anchor text per link URL, when the reader reports it.
    link_titles: dict[str, str] = Field(default_factory=dict)


class ReaderAdapter(Protocol):
    base_url: str

    def endpoint_for(self, url: str) -> str: ...

    def extract(self, url: str) -> AdapterResult[ReaderDocument]: ...


class JinaReaderAdapter:
    """Fetches ``<base_url><encoded url>`` and normalizes the JSON document."""

    def __init__(
        self,
        *,
        base_url: str = "https://r.jina.ai/",
        api_key: str = "",
        timeout_s: float = 20.0,
    ) -> None:
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.api_key = api_key
        self.timeout_s = timeout_s

    def endpoint_for(self, url: str) -> str:
        return f"{self.base_url}{parse.quote(url, safe='')}"

    def extract(self, url: str) -> AdapterResult[ReaderDocument]:
        headers = {"Accept": "application/json", "X-With-Links-Summary": "true"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        req = request.Request(url=self.endpoint_for(url), method="GET", headers=headers)
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                body = response.read().decode("utf-8", errors="replace")
        except error.HTTPError as exc:
            logger.warning("reader request failed status=%s url=%s", exc.code, url)
            return AdapterFailure(reason=f"Jina Reader error: {exc.code}", status_code=exc.code)
        except error.URLError as exc:
            return AdapterFailure(reason=f"Jina Reader request failed: {exc.reason}")
        except TimeoutError:
            return AdapterFailure(reason=f"Jina Reader timed out after {self.timeout_s:.2f}s")

        try:
            data = json.loads(body)
        except json.JSONDecodeError:
            return AdapterFailure(reason="Jina Reader returned a non-JSON body")
        if not isinstance(data, dict):
            return AdapterFailure(reason="Jina Reader returned an unexpected payload")
        return AdapterSuccess(_document(data))


def _document(data: dict[str, Any]) -> ReaderDocument:
    # The reader wraps the document in "data"; older responses were flat.
    payload = data.get("data") if isinstance(data.get("data"), dict) else data
    links, link_titles = _url_list(payload.get("links"))
    images, _ = _url_list(payload.get("images"))
    title = payload.get("title")
    return ReaderDocument(
        content=str(payload.get("content") or ""),
        links=links,
        images=images,
        title=title if isinstance(title, str) else None,
        link_titles=link_titles,
    )


def _url_list(raw: Any) -> tuple[list[str], dict[str, str]]:
    """Accept ``{text: url}`` maps, lists of URLs, or lists of ``{text, url}``."""
    urls: list[str] = []
    titles: dict[str, str] = {}
    if isinstance(raw, dict):
        for text, url in raw.items():
            if isinstance(url, str) and url:
                urls.append(url)
                titles.setdefault(url, str(text))
    elif isinstance(raw, list):
        for item in raw:
            if isinstance(item, str) and item:
                urls.append(item)
            elif isinstance(item, dict):
                url = item.get("url") or item.get("href") or item.get("src")
                if isinstance(url, str) and url:
                    urls.append(url)
                    text = item.get("text") or item.get("title") or item.get("alt")
                    if isinstance(text, str) and text:
                        titles.setdefault(url, text)
    return urls, titles
