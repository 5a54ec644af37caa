"""Recognize video and creator URLs from the platforms a grid can hold."""

from __future__ import annotations

import re
from urllib import parse

from grid_agent.models import Creator, Video

PLATFORM_HOSTS: dict[str, str] = {
    "youtube.com": "YouTube",
    "youtu.be": "YouTube",
    "vimeo.com": "Vimeo",
    "tiktok.com": "TikTok",
    "instagram.com": "Instagram",
    "twitch.tv": "Twitch",
    "dailymotion.com": "Dailymotion",
}

_URL_RE = re.compile(r"https?://[^\s)\]>\"']+")
_VIDEO_PATH_HINTS = ("/watch", "/shorts/", "/video/", "/reel/", "/p/", "/videos/")


def detect_platform(url: str) -> str | None:
    host = parse.urlparse(url).netloc.lower()
    host = host.split(":", 1)[0]
    if host.startswith("www."):
        host = host[4:]
    if host.startswith("m."):
        host = host[2:]
    for suffix, platform in PLATFORM_HOSTS.items():
        if host == suffix or host.endswith("." + suffix):
            return platform
    return None


def is_video_url(url: str) -> bool:
    platform = detect_platform(url)
    if platform is None:
        return False
    parsed = parse.urlparse(url)
    if platform == "YouTube" and parsed.netloc.lower().endswith("youtu.be"):
        return len(parsed.path.strip("/")) > 0
    if platform == "Vimeo":
        return parsed.path.strip("/").split("/", 1)[0].isdigit()
    return any(hint in parsed.path for hint in _VIDEO_PATH_HINTS)


def creator_from_url(url: str) -> Creator | None:
    """Return the channel/profile a URL points at, if it is a profile URL."""
    platform = detect_platform(url)
    if platform is None or is_video_url(url):
        return None
    segments = [segment for segment in parse.urlparse(url).path.split("/") if segment]
    if not segments:
        return None
    handle = segments[0]
    if handle in {"channel", "c", "user"} and len(segments) > 1:
        handle = segments[1]
    return Creator(name=handle.lstrip("@"), platform=platform, url=url)


def find_urls(text: str) -> list[str]:
    return [match.rstrip(".,;") for match in _URL_RE.findall(text or "")]


def videos_from_urls(
    urls: list[str],
    *,
    titles: dict[str, str] | None = None,
    limit: int = 12,
) -> list[Video]:
    """Build candidate videos from URLs, keeping first-seen order and ids v1..vN."""
    titles = titles or {}
    videos: list[Video] = []
    seen: set[str] = set()
    for url in urls:
        if url in seen or not is_video_url(url):
            continue
        seen.add(url)
        platform = detect_platform(url) or "unknown"
        title = (titles.get(url) or "").strip() or f"{platform} video {len(videos) + 1}"
        videos.append(
            Video(id=f"v{len(videos) + 1}", title=_clip(title, 120), platform=platform, url=url)
        )
        if len(videos) >= limit:
            break
    return videos


def _clip(text: str, max_chars: int) -> str:
    text = " ".join(text.split())
    if len(text) <= max_chars:
        return text
    return text[: max_chars - 3].rstrip() + "..."
