"""Search and channel page discovery through the cache and the extractor."""

import random
import re
import socket
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import Callable, Dict, Optional

from .cache import CacheStore, make_cache_key
from .errors import NetworkError
from .extractor import extract_videos
from .models import DEFAULT_LIMIT, DEFAULT_TIMEOUT, USER_AGENTS, SearchResultSet

BASE_URL = "https://www.youtube.com"

# "sp" search parameter values
SEARCH_FILTERS: Dict[str, str] = {
    "video": "EgIQAQ%3D%3D",
    "any": "",
}

Fetcher = Callable[[str, Dict[str, str], float], str]


def build_headers(user_agent: Optional[str] = None) -> Dict[str, str]:
    """Browser-like request headers."""
    return {
        "User-Agent": user_agent or random.choice(USER_AGENTS),
        "Accept-Language": "en-US,en;q=0.9",
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    }


def build_search_url(query: str, filters: str = "video") -> str:
    if filters not in SEARCH_FILTERS:
        raise ValueError(f"Unknown search filter: {filters!r}")
    encoded = urllib.parse.quote(query.strip())
    url = f"{BASE_URL}/results?search_query={encoded}"
    sp = SEARCH_FILTERS[filters]
    if sp:
        url += f"&sp={sp}"
    return url


def normalize_channel_handle(channel_id: str) -> str:
    """Reduce a channel reference to a path like ``@name`` or ``channel/UC...``."""
    cleaned = channel_id.strip()
    if not cleaned:
        raise ValueError("missing channel identifier")

    if re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", cleaned) or cleaned.startswith(("www.", "youtube.com", "m.youtube.com")):
        if "://" not in cleaned:
            cleaned = "https://" + cleaned
        path = urllib.parse.urlparse(cleaned).path
        cleaned = path.strip("/")
        # Drop tab suffixes such as /videos or /featured
        cleaned = re.sub(r"/(videos|shorts|streams|live|featured|playlists|about)$", "", cleaned)
    cleaned = cleaned.strip("/")
    if not cleaned:
        raise ValueError("missing channel identifier")

    if cleaned.startswith("@") or cleaned.split("/", 1)[0] in {"channel", "c", "user"}:
        return cleaned
    if re.match(r"^UC[0-9A-Za-z_-]{22}$", cleaned):
        return f"channel/{cleaned}"
    return f"@{cleaned}"


def build_channel_url(channel_id: str) -> str:
    return f"{BASE_URL}/{normalize_channel_handle(channel_id)}/videos"


def fetch_html(url: str, headers: Dict[str, str], timeout: float = DEFAULT_TIMEOUT) -> str:
    """GET *url* and return the decoded body; any failure is a ``NetworkError``."""
    request = urllib.request.Request(url, headers=headers)
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            status = getattr(response, "status", 200)
            if not 200 <= status < 300:
                raise NetworkError(f"HTTP {status}: {url}", url=url, status=status)
            charset = response.headers.get_content_charset() or "utf-8"
            return response.read().decode(charset, "replace")
    except urllib.error.HTTPError as exc:
        raise NetworkError(f"HTTP {exc.code}: {url}", url=url, status=exc.code) from exc
    except urllib.error.URLError as exc:
        raise NetworkError(f"Failed to reach {url}: {exc.reason}", url=url) from exc
    except (socket.timeout, TimeoutError) as exc:
        raise NetworkError(f"Timed out after {timeout}s fetching {url}", url=url) from exc
    except OSError as exc:
        raise NetworkError(f"Connection error fetching {url}: {exc}", url=url) from exc


class DiscoveryService:
    """Finds videos by search query or channel."""

    def __init__(
        self,
        cache: CacheStore,
        fetcher: Fetcher = fetch_html,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache = cache
        self._fetcher = fetcher
        self.timeout = timeout
        self._clock = clock

    def _fetch(self, url: str) -> str:
        return self._fetcher(url, build_headers(), self.timeout)

    def _fetch_page(self, url: str) -> str:
        body = self._fetch(url)
        # Raises before a consent wall or unknown layout reaches the cache
        extract_videos(body, limit=None)
        return body

    def _fetch_body(self, key: str, url: str, use_cache: bool) -> str:
        if not use_cache:
            return self._fetch(url)
        return self.cache.get_or_fetch(key, lambda: self._fetch_page(url))

    def search(
        self,
        query: str,
        filters: str = "video",
        limit: int = DEFAULT_LIMIT,
        use_cache: bool = True,
    ) -> SearchResultSet:
        """Search YouTube for *query*; raises ``NetworkError`` or an ``ExtractionError``."""
        if not query or not query.strip():
            raise ValueError("search query must not be empty")
        url = build_search_url(query, filters)
        key = make_cache_key("search", query, filters=filters)
        body = self._fetch_body(key, url, use_cache)
        records = extract_videos(body, limit)
        return SearchResultSet(records=tuple(records), query=query.strip(), created_at=self._clock())

    def channel_videos(
        self,
        channel_id: str,
        limit: int = DEFAULT_LIMIT,
        use_cache: bool = True,
    ) -> SearchResultSet:
        """Latest uploads of a channel."""
        handle = normalize_channel_handle(channel_id)
        url = build_channel_url(handle)
        # Channel ids are case-sensitive, so the handle goes in un-normalised
        key = make_cache_key("channel", "", handle=handle)
        body = self._fetch_body(key, url, use_cache)
        records = extract_videos(body, limit)
        return SearchResultSet(records=tuple(records), query=handle, created_at=self._clock())
