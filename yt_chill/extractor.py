"""Video metadata extraction from the bootstrap JSON embedded in YouTube pages.

YouTube ships the initial page state inline as ``var ytInitialData = {...};``.
The object is located by marker, delimited with a string-aware brace scanner
(regular expressions either truncate or overrun deeply nested JSON), parsed,
and then walked along known renderer paths. Each stage fails with its own
``ExtractionError`` subclass so callers can tell a consent wall from a layout
change.
"""

import json
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from yt_dlp.utils import parse_duration, unescapeHTML

from .errors import MalformedPayload, MarkerNotFound, SchemaMismatch, UnterminatedStructure
from .models import DEFAULT_LIMIT, VideoRecord

MARKERS: Tuple[str, ...] = (
    "var ytInitialData",
    'window["ytInitialData"]',
    "ytInitialData",
)


class _AnyIndex:
    """Path step matching the first list element the rest of the path resolves in."""

    def __repr__(self) -> str:
        return "[*]"


ANY = _AnyIndex()

PathStep = Union[str, int, _AnyIndex]

# Tried in order; the first list holding a video wins.
SEARCH_RESULTS_PATH: Tuple[PathStep, ...] = (
    "contents",
    "twoColumnSearchResultsRenderer",
    "primaryContents",
    "sectionListRenderer",
    "contents",
    ANY,
    "itemSectionRenderer",
    "contents",
)

CHANNEL_VIDEOS_PATH: Tuple[PathStep, ...] = (
    "contents",
    "twoColumnBrowseResultsRenderer",
    "tabs",
    ANY,
    "tabRenderer",
    "content",
    "richGridRenderer",
    "contents",
)

ITEM_PATHS: Tuple[Tuple[PathStep, ...], ...] = (SEARCH_RESULTS_PATH, CHANNEL_VIDEOS_PATH)


def find_marker(html: str) -> int:
    """Return the offset just past the first known bootstrap marker."""
    for marker in MARKERS:
        idx = html.find(marker)
        if idx != -1:
            return idx + len(marker)
    raise MarkerNotFound("Failed to find ytInitialData in page")


def scan_balanced(text: str, start: int) -> int:
    """Return the index one past the ``}`` closing the object opened at *start*.

    ``text[start]`` must be ``{``. Braces inside double-quoted strings are
    ignored; backslash escapes inside strings are honoured.
    """
    if start >= len(text) or text[start] != "{":
        raise UnterminatedStructure(f"No object starts at offset {start}")

    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        char = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return idx + 1

    raise UnterminatedStructure(
        f"Reached end of input with {depth} unclosed brace(s)"
    )


def extract_initial_data(html: str) -> dict:
    """Locate, delimit and parse the bootstrap JSON object in *html*."""
    after_marker = find_marker(html)
    open_brace = html.find("{", after_marker)
    if open_brace == -1:
        raise UnterminatedStructure("No object follows the ytInitialData marker")

    end = scan_balanced(html, open_brace)
    try:
        return json.loads(html[open_brace:end])
    except json.JSONDecodeError as exc:
        raise MalformedPayload(f"Failed to parse ytInitialData: {exc}") from exc


def iter_path(node: Any, path: Sequence[PathStep]) -> Iterator[Any]:
    """Yield every value *path* resolves to, in document order."""
    for position, step in enumerate(path):
        if isinstance(step, _AnyIndex):
            if not isinstance(node, list):
                return
            rest = path[position + 1:]
            for element in node:
                yield from iter_path(element, rest)
            return
        if isinstance(step, int):
            if not isinstance(node, list) or not -len(node) <= step < len(node):
                return
            node = node[step]
        else:
            if not isinstance(node, dict) or step not in node:
                return
            node = node[step]
    if node is not None:
        yield node


def walk_path(node: Any, path: Sequence[PathStep]) -> Optional[Any]:
    """Follow *path* through nested dicts and lists; ``None`` when it breaks."""
    return next(iter_path(node, path), None)


def find_result_items(data: Any) -> List[Any]:
    """Return the renderer item list from a search or channel page.

    Sections holding only ads or shelves are passed over for the first one
    with a video in it.
    """
    fallback: Optional[List[Any]] = None
    for path in ITEM_PATHS:
        for items in iter_path(data, path):
            if not isinstance(items, list):
                continue
            if any(_video_renderer(item) is not None for item in items):
                return items
            if fallback is None:
                fallback = items
    if fallback is not None:
        return fallback
    raise SchemaMismatch("No known result list in ytInitialData")


def text_of(node: Any) -> str:
    """Flatten a YouTube text node (``simpleText`` or ``runs``) to a string."""
    if not isinstance(node, dict):
        return ""
    simple = node.get("simpleText")
    if isinstance(simple, str):
        return simple
    runs = node.get("runs")
    if isinstance(runs, list):
        return "".join(
            run.get("text", "") for run in runs
            if isinstance(run, dict) and isinstance(run.get("text"), str)
        )
    return ""


def parse_duration_text(value: str) -> Optional[int]:
    """Parse ``MM:SS`` / ``H:MM:SS`` display strings into whole seconds."""
    cleaned = (value or "").strip()
    if not cleaned or ":" not in cleaned:
        return None
    seconds = parse_duration(cleaned)
    if seconds is None or seconds < 0:
        return None
    return int(seconds)


def _video_renderer(item: Any) -> Optional[dict]:
    if not isinstance(item, dict):
        return None
    renderer = item.get("videoRenderer")
    if renderer is None:
        renderer = walk_path(item, ("richItemRenderer", "content", "videoRenderer"))
    return renderer if isinstance(renderer, dict) else None


def _first_text(renderer: dict, keys: Iterable[str]) -> str:
    for key in keys:
        text = text_of(renderer.get(key))
        if text:
            return text
    return ""


def _thumbnail(renderer: dict) -> str:
    thumbs = walk_path(renderer, ("thumbnail", "thumbnails"))
    if isinstance(thumbs, list) and thumbs and isinstance(thumbs[-1], dict):
        url = thumbs[-1].get("url")
        if isinstance(url, str):
            return url
    return ""


def parse_video_item(item: Any, default_author: str = "") -> Optional[VideoRecord]:
    """Build a ``VideoRecord`` from one result item; ``None`` if it is not a usable video."""
    renderer = _video_renderer(item)
    if renderer is None:
        return None

    video_id = renderer.get("videoId")
    title = unescapeHTML(text_of(renderer.get("title"))).strip()
    if not isinstance(video_id, str) or not video_id or not title:
        return None

    author = _first_text(renderer, ("longBylineText", "ownerText", "shortBylineText"))
    duration = parse_duration_text(text_of(renderer.get("lengthText")))

    return VideoRecord(
        video_id=video_id,
        title=title,
        author=unescapeHTML(author or default_author),
        duration_seconds=duration,
        is_live=duration is None,
        views=text_of(renderer.get("viewCountText")) or text_of(renderer.get("shortViewCountText")),
        published=text_of(renderer.get("publishedTimeText")),
        thumbnail=_thumbnail(renderer),
    )


def extract_videos(html: str, limit: Optional[int] = DEFAULT_LIMIT) -> List[VideoRecord]:
    """Extract up to *limit* video records, in page order, from a raw HTML page."""
    data = extract_initial_data(html)
    items = find_result_items(data)

    channel_title = walk_path(data, ("metadata", "channelMetadataRenderer", "title"))
    default_author = channel_title if isinstance(channel_title, str) else ""

    records: List[VideoRecord] = []
    for item in items:
        if limit is not None and len(records) >= limit:
            break
        record = parse_video_item(item, default_author)
        if record is not None:
            records.append(record)
    return records
