"""Data models, enums, and constants for yt-chill."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


# Constants
DEFAULT_LIMIT = 15
DEFAULT_CACHE_TTL = 3600  # seconds
DEFAULT_TIMEOUT = 15.0  # seconds per HTTP request
DEFAULT_MAX_HISTORY_ENTRIES = 100
STATUS_MESSAGE_DELAY = 6.0  # seconds of buffering before "now playing"
MPV_USER_QUIT_CODE = 4

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

# User-Agent pool; a request without a browser UA is served a degraded page
USER_AGENTS = [
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15',
    'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0',
]


def build_video_url(video_id: str) -> str:
    """Return the watch URL for *video_id*."""
    return WATCH_URL.format(video_id=video_id)


def format_duration(seconds: Optional[int]) -> str:
    """Render seconds as M:SS or H:MM:SS; ``--:--`` when unknown."""
    if seconds is None:
        return "--:--"
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


@dataclass(frozen=True)
class VideoRecord:
    """Metadata for a single video, as scraped from a results page."""
    video_id: str
    title: str
    author: str = ""
    duration_seconds: Optional[int] = None
    is_live: bool = False
    views: str = ""
    published: str = ""
    thumbnail: str = ""

    @property
    def url(self) -> str:
        return build_video_url(self.video_id)

    @property
    def duration_label(self) -> str:
        if self.is_live:
            return "--:--"
        return format_duration(self.duration_seconds)

    def label(self) -> str:
        """Selector label: ``Title [duration] - Author``."""
        label = f"{self.title} [{self.duration_label}]"
        if self.author:
            label += f" - {self.author}"
        return label

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.video_id,
            "title": self.title,
            "author": self.author,
            "duration": self.duration_seconds,
            "is_live": self.is_live,
            "views": self.views,
            "published": self.published,
            "thumbnail": self.thumbnail,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VideoRecord":
        duration = data.get("duration")
        if duration is not None:
            duration = int(duration)
        return cls(
            video_id=str(data["id"]),
            title=str(data["title"]),
            author=str(data.get("author") or ""),
            duration_seconds=duration,
            is_live=bool(data.get("is_live", duration is None)),
            views=str(data.get("views") or ""),
            published=str(data.get("published") or ""),
            thumbnail=str(data.get("thumbnail") or ""),
        )


@dataclass(frozen=True)
class SearchResultSet:
    """Ordered results of one discovery request."""
    records: Tuple[VideoRecord, ...]
    query: str
    created_at: float = field(default_factory=time.time)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[VideoRecord]:
        return iter(self.records)

    def __getitem__(self, index: int) -> VideoRecord:
        return self.records[index]

    def labels(self) -> List[str]:
        return [record.label() for record in self.records]


@dataclass(frozen=True)
class CacheEntry:
    """A persisted fetch result."""
    key: str
    payload: Any
    created_at: float

    def is_fresh(self, now: float, ttl: float) -> bool:
        age = now - self.created_at
        return 0 <= age < ttl


class PlaybackMode(Enum):
    """What to do with the selected video."""
    STREAM_AUDIO = "stream-audio"
    STREAM_VIDEO = "stream-video"
    DOWNLOAD_AUDIO = "download-audio"
    DOWNLOAD_VIDEO = "download-video"
    SYNCPLAY = "syncplay"

    @property
    def is_download(self) -> bool:
        return self in (PlaybackMode.DOWNLOAD_AUDIO, PlaybackMode.DOWNLOAD_VIDEO)

    @property
    def wants_video(self) -> bool:
        return self in (
            PlaybackMode.STREAM_VIDEO,
            PlaybackMode.DOWNLOAD_VIDEO,
            PlaybackMode.SYNCPLAY,
        )

    @classmethod
    def from_flags(cls, *, download: bool, video: bool, syncplay: bool) -> "PlaybackMode":
        if download:
            return cls.DOWNLOAD_VIDEO if video else cls.DOWNLOAD_AUDIO
        if syncplay:
            return cls.SYNCPLAY
        return cls.STREAM_VIDEO if video else cls.STREAM_AUDIO


@dataclass
class Session:
    """The single live playback or download attempt."""
    record: VideoRecord
    mode: PlaybackMode
    started_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class HistoryEntry:
    """A watched (or downloaded) video."""
    record: VideoRecord
    played_at: float
    mode: PlaybackMode = PlaybackMode.STREAM_AUDIO

    def to_dict(self) -> Dict[str, Any]:
        data = self.record.to_dict()
        data["timestamp"] = int(self.played_at)
        data["mode"] = self.mode.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        try:
            mode = PlaybackMode(data.get("mode", PlaybackMode.STREAM_AUDIO.value))
        except ValueError:
            mode = PlaybackMode.STREAM_AUDIO
        return cls(
            record=VideoRecord.from_dict(data),
            played_at=float(data.get("timestamp", 0)),
            mode=mode,
        )


@dataclass(frozen=True)
class Subscription:
    """A followed channel."""
    name: str
    handle: str


class SelectorType(Enum):
    """Menu selector implementation."""
    FZF = "fzf"
    PROMPT = "prompt"


class PlayerType(Enum):
    """Streaming player."""
    MPV = "mpv"
    SYNCPLAY = "syncplay"


SELECTOR_CHOICES: Tuple[str, ...] = tuple(kind.value for kind in SelectorType)
PLAYER_CHOICES: Tuple[str, ...] = tuple(kind.value for kind in PlayerType)
