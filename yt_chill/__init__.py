"""yt-chill: search, stream and download YouTube from the terminal."""

# Import main components for easier access
from .cache import CacheStore, make_cache_key
from .cli import main
from .config import parse_args, positive_int
from .discovery import DiscoveryService, normalize_channel_handle
from .errors import (
    CacheIOError,
    ExternalToolFailed,
    ExternalToolMissing,
    ExtractionError,
    MalformedPayload,
    MarkerNotFound,
    NetworkError,
    SchemaMismatch,
    UnterminatedStructure,
    YtChillError,
    describe_error,
)
from .extractor import extract_initial_data, extract_videos
from .health_check import run_health_check
from .history import History
from .models import (
    DEFAULT_CACHE_TTL,
    DEFAULT_LIMIT,
    PlaybackMode,
    SearchResultSet,
    Session,
    VideoRecord,
)
from .orchestrator import AppContext, Orchestrator, State

__all__ = [
    # Main entry points
    "main",
    "parse_args",
    "run_health_check",
    "Orchestrator",
    "AppContext",
    "State",
    # Discovery
    "DiscoveryService",
    "CacheStore",
    "make_cache_key",
    "extract_videos",
    "extract_initial_data",
    "normalize_channel_handle",
    # Models and data structures
    "VideoRecord",
    "SearchResultSet",
    "Session",
    "PlaybackMode",
    "History",
    # Errors
    "YtChillError",
    "NetworkError",
    "ExtractionError",
    "MarkerNotFound",
    "UnterminatedStructure",
    "MalformedPayload",
    "SchemaMismatch",
    "CacheIOError",
    "ExternalToolMissing",
    "ExternalToolFailed",
    "describe_error",
    # Configuration
    "positive_int",
    # Constants
    "DEFAULT_LIMIT",
    "DEFAULT_CACHE_TTL",
]
