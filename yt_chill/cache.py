"""Content-addressed, TTL-bound cache of fetch results.

One JSON file per key, ``{"createdAt": <epoch seconds>, "payload": ...}``.
Expiry is checked lazily on read; stale files are left on disk until they are
overwritten by a fresh fetch or removed with ``clear()``.
"""

import contextlib
import hashlib
import json
import os
import time
from typing import Any, Callable, Optional

from .errors import CacheIOError
from .logger import log_warning
from .models import DEFAULT_CACHE_TTL, CacheEntry


def normalize_text(text: str) -> str:
    """Trim, lower-case and collapse internal whitespace."""
    return " ".join(str(text).split()).lower()


def make_cache_key(kind: str, text: str, **flags: Any) -> str:
    """Return the SHA-256 hex digest of a normalised request description."""
    document = {
        "kind": kind,
        "text": normalize_text(text),
        "flags": {name: flags[name] for name in sorted(flags)},
    }
    encoded = json.dumps(document, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class CacheStore:
    """File-backed cache wrapping arbitrary fetch functions."""

    def __init__(
        self,
        directory: str,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = directory
        self.ttl = ttl
        self._clock = clock

    def path_for(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def read(self, key: str) -> Optional[CacheEntry]:
        """Return the stored entry for *key* regardless of age, or ``None``."""
        path = self.path_for(key)
        try:
            with open(path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            log_warning(f"Ignoring unreadable cache entry {path}: {exc}")
            return None

        if not isinstance(data, dict) or "payload" not in data:
            log_warning(f"Ignoring malformed cache entry {path}")
            return None
        created_at = data.get("createdAt")
        if not isinstance(created_at, (int, float)) or isinstance(created_at, bool):
            log_warning(f"Ignoring cache entry without timestamp {path}")
            return None

        return CacheEntry(key=key, payload=data["payload"], created_at=float(created_at))

    def write(self, key: str, payload: Any) -> CacheEntry:
        """Persist *payload* under *key*, replacing any previous entry."""
        entry = CacheEntry(key=key, payload=payload, created_at=self._clock())
        path = self.path_for(key)
        temp_path = f"{path}.tmp"

        try:
            os.makedirs(self.directory, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8") as handle:
                json.dump(
                    {"createdAt": entry.created_at, "payload": entry.payload},
                    handle,
                    ensure_ascii=False,
                )
            os.replace(temp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            with contextlib.suppress(OSError):
                os.remove(temp_path)
            raise CacheIOError(f"Failed to write cache entry {path}: {exc}") from exc
        return entry

    def get(self, key: str, ttl: Optional[float] = None) -> Optional[Any]:
        """Return the payload for *key* if it is fresh."""
        entry = self.read(key)
        if entry is None:
            return None
        if not entry.is_fresh(self._clock(), self.ttl if ttl is None else ttl):
            return None
        return entry.payload

    def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Any],
        ttl: Optional[float] = None,
    ) -> Any:
        """Return the fresh cached payload for *key*, or fetch, store and return it.

        Exceptions from *fetch_fn* propagate and leave any stale entry in place.
        """
        entry = self.read(key)
        effective_ttl = self.ttl if ttl is None else ttl
        if entry is not None and entry.is_fresh(self._clock(), effective_ttl):
            return entry.payload

        payload = fetch_fn()
        try:
            self.write(key, payload)
        except CacheIOError as exc:
            log_warning(str(exc))
        return payload

    def clear(self) -> int:
        """Delete every cache entry. Returns the number of files removed."""
        removed = 0
        try:
            names = os.listdir(self.directory)
        except FileNotFoundError:
            return 0
        for name in names:
            if not name.endswith(".json"):
                continue
            try:
                os.remove(os.path.join(self.directory, name))
                removed += 1
            except OSError as exc:
                log_warning(f"Failed to remove cache entry {name}: {exc}")
        return removed
