"""Watch history persisted as a JSON list, newest first."""

import contextlib
import json
import os
import sys
import time
from typing import Callable, List, Optional

from .models import DEFAULT_MAX_HISTORY_ENTRIES, HistoryEntry, PlaybackMode, VideoRecord


class History:
    """Bounded, de-duplicated list of watched videos."""

    def __init__(
        self,
        path: str,
        max_entries: int = DEFAULT_MAX_HISTORY_ENTRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = path
        self.max_entries = max_entries
        self._clock = clock
        self.entries: List[HistoryEntry] = []
        self._loaded = False

    def load(self) -> List[HistoryEntry]:
        """Read the history file; a missing or unreadable file means no history."""
        self._loaded = True
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            self.entries = []
            return self.entries
        except (OSError, ValueError) as exc:
            print(f"Warning: Failed to read history {self.path}: {exc}", file=sys.stderr)
            self.entries = []
            return self.entries

        entries: List[HistoryEntry] = []
        for item in data if isinstance(data, list) else []:
            if not isinstance(item, dict):
                continue
            try:
                entries.append(HistoryEntry.from_dict(item))
            except (KeyError, TypeError, ValueError):
                continue
        self.entries = entries
        return self.entries

    def save(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        temp_path = f"{self.path}.tmp"
        try:
            with open(temp_path, "w", encoding="utf-8") as handle:
                json.dump([entry.to_dict() for entry in self.entries], handle, indent=2, ensure_ascii=False)
            os.replace(temp_path, self.path)
        except OSError:
            with contextlib.suppress(OSError):
                os.remove(temp_path)
            raise

    def add(
        self,
        record: VideoRecord,
        mode: PlaybackMode = PlaybackMode.STREAM_AUDIO,
        played_at: Optional[float] = None,
    ) -> HistoryEntry:
        """Move *record* to the front of the history and persist it."""
        if not self._loaded:
            self.load()
        entry = HistoryEntry(
            record=record,
            played_at=self._clock() if played_at is None else played_at,
            mode=mode,
        )
        self.entries = [e for e in self.entries if e.record.video_id != record.video_id]
        self.entries.insert(0, entry)
        del self.entries[self.max_entries:]
        self.save()
        return entry

    def records(self) -> List[VideoRecord]:
        return [entry.record for entry in self.entries]

    def clear(self) -> None:
        self.entries = []
        self._loaded = True
        with contextlib.suppress(FileNotFoundError):
            os.remove(self.path)
