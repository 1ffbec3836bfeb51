"""The yt-chill state machine.

Each state has a handler that does its work and returns the next state.
The orchestrator owns the single playback session and is the only place
that talks to the user about errors.
"""

from __future__ import annotations

import argparse
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from .discovery import DiscoveryService, normalize_channel_handle
from .errors import (
    ExternalToolFailed,
    ExternalToolMissing,
    ExtractionError,
    NetworkError,
    describe_error,
)
from .history import History
from .logger import Console
from .models import PlaybackMode, SearchResultSet, Session, Subscription, VideoRecord
from .paths import AppPaths
from .playback import (
    Downloader,
    MpvPlayer,
    PlaybackMonitor,
    PlaybackOutcome,
    SyncplayPlayer,
    TerminalKeys,
)
from .selector import Selector
from .subscriptions import add_subscription, load_subscriptions

BUFFERING_MESSAGE = "⏳ Convincing YouTube to share... 🙄"
NOW_PLAYING_MESSAGE = "🎵 Vibing... Sit back and chill. (space=pause, ←/→=seek, q=quit)"
SYNCPLAY_PLAYING_MESSAGE = "🎵 Watching together via syncplay. (q=quit)"
GOODBYE_MESSAGE = "👋 Thanks for chilling."
STDERR_TAIL_LINES = 20


class State(Enum):
    INIT = "init"
    MENU = "menu"
    SEARCHING = "searching"
    HISTORY = "history"
    FEED = "feed"
    SUBSCRIBE = "subscribe"
    SELECTING = "selecting"
    PLAYING = "playing"
    DOWNLOADING = "downloading"
    EXIT = "exit"


MENU_ITEMS: Tuple[Tuple[str, State], ...] = (
    ("🔍 Search YouTube", State.SEARCHING),
    ("📜 View your history", State.HISTORY),
    ("📺 View your feed", State.FEED),
    ("➕ Add a subscription", State.SUBSCRIBE),
)


@dataclass
class AppContext:
    """Process-wide settings and state, threaded through every transition."""

    options: argparse.Namespace
    paths: AppPaths
    query: str = ""
    menu_reachable: bool = True
    session: Optional[Session] = None
    exit_code: int = 0
    trace: List[State] = field(default_factory=list)


def initial_state(options: argparse.Namespace) -> State:
    """Where the program starts: a query or a mode flag skips the menu."""
    if getattr(options, "history", False):
        return State.HISTORY
    if getattr(options, "feed", False):
        return State.FEED
    if getattr(options, "subscribe", False):
        return State.SUBSCRIBE
    if (getattr(options, "query_text", "") or "").strip():
        return State.SEARCHING
    return State.MENU


def interleave(groups: List[List[VideoRecord]]) -> List[VideoRecord]:
    """Round-robin merge so every channel's newest uploads come first."""
    merged: List[VideoRecord] = []
    seen = set()
    depth = max((len(group) for group in groups), default=0)
    for idx in range(depth):
        for group in groups:
            if idx < len(group) and group[idx].video_id not in seen:
                seen.add(group[idx].video_id)
                merged.append(group[idx])
    return merged


class Orchestrator:
    """Drives one run of yt-chill from INIT to EXIT."""

    def __init__(
        self,
        context: AppContext,
        discovery: DiscoveryService,
        selector: Selector,
        history: History,
        console: Optional[Console] = None,
        mpv: Optional[MpvPlayer] = None,
        syncplay: Optional[SyncplayPlayer] = None,
        downloader: Optional[Downloader] = None,
        keys_factory: Callable[[], object] = TerminalKeys,
        input_fn: Callable[[str], str] = input,
        clock: Callable[[], float] = time.time,
        monitor_clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.context = context
        self.discovery = discovery
        self.selector = selector
        self.history = history
        self.console = console or Console()
        self.mpv = mpv or MpvPlayer()
        self.syncplay = syncplay or SyncplayPlayer()
        self.downloader = downloader or Downloader()
        self._keys_factory = keys_factory
        self._input = input_fn
        self._clock = clock
        self._monitor_clock = monitor_clock

        self._results: Optional[SearchResultSet] = None
        self._results_prompt = "Select Video"
        self._pending_query = context.query

        self._handlers: Dict[State, Callable[[], State]] = {
            State.INIT: self.handle_init,
            State.MENU: self.handle_menu,
            State.SEARCHING: self.handle_searching,
            State.HISTORY: self.handle_history,
            State.FEED: self.handle_feed,
            State.SUBSCRIBE: self.handle_subscribe,
            State.SELECTING: self.handle_selecting,
            State.PLAYING: self.handle_playing,
            State.DOWNLOADING: self.handle_downloading,
        }

    @property
    def options(self) -> argparse.Namespace:
        return self.context.options

    def run(self) -> int:
        state = State.INIT
        while True:
            self.context.trace.append(state)
            if state is State.EXIT:
                break
            self.console.debug(f"state: {state.value}")
            try:
                state = self._handlers[state]()
            except ExternalToolMissing as exc:
                self.console.clear_status()
                self.console.error(str(exc), describe_error(exc))
                self.context.exit_code = 1
                state = State.EXIT
        self.context.session = None
        return self.context.exit_code

    # Helpers

    def _back(self, failed: bool = False) -> State:
        """Return to the menu, or end the program when the menu was skipped."""
        if self.context.menu_reachable:
            return State.MENU
        if failed:
            self.context.exit_code = 1
        return State.EXIT

    def _report(self, exc: BaseException) -> None:
        self.console.error(str(exc), describe_error(exc))

    def _ask(self, prompt: str) -> Optional[str]:
        try:
            return self._input(prompt).strip()
        except EOFError:
            return None

    def _record_history(self, session: Session) -> None:
        try:
            self.history.add(session.record, session.mode)
        except OSError as exc:
            self.console.warning(f"Failed to update history: {exc}")

    # State handlers

    def handle_init(self) -> State:
        state = initial_state(self.options)
        self.context.menu_reachable = state is State.MENU
        return state

    def handle_menu(self) -> State:
        labels = [label for label, _ in MENU_ITEMS]
        choice = self.selector.select(labels, "Select Action")
        if choice is None:
            return State.EXIT
        return MENU_ITEMS[choice][1]

    def handle_searching(self) -> State:
        query = self._pending_query
        self._pending_query = ""
        if not query:
            query = self._ask("🔍 Search YouTube: ")
            if not query:
                return self._back()

        self.console.info(f"Searching for '{query}'...")
        try:
            results = self.discovery.search(query, limit=self.options.limit)
        except (NetworkError, ExtractionError) as exc:
            self._report(exc)
            return self._back(failed=True)

        if not results:
            self.console.info(f"No results found for '{query}'.")
            return self._back()

        self.console.debug(f"{len(results)} results for '{query}'")
        self._results = results
        self._results_prompt = "Select Video"
        return State.SELECTING

    def handle_history(self) -> State:
        records = [entry.record for entry in self.history.load()]
        if not records:
            self.console.info("No history yet. Play something first!")
            return self._back()
        self._results = SearchResultSet(records=tuple(records), query="history", created_at=self._clock())
        self._results_prompt = "Select From History"
        return State.SELECTING

    def handle_feed(self) -> State:
        subscriptions = load_subscriptions(self.context.paths.subscriptions_file)
        if not subscriptions:
            self.console.info("No subscriptions yet. Add one with --subscribe.")
            return self._back()

        groups: List[List[VideoRecord]] = []
        last_error: Optional[BaseException] = None
        for sub in subscriptions:
            self.console.status(f"Fetching {sub.name}...")
            try:
                videos = self.discovery.channel_videos(sub.handle, limit=self.options.limit)
            except (NetworkError, ExtractionError, ValueError) as exc:
                self.console.warning(f"Skipping {sub.name}: {exc}")
                last_error = exc
                continue
            groups.append(list(videos))
        self.console.clear_status()

        records = interleave(groups)
        if not records:
            if last_error is not None:
                self._report(last_error)
                return self._back(failed=True)
            self.console.info("Your subscriptions have no videos.")
            return self._back()

        self._results = SearchResultSet(records=tuple(records), query="feed", created_at=self._clock())
        self._results_prompt = "Select From Feed"
        return State.SELECTING

    def handle_subscribe(self) -> State:
        raw = self._ask("Channel (@handle, channel ID or URL): ")
        if not raw:
            return self._back()
        try:
            handle = normalize_channel_handle(raw)
        except ValueError as exc:
            self._report(exc)
            return self._back(failed=True)

        name = self._ask(f"Display name [{handle}]: ") or handle
        try:
            add_subscription(self.context.paths.subscriptions_file, Subscription(name=name, handle=handle))
        except OSError as exc:
            self.console.error(f"Failed to save subscription: {exc}")
            return self._back(failed=True)
        self.console.success(f"Subscribed to {name} ({handle})")
        return self._back()

    def handle_selecting(self) -> State:
        results = self._results
        if results is None or not results:
            return self._back()
        choice = self.selector.select(results.labels(), self._results_prompt)
        if choice is None:
            return self._back()

        record = results[choice]
        if getattr(self.options, "copy_url", False):
            self.console.info(record.url)
            return State.EXIT

        mode = PlaybackMode.from_flags(
            download=self.options.download,
            video=self.options.video,
            syncplay=self.options.syncplay,
        )
        self.context.session = Session(record=record, mode=mode, started_at=self._clock())
        return State.DOWNLOADING if mode.is_download else State.PLAYING

    def handle_playing(self) -> State:
        session = self.context.session
        if session is None:
            return State.EXIT

        syncplay = session.mode is PlaybackMode.SYNCPLAY
        player = self.syncplay if syncplay else self.mpv
        now_playing = SYNCPLAY_PLAYING_MESSAGE if syncplay else NOW_PLAYING_MESSAGE
        self.console.info(f"▶ {session.record.title}")

        try:
            process = player.launch(session)
        except ExternalToolFailed as exc:
            self._report(exc)
            self.context.exit_code = 1
            return State.EXIT

        with self._keys_factory() as keys:
            monitor = PlaybackMonitor(keys, clock=self._monitor_clock)
            result = monitor.run(
                process,
                on_buffering=lambda: self.console.status(BUFFERING_MESSAGE),
                on_now_playing=lambda: self.console.status(now_playing),
            )
        self.console.clear_status()
        self.console.debug(f"{player.name} ended: {result.outcome.value} (code {result.returncode})")

        if result.outcome is PlaybackOutcome.FAILED:
            self.console.error(f"{player.name} exited with code {result.returncode}")
            self.context.exit_code = 1
        else:
            self._record_history(session)
        self.console.info(GOODBYE_MESSAGE)
        return State.EXIT

    def handle_downloading(self) -> State:
        session = self.context.session
        if session is None:
            return State.EXIT

        kind = "video" if session.mode.wants_video else "audio"
        self.console.info(f"⬇ Downloading {kind}: {session.record.title}")
        try:
            result = self.downloader.run(session, self.options.download_dir)
        except ExternalToolFailed as exc:
            self._report(exc)
            self._print_stderr_tail(exc.stderr)
            return State.EXIT

        if result.succeeded:
            self.console.success(f"Download complete! Saved to {result.output_dir}")
            self._record_history(session)
            return State.EXIT

        failure = ExternalToolFailed(self.downloader.name, returncode=result.returncode, stderr=result.stderr)
        self._report(failure)
        self._print_stderr_tail(result.stderr)
        return State.EXIT

    def _print_stderr_tail(self, stderr: str) -> None:
        for line in stderr.strip().splitlines()[-STDERR_TAIL_LINES:]:
            print(f"  {line}", file=self.console.err)
