"""External player/downloader processes and the playback event loop.

While a player runs, three things can happen: the process exits, the user
presses a key, or the buffering message is due to be replaced. They are
multiplexed on one loop: ``poll()`` the child, wait briefly on stdin with
``select``, and check the status deadline. Whichever happens first is
handled; the others stay pending.
"""

import importlib.util
import json
import os
import select
import shutil
import socket
import subprocess
import sys
import tempfile
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .errors import ExternalToolFailed, ExternalToolMissing
from .models import MPV_USER_QUIT_CODE, STATUS_MESSAGE_DELAY, PlaybackMode, Session

QUIT_KEYS: Tuple[str, ...] = ("q", "Q")

# Terminal byte sequences -> mpv key names
MPV_KEY_NAMES: Dict[str, str] = {
    " ": "SPACE",
    "\x1b[A": "UP",
    "\x1b[B": "DOWN",
    "\x1b[C": "RIGHT",
    "\x1b[D": "LEFT",
    "\r": "ENTER",
    "\n": "ENTER",
    "\x1b": "ESC",
    "\x7f": "BS",
    "#": "SHARP",
}

TERMINATE_GRACE = 3.0


def require_tool(name: str) -> str:
    """Return the absolute path of *name* or raise ``ExternalToolMissing``."""
    path = shutil.which(name)
    if not path:
        raise ExternalToolMissing(name)
    return path


class PlaybackOutcome(Enum):
    FINISHED = "finished"
    QUIT = "quit"
    FAILED = "failed"


@dataclass
class PlaybackResult:
    outcome: PlaybackOutcome
    returncode: Optional[int]
    status_shown: bool = False

    @property
    def succeeded(self) -> bool:
        return self.outcome is not PlaybackOutcome.FAILED


class PlayerProcess:
    """A running player owned by the orchestrator."""

    def __init__(
        self,
        process: subprocess.Popen,
        name: str,
        ipc_path: Optional[str] = None,
        success_codes: Sequence[int] = (0,),
    ) -> None:
        self.process = process
        self.name = name
        self.ipc_path = ipc_path
        self.success_codes = tuple(success_codes)

    def poll(self) -> Optional[int]:
        return self.process.poll()

    def send_key(self, key: str) -> bool:
        """Forward *key* over mpv's IPC socket. Best-effort."""
        if not self.ipc_path or not hasattr(socket, "AF_UNIX"):
            return False
        name = MPV_KEY_NAMES.get(key, key)
        message = json.dumps({"command": ["keypress", name]}) + "\n"
        try:
            with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
                sock.settimeout(0.5)
                sock.connect(self.ipc_path)
                sock.sendall(message.encode("utf-8"))
        except OSError:
            return False
        return True

    def terminate(self, grace: float = TERMINATE_GRACE) -> Optional[int]:
        """Stop the process (SIGTERM, then SIGKILL after *grace* seconds)."""
        if self.process.poll() is None:
            self.process.terminate()
            try:
                self.process.wait(timeout=grace)
            except subprocess.TimeoutExpired:
                self.process.kill()
                self.process.wait()
        self._cleanup_ipc()
        return self.process.poll()

    def _cleanup_ipc(self) -> None:
        if not self.ipc_path:
            return
        try:
            os.remove(self.ipc_path)
        except OSError:
            pass
        try:
            os.rmdir(os.path.dirname(self.ipc_path))
        except OSError:
            pass


class MpvPlayer:
    """Streams a watch URL with mpv (audio-only unless video is wanted)."""

    name = "mpv"

    def __init__(self, executable: str = "mpv", popen: Callable[..., subprocess.Popen] = subprocess.Popen) -> None:
        self.executable = executable
        self._popen = popen

    def build_command(self, url: str, video: bool, ipc_path: Optional[str] = None) -> List[str]:
        args = [self.executable, "--really-quiet"]
        if not video:
            args.append("--no-video")
        if ipc_path:
            # Keys come from our loop, not mpv's own terminal reader
            args.extend(["--input-terminal=no", f"--input-ipc-server={ipc_path}"])
        args.append(url)
        return args

    def launch(self, session: Session) -> PlayerProcess:
        require_tool(self.executable)
        ipc_path = None
        if hasattr(socket, "AF_UNIX"):
            ipc_path = os.path.join(tempfile.mkdtemp(prefix="yt-chill-"), "mpv.sock")
        command = self.build_command(session.record.url, session.mode.wants_video, ipc_path)
        try:
            process = self._popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            if ipc_path:
                shutil.rmtree(os.path.dirname(ipc_path), ignore_errors=True)
            raise ExternalToolFailed(self.name, started=False, stderr=str(exc)) from exc
        return PlayerProcess(process, self.name, ipc_path, success_codes=(0, MPV_USER_QUIT_CODE))


class SyncplayPlayer:
    """Hands the watch URL to syncplay. Keys are not forwarded."""

    name = "syncplay"

    def __init__(self, executable: str = "syncplay", popen: Callable[..., subprocess.Popen] = subprocess.Popen) -> None:
        self.executable = executable
        self._popen = popen

    def build_command(self, url: str) -> List[str]:
        return [self.executable, url]

    def launch(self, session: Session) -> PlayerProcess:
        require_tool(self.executable)
        try:
            process = self._popen(
                self.build_command(session.record.url),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            raise ExternalToolFailed(self.name, started=False, stderr=str(exc)) from exc
        return PlayerProcess(process, self.name)


class TerminalKeys:
    """Reads single key presses from a terminal in cbreak mode.

    Off a TTY (pipes, CI) no keys are ever produced and ``read_key`` just
    waits out its timeout.
    """

    def __init__(self, stream=None) -> None:
        self.stream = stream if stream is not None else sys.stdin
        self._fd: Optional[int] = None
        self._saved = None

    def _is_tty(self) -> bool:
        try:
            return self.stream.isatty()
        except (AttributeError, ValueError):
            return False

    def __enter__(self) -> "TerminalKeys":
        if self._is_tty():
            try:
                import termios
                import tty
            except ImportError:
                return self
            self._fd = self.stream.fileno()
            self._saved = termios.tcgetattr(self._fd)
            tty.setcbreak(self._fd)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self._fd is not None and self._saved is not None:
            import termios

            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved)
        self._fd = None
        self._saved = None
        return False

    def read_key(self, timeout: float) -> Optional[str]:
        if self._fd is None:
            time.sleep(timeout)
            return None
        ready, _, _ = select.select([self._fd], [], [], timeout)
        if not ready:
            return None
        key = os.read(self._fd, 1).decode("utf-8", "ignore")
        if key == "\x1b":
            # Arrow keys arrive as ESC [ X
            while len(key) < 3 and select.select([self._fd], [], [], 0.01)[0]:
                key += os.read(self._fd, 1).decode("utf-8", "ignore")
        return key


class StatusTimer:
    """One-shot deadline for swapping the buffering message. Never rearmed."""

    def __init__(self, deadline: float) -> None:
        self.deadline = deadline
        self.fired = False
        self.cancelled = False

    @property
    def pending(self) -> bool:
        return not self.fired and not self.cancelled

    def remaining(self, now: float) -> float:
        return max(0.0, self.deadline - now)

    def fire_if_due(self, now: float) -> bool:
        if self.pending and now >= self.deadline:
            self.fired = True
            return True
        return False

    def cancel(self) -> None:
        self.cancelled = True


class PlaybackMonitor:
    """Runs the control loop for one player process."""

    def __init__(
        self,
        keys,
        clock: Callable[[], float] = time.monotonic,
        status_delay: float = STATUS_MESSAGE_DELAY,
        quit_keys: Sequence[str] = QUIT_KEYS,
        poll_interval: float = 0.1,
    ) -> None:
        self.keys = keys
        self._clock = clock
        self.status_delay = status_delay
        self.quit_keys = tuple(quit_keys)
        self.poll_interval = poll_interval

    def _wait_time(self, timer: StatusTimer) -> float:
        if timer.pending:
            remaining = timer.remaining(self._clock())
            if remaining > 0:
                return min(self.poll_interval, remaining)
        return self.poll_interval

    def run(
        self,
        process: PlayerProcess,
        on_buffering: Callable[[], None],
        on_now_playing: Callable[[], None],
    ) -> PlaybackResult:
        on_buffering()
        timer = StatusTimer(self._clock() + self.status_delay)
        try:
            while True:
                returncode = process.poll()
                if returncode is not None:
                    outcome = (
                        PlaybackOutcome.FINISHED
                        if returncode in process.success_codes
                        else PlaybackOutcome.FAILED
                    )
                    return PlaybackResult(outcome, returncode, timer.fired)

                if timer.fire_if_due(self._clock()):
                    on_now_playing()

                key = self.keys.read_key(self._wait_time(timer))
                if key is None:
                    continue
                if key in self.quit_keys:
                    returncode = process.terminate()
                    return PlaybackResult(PlaybackOutcome.QUIT, returncode, timer.fired)
                process.send_key(key)
        except KeyboardInterrupt:
            returncode = process.terminate()
            return PlaybackResult(PlaybackOutcome.QUIT, returncode, timer.fired)
        finally:
            timer.cancel()
            process.terminate()


@dataclass
class DownloadResult:
    returncode: int
    stderr: str
    output_dir: str

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


class Downloader:
    """Runs yt-dlp as a child process for one video."""

    name = "yt-dlp"

    def __init__(
        self,
        executable: str = "yt-dlp",
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.executable = executable
        self._runner = runner

    def resolve_command(self) -> List[str]:
        path = shutil.which(self.executable)
        if path:
            return [path]
        # The yt-dlp package is a dependency; its module works without the console script
        if importlib.util.find_spec("yt_dlp") is not None:
            return [sys.executable, "-m", "yt_dlp"]
        raise ExternalToolMissing(self.executable)

    @staticmethod
    def format_args(mode: PlaybackMode) -> List[str]:
        if mode.wants_video:
            return ["--remux-video", "mp4"]
        return ["-x", "--audio-format", "mp3"]

    def build_command(self, url: str, mode: PlaybackMode, output_dir: str) -> List[str]:
        template = os.path.join(output_dir, "%(title)s [%(id)s].%(ext)s")
        return [*self.resolve_command(), *self.format_args(mode), "-o", template, url]

    def run(self, session: Session, output_dir: str) -> DownloadResult:
        command = self.build_command(session.record.url, session.mode, output_dir)
        try:
            os.makedirs(output_dir, exist_ok=True)
            completed = self._runner(
                command,
                stdin=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            raise ExternalToolFailed(self.name, started=False, stderr=str(exc)) from exc
        return DownloadResult(completed.returncode, completed.stderr or "", output_dir)
