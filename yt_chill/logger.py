"""Console output helpers: messages, the rewritable status line, debug log."""

import sys
from datetime import datetime
from typing import Optional, TextIO

CLEAR_LINE = "\r\x1b[K"


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


def log_warning(message: str) -> None:
    """Print a warning to stderr. Used by modules that must not talk to the user directly."""
    print(f"Warning: {message}", file=sys.stderr)


class Console:
    """Prints user-facing messages for the orchestrator."""

    def __init__(
        self,
        out: Optional[TextIO] = None,
        err: Optional[TextIO] = None,
        verbose: bool = False,
    ) -> None:
        self._out = out
        self._err = err
        self.verbose = verbose
        self._status_active = False

    # Streams are resolved lazily so pytest's capsys sees the output.
    @property
    def out(self) -> TextIO:
        return self._out or sys.stdout

    @property
    def err(self) -> TextIO:
        return self._err or sys.stderr

    def _end_status(self) -> None:
        if self._status_active:
            self.out.write("\n")
            self._status_active = False

    def info(self, message: str) -> None:
        self._end_status()
        print(message, file=self.out)

    def success(self, message: str) -> None:
        self.info(f"✓ {message}")

    def warning(self, message: str) -> None:
        self._end_status()
        print(f"⚠ {message}", file=self.err)

    def error(self, message: str, hint: str = "") -> None:
        self._end_status()
        print(f"Error: {message}", file=self.err)
        if hint:
            print(f"  {hint}", file=self.err)

    def status(self, message: str) -> None:
        """Replace the current terminal line with *message*."""
        self.out.write(f"{CLEAR_LINE}{message}")
        self.out.flush()
        self._status_active = True

    def clear_status(self) -> None:
        if self._status_active:
            self.out.write(CLEAR_LINE)
            self.out.flush()
            self._status_active = False

    def debug(self, message: str) -> None:
        if not self.verbose:
            return
        print(f"[{_timestamp()}] {message}", file=self.err)
        self.err.flush()
