"""Interactive pickers: fzf when available, a numbered prompt otherwise.

Both implement ``select(labels, prompt) -> Optional[int]`` and return the
zero-based index of the chosen label, or ``None`` when the user cancels.
"""

import shutil
import subprocess
from typing import Callable, List, Optional, Sequence

from .models import SelectorType

CANCEL_WORDS = {"", "q", "quit", "b", "back", "exit"}


class Selector:
    """Present choices, return index-or-cancel."""

    name = "selector"

    def select(self, labels: Sequence[str], prompt: str) -> Optional[int]:
        raise NotImplementedError


class FzfSelector(Selector):
    """Runs fzf over ``index<TAB>label`` lines, showing only the label."""

    name = "fzf"

    def __init__(self, command: str = "fzf", runner: Callable[..., subprocess.CompletedProcess] = subprocess.run) -> None:
        self.command = command
        self._runner = runner

    @staticmethod
    def is_available(command: str = "fzf") -> bool:
        return shutil.which(command) is not None

    def build_command(self, prompt: str) -> List[str]:
        return [
            self.command,
            "--prompt", f"{prompt} > ",
            "--height", "40%",
            "--reverse",
            "--ansi",
            "--delimiter", "\t",
            "--with-nth", "2",
        ]

    def select(self, labels: Sequence[str], prompt: str) -> Optional[int]:
        if not labels:
            return None

        # Tabs in a label would shift fzf's field split
        lines = "\n".join(f"{idx}\t{label.replace(chr(9), ' ')}" for idx, label in enumerate(labels))
        try:
            completed = self._runner(
                self.build_command(prompt),
                input=lines,
                stdout=subprocess.PIPE,
                text=True,
                encoding="utf-8",
            )
        except OSError:
            return None

        # 1 = no match, 130 = Esc / Ctrl-C
        if completed.returncode != 0:
            return None
        line = (completed.stdout or "").strip()
        if not line:
            return None
        index_text = line.split("\t", 1)[0]
        if not index_text.isdigit():
            return None
        index = int(index_text)
        return index if 0 <= index < len(labels) else None


class PromptSelector(Selector):
    """Numbered list on stdout, answer read with ``input()``."""

    name = "prompt"

    def __init__(
        self,
        input_fn: Callable[[str], str] = input,
        print_fn: Callable[..., None] = print,
    ) -> None:
        self._input = input_fn
        self._print = print_fn

    def select(self, labels: Sequence[str], prompt: str) -> Optional[int]:
        if not labels:
            return None

        self._print(f"\n{prompt}:")
        for idx, label in enumerate(labels, start=1):
            self._print(f"  {idx:>2}. {label}")

        limit = len(labels)
        while True:
            try:
                raw = self._input(f"Select a number (1-{limit}, or 'q' to go back): ").strip().lower()
            except EOFError:
                return None
            if raw in CANCEL_WORDS:
                return None
            if raw.isdigit():
                value = int(raw)
                if 1 <= value <= limit:
                    return value - 1
            self._print(f"Please enter a number between 1 and {limit}, or 'q' to go back.")


def create_selector(preferred: str = SelectorType.FZF.value) -> Selector:
    """Pick the selector implementation; fzf falls back to the prompt when not installed."""
    if preferred == SelectorType.FZF.value and FzfSelector.is_available():
        return FzfSelector()
    return PromptSelector()
