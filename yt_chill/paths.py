"""XDG base directory resolution for yt-chill."""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

APP_NAME = "yt-chill"


def _base_dir(environ: Mapping[str, str], variable: str, fallback: str) -> str:
    value = (environ.get(variable) or "").strip()
    if value:
        return value
    home = environ.get("HOME") or os.path.expanduser("~")
    return os.path.join(home, fallback)


@dataclass(frozen=True)
class AppPaths:
    """Every on-disk location the tool reads or writes."""
    config_dir: str
    cache_dir: str

    @property
    def config_file(self) -> str:
        return os.path.join(self.config_dir, "config.json")

    @property
    def subscriptions_file(self) -> str:
        return os.path.join(self.config_dir, "subscriptions.txt")

    @property
    def history_file(self) -> str:
        return os.path.join(self.cache_dir, "history.json")

    @property
    def search_cache_dir(self) -> str:
        return os.path.join(self.cache_dir, "search")

    def ensure(self) -> None:
        os.makedirs(self.config_dir, exist_ok=True)
        os.makedirs(self.cache_dir, exist_ok=True)


def resolve_paths(environ: Optional[Mapping[str, str]] = None) -> AppPaths:
    """Honour ``XDG_CONFIG_HOME`` / ``XDG_CACHE_HOME``, defaulting to ``~/.config`` / ``~/.cache``."""
    if environ is None:
        environ = os.environ
    return AppPaths(
        config_dir=os.path.join(_base_dir(environ, "XDG_CONFIG_HOME", ".config"), APP_NAME),
        cache_dir=os.path.join(_base_dir(environ, "XDG_CACHE_HOME", ".cache"), APP_NAME),
    )
