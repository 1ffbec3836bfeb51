"""Configuration file handling and argument parsing for yt-chill."""

import argparse
import json
import os
import shutil
import subprocess
import sys
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .models import (
    DEFAULT_CACHE_TTL,
    DEFAULT_LIMIT,
    DEFAULT_MAX_HISTORY_ENTRIES,
    DEFAULT_TIMEOUT,
    PLAYER_CHOICES,
    SELECTOR_CHOICES,
    PlayerType,
    SelectorType,
)
from .paths import AppPaths, resolve_paths

ENV_SELECTOR = "YT_CHILL_SELECTOR"
ENV_DOWNLOAD_DIR = "YT_CHILL_DOWNLOAD_DIR"

DEFAULT_EDITOR = "nvim"

VALID_CONFIG_KEYS = {
    "limit",
    "video_mode",
    "download_dir",
    "max_history_entries",
    "editor",
    "player",
    "selector",
    "cache_ttl",
    "timeout",
}


def default_config() -> Dict[str, Any]:
    """The settings written by ``--edit`` when no config file exists."""
    return {
        "limit": DEFAULT_LIMIT,
        "video_mode": False,
        "download_dir": "",
        "max_history_entries": DEFAULT_MAX_HISTORY_ENTRIES,
        "editor": os.environ.get("EDITOR") or DEFAULT_EDITOR,
        "player": PlayerType.MPV.value,
        "selector": SelectorType.FZF.value,
        "cache_ttl": DEFAULT_CACHE_TTL,
        "timeout": DEFAULT_TIMEOUT,
    }


def positive_int(value: str) -> int:
    """Return *value* parsed as a positive integer for argparse."""

    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise argparse.ArgumentTypeError("Expected a positive integer") from exc

    if parsed <= 0:
        raise argparse.ArgumentTypeError("Expected a positive integer")

    return parsed


def load_config_file(config_path: str) -> Dict[str, Any]:
    """Load configuration from a JSON file.

    Returns a dictionary with configuration values that can be used as defaults
    for command-line arguments. If the file doesn't exist or is invalid, returns
    an empty dictionary.
    """
    if not os.path.exists(config_path):
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = json.load(f)
    except json.JSONDecodeError as exc:
        print(f"Warning: Failed to parse config file {config_path}: {exc}. Ignoring.", file=sys.stderr)
        return {}
    except OSError as exc:
        print(f"Warning: Failed to read config file {config_path}: {exc}. Ignoring.", file=sys.stderr)
        return {}

    if not isinstance(config, dict):
        print(f"Warning: Config file {config_path} must contain a JSON object. Ignoring.", file=sys.stderr)
        return {}

    invalid_keys = set(config.keys()) - VALID_CONFIG_KEYS
    if invalid_keys:
        print(f"Warning: Unknown config keys ignored: {', '.join(sorted(invalid_keys))}", file=sys.stderr)

    cleaned = {k: v for k, v in config.items() if k in VALID_CONFIG_KEYS}

    # Drop values argparse would choke on rather than failing at startup
    for key in ("limit", "max_history_entries"):
        if key in cleaned and (not isinstance(cleaned[key], int) or isinstance(cleaned[key], bool) or cleaned[key] <= 0):
            print(f"Warning: Config key '{key}' must be a positive integer. Ignoring.", file=sys.stderr)
            del cleaned[key]
    for key in ("cache_ttl", "timeout"):
        if key in cleaned and (not isinstance(cleaned[key], (int, float)) or isinstance(cleaned[key], bool) or cleaned[key] <= 0):
            print(f"Warning: Config key '{key}' must be a positive number. Ignoring.", file=sys.stderr)
            del cleaned[key]
    if cleaned.get("selector") not in (None, *SELECTOR_CHOICES):
        print(f"Warning: Unknown selector '{cleaned['selector']}'. Ignoring.", file=sys.stderr)
        del cleaned["selector"]
    if cleaned.get("player") not in (None, *PLAYER_CHOICES):
        print(f"Warning: Unknown player '{cleaned['player']}'. Ignoring.", file=sys.stderr)
        del cleaned["player"]

    return cleaned


def save_config(config_path: str, config: Mapping[str, Any]) -> None:
    directory = os.path.dirname(config_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as handle:
        json.dump(dict(config), handle, indent=2, ensure_ascii=False)
        handle.write("\n")


def edit_config(config_path: str, editor: Optional[str] = None) -> int:
    """Open the config file in an editor, creating it with defaults first if needed."""
    if not os.path.exists(config_path):
        save_config(config_path, default_config())

    command = editor or os.environ.get("EDITOR") or DEFAULT_EDITOR
    if not shutil.which(command):
        print(f"Error: Editor '{command}' not found. Config file is at {config_path}", file=sys.stderr)
        return 1
    return subprocess.call([command, config_path])


def _find_config_path(argv: Sequence[str], paths: AppPaths) -> str:
    if "--config" in argv:
        idx = list(argv).index("--config")
        if idx + 1 < len(argv):
            return argv[idx + 1]
    return paths.config_file


def build_parser(config: Mapping[str, Any], config_path: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="yt-chill",
        description="Search, stream and download YouTube audio from your terminal.",
    )
    parser.add_argument("query", nargs="*", help="Search query (opens the menu when omitted)")
    parser.add_argument(
        "--config",
        default=config_path,
        help=f"Path to JSON configuration file (default: {config_path})",
    )
    parser.add_argument(
        "--video",
        action="store_true",
        default=bool(config.get("video_mode", False)),
        help="Include video (audio-only by default)",
    )
    parser.add_argument("-d", "--download", action="store_true", help="Download instead of streaming")
    parser.add_argument("--history", action="store_true", help="Show and replay from viewing history")
    parser.add_argument("-F", "--feed", action="store_true", help="Browse the latest videos of your subscriptions")
    parser.add_argument("-s", "--subscribe", action="store_true", help="Add a channel to your subscriptions")
    parser.add_argument(
        "--syncplay",
        action="store_true",
        default=config.get("player") == PlayerType.SYNCPLAY.value,
        help="Watch with friends via syncplay",
    )
    parser.add_argument(
        "-l",
        "--limit",
        type=positive_int,
        default=config.get("limit", DEFAULT_LIMIT),
        help=f"Number of search results (default: {DEFAULT_LIMIT})",
    )
    parser.add_argument("--copy-url", action="store_true", help="Print the video link instead of playing it")
    parser.add_argument("-e", "--edit", action="store_true", help="Edit the configuration file")
    parser.add_argument("--clear-cache", action="store_true", help="Delete cached search results and exit")
    parser.add_argument(
        "--health-check",
        action="store_true",
        help="Check external tools and YouTube connectivity, then exit",
    )
    parser.add_argument(
        "--selector",
        choices=SELECTOR_CHOICES,
        default=config.get("selector"),
        help="Menu selector (default: fzf when installed, otherwise a numbered prompt)",
    )
    parser.add_argument(
        "--download-dir",
        default=config.get("download_dir") or None,
        help="Directory for downloads (default: ~/Downloads)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Print debug output")
    parser.set_defaults(
        max_history_entries=config.get("max_history_entries", DEFAULT_MAX_HISTORY_ENTRIES),
        cache_ttl=config.get("cache_ttl", DEFAULT_CACHE_TTL),
        timeout=config.get("timeout", DEFAULT_TIMEOUT),
        editor=config.get("editor"),
    )
    return parser


def apply_environment_defaults(args: argparse.Namespace, environ: Optional[Mapping[str, str]] = None) -> None:
    """Fill settings left unset by the command line and the config file from the environment."""

    if environ is None:
        environ = os.environ

    if not getattr(args, "selector", None):
        env_selector = (environ.get(ENV_SELECTOR) or "").strip().lower()
        args.selector = env_selector if env_selector in SELECTOR_CHOICES else SelectorType.FZF.value

    if not getattr(args, "download_dir", None):
        env_dir = (environ.get(ENV_DOWNLOAD_DIR) or "").strip()
        if env_dir:
            args.download_dir = env_dir
        else:
            home = environ.get("HOME") or os.path.expanduser("~")
            args.download_dir = os.path.join(home, "Downloads")
    args.download_dir = os.path.expanduser(args.download_dir)


def parse_args(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> argparse.Namespace:
    """Parse command-line arguments, using the config file for defaults."""
    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv)

    paths = resolve_paths(environ)
    config_path = _find_config_path(argv, paths)
    config = load_config_file(config_path)

    parser = build_parser(config, config_path)
    args = parser.parse_args(argv)
    args.query_text = " ".join(args.query).strip()
    apply_environment_defaults(args, environ)
    return args


def describe_settings(args: argparse.Namespace) -> List[str]:
    """Human readable summary used by the health check."""
    return [
        f"Config file: {args.config}",
        f"Selector: {args.selector}",
        f"Download directory: {args.download_dir}",
        f"Result limit: {args.limit}",
        f"Cache TTL: {args.cache_ttl}s",
    ]
