"""Health check: external tools on PATH and an end-to-end scrape."""

import shutil
import time
from typing import Callable, Dict, Optional, Sequence

from .config import describe_settings
from .discovery import DiscoveryService
from .errors import ExtractionError, NetworkError, describe_error
from .paths import AppPaths

TEST_QUERY = "lofi hip hop"
REQUIRED_TOOLS = ("mpv", "yt-dlp")
OPTIONAL_TOOLS = ("fzf", "syncplay")


def check_tools(
    tools: Sequence[str],
    which: Callable[[str], Optional[str]] = shutil.which,
) -> Dict[str, Optional[str]]:
    """Map each tool name to its resolved path (``None`` when missing)."""
    return {tool: which(tool) for tool in tools}


def run_health_check(
    args,
    paths: AppPaths,
    discovery: DiscoveryService,
    which: Callable[[str], Optional[str]] = shutil.which,
    clock: Callable[[], float] = time.time,
) -> int:
    """Report tool availability and whether search scraping still works."""

    print("=" * 80)
    print("yt-chill Health Check".center(80))
    print("=" * 80)
    print()

    for line in describe_settings(args):
        print(line)
    print(f"Cache directory: {paths.search_cache_dir}")
    print(f"History file: {paths.history_file}")
    print(f"Subscriptions file: {paths.subscriptions_file}")
    print()

    required = check_tools(REQUIRED_TOOLS, which)
    optional = check_tools(OPTIONAL_TOOLS, which)
    for tool, location in required.items():
        if location:
            print(f"✓ {tool}: {location}")
        else:
            print(f"✗ {tool}: not found (required)")
    for tool, location in optional.items():
        if location:
            print(f"✓ {tool}: {location}")
        else:
            print(f"ℹ {tool}: not found (optional)")
    print()

    print(f"Testing search scraping with: '{TEST_QUERY}'")
    start_time = clock()
    record_count = 0
    error: Optional[BaseException] = None
    try:
        results = discovery.search(TEST_QUERY, limit=5, use_cache=False)
        record_count = len(results)
    except (NetworkError, ExtractionError) as exc:
        error = exc
    elapsed = clock() - start_time

    print()
    print("=" * 80)
    print("Health Check Results".center(80))
    print("=" * 80)

    scrape_ok = error is None and record_count > 0
    tools_ok = all(required.values())

    if scrape_ok:
        print(f"✓ Search scraping works ({record_count} results)")
    elif error is not None:
        print(f"✗ Search scraping failed: {error}")
        hint = describe_error(error)
        if hint:
            print(f"  {hint}")
    else:
        print("✗ Search returned no results")
    print(f"{'✓' if scrape_ok else '✗'} Response time: {elapsed:.2f}s")

    if scrape_ok and tools_ok:
        print("✓ Status: HEALTHY")
        return 0

    print("✗ Status: UNHEALTHY")
    missing = [tool for tool, location in required.items() if not location]
    if missing:
        print()
        print("Recommendations:")
        for idx, tool in enumerate(missing, start=1):
            print(f"  {idx}. Install {tool} and make sure it is on your PATH")
    return 1
