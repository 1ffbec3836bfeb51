"""Program entry point: parse settings, wire components, run the state machine."""

import sys
from typing import Mapping, Optional, Sequence

from .cache import CacheStore
from .config import edit_config, parse_args
from .discovery import DiscoveryService
from .health_check import run_health_check
from .history import History
from .logger import Console
from .orchestrator import AppContext, Orchestrator
from .paths import resolve_paths
from .selector import create_selector


def main(argv: Optional[Sequence[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    args = parse_args(argv, environ)
    paths = resolve_paths(environ)
    console = Console(verbose=args.verbose)

    if args.edit:
        return edit_config(args.config, args.editor)

    try:
        paths.ensure()
    except OSError as exc:
        console.error(f"Cannot create data directories: {exc}")
        return 1

    cache = CacheStore(paths.search_cache_dir, ttl=args.cache_ttl)

    if args.clear_cache:
        removed = cache.clear()
        console.success(f"Removed {removed} cached search results from {paths.search_cache_dir}")
        return 0

    discovery = DiscoveryService(cache, timeout=args.timeout)

    if args.health_check:
        return run_health_check(args, paths, discovery)

    history = History(paths.history_file, max_entries=args.max_history_entries)
    history.load()
    selector = create_selector(args.selector)
    console.debug(f"selector: {selector.name}, cache: {paths.search_cache_dir}")

    context = AppContext(options=args, paths=paths, query=args.query_text)
    orchestrator = Orchestrator(context, discovery, selector, history, console=console)
    try:
        return orchestrator.run()
    except KeyboardInterrupt:
        console.clear_status()
        console.info("\n👋 Bye!")
        return 130


if __name__ == "__main__":
    sys.exit(main())
