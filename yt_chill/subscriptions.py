"""Subscriptions file: one ``name<TAB>handle`` pair per line."""

import os
import sys
from typing import List

from .models import Subscription


def load_subscriptions(path: str) -> List[Subscription]:
    """Load subscriptions from *path*; missing file means none."""
    try:
        with open(path, "r", encoding="utf-8") as handle:
            lines = handle.read().splitlines()
    except FileNotFoundError:
        return []
    except OSError as exc:
        print(f"Warning: Failed to read subscriptions {path}: {exc}", file=sys.stderr)
        return []

    subscriptions: List[Subscription] = []
    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        name, sep, handle = stripped.partition("\t")
        if not sep:
            # Bare handle without a display name
            name, handle = stripped, stripped
        name, handle = name.strip(), handle.strip()
        if handle:
            subscriptions.append(Subscription(name=name or handle, handle=handle))
    return subscriptions


def save_subscriptions(path: str, subscriptions: List[Subscription]) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    content = "".join(f"{sub.name}\t{sub.handle}\n" for sub in subscriptions)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(content)


def add_subscription(path: str, subscription: Subscription) -> List[Subscription]:
    """Add *subscription*, replacing any entry with the same handle."""
    subs = [s for s in load_subscriptions(path) if s.handle != subscription.handle]
    subs.append(subscription)
    save_subscriptions(path, subs)
    return subs
