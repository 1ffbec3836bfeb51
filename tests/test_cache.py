import json
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parent.parent))
from yt_chill.cache import CacheStore, make_cache_key, normalize_text
from yt_chill.errors import CacheIOError, NetworkError

from fakes import FakeClock


class CountingFetch:
    def __init__(self, payloads):
        self.payloads = list(payloads)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        outcome = self.payloads.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def test_second_lookup_within_ttl_does_not_fetch(tmp_path):
    clock = FakeClock()
    store = CacheStore(str(tmp_path), ttl=3600, clock=clock)
    fetch = CountingFetch(["<html>one</html>", "<html>two</html>"])

    first = store.get_or_fetch("k", fetch)
    clock.advance(3599)
    second = store.get_or_fetch("k", fetch)

    assert first == second == "<html>one</html>"
    assert fetch.calls == 1


def test_entry_expires_once_age_reaches_ttl(tmp_path):
    clock = FakeClock()
    store = CacheStore(str(tmp_path), ttl=3600, clock=clock)
    fetch = CountingFetch(["old", "new"])

    store.get_or_fetch("k", fetch)
    clock.advance(3600)

    assert store.get("k") is None
    assert store.get_or_fetch("k", fetch) == "new"
    assert fetch.calls == 2


def test_entry_survives_new_store_instance(tmp_path):
    clock = FakeClock()
    CacheStore(str(tmp_path), clock=clock).write("k", {"records": [1, 2, 3]})

    reopened = CacheStore(str(tmp_path), clock=clock)

    assert reopened.get("k") == {"records": [1, 2, 3]}


def test_file_format(tmp_path):
    clock = FakeClock(now=1700000000.0)
    store = CacheStore(str(tmp_path), clock=clock)
    store.write("abc", "payload")

    with open(store.path_for("abc"), "r", encoding="utf-8") as handle:
        data = json.load(handle)

    assert data == {"createdAt": 1700000000.0, "payload": "payload"}
    assert not (tmp_path / "abc.json.tmp").exists()


def test_corrupt_entry_is_a_miss_with_warning(tmp_path, capsys):
    store = CacheStore(str(tmp_path), clock=FakeClock())
    Path(store.path_for("k")).write_text("{not json", encoding="utf-8")
    fetch = CountingFetch(["fresh"])

    assert store.get_or_fetch("k", fetch) == "fresh"
    assert fetch.calls == 1
    assert "Warning" in capsys.readouterr().err
    assert store.get("k") == "fresh"


@pytest.mark.parametrize(
    "content",
    ['["a list"]', '{"payload": 1}', '{"createdAt": true, "payload": 1}', '{"createdAt": 1}'],
)
def test_wrong_shape_is_a_miss(tmp_path, capsys, content):
    store = CacheStore(str(tmp_path), clock=FakeClock())
    Path(store.path_for("k")).write_text(content, encoding="utf-8")

    assert store.read("k") is None
    assert "Warning" in capsys.readouterr().err


def test_future_timestamp_counts_as_stale(tmp_path):
    clock = FakeClock(now=1000.0)
    store = CacheStore(str(tmp_path), clock=clock)
    store.write("k", "payload")
    clock.now = 500.0

    assert store.get("k") is None


def test_fetch_error_propagates_and_keeps_stale_entry(tmp_path):
    clock = FakeClock()
    store = CacheStore(str(tmp_path), ttl=60, clock=clock)
    store.write("k", "stale body")
    before = Path(store.path_for("k")).read_text(encoding="utf-8")
    clock.advance(120)

    with pytest.raises(NetworkError):
        store.get_or_fetch("k", CountingFetch([NetworkError("offline")]))

    assert Path(store.path_for("k")).read_text(encoding="utf-8") == before


def test_write_failure_is_not_fatal_for_lookup(tmp_path, capsys):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    store = CacheStore(str(blocker), clock=FakeClock())

    with pytest.raises(CacheIOError):
        store.write("k", "body")
    assert store.get_or_fetch("k", CountingFetch(["body"])) == "body"
    assert "Failed to write cache entry" in capsys.readouterr().err


def test_ttl_override(tmp_path):
    clock = FakeClock()
    store = CacheStore(str(tmp_path), ttl=3600, clock=clock)
    store.write("k", "body")
    clock.advance(30)

    assert store.get("k", ttl=10) is None
    assert store.get("k") == "body"


def test_clear_removes_entries(tmp_path):
    store = CacheStore(str(tmp_path), clock=FakeClock())
    store.write("a", 1)
    store.write("b", 2)
    (tmp_path / "notes.txt").write_text("keep", encoding="utf-8")

    assert store.clear() == 2
    assert store.get("a") is None
    assert (tmp_path / "notes.txt").exists()


def test_clear_missing_directory(tmp_path):
    assert CacheStore(str(tmp_path / "missing")).clear() == 0


def test_cache_key_normalises_query_text():
    assert normalize_text("  Lofi   Hip\tHop ") == "lofi hip hop"
    assert make_cache_key("search", "  Lofi   Beats ", filters="video") == make_cache_key(
        "search", "lofi beats", filters="video"
    )


def test_cache_key_distinguishes_kind_and_flags():
    base = make_cache_key("search", "lofi", filters="video")

    assert make_cache_key("search", "lofi", filters="any") != base
    assert make_cache_key("channel", "lofi", filters="video") != base
    assert make_cache_key("search", "lofi beats", filters="video") != base
    assert len(base) == 64
