import socket
import sys
import urllib.error
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parent.parent))
from yt_chill import discovery
from yt_chill.cache import CacheStore
from yt_chill.discovery import (
    DiscoveryService,
    build_channel_url,
    build_headers,
    build_search_url,
    fetch_html,
    normalize_channel_handle,
)
from yt_chill.errors import MarkerNotFound, NetworkError, SchemaMismatch
from yt_chill.models import USER_AGENTS

from fakes import FakeClock, channel_data, render_page, search_data, video_item


class RecordingFetcher:
    def __init__(self, body=None, error=None):
        self.body = body
        self.error = error
        self.calls = []

    def __call__(self, url, headers, timeout):
        self.calls.append((url, headers, timeout))
        if self.error is not None:
            raise self.error
        return self.body


def _service(tmp_path, fetcher, clock=None):
    clock = clock or FakeClock()
    return DiscoveryService(CacheStore(str(tmp_path), clock=clock), fetcher=fetcher, timeout=5.0, clock=clock)


def _page(count=20):
    return render_page(search_data([video_item(f"vid{i:08d}", f"Track {i}") for i in range(count)]))


def test_search_fetches_once_and_serves_repeats_from_cache(tmp_path):
    fetcher = RecordingFetcher(_page())
    service = _service(tmp_path, fetcher)

    first = service.search("lofi beats")
    second = service.search("  LOFI   beats ")

    assert len(first) == 15
    assert [r.video_id for r in first] == [r.video_id for r in second]
    assert len(fetcher.calls) == 1
    url, headers, timeout = fetcher.calls[0]
    assert url == build_search_url("lofi beats")
    assert headers["User-Agent"] in USER_AGENTS
    assert timeout == 5.0


def test_limit_is_applied_after_the_cache(tmp_path):
    fetcher = RecordingFetcher(_page())
    service = _service(tmp_path, fetcher)

    assert len(service.search("lofi", limit=5)) == 5
    assert len(service.search("lofi", limit=12)) == 12
    assert len(fetcher.calls) == 1


def test_use_cache_false_always_fetches(tmp_path):
    fetcher = RecordingFetcher(_page(3))
    service = _service(tmp_path, fetcher)

    service.search("lofi", use_cache=False)
    service.search("lofi", use_cache=False)

    assert len(fetcher.calls) == 2
    assert list(tmp_path.iterdir()) == []


def test_search_result_set_metadata(tmp_path):
    clock = FakeClock(now=1234.0)
    service = _service(tmp_path, RecordingFetcher(_page(2)), clock)

    results = service.search(" lofi ")

    assert results.query == "lofi"
    assert results.created_at == 1234.0
    assert results.labels() == ["Track 0 [3:45] - Chill Channel", "Track 1 [3:45] - Chill Channel"]


def test_empty_query_is_rejected(tmp_path):
    fetcher = RecordingFetcher(_page())
    with pytest.raises(ValueError):
        _service(tmp_path, fetcher).search("   ")
    assert fetcher.calls == []


def test_network_error_propagates(tmp_path):
    service = _service(tmp_path, RecordingFetcher(error=NetworkError("HTTP 429", status=429)))

    with pytest.raises(NetworkError) as excinfo:
        service.search("lofi")
    assert excinfo.value.status == 429


def test_extraction_error_propagates(tmp_path):
    service = _service(tmp_path, RecordingFetcher("<html>consent</html>"))

    with pytest.raises(MarkerNotFound):
        service.search("lofi")


def test_unusable_page_is_not_cached(tmp_path):
    fetcher = RecordingFetcher("<html>consent</html>")
    service = _service(tmp_path, fetcher)

    with pytest.raises(MarkerNotFound):
        service.search("lofi")
    assert list(tmp_path.iterdir()) == []

    fetcher.body = _page(3)
    results = service.search("lofi")

    assert len(fetcher.calls) == 2
    assert len(results) == 3
    assert len(list(tmp_path.iterdir())) == 1


def test_layout_change_on_channel_page_is_not_cached(tmp_path):
    fetcher = RecordingFetcher(render_page({"contents": {}}))
    service = _service(tmp_path, fetcher)

    with pytest.raises(SchemaMismatch):
        service.channel_videos("@LofiGirl")

    fetcher.body = render_page(channel_data([video_item("abcdefghijk", "Upload")]))
    assert len(service.channel_videos("@LofiGirl")) == 1
    assert len(fetcher.calls) == 2


def test_channel_videos_uses_videos_tab(tmp_path):
    body = render_page(channel_data([video_item("abcdefghijk", "Upload", author=None)], channel_title="Lofi Girl"))
    fetcher = RecordingFetcher(body)
    service = _service(tmp_path, fetcher)

    results = service.channel_videos("https://www.youtube.com/@LofiGirl/featured")
    service.channel_videos("@LofiGirl")

    assert fetcher.calls[0][0] == "https://www.youtube.com/@LofiGirl/videos"
    assert len(fetcher.calls) == 1
    assert results.query == "@LofiGirl"
    assert results[0].author == "Lofi Girl"


def test_channel_cache_key_is_case_sensitive(tmp_path):
    fetcher = RecordingFetcher(render_page(channel_data([video_item("abcdefghijk", "Upload")])))
    service = _service(tmp_path, fetcher)

    service.channel_videos("@abc")
    service.channel_videos("@ABC")

    assert len(fetcher.calls) == 2


def test_build_search_url_filters():
    assert build_search_url("lofi beats") == (
        "https://www.youtube.com/results?search_query=lofi%20beats&sp=EgIQAQ%3D%3D"
    )
    assert build_search_url("a&b", filters="any") == "https://www.youtube.com/results?search_query=a%26b"
    with pytest.raises(ValueError):
        build_search_url("lofi", filters="shorts")


def test_build_headers():
    headers = build_headers("TestAgent/1.0")
    assert headers["User-Agent"] == "TestAgent/1.0"
    assert headers["Accept-Language"].startswith("en")


@pytest.mark.parametrize(
    "value, expected",
    [
        ("@lofigirl", "@lofigirl"),
        ("lofigirl", "@lofigirl"),
        ("https://www.youtube.com/@LofiGirl/videos", "@LofiGirl"),
        ("youtube.com/c/ChilledCow", "c/ChilledCow"),
        ("https://m.youtube.com/user/someone/", "user/someone"),
        ("UCSJ4gkVC6NrvII8umztf0Ow", "channel/UCSJ4gkVC6NrvII8umztf0Ow"),
        ("https://www.youtube.com/channel/UCSJ4gkVC6NrvII8umztf0Ow", "channel/UCSJ4gkVC6NrvII8umztf0Ow"),
    ],
)
def test_normalize_channel_handle(value, expected):
    assert normalize_channel_handle(value) == expected


@pytest.mark.parametrize("value", ["", "   ", "https://www.youtube.com/"])
def test_normalize_channel_handle_rejects_empty(value):
    with pytest.raises(ValueError):
        normalize_channel_handle(value)


def test_build_channel_url():
    assert build_channel_url("lofigirl") == "https://www.youtube.com/@lofigirl/videos"


class FakeResponse:
    def __init__(self, body, status=200, charset="utf-8"):
        self.body = body
        self.status = status
        self.headers = self
        self.charset = charset

    def get_content_charset(self):
        return self.charset

    def read(self):
        return self.body

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


def test_fetch_html_decodes_body(monkeypatch):
    seen = {}

    def fake_urlopen(request, timeout):
        seen["ua"] = request.get_header("User-agent")
        seen["timeout"] = timeout
        return FakeResponse("héllo".encode("utf-8"))

    monkeypatch.setattr(discovery.urllib.request, "urlopen", fake_urlopen)

    assert fetch_html("https://example.com", {"User-Agent": "UA"}, timeout=3) == "héllo"
    assert seen == {"ua": "UA", "timeout": 3}


@pytest.mark.parametrize(
    "error, status",
    [
        (urllib.error.HTTPError("https://example.com", 429, "Too Many Requests", None, None), 429),
        (urllib.error.URLError("Name or service not known"), None),
        (socket.timeout("timed out"), None),
        (ConnectionResetError("reset"), None),
    ],
)
def test_fetch_html_maps_failures_to_network_error(monkeypatch, error, status):
    def fake_urlopen(request, timeout):
        raise error

    monkeypatch.setattr(discovery.urllib.request, "urlopen", fake_urlopen)

    with pytest.raises(NetworkError) as excinfo:
        fetch_html("https://example.com", {}, timeout=1)
    assert excinfo.value.status == status
    assert excinfo.value.url == "https://example.com"


def test_fetch_html_rejects_non_2xx_response(monkeypatch):
    monkeypatch.setattr(discovery.urllib.request, "urlopen", lambda request, timeout: FakeResponse(b"", status=304))

    with pytest.raises(NetworkError) as excinfo:
        fetch_html("https://example.com", {}, timeout=1)
    assert excinfo.value.status == 304
