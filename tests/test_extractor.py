import json
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parent.parent))
from yt_chill.errors import MalformedPayload, MarkerNotFound, SchemaMismatch, UnterminatedStructure
from yt_chill.extractor import (
    ANY,
    extract_initial_data,
    extract_videos,
    parse_duration_text,
    scan_balanced,
    text_of,
    walk_path,
)

from fakes import channel_data, render_page, search_data, video_item


def test_extract_videos_respects_limit_and_page_order():
    items = [video_item(f"vid{i:08d}", f"Track {i}") for i in range(20)]

    records = extract_videos(render_page(search_data(items)), limit=15)

    assert len(records) == 15
    assert [r.video_id for r in records] == [f"vid{i:08d}" for i in range(15)]


def test_extract_videos_returns_everything_below_limit():
    items = [video_item(f"vid{i:08d}", f"Track {i}") for i in range(3)]

    records = extract_videos(render_page(search_data(items)), limit=15)

    assert [r.title for r in records] == ["Track 0", "Track 1", "Track 2"]


def test_record_fields_are_populated():
    page = render_page(search_data([video_item("dQw4w9WgXcQ", "Lofi Beats", length="1:02:03")]))

    record = extract_videos(page)[0]

    assert record.video_id == "dQw4w9WgXcQ"
    assert record.author == "Chill Channel"
    assert record.duration_seconds == 3723
    assert record.is_live is False
    assert record.views == "1,234 views"
    assert record.published == "2 days ago"
    assert record.thumbnail.endswith("hqdefault.jpg")
    assert record.url == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
    assert record.label() == "Lofi Beats [1:02:03] - Chill Channel"


def test_missing_length_marks_live_stream():
    page = render_page(search_data([video_item("live0000001", "24/7 Radio", length=None)]))

    record = extract_videos(page)[0]

    assert record.is_live is True
    assert record.duration_seconds is None
    assert "[--:--]" in record.label()


def test_non_video_items_are_skipped_and_do_not_count_toward_limit():
    items = [
        {"channelRenderer": {"channelId": "UCxyz"}},
        video_item("aaaaaaaaaaa", "First"),
        {"shelfRenderer": {"title": {"simpleText": "People also watched"}}},
        {"videoRenderer": {"videoId": "no-title"}},
        video_item("bbbbbbbbbbb", "Second"),
    ]

    records = extract_videos(render_page(search_data(items)), limit=2)

    assert [r.video_id for r in records] == ["aaaaaaaaaaa", "bbbbbbbbbbb"]


def test_braces_and_quotes_inside_strings_do_not_confuse_the_scanner():
    title = 'Weird {title} with "quotes" and a \\ backslash }}'
    page = render_page(search_data([video_item("ccccccccccc", title)]))

    records = extract_videos(page)

    assert records[0].title == title


def test_html_entities_in_titles_are_unescaped():
    page = render_page(search_data([video_item("ddddddddddd", "Rock &amp; Roll", author="Tom &amp; Jerry")]))

    record = extract_videos(page)[0]

    assert record.title == "Rock & Roll"
    assert record.author == "Tom & Jerry"


def test_window_marker_variant_is_found():
    page = render_page(search_data([video_item("eeeeeeeeeee", "Alt")]), marker='window["ytInitialData"] = ')

    assert extract_videos(page)[0].video_id == "eeeeeeeeeee"


def test_search_path_skips_sections_without_results():
    data = search_data(
        [video_item("fffffffffff", "Found")],
        leading_sections=[{"adSlotRenderer": {}}, {"itemSectionRenderer": {"header": {}}}],
    )

    assert [r.video_id for r in extract_videos(render_page(data))] == ["fffffffffff"]


def test_search_path_passes_over_sections_with_only_ads_or_shelves():
    ads = {"itemSectionRenderer": {"contents": [{"adSlotRenderer": {}}, {"shelfRenderer": {"title": {"simpleText": "Trending"}}}]}}
    data = search_data([video_item("ggggggggggg", "Later Section")], leading_sections=[ads])

    assert [r.video_id for r in extract_videos(render_page(data))] == ["ggggggggggg"]


def test_section_without_videos_still_yields_empty_result():
    data = search_data([{"shelfRenderer": {}}])

    assert extract_videos(render_page(data)) == []


def test_channel_page_falls_back_to_channel_title_for_author():
    items = [video_item("ggggggggggg", "Upload", author=None), video_item("hhhhhhhhhhh", "Collab", author="Guest")]

    records = extract_videos(render_page(channel_data(items, channel_title="Lofi Girl")))

    assert [r.author for r in records] == ["Lofi Girl", "Guest"]


def test_missing_marker_raises():
    with pytest.raises(MarkerNotFound):
        extract_videos("<html><body>Before you continue to YouTube</body></html>")


def test_missing_closing_brace_raises_unterminated():
    page = '<script>var ytInitialData = {"contents": {"a": "}"'

    with pytest.raises(UnterminatedStructure):
        extract_initial_data(page)


def test_unterminated_string_raises_unterminated():
    with pytest.raises(UnterminatedStructure):
        extract_initial_data('var ytInitialData = {"title": "never closed')


def test_deep_unbalanced_input_terminates():
    with pytest.raises(UnterminatedStructure):
        scan_balanced("{" * 50000, 0)


def test_marker_without_object_raises_unterminated():
    with pytest.raises(UnterminatedStructure):
        extract_initial_data("var ytInitialData = null;")


def test_invalid_json_raises_malformed():
    with pytest.raises(MalformedPayload):
        extract_initial_data('var ytInitialData = {"a": undefined};')


def test_unknown_layout_raises_schema_mismatch():
    with pytest.raises(SchemaMismatch):
        extract_videos(render_page({"contents": {"singleColumnBrowseResultsRenderer": {}}}))


def test_scan_balanced_honours_escaped_quotes():
    text = '{"a": "\\"}"} trailing'

    end = scan_balanced(text, 0)

    assert json.loads(text[:end]) == {"a": '"}'}


def test_scan_balanced_requires_opening_brace():
    with pytest.raises(UnterminatedStructure):
        scan_balanced("[1, 2]", 0)


def test_walk_path_any_picks_first_matching_element():
    data = {"tabs": [{"other": 1}, {"tab": {"items": [1, 2]}}, {"tab": {"items": [3]}}]}

    assert walk_path(data, ("tabs", ANY, "tab", "items")) == [1, 2]
    assert walk_path(data, ("tabs", 0, "other")) == 1
    assert walk_path(data, ("tabs", 5)) is None
    assert walk_path(data, ("missing", ANY)) is None


def test_text_of_handles_runs_and_simple_text():
    assert text_of({"simpleText": "3:45"}) == "3:45"
    assert text_of({"runs": [{"text": "Lofi "}, {"text": "Girl"}, {"bold": True}]}) == "Lofi Girl"
    assert text_of(None) == ""


@pytest.mark.parametrize(
    "value, expected",
    [("3:45", 225), ("0:07", 7), ("1:02:03", 3723), ("", None), ("LIVE", None), ("Premiere", None)],
)
def test_parse_duration_text(value, expected):
    assert parse_duration_text(value) == expected
