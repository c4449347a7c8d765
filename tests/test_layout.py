from __future__ import annotations

import logging

import pytest

from comic_archiver.layout import (
    _candidate_files,
    block_height,
    font_for,
    font_shorthand,
    load_font,
    resolve_text_block,
    wrap_lines,
    wrap_text_block,
)
from comic_archiver.models import TextBlockSpec


def _measure(text: str) -> float:
    # Ten pixels per character keeps expectations readable.
    return len(text) * 10


def test_wrap_lines_packs_words_greedily() -> None:
    lines = wrap_lines("the quick brown fox jumps", _measure, 100)
    assert lines == ["the quick", "brown fox", "jumps"]


def test_wrap_lines_never_merges_paragraphs() -> None:
    lines = wrap_lines("a b\nc d", _measure, 1000)
    assert lines == ["a b", "c d"]


def test_wrap_lines_keeps_overlong_word_on_its_own_line() -> None:
    lines = wrap_lines("hi supercalifragilistic yo", _measure, 50)
    assert lines == ["hi", "supercalifragilistic", "yo"]


def test_wrap_lines_is_deterministic() -> None:
    text = "Lorem ipsum dolor sit amet, consectetur adipiscing elit.\nSed do eiusmod."
    assert wrap_lines(text, _measure, 120) == wrap_lines(text, _measure, 120)


def test_block_height_reserves_headroom_and_padding() -> None:
    spec = TextBlockSpec(text="x", font_size=18, line_height=20, padding_top=5, padding_bottom=7)
    assert block_height(spec, 3) == 3 * 20 + (20 - 18) + 5 + 7


def test_resolve_text_block_applies_defaults_per_field() -> None:
    spec = resolve_text_block({"text": "hello", "font_size": 11, "line_height": 13})
    assert spec.text == "hello"
    assert spec.font_size == 11
    assert spec.line_height == 13
    assert spec.padding_left == 5
    assert spec.text_align == "center"
    assert spec.font_family == "Arial"
    assert spec.fill_style == "#000000"


def test_resolve_text_block_treats_missing_text_as_empty() -> None:
    assert resolve_text_block({"text": None}).text == ""
    assert resolve_text_block({}).text == ""


def test_resolve_text_block_rejects_unknown_fields() -> None:
    with pytest.raises(ValueError, match="fontSize"):
        resolve_text_block({"text": "x", "fontSize": 12})


def test_resolve_text_block_rejects_unknown_alignment() -> None:
    with pytest.raises(ValueError, match="text_align"):
        resolve_text_block({"text": "x", "text_align": "right"})


def test_font_shorthand_skips_empty_style_fields() -> None:
    spec = TextBlockSpec(font_size=24, font_family="Trebuchet MS", font_weight="bold")
    assert font_shorthand(spec) == "bold 24px Trebuchet MS"


def test_font_shorthand_with_every_field() -> None:
    spec = TextBlockSpec(
        font_style="italic",
        font_variant="small-caps",
        font_weight="700",
        font_stretch="condensed",
        font_size=32,
        font_family="Roboto",
    )
    assert font_shorthand(spec) == "italic small-caps 700 condensed 32px Roboto"


def test_font_resolution_is_keyed_by_shorthand(caplog: pytest.LogCaptureFixture) -> None:
    load_font.cache_clear()
    spec = TextBlockSpec(text="x", font_family="Definitely Not A Font", font_variant="small-caps", font_size=17)
    with caplog.at_level(logging.DEBUG, logger="comic_archiver.layout"):
        font_for(spec)
        font_for(spec)
    messages = [record.getMessage() for record in caplog.records if record.name == "comic_archiver.layout"]
    assert len(messages) == 1
    assert "'small-caps 17px Definitely Not A Font'" in messages[0]


def test_condensed_stretch_prefers_condensed_files() -> None:
    assert _candidate_files("DejaVu Sans", True, False, True)[:2] == [
        "DejaVuSansCondensed-Bold.ttf",
        "DejaVuSans-Bold.ttf",
    ]
    assert _candidate_files("DejaVu Sans", False, False)[0] == "DejaVuSans-Regular.ttf"


@pytest.mark.parametrize(
    "fields",
    [
        {"font_size": 20, "line_height": 5, "padding_top": 0, "padding_bottom": 0},
        {"font_size": 18, "line_height": 9, "padding_top": 0, "padding_bottom": 0},
        {"padding_left": -1},
    ],
)
def test_resolve_text_block_rejects_non_positive_geometry(fields: dict[str, int]) -> None:
    with pytest.raises(ValueError):
        resolve_text_block({"text": "x", **fields})
    with pytest.raises(ValueError):
        wrap_text_block(200, TextBlockSpec(text="x", **fields))


def test_tight_line_height_keeps_the_documented_height() -> None:
    spec = resolve_text_block({"text": "x", "font_size": 20, "line_height": 11, "padding_top": 0, "padding_bottom": 0})
    block = wrap_text_block(200, spec)
    assert block.height == 1 * 11 + (11 - 20) == 2


def test_empty_text_block_has_no_raster_and_zero_height() -> None:
    block = wrap_text_block(300, TextBlockSpec(text=""))
    assert block.image is None
    assert block.height == 0
    assert block.lines == []


def test_wrap_text_block_raster_matches_layout() -> None:
    spec = TextBlockSpec(text="first line\nsecond line", font_size=12, line_height=14)
    block = wrap_text_block(400, spec)
    assert len(block.lines) == 2
    assert block.image is not None
    assert block.image.size == (400, block.height)
    assert block.height == block_height(spec, 2)
    assert block.image.mode == "RGBA"


def test_wrap_text_block_tolerates_unknown_fonts_and_empty_styles() -> None:
    spec = TextBlockSpec(
        text="still renders",
        font_family="Definitely Not A Font",
        font_style="",
        font_weight="",
    )
    block = wrap_text_block(200, spec)
    assert block.image is not None
    assert block.height > 0


def test_wrap_text_block_is_deterministic() -> None:
    spec = TextBlockSpec(text="one two three four five six seven eight nine ten", font_size=14, line_height=16)
    first = wrap_text_block(120, spec)
    second = wrap_text_block(120, spec)
    assert first.lines == second.lines
    assert first.height == second.height
