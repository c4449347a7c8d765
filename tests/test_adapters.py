from __future__ import annotations

import pytest

from comic_archiver.adapters import AdapterRegistry, site
from comic_archiver.errors import AdapterNotFoundError, ExtractionError
from comic_archiver.models import PageContext


def _adapter(name: str, pattern: str, **overrides: object):
    hooks: dict[str, object] = {
        "book_name": lambda first_page, last_page: f"{name} {first_page}-{last_page}",
        "page_number": lambda ctx: "1",
        "next_page_url": lambda ctx: None,
        "image_url": lambda ctx: "https://img.test/1.png",
    }
    hooks.update(overrides)
    return site(name, pattern, **hooks)


def _context(url: str = "https://comic.test/page/1", html: str = "<html></html>") -> PageContext:
    return PageContext(url, html)


def test_first_registered_adapter_wins_on_overlap() -> None:
    registry = AdapterRegistry(
        [
            _adapter("broad", r"comic\.test"),
            _adapter("narrow", r"comic\.test/page/\d+"),
        ]
    )
    assert registry.resolve("https://comic.test/page/1").name == "broad"
    assert [adapter.name for adapter in registry.matching("https://comic.test/page/1")] == [
        "broad",
        "narrow",
    ]


def test_resolve_raises_when_nothing_matches() -> None:
    registry = AdapterRegistry([_adapter("only", r"comic\.test")])
    with pytest.raises(AdapterNotFoundError) as exc:
        registry.resolve("https://elsewhere.test/")
    assert exc.value.url == "https://elsewhere.test/"


def test_resolved_adapter_fills_optional_hooks() -> None:
    adapter = AdapterRegistry([_adapter("bare", r"comic\.test")]).resolve("https://comic.test/")
    context = _context()
    assert adapter.is_loaded(context) is True
    assert adapter.top_blocks(context) == []
    assert adapter.bottom_blocks(context) == []
    assert adapter.fill_for(context) is None


def test_text_hooks_are_merged_with_defaults() -> None:
    adapter = _adapter(
        "captioned",
        r"comic\.test",
        top_text=lambda ctx: [{"text": "Title", "font_size": 30, "line_height": 34}],
    ).resolved()
    blocks = adapter.top_blocks(_context())
    assert len(blocks) == 1
    assert blocks[0].text == "Title"
    assert blocks[0].font_size == 30
    assert blocks[0].padding_top == 5


def test_fill_style_accepts_string_or_callable() -> None:
    assert _adapter("a", "x", fill_style="#123456").fill_for(_context()) == "#123456"
    dynamic = _adapter("b", "x", fill_style=lambda ctx: "rgb(1, 2, 3)")
    assert dynamic.fill_for(_context()) == "rgb(1, 2, 3)"


def test_hooks_are_evaluated_fresh_each_time() -> None:
    calls: list[str] = []

    def page_number(ctx: PageContext) -> str:
        calls.append(ctx.url)
        return str(len(calls))

    adapter = _adapter("counting", "x", page_number=page_number)
    assert adapter.key_for(_context()) == "1"
    assert adapter.key_for(_context()) == "2"


def test_hook_failure_becomes_extraction_error() -> None:
    def broken(ctx: PageContext) -> str:
        raise AttributeError("'NoneType' object has no attribute 'src'")

    adapter = _adapter("broken", "x", image_url=broken)
    with pytest.raises(ExtractionError, match="broken.image_url"):
        adapter.image_for(_context())


def test_empty_page_number_is_rejected() -> None:
    adapter = _adapter("blank", "x", page_number=lambda ctx: "  ")
    with pytest.raises(ExtractionError):
        adapter.key_for(_context())


def test_archive_name_passes_first_and_last_page() -> None:
    adapter = _adapter("Comic", "x")
    assert adapter.archive_name("3", "9") == "Comic 3-9"


def test_invalid_caption_geometry_is_an_extraction_error() -> None:
    adapter = _adapter(
        "squashed",
        "x",
        bottom_text=lambda ctx: [{"text": "alt", "font_size": 20, "line_height": 5, "padding_top": 0, "padding_bottom": 0}],
    )
    with pytest.raises(ExtractionError, match="squashed.bottom_text"):
        adapter.bottom_blocks(_context())
