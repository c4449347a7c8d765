"""Built-in adapters for supported webcomics.

Order matters: the first adapter whose pattern matches the page URL is used.
"""

from __future__ import annotations

import re
from datetime import datetime
from urllib.parse import urljoin

from bs4 import Tag

from .adapters import AdapterRegistry, site
from .errors import ExtractionError
from .models import PageContext


def select_one(context: PageContext, selector: str) -> Tag:
    """CSS lookup that fails loudly when the element is absent."""
    node = context.soup.select_one(selector)
    if node is None:
        raise ExtractionError(f"页面中未找到元素 {selector!r}: {context.url}")
    return node


def absolute(context: PageContext, href: str | None) -> str | None:
    if not href:
        return None
    return urljoin(context.url, href)


def first_href(context: PageContext, selector: str) -> str | None:
    for node in context.soup.select(selector):
        href = node.get("href")
        if href:
            return absolute(context, str(href))
    return None


def parse_posted_date(text: str) -> str:
    """'Posted June 3, 2013 at 12:00 am' -> '2013-06-03'."""
    match = re.search(r"Posted (.+) at", text)
    if match is None:
        raise ExtractionError(f"无法解析发布日期: {text!r}")
    raw = match.group(1).strip()
    for fmt in ("%B %d, %Y", "%b %d, %Y", "%Y-%m-%d", "%d %B %Y"):
        try:
            return datetime.strptime(raw, fmt).date().isoformat()
        except ValueError:
            continue
    raise ExtractionError(f"无法解析发布日期: {raw!r}")


# Nedroid Picture Diary


def _nedroid_page(context: PageContext) -> str:
    match = re.search(r"nedroid\.com/\?(\d+)$", context.url)
    if match is None:
        raise ExtractionError(f"URL 中没有页码: {context.url}")
    return match.group(1)


def _nedroid_next(context: PageContext) -> str | None:
    for node in context.soup.find_all("a"):
        if "NEXT" in node.get_text() and node.get("href"):
            return absolute(context, str(node["href"]))
    return None


def _nedroid_top(context: PageContext) -> list[dict]:
    return [
        {
            "text": select_one(context, ".comic_title h1").get_text(strip=True),
            "padding_top": 5,
            "padding_bottom": 5,
            "font_style": "italic",
            "font_family": "Roboto",
            "font_weight": "700",
            "font_size": 32,
            "line_height": 38,
            "fill_style": "rgb(255, 248, 224)",
        }
    ]


def _nedroid_bottom(context: PageContext) -> list[dict]:
    return [
        {
            "text": select_one(context, "img.comic").get("title"),
            "font_family": "Roboto",
            "fill_style": "rgb(120, 157, 202)",
        }
    ]


# Buttersafe

_BUTTERSAFE_DATE = re.compile(r"buttersafe\.com/(\d{4})/(\d{2})/(\d{2})")


def _buttersafe_page(context: PageContext) -> str:
    match = _BUTTERSAFE_DATE.search(context.url)
    if match is None:
        raise ExtractionError(f"URL 中没有日期: {context.url}")
    year, month, day = match.groups()
    return f"{year}-{month}-{day}"


def _buttersafe_top(context: PageContext) -> list[dict]:
    return [
        {
            "text": select_one(context, "div.post-comic > h2").get_text(strip=True),
            "font_family": "Trebuchet MS",
            "font_size": 24,
            "line_height": 26,
            "font_weight": "bold",
            "fill_style": "#333333",
        }
    ]


def _buttersafe_bottom(context: PageContext) -> list[dict]:
    return [
        {
            "text": select_one(context, "div.entry").get_text("\n", strip=True),
            "padding_top": 20,
            "text_align": "left",
            "padding_left": 25,
            "padding_right": 25,
            "fill_style": "#333333",
            "font_size": 11,
            "line_height": 13,
        }
    ]


# Paranatural


def _paranatural_bottom(context: PageContext) -> list[dict]:
    return [
        {
            "text": select_one(context, "#cc-comic").get("title"),
            "font_family": "Verdana",
            "font_size": 12,
            "line_height": 13,
            "font_style": "italic",
            "fill_style": "#824f6c",
        }
    ]


def default_registry() -> AdapterRegistry:
    """Registry of every built-in site, in match priority order."""
    return AdapterRegistry(
        [
            site(
                "Nedroid Picture Diary",
                r"nedroid\.com",
                book_name=lambda first_page, last_page: (
                    f"Nedroid Picture Diary #{first_page}-{last_page}"
                ),
                page_number=_nedroid_page,
                next_page_url=_nedroid_next,
                image_url=lambda ctx: absolute(ctx, select_one(ctx, "img.comic").get("src")),
                fill_style="rgb(51, 81, 119)",
                top_text=_nedroid_top,
                bottom_text=_nedroid_bottom,
            ),
            site(
                "Buttersafe",
                _BUTTERSAFE_DATE.pattern,
                book_name=lambda first_page, last_page: f"Buttersafe {first_page} to {last_page}",
                page_number=_buttersafe_page,
                next_page_url=lambda ctx: first_href(ctx, 'a[rel="next"]'),
                image_url=lambda ctx: absolute(ctx, select_one(ctx, "#comic > img").get("src")),
                top_text=_buttersafe_top,
                bottom_text=_buttersafe_bottom,
            ),
            site(
                "Paranatural",
                r"paranatural\.net/comic",
                book_name=lambda first_page, last_page: f"Paranatural {first_page} to {last_page}",
                page_number=lambda ctx: parse_posted_date(
                    select_one(ctx, "div.cc-publishtime").get_text(" ", strip=True)
                ),
                next_page_url=lambda ctx: first_href(ctx, "a.cc-next"),
                image_url=lambda ctx: absolute(ctx, select_one(ctx, "#cc-comic").get("src")),
                bottom_text=_paranatural_bottom,
            ),
        ]
    )
