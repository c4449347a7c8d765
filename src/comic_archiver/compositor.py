"""Composite captions and page image into one archival raster."""

from __future__ import annotations

import io
from typing import Iterable

from PIL import Image, ImageColor

from .layout import TextBlock, wrap_text_block
from .models import TextBlockSpec

DEFAULT_FILL = "#FFFFFF"


def render_blocks(specs: Iterable[TextBlockSpec], width: int) -> list[TextBlock]:
    """Render captions against ``width``, dropping empty ones."""
    blocks: list[TextBlock] = []
    for spec in specs:
        block = wrap_text_block(width, spec)
        if block.image is not None:
            blocks.append(block)
    return blocks


def compose_page(
    page_image: Image.Image,
    top_blocks: Iterable[TextBlockSpec],
    bottom_blocks: Iterable[TextBlockSpec],
    fill_style: str | None = None,
) -> Image.Image:
    """Stack top captions, the page image, then bottom captions."""
    width = page_image.width
    tops = render_blocks(top_blocks, width)
    bottoms = render_blocks(bottom_blocks, width)
    total_height = page_image.height + sum(block.height for block in [*tops, *bottoms])

    background = ImageColor.getrgb(fill_style or DEFAULT_FILL)
    canvas = Image.new("RGB", (width, total_height), background[:3])

    y = 0
    for block in tops:
        canvas.paste(block.image, (0, y), block.image)
        y += block.height

    if page_image.mode in {"RGBA", "LA"} or "transparency" in page_image.info:
        source = page_image.convert("RGBA")
        canvas.paste(source, (0, y), source)
    else:
        canvas.paste(page_image.convert("RGB"), (0, y))
    y += page_image.height

    for block in bottoms:
        canvas.paste(block.image, (0, y), block.image)
        y += block.height
    return canvas


def encode_page(image: Image.Image, quality: int = 100) -> bytes:
    """Encode the composited page as JPEG."""
    buffer = io.BytesIO()
    image.convert("RGB").save(buffer, format="JPEG", quality=quality, subsampling=0)
    return buffer.getvalue()
