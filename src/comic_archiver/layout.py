"""Caption wrapping and rendering onto fixed-width raster blocks."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Mapping

from PIL import Image, ImageDraw, ImageFont

from .models import TextBlockSpec

logger = logging.getLogger(__name__)

_BOLD_WEIGHTS = {"bold", "bolder", "600", "700", "800", "900"}
_SPEC_FIELDS = {f.name for f in dataclasses.fields(TextBlockSpec)}
_FALLBACK_FAMILIES = ("DejaVu Sans", "Liberation Sans", "Arial", "Helvetica")


@dataclass(slots=True)
class TextBlock:
    """Rendered caption. Empty captions carry no image and zero height."""

    image: Image.Image | None
    height: int
    lines: list[str] = field(default_factory=list)


def resolve_text_block(raw: TextBlockSpec | Mapping[str, Any]) -> TextBlockSpec:
    """Apply per-field defaults to a partial caption description."""
    if isinstance(raw, TextBlockSpec):
        return _validated(raw)
    unknown = set(raw) - _SPEC_FIELDS
    if unknown:
        raise ValueError(f"未知的文字块字段: {', '.join(sorted(unknown))}")
    values = {key: value for key, value in raw.items() if value is not None}
    for key in ("font_style", "font_variant", "font_weight", "font_stretch", "font_family", "fill_style"):
        if key in values:
            values[key] = str(values[key])
    values["text"] = str(raw.get("text") or "")
    return _validated(TextBlockSpec(**values))


def _validated(spec: TextBlockSpec) -> TextBlockSpec:
    if spec.text_align not in {"center", "left"}:
        raise ValueError(f"text_align 必须是 center 或 left: {spec.text_align}")
    if spec.font_size < 1 or spec.line_height < 1:
        raise ValueError("font_size 和 line_height 必须 >= 1")
    if min(spec.padding_top, spec.padding_bottom, spec.padding_left, spec.padding_right) < 0:
        raise ValueError("padding 不能为负数")
    if block_height(spec, 1) < 1:
        raise ValueError(
            f"文字块高度必须 > 0: line_height={spec.line_height}, font_size={spec.font_size}, "
            f"padding_top={spec.padding_top}, padding_bottom={spec.padding_bottom}"
        )
    return spec


def font_shorthand(spec: TextBlockSpec) -> str:
    """CSS-like font string; empty optional fields are dropped."""
    parts = [
        spec.font_style,
        spec.font_variant,
        spec.font_weight,
        spec.font_stretch,
        f"{spec.font_size}px",
        spec.font_family,
    ]
    return " ".join(part.strip() for part in parts if part and part.strip())


def _families(font_family: str) -> list[str]:
    names = [name.strip().strip("'\"") for name in font_family.split(",")]
    return [name for name in names if name]


def _candidate_files(family: str, bold: bool, italic: bool, condensed: bool = False) -> list[str]:
    compact = family.replace(" ", "")
    words = [word for word, on in (("Bold", bold), ("Italic", italic)) if on]
    suffix = "".join(words) or "Regular"
    candidates = [f"{compact}Condensed-{suffix}.ttf"] if condensed else []
    candidates.append(f"{compact}-{suffix}.ttf")
    if italic:
        candidates.append(f"{compact}-{suffix.replace('Italic', 'Oblique')}.ttf")
    if words:
        candidates.append(f"{family} {' '.join(words)}.ttf")
    candidates += [f"{family}.ttf", f"{compact}.ttf"]
    return candidates


@lru_cache(maxsize=64)
def load_font(
    shorthand: str,
    font_family: str,
    font_weight: str,
    font_style: str,
    font_stretch: str,
    font_size: int,
) -> ImageFont.FreeTypeFont:
    """Resolve the TrueType font described by ``shorthand``.

    Falls back to Pillow's bundled font. ``font_variant`` has no file
    counterpart and only shows up in the shorthand.
    """
    bold = font_weight.strip().lower() in _BOLD_WEIGHTS
    italic = font_style.strip().lower().startswith(("italic", "oblique"))
    condensed = "condensed" in font_stretch.strip().lower()
    for family in [*_families(font_family), *_FALLBACK_FAMILIES]:
        for filename in _candidate_files(family, bold, italic, condensed):
            try:
                font = ImageFont.truetype(filename, font_size)
            except OSError:
                continue
            logger.debug("Font %r resolved to %s", shorthand, filename)
            return font
    logger.debug("Font %r not found, using the bundled default", shorthand)
    return ImageFont.load_default(size=font_size)


def font_for(spec: TextBlockSpec) -> ImageFont.FreeTypeFont:
    return load_font(
        font_shorthand(spec),
        spec.font_family,
        spec.font_weight,
        spec.font_style,
        spec.font_stretch,
        spec.font_size,
    )


def wrap_lines(text: str, measure: Callable[[str], float], usable_width: float) -> list[str]:
    """Greedy word wrap; explicit newlines always break.

    A word wider than the usable width stays alone on an overflowing line.
    """
    wrapped: list[str] = []
    for paragraph in text.split("\n"):
        line = ""
        for word in paragraph.split(" "):
            candidate = line + (" " if line else "") + word
            if measure(candidate) > usable_width and line != "":
                wrapped.append(line)
                line = word
            else:
                line = candidate
        wrapped.append(line)
    return wrapped


def block_height(spec: TextBlockSpec, line_count: int) -> int:
    """Lines plus ascent headroom above the first baseline plus padding."""
    return (
        line_count * spec.line_height
        + (spec.line_height - spec.font_size)
        + spec.padding_top
        + spec.padding_bottom
    )


def wrap_text_block(max_width: int, spec: TextBlockSpec) -> TextBlock:
    """Wrap and render one caption into a transparent block of ``max_width``."""
    if not spec.text:
        return TextBlock(image=None, height=0)

    spec = _validated(spec)
    font = font_for(spec)
    usable_width = max_width - spec.padding_left - spec.padding_right
    lines = wrap_lines(spec.text, font.getlength, usable_width)
    height = block_height(spec, len(lines))

    image = Image.new("RGBA", (max_width, height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(image)
    if spec.text_align == "center":
        x = usable_width / 2 + spec.padding_left
        anchor = "ms"
    else:
        x = spec.padding_left
        anchor = "ls"
    y = spec.padding_top + spec.line_height
    for line in lines:
        draw.text((x, y), line, font=font, fill=spec.fill_style, anchor=anchor)
        y += spec.line_height
    return TextBlock(image=image, height=height, lines=lines)
