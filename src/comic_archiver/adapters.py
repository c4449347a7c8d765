"""Site adapter records and first-match registry."""

from __future__ import annotations

import dataclasses
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping, Sequence, Union

from .errors import AdapterNotFoundError, ExtractionError
from .layout import resolve_text_block
from .models import PageContext, TextBlockSpec

logger = logging.getLogger(__name__)

TextHook = Callable[[PageContext], Sequence[Union[TextBlockSpec, Mapping[str, Any]]]]
FillStyle = Union[str, Callable[[PageContext], str], None]


def _always_ready(_: PageContext) -> bool:
    return True


def _no_blocks(_: PageContext) -> list[TextBlockSpec]:
    return []


@dataclass(frozen=True)
class PageAdapter:
    """Extraction rules for one site.

    Every hook receives the current page and is evaluated each time it is
    needed; nothing is cached between calls.
    """

    name: str
    url_pattern: re.Pattern[str]
    book_name: Callable[..., str]
    page_number: Callable[[PageContext], str]
    next_page_url: Callable[[PageContext], str | None]
    image_url: Callable[[PageContext], str]
    page_loaded: Callable[[PageContext], bool] | None = None
    top_text: TextHook | None = None
    bottom_text: TextHook | None = None
    fill_style: FillStyle = None

    def matches(self, url: str) -> bool:
        return self.url_pattern.search(url) is not None

    def resolved(self) -> "PageAdapter":
        """Copy with every optional hook replaced by its default."""
        return dataclasses.replace(
            self,
            page_loaded=self.page_loaded or _always_ready,
            top_text=self.top_text or _no_blocks,
            bottom_text=self.bottom_text or _no_blocks,
        )

    # Guarded hook calls used by the controller.

    def _call(self, hook_name: str, *args: Any, **kwargs: Any) -> Any:
        hook = getattr(self, hook_name)
        try:
            return hook(*args, **kwargs)
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(f"{self.name}.{hook_name} 执行失败: {exc!r}") from exc

    def is_loaded(self, context: PageContext) -> bool:
        return bool(self._call("page_loaded", context))

    def key_for(self, context: PageContext) -> str:
        key = self._call("page_number", context)
        if key is None or not str(key).strip():
            raise ExtractionError(f"{self.name}.page_number 返回了空页码。")
        return str(key).strip()

    def image_for(self, context: PageContext) -> str:
        url = self._call("image_url", context)
        if not url:
            raise ExtractionError(f"{self.name}.image_url 返回了空地址。")
        return str(url)

    def next_for(self, context: PageContext) -> str | None:
        url = self._call("next_page_url", context)
        return str(url) if url else None

    def top_blocks(self, context: PageContext) -> list[TextBlockSpec]:
        return self._blocks("top_text", context)

    def bottom_blocks(self, context: PageContext) -> list[TextBlockSpec]:
        return self._blocks("bottom_text", context)

    def _blocks(self, hook_name: str, context: PageContext) -> list[TextBlockSpec]:
        try:
            return [resolve_text_block(raw) for raw in self._call(hook_name, context) or []]
        except ValueError as exc:
            raise ExtractionError(f"{self.name}.{hook_name} 文字块无效: {exc}") from exc

    def fill_for(self, context: PageContext) -> str | None:
        if callable(self.fill_style):
            return self._call("fill_style", context) or None
        return self.fill_style or None

    def archive_name(self, first_page: str | None, last_page: str | None) -> str:
        return str(self._call("book_name", first_page=first_page, last_page=last_page))


def site(
    name: str,
    url_pattern: str,
    **hooks: Any,
) -> PageAdapter:
    """Shorthand for declaring an adapter with a regex string."""
    return PageAdapter(name=name, url_pattern=re.compile(url_pattern), **hooks)


class AdapterRegistry:
    """Ordered adapter list; the first matching pattern wins."""

    def __init__(self, adapters: Sequence[PageAdapter] = ()) -> None:
        self._adapters: list[PageAdapter] = list(adapters)

    def register(self, adapter: PageAdapter) -> PageAdapter:
        self._adapters.append(adapter)
        return adapter

    def __iter__(self) -> Iterator[PageAdapter]:
        return iter(self._adapters)

    def __len__(self) -> int:
        return len(self._adapters)

    def matching(self, url: str) -> list[PageAdapter]:
        return [adapter for adapter in self._adapters if adapter.matches(url)]

    def resolve(self, url: str) -> PageAdapter:
        """Return the first adapter matching ``url`` with defaults applied."""
        candidates = self.matching(url)
        if not candidates:
            raise AdapterNotFoundError(url)
        chosen = candidates[0]
        if len(candidates) > 1:
            logger.warning(
                "Several adapters match %s; using %s and ignoring %s",
                url,
                chosen.name,
                ", ".join(adapter.name for adapter in candidates[1:]),
            )
        logger.info("Matched adapter %s for %s", chosen.name, url)
        return chosen.resolved()
