"""Source image loader with retry."""

from __future__ import annotations

import io
import logging
import random
import time

import requests
from PIL import Image, UnidentifiedImageError
from requests.adapters import HTTPAdapter

from .errors import ImageLoadError

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)


class ImageLoader:
    """HTTP image loader returning decoded Pillow images."""

    def __init__(
        self,
        *,
        timeout_sec: float = 30.0,
        retries: int = 3,
        delay_sec: float = 0.2,
        backoff_base_sec: float = 0.5,
        backoff_max_sec: float = 8.0,
        session: requests.Session | None = None,
    ) -> None:
        self.timeout_sec = timeout_sec
        self.retries = max(0, retries)
        self.delay_sec = max(0.0, delay_sec)
        self._backoff_base_sec = max(0.0, backoff_base_sec)
        self._backoff_max_sec = max(self._backoff_base_sec, backoff_max_sec)
        self._session = session or self._build_session()

    def _build_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({"User-Agent": USER_AGENT})
        adapter = HTTPAdapter(pool_connections=4, pool_maxsize=4)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def _retry_delay(self, *, attempt: int, http_status: int | None) -> float:
        if http_status in {429, 503}:
            base = max(self.delay_sec, self._backoff_base_sec)
            backoff = min(self._backoff_max_sec, base * (2 ** (attempt - 1)))
            return backoff * random.uniform(0.8, 1.2)
        if self.delay_sec > 0:
            return self.delay_sec
        return min(self._backoff_max_sec, self._backoff_base_sec * (2 ** (attempt - 1)))

    def load(self, url: str, *, referer: str | None = None) -> Image.Image:
        """Download and decode one image, raising ImageLoadError on failure."""
        if not url:
            raise ImageLoadError("图片地址为空。")
        attempts = self.retries + 1
        last_error: str | None = None
        headers = {"Referer": referer} if referer else None

        for attempt in range(1, attempts + 1):
            status_code: int | None = None
            try:
                response = self._session.get(url, timeout=self.timeout_sec, headers=headers)
                status_code = response.status_code
                response.raise_for_status()
                image = Image.open(io.BytesIO(response.content))
                image.load()
                logger.debug("Loaded image %s (%dx%d)", url, image.width, image.height)
                return image
            except requests.RequestException as exc:
                status_code = getattr(getattr(exc, "response", None), "status_code", status_code)
                last_error = str(exc)
            except (UnidentifiedImageError, OSError) as exc:
                # Decoding failures are not transient.
                raise ImageLoadError(f"图片无法解码: {url}: {exc}") from exc

            if attempt < attempts:
                wait_sec = self._retry_delay(attempt=attempt, http_status=status_code)
                logger.warning("Image load failed (%s), retry %d/%d", last_error, attempt, self.retries)
                if wait_sec > 0:
                    time.sleep(wait_sec)

        raise ImageLoadError(f"图片加载失败: {url}: {last_error}")
