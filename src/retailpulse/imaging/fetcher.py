"""Download images and decode their pixel dimensions."""

from __future__ import annotations

import asyncio
import io
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Collection

import httpx
import structlog
from PIL import Image, UnidentifiedImageError

from retailpulse.errors import FetchError

log = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_DELAY_RANGE: tuple[float, float] = (0.1, 0.4)
DEFAULT_FORMATS: frozenset[str] = frozenset({"PNG", "JPEG", "GIF"})


@dataclass(frozen=True, slots=True)
class ImageDimensions:
    """Pixel dimensions of a decoded image."""

    width: int
    height: int

    @property
    def perimeter(self) -> float:
        return 2.0 * (self.width + self.height)


def decode_dimensions(
    payload: bytes, *, formats: Collection[str] = DEFAULT_FORMATS
) -> ImageDimensions:
    """Decode ``payload`` with Pillow and return its dimensions.

    Raises :class:`ValueError` when the payload is not an image in one of the
    accepted ``formats`` or cannot be fully decoded.
    """

    try:
        with Image.open(io.BytesIO(payload)) as image:
            image_format = (image.format or "").upper()
            if image_format not in formats:
                raise ValueError(f"unsupported image format {image_format or 'unknown'}")
            image.load()
            width, height = image.size
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
    ) as exc:
        raise ValueError(str(exc)) from exc
    return ImageDimensions(width=width, height=height)


class ImageFetcher:
    """Fetch images over HTTP and report their pixel dimensions.

    Each call uses its own timeout and, once the dimensions are known, waits
    a random delay drawn from ``delay_range`` to emulate per-image work.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        delay_range: tuple[float, float] | None = DEFAULT_DELAY_RANGE,
        formats: Collection[str] = DEFAULT_FORMATS,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        if delay_range is not None:
            low, high = delay_range
            if low < 0 or high < low:
                raise ValueError(f"Invalid delay range {delay_range!r}.")
        self._timeout = timeout
        self._delay_range = delay_range
        self._formats = frozenset(name.upper() for name in formats)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(follow_redirects=True)
        self._sleep = sleep
        self._rng = rng or random.Random()

    @property
    def timeout(self) -> float:
        return self._timeout

    async def fetch(self, url: str) -> ImageDimensions:
        """Return the dimensions of the image at ``url`` or raise :class:`FetchError`."""

        # Bounds the whole call, body read included.
        try:
            response = await asyncio.wait_for(
                self._client.get(url, timeout=self._timeout), timeout=self._timeout
            )
        except asyncio.TimeoutError as exc:
            raise FetchError(
                f"error downloading image: timed out after {self._timeout:g}s",
                url=url,
            ) from exc
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            raise FetchError(f"error creating request: {exc}", url=url) from exc
        except httpx.HTTPError as exc:
            detail = str(exc) or type(exc).__name__
            raise FetchError(f"error downloading image: {detail}", url=url) from exc

        if response.status_code != httpx.codes.OK:
            raise FetchError(
                f"error downloading image: status code {response.status_code}",
                url=url,
            )

        try:
            dimensions = await asyncio.to_thread(
                decode_dimensions, response.content, formats=self._formats
            )
        except ValueError as exc:
            raise FetchError(f"error decoding image: {exc}", url=url) from exc

        delay = self._next_delay()
        if delay:
            await self._sleep(delay)

        log.debug(
            "imaging.fetcher.decoded",
            url=url,
            width=dimensions.width,
            height=dimensions.height,
            delay=delay,
        )
        return dimensions

    def _next_delay(self) -> float:
        if self._delay_range is None:
            return 0.0
        low, high = self._delay_range
        if high <= 0:
            return 0.0
        return self._rng.uniform(low, high)

    async def aclose(self) -> None:
        """Close the HTTP client when it is owned by the fetcher."""

        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ImageFetcher":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
