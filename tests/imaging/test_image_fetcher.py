"""Tests for downloading and decoding images."""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import AsyncIterator, Callable

import httpx
import pytest

from retailpulse.errors import FetchError
from retailpulse.imaging.fetcher import ImageDimensions, ImageFetcher, decode_dimensions


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.parametrize("image_format", ["PNG", "JPEG", "GIF"])
def test_decode_dimensions_supports_common_formats(
    image_format: str, image_bytes: Callable[..., bytes]
) -> None:
    payload = image_bytes(100, 50, image_format)

    assert decode_dimensions(payload) == ImageDimensions(width=100, height=50)


def test_decode_dimensions_rejects_formats_outside_allowed_set(
    image_bytes: Callable[..., bytes],
) -> None:
    payload = image_bytes(10, 10, "BMP")

    with pytest.raises(ValueError, match="unsupported image format BMP"):
        decode_dimensions(payload)


def test_decode_dimensions_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        decode_dimensions(b"definitely not an image")


def test_dimensions_perimeter() -> None:
    assert ImageDimensions(width=100, height=50).perimeter == 300.0


@pytest.mark.anyio
async def test_fetch_returns_dimensions_and_applies_delay(
    image_bytes: Callable[..., bytes],
) -> None:
    payload = image_bytes(640, 480, "JPEG")
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, content=payload)

    sleep = SleepRecorder()
    async with _client(handler) as client:
        fetcher = ImageFetcher(client=client, sleep=sleep, rng=random.Random(7))
        dimensions = await fetcher.fetch("https://images.example.com/a.jpg")

    assert dimensions == ImageDimensions(width=640, height=480)
    assert seen == ["https://images.example.com/a.jpg"]
    assert len(sleep.delays) == 1
    assert 0.1 <= sleep.delays[0] <= 0.4


@pytest.mark.anyio
async def test_fetch_without_delay_range_does_not_sleep(
    image_bytes: Callable[..., bytes],
) -> None:
    payload = image_bytes(3, 4)
    sleep = SleepRecorder()
    async with _client(lambda request: httpx.Response(200, content=payload)) as client:
        fetcher = ImageFetcher(client=client, sleep=sleep, delay_range=None)
        dimensions = await fetcher.fetch("https://images.example.com/b.png")

    assert dimensions == ImageDimensions(width=3, height=4)
    assert sleep.delays == []


@pytest.mark.anyio
async def test_fetch_reports_non_success_status() -> None:
    async with _client(lambda request: httpx.Response(404)) as client:
        fetcher = ImageFetcher(client=client, delay_range=None)
        with pytest.raises(FetchError) as excinfo:
            await fetcher.fetch("https://images.example.com/missing.png")

    assert str(excinfo.value) == "error downloading image: status code 404"
    assert excinfo.value.url == "https://images.example.com/missing.png"


@pytest.mark.anyio
async def test_fetch_reports_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        fetcher = ImageFetcher(client=client, delay_range=None)
        with pytest.raises(FetchError, match="error downloading image: connection refused"):
            await fetcher.fetch("https://images.example.com/a.png")


@pytest.mark.anyio
async def test_fetch_reports_timeouts() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with _client(handler) as client:
        fetcher = ImageFetcher(client=client, timeout=0.5, delay_range=None)
        with pytest.raises(FetchError, match="error downloading image: timed out"):
            await fetcher.fetch("https://images.example.com/slow.png")

    assert fetcher.timeout == 0.5


@pytest.mark.anyio
async def test_fetch_timeout_bounds_slow_streaming_body(
    image_bytes: Callable[..., bytes],
) -> None:
    payload = image_bytes(100, 50)
    chunk_size = len(payload) // 6 + 1

    async def trickle() -> AsyncIterator[bytes]:
        for offset in range(0, len(payload), chunk_size):
            await asyncio.sleep(0.2)
            yield payload[offset : offset + chunk_size]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=trickle())

    async with _client(handler) as client:
        fetcher = ImageFetcher(client=client, timeout=0.3, delay_range=None)
        started = time.monotonic()
        with pytest.raises(FetchError, match="^error downloading image: timed out"):
            await fetcher.fetch("https://images.example.com/slow.png")
        elapsed = time.monotonic() - started

    assert elapsed < 0.9


@pytest.mark.anyio
async def test_fetch_reports_undecodable_payload() -> None:
    sleep = SleepRecorder()
    async with _client(
        lambda request: httpx.Response(200, content=b"<html>nope</html>")
    ) as client:
        fetcher = ImageFetcher(client=client, sleep=sleep)
        with pytest.raises(FetchError, match="^error decoding image: "):
            await fetcher.fetch("https://images.example.com/page.html")

    assert sleep.delays == []


@pytest.mark.anyio
async def test_fetch_honours_configured_formats(
    image_bytes: Callable[..., bytes],
) -> None:
    payload = image_bytes(8, 8, "GIF")
    async with _client(lambda request: httpx.Response(200, content=payload)) as client:
        fetcher = ImageFetcher(client=client, delay_range=None, formats=["png"])
        with pytest.raises(FetchError, match="unsupported image format GIF"):
            await fetcher.fetch("https://images.example.com/anim.gif")


def test_invalid_delay_range_is_rejected() -> None:
    with pytest.raises(ValueError):
        ImageFetcher(delay_range=(0.5, 0.1))


@pytest.mark.anyio
async def test_aclose_leaves_injected_client_open(
    image_bytes: Callable[..., bytes],
) -> None:
    payload = image_bytes(2, 2)
    async with _client(lambda request: httpx.Response(200, content=payload)) as client:
        async with ImageFetcher(client=client, delay_range=None) as fetcher:
            await fetcher.fetch("https://images.example.com/a.png")
        assert not client.is_closed
