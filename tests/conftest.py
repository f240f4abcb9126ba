"""Shared pytest fixtures for RetailPulse tests."""

from __future__ import annotations

import asyncio
import io
import threading
from collections.abc import Callable, Iterator, Mapping

import pytest
from PIL import Image

from retailpulse.errors import FetchError
from retailpulse.imaging.fetcher import ImageDimensions
from retailpulse.web import api


class StubFetcher:
    """In-memory fetcher returning canned dimensions or failures per URL."""

    def __init__(
        self,
        dimensions: Mapping[str, tuple[int, int]] | None = None,
        *,
        failures: Mapping[str, str] | None = None,
        errors: Mapping[str, Exception] | None = None,
        gate: threading.Event | None = None,
    ) -> None:
        self.dimensions = dict(dimensions or {})
        self.failures = dict(failures or {})
        self.errors = dict(errors or {})
        self.gate = gate
        self.calls: list[str] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self.closed = False

    async def fetch(self, url: str) -> ImageDimensions:
        self.calls.append(url)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                while not self.gate.is_set():
                    await asyncio.sleep(0.005)
            else:
                await asyncio.sleep(0)
            if url in self.errors:
                raise self.errors[url]
            if url in self.failures:
                raise FetchError(self.failures[url], url=url)
            width, height = self.dimensions.get(url, (1, 1))
            return ImageDimensions(width=width, height=height)
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def make_fetcher() -> Callable[..., StubFetcher]:
    return StubFetcher


@pytest.fixture
def image_bytes() -> Callable[..., bytes]:
    def _build(width: int, height: int, image_format: str = "PNG") -> bytes:
        buffer = io.BytesIO()
        Image.new("RGB", (width, height), color=(200, 40, 40)).save(
            buffer, format=image_format
        )
        return buffer.getvalue()

    return _build


@pytest.fixture(autouse=True)
def clear_overrides() -> Iterator[None]:
    api.app.dependency_overrides.clear()
    yield
    api.app.dependency_overrides.clear()
