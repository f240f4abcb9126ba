"""Image retrieval and decoding."""

from .fetcher import ImageDimensions, ImageFetcher, decode_dimensions

__all__ = ["ImageDimensions", "ImageFetcher", "decode_dimensions"]
