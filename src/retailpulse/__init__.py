"""Asynchronous store visit image processing service."""

from .version import RETAILPULSE_VERSION, __version__

__all__ = ["RETAILPULSE_VERSION", "__version__"]
