"""Store master lookups."""

from .directory import DEFAULT_STORES, Store, StoreDirectory

__all__ = ["DEFAULT_STORES", "Store", "StoreDirectory"]
