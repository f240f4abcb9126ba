"""Version metadata for the RetailPulse service."""

RETAILPULSE_VERSION = "0.1.0"
__version__ = RETAILPULSE_VERSION
