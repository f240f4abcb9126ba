"""HTTP interface for the RetailPulse job service."""
