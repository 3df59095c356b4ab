"""TRMNL screen fetcher and display cache for e-ink devices."""

__version__ = "0.1.0"
