"""Multicast DNS message encoding, record caching and service browsing."""

__version__ = "0.1.0"

__all__ = ["browser", "cache", "dns", "records", "server", "servicemodel"]