"""ProSync Suite backend: record store, domain services and the HTTP API."""

__version__ = "1.0.0"
