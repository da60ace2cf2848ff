"""Redis-style strings, sets, hashes and lists on an in-memory ordered transactional key-value store."""

__version__ = "0.1.0"