"""Database snapshot plans: dump, archive, cache, retain and restore."""

__version__ = "0.1.0"
