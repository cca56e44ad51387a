"""Document ingestion into a canonical, word-at-a-time reading stream."""

__version__ = "0.1.0"
