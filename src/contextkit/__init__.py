"""contextkit: bounded, relevance-ranked context assembly for code assistants."""

__version__ = "0.1.0"
