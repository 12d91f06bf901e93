"""Browse code search results as a navigable list of matches."""

__version__ = "0.1.0"
