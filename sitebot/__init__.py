"""Retrieval-augmented chat assistant for a single company website."""

__version__ = "0.1.0"
