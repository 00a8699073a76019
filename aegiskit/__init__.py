"""Redis protocol parser and clients, a Redis key store, DogStatsD metrics and text utilities for a chat bot."""

__version__ = "0.5.1"