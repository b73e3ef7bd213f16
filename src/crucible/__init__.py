"""Crucible: a compiler front-end for card-game content definitions."""

__version__ = "0.1.0"
