"""Scribe: turns streaming speech-recognition hypotheses into a stable transcript."""

__version__ = "0.1.0"
