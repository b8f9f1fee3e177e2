"""Listening session: state machine, silence watchdog, and phrase pipeline."""

from scribe.session.controller import SessionController
from scribe.session.pipeline import PhrasePipeline, merge_phrase
from scribe.session.watchdog import SilenceWatchdog

__all__ = [
    "PhrasePipeline",
    "SessionController",
    "SilenceWatchdog",
    "merge_phrase",
]
