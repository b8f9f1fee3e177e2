"""Quiescence-triggered debounce and dedup of partial recognition results."""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

CommitCallback = Callable[[str], Awaitable[None]]


def merge_phrase(transcript: str, phrase: str) -> str:
    """Append *phrase* to *transcript*, separated by a single space.

    If the transcript already ends with the phrase the transcript is
    returned unchanged, which absorbs an engine re-emitting a tail that
    was already captured.
    """
    if not phrase or transcript.endswith(phrase):
        return transcript
    if not transcript:
        return phrase
    return f"{transcript} {phrase}"


class PhrasePipeline:
    """Collapses a burst of partial results into one committed phrase per pause.

    Stages, in order:
    1. buffer: each ``push()`` supersedes the pending phrase
    2. quiescence timer: restarted on every push, fires after ``debounce``
       seconds without input
    3. normalize: leading/trailing whitespace is trimmed
    4. dedup: a phrase equal to the previous committed one is dropped
    5. commit: the commit callback receives the phrase

    Two shutdown modes exist: ``flush()`` commits the pending phrase
    immediately, ``discard()`` drops it.
    """

    def __init__(self, debounce: float, on_commit: CommitCallback) -> None:
        self._debounce = debounce
        self._on_commit = on_commit
        self._pending: str | None = None
        self._last_committed: str | None = None
        self._timer: asyncio.Task | None = None
        self._closed: bool = False

    @property
    def debounce(self) -> float:
        return self._debounce

    @property
    def last_committed(self) -> str | None:
        return self._last_committed

    def has_pending(self) -> bool:
        """Return True if a phrase is waiting for quiescence."""
        return self._pending is not None

    def push(self, raw_text: str) -> None:
        """Buffer *raw_text*, replacing any pending phrase, and restart the timer."""
        if self._closed:
            logger.debug("Pipeline closed, dropping input")
            return
        self._pending = raw_text
        self._cancel_timer()
        self._timer = asyncio.create_task(self._quiesce())

    def flush(self) -> str | None:
        """Commit the pending phrase now.

        Returns the normalized phrase for the caller to apply, or None if
        nothing was pending or the phrase was suppressed.
        """
        self._cancel_timer()
        return self._take()

    def discard(self) -> None:
        """Drop the pending phrase without committing it."""
        self._cancel_timer()
        if self._pending is not None:
            logger.debug("Discarding pending phrase %r", self._pending)
        self._pending = None

    def reset(self) -> None:
        """Prepare for a new session: discard and forget the last commit."""
        self.discard()
        self._last_committed = None

    def close(self) -> None:
        """Discard and refuse further input."""
        self.discard()
        self._closed = True

    def _take(self) -> str | None:
        raw, self._pending = self._pending, None
        if raw is None:
            return None
        phrase = raw.strip()
        if not phrase:
            return None
        if phrase == self._last_committed:
            logger.debug("Suppressing repeated phrase %r", phrase)
            return None
        self._last_committed = phrase
        return phrase

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _quiesce(self) -> None:
        try:
            await asyncio.sleep(self._debounce)
        except asyncio.CancelledError:
            return
        self._timer = None
        phrase = self._take()
        if phrase is None:
            return
        logger.debug("Committing phrase %r after %.3fs quiet", phrase, self._debounce)
        try:
            await self._on_commit(phrase)
        except Exception:
            logger.warning("Commit callback failed", exc_info=True)
