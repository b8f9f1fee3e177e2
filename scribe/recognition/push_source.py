"""Recognition source fed by an external engine.

Used when recognition runs elsewhere (for example a browser running the
Web Speech API) and posts its hypotheses to the HTTP routes. Events are
only forwarded between ``start()`` and ``stop()``/``abort()``.
"""

import logging

from scribe.recognition.base import RecognitionSink, RecognitionSource

logger = logging.getLogger(__name__)


class PushRecognitionSource(RecognitionSource):
    """Forwards externally produced events to the active session."""

    def __init__(self) -> None:
        self._sink: RecognitionSink | None = None

    async def start(self, sink: RecognitionSink) -> None:
        self._sink = sink
        logger.info("Push source accepting events (session %d)", sink.generation)

    async def stop(self) -> None:
        self._close("stopped")

    async def abort(self) -> None:
        self._close("aborted")

    @property
    def name(self) -> str:
        return "push"

    @property
    def is_active(self) -> bool:
        return self._sink is not None

    def submit_result(self, text: str) -> bool:
        """Forward a hypothesis. Returns False if no session is listening."""
        if self._sink is None:
            logger.debug("Push source inactive, dropping result")
            return False
        self._sink.push_result(text)
        return True

    async def submit_error(self, code: str) -> bool:
        """Forward an engine error. Returns False if no session is listening."""
        if self._sink is None:
            logger.debug("Push source inactive, dropping error %r", code)
            return False
        sink = self._sink
        await sink.push_error(code)
        return True

    def _close(self, how: str) -> None:
        if self._sink is not None:
            logger.info("Push source %s (session %d)", how, self._sink.generation)
        self._sink = None
