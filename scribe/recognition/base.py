"""Interface between the session controller and a speech-recognition engine.

A source never constructs or owns session state. On ``start()`` it receives
a :class:`RecognitionSink` bound to the current session generation and
delivers every hypothesis (partial or final, treated alike) and every
error through it. A sink from a superseded session silently drops what it
is given, so a source that delivers late cannot alter a newer session.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from scribe.config import RecognitionOptions


class RecognitionEngineError(Exception):
    """Raised by a source whose engine cannot start.

    ``code`` is an opaque identifier surfaced verbatim to the user
    (e.g. ``not-allowed``, ``audio-capture``, ``network``).
    """

    def __init__(self, code: str, message: str | None = None) -> None:
        super().__init__(message or code)
        self.code = code


class RecognitionSink:
    """Generation-bound delivery handle handed to a source on start."""

    def __init__(
        self,
        generation: int,
        on_result: Callable[[int, str], None],
        on_error: Callable[[int, str], Awaitable[None]],
    ) -> None:
        self._generation = generation
        self._on_result = on_result
        self._on_error = on_error

    @property
    def generation(self) -> int:
        return self._generation

    def push_result(self, text: str) -> None:
        """Deliver one recognition hypothesis."""
        self._on_result(self._generation, text)

    async def push_error(self, code: str) -> None:
        """Deliver an engine error."""
        await self._on_error(self._generation, code)


class RecognitionSource(ABC):
    """Abstract base class for recognition engines.

    Implementations must deliver no events after ``stop()`` or ``abort()``
    has returned.
    """

    def configure(self, options: RecognitionOptions) -> None:
        """Apply the session options to the engine.

        Called once by the controller that owns this source. The default
        ignores them.
        """

    @abstractmethod
    async def start(self, sink: RecognitionSink) -> None:
        """Begin recognition, delivering events to *sink*.

        Raises RecognitionEngineError if the engine cannot start.
        """

    @abstractmethod
    async def stop(self) -> None:
        """Graceful end of recognition."""

    @abstractmethod
    async def abort(self) -> None:
        """Hard cancel, discarding any in-flight recognition."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable source name for health/status display."""
