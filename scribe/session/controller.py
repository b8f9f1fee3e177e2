"""Listening-session state machine.

The controller owns the session (state, transcript, last error code) and
coordinates the silence watchdog and the phrase pipeline around an
injected recognition source::

    Idle --start--> Listening --stop/timeout--> Idle
                    Listening --error---------> Error --start--> Listening

Every handler performs its state transition synchronously before its
first ``await``, so handlers interleaving on the event loop always see a
consistent session. Each session carries a generation number; events
tagged with an older generation are ignored.
"""

import logging

from scribe.config import RecognitionOptions
from scribe.events.event_bus import EventBus
from scribe.events.types import SessionSnapshot, SessionState
from scribe.recognition.base import (
    RecognitionEngineError,
    RecognitionSink,
    RecognitionSource,
)
from scribe.session.pipeline import PhrasePipeline, merge_phrase
from scribe.session.watchdog import SilenceWatchdog

logger = logging.getLogger(__name__)

# Error code reported when a source fails to start with an unexpected exception.
START_FAILED: str = "start-failed"


class SessionController:
    """Turns recognition events into an accumulating, de-duplicated transcript."""

    def __init__(
        self,
        source: RecognitionSource,
        options: RecognitionOptions | None = None,
        updates: EventBus[SessionSnapshot] | None = None,
    ) -> None:
        self._source = source
        self._options = options or RecognitionOptions()
        self._updates = updates
        self._source.configure(self._options)

        self._watchdog = SilenceWatchdog(
            self._options.silence_timeout, self.on_watchdog_timeout
        )
        self._pipeline = PhrasePipeline(
            self._options.debounce, self.on_committed_phrase
        )

        self._state: SessionState = SessionState.IDLE
        self._transcript: str = ""
        self._last_error_code: str | None = None
        self._generation: int = 0
        self._torn_down: bool = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def transcript(self) -> str:
        return self._transcript

    @property
    def last_error_code(self) -> str | None:
        return self._last_error_code

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def options(self) -> RecognitionOptions:
        return self._options

    @property
    def source(self) -> RecognitionSource:
        return self._source

    @property
    def is_listening(self) -> bool:
        return self._state is SessionState.LISTENING

    def snapshot(self) -> SessionSnapshot:
        """Return the observable view of the current session."""
        return SessionSnapshot(
            state=self._state,
            transcript=self._transcript,
            last_error_code=self._last_error_code,
            generation=self._generation,
        )

    # ------------------------------------------------------------------
    # User requests
    # ------------------------------------------------------------------

    async def start_session(self) -> None:
        """Begin a new listening session with an empty transcript.

        No-op if already listening. Raises RuntimeError after teardown.
        """
        if self._torn_down:
            raise RuntimeError("session controller has been torn down")
        if self._state is SessionState.LISTENING:
            logger.debug("start_session ignored: already listening")
            return

        self._generation += 1
        generation = self._generation
        self._state = SessionState.LISTENING
        self._last_error_code = None
        self._transcript = ""
        self._pipeline.reset()
        self._watchdog.arm()
        logger.info(
            "Session %d listening (source=%s, language=%s)",
            generation,
            self._source.name,
            self._options.language,
        )

        sink = RecognitionSink(
            generation, self._deliver_result, self._deliver_error
        )
        try:
            await self._source.start(sink)
        except RecognitionEngineError as exc:
            if generation == self._generation:
                logger.warning(
                    "Recognition source failed to start: %s", exc.code
                )
                self._enter_error(exc.code)
        except Exception:
            if generation == self._generation:
                logger.warning("Recognition source failed to start", exc_info=True)
                self._enter_error(START_FAILED)
        else:
            if generation != self._generation and not self.is_listening:
                # Stopped or torn down while the source was still starting.
                logger.info(
                    "Session %d ended during start, aborting source", generation
                )
                await self._abort_source()
                return
        await self._publish()

    async def stop_session(self) -> None:
        """End listening at the user's request.

        The pending phrase is committed before the session ends, so speech
        that has not yet quiesced is kept.
        """
        was_listening = self._state is SessionState.LISTENING
        if was_listening:
            logger.info("Session %d stopped by user", self._generation)
            phrase = self._pipeline.flush()
            if phrase is not None:
                self._apply(phrase)
        self._end(SessionState.IDLE)
        if was_listening:
            await self._stop_source()
        await self._publish()

    async def edit_transcript(self, text: str) -> None:
        """Overwrite the transcript with a manual edit.

        Later commits append after the edited value.
        """
        self._transcript = text
        logger.debug("Transcript edited manually (%d chars)", len(text))
        await self._publish()

    async def teardown(self) -> None:
        """Release everything. Safe to call from any state, any number of times."""
        if self._torn_down:
            return
        self._torn_down = True
        self._pipeline.close()
        self._watchdog.disarm()
        self._generation += 1
        self._state = SessionState.IDLE
        self._last_error_code = None
        await self._abort_source()
        logger.info("Session controller torn down")
        await self._publish()

    # ------------------------------------------------------------------
    # Recognition events
    # ------------------------------------------------------------------

    def on_recognition_result(self, raw_text: str) -> None:
        """Handle one hypothesis for the current session."""
        if self._state is not SessionState.LISTENING:
            logger.debug("Dropping result while %s", self._state.value)
            return
        self._watchdog.arm()
        self._pipeline.push(raw_text)

    async def on_recognition_error(self, code: str) -> None:
        """Move the current session to the error state, keeping the transcript."""
        if self._state is not SessionState.LISTENING:
            logger.debug("Dropping error %r while %s", code, self._state.value)
            return
        logger.warning("Recognition error in session %d: %s", self._generation, code)
        self._enter_error(code)
        await self._stop_source()
        await self._publish()

    # ------------------------------------------------------------------
    # Pipeline and watchdog callbacks
    # ------------------------------------------------------------------

    async def on_committed_phrase(self, phrase: str) -> None:
        """Merge a committed phrase into the transcript."""
        if self._state is not SessionState.LISTENING:
            logger.debug("Dropping committed phrase while %s", self._state.value)
            return
        if self._apply(phrase):
            await self._publish()

    async def on_watchdog_timeout(self) -> None:
        """End the session after silence. Silence is not an error."""
        if self._state is not SessionState.LISTENING:
            return
        if self._options.flush_on_timeout:
            phrase = self._pipeline.flush()
            if phrase is not None:
                self._apply(phrase)
        logger.info(
            "No speech for %.1fs, stopping session %d",
            self._options.silence_timeout,
            self._generation,
        )
        self._end(SessionState.IDLE)
        await self._stop_source()
        await self._publish()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _deliver_result(self, generation: int, text: str) -> None:
        if generation != self._generation:
            logger.debug("Ignoring stale result from session %d", generation)
            return
        self.on_recognition_result(text)

    async def _deliver_error(self, generation: int, code: str) -> None:
        if generation != self._generation:
            logger.debug("Ignoring stale error %r from session %d", code, generation)
            return
        await self.on_recognition_error(code)

    def _apply(self, phrase: str) -> bool:
        merged = merge_phrase(self._transcript, phrase)
        if merged == self._transcript:
            logger.debug("Phrase %r already at end of transcript", phrase)
            return False
        self._transcript = merged
        logger.debug("Appended phrase %r", phrase)
        return True

    def _end(self, state: SessionState) -> None:
        # Invalidates the sink handed to the source for this session.
        self._pipeline.discard()
        self._watchdog.disarm()
        if self._state is SessionState.LISTENING:
            self._generation += 1
        self._state = state
        self._last_error_code = None

    def _enter_error(self, code: str) -> None:
        self._end(SessionState.ERROR)
        self._last_error_code = code

    async def _stop_source(self) -> None:
        try:
            await self._source.stop()
        except Exception:
            logger.warning("Recognition source stop failed", exc_info=True)

    async def _abort_source(self) -> None:
        try:
            await self._source.abort()
        except Exception:
            logger.warning("Recognition source abort failed", exc_info=True)

    async def _publish(self) -> None:
        if self._updates is not None:
            await self._updates.emit(self.snapshot())
