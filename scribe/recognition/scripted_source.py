"""Recognition source that replays a timed script of events."""

import asyncio
import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from scribe.recognition.base import RecognitionSink, RecognitionSource

logger = logging.getLogger(__name__)


class ScriptStep(BaseModel):
    """One scripted event, ``at_ms`` after the source starts.

    Exactly one of ``text`` (a hypothesis) or ``error`` (an error code)
    must be given.
    """

    at_ms: int = Field(ge=0)
    text: str | None = None
    error: str | None = None

    @model_validator(mode="after")
    def _one_payload(self) -> "ScriptStep":
        if (self.text is None) == (self.error is None):
            raise ValueError("a script step needs exactly one of 'text' or 'error'")
        return self


def load_script(path: Path) -> list[ScriptStep]:
    """Parse a JSON Lines script file. Blank lines are skipped."""
    steps: list[ScriptStep] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        steps.append(ScriptStep.model_validate(json.loads(line)))
    return steps


class ScriptedRecognitionSource(RecognitionSource):
    """Replays scripted hypotheses and errors on the event loop.

    Steps are sorted by ``at_ms`` and delivered in that order. ``stop()``
    and ``abort()`` cancel the replay; nothing is delivered afterwards.
    """

    def __init__(self, steps: list[ScriptStep]) -> None:
        self._steps = sorted(steps, key=lambda s: s.at_ms)
        self._task: asyncio.Task | None = None
        self.start_count: int = 0
        self.stop_count: int = 0
        self.abort_count: int = 0

    async def start(self, sink: RecognitionSink) -> None:
        self.start_count += 1
        self._cancel()
        self._task = asyncio.create_task(self._replay(sink))

    async def stop(self) -> None:
        self.stop_count += 1
        self._cancel()

    async def abort(self) -> None:
        self.abort_count += 1
        self._cancel()

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def finished(self) -> bool:
        """True once every step has been delivered or the replay was cancelled."""
        return self._task is None or self._task.done()

    def _cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _replay(self, sink: RecognitionSink) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()
        for step in self._steps:
            delay = started + step.at_ms / 1000.0 - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            if step.error is not None:
                logger.debug("Replaying error %r at %dms", step.error, step.at_ms)
                await sink.push_error(step.error)
            else:
                logger.debug("Replaying result %r at %dms", step.text, step.at_ms)
                sink.push_result(step.text)
        logger.debug("Script replay finished (%d steps)", len(self._steps))
