"""HTTP routes for the Scribe server.

Endpoints
---------
POST /session/start       Start listening with an empty transcript.
POST /session/stop        Stop listening, keeping any buffered phrase.
PUT  /session/transcript  Manual transcript edit.
GET  /session             Current session snapshot (for polling).
GET  /session/events      Session snapshots as Server-Sent Events.
GET  /session/config      Engine settings for an external recognizer.

POST /recognition/result  Hypothesis from an external engine (push source only).
POST /recognition/error   Error code from an external engine (push source only).

GET  /health              Server health, version, and session state.
"""

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from scribe import __version__
from scribe.events.event_bus import EventBus
from scribe.events.types import PartialResult, RecognitionError, SessionSnapshot
from scribe.recognition.push_source import PushRecognitionSource
from scribe.session.controller import SessionController

logger = logging.getLogger(__name__)

router = APIRouter()

_KEEPALIVE_SEC: float = 15.0


class TranscriptEdit(BaseModel):
    text: str


def _get_controller(request: Request) -> SessionController:
    return request.app.state.controller


def _get_updates(request: Request) -> EventBus:
    return request.app.state.updates


def _get_push_source(request: Request) -> PushRecognitionSource:
    source = request.app.state.source
    if not isinstance(source, PushRecognitionSource):
        raise HTTPException(
            status_code=409,
            detail=f"recognition source '{source.name}' does not accept pushed events",
        )
    return source


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@router.post("/session/start")
async def start_session(request: Request) -> SessionSnapshot:
    controller = _get_controller(request)
    await controller.start_session()
    return controller.snapshot()


@router.post("/session/stop")
async def stop_session(request: Request) -> SessionSnapshot:
    controller = _get_controller(request)
    await controller.stop_session()
    return controller.snapshot()


@router.put("/session/transcript")
async def edit_transcript(edit: TranscriptEdit, request: Request) -> SessionSnapshot:
    controller = _get_controller(request)
    await controller.edit_transcript(edit.text)
    return controller.snapshot()


@router.get("/session")
async def get_session(request: Request) -> SessionSnapshot:
    return _get_controller(request).snapshot()


@router.get("/session/config")
async def session_config(request: Request) -> dict:
    """Engine settings, named as a Web Speech ``SpeechRecognition`` expects them.

    An external engine feeding the push source applies these before it
    starts recognizing.
    """
    options = _get_controller(request).options
    return {
        "lang": options.language,
        "continuous": options.continuous,
        "interimResults": options.interim_results,
        "maxAlternatives": options.max_alternatives,
        "silenceTimeoutMs": options.silence_timeout_ms,
        "debounceMs": options.debounce_ms,
    }


@router.get("/session/events")
async def session_stream(request: Request) -> EventSourceResponse:
    """Stream session snapshots as Server-Sent Events.

    The current snapshot is sent first, then one message per mutation:
    * ``event`` -- ``snapshot``
    * ``data``  -- the SessionSnapshot serialised as JSON
    """
    controller = _get_controller(request)
    updates = _get_updates(request)

    async def _generate():
        queue = await updates.subscribe()
        try:
            yield {"event": "snapshot", "data": controller.snapshot().model_dump_json()}
            while True:
                if await request.is_disconnected():
                    logger.debug("Snapshot SSE client disconnected")
                    break
                try:
                    snapshot = await asyncio.wait_for(
                        queue.get(), timeout=_KEEPALIVE_SEC
                    )
                except asyncio.TimeoutError:
                    yield {"comment": "ping"}
                    continue
                yield {"event": "snapshot", "data": snapshot.model_dump_json()}
        except asyncio.CancelledError:
            logger.debug("Snapshot SSE stream cancelled")
        finally:
            await updates.unsubscribe(queue)
            logger.debug("Snapshot SSE subscriber cleaned up")

    return EventSourceResponse(_generate())


# ---------------------------------------------------------------------------
# Recognition events (push source)
# ---------------------------------------------------------------------------


@router.post("/recognition/result")
async def push_result(result: PartialResult, request: Request) -> dict:
    source = _get_push_source(request)
    if not source.submit_result(result.text):
        return {"status": "ignored", "reason": "not listening"}
    return {"status": "ok"}


@router.post("/recognition/error")
async def push_error(error: RecognitionError, request: Request) -> dict:
    source = _get_push_source(request)
    if not await source.submit_error(error.code):
        return {"status": "ignored", "reason": "not listening"}
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------


@router.get("/health")
async def health(request: Request) -> dict:
    controller = _get_controller(request)
    updates = _get_updates(request)
    return {
        "status": "ok",
        "version": __version__,
        "state": controller.state.value,
        "source": controller.source.name,
        "language": controller.options.language,
        "subscribers": updates.subscriber_count,
    }
