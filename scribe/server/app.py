"""FastAPI application factory for Scribe.

``create_app()`` wires a recognition source, a SessionController and the
snapshot bus together and exposes them to the routes through
``app.state``. The controller is torn down when the app shuts down.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from scribe import __version__
from scribe.config import RecognitionOptions, options_from_env
from scribe.events.event_bus import EventBus
from scribe.events.types import SessionSnapshot
from scribe.recognition.base import RecognitionSource
from scribe.recognition.push_source import PushRecognitionSource
from scribe.server.routes import router
from scribe.session.controller import SessionController

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Tear the session controller down on shutdown."""
    controller: SessionController = app.state.controller
    logger.info("Scribe server starting up (source=%s)", controller.source.name)
    try:
        yield
    finally:
        logger.info("Scribe server shutting down")
        await controller.teardown()


def create_app(
    source: RecognitionSource | None = None,
    options: RecognitionOptions | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    The returned app has:
    * ``app.state.controller`` -- the :class:`SessionController`
    * ``app.state.source`` -- the recognition source it drives
      (a :class:`PushRecognitionSource` unless one is given)
    * ``app.state.updates`` -- the :class:`EventBus` of session snapshots
    """
    source = source or PushRecognitionSource()
    options = options or options_from_env()
    updates: EventBus[SessionSnapshot] = EventBus()
    controller = SessionController(source, options, updates)

    app = FastAPI(title="Scribe", version=__version__, lifespan=lifespan)
    app.state.source = source
    app.state.updates = updates
    app.state.controller = controller
    app.include_router(router)

    logger.info("FastAPI app created")
    return app
