"""Shared fixtures for Scribe tests."""

import httpx
import pytest

from scribe.config import RecognitionOptions
from scribe.events.event_bus import EventBus
from scribe.recognition.base import RecognitionSink, RecognitionSource
from scribe.session.controller import SessionController

# Short windows keep the suite fast: 50ms quiescence, 200ms silence.
DEBOUNCE_MS = 50
SILENCE_TIMEOUT_MS = 200


class FakeSource(RecognitionSource):
    """In-memory recognition source that records lifecycle calls.

    Tests drive the session through ``sink`` exactly as a real engine
    would. The sink from an earlier session is kept in ``sinks`` so late
    deliveries can be simulated.
    """

    def __init__(self, start_error: Exception | None = None) -> None:
        self.start_error = start_error
        self.sinks: list[RecognitionSink] = []
        self.start_calls = 0
        self.stop_calls = 0
        self.abort_calls = 0
        self.configured: RecognitionOptions | None = None

    def configure(self, options: RecognitionOptions) -> None:
        self.configured = options

    async def start(self, sink: RecognitionSink) -> None:
        self.start_calls += 1
        self.sinks.append(sink)
        if self.start_error is not None:
            raise self.start_error

    async def stop(self) -> None:
        self.stop_calls += 1

    async def abort(self) -> None:
        self.abort_calls += 1

    @property
    def name(self) -> str:
        return "fake"

    @property
    def sink(self) -> RecognitionSink:
        return self.sinks[-1]


@pytest.fixture
def options() -> RecognitionOptions:
    """Return options with short windows for fast tests."""
    return RecognitionOptions(
        debounce_ms=DEBOUNCE_MS, silence_timeout_ms=SILENCE_TIMEOUT_MS
    )


@pytest.fixture
def updates() -> EventBus:
    """Return a fresh snapshot bus with a small queue for testing."""
    return EventBus(maxsize=16)


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
async def controller(source, options, updates):
    """Return a SessionController wired to the fake source.

    Torn down after the test so no timer outlives it.
    """
    c = SessionController(source, options, updates)
    yield c
    await c.teardown()


@pytest.fixture
def app(options):
    """Return a Scribe FastAPI app driven by a push source."""
    from scribe.server.app import create_app

    return create_app(options=options)


@pytest.fixture
async def async_client(app):
    """Return an httpx AsyncClient configured with the test FastAPI app."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://testserver"
    ) as client:
        yield client
    await app.state.controller.teardown()
