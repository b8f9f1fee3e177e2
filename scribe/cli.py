"""Command-line interface for Scribe.

Provides ``scribe serve`` and ``scribe replay``.  The entry point is
registered via ``pyproject.toml`` as ``scribe = "scribe.cli:cli"``.
"""

import asyncio
import json
import logging
from pathlib import Path

import click
from pydantic import ValidationError

from scribe.config import RecognitionOptions, env_option_values, get_port
from scribe.events.event_bus import EventBus
from scribe.events.types import SessionSnapshot
from scribe.recognition.scripted_source import (
    ScriptedRecognitionSource,
    ScriptStep,
    load_script,
)
from scribe.session.controller import SessionController

logger = logging.getLogger(__name__)

_MIN_PORT = 1024
_MAX_PORT = 65535

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _validate_port(port: int) -> None:
    """Raise ``click.BadParameter`` if *port* is out of range."""
    if not (_MIN_PORT <= port <= _MAX_PORT):
        raise click.BadParameter(
            f"Port must be between {_MIN_PORT} and {_MAX_PORT}, got {port}."
        )


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO, format=_LOG_FORMAT
    )


def _build_options(**overrides) -> RecognitionOptions:
    """Merge CLI overrides onto the environment options."""
    values = env_option_values()
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return RecognitionOptions(**values)
    except ValidationError as exc:
        raise click.BadParameter(
            "; ".join(err["msg"] for err in exc.errors())
        ) from exc


async def replay_script(
    steps: list[ScriptStep], options: RecognitionOptions
) -> SessionSnapshot:
    """Run one session against a scripted source until it ends.

    The session ends on a scripted error or, once the script goes quiet,
    on the silence timeout. Returns the snapshot taken when it ended.
    """
    source = ScriptedRecognitionSource(steps)
    updates: EventBus[SessionSnapshot] = EventBus()
    controller = SessionController(source, options, updates)
    queue = await updates.subscribe()
    try:
        await controller.start_session()
        while controller.is_listening:
            await queue.get()
        return controller.snapshot()
    finally:
        await updates.unsubscribe(queue)
        await controller.teardown()


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Scribe -- stable transcripts from streaming speech recognition."""
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--port", default=None, type=int, help="Server port (default: 7870)")
@click.option(
    "--source",
    "source_name",
    type=click.Choice(["push", "microphone"]),
    default="push",
    show_default=True,
    help="Recognition source driving the session",
)
@click.option("--language", default=None, help="BCP-47 language tag")
def serve(port: int | None, source_name: str, language: str | None) -> None:
    """Run the Scribe HTTP server."""
    import uvicorn

    from scribe.server.app import create_app

    port = port if port is not None else get_port()
    _validate_port(port)
    options = _build_options(language=language)

    if source_name == "microphone":
        from scribe.recognition.microphone_source import MicrophoneRecognitionSource

        source = MicrophoneRecognitionSource()
    else:
        source = None

    click.echo(f"Starting Scribe on port {port} (source: {source_name})...")
    app = create_app(source=source, options=options)
    uvicorn.run(app, host="127.0.0.1", port=port, log_level="info")


# ---------------------------------------------------------------------------
# replay
# ---------------------------------------------------------------------------


@cli.command()
@click.argument(
    "script", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option("--debounce-ms", type=int, default=None, help="Quiescence window")
@click.option(
    "--silence-timeout-ms", type=int, default=None, help="Silence watchdog window"
)
@click.option(
    "--flush-on-timeout/--discard-on-timeout",
    default=None,
    help="Keep or drop the pending phrase when the session times out",
)
@click.option("--json", "as_json", is_flag=True, help="Print the final snapshot as JSON")
def replay(
    script: Path,
    debounce_ms: int | None,
    silence_timeout_ms: int | None,
    flush_on_timeout: bool | None,
    as_json: bool,
) -> None:
    """Replay a JSON Lines recognition script and print the transcript.

    Each line is ``{"at_ms": 0, "text": "..."}`` or
    ``{"at_ms": 0, "error": "no-speech"}``.
    """
    options = _build_options(
        debounce_ms=debounce_ms,
        silence_timeout_ms=silence_timeout_ms,
        flush_on_timeout=flush_on_timeout,
    )
    try:
        steps = load_script(script)
    except (ValueError, ValidationError) as exc:
        raise click.BadParameter(f"invalid script: {exc}") from exc

    snapshot = asyncio.run(replay_script(steps, options))

    if as_json:
        click.echo(json.dumps(snapshot.model_dump(mode="json", exclude={"timestamp"})))
        return

    click.echo(f"State:      {snapshot.state.value}")
    if snapshot.last_error_code:
        click.echo(click.style(f"Error:      {snapshot.last_error_code}", fg="red"))
    click.echo(f"Transcript: {snapshot.transcript}")
