"""Configuration constants and helpers for Scribe."""

import os

from pydantic import BaseModel, Field, model_validator

DEFAULT_PORT: int = 7870


def get_port() -> int:
    """Return the server port from SCRIBE_PORT env var, or DEFAULT_PORT."""
    raw = os.environ.get("SCRIBE_PORT")
    if raw is not None:
        try:
            return int(raw)
        except ValueError:
            return DEFAULT_PORT
    return DEFAULT_PORT


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# --- Session configuration ---

LANGUAGE: str = os.environ.get("SCRIBE_LANGUAGE", "it-IT")
SILENCE_TIMEOUT_MS: int = int(os.environ.get("SCRIBE_SILENCE_TIMEOUT_MS", "5000"))
DEBOUNCE_MS: int = int(os.environ.get("SCRIBE_DEBOUNCE_MS", "2000"))
FLUSH_ON_TIMEOUT: bool = _env_bool("SCRIBE_FLUSH_ON_TIMEOUT", False)


# --- Whisper STT configuration ---

STT_API_KEY: str = os.environ.get("SCRIBE_STT_API_KEY", "")
STT_BASE_URL: str = os.environ.get("SCRIBE_STT_BASE_URL", "https://api.openai.com")
STT_MODEL: str = os.environ.get("SCRIBE_STT_MODEL", "whisper-1")
STT_TIMEOUT: float = float(os.environ.get("SCRIBE_STT_TIMEOUT", "10.0"))


# --- Microphone / VAD configuration ---

AUDIO_SAMPLE_RATE: int = int(os.environ.get("SCRIBE_AUDIO_SAMPLE_RATE", "16000"))
VAD_SILENCE_THRESHOLD: float = float(
    os.environ.get("SCRIBE_VAD_SILENCE_THRESHOLD", "0.01")
)  # RMS amplitude, 0.0-1.0
VAD_SILENCE_DURATION: float = float(
    os.environ.get("SCRIBE_VAD_SILENCE_DURATION", "0.8")
)  # Seconds of silence that close an utterance.
VAD_MAX_UTTERANCE: float = float(os.environ.get("SCRIBE_VAD_MAX_UTTERANCE", "15.0"))
VAD_LISTEN_TIMEOUT: float = float(
    os.environ.get("SCRIBE_VAD_LISTEN_TIMEOUT", "8.0")
)  # Seconds without speech onset before reporting no-speech.


class RecognitionOptions(BaseModel):
    """Options recognized by a listening session.

    ``debounce_ms`` must be shorter than ``silence_timeout_ms``: a phrase
    has to be able to quiesce before the watchdog ends the session.
    """

    language: str = Field(default="it-IT", min_length=2)
    silence_timeout_ms: int = Field(default=5000, gt=0)
    debounce_ms: int = Field(default=2000, gt=0)
    continuous: bool = True
    interim_results: bool = True
    max_alternatives: int = Field(default=1, ge=1)
    flush_on_timeout: bool = False

    @model_validator(mode="after")
    def _debounce_shorter_than_timeout(self) -> "RecognitionOptions":
        if self.debounce_ms >= self.silence_timeout_ms:
            raise ValueError(
                f"debounce_ms ({self.debounce_ms}) must be less than "
                f"silence_timeout_ms ({self.silence_timeout_ms})"
            )
        return self

    @property
    def silence_timeout(self) -> float:
        """Silence window in seconds."""
        return self.silence_timeout_ms / 1000.0

    @property
    def debounce(self) -> float:
        """Quiescence window in seconds."""
        return self.debounce_ms / 1000.0


def env_option_values() -> dict:
    """Return the SCRIBE_* session settings as unvalidated option fields."""
    return {
        "language": LANGUAGE,
        "silence_timeout_ms": SILENCE_TIMEOUT_MS,
        "debounce_ms": DEBOUNCE_MS,
        "flush_on_timeout": FLUSH_ON_TIMEOUT,
    }


def options_from_env() -> RecognitionOptions:
    """Build RecognitionOptions from the SCRIBE_* environment settings.

    Raises pydantic.ValidationError when the settings are inconsistent.
    """
    return RecognitionOptions(**env_option_values())
