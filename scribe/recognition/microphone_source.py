"""Microphone recognition source: energy-based VAD plus Whisper transcription.

Captures audio from the default input device, cuts it into utterances
on silence, and sends each utterance to an OpenAI-compatible
``/v1/audio/transcriptions`` endpoint. Every transcript is delivered as
one hypothesis. In non-continuous mode capture ends after the first
delivered utterance. Error codes follow the Web Speech API vocabulary so the
presentation layer can treat every engine alike.
"""

import asyncio
import io
import logging
import threading
import wave

import httpx
import numpy as np
import sounddevice as sd

from scribe.config import (
    AUDIO_SAMPLE_RATE,
    RecognitionOptions,
    STT_API_KEY,
    STT_BASE_URL,
    STT_MODEL,
    STT_TIMEOUT,
    VAD_LISTEN_TIMEOUT,
    VAD_MAX_UTTERANCE,
    VAD_SILENCE_DURATION,
    VAD_SILENCE_THRESHOLD,
)
from scribe.recognition.base import (
    RecognitionEngineError,
    RecognitionSink,
    RecognitionSource,
)

logger = logging.getLogger(__name__)

AUDIO_CAPTURE = "audio-capture"
NOT_ALLOWED = "not-allowed"
NETWORK = "network"
NO_SPEECH = "no-speech"

_CHUNK_DURATION: float = 0.1  # 100ms reads


class MicrophoneRecognitionSource(RecognitionSource):
    """Microphone capture transcribed utterance by utterance."""

    def __init__(
        self,
        *,
        language: str = "it-IT",
        continuous: bool = True,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        sample_rate: int | None = None,
        silence_threshold: float | None = None,
        silence_duration: float | None = None,
        max_utterance: float | None = None,
        listen_timeout: float | None = None,
    ) -> None:
        self._language = language
        self._continuous = continuous
        self._api_key = STT_API_KEY if api_key is None else api_key
        self._base_url = base_url or STT_BASE_URL
        self._model = model or STT_MODEL
        self._sample_rate = sample_rate or AUDIO_SAMPLE_RATE
        self._silence_threshold = silence_threshold or VAD_SILENCE_THRESHOLD
        self._silence_duration = silence_duration or VAD_SILENCE_DURATION
        self._max_utterance = max_utterance or VAD_MAX_UTTERANCE
        self._listen_timeout = listen_timeout or VAD_LISTEN_TIMEOUT

        self._client: httpx.AsyncClient | None = None
        self._task: asyncio.Task | None = None
        self._halt = threading.Event()

    def configure(self, options: RecognitionOptions) -> None:
        """Take the session language and continuous mode.

        Whisper returns one final transcript per utterance, so
        ``interim_results`` and ``max_alternatives`` have no effect here.
        """
        self._language = options.language
        self._continuous = options.continuous
        logger.debug(
            "Microphone source configured (language=%s, continuous=%s)",
            self._language,
            self._continuous,
        )

    @property
    def name(self) -> str:
        return "microphone"

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, sink: RecognitionSink) -> None:
        """Probe the input device and API key, then begin capturing.

        Raises RecognitionEngineError with ``audio-capture`` when no input
        device exists and ``not-allowed`` when no API key is configured.
        """
        await self._shutdown()
        if not self._api_key:
            raise RecognitionEngineError(NOT_ALLOWED, "no STT API key configured")
        try:
            sd.query_devices(kind="input")
        except Exception as exc:
            raise RecognitionEngineError(AUDIO_CAPTURE, str(exc)) from exc

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=STT_TIMEOUT,
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        self._halt = threading.Event()
        self._task = asyncio.create_task(self._run(sink, self._halt))
        logger.info(
            "Microphone source started (model=%s, language=%s)",
            self._model,
            self._language,
        )

    async def stop(self) -> None:
        await self._shutdown()
        logger.info("Microphone source stopped")

    async def abort(self) -> None:
        await self._shutdown()
        logger.info("Microphone source aborted")

    async def _shutdown(self) -> None:
        # The capture thread polls the halt flag between reads.
        self._halt.set()
        if self._task is not None:
            if self._task is not asyncio.current_task():
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
            self._task = None
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _run(self, sink: RecognitionSink, halt: threading.Event) -> None:
        """Capture, transcribe, deliver; repeat until halted or failed."""
        while not halt.is_set():
            try:
                audio = await asyncio.to_thread(self._capture_utterance_sync, halt)
            except Exception:
                logger.warning("Microphone capture failed", exc_info=True)
                await sink.push_error(AUDIO_CAPTURE)
                return
            if halt.is_set():
                return
            if audio is None:
                logger.info("No speech within %.1fs", self._listen_timeout)
                await sink.push_error(NO_SPEECH)
                return

            try:
                text = await self._transcribe(audio)
            except httpx.HTTPStatusError as exc:
                code = exc.response.status_code
                logger.warning("Whisper API returned status %d", code)
                await sink.push_error(NOT_ALLOWED if code in (401, 403) else NETWORK)
                return
            except httpx.HTTPError:
                logger.warning("Whisper API request failed", exc_info=True)
                await sink.push_error(NETWORK)
                return

            if text and not halt.is_set():
                sink.push_result(text)
                if not self._continuous:
                    logger.info("Single-utterance capture finished")
                    return

    async def _transcribe(self, audio: bytes) -> str:
        """Upload one utterance and return its transcript (may be empty)."""
        if self._client is None:
            return ""
        response = await self._client.post(
            "/v1/audio/transcriptions",
            data={"model": self._model, "language": self._language.split("-")[0]},
            files={"file": ("audio.wav", self._wrap_wav(audio), "audio/wav")},
        )
        response.raise_for_status()
        text = response.json().get("text", "").strip()
        logger.debug("Whisper transcript: %r", text)
        return text

    def _capture_utterance_sync(self, halt: threading.Event) -> bytes | None:
        """Record one utterance. Runs in a worker thread.

        Waits up to the listen timeout for speech onset (RMS above the
        threshold), then records until the silence duration elapses or the
        utterance hits its maximum length. Returns None if no speech
        started, or empty bytes if halted mid-capture.
        """
        chunk_samples = int(self._sample_rate * _CHUNK_DURATION)
        frames: list[np.ndarray] = []
        waited = 0.0
        recorded = 0.0
        silence = 0.0

        with sd.InputStream(
            samplerate=self._sample_rate,
            channels=1,
            dtype="int16",
            blocksize=chunk_samples,
        ) as stream:
            while not frames:
                if halt.is_set():
                    return b""
                if waited >= self._listen_timeout:
                    return None
                data, _ = stream.read(chunk_samples)
                waited += _CHUNK_DURATION
                if self._compute_rms(data) > self._silence_threshold:
                    frames.append(data.copy())
                    recorded += _CHUNK_DURATION

            while recorded < self._max_utterance:
                if halt.is_set():
                    return b""
                data, _ = stream.read(chunk_samples)
                frames.append(data.copy())
                recorded += _CHUNK_DURATION
                if self._compute_rms(data) < self._silence_threshold:
                    silence += _CHUNK_DURATION
                    if silence >= self._silence_duration:
                        break
                else:
                    silence = 0.0

        return np.concatenate(frames).tobytes()

    @staticmethod
    def _compute_rms(data: np.ndarray) -> float:
        """RMS amplitude of int16 audio, normalized to 0.0-1.0."""
        float_data = data.astype(np.float32) / 32768.0
        return float(np.sqrt(np.mean(float_data**2)))

    def _wrap_wav(self, pcm_bytes: bytes) -> io.BytesIO:
        buf = io.BytesIO()
        with wave.open(buf, "wb") as wf:
            wf.setnchannels(1)
            wf.setsampwidth(2)
            wf.setframerate(self._sample_rate)
            wf.writeframes(pcm_bytes)
        buf.seek(0)
        return buf
