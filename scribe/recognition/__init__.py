"""Recognition sources that feed hypotheses into a listening session."""

from scribe.recognition.base import (
    RecognitionEngineError,
    RecognitionSink,
    RecognitionSource,
)
from scribe.recognition.push_source import PushRecognitionSource
from scribe.recognition.scripted_source import ScriptedRecognitionSource, ScriptStep

__all__ = [
    "PushRecognitionSource",
    "RecognitionEngineError",
    "RecognitionSink",
    "RecognitionSource",
    "ScriptStep",
    "ScriptedRecognitionSource",
]
