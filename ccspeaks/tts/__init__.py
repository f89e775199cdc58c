"""
Speech synthesis backends.

Every backend turns text into mono PCM16 at its native rate; the service
transcodes that to DFPWM.

Usage:
    from ccspeaks.tts import create_speech_engine
    engine = create_speech_engine(config)

    rate = await engine.set_voice("en")
    synthesis = await engine.speak("Hello world")
"""
from .base import SpeechEngine, SpeechError, Synthesis, UnknownVoiceError
from .factory import create_speech_engine

__all__ = [
    "SpeechEngine",
    "SpeechError",
    "Synthesis",
    "UnknownVoiceError",
    "create_speech_engine",
]
