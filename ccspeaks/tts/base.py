"""
Abstract speech engine interface.

Every backend (espeak-ng, self-hosted HTTP server) implements this
interface; the HTTP handler is backend-agnostic.

Key design principles:
  1. Whole-utterance: speak() returns the full PCM buffer; the transcoder
     streams from it.
  2. Async: subprocess and network I/O never block the event loop.
  3. Not reentrant: callers hold one lock across set_voice() + speak().
  4. PCM16 output: mono signed 16-bit samples at the engine's native rate.
"""
from __future__ import annotations

import abc
from dataclasses import dataclass

import numpy as np

from ..audio import pcm16_duration_ms


class SpeechError(Exception):
    """Synthesis failed.  The message is safe to show to clients."""


class UnknownVoiceError(SpeechError):
    """The requested voice does not exist on this engine."""


@dataclass(frozen=True)
class Synthesis:
    """Synthesized audio for one utterance.

    Attributes:
        samples: Mono int16 PCM samples.
        sample_rate: Native sample rate in Hz (e.g. 22050 for espeak-ng).
    """
    samples: np.ndarray
    sample_rate: int

    @property
    def duration_ms(self) -> float:
        return pcm16_duration_ms(len(self.samples), self.sample_rate)


class SpeechEngine(abc.ABC):
    """Abstract speech engine.

    Subclasses must implement:
      - set_voice(): select a voice, returning the native sample rate
      - speak(): synthesize text with the current voice
      - property: name
    """

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Human-readable engine name (for logging)."""
        ...

    @abc.abstractmethod
    async def set_voice(self, voice: str) -> int:
        """Select *voice* and return the sample rate it produces.

        Raises:
            UnknownVoiceError: the voice does not exist.
            SpeechError: the engine could not switch voices.
        """
        ...

    @abc.abstractmethod
    async def speak(self, text: str) -> Synthesis:
        """Synthesize *text* with the current voice.

        Raises:
            SpeechError: synthesis failed.
        """
        ...

    async def warm_up(self) -> None:
        """Optional: probe the backend once at startup."""

    async def close(self) -> None:
        """Release resources (HTTP sessions, child processes, etc.)."""

    async def health_check(self) -> bool:
        """Return True if the engine is healthy and ready to serve."""
        return True
