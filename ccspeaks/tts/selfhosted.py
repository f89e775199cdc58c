"""
Self-hosted speech backend (XTTS v2, Piper, Coqui, ... behind HTTP).

The server must implement a simple API:

  POST /synthesize
  Body: {"text": "...", "voice_id": "...", "channels": 1, "format": "pcm16"}
  Response: raw PCM16 LE mono, sample rate in the X-Sample-Rate header
            404 when voice_id is unknown

  GET /health -> 200 when ready

Required:
  pip install aiohttp

Environment:
  TTS_PROVIDER=selfhosted
  TTS_SELFHOSTED_URL=http://tts-service:8080
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

from ..audio import pcm16_samples
from .base import SpeechEngine, SpeechError, Synthesis, UnknownVoiceError

logger = logging.getLogger(__name__)

_SAMPLE_RATE = 24000
_CHANNELS = 1


class SelfHostedEngine(SpeechEngine):
    """Speech client for a self-hosted inference server."""

    def __init__(
        self,
        *,
        base_url: str = "http://localhost:8080",
        default_voice: str = "default",
        timeout_s: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._voice = default_voice
        self._sample_rate = _SAMPLE_RATE
        self._timeout = timeout_s
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def name(self) -> str:
        return "selfhosted"

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout, connect=5),
            )
        return self._session

    async def warm_up(self) -> None:
        if await self.health_check():
            logger.info("Self-hosted TTS server healthy: %s", self._base_url)
        else:
            logger.warning("Self-hosted TTS server not healthy: %s", self._base_url)

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def health_check(self) -> bool:
        try:
            async with self._ensure_session().get(
                f"{self._base_url}/health",
                timeout=aiohttp.ClientTimeout(total=5),
            ) as resp:
                return resp.status == 200
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug("Self-hosted TTS health check failed: %s", e)
            return False

    async def set_voice(self, voice: str) -> int:
        # The server validates voices per request; a 404 from speak() maps to
        # UnknownVoiceError.
        if voice != self._voice:
            logger.info("Setting voice to %s", voice)
            self._voice = voice
        return self._sample_rate

    async def speak(self, text: str) -> Synthesis:
        payload = {
            "text": text,
            "voice_id": self._voice,
            "channels": _CHANNELS,
            "format": "pcm16",
        }
        try:
            async with self._ensure_session().post(f"{self._base_url}/synthesize", json=payload) as resp:
                if resp.status == 404:
                    raise UnknownVoiceError("Unknown language")
                if resp.status != 200:
                    body = await resp.text()
                    logger.error(
                        "Self-hosted TTS error %d: %s (text=%.50s)",
                        resp.status, body[:200], text,
                    )
                    raise SpeechError(f"Server returned {resp.status}")

                rate_header = resp.headers.get("X-Sample-Rate", "")
                data = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Self-hosted TTS request error: %s (text=%.50s)", e, text)
            raise SpeechError("Speech server unreachable") from e

        try:
            rate = int(rate_header) if rate_header else _SAMPLE_RATE
        except ValueError as e:
            raise SpeechError(f"Bad X-Sample-Rate header {rate_header!r}") from e
        if rate <= 0:
            raise SpeechError(f"Bad X-Sample-Rate header {rate_header!r}")

        self._sample_rate = rate
        return Synthesis(samples=pcm16_samples(data), sample_rate=rate)
