"""
espeak-ng backend.

Runs the ``espeak-ng`` command line tool once per utterance and decodes the
WAV it writes to stdout:

  espeak-ng --stdout --stdin -v <voice>   (text on stdin)

Text goes through stdin so that input starting with ``-`` is never parsed
as a flag.

Voices are checked against ``espeak-ng --voices`` before use.  A voice may be
named by language code (``en-gb``), voice name (``English_(Great_Britain)``)
or voice file (``gmw/en``), optionally with a ``+variant`` suffix
(``en+f3``).

Required:
  apt install espeak-ng

Environment:
  TTS_PROVIDER=espeak
  ESPEAK_BINARY=espeak-ng
  TTS_TIMEOUT_S=30
"""
from __future__ import annotations

import asyncio
import logging
import re
import shutil
from typing import Optional

from ..audio import wav_to_pcm16
from .base import SpeechEngine, SpeechError, Synthesis, UnknownVoiceError

logger = logging.getLogger(__name__)

# espeak-ng always synthesizes at this rate; the WAV header is authoritative.
_SAMPLE_RATE = 22050

_OTHER_LANGUAGE_RE = re.compile(r"\(([^\s()]+)")


def parse_voice_list(output: str) -> frozenset[str]:
    """Collect every name ``-v`` accepts from ``espeak-ng --voices`` output.

    Lines look like:
      Pty Language       Age/Gender VoiceName          File          Other Languages
       5  en-gb           --/M      English_(Great_Britain) gmw/en  (en 2)
    """
    names: set[str] = set()
    for line in output.splitlines()[1:]:
        parts = line.split()
        if len(parts) < 5:
            continue
        language, voice_name, file_name = parts[1], parts[3], parts[4]
        names.update((language.lower(), voice_name.lower(), file_name.lower()))
        names.update(m.lower() for m in _OTHER_LANGUAGE_RE.findall(" ".join(parts[5:])))
    return frozenset(names)


class EspeakEngine(SpeechEngine):
    """Speech engine backed by the espeak-ng CLI."""

    def __init__(
        self,
        *,
        binary: str = "espeak-ng",
        default_voice: str = "en",
        timeout_s: float = 30.0,
    ) -> None:
        self._binary = binary
        self._voice: Optional[str] = None
        self._default_voice = default_voice
        self._sample_rate = _SAMPLE_RATE
        self._voices: Optional[frozenset[str]] = None
        self._timeout = timeout_s

    @property
    def name(self) -> str:
        return "espeak-ng"

    @property
    def voice(self) -> Optional[str]:
        return self._voice

    async def warm_up(self) -> None:
        await self._load_voices()
        await self.set_voice(self._default_voice)
        logger.info(
            "espeak-ng ready: %d voice names, default voice %r",
            len(self._voices or ()), self._voice,
        )

    async def health_check(self) -> bool:
        return shutil.which(self._binary) is not None

    async def set_voice(self, voice: str) -> int:
        if self._voice == voice:
            return self._sample_rate

        logger.info("Setting voice to %s", voice)
        voices = await self._load_voices()
        base = voice.split("+", 1)[0].strip().lower()
        if not base or base not in voices:
            self._voice = None
            raise UnknownVoiceError("Unknown language")

        self._voice = voice
        return self._sample_rate

    async def speak(self, text: str) -> Synthesis:
        if "\0" in text:
            raise SpeechError("Malformed input string")
        voice = self._voice or self._default_voice

        stdout, stderr, code = await self._run(
            "--stdout", "--stdin", "-v", voice, stdin=text.encode("utf-8"),
        )
        if code != 0:
            logger.error("espeak-ng exited with %d: %s", code, stderr.strip()[:200])
            raise SpeechError("An unknown error occurred")
        if not stdout:
            raise SpeechError("Audio data not found")

        try:
            samples, rate = wav_to_pcm16(stdout)
        except ValueError as e:
            logger.error("espeak-ng produced unreadable audio: %s", e)
            raise SpeechError("Internal error") from e

        self._sample_rate = rate
        return Synthesis(samples=samples, sample_rate=rate)

    async def _load_voices(self) -> frozenset[str]:
        if self._voices is None:
            stdout, stderr, code = await self._run("--voices")
            if code != 0:
                raise SpeechError(f"Cannot list voices ({stderr.strip()[:100] or code})")
            self._voices = parse_voice_list(stdout.decode("utf-8", errors="replace"))
        return self._voices

    async def _run(self, *args: str, stdin: bytes | None = None) -> tuple[bytes, str, int]:
        try:
            proc = await asyncio.create_subprocess_exec(
                self._binary, *args,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise SpeechError(f"{self._binary} not found") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(stdin), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            logger.error("%s %s timed out after %.1fs", self._binary, args[0], self._timeout)
            await _reap(proc)
            raise SpeechError("Speech synthesis timed out") from e
        except BaseException:
            # Cancelled with the request: the child must not outlive it.
            await _reap(proc)
            raise
        return stdout, stderr.decode("utf-8", errors="replace"), proc.returncode


async def _reap(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()
