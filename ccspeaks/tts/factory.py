"""
Speech engine factory.

Usage:
    engine = create_speech_engine(config)
    await engine.warm_up()
"""
from __future__ import annotations

import logging

from .base import SpeechEngine

logger = logging.getLogger(__name__)


def create_speech_engine(cfg) -> SpeechEngine:
    """Create the speech engine named by ``cfg.tts_provider``.

    Reads these config fields:
      cfg.tts_provider: "espeak" | "selfhosted"
      cfg.default_voice: voice selected at startup
      cfg.espeak_binary: espeak-ng executable
      cfg.tts_selfhosted_url: URL for self-hosted TTS server
      cfg.tts_timeout_s: per-utterance synthesis timeout
    """
    provider = getattr(cfg, "tts_provider", "espeak").lower().strip()

    if provider == "espeak":
        from .espeak import EspeakEngine
        engine: SpeechEngine = EspeakEngine(
            binary=getattr(cfg, "espeak_binary", "espeak-ng"),
            default_voice=getattr(cfg, "default_voice", "en"),
            timeout_s=getattr(cfg, "tts_timeout_s", 30.0),
        )
    elif provider == "selfhosted":
        from .selfhosted import SelfHostedEngine
        engine = SelfHostedEngine(
            base_url=getattr(cfg, "tts_selfhosted_url", "") or "http://localhost:8080",
            default_voice=getattr(cfg, "default_voice", "default"),
            timeout_s=getattr(cfg, "tts_timeout_s", 30.0),
        )
    else:
        raise ValueError(f"Unknown TTS provider: {provider!r}")

    logger.info("Speech engine: %s", engine.name)
    return engine
