from __future__ import annotations

import asyncio
import logging

from ccspeaks.app import run_server
from ccspeaks.config import load_config
from ccspeaks.logging_utils import setup_logging
from ccspeaks.tts import create_speech_engine


logger = logging.getLogger(__name__)


def _log_config(cfg) -> None:
    logging.getLogger("ccspeaks").info(
        "Config: listen_host=%s listen_port=%s listen_fd=%s tts_provider=%s espeak_binary=%s "
        "tts_selfhosted_url=%s default_voice=%s max_text_size=%s target_sample_rate=%s "
        "resample_corrective=%s max_concurrent_requests=%s tts_timeout_s=%s",
        getattr(cfg, "listen_host", ""),
        getattr(cfg, "listen_port", ""),
        getattr(cfg, "listen_fd", ""),
        getattr(cfg, "tts_provider", ""),
        getattr(cfg, "espeak_binary", ""),
        getattr(cfg, "tts_selfhosted_url", ""),
        getattr(cfg, "default_voice", ""),
        getattr(cfg, "max_text_size", ""),
        getattr(cfg, "target_sample_rate", ""),
        getattr(cfg, "resample_corrective", ""),
        getattr(cfg, "max_concurrent_requests", ""),
        getattr(cfg, "tts_timeout_s", ""),
    )


async def _async_main() -> None:
    """Async entry point: loads config, starts the speech engine and the server."""
    setup_logging()
    cfg = load_config()
    logging.getLogger("ccspeaks").info("=== ccspeaks starting ===")
    _log_config(cfg)

    engine = create_speech_engine(cfg)
    try:
        await engine.warm_up()
        logger.info("Speech engine ready: %s", engine.name)
    except Exception:
        logger.warning("Speech engine warm-up failed (will retry on first request)", exc_info=True)

    await run_server(cfg, engine)


def main() -> None:
    try:
        asyncio.run(_async_main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
