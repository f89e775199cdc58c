from __future__ import annotations
from dataclasses import dataclass
import logging
import os
from typing import Optional
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

TRUTHY = ("1", "true", "yes", "y", "on")


def _env_int(key: str, default: int) -> int:
    v = os.getenv(key)
    if v is None or str(v).strip() == "":
        return default
    try:
        return int(v)
    except Exception as e:
        raise ValueError(f"{key} must be an int, got {v!r}") from e


def _env_float(key: str, default: float) -> float:
    v = os.getenv(key)
    if v is None or str(v).strip() == "":
        return default
    try:
        return float(v)
    except Exception as e:
        raise ValueError(f"{key} must be a float, got {v!r}") from e


def _env_opt_int(key: str) -> Optional[int]:
    v = os.getenv(key)
    if v is None or str(v).strip() == "":
        return None
    return _env_int(key, 0)


def _env_bool(key: str, default: bool = False) -> bool:
    v = os.getenv(key)
    if v is None:
        return default
    return str(v).strip().lower() in TRUTHY


@dataclass(frozen=True)
class SpeakConfig:
    listen_host: str
    listen_port: Optional[int]
    listen_fd: Optional[int]
    tts_provider: str
    espeak_binary: str
    tts_selfhosted_url: str
    default_voice: str
    max_text_size: int
    target_sample_rate: int
    resample_corrective: bool
    max_concurrent_requests: int = 16
    tts_timeout_s: float = 30.0


def _systemd_listen_fd() -> Optional[int]:
    """First socket passed by systemd socket activation, if it is ours."""
    n_fds = _env_opt_int("LISTEN_FDS")
    if not n_fds:
        return None
    pid = _env_opt_int("LISTEN_PID")
    if pid is not None and pid != os.getpid():
        logger.warning("LISTEN_PID=%d is not this process (%d); ignoring LISTEN_FDS", pid, os.getpid())
        return None
    return 3


def load_config(env_file: str | None = None) -> SpeakConfig:
    """Load config from .env + environment.

    Precedence: real environment wins over .env values.
    """
    if env_file:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)

    listen_host = os.getenv("LISTEN_HOST", "127.0.0.1").strip() or "127.0.0.1"
    listen_port = _env_opt_int("LISTEN_PORT")
    listen_fd = _systemd_listen_fd()
    if listen_fd is None and listen_port is None:
        raise ValueError("Must run with LISTEN_FDS or LISTEN_PORT!")
    if listen_port is not None and not 0 < listen_port < 65536:
        raise ValueError(f"LISTEN_PORT out of range: {listen_port}")

    tts_provider = os.getenv("TTS_PROVIDER", "espeak").strip().lower() or "espeak"
    if tts_provider not in ("espeak", "selfhosted"):
        raise ValueError("TTS_PROVIDER must be 'espeak' or 'selfhosted'")

    espeak_binary = os.getenv("ESPEAK_BINARY", "espeak-ng").strip() or "espeak-ng"
    tts_selfhosted_url = os.getenv("TTS_SELFHOSTED_URL", "http://localhost:8080").strip()
    default_voice = os.getenv("DEFAULT_VOICE", "en").strip() or "en"

    max_text_size = _env_int("MAX_TEXT_SIZE", 512)
    if max_text_size <= 0:
        raise ValueError("MAX_TEXT_SIZE must be positive")

    target_sample_rate = _env_int("TARGET_SAMPLE_RATE", 48000)
    if target_sample_rate <= 0:
        raise ValueError("TARGET_SAMPLE_RATE must be positive")
    if target_sample_rate != 48000:
        logger.warning(
            "TARGET_SAMPLE_RATE=%d: clients expecting 48 kHz DFPWM will play at the wrong speed",
            target_sample_rate,
        )

    resample_corrective = _env_bool("RESAMPLE_CORRECTIVE", False)
    max_concurrent_requests = _env_int("MAX_CONCURRENT_REQUESTS", 16)

    tts_timeout_s = _env_float("TTS_TIMEOUT_S", 30.0)
    if tts_timeout_s <= 0:
        raise ValueError("TTS_TIMEOUT_S must be positive")

    return SpeakConfig(
        listen_host=listen_host,
        listen_port=listen_port,
        listen_fd=listen_fd,
        tts_provider=tts_provider,
        espeak_binary=espeak_binary,
        tts_selfhosted_url=tts_selfhosted_url,
        default_voice=default_voice,
        max_text_size=max_text_size,
        target_sample_rate=target_sample_rate,
        resample_corrective=resample_corrective,
        max_concurrent_requests=max_concurrent_requests,
        tts_timeout_s=tts_timeout_s,
    )
