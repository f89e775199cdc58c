"""
Text -> DFPWM speech service.

Request path:
  GET /speak?text=...&voice=...   (any path except the health routes)
    -> validate query
    -> engine lock: set_voice() + speak()   (engine is not reentrant)
    -> executor: i16 PCM -> resample to 48 kHz -> 8-bit levels -> DFPWM
    -> 200 application/octet-stream, raw DFPWM bytes (no header)

Errors are plain-text bodies: 400 for bad queries and unknown voices,
500 when the engine fails to synthesize.

Listening: systemd socket activation (LISTEN_FDS) or LISTEN_PORT on
LISTEN_HOST.  One of them is required.
"""
from __future__ import annotations

import asyncio
import functools
import logging
import signal
import socket
import time
from typing import Optional, Tuple

from aiohttp import web
from multidict import MultiMapping

from .audio import transcode_pcm16
from .config import SpeakConfig
from .dfpwm import encoded_length
from .resample import expected_output_length
from .scaling.health import HEALTH_KEY, HealthState, add_health_routes
from .scaling.metrics import SpeakMetrics
from .scaling.tracing import extract_trace_context
from .tts.base import SpeechEngine, SpeechError, UnknownVoiceError

logger = logging.getLogger(__name__)

CONFIG_KEY = web.AppKey("config", SpeakConfig)
ENGINE_KEY = web.AppKey("engine", SpeechEngine)
ENGINE_LOCK_KEY = web.AppKey("engine_lock", asyncio.Lock)


class QueryError(ValueError):
    """The request query is invalid.  The message is the 400 body."""


def bad_request(message: str) -> web.Response:
    return web.Response(status=400, text=message)


def parse_speak_query(
    query: MultiMapping[str],
    *,
    default_voice: str,
    max_size: int,
) -> Tuple[str, str]:
    """Validate the /speak query and return (text, voice)."""
    text: Optional[str] = None
    voice: Optional[str] = None
    for key, value in query.items():
        if key == "text":
            text = value
        elif key == "voice":
            voice = value
        else:
            raise QueryError("Unknown query argument")

    if text is None:
        raise QueryError("No text= query parameter")
    if voice is None:
        voice = default_voice

    if len(text.encode("utf-8")) > max_size:
        raise QueryError("Text is too long.")
    if "\0" in text:
        raise QueryError("Text cannot contain special characters.")

    if len(voice.encode("utf-8")) > max_size:
        raise QueryError("Voice is too long.")
    if not voice.isascii():
        raise QueryError("Voice must be ASCII only.")

    return text, voice


async def handle_speak(request: web.Request) -> web.Response:
    app = request.app
    cfg = app[CONFIG_KEY]

    try:
        text, voice = parse_speak_query(
            request.query, default_voice=cfg.default_voice, max_size=cfg.max_text_size,
        )
    except QueryError as e:
        return bad_request(str(e))

    trace = extract_trace_context(request.headers)
    metrics = SpeakMetrics(voice=voice, text_chars=len(text), trace=trace)
    health = app[HEALTH_KEY]
    health.request_started()

    response: Optional[web.Response] = None
    try:
        response = await _speak(app, text, voice, metrics)
        return response
    finally:
        status = response.status if response is not None else 500
        health.request_ended(ok=status == 200, bytes_sent=metrics.output_bytes)
        metrics.finalize(status)
        metrics.log_summary()


async def _speak(app: web.Application, text: str, voice: str, metrics: SpeakMetrics) -> web.Response:
    cfg = app[CONFIG_KEY]
    engine = app[ENGINE_KEY]

    if metrics.trace is not None:
        logger.info("Speaking %r with %r (trace=%s)", text, voice, metrics.trace.trace_id)
    else:
        logger.info("Speaking %r with %r", text, voice)

    t0 = time.monotonic()
    async with app[ENGINE_LOCK_KEY]:
        t1 = time.monotonic()
        metrics.lock_wait_ms = (t1 - t0) * 1000.0
        try:
            await engine.set_voice(voice)
        except UnknownVoiceError as e:
            return bad_request(str(e))
        except SpeechError as e:
            logger.warning("Cannot set voice %r: %s", voice, e)
            return bad_request(str(e))

        try:
            synthesis = await engine.speak(text)
        except SpeechError as e:
            logger.error("Synthesis failed for %r: %s", text[:60], e)
            return web.Response(status=500, text=f"Failed to generate audio ({e})")
        metrics.synthesis_ms = (time.monotonic() - t1) * 1000.0

    metrics.source_rate = synthesis.sample_rate
    metrics.pcm_samples = len(synthesis.samples)
    logger.debug(
        "Synthesized %.0fms at %d Hz, expecting %d DFPWM bytes",
        synthesis.duration_ms, synthesis.sample_rate,
        encoded_length(expected_output_length(
            metrics.pcm_samples, synthesis.sample_rate, cfg.target_sample_rate,
        )),
    )

    t2 = time.monotonic()
    loop = asyncio.get_running_loop()
    payload = await loop.run_in_executor(
        None,
        functools.partial(
            transcode_pcm16,
            synthesis.samples,
            synthesis.sample_rate,
            target_rate=cfg.target_sample_rate,
            corrective=cfg.resample_corrective,
        ),
    )
    metrics.transcode_ms = (time.monotonic() - t2) * 1000.0
    metrics.output_bytes = len(payload)

    return web.Response(body=payload, content_type="application/octet-stream")


async def _close_engine(app: web.Application) -> None:
    try:
        await app[ENGINE_KEY].close()
        logger.info("Speech engine closed")
    except Exception:
        logger.warning("Speech engine close failed", exc_info=True)


def create_app(cfg: SpeakConfig, engine: SpeechEngine) -> web.Application:
    app = web.Application()
    app[CONFIG_KEY] = cfg
    app[ENGINE_KEY] = engine
    app[ENGINE_LOCK_KEY] = asyncio.Lock()
    add_health_routes(app, HealthState(max_concurrent=cfg.max_concurrent_requests, engine=engine))

    # Health routes resolve first; every other path is a speech request.
    app.router.add_get("/{path:.*}", handle_speak)
    app.on_cleanup.append(_close_engine)
    return app


async def run_server(cfg: SpeakConfig, engine: SpeechEngine) -> None:
    app = create_app(cfg, engine)
    runner = web.AppRunner(app)
    await runner.setup()

    if cfg.listen_fd is not None:
        sock = socket.socket(fileno=cfg.listen_fd)
        site: web.BaseSite = web.SockSite(runner, sock)
        logger.info("Listening on systemd socket fd=%d (%s)", cfg.listen_fd, sock.getsockname())
    else:
        site = web.TCPSite(runner, cfg.listen_host, cfg.listen_port)
        logger.info("Listening on http://%s:%d", cfg.listen_host, cfg.listen_port)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, OSError):
            pass

    await site.start()
    try:
        logger.info("Server ready: speech engine %s", engine.name)
        await stop_event.wait()
        logger.info("Shutting down gracefully...")
    finally:
        await runner.cleanup()
