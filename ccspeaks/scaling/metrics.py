"""
Request-level metrics for monitoring and alerting.

Tracks one speech request from query parsing to the final payload:
  - synthesis latency (engine lock held)
  - transcode latency (resample + DFPWM)
  - audio sizes in and out
  - outcome status

Logged as one SPEAK_METRICS line per request.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from ..audio import pcm16_duration_ms
from .tracing import TraceContext

logger = logging.getLogger(__name__)


@dataclass
class SpeakMetrics:
    """Per-request metrics collected while serving a single /speak call."""

    voice: str = ""
    text_chars: int = 0
    trace: Optional[TraceContext] = None
    start_time: float = field(default_factory=time.monotonic)
    end_time: float = 0.0

    lock_wait_ms: float = 0.0
    synthesis_ms: float = 0.0
    transcode_ms: float = 0.0

    source_rate: int = 0
    pcm_samples: int = 0
    output_bytes: int = 0
    status: int = 0

    @property
    def duration_ms(self) -> float:
        if self.end_time > 0:
            return (self.end_time - self.start_time) * 1000.0
        return 0.0

    @property
    def audio_ms(self) -> float:
        return pcm16_duration_ms(self.pcm_samples, self.source_rate)

    def finalize(self, status: int) -> None:
        self.status = status
        self.end_time = time.monotonic()

    def summary(self) -> dict:
        return {
            "trace_id": self.trace.trace_id if self.trace else "",
            "voice": self.voice,
            "text_chars": self.text_chars,
            "status": self.status,
            "duration_ms": round(self.duration_ms, 1),
            "lock_wait_ms": round(self.lock_wait_ms, 1),
            "synthesis_ms": round(self.synthesis_ms, 1),
            "transcode_ms": round(self.transcode_ms, 1),
            "source_rate": self.source_rate,
            "audio_ms": round(self.audio_ms, 1),
            "output_bytes": self.output_bytes,
        }

    def log_summary(self) -> None:
        s = self.summary()
        logger.info(
            "SPEAK_METRICS: trace=%s status=%d voice=%s chars=%d total=%.0fms "
            "lock=%.0fms synth=%.0fms transcode=%.0fms rate=%d audio=%.0fms bytes=%d",
            s["trace_id"] or "-", s["status"], s["voice"], s["text_chars"],
            s["duration_ms"], s["lock_wait_ms"], s["synthesis_ms"], s["transcode_ms"],
            s["source_rate"], s["audio_ms"], s["output_bytes"],
        )
