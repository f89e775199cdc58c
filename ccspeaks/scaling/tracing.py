"""
Jaeger trace context extraction.

The reverse proxy in front of the service forwards Jaeger's
``uber-trace-id`` header rather than W3C ``traceparent``:

  uber-trace-id: {trace-id}:{span-id}:{parent-span-id}:{flags}

Ids are hex; bit 0 of flags marks the trace as sampled.  The parsed context
tags request log lines so a slow /speak call can be matched to its trace.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

JAEGER_FIELD = "uber-trace-id"


@dataclass(frozen=True)
class TraceContext:
    trace_id: str
    span_id: str
    sampled: bool


def _hex_id(value: str, width: int) -> Optional[str]:
    if not value or len(value) > width:
        return None
    try:
        n = int(value, 16)
    except ValueError:
        return None
    if n == 0:
        return None
    return f"{n:0{width}x}"


def parse_jaeger_header(value: str) -> Optional[TraceContext]:
    """Parse an ``uber-trace-id`` value.  Returns None when malformed."""
    parts = value.split(":")
    if parts and parts[-1] == "":
        parts.pop()
    if len(parts) != 4:
        return None

    trace_id = _hex_id(parts[0], 32)
    span_id = _hex_id(parts[1], 16)
    if trace_id is None or span_id is None:
        return None
    try:
        flags = int(parts[3])
    except ValueError:
        return None
    if not 0 <= flags <= 255:
        return None

    return TraceContext(trace_id=trace_id, span_id=span_id, sampled=bool(flags & 0x01))


def extract_trace_context(headers: Mapping[str, str]) -> Optional[TraceContext]:
    value = headers.get(JAEGER_FIELD)
    if not value:
        return None
    return parse_jaeger_header(value)
