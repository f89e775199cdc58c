"""Production observability helpers for the speech service."""
from .health import HealthState, add_health_routes
from .metrics import SpeakMetrics
from .tracing import TraceContext, extract_trace_context, parse_jaeger_header

__all__ = [
    "HealthState",
    "add_health_routes",
    "SpeakMetrics",
    "TraceContext",
    "extract_trace_context",
    "parse_jaeger_header",
]
