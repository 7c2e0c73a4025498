"""
Observability: Prometheus metrics + optional OpenTelemetry tracing.
- Metrics: Prometheus /metrics endpoint, one registry per app.
- Tracing: OTLP export to collector (only when OTEL_EXPORTER_OTLP_ENDPOINT is set).
"""
import os
import time
from dataclasses import dataclass

from fastapi import FastAPI, Response
from prometheus_client import Counter, Histogram, generate_latest, CollectorRegistry, CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware

from msgrelay.common.logging_utils import get_json_logger, log_event


@dataclass
class ServiceMetrics:
    registry: CollectorRegistry
    request_count: Counter
    request_latency: Histogram


def init_tracing(app: FastAPI, service_name: str) -> bool:
    """Instrument the app with OpenTelemetry if OTEL_EXPORTER_OTLP_ENDPOINT is set."""
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "").strip()
    if not endpoint:
        return False
    logger = get_json_logger(service_name)
    try:
        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.resources import Resource, SERVICE_NAME
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    except ImportError as e:
        log_event(logger, "tracing_disabled", reason=f"tracing extra not installed: {e}")
        return False

    resource = Resource.create({SERVICE_NAME: service_name})
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True)))
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app)
    log_event(logger, "tracing_enabled", endpoint=endpoint)
    return True


def setup_metrics() -> ServiceMetrics:
    registry = CollectorRegistry()
    return ServiceMetrics(
        registry=registry,
        request_count=Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status"],
            registry=registry,
        ),
        request_latency=Histogram(
            "http_request_duration_seconds",
            "HTTP request latency",
            ["method", "endpoint"],
            registry=registry,
        ),
    )


def instrument_fastapi(app: FastAPI, service_name: str) -> ServiceMetrics:
    init_tracing(app, service_name)
    metrics = setup_metrics()

    class PrometheusMiddleware(BaseHTTPMiddleware):
        async def dispatch(self, request, call_next):
            if request.url.path in ("/metrics", "/health"):
                return await call_next(request)
            start = time.perf_counter()
            response = await call_next(request)
            duration = time.perf_counter() - start
            endpoint = request.url.path or "/"
            metrics.request_count.labels(method=request.method, endpoint=endpoint, status=response.status_code).inc()
            metrics.request_latency.labels(method=request.method, endpoint=endpoint).observe(duration)
            return response

    app.add_middleware(PrometheusMiddleware)

    @app.get("/metrics", include_in_schema=False)
    async def metrics_endpoint():
        return Response(content=generate_latest(metrics.registry), media_type=CONTENT_TYPE_LATEST)

    return metrics
