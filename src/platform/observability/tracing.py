"""
OpenTelemetry tracing for the inventory service.

- FastAPI and SQLAlchemy auto-instrumentation (each applied at most once per process)
- OTLP export when OTEL_EXPORTER_OTLP_ENDPOINT is set, console export on request
- Parent-based ratio sampling (OTEL_TRACES_SAMPLER_RATIO, default 1.0)
- current_trace_id() so log lines can be joined with spans
"""

import os
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

from src.platform.config.core_setting import settings


_instrumented_engines: set[int] = set()


def current_trace_id() -> str:
    """Hex trace id of the active span, '' outside a recorded span"""
    context = trace.get_current_span().get_span_context()
    if not context.is_valid:
        return ''
    return format(context.trace_id, '032x')


class TracingConfig:
    """
    Usage:
        tracing = TracingConfig(service_name='inventory-service')
        tracing.setup()            # lifespan startup
        ...
        tracing.shutdown()         # lifespan shutdown, flushes pending spans
    """

    def __init__(
        self,
        *,
        service_name: str,
        otlp_endpoint: str | None = None,
        enable_console: bool = False,
        sample_ratio: float | None = None,
    ) -> None:
        self.service_name = service_name
        self.otlp_endpoint = otlp_endpoint or os.getenv('OTEL_EXPORTER_OTLP_ENDPOINT')
        self.enable_console = (
            enable_console or os.getenv('OTEL_CONSOLE_EXPORT', 'false').lower() == 'true'
        )
        if sample_ratio is None:
            sample_ratio = float(os.getenv('OTEL_TRACES_SAMPLER_RATIO', '1.0'))
        self.sample_ratio = min(max(sample_ratio, 0.0), 1.0)

        self._provider: TracerProvider | None = None

    def setup(self) -> None:
        resource = Resource(
            attributes={SERVICE_NAME: self.service_name, SERVICE_VERSION: settings.VERSION}
        )
        # Children follow the caller's decision so a hold request is traced end to end or not at all
        self._provider = TracerProvider(
            resource=resource, sampler=ParentBased(TraceIdRatioBased(self.sample_ratio))
        )

        if self.otlp_endpoint:
            self._provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=self.otlp_endpoint))
            )
        if self.enable_console:
            self._provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

        trace.set_tracer_provider(self._provider)

    def instrument_fastapi(self, *, app: Any, excluded_urls: str = 'health,metrics,stream') -> None:
        # SSE streams stay open for minutes; a span per stream is noise
        FastAPIInstrumentor.instrument_app(app, excluded_urls=excluded_urls)

    def instrument_sqlalchemy(self, *, engine: Any) -> None:
        sync_engine = getattr(engine, 'sync_engine', engine)
        if id(sync_engine) in _instrumented_engines:
            return
        SQLAlchemyInstrumentor().instrument(engine=sync_engine)
        _instrumented_engines.add(id(sync_engine))

    def shutdown(self) -> None:
        if self._provider:
            self._provider.shutdown()
