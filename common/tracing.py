"""Optional OpenTelemetry tracing for both services.

Disabled unless OTEL_EXPORTER is 'console' or 'otlp', so stdout stays a
stream of JSON log lines by default.
"""
import os

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor

from common.errors import ConfigurationError

EXPORTERS = ("none", "console", "otlp")


def make_processor(exporter: str):
    if exporter == "otlp":
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        span_exporter = OTLPSpanExporter(endpoint=endpoint) if endpoint else OTLPSpanExporter()
        return BatchSpanProcessor(span_exporter)
    return SimpleSpanProcessor(ConsoleSpanExporter())


def configure_tracing(app: FastAPI, service_name: str, exporter: str | None = None) -> bool:
    """Install a tracer provider and instrument FastAPI and httpx.

    Returns False when tracing is turned off.
    """
    exporter = (exporter or os.getenv("OTEL_EXPORTER", "none")).lower()
    if exporter not in EXPORTERS:
        raise ConfigurationError(f"unsupported OTEL_EXPORTER: {exporter!r}")
    if exporter == "none":
        return False

    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: service_name}))
    provider.add_span_processor(make_processor(exporter))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider)
    HTTPXClientInstrumentor().instrument(tracer_provider=provider)
    return True
