import atexit
import logging
import os

from opentelemetry import propagate, trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from category_hierarchy.config.database import read_engine, write_engine
from category_hierarchy.core.config import settings

logger = logging.getLogger(__name__)

_tracer_provider = None


def get_global_tracer_provider():
    return _tracer_provider


def setup_telemetry():
    """TracerProvider + OTLP exporter + W3C propagator + SQLAlchemy 계측"""
    global _tracer_provider
    if _tracer_provider is not None:
        return _tracer_provider

    try:
        # 1. 리소스 설정
        resource = Resource.create({
            "service.name": settings.OTEL_SERVICE_NAME,
            "deployment.environment": os.getenv("ENVIRONMENT", "development"),
        })

        # 2. 트레이싱 설정
        tracer_provider = TracerProvider(resource=resource)
        otlp_span_exporter = OTLPSpanExporter(endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT)
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_span_exporter))
        trace.set_tracer_provider(tracer_provider)

        # 3. audit outbox 의 traceparent 도 이 propagator 로 주입
        propagate.set_global_textmap(TraceContextTextMapPropagator())
        logger.info("Global textmap propagator set.", extra={"propagator": "TraceContextTextMapPropagator"})

        # 4. 라이브러리 자동 계측
        if settings.INSTRUMENT_SQLALCHEMY:
            engines = [write_engine] if read_engine is write_engine else [write_engine, read_engine]
            SQLAlchemyInstrumentor().instrument(engines=engines, tracer_provider=tracer_provider)
            logger.info("SQLAlchemyInstrumentor applied.")

        _tracer_provider = tracer_provider
        atexit.register(shutdown_telemetry)
        logger.info(f"OpenTelemetry setup for '{settings.OTEL_SERVICE_NAME}' completed. Exporting to: {settings.OTEL_EXPORTER_OTLP_ENDPOINT}")
        return tracer_provider

    except Exception as e:
        logger.error(f"Failed to setup OpenTelemetry for {settings.OTEL_SERVICE_NAME}: {str(e)}", exc_info=True)
        raise


def shutdown_telemetry():
    global _tracer_provider
    if _tracer_provider is None:
        return
    try:
        _tracer_provider.shutdown()
        logger.info("TracerProvider shut down.")
    except Exception as e:
        logger.error("Error shutting down TracerProvider.", extra={"error": str(e)}, exc_info=True)
    finally:
        _tracer_provider = None


def instrument_fastapi_app(app):
    """FastAPI 앱을 OpenTelemetry로 계측합니다."""
    current_tracer_provider = get_global_tracer_provider()
    if current_tracer_provider is None:
        logger.error("TracerProvider not available for FastAPI instrumentation. Call setup_telemetry() first.")
        return

    if app is None:
        raise ValueError("FastAPI app instance cannot be None")
    try:
        FastAPIInstrumentor.instrument_app(app, tracer_provider=current_tracer_provider)
        logger.info(f"FastAPI application instrumented by OpenTelemetry for {settings.OTEL_SERVICE_NAME}")
    except Exception as e:
        logger.error(f"Failed to instrument FastAPI app for {settings.OTEL_SERVICE_NAME}: {e}", exc_info=True)
