import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from adt_bridge.backend import HttpSessionFactory
from adt_bridge.proxy import ProxyExecutor
from adt_bridge.routes import router
from adt_bridge.vars import (
    BRIDGE_PLUGIN_ID,
    BRIDGE_VERSION,
    OTLP_ENDPOINT,
    OTLP_HEADERS,
    SERVICE_NAME,
)
from adt_bridge.workspace import build_project_discovery

logger = logging.getLogger("uvicorn.error")


def build_executor() -> ProxyExecutor:
    return ProxyExecutor(build_project_discovery(), HttpSessionFactory())


def create_app(executor: Optional[ProxyExecutor] = None) -> FastAPI:
    """Build the bridge application around ``executor``.

    The executor is created from the environment when none is given. Cached
    backend sessions are closed when the application shuts down.
    """
    executor = executor or build_executor()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"[Bridge] {BRIDGE_PLUGIN_ID} {BRIDGE_VERSION} starting, project: {executor.project_status()}"
        )
        yield
        logger.info("[Bridge] Shutting down, closing backend sessions")
        executor.session_factory.close()

    app = FastAPI(title=SERVICE_NAME, version=BRIDGE_VERSION, lifespan=lifespan)
    app.state.executor = executor
    app.include_router(router)
    return app


def configure_tracing(app: FastAPI):
    trace.set_tracer_provider(
        TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    )
    tracer_provider = trace.get_tracer_provider()
    if OTLP_ENDPOINT:
        otlp_exporter = OTLPSpanExporter(
            endpoint=OTLP_ENDPOINT,
            headers=OTLP_HEADERS or None,
        )
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    FastAPIInstrumentor.instrument_app(app, excluded_urls="/metrics")


app = create_app()
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app)
configure_tracing(app)

# Add app_name to the metrics
app_info = Info("fastapi_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME, "version": BRIDGE_VERSION})
