"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from debit_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from debit_gateway.api.v1 import cards, direct_debits
from debit_gateway.infrastructure.observability.logging import setup_logging
from debit_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Direct Debit Gateway",
        description="Direct debit scheduling and balance-gated settlement service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(direct_debits.router, prefix="/v1", tags=["direct-debits"])
    app.include_router(cards.router, prefix="/v1", tags=["cards"])

    return app


app = create_app()
