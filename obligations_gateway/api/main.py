"""FastAPI application factory"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from obligations_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from obligations_gateway.api.v1 import cards, obligations
from obligations_gateway.infrastructure.database.models import Base
from obligations_gateway.infrastructure.database.session import engine
from obligations_gateway.infrastructure.observability.logging import setup_logging
from obligations_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.obligations_backend == "sql":
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Obligations Gateway",
        description="Recurring and installment obligations with credit-card billing cycles",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name, "backend": settings.obligations_backend}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(obligations.router, prefix="/v1", tags=["obligations"])
    app.include_router(cards.router, prefix="/v1", tags=["cards"])

    return app


app = create_app()
