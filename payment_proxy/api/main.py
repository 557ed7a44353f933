"""FastAPI application factory"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from payment_proxy.api.middleware import RequestIDMiddleware, MetricsMiddleware
from payment_proxy.api.v1 import auth, payments, rules
from payment_proxy.infrastructure.database.session import get_session_factory, init_db
from payment_proxy.infrastructure.observability.logging import setup_logging
from payment_proxy.config import Settings, settings as default_settings
from payment_proxy.services.container import Services, build_services


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Create and configure FastAPI application"""
    settings = settings or default_settings
    setup_logging(settings.log_level)
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(settings.database_url)
        yield
        await services.close()

    app = FastAPI(
        title="Payment Gateway Proxy",
        description="Payment intake with rule and model based risk assessment",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.session_factory = get_session_factory(settings.database_url)

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        # Redis down is degraded, not unhealthy: the cache falls back to misses
        cache_ok = await services.cache.ping()
        return {
            "status": "ok",
            "service": settings.service_name,
            "cache": "ok" if cache_ok else "unavailable",
            "circuit_breaker": services.circuit_breaker.get_stats(),
        }

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(auth.router, prefix="/v1", tags=["auth"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(rules.router, prefix="/v1", tags=["rules"])

    return app
