"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy.orm import Session
from starlette.responses import Response

from xiaoe_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from xiaoe_gateway.api.v1 import auth, generation, payments
from xiaoe_gateway.config import Settings, settings
from xiaoe_gateway.domain.ports import PaymentProvider
from xiaoe_gateway.domain.templates import TemplateCommentWriter
from xiaoe_gateway.infrastructure.clients.alipay import AlipayClient
from xiaoe_gateway.infrastructure.clients.llm import GenerationGateway
from xiaoe_gateway.infrastructure.clients.mock_payment import MockPaymentProvider, SettlementScheduler
from xiaoe_gateway.infrastructure.database.models import Base
from xiaoe_gateway.infrastructure.database.session import SessionLocal, engine, get_db, ping
from xiaoe_gateway.infrastructure.observability.logging import setup_logging

# Setup structured logging
setup_logging(settings.log_level)


def build_payment_provider(config: Settings) -> PaymentProvider:
    """Payment provider selected by settings.payment_provider"""
    if config.payment_provider == "mock":
        provider = MockPaymentProvider(
            config.mock_payment_secret,
            scheduler=SettlementScheduler(),
            delay=config.mock_settlement_delay_seconds,
        )
        provider.on_settle = payments.settlement_callback(SessionLocal, provider)
        return provider
    return AlipayClient.from_settings(config)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if app.state.settings.create_tables:
        Base.metadata.create_all(bind=engine)
    yield
    scheduler = getattr(app.state.payment_provider, "scheduler", None)
    if scheduler is not None:
        await scheduler.aclose()


def create_app(config: Settings = settings) -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Xiaoe Comment Gateway",
        description="Credit-metered student comment generation service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = config
    app.state.generation_gateway = GenerationGateway.from_settings(config)
    app.state.template_writer = TemplateCommentWriter() if config.template_model_enabled else None
    app.state.payment_provider = build_payment_provider(config)

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/api/health-check")
    def health_check(request: Request, db: Session = Depends(get_db)):
        try:
            database = "ok" if ping(db) else "error"
        except Exception as e:
            logging.error(f"Health check database error: {e}")
            database = "error"

        provider = request.app.state.payment_provider
        return {
            "status": "ok" if database == "ok" else "degraded",
            "service": config.service_name,
            "database": database,
            "payment_provider": {"name": provider.name, "configured": getattr(provider, "configured", False)},
            "llm_vendors": request.app.state.generation_gateway.vendor_status(),
            "template_model": request.app.state.template_writer is not None,
        }

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(auth.router, prefix="/api", tags=["auth"])
    app.include_router(generation.router, prefix="/api", tags=["generation"])
    app.include_router(payments.router, prefix="/api", tags=["payments"])

    return app


app = create_app()


def serve(config: Settings = settings) -> None:
    """Run the service with uvicorn; installed as the `xiaoe-gateway` command"""
    import uvicorn

    uvicorn.run("xiaoe_gateway.api.main:app", host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    serve()
