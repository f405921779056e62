"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from venuebridge import __version__
from venuebridge.errors import AdapterError, ValidationError
from venuebridge.factory import Services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    yield
    await app.state.services.aclose()


def create_app(services: Services) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = services.settings

    app = FastAPI(
        title="Venuebridge API",
        description="ADA <-> venue SOL swap orchestration",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(AdapterError)
    async def adapter_error_handler(request: Request, exc: AdapterError):
        logger.error(f"{request.method} {request.url.path} failed upstream: {exc}")
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    # Register routes
    from venuebridge.api.routes import deposits, health, transactions, withdrawals

    app.include_router(health.router, tags=["Health"])
    app.include_router(deposits.router, prefix="/api/v1", tags=["Deposits"])
    app.include_router(withdrawals.router, prefix="/api/v1", tags=["Withdrawals"])
    app.include_router(transactions.router, prefix="/api/v1", tags=["Transactions"])

    return app
