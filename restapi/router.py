"""Application configuration and router setup."""

import fastapi
from fastapi import Request
from fastapi.middleware import cors
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse

from components.core import init_db, schemas
from components.core.config import get_settings
from components.core.exceptions import LedgerError
from components.core.logging import setup_logging
from restapi.endpoints import health_check, loans, summary, transactions

settings = get_settings()


async def ledger_exception_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """Render ledger exceptions as {error_code, message, details}."""
    return JSONResponse(
        status_code=exc.status_code,
        content=schemas.ErrorResponse(
            error_code=exc.error_code,
            message=exc.message,
            details=exc.details,
        ).model_dump(),
    )


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application."""
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    app = fastapi.FastAPI(
        title="Factory Ledger",
        description="Loan accounting for lending and borrowing with parties",
        version="1.0.0",
        debug=settings.DEBUG,
    )

    # Initialize database
    init_db.init_db(app)

    # Add CORS middleware
    app.add_middleware(
        cors.CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LedgerError, ledger_exception_handler)

    # Include routers
    app.include_router(health_check.router)
    app.include_router(loans.router)
    app.include_router(transactions.router)
    app.include_router(summary.router)

    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema
        openapi_schema = get_openapi(
            title="Factory Ledger",
            version="1.0.0",
            description="Loan accounting for lending and borrowing with parties",
            routes=app.routes,
        )
        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi

    return app
