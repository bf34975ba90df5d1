"""
FastAPI application entry point.
Configures routes, middleware, and lifecycle events.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from invoicepe.config import settings
from invoicepe.database import close_db
from invoicepe.logging_config import configure_logging
from invoicepe.services.errors import ConfigurationError

from invoicepe.api.webhooks.phonepe import router as phonepe_router
from invoicepe.api.payments import router as payments_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifecycle manager."""
    configure_logging()
    logging.info("Starting up InvoicePe payments API...")

    if not settings.phonepe_salt_key or not settings.phonepe_salt_index:
        logging.critical("PHONEPE_SALT_KEY / PHONEPE_SALT_INDEX not set; webhooks will be refused")
        if settings.is_production:
            raise ConfigurationError("PhonePe salt key and index are required in production")

    yield

    await close_db()
    logging.info("Shutting down...")


app = FastAPI(
    title="InvoicePe",
    description="Invoice payments and PhonePe reconciliation",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logging.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error"},
    )


# The mobile app calls from native code; browsers only hit the callback
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "env": settings.app_env,
    }


app.include_router(
    phonepe_router,
    prefix="/webhooks",
    tags=["webhooks"],
)
app.include_router(
    payments_router,
    prefix="/payments",
    tags=["payments"],
)
