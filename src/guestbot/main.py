# src/guestbot/main.py
"""Main entry point for the GuestBot application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from guestbot.api.v1 import calendar_router, guest_router
from guestbot.api.v1.dependencies import close_services
from guestbot.core.errors import GuestBotError, InvalidInput, error_payload
from guestbot.core.settings import settings

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Guest concierge with a layered request security pipeline",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["POST", "GET"],
    allow_headers=["Authorization", "Content-Type"],
)

# Include API routers
app.include_router(guest_router, prefix="/api/v1")
app.include_router(calendar_router, prefix="/api/v1")


@app.exception_handler(GuestBotError)
async def handle_guestbot_error(request: Request, exc: GuestBotError) -> JSONResponse:
    """Translate pipeline errors into the fixed public catalogue."""
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.kind, request.url.path, exc.detail)
    else:
        logger.info("%s on %s", exc.kind, request.url.path)
    return JSONResponse(status_code=exc.status_code, content=error_payload(exc))


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies get the generic invalid-input message, not field internals."""
    error = InvalidInput("request validation failed")
    return JSONResponse(status_code=error.status_code, content=error_payload(error))


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(status_code=500, content=error_payload(exc))


@app.on_event("startup")
async def on_startup() -> None:
    if not settings.llm_enabled:
        logger.warning("LLM_ENDPOINT_URL is not set; guest questions will fail")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await close_services()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("guestbot.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
