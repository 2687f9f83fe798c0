"""Main entry point for the training relay application."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from training_relay.api.v1 import redeem_router, uploads_router
from training_relay.core.errors import ErrorCode, RateLimitExceededError
from training_relay.core.logging import configure_logging
from training_relay.core.settings import settings
from training_relay.db.session import create_tables
from training_relay.schemas.common import ErrorResponse
from training_relay.services.nonce_sweeper import NonceSweeper

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Authenticated relay for signed training-data uploads",
    version=settings.app_version,
)

# Include API routers
app.include_router(redeem_router, prefix="/api/v1")
app.include_router(uploads_router, prefix="/api/v1")


@app.exception_handler(RateLimitExceededError)
async def rate_limit_exceeded_handler(
    _request: Request, _exc: RateLimitExceededError
) -> JSONResponse:
    """Reject throttled callers before any request handling runs."""
    return JSONResponse(
        status_code=ErrorCode.RATE_LIMITED.http_status,
        content=ErrorResponse(error_code=ErrorCode.RATE_LIMITED).to_wire(),
    )


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging(settings.log_level)
    create_tables()
    sweeper = NonceSweeper()
    await sweeper.start()
    app.state.nonce_sweeper = sweeper


@app.on_event("shutdown")
async def on_shutdown() -> None:
    sweeper: NonceSweeper | None = getattr(app.state, "nonce_sweeper", None)
    if sweeper:
        await sweeper.stop()


@app.get("/healthz")
async def health_check() -> dict[str, bool]:
    """Health check endpoint to verify the service is running."""
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("training_relay.main:app", host=settings.host, port=settings.port, reload=settings.debug)
