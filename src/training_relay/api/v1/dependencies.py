"""Shared API dependencies for sessions, configuration and throttling."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from training_relay.core.errors import RateLimitExceededError
from training_relay.core.settings import Settings, settings
from training_relay.db.session import get_db
from training_relay.schemas.upload import CLIENT_ID_HEADER
from training_relay.services.forwarder import DiscordForwarder, get_forwarder
from training_relay.services.rate_limit import (
    RateLimiter,
    get_redeem_limiter,
    get_upload_limiter,
)

UNKNOWN_CLIENT_KEY = "unknown"


def get_settings() -> Settings:
    """Return the active application settings."""
    return settings


def get_forwarder_dep() -> DiscordForwarder:
    """Return the downstream forwarder."""
    return get_forwarder()


# Type aliases for common dependencies
SessionDep = Annotated[Session, Depends(get_db)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
ForwarderDep = Annotated[DiscordForwarder, Depends(get_forwarder_dep)]


def client_ip(request: Request) -> str | None:
    """Return the peer address of the request, if known."""
    return request.client.host if request.client else None


def enforce_upload_rate_limit(
    request: Request,
    limiter: Annotated[RateLimiter, Depends(get_upload_limiter)],
) -> None:
    """Throttle uploads per claimed client id, falling back to the peer address.

    Raises:
        RateLimitExceededError: If the caller is over its per-minute allowance
    """
    key = request.headers.get(CLIENT_ID_HEADER) or client_ip(request) or UNKNOWN_CLIENT_KEY
    if not limiter.hit(key):
        raise RateLimitExceededError(f"upload rate limit exceeded for {key}")


def enforce_redeem_rate_limit(
    request: Request,
    limiter: Annotated[RateLimiter, Depends(get_redeem_limiter)],
) -> None:
    """Throttle invite redemptions per peer address.

    Raises:
        RateLimitExceededError: If the address is over its per-minute allowance
    """
    key = client_ip(request) or UNKNOWN_CLIENT_KEY
    if not limiter.hit(key):
        raise RateLimitExceededError(f"redeem rate limit exceeded for {key}")
