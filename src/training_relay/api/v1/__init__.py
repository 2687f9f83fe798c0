"""Version 1 API endpoints."""

from .endpoints import redeem_router, uploads_router

__all__ = [
    "redeem_router",
    "uploads_router",
]
