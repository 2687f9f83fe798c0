"""API endpoint modules for version 1."""

from .redeem import router as redeem_router
from .uploads import router as uploads_router

__all__ = [
    "redeem_router",
    "uploads_router",
]
