"""Business logic services for the training relay."""

from .forwarder import DiscordForwarder
from .nonce_sweeper import NonceSweeper
from .rate_limit import RateLimiter
from .replay import NonceLedger
from .uploads import UploadPipeline

__all__ = [
    "DiscordForwarder",
    "NonceLedger",
    "NonceSweeper",
    "RateLimiter",
    "UploadPipeline",
]
