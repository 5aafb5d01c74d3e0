"""API endpoint modules."""

from .callbacks import router as callbacks_router
from .messages import router as messages_router

__all__ = [
    "callbacks_router",
    "messages_router",
]
