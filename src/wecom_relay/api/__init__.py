"""HTTP API for the WeCom relay."""

from .endpoints import callbacks_router, messages_router

__all__ = [
    "callbacks_router",
    "messages_router",
]
