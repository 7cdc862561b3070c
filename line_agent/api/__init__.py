# api/__init__.py
"""
API Endpoints Package

Contains the FastAPI routers for the LINE agent:
- webhook: LINE Messaging API webhook
"""

from typing import TYPE_CHECKING

# Lazy imports to avoid circular dependencies
if TYPE_CHECKING:
    from .webhook import router as webhook_router

__all__ = [
    "webhook_router",
]
