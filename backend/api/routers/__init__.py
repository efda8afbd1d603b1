"""
API Routers package.

Each module contains a FastAPI router for a specific domain.
"""

from .inventory import router as inventory_router

__all__ = [
    "inventory_router",
]
