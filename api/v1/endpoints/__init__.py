"""
API V1 Endpoints

FastAPI routers for all API endpoints.
"""

from .health import router as health_router

__all__ = [
    "health_router",
]
