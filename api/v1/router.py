"""
API V1 Router

Aggregates all v1 endpoint routers into a single versioned API.

@.architecture
Incoming: app.py, api/v1/endpoints/*.py --- {app.include_router() call, endpoint router instances}
Processing: api_v1_router.include_router() --- {1 job: router_aggregation}
Outgoing: app.py, api/v1/endpoints/*.py --- {APIRouter with /v1 prefix, HTTP request routing to endpoints}
"""

from fastapi import APIRouter

from .endpoints import health_router

# Create v1 router
api_v1_router = APIRouter(prefix="/v1")

# Health and status
api_v1_router.include_router(health_router)
