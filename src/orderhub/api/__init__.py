"""API surface of the OrderHub service.

Learn: everything except health goes through the single GraphQL endpoint
at /graphql. Plain REST routers registered here get mounted in main.py.
"""

from fastapi import APIRouter

from orderhub.api.health import router as health_router

api_router = APIRouter()

# Open routes, no auth required
api_router.include_router(health_router, tags=["health"])
