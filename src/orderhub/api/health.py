"""Health check endpoint.

Learn: liveness only. It reports that the process is up and does not
touch the database or the hub.
"""

from fastapi import APIRouter

from orderhub import __version__

router = APIRouter()


@router.get("/health")
async def health_check():
    return {"status": "healthy", "service": "orderhub-api", "version": __version__}
