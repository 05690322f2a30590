"""Health check endpoint"""

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "user-directory",
        "version": "1.0.0"
    }


@router.get("/ping")
async def ping():
    """Ping endpoint for load balancer health checks"""
    return {"status": "ok"}
