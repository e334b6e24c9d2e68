from fastapi import APIRouter, Request
from sqlalchemy import text

router = APIRouter(tags=["health"])

@router.get("/health")
async def health_check():
    """Basic health check"""
    return {"status": "healthy", "service": "Dinkassa Sync Worker"}

@router.get("/health/dispatcher")
async def dispatcher_health(request: Request):
    """Queue size and worker state of the event dispatcher"""
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        return {"status": "unhealthy", "dispatcher": "not started"}
    stats = dispatcher.get_stats()
    return {"status": "healthy" if stats["running"] else "unhealthy", "dispatcher": stats}

@router.get("/health/db")
async def database_health():
    """Check database connectivity"""
    try:
        from dinkassa_sync.database import async_session

        async with async_session() as session:
            await session.execute(text("SELECT 1"))
            return {"status": "healthy", "database": "connected"}
    except Exception as e:
        return {
            "status": "unhealthy",
            "database": "error",
            "error": str(e)
        }
