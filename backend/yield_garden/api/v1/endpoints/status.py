"""
Status and health check endpoints.

WHAT: Health monitoring for the database and agent transports
WHY: Quick diagnostics for dashboards and ops
HOW: FastAPI endpoint calling database ping and transport ping
"""

from fastapi import APIRouter

from ....core.config import settings
from ....core.database import ping_database
from ....transport.factory import get_transport
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


async def _transport_status(address: str) -> dict:
    """Ping the transport of one agent identity; never raises."""
    if not address:
        return {"available": False, "provider": settings.TRANSPORT_PROVIDER, "error": "address not configured"}
    try:
        status = await get_transport(address).ping()
        return {
            "available": status.available,
            "provider": status.provider,
            "endpoint": status.endpoint,
            "error": status.error
        }
    except Exception as e:
        logger.error(f"Failed to get transport status for {address[:10]}...: {e}")
        return {"available": False, "provider": settings.TRANSPORT_PROVIDER, "error": str(e)}


@router.get("/health")
async def health_check():
    """
    Overall application health check.
    
    WHAT: Database and transport status with app metadata
    WHY: Ops and monitoring tools need simple health endpoint
    HOW: Healthy only when the database is up; transports are reported per agent
    
    Returns:
        Envelope with overall health status
    """
    db_status = ping_database()
    
    return {
        "success": True,
        "data": {
            "status": "healthy" if db_status["available"] else "degraded",
            "version": settings.APP_VERSION,
            "app_name": settings.APP_NAME,
            "components": {
                "database": {"available": db_status["available"], "error": db_status["error"]},
                "transport": {
                    "farm": await _transport_status(settings.FARM_AGENT_ADDRESS),
                    "garden": await _transport_status(settings.GARDEN_AGENT_ADDRESS),
                }
            }
        }
    }
