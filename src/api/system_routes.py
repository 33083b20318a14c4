"""
System health and monitoring API routes
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

# Response models
class HealthResponse(BaseModel):
    status: str
    devices: int
    connected: int
    discovery_running: bool
    timestamp: datetime

def create_system_routes(command_handler):
    """Create system monitoring routes"""
    router = APIRouter(prefix="/api", tags=["system"])

    @router.get("/system/health", response_model=HealthResponse)
    async def system_health():
        """System health check"""
        try:
            records = await command_handler.db.get_devices()
            connected = sum(
                1 for record in records
                if command_handler.supervisor.is_connected(record.device_id)
            )
            return HealthResponse(
                status="healthy",
                devices=len(records),
                connected=connected,
                discovery_running=command_handler.discovery.running,
                timestamp=datetime.now(timezone.utc)
            )

        except Exception as e:
            logger.error(f"Health check failed: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    return router
