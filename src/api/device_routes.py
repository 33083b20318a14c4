"""
Camera discovery and device registry API routes
"""

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel, Field
from typing import List, Optional, Union
import logging

logger = logging.getLogger(__name__)

# Request models
class DiscoveryRequest(BaseModel):
    start_range: str
    end_range: Optional[str] = None
    ports: Optional[Union[str, List[int]]] = None
    user: Optional[str] = None
    password: Optional[str] = Field(default=None, alias="pass")

    model_config = {"populate_by_name": True}


def create_device_routes(command_handler):
    """Create discovery and device routes"""
    router = APIRouter(prefix="/api", tags=["devices"])

    @router.post("/discovery")
    async def run_discovery(request: DiscoveryRequest):
        """Scan an address range; returns {error, newInstances, devices}"""
        result = await command_handler.discovery_command({
            "start_range": request.start_range,
            "end_range": request.end_range,
            "ports": request.ports,
            "user": request.user,
            "pass": request.password,
        })
        return result.to_message()

    @router.get("/discovery/status")
    async def discovery_status():
        """Current scan state"""
        return command_handler.discovery.state.snapshot()

    @router.get("/devices")
    async def list_devices():
        """List registered devices with their rooms"""
        return await command_handler.get_devices()

    @router.delete("/devices/{device_id}")
    async def delete_device(device_id: str):
        """Delete a device and its states"""
        await command_handler.delete_device(device_id)
        return {}

    @router.get("/devices/{device_id}/snapshot")
    async def get_snapshot(device_id: str):
        """JPEG snapshot from the device's live session"""
        snapshot = await command_handler.get_snapshot(device_id)
        if snapshot is None:
            return Response(status_code=204)
        if not snapshot.ok:
            raise HTTPException(status_code=502, detail=snapshot.error or "Snapshot failed")
        return Response(content=snapshot.image, media_type="image/jpeg")

    return router
