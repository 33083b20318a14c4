"""
Local HTTP API for the ONVIF Camera Local Server
Provides REST endpoints for discovery, the device registry and snapshots
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from typing import Any, Callable, Dict, Optional
from pydantic import BaseModel
import base64
import logging

from .device_routes import create_device_routes
from .system_routes import create_system_routes

logger = logging.getLogger(__name__)

class MessageRequest(BaseModel):
    command: str
    message: Optional[Dict[str, Any]] = None

class CameraAPI:
    """Local HTTP API over the device command handler"""

    def __init__(self, command_handler, config: Dict, lifespan: Optional[Callable] = None):
        self.handler = command_handler
        self.config = config
        self.app = FastAPI(
            title="ONVIF Camera Local Server",
            description="Local API for camera discovery, device registry and snapshots",
            version="1.0.0",
            lifespan=lifespan
        )
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=config.get('api', {}).get('cors_origins', ['*']),
            allow_methods=["*"],
            allow_headers=["*"],
        )
        self._setup_routes()

    def _setup_routes(self):
        """Setup FastAPI routes using modular approach"""
        self.app.include_router(create_device_routes(self.handler))
        self.app.include_router(create_system_routes(self.handler))
        self._setup_message_routes()

    def _setup_message_routes(self):
        """Generic envelope dispatch for message-based callers"""

        @self.app.post("/api/messages")
        async def dispatch_message(request: MessageRequest):
            """
            Dispatch a {command, message} envelope to the command handler.
            Snapshot images are returned base64-encoded under reply.image.
            """
            reply = await self.handler.handle_message(
                {"command": request.command, "message": request.message or {}}
            )
            if reply is None:
                return {"command": request.command, "reply": None}
            payload = reply.payload
            if isinstance(payload, bytes):
                payload = {
                    "image": base64.b64encode(payload).decode("ascii"),
                    "content_type": "image/jpeg",
                    "size": len(payload),
                }
            return {"command": reply.command, "reply": payload}
