"""
Live ONVIF sessions for every registered device
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from onvif_client import OnvifCamera

logger = logging.getLogger(__name__)

CONNECTED_STATE_KEY = "connected"

@dataclass
class LiveConnection:
    """Runtime-only session handle for one registered device"""
    device_id: str
    camera: Any
    connected: bool = False
    error: Optional[str] = None

@dataclass
class SnapshotResult:
    """Outcome of a single snapshot request, success or failure"""
    device_id: str
    image: Optional[bytes] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.image is not None

class ConnectionSupervisor:
    """Keeps one live session per registry entry; rebuilt whenever the device set changes"""

    def __init__(self, database_manager, config: Dict,
                 camera_factory: Callable[..., Any] = OnvifCamera):
        self.db = database_manager
        self.camera_factory = camera_factory
        self.request_timeout = float(config.get('request_timeout', 5))
        self.connections: Dict[str, LiveConnection] = {}
        self._refresh_lock = asyncio.Lock()

    async def refresh_connections(self):
        """
        Discard every existing session and open a new one for each registered device.
        Failed connects are logged and not retried.
        """
        async with self._refresh_lock:
            await self.close_all()

            records = await self.db.get_devices()
            connections: Dict[str, LiveConnection] = {}
            for record in records:
                data = record.data or {}
                if not data.get('ip'):
                    logger.warning(f"Device {record.device_id} has no address, not connecting")
                    continue
                try:
                    camera = self.camera_factory(
                        hostname=data['ip'],
                        port=data.get('port', 80),
                        username=data.get('user'),
                        password=data.get('pass'),
                        timeout=self.request_timeout,
                    )
                except (TypeError, ValueError) as e:
                    logger.warning(f"Device {record.device_id} has an invalid address, not connecting: {e}")
                    continue
                connections[record.device_id] = LiveConnection(record.device_id, camera)
                await self.db.set_device_state(record.device_id, CONNECTED_STATE_KEY, False)

            self.connections = connections
            if connections:
                results = await asyncio.gather(
                    *(self._connect(c) for c in connections.values()), return_exceptions=True
                )
                for connection, result in zip(connections.values(), results):
                    if isinstance(result, Exception):
                        logger.error(f"Connecting device {connection.device_id} failed: {result}")

            connected = sum(1 for c in connections.values() if c.connected)
            logger.info(f"Live connections refreshed: {connected}/{len(connections)} connected")

    async def _connect(self, connection: LiveConnection):
        try:
            await asyncio.wait_for(connection.camera.connect(), self.request_timeout)
        except Exception as e:
            connection.error = str(e) or e.__class__.__name__
            logger.warning(f"Cannot connect to device {connection.device_id}: {connection.error}")
            return

        connection.connected = True
        await self.db.set_device_state(connection.device_id, CONNECTED_STATE_KEY, True)
        logger.info(f"Device {connection.device_id} connected")

    async def close_all(self):
        """Close every session; the table is emptied"""
        connections, self.connections = self.connections, {}
        for connection in connections.values():
            close = getattr(connection.camera, 'close', None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                logger.debug(f"Closing session of {connection.device_id} failed: {e}")

    def is_connected(self, device_id: str) -> bool:
        connection = self.connections.get(device_id)
        return bool(connection and connection.connected)

    async def get_snapshot(self, device_id: str) -> Optional[SnapshotResult]:
        """
        One best-effort snapshot from the device's live session.
        Returns None when the device has no live connection.
        """
        connection = self.connections.get(device_id)
        if connection is None:
            logger.debug(f"Snapshot requested for {device_id} without a live connection")
            return None

        try:
            image = await asyncio.wait_for(connection.camera.get_snapshot(), self.request_timeout)
        except Exception as e:
            logger.warning(f"Snapshot of {device_id} failed: {e}")
            return SnapshotResult(device_id=device_id, error=str(e) or e.__class__.__name__)
        return SnapshotResult(device_id=device_id, image=image)
