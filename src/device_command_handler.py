"""
Device Command Handler for Local Server
Dispatches discovery / getDevices / deleteDevice / getSnapshot messages
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Any

from discovery.manager import CameraDiscovery
from discovery.models import ScanResult
from services.connection_supervisor import ConnectionSupervisor, SnapshotResult
from services.reconciler import RegistryReconciler

logger = logging.getLogger(__name__)

class DeviceCommand(str, Enum):
    """Commands accepted from the message dispatcher"""
    DISCOVERY = "discovery"
    GET_DEVICES = "getDevices"
    DELETE_DEVICE = "deleteDevice"
    GET_SNAPSHOT = "getSnapshot"

@dataclass
class CommandReply:
    """Reply routed back to the sender of a message"""
    to: Optional[str]
    command: Optional[str]
    payload: Any
    callback: Optional[Any] = None

class DeviceCommandHandler:
    """Handles inbound device commands for the camera registry"""

    def __init__(self, db, discovery: CameraDiscovery, reconciler: RegistryReconciler,
                 supervisor: ConnectionSupervisor, namespace: str = "onvif.0"):
        self.db = db
        self.discovery = discovery
        self.reconciler = reconciler
        self.supervisor = supervisor
        self.namespace = namespace

    async def handle_message(self, message: Dict) -> Optional[CommandReply]:
        """
        Dispatch one message envelope {command, message, from, callback}.
        Unknown commands and failures are answered with an {"error": ...} payload.
        Returns None only when there is nothing to answer: an empty envelope, or
        a snapshot request for a device without a live connection.
        """
        if not message:
            return None

        command = message.get('command')
        params = message.get('message') or {}
        sender = message.get('from')
        callback = message.get('callback')

        def reply(payload: Any) -> CommandReply:
            return CommandReply(to=sender, command=command, payload=payload, callback=callback)

        if not isinstance(params, dict):
            return reply({"error": "message parameters must be an object"})

        try:
            if command == DeviceCommand.DISCOVERY:
                logger.debug('Received "discovery" event')
                result = await self.discovery_command(params)
                return reply(result.to_message())
            if command == DeviceCommand.GET_DEVICES:
                logger.debug('Received "getDevices" event')
                return reply(await self.get_devices())
            if command == DeviceCommand.DELETE_DEVICE:
                logger.debug('Received "deleteDevice" event')
                await self.delete_device(params.get('id', ''))
                return reply({})
            if command == DeviceCommand.GET_SNAPSHOT:
                logger.debug('Received "getSnapshot" event')
                snapshot = await self.get_snapshot(params.get('id', ''))
                if snapshot is None:
                    return None
                return reply(snapshot.image if snapshot.ok else {"error": snapshot.error})
        except Exception as e:
            logger.error(f"Command {command} failed: {e}")
            return reply({"error": f"{command} failed: {e}"})

        logger.debug(f"Unknown message: {message}")
        return reply({"error": f"Unknown command: {command}"})

    # ================== COMMANDS ==================

    async def discovery_command(self, params: Dict) -> ScanResult:
        """Run a scan from message parameters (start_range, end_range, ports, user, pass)"""
        start_range = params.get('start_range')
        end_range = params.get('end_range')
        if not start_range:
            return ScanResult(error="start_range is required")
        if not isinstance(start_range, str) or not (end_range is None or isinstance(end_range, str)):
            return ScanResult(error="start_range and end_range must be IPv4 address strings")

        try:
            result = await self.discovery.start_scan(
                start_range=start_range,
                end_range=end_range or start_range,
                ports=params.get('ports'),
                user=params.get('user'),
                password=params.get('pass'),
            )
        except Exception as e:
            logger.error(f"Discovery failed: {e}")
            return ScanResult(error=f"Discovery failed: {e}")
        logger.debug('Discovery finished')
        return result

    async def get_devices(self) -> List[Dict[str, Any]]:
        """Registered devices enriched with the names of the rooms they belong to"""
        rooms = await self.db.get_room_enums()
        devices = []
        for record in await self.db.get_devices():
            object_id = self.object_id(record.device_id)
            devices.append({
                "_id": object_id,
                "id": record.device_id,
                "type": record.type,
                "common": {"name": record.name, "data": record.data},
                "rooms": [room.name for room in rooms if room.has_member(object_id, record.device_id)],
                "connected": self.supervisor.is_connected(record.device_id),
            })
        logger.debug(f"getDevices result: {len(devices)} devices")
        return devices

    async def delete_device(self, device_id: str) -> bool:
        return await self.reconciler.delete_device(self.strip_namespace(device_id))

    async def get_snapshot(self, device_id: str) -> Optional[SnapshotResult]:
        return await self.supervisor.get_snapshot(self.strip_namespace(device_id))

    # ================== IDS ==================

    def object_id(self, device_id: str) -> str:
        return f"{self.namespace}.{device_id}"

    def strip_namespace(self, object_id: str) -> str:
        prefix = f"{self.namespace}."
        if object_id.startswith(prefix):
            return object_id[len(prefix):]
        return object_id
