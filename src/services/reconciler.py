"""
Registry reconciliation: persist newly discovered devices, leave known ones alone
"""

import logging
from typing import List, Optional

from database.models import DeviceRecord
from discovery.models import DeviceProfile

logger = logging.getLogger(__name__)

class RegistryReconciler:
    """Merges scan results into the device registry"""

    def __init__(self, database_manager, supervisor=None, update_existing: bool = False):
        self.db = database_manager
        self.supervisor = supervisor
        # Rediscovery is a no-op unless explicitly enabled
        self.update_existing = update_existing

    async def reconcile(self, profiles: List[DeviceProfile]) -> List[DeviceProfile]:
        """
        Create a registry entry for every profile whose id is unknown.
        Returns the newly created profiles, then rebuilds live connections.
        """
        known_ids = {record.device_id for record in await self.db.get_devices()}
        new_devices: List[DeviceProfile] = []

        for profile in profiles:
            if profile.id in known_ids:
                if self.update_existing:
                    await self.db.extend_device(profile.id, profile.to_dict())
                    logger.info(f"[DB] Updated existing device {profile.name}")
                else:
                    logger.debug(f"Existing device {profile.name} found - skipping registration")
                continue

            record = DeviceRecord(device_id=profile.id, name=profile.name, data=profile.to_dict())
            created = await self.db.create_device_if_absent(record)
            known_ids.add(profile.id)
            if created:
                new_devices.append(profile)
                logger.info(f"[DB] Registered new device {profile.name} as {profile.id}")
            else:
                logger.warning(f"Device {profile.id} was not created (already present or database error)")

        if self.supervisor is not None:
            await self.supervisor.refresh_connections()

        return new_devices

    async def delete_device(self, device_id: str) -> bool:
        """
        Remove a device and everything derived from it. Deleting an unknown id is
        logged and treated as done.
        """
        existed = await self.db.delete_device_tree(device_id)
        if existed:
            logger.info(f"[DB] Deleted device {device_id}")
        else:
            logger.warning(f"Delete requested for unknown device {device_id}")

        if self.supervisor is not None:
            await self.supervisor.refresh_connections()
        return existed
