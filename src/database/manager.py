"""
Database manager for PostgreSQL operations
Device registry, room enumerations and adapter / per-device state
"""

import asyncpg
import logging
from typing import List, Dict, Optional, Any
from datetime import datetime, timezone
import json

from .models import DeviceRecord, RoomRecord, _load_json

logger = logging.getLogger(__name__)

def _rows_affected(result: str) -> int:
    return int(result.split()[-1]) if result and result.split() else 0

class DatabaseManager:
    """Manages PostgreSQL database operations for the camera registry"""

    def __init__(self, config: Dict):
        self.config = config
        self.pool = None
        self.db_host = config['database']['host']
        self.db_port = config['database']['port']
        self.db_name = config['database']['database']
        self.db_user = config['database']['username']
        self.db_password = config['database']['password']

    async def initialize(self):
        """Initialize database connection pool and schema"""
        try:
            self.pool = await asyncpg.create_pool(
                host=self.db_host,
                port=self.db_port,
                database=self.db_name,
                user=self.db_user,
                password=self.db_password,
                min_size=2,
                max_size=10,
                command_timeout=10
            )

            logger.info("Database connection pool created")

            await self.create_schema()
            logger.info("Database schema initialized")

        except Exception as e:
            logger.error(f"Database initialization failed: {e}")
            raise

    async def create_schema(self):
        """Create database tables if they don't exist"""
        schema_sql = """
        -- Registered cameras / NVRs
        CREATE TABLE IF NOT EXISTS devices (
            device_id TEXT PRIMARY KEY,
            type TEXT NOT NULL DEFAULT 'device',
            name TEXT NOT NULL,
            data JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
        );

        -- Room enumerations; members are object ids
        CREATE TABLE IF NOT EXISTS rooms (
            room_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            members TEXT[] NOT NULL DEFAULT '{}'
        );

        -- Per-device states (connected, ...)
        CREATE TABLE IF NOT EXISTS device_states (
            device_id TEXT NOT NULL REFERENCES devices(device_id) ON DELETE CASCADE,
            state_key TEXT NOT NULL,
            value JSONB,
            ack BOOLEAN DEFAULT true,
            ts TIMESTAMPTZ NOT NULL,
            PRIMARY KEY (device_id, state_key)
        );

        -- Adapter-level states (discoveryRunning, ...)
        CREATE TABLE IF NOT EXISTS adapter_states (
            state_key TEXT PRIMARY KEY,
            value JSONB,
            ack BOOLEAN DEFAULT true,
            ts TIMESTAMPTZ NOT NULL
        );
        """

        async with self.pool.acquire() as conn:
            await conn.execute(schema_sql)

    async def close(self):
        """Close database connection pool"""
        if self.pool:
            await self.pool.close()
            logger.info("Database connection pool closed")

    # ================== DEVICES ==================

    async def get_devices(self) -> List[DeviceRecord]:
        """Get all registered devices"""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch("""
                    SELECT device_id, type, name, data, created_at, updated_at
                    FROM devices
                    ORDER BY device_id
                """)
                return [DeviceRecord.from_row(row) for row in rows]

        except Exception as e:
            logger.error(f"Failed to get devices: {e}")
            return []

    async def get_device(self, device_id: str) -> Optional[DeviceRecord]:
        """Get device record by ID"""
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow("""
                    SELECT device_id, type, name, data, created_at, updated_at
                    FROM devices
                    WHERE device_id = $1
                """, device_id)
                return DeviceRecord.from_row(row) if row else None

        except Exception as e:
            logger.error(f"Failed to get device {device_id}: {e}")
            return None

    async def create_device_if_absent(self, record: DeviceRecord) -> bool:
        """
        Insert a device unless its id already exists.
        Returns True only when a new row was created; existing rows are never touched.
        """
        try:
            async with self.pool.acquire() as conn:
                result = await conn.execute("""
                    INSERT INTO devices (device_id, type, name, data, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $5)
                    ON CONFLICT (device_id) DO NOTHING
                """,
                record.device_id, record.type, record.name,
                json.dumps(record.data), datetime.now(timezone.utc)
                )
            return _rows_affected(result) > 0
        except Exception as e:
            logger.error(f"Failed to create device {record.device_id}: {e}")
            return False

    async def extend_device(self, device_id: str, data: Dict[str, Any], name: Optional[str] = None) -> bool:
        """Replace the stored data (and optionally the name) of an existing device"""
        try:
            async with self.pool.acquire() as conn:
                result = await conn.execute("""
                    UPDATE devices
                    SET data = $2, name = COALESCE($3, name), updated_at = $4
                    WHERE device_id = $1
                """, device_id, json.dumps(data), name, datetime.now(timezone.utc))

            success = _rows_affected(result) > 0
            if not success:
                logger.warning(f"No device found with ID: {device_id}")
            return success
        except Exception as e:
            logger.error(f"Failed to update device {device_id}: {e}")
            return False

    async def delete_device_tree(self, device_id: str) -> bool:
        """
        Delete a device and all of its states in one transaction.
        Returns True when the device existed.
        """
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute("""
                        DELETE FROM device_states WHERE device_id = $1
                    """, device_id)
                    result = await conn.execute("""
                        DELETE FROM devices WHERE device_id = $1
                    """, device_id)
            return _rows_affected(result) > 0
        except Exception as e:
            logger.error(f"Failed to delete device {device_id}: {e}")
            return False

    # ================== ROOMS ==================

    async def get_room_enums(self) -> List[RoomRecord]:
        """Get all room enumerations"""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch("""
                    SELECT room_id, name, members FROM rooms ORDER BY room_id
                """)
                return [RoomRecord(
                    room_id=row['room_id'],
                    name=row['name'],
                    members=list(row['members'] or [])
                ) for row in rows]

        except Exception as e:
            logger.error(f"Failed to get rooms: {e}")
            return []

    async def upsert_room(self, room: RoomRecord) -> bool:
        """Insert or update a room enumeration"""
        try:
            async with self.pool.acquire() as conn:
                await conn.execute("""
                    INSERT INTO rooms (room_id, name, members)
                    VALUES ($1, $2, $3)
                    ON CONFLICT (room_id) DO UPDATE SET
                        name = $2,
                        members = $3
                """, room.room_id, room.name, room.members)
            return True
        except Exception as e:
            logger.error(f"Failed to upsert room {room.room_id}: {e}")
            return False

    # ================== STATES ==================

    async def set_state(self, key: str, value: Any, ack: bool = True) -> bool:
        """Write an adapter-level state"""
        try:
            async with self.pool.acquire() as conn:
                await conn.execute("""
                    INSERT INTO adapter_states (state_key, value, ack, ts)
                    VALUES ($1, $2, $3, $4)
                    ON CONFLICT (state_key) DO UPDATE SET
                        value = $2, ack = $3, ts = $4
                """, key, json.dumps(value), ack, datetime.now(timezone.utc))
            return True
        except Exception as e:
            logger.error(f"Failed to set state {key}: {e}")
            return False

    async def get_state(self, key: str) -> Optional[Any]:
        """Read an adapter-level state value"""
        try:
            async with self.pool.acquire() as conn:
                value = await conn.fetchval("""
                    SELECT value FROM adapter_states WHERE state_key = $1
                """, key)
                return _load_json(value)
        except Exception as e:
            logger.error(f"Failed to get state {key}: {e}")
            return None

    async def set_device_state(self, device_id: str, key: str, value: Any, ack: bool = True) -> bool:
        """Write a per-device state"""
        try:
            async with self.pool.acquire() as conn:
                await conn.execute("""
                    INSERT INTO device_states (device_id, state_key, value, ack, ts)
                    VALUES ($1, $2, $3, $4, $5)
                    ON CONFLICT (device_id, state_key) DO UPDATE SET
                        value = $3, ack = $4, ts = $5
                """, device_id, key, json.dumps(value), ack, datetime.now(timezone.utc))
            return True
        except Exception as e:
            logger.error(f"Failed to set state {key} for {device_id}: {e}")
            return False

    async def get_device_states(self, device_id: str) -> Dict[str, Any]:
        """All states of one device as key -> value"""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch("""
                    SELECT state_key, value FROM device_states WHERE device_id = $1
                """, device_id)
                return {row['state_key']: _load_json(row['value']) for row in rows}
        except Exception as e:
            logger.error(f"Failed to get states for {device_id}: {e}")
            return {}
