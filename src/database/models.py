"""
Database models and data structures
"""

import json
from typing import List, Dict, Optional, Any
from dataclasses import dataclass, field
from datetime import datetime

def _load_json(value) -> Any:
    """asyncpg hands JSONB back as text unless a codec is registered"""
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return value
    return json.loads(value)

@dataclass
class DeviceRecord:
    """Registry entry for a camera / NVR, keyed by the derived device id"""
    device_id: str
    name: str
    data: Dict[str, Any]
    type: str = "device"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> 'DeviceRecord':
        return cls(
            device_id=row['device_id'],
            name=row['name'],
            data=_load_json(row['data']) or {},
            type=row['type'],
            created_at=row['created_at'],
            updated_at=row['updated_at']
        )

@dataclass
class RoomRecord:
    """Room enumeration; members hold object ids"""
    room_id: str
    name: str
    members: List[str] = field(default_factory=list)

    def has_member(self, *object_ids: str) -> bool:
        return any(object_id in self.members for object_id in object_ids)
