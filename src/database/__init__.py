"""
Database module for the camera device registry
"""

from .manager import DatabaseManager
from .models import DeviceRecord, RoomRecord

__all__ = ['DatabaseManager', 'DeviceRecord', 'RoomRecord']
