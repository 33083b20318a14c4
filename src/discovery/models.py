"""
Discovery data structures and models
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Optional, Any

from .address_range import get_id

@dataclass(frozen=True)
class Candidate:
    """One address/port/credential tuple considered during a scan"""
    ip: str
    port: int
    username: Optional[str] = None
    password: Optional[str] = None

    @property
    def address(self) -> str:
        return f"{self.ip}:{self.port}"

    def __str__(self):
        return self.address

@dataclass
class DeviceProfile:
    """Everything a probe learned about one candidate"""
    id: str
    name: str
    ip: str
    port: int
    username: Optional[str] = None
    password: Optional[str] = None
    cam_date: Optional[datetime] = None
    info: Optional[Dict[str, Any]] = None
    live_stream_tcp: Optional[Dict[str, Any]] = None
    live_stream_udp: Optional[Dict[str, Any]] = None
    live_stream_multicast: Optional[Dict[str, Any]] = None
    replay_stream: Optional[Dict[str, Any]] = None
    capabilities: Optional[Dict[str, Any]] = None

    @classmethod
    def for_candidate(cls, candidate: Candidate) -> 'DeviceProfile':
        return cls(
            id=get_id(candidate.address),
            name=candidate.address,
            ip=candidate.ip,
            port=candidate.port,
            username=candidate.username,
            password=candidate.password,
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready form stored as the registry entry's data"""
        return {
            "id": self.id,
            "name": self.name,
            "ip": self.ip,
            "port": self.port,
            "user": self.username,
            "pass": self.password,
            "cam_date": self.cam_date.isoformat() if self.cam_date else None,
            "info": self.info,
            "live_stream_tcp": self.live_stream_tcp,
            "live_stream_udp": self.live_stream_udp,
            "live_stream_multicast": self.live_stream_multicast,
            "replay_stream": self.replay_stream,
            "capabilities": self.capabilities,
        }

@dataclass
class ScanState:
    """
    State of the discovery engine. At most one scan runs at a time.
    The persisted 'discoveryRunning' state is a mirror of `running`.
    """
    running: bool = False
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    candidates_total: int = 0
    candidates_done: int = 0
    devices_found: int = 0

    def begin(self, candidates_total: int):
        self.running = True
        self.started_at = time.time()
        self.finished_at = None
        self.candidates_total = candidates_total
        self.candidates_done = 0
        self.devices_found = 0

    def finish(self):
        self.running = False
        self.finished_at = time.time()

    def snapshot(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "candidates_total": self.candidates_total,
            "candidates_done": self.candidates_done,
            "devices_found": self.devices_found,
        }

@dataclass
class ScanResult:
    """Outcome of one discovery request"""
    error: Optional[str] = None
    new_devices: List[DeviceProfile] = field(default_factory=list)
    devices: List[DeviceProfile] = field(default_factory=list)
    duration_seconds: float = 0.0

    def to_message(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "newInstances": [d.to_dict() for d in self.new_devices],
            "devices": [d.to_dict() for d in self.devices],
        }

class JoinBarrier:
    """
    Completion counter for a fixed number of parties.
    Each party arrives exactly once; wait() returns when all have arrived.
    """

    def __init__(self, total: int):
        if total < 0:
            raise ValueError("total must be non-negative")
        self.total = total
        self.arrivals = 0
        self._done = asyncio.Event()
        if total == 0:
            self._done.set()

    def arrive(self) -> int:
        if self.arrivals >= self.total:
            raise RuntimeError(f"JoinBarrier overrun: {self.arrivals + 1} arrivals for {self.total} parties")
        self.arrivals += 1
        if self.arrivals == self.total:
            self._done.set()
        return self.arrivals

    @property
    def complete(self) -> bool:
        return self._done.is_set()

    async def wait(self):
        await self._done.wait()
