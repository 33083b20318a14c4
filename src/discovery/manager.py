"""
Scan coordinator: fans probes out over the candidate space and joins their results
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Union

from onvif_client import OnvifCamera
from .address_range import AddressRange, parse_ports
from .models import Candidate, DeviceProfile, JoinBarrier, ScanResult, ScanState
from .probe import CandidateProbe

logger = logging.getLogger(__name__)

SCAN_ALREADY_RUNNING = "Discovery already running"
DISCOVERY_STATE_KEY = "discoveryRunning"


class CameraDiscovery:
    """Discovery engine for ONVIF cameras and NVRs on the local network"""

    def __init__(self, config: Dict, database_manager=None, reconciler=None,
                 camera_factory: Callable[..., Any] = OnvifCamera):
        self.config = config
        self.db = database_manager  # mirror of the running flag
        self.reconciler = reconciler
        self.camera_factory = camera_factory
        self.state = ScanState()

        self.request_timeout = float(config.get('request_timeout', 5))
        self.default_ports = parse_ports(config.get('default_ports'), [80])
        self.default_username = config.get('default_username', 'admin')
        self.default_password = config.get('default_password', 'admin')

    @property
    def running(self) -> bool:
        return self.state.running

    def build_candidates(self, start_range: str, end_range: Optional[str] = None,
                         ports: Union[str, List, None] = None, user: Optional[str] = None,
                         password: Optional[str] = None) -> List[Candidate]:
        """Cartesian product of the address range and the port list"""
        addresses = AddressRange(start_range, end_range).candidates()
        port_list = parse_ports(ports, self.default_ports)
        username = user if user is not None else self.default_username
        password = password if password is not None else self.default_password
        return [
            Candidate(ip=ip, port=port, username=username, password=password)
            for ip in addresses
            for port in port_list
        ]

    async def start_scan(self, start_range: str, end_range: Optional[str] = None,
                         ports: Union[str, List, None] = None, user: Optional[str] = None,
                         password: Optional[str] = None) -> ScanResult:
        """
        Probe every (address, port) candidate concurrently, then reconcile the
        registry with the devices found. A request made while a scan is running
        is rejected without touching any state.
        """
        if self.state.running:
            logger.warning("Discovery requested while a scan is running")
            return ScanResult(error=SCAN_ALREADY_RUNNING)

        candidates = self.build_candidates(start_range, end_range, ports, user, password)
        self.state.begin(len(candidates))
        start_time = time.time()

        try:
            await self._publish_state()
            logger.info(f"[SEARCH] Discovery started: {len(candidates)} candidates "
                        f"({start_range}-{end_range or start_range})")

            devices = await self._probe_all(candidates)

            new_devices: List[DeviceProfile] = []
            if self.reconciler is not None:
                new_devices = await self.reconciler.reconcile(devices)
        finally:
            self.state.finish()
            await self._publish_state()

        duration = time.time() - start_time
        logger.info(f"[PASS] Discovery finished: {len(devices)} devices, {len(new_devices)} new, "
                    f"{len(candidates)} candidates in {duration:.1f}s")
        return ScanResult(new_devices=new_devices, devices=devices, duration_seconds=duration)

    async def _probe_all(self, candidates: List[Candidate]) -> List[DeviceProfile]:
        """
        Launch one probe per candidate with no concurrency ceiling.
        The result list is in completion order.
        """
        barrier = JoinBarrier(len(candidates))
        devices: List[DeviceProfile] = []

        async def probe_candidate(candidate: Candidate):
            try:
                probe = CandidateProbe(candidate, self.request_timeout, self.camera_factory)
                profile = await probe.run()
                if profile is not None:
                    devices.append(profile)
                    self.state.devices_found += 1
                    logger.info(f"[OK] Device found: {profile.name}")
                else:
                    logger.debug(f"No device at {candidate}")
            except Exception as e:
                logger.error(f"Probe of {candidate} failed unexpectedly: {e}")
            finally:
                self.state.candidates_done = barrier.arrive()

        tasks = [asyncio.create_task(probe_candidate(c)) for c in candidates]
        await barrier.wait()
        # every task has passed its arrive(); collect them so none is left pending
        await asyncio.gather(*tasks, return_exceptions=True)
        return devices

    async def _publish_state(self):
        if self.db is None:
            return
        try:
            await self.db.set_state(DISCOVERY_STATE_KEY, self.state.running)
        except Exception as e:
            logger.error(f"Failed to persist {DISCOVERY_STATE_KEY}: {e}")

    async def reset(self):
        """Startup: no scan can be running in a fresh process"""
        self.state.running = False
        await self._publish_state()

    async def shutdown(self):
        """Clear the running flag if the process stops mid-scan"""
        if self.state.running:
            logger.info("Clearing running discovery flag on shutdown")
            self.state.finish()
            await self._publish_state()
