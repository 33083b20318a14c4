"""
Per-candidate probe: connect, then query each capability in order
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from onvif_client import OnvifCamera
from .models import Candidate, DeviceProfile

logger = logging.getLogger(__name__)


class ProbeStep(Enum):
    CONNECT = "connect"
    DATE_TIME = "date_time"
    DEVICE_INFO = "device_info"
    STREAM_TCP = "stream_tcp"
    STREAM_UDP = "stream_udp"
    STREAM_MULTICAST = "stream_multicast"
    RECORDINGS = "recordings"
    REPLAY_URI = "replay_uri"
    DONE = "done"


class CandidateProbe:
    """
    Runs the handshake for one candidate.
    run() returns None when no device answers, otherwise a DeviceProfile with
    every field the device could provide; a failed step leaves its field unset.
    """

    def __init__(self, candidate: Candidate, timeout: float = 5,
                 camera_factory: Callable[..., Any] = OnvifCamera):
        self.candidate = candidate
        self.timeout = timeout
        self.camera_factory = camera_factory
        self.step = ProbeStep.CONNECT
        self.errors: Dict[ProbeStep, str] = {}

    async def _attempt(self, step: ProbeStep, call: Callable[[], Awaitable]) -> Tuple[Optional[Any], Optional[str]]:
        """
        Run one step with the per-step timeout; returns (value, error).
        Whatever the step raises is recorded against it and never aborts the probe.
        """
        self.step = step
        try:
            return await asyncio.wait_for(call(), self.timeout), None
        except Exception as e:
            error = f"{e.__class__.__name__}: {e}" if str(e) else e.__class__.__name__
            self.errors[step] = error
            logger.debug(f"{self.candidate} {step.value} failed: {error}")
            return None, error

    async def run(self) -> Optional[DeviceProfile]:
        candidate = self.candidate
        camera = self.camera_factory(
            hostname=candidate.ip,
            port=candidate.port,
            username=candidate.username,
            password=candidate.password,
            timeout=self.timeout,
        )

        _, error = await self._attempt(ProbeStep.CONNECT, camera.connect)
        if error is not None:
            await self._close(camera)
            return None

        try:
            profile = DeviceProfile.for_candidate(candidate)
            profile.capabilities = getattr(camera, 'capabilities', None)

            profile.cam_date, _ = await self._attempt(
                ProbeStep.DATE_TIME, camera.get_system_date_and_time)
            profile.info, _ = await self._attempt(
                ProbeStep.DEVICE_INFO, camera.get_device_information)
            profile.live_stream_tcp, _ = await self._attempt(
                ProbeStep.STREAM_TCP, lambda: camera.get_stream_uri(protocol='RTSP', stream='RTP-Unicast'))
            profile.live_stream_udp, _ = await self._attempt(
                ProbeStep.STREAM_UDP, lambda: camera.get_stream_uri(protocol='UDP', stream='RTP-Unicast'))
            profile.live_stream_multicast, _ = await self._attempt(
                ProbeStep.STREAM_MULTICAST, lambda: camera.get_stream_uri(protocol='UDP', stream='RTP-Multicast'))

            recordings, _ = await self._attempt(ProbeStep.RECORDINGS, camera.get_recordings)
            if recordings and isinstance(recordings[0], dict):
                # Replay URI for the first recording on the NVR
                token = recordings[0].get('recordingToken')
                if token:
                    profile.replay_stream, _ = await self._attempt(
                        ProbeStep.REPLAY_URI, lambda: camera.get_replay_uri(protocol='RTSP', recording_token=token))

            self.step = ProbeStep.DONE
            self._log_summary(profile)
            return profile
        finally:
            await self._close(camera)

    async def _close(self, camera):
        close = getattr(camera, 'close', None)
        if close is None:
            return
        try:
            await close()
        except Exception as e:
            logger.debug(f"{self.candidate} close failed: {e}")

    @staticmethod
    def _log_summary(profile: DeviceProfile):
        logger.debug('------------------------------')
        logger.debug(f"Host: {profile.ip} Port: {profile.port}")
        logger.debug(f"Date: = {profile.cam_date}")
        logger.debug(f"Info: = {profile.info}")
        if profile.live_stream_tcp:
            logger.debug(f"First Live TCP Stream: =       {profile.live_stream_tcp.get('uri')}")
        if profile.live_stream_udp:
            logger.debug(f"First Live UDP Stream: =       {profile.live_stream_udp.get('uri')}")
        if profile.live_stream_multicast:
            logger.debug(f"First Live Multicast Stream: = {profile.live_stream_multicast.get('uri')}")
        if profile.replay_stream:
            logger.debug(f"First Replay Stream: = {profile.replay_stream.get('uri')}")
        logger.debug('------------------------------')
