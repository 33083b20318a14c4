"""
ONVIF camera session over aiohttp
Exposes the device, media, recording and replay operations used by discovery
and by the connection supervisor
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Any

import aiohttp

from http_helper import create_camera_session
from .soap import (
    SoapFault,
    build_envelope,
    element_to_dict,
    find_all,
    find_first,
    find_text,
    parse_response,
)

logger = logging.getLogger(__name__)


class OnvifError(Exception):
    """Base error for ONVIF session operations"""


class OnvifConnectionError(OnvifError):
    """The device could not be reached or did not answer as an ONVIF device"""


class OnvifFault(OnvifError):
    """The device answered with a SOAP fault"""


class OnvifCamera:
    """One ONVIF session to a single host:port"""

    def __init__(self, hostname: str, port: int = 80, username: Optional[str] = None,
                 password: Optional[str] = None, timeout: float = 5):
        self.hostname = hostname
        self.port = int(port)
        self.username = username
        self.password = password
        self.timeout = timeout

        self.device_service = f"http://{hostname}:{self.port}/onvif/device_service"
        self.services: Dict[str, str] = {}
        self.capabilities: Optional[Dict[str, Any]] = None
        self.profile_tokens: List[str] = []
        self.connected = False
        self._session: Optional[aiohttp.ClientSession] = None

    def __repr__(self):
        return f"OnvifCamera({self.hostname}:{self.port})"

    # ================== SESSION ==================

    async def connect(self):
        """
        Open the session: read capabilities (mandatory) and media profiles (best effort).
        Raises OnvifConnectionError when the device does not answer as ONVIF.
        """
        if self._session is None or self._session.closed:
            self._session = create_camera_session(self.timeout)

        try:
            try:
                body = await self._call(
                    self.device_service,
                    "<tds:GetCapabilities><tds:Category>All</tds:Category></tds:GetCapabilities>",
                )
            except OnvifError as e:
                raise OnvifConnectionError(f"{self.hostname}:{self.port} - {e}")

            capabilities = find_first(body, "Capabilities")
            parsed = element_to_dict(capabilities) if capabilities is not None else {}
            # <Capabilities/> parses to an empty string
            self.capabilities = parsed if isinstance(parsed, dict) else {}
            self.services = self._service_addresses(self.capabilities)

            try:
                await self._load_profiles()
            except OnvifError as e:
                logger.debug(f"{self}: no media profiles ({e})")
        except BaseException:
            await self.close()
            raise

        self.connected = True
        logger.debug(f"{self}: session open, services={sorted(self.services)}")

    async def close(self):
        self.connected = False
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @staticmethod
    def _service_addresses(capabilities: Dict[str, Any]) -> Dict[str, str]:
        services = {}
        for name in ("Device", "Media", "Events", "Imaging", "PTZ"):
            section = capabilities.get(name)
            if isinstance(section, dict) and section.get("XAddr"):
                services[name.lower()] = section["XAddr"]
        extension = capabilities.get("Extension")
        if isinstance(extension, dict):
            for name in ("Recording", "Search", "Replay"):
                section = extension.get(name)
                if isinstance(section, dict) and section.get("XAddr"):
                    services[name.lower()] = section["XAddr"]
        return services

    def _service(self, name: str) -> str:
        return self.services.get(name, self.device_service)

    async def _load_profiles(self):
        body = await self._call(self._service("media"), "<trt:GetProfiles/>")
        self.profile_tokens = [
            p.get("token") for p in find_all(body, "Profiles") if p.get("token")
        ]

    def _first_profile(self) -> str:
        if not self.profile_tokens:
            raise OnvifError(f"{self}: no media profile available")
        return self.profile_tokens[0]

    async def _call(self, url: str, body: str):
        """POST one SOAP request and return the parsed Body element"""
        if self._session is None or self._session.closed:
            raise OnvifConnectionError(f"{self}: session is not open")

        envelope = build_envelope(body, self.username, self.password)
        headers = {"Content-Type": "application/soap+xml; charset=utf-8"}
        try:
            async with self._session.post(url, data=envelope, headers=headers) as response:
                text = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise OnvifConnectionError(f"{url}: {e.__class__.__name__} {e}")
        except UnicodeDecodeError as e:
            raise OnvifError(f"{url}: undecodable response ({e})")

        try:
            return parse_response(text)
        except SoapFault as e:
            raise OnvifFault(str(e))
        except ValueError as e:
            raise OnvifError(f"{url}: HTTP {response.status} {e}")

    # ================== DEVICE SERVICE ==================

    async def get_system_date_and_time(self) -> datetime:
        body = await self._call(self.device_service, "<tds:GetSystemDateAndTime/>")
        utc = find_first(body, "UTCDateTime")
        if utc is None:
            raise OnvifError(f"{self}: no UTCDateTime in response")
        try:
            return datetime(
                int(find_text(utc, "Year")),
                int(find_text(utc, "Month")),
                int(find_text(utc, "Day")),
                int(find_text(utc, "Hour")),
                int(find_text(utc, "Minute")),
                int(find_text(utc, "Second")),
                tzinfo=timezone.utc,
            )
        except (TypeError, ValueError) as e:
            raise OnvifError(f"{self}: invalid date/time ({e})")

    async def get_device_information(self) -> Dict[str, str]:
        body = await self._call(self.device_service, "<tds:GetDeviceInformation/>")
        response = find_first(body, "GetDeviceInformationResponse")
        if response is None:
            raise OnvifError(f"{self}: empty device information")
        info = element_to_dict(response)
        if not isinstance(info, dict):
            raise OnvifError(f"{self}: empty device information")
        return {
            "manufacturer": info.get("Manufacturer"),
            "model": info.get("Model"),
            "firmwareVersion": info.get("FirmwareVersion"),
            "serialNumber": info.get("SerialNumber"),
            "hardwareId": info.get("HardwareId"),
        }

    # ================== MEDIA SERVICE ==================

    async def get_stream_uri(self, protocol: str = "RTSP", stream: str = "RTP-Unicast") -> Dict[str, Any]:
        body = await self._call(
            self._service("media"),
            "<trt:GetStreamUri>"
            "<trt:StreamSetup>"
            f"<tt:Stream>{stream}</tt:Stream>"
            f"<tt:Transport><tt:Protocol>{protocol}</tt:Protocol></tt:Transport>"
            "</trt:StreamSetup>"
            f"<trt:ProfileToken>{self._first_profile()}</trt:ProfileToken>"
            "</trt:GetStreamUri>",
        )
        return self._media_uri(body)

    async def get_snapshot_uri(self) -> Dict[str, Any]:
        body = await self._call(
            self._service("media"),
            f"<trt:GetSnapshotUri><trt:ProfileToken>{self._first_profile()}</trt:ProfileToken></trt:GetSnapshotUri>",
        )
        return self._media_uri(body)

    def _media_uri(self, body) -> Dict[str, Any]:
        media_uri = find_first(body, "MediaUri")
        uri = find_text(media_uri if media_uri is not None else body, "Uri")
        if not uri:
            raise OnvifError(f"{self}: no Uri in response")
        result = {"uri": uri}
        if media_uri is not None:
            for key in ("InvalidAfterConnect", "InvalidAfterReboot", "Timeout"):
                value = find_text(media_uri, key)
                if value is not None:
                    result[key[0].lower() + key[1:]] = value
        return result

    async def get_snapshot(self) -> bytes:
        """Fetch a JPEG snapshot through the profile's snapshot URI"""
        uri = (await self.get_snapshot_uri())["uri"]
        auth = aiohttp.BasicAuth(self.username, self.password or "") if self.username else None
        try:
            async with self._session.get(uri, auth=auth) as response:
                if response.status != 200:
                    raise OnvifError(f"{self}: snapshot HTTP {response.status}")
                return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise OnvifConnectionError(f"{uri}: {e.__class__.__name__} {e}")

    # ================== RECORDING / REPLAY SERVICES ==================

    async def get_recordings(self) -> List[Dict[str, Any]]:
        body = await self._call(self._service("recording"), "<trc:GetRecordings/>")
        recordings = []
        for item in find_all(body, "RecordingItem"):
            token = find_text(item, "RecordingToken")
            if not token:
                continue
            recording = element_to_dict(item)
            if not isinstance(recording, dict):
                recording = {}
            recording["recordingToken"] = token
            recordings.append(recording)
        return recordings

    async def get_replay_uri(self, protocol: str, recording_token: str) -> Dict[str, Any]:
        body = await self._call(
            self._service("replay"),
            "<trp:GetReplayUri>"
            "<trp:StreamSetup>"
            "<tt:Stream>RTP-Unicast</tt:Stream>"
            f"<tt:Transport><tt:Protocol>{protocol}</tt:Protocol></tt:Transport>"
            "</trp:StreamSetup>"
            f"<trp:RecordingToken>{recording_token}</trp:RecordingToken>"
            "</trp:GetReplayUri>",
        )
        uri = find_text(body, "Uri")
        if not uri:
            raise OnvifError(f"{self}: no replay Uri in response")
        return {"uri": uri}
