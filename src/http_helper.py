# HTTP Helper for camera connections
# Session configuration for ONVIF SOAP endpoints and snapshot downloads

import aiohttp
import logging

logger = logging.getLogger(__name__)

def create_camera_session(timeout_seconds: float = 5) -> aiohttp.ClientSession:
    """
    Create properly configured aiohttp session for a single camera (plain HTTP)
    Prevents connection leaks with proper cleanup and limits
    """
    connector = aiohttp.TCPConnector(
        limit_per_host=2,           # Max 2 connections per camera
        ssl=False,                  # Local cameras are addressed over HTTP
        force_close=True,           # Force connection cleanup
        enable_cleanup_closed=True  # Additional cleanup
    )

    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout_seconds)
    )
