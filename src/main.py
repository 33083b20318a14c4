"""
ONVIF Camera Local Server - Main Entry Point
"""

import asyncio
import logging
import os
import sys

from services.camera_server import CameraServer

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_BAD_CONFIG = 2

async def main(config_path: str) -> int:
    """
    Run the server until uvicorn shuts down.
    uvicorn handles SIGINT/SIGTERM itself; serve() returns once it has stopped
    accepting requests, and the registry and live sessions are released after it.
    """
    try:
        server = CameraServer(config_path=config_path)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Invalid configuration {config_path}: {e}")
        return EXIT_BAD_CONFIG

    try:
        await server.start()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Server failed: {e}")
        return EXIT_FAILED
    finally:
        await server.stop()

    return EXIT_OK

if __name__ == "__main__":
    config_file = os.environ.get('CONFIG_FILE', 'config/config.yaml')
    try:
        sys.exit(asyncio.run(main(config_file)))
    except KeyboardInterrupt:
        print("\nServer stopped by user")
        sys.exit(EXIT_OK)
