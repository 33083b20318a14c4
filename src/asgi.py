"""
ASGI entry point for uvicorn
This module exposes the FastAPI app for use with uvicorn command line
"""

import logging
import os
from contextlib import asynccontextmanager

from config_loader import load_config, setup_logging
from services.camera_server import build_components
from api.main_api import CameraAPI

# Load configuration
config = load_config(os.environ.get('CONFIG_FILE', 'config/config.yaml'))
setup_logging(config)

logger = logging.getLogger(__name__)

logger.info("Initializing application components...")
components = build_components(config)
db = components['db']
discovery = components['discovery']
supervisor = components['supervisor']

@asynccontextmanager
async def lifespan(_app):
    """Initialize the registry and live connections; clean up on shutdown"""
    logger.info("Starting up application...")
    await db.initialize()
    await discovery.reset()
    await supervisor.refresh_connections()
    logger.info("Database and live connections initialized")
    yield
    logger.info("Shutting down application...")
    await discovery.shutdown()
    await supervisor.close_all()
    await db.close()
    logger.info("Application shut down complete")

api = CameraAPI(components['handler'], config, lifespan=lifespan)

# Expose the FastAPI app for uvicorn
app = api.app

logger.info("ASGI app ready for uvicorn")
