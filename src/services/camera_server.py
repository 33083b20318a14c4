"""
Camera Server - Main orchestrator for all services
"""

import logging
from typing import Dict, Optional

import uvicorn

from config_loader import load_config, setup_logging
from database.manager import DatabaseManager
from discovery.manager import CameraDiscovery
from device_command_handler import DeviceCommandHandler
from services.connection_supervisor import ConnectionSupervisor
from services.reconciler import RegistryReconciler
from api.main_api import CameraAPI

logger = logging.getLogger(__name__)

def build_components(config: Dict, db=None) -> Dict:
    """Wire registry, supervisor, reconciler, discovery and command handler together"""
    db = db or DatabaseManager(config)
    network = config['network']

    supervisor = ConnectionSupervisor(db, network)
    reconciler = RegistryReconciler(
        db, supervisor, update_existing=network.get('update_existing_devices', False)
    )
    discovery = CameraDiscovery(network, db, reconciler)
    handler = DeviceCommandHandler(
        db, discovery, reconciler, supervisor,
        namespace=config.get('site', {}).get('namespace', 'onvif.0')
    )
    return {
        "db": db,
        "supervisor": supervisor,
        "reconciler": reconciler,
        "discovery": discovery,
        "handler": handler,
    }

class CameraServer:
    """Main server: registry, live connections, discovery and the HTTP API"""

    def __init__(self, config_path: str = "config/config.yaml", config: Optional[Dict] = None):
        self.config = config or load_config(config_path)
        setup_logging(self.config)

        components = build_components(self.config)
        self.db = components['db']
        self.supervisor = components['supervisor']
        self.reconciler = components['reconciler']
        self.discovery = components['discovery']
        self.handler = components['handler']

        self.api = CameraAPI(self.handler, self.config)
        self.running = False

    async def startup(self):
        """Initialize the registry and bring up live connections"""
        await self.db.initialize()
        logger.info("Database initialized successfully")

        await self.discovery.reset()
        await self.supervisor.refresh_connections()
        self.running = True

    async def start(self):
        """Start all server services and serve the API until stopped"""
        logger.info("Starting ONVIF Camera Local Server...")

        try:
            await self.startup()
            await self._start_api_server()
        except Exception as e:
            logger.error(f"Server startup failed: {e}")
            await self.stop()
            raise

    async def stop(self):
        """Stop all server services gracefully"""
        if not self.running and self.db.pool is None:
            return
        logger.info("Stopping server...")
        self.running = False

        await self.discovery.shutdown()
        await self.supervisor.close_all()
        await self.db.close()
        self.db.pool = None
        logger.info("cleaned everything up...")

    async def _start_api_server(self):
        """Start the FastAPI server"""
        config = uvicorn.Config(
            self.api.app,
            host=self.config['api']['host'],
            port=self.config['api']['port'],
            log_level="info",
            access_log=False  # We handle our own logging
        )

        server = uvicorn.Server(config)

        logger.info(f"Starting API server on {self.config['api']['host']}:{self.config['api']['port']}")
        logger.info(f"API documentation: http://localhost:{self.config['api']['port']}/docs")

        await server.serve()
