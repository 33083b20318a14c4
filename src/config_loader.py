"""
Configuration loader for the ONVIF Camera Local Server
Loads and validates configuration from YAML files
"""

import yaml
import logging
from typing import Dict, Any
from pathlib import Path
from datetime import datetime
import pytz

logger = logging.getLogger(__name__)

DEFAULT_PORTS = [80, 7575, 8000, 8080, 8081]

def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file with validation
    """
    try:
        config_file = Path(config_path)
        if not config_file.exists():
            logger.error(f"Configuration file not found: {config_path}")
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_file, 'r') as f:
            config = yaml.safe_load(f) or {}

        # Validate required sections
        _validate_config(config)

        # Apply defaults
        config = _apply_defaults(config)

        logger.info(f"Configuration loaded from {config_path}")
        return config

    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise

def _validate_config(config: Dict) -> None:
    """Validate that required configuration sections exist"""
    required_sections = ['network', 'database']

    for section in required_sections:
        if section not in config or config[section] is None:
            raise ValueError(f"Missing required configuration section: {section}")

    # Validate database section
    db = config['database']
    required_db_fields = ['host', 'port', 'database', 'username', 'password']
    for field in required_db_fields:
        if field not in db:
            raise ValueError(f"Missing required database field: {field}")

    # Validate network section
    network = config['network']
    ports = network.get('default_ports')
    if ports is not None and not isinstance(ports, (list, str)):
        raise ValueError("network.default_ports must be a list or a comma-separated string")

    timeout = network.get('request_timeout')
    if timeout is not None and float(timeout) <= 0:
        raise ValueError("network.request_timeout must be positive")

def _apply_defaults(config: Dict) -> Dict:
    """Apply default values to configuration"""

    # Site defaults
    if 'site' not in config or config['site'] is None:
        config['site'] = {}
    site_defaults = {
        'namespace': 'onvif.0',
        'timezone': 'UTC'
    }
    for key, default_value in site_defaults.items():
        if key not in config['site']:
            config['site'][key] = default_value

    # Network defaults
    network_defaults = {
        'default_ports': list(DEFAULT_PORTS),
        'default_username': 'admin',
        'default_password': 'admin',
        'request_timeout': 5,
        'update_existing_devices': False
    }
    for key, default_value in network_defaults.items():
        if key not in config['network']:
            config['network'][key] = default_value

    # API defaults
    if 'api' not in config or config['api'] is None:
        config['api'] = {}
    api_defaults = {
        'host': '0.0.0.0',
        'port': 8000,
        'cors_origins': ['*']
    }
    for key, default_value in api_defaults.items():
        if key not in config['api']:
            config['api'][key] = default_value

    # Logging defaults
    if 'logging' not in config or config['logging'] is None:
        config['logging'] = {}
    logging_defaults = {
        'level': 'INFO',
        'file': 'logs/camera_server.log',
        'console_output': True
    }
    for key, default_value in logging_defaults.items():
        if key not in config['logging']:
            config['logging'][key] = default_value

    return config


class TimezoneFormatter(logging.Formatter):
    """Formatter that renders timestamps in the site's configured timezone"""

    def __init__(self, fmt=None, tz_name: str = 'UTC'):
        super().__init__(fmt)
        try:
            self.tz = pytz.timezone(tz_name)
        except pytz.UnknownTimeZoneError:
            self.tz = pytz.utc

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.tz)
        if datefmt:
            return dt.strftime(datefmt)
        else:
            # Default format: YYYY-MM-DD HH:MM:SS TZ
            return dt.strftime('%Y-%m-%d %H:%M:%S %Z')

def setup_logging(config: Dict) -> None:
    """Setup logging based on configuration with site-local timestamps"""
    log_config = config.get('logging', {})
    level = log_config.get('level', 'INFO')
    tz_name = config.get('site', {}).get('timezone', 'UTC')

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = TimezoneFormatter(log_format, tz_name)

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=log_format,
        handlers=[]
    )

    # Console handler
    if log_config.get('console_output', True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logging.getLogger().addHandler(console_handler)

    # File handler
    log_file = log_config.get('file')
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logging.getLogger().addHandler(file_handler)

    logger.info(f"Logging configured: level={level}, timezone={tz_name}, console={log_config.get('console_output', True)}, file={log_file}")

def get_sample_config() -> Dict:
    """Return a sample configuration for reference"""
    return {
        "site": {
            "namespace": "onvif.0",
            "timezone": "America/New_York"
        },
        "network": {
            "default_ports": list(DEFAULT_PORTS),
            "default_username": "admin",
            "default_password": "admin",
            "request_timeout": 5,
            "update_existing_devices": False
        },
        "database": {
            "host": "localhost",
            "port": 5432,
            "database": "camera_db",
            "username": "postgres",
            "password": "postgres"
        },
        "api": {
            "host": "0.0.0.0",
            "port": 8000,
            "cors_origins": ["*"]
        },
        "logging": {
            "level": "INFO",
            "file": "logs/camera_server.log",
            "console_output": True
        }
    }
