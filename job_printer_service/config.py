"""
Service configuration.
Settings are read from environment variables, optionally seeded from a .env file.
"""
import os
import logging
from dataclasses import dataclass, field
from typing import Tuple
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_API_URL = 'http://localhost:3000/api/printer'


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value.strip() if value and value.strip() else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value.strip())
    except ValueError:
        logger.warning(f"Invalid {name}='{value}', falling back to default {default}")
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value.strip())
    except ValueError:
        logger.warning(f"Invalid {name}='{value}', falling back to default {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if not value:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class ServiceSettings:
    """Configuration for the polling service and its printers."""
    api_base_url: str = DEFAULT_API_URL
    poll_interval: float = 1.0  # seconds
    fetch_limit: int = 10
    max_retries: int = 5
    connection_failure_limit: int = 5
    api_timeout: float = 10.0

    # Default thermal printer, used when a job carries no address of its own
    printer_ip: str = '192.168.2.214'
    printer_port: int = 9100
    thermal_timeout: float = 10.0

    slip_keywords: Tuple[str, ...] = field(default_factory=lambda: ('adisyon',))
    slip_connect_timeout: float = 10.0
    slip_read_timeout: float = 1.0
    slip_byte_delay: float = 0.002
    slip_settle_delay: float = 0.1

    service_host: str = '0.0.0.0'
    service_port: int = 8000
    auto_start: bool = True
    log_file: str = 'job_printer_service.log'
    log_buffer_size: int = 500

    def __post_init__(self):
        """Validate configuration."""
        self.api_base_url = self.api_base_url.rstrip('/')
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.fetch_limit <= 0:
            raise ValueError("fetch_limit must be positive")
        if self.max_retries <= 0:
            raise ValueError("max_retries must be positive")
        if self.connection_failure_limit <= 0:
            raise ValueError("connection_failure_limit must be positive")
        if not 0 < self.printer_port < 65536:
            raise ValueError("printer_port must be between 1 and 65535")
        if self.slip_byte_delay < 0 or self.slip_settle_delay < 0:
            raise ValueError("slip delays must not be negative")
        if self.slip_connect_timeout <= 0 or self.slip_read_timeout <= 0:
            raise ValueError("slip timeouts must be positive")

    @classmethod
    def from_env(cls) -> 'ServiceSettings':
        """Build settings from the current environment."""
        keywords = tuple(
            k.strip() for k in _env_str('SLIP_PRINTER_KEYWORDS', 'adisyon').split(',') if k.strip()
        )
        settings = cls(
            api_base_url=_env_str('PRINTER_API_URL', DEFAULT_API_URL),
            poll_interval=_env_int('POLL_INTERVAL_MS', 1000) / 1000.0,
            fetch_limit=_env_int('JOB_FETCH_LIMIT', 10),
            max_retries=_env_int('MAX_RETRIES', 5),
            connection_failure_limit=_env_int('CONNECTION_FAILURE_LIMIT', 5),
            api_timeout=_env_float('API_TIMEOUT', 10.0),
            printer_ip=_env_str('PRINTER_IP', '192.168.2.214'),
            printer_port=_env_int('PRINTER_PORT', 9100),
            thermal_timeout=_env_float('THERMAL_PRINTER_TIMEOUT', 10.0),
            slip_keywords=keywords or ('adisyon',),
            slip_connect_timeout=_env_float('SLIP_CONNECT_TIMEOUT', 10.0),
            slip_read_timeout=_env_float('SLIP_READ_TIMEOUT', 1.0),
            slip_byte_delay=_env_float('SLIP_BYTE_DELAY_MS', 2.0) / 1000.0,
            slip_settle_delay=_env_float('SLIP_SETTLE_DELAY_MS', 100.0) / 1000.0,
            service_host=_env_str('SERVICE_HOST', '0.0.0.0'),
            service_port=_env_int('SERVICE_PORT', 8000),
            auto_start=_env_bool('AUTO_START', True),
            log_file=_env_str('LOG_FILE', 'job_printer_service.log'),
            log_buffer_size=_env_int('LOG_BUFFER_SIZE', 500),
        )
        logger.info(
            "Service settings loaded",
            extra={
                'api_base_url': settings.api_base_url,
                'poll_interval': settings.poll_interval,
                'printer_ip': settings.printer_ip,
                'printer_port': settings.printer_port,
            }
        )
        return settings
