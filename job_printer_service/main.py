"""
Main entry point for the Job Printer Service.
Builds the service objects once and serves the API using uvicorn.
"""
import logging
import sys
from typing import Optional, Tuple

import uvicorn
from fastapi import FastAPI

from .api.main import create_app
from .config import ServiceSettings
from .job_client import JobClient
from .log_buffer import MemoryLogHandler
from .polling_service import PollingService
from .printer_router import PrinterRouter
from .thermal_printer import HtmlRenderer, ThermalPrinterClient

logger = logging.getLogger(__name__)


def configure_logging(settings: ServiceSettings) -> MemoryLogHandler:
    """Configure stdout and file logging and attach the in-memory log buffer."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers
    )

    memory_handler = MemoryLogHandler(capacity=settings.log_buffer_size)
    logging.getLogger().addHandler(memory_handler)
    return memory_handler


def build_service(settings: ServiceSettings,
                  renderer: Optional[HtmlRenderer] = None) -> Tuple[PollingService, ThermalPrinterClient]:
    """Construct the service graph: job client, printers, router and polling service."""
    job_client = JobClient(
        settings.api_base_url,
        timeout=settings.api_timeout,
        fetch_limit=settings.fetch_limit
    )
    thermal_printer = ThermalPrinterClient(
        host=settings.printer_ip,
        port=settings.printer_port,
        timeout=settings.thermal_timeout,
        renderer=renderer
    )
    router = PrinterRouter(thermal_printer, settings)
    service = PollingService(job_client, router, thermal_printer, settings)
    return service, thermal_printer


def build_app(settings: Optional[ServiceSettings] = None,
              log_handler: Optional[MemoryLogHandler] = None) -> FastAPI:
    settings = settings or ServiceSettings.from_env()
    service, thermal_printer = build_service(settings)
    return create_app(service, thermal_printer, settings=settings, log_handler=log_handler)


def main():
    """Start the Job Printer Service."""
    settings = ServiceSettings.from_env()
    log_handler = configure_logging(settings)
    logger.info("Starting Job Printer Service...")
    logger.info(f"Job queue API: {settings.api_base_url}")

    try:
        app = build_app(settings, log_handler)
        uvicorn.run(
            app,
            host=settings.service_host,
            port=settings.service_port,
            log_level="info"
        )
    except Exception as e:
        logger.error(f"Failed to start service: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
