"""
Thermal printer client for network ESC/POS receipt printers.
Renders job HTML to an image through a pluggable renderer and prints it;
without a renderer, prints the job as fixed-width receipt text.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple
from escpos.printer import Network
from escpos.exceptions import Error as EscposError

from .models import PrinterJob, PrintResult
from .printer_router import parse_ip_port
from .receipt_formatter import html_to_text

logger = logging.getLogger(__name__)


class PrinterError(Exception):
    """Custom exception for printer-related errors."""
    pass


class HtmlRenderer(ABC):
    """Renders job HTML to an image the printer can rasterize (e.g. a headless browser)."""

    def initialize(self):
        """Acquire renderer resources. Called once when the service starts."""

    @abstractmethod
    def render(self, html: str):
        """Render HTML and return a PIL image or an image file path."""

    def close(self):
        """Release renderer resources. Called when the service stops."""


class ThermalPrinterClient:
    """
    Client for network thermal printers.
    Jobs may name their own printer as ``ip:port``; otherwise the default printer is used.
    """

    def __init__(self, host: str = '192.168.2.214', port: int = 9100,
                 timeout: float = 10.0, renderer: Optional[HtmlRenderer] = None):
        """
        Initialize the thermal printer client.

        Args:
            host: Default printer host
            port: Default printer port
            timeout: Socket timeout in seconds
            renderer: Optional HTML renderer; text mode is used without one
        """
        self.host = host
        self.port = port
        self.timeout = timeout
        self.renderer = renderer
        self._initialized = False

        logger.info(
            "Thermal printer client initialized",
            extra={
                'network_host': self.host,
                'network_port': self.port,
                'render_mode': 'image' if renderer else 'text',
            }
        )

    def initialize(self):
        """Prepare the renderer. Errors propagate to the caller."""
        if self.renderer and not self._initialized:
            self.renderer.initialize()
        self._initialized = True

    def close(self):
        """Release the renderer."""
        if self.renderer and self._initialized:
            try:
                self.renderer.close()
            except Exception as e:
                logger.error(f"Error while closing renderer: {e}")
        self._initialized = False

    def resolve_address(self, job: PrinterJob) -> Tuple[str, int]:
        """Pick the job's own printer address if it parses, else the default printer."""
        if job.alt_printer_name and job.alt_printer_name.strip():
            parsed = parse_ip_port(job.alt_printer_name)
            if parsed:
                logger.info(f"Using job printer {parsed[0]}:{parsed[1]} ({job.printer_name})")
                return parsed
            logger.warning(
                f"Could not parse AltPrinterName '{job.alt_printer_name}', "
                f"using default printer {self.host}:{self.port}"
            )
        return self.host, self.port

    def print_job(self, job: PrinterJob) -> PrintResult:
        """
        Print a job on its thermal printer.

        Returns:
            PrintResult carrying the printer error text on failure
        """
        host, port = self.resolve_address(job)
        printer = None
        try:
            logger.info(f"Thermal print starting: ID={job.auto_id}, Ref={job.reference_number}")

            if self.renderer:
                image = self.renderer.render(job.content)
                text = None
            else:
                image = None
                text = html_to_text(job.content)
                if not text:
                    return PrintResult(success=False, job_id=job.auto_id,
                                       error='Could not convert HTML to receipt text', retryable=False)

            printer = Network(host=host, port=port, timeout=self.timeout)
            printer.open()

            if image is not None:
                printer.image(image)
            else:
                printer.text(text + "\n")
                printer.ln(2)
            printer.cut(mode='PART')

            logger.info(f"Thermal print successful: ID={job.auto_id} -> {host}:{port}")
            return PrintResult(success=True, job_id=job.auto_id)

        except EscposError as e:
            logger.error(f"ESC/POS error during printing: ID={job.auto_id}: {e}")
            return PrintResult(success=False, job_id=job.auto_id, error=str(e) or 'ESC/POS error')
        except Exception as e:
            logger.error(f"Thermal print failed: ID={job.auto_id}: {e}")
            return PrintResult(success=False, job_id=job.auto_id, error=str(e) or e.__class__.__name__)
        finally:
            if printer is not None:
                try:
                    printer.close()
                except Exception as e:
                    logger.warning(f"Error closing printer connection: {e}")

    def test_connection(self) -> bool:
        """
        Check that the default printer accepts connections.

        Returns:
            bool: True if a connection could be opened
        """
        printer = None
        try:
            printer = Network(host=self.host, port=self.port, timeout=self.timeout)
            printer.open()
            logger.info(f"Printer connection successful: {self.host}:{self.port}")
            return True
        except Exception as e:
            logger.error(f"Printer connection test failed: {self.host}:{self.port}: {e}")
            return False
        finally:
            if printer is not None:
                try:
                    printer.close()
                except Exception as e:
                    logger.debug(f"Error closing test connection: {e}")

    def update_config(self, host: str, port: int):
        if not 0 < port < 65536:
            raise PrinterError(f"Invalid printer port: {port}")
        self.host = host
        self.port = port
        logger.info(f"Printer configuration updated: {host}:{port}")
