"""
Printer routing.
Sends each job to the slip printer path or the thermal printer path based
on its printer name.
"""
import logging
from enum import Enum
from typing import Callable, Iterable, Optional, Tuple

from .models import PrinterJob, PrintResult
from .slip_printer import SlipPrinter

logger = logging.getLogger(__name__)

DEFAULT_SLIP_KEYWORDS = ('adisyon',)


class PrinterType(Enum):
    """Printer classes."""
    SLIP = "slip"
    THERMAL = "thermal"


def turkish_lower(text: str) -> str:
    """Lowercase with Turkish casing rules for dotted and dotless I."""
    return text.replace('İ', 'i').replace('I', 'ı').lower()


def get_printer_type(job: PrinterJob, slip_keywords: Iterable[str] = DEFAULT_SLIP_KEYWORDS) -> PrinterType:
    name = turkish_lower(job.printer_name or '')
    if any(turkish_lower(keyword) in name for keyword in slip_keywords):
        return PrinterType.SLIP
    return PrinterType.THERMAL


def parse_ip_port(value: Optional[str]) -> Optional[Tuple[str, int]]:
    """
    Parse an ``ip:port`` printer address.

    Returns:
        (host, port), or None unless the value has exactly one colon,
        a non-empty host and a numeric port in 1-65535
    """
    if not value or not value.strip():
        return None

    parts = value.split(':')
    if len(parts) != 2:
        return None

    host = parts[0].strip()
    port_text = parts[1].strip()
    if not host or not port_text.isdigit():
        return None

    port = int(port_text)
    if not 0 < port < 65536:
        return None
    return host, port


class PrinterRouter:
    """
    Dispatches jobs to the right print path.
    Slip jobs must carry their printer address as ``ip:port``; thermal jobs
    are handed to the thermal printer client, which resolves its own address.
    """

    def __init__(self, thermal_printer, settings=None,
                 slip_printer_factory: Callable[..., SlipPrinter] = SlipPrinter):
        self.thermal_printer = thermal_printer
        self.slip_printer_factory = slip_printer_factory
        self.slip_keywords = tuple(settings.slip_keywords) if settings else DEFAULT_SLIP_KEYWORDS
        self._slip_options = {}
        if settings:
            self._slip_options = {
                'connect_timeout': settings.slip_connect_timeout,
                'read_timeout': settings.slip_read_timeout,
                'byte_delay': settings.slip_byte_delay,
                'settle_delay': settings.slip_settle_delay,
            }

    def print_job(self, job: PrinterJob) -> PrintResult:
        printer_type = get_printer_type(job, self.slip_keywords)
        logger.info(
            f"Printer type resolved: {printer_type.value} - PrinterName: {job.printer_name}, Job ID: {job.auto_id}"
        )

        if printer_type is PrinterType.THERMAL:
            return self.thermal_printer.print_job(job)

        address = parse_ip_port(job.alt_printer_name)
        if address is None:
            error = (
                "Slip printer address (AltPrinterName) must be in ip:port format. "
                f"Current value: \"{job.alt_printer_name or 'empty'}\""
            )
            logger.error(error)
            return PrintResult(success=False, job_id=job.auto_id, error=error, retryable=False)

        host, port = address
        logger.info(f"Using slip printer {host}:{port} - Job ID: {job.auto_id}")
        slip_printer = self.slip_printer_factory(host, port, **self._slip_options)
        return slip_printer.print_html(job.content, job.auto_id)
