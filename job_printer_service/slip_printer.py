"""
Network slip printer client.
Prints receipt text to slip printers over a raw TCP connection, using
manual paper feed, retract and release control codes.
"""
import logging
import socket
import time
from enum import Enum
from typing import Optional

from .models import PrintResult
from .receipt_formatter import html_to_text

logger = logging.getLogger(__name__)

# Control sequences
INITIALIZE = bytes([0x1B, 0x40, 0x1D, 0x4C, 0x00, 0x00])  # ESC @, GS L 0 0 (left margin)
REVERSE_FEED = bytes([0x1B, 0x4B, 0x7F])  # ESC K 127, retract paper
RELEASE = bytes([0x1B, 0x71])  # ESC q, release paper
FEED_LINES = 10


class SlipSessionState(Enum):
    """States of a single print session."""
    IDLE = "idle"
    CONNECTING = "connecting"
    INITIALIZING = "initializing"
    SENDING = "sending"
    FEEDING = "feeding"
    RETRACTING = "retracting"
    RELEASING = "releasing"
    CLOSED = "closed"
    FAILED = "failed"


class SlipPrinter:
    """
    Client for one slip printer.
    Opens a fresh connection per receipt and streams it byte by byte,
    pausing ``byte_delay`` seconds after every byte so the device is never overrun.
    """

    def __init__(self, host: str, port: int = 9101, connect_timeout: float = 10.0,
                 read_timeout: float = 1.0, byte_delay: float = 0.002,
                 settle_delay: float = 0.1, encoding: str = 'cp857'):
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.byte_delay = byte_delay
        self.settle_delay = settle_delay
        self.encoding = encoding
        self.state = SlipSessionState.IDLE

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def encode_text(self, text: str) -> bytes:
        """Encode receipt text with the printer code page, falling back to UTF-8."""
        try:
            return text.encode(self.encoding)
        except (UnicodeEncodeError, LookupError):
            logger.warning(f"{self.encoding} encoding failed, using UTF-8")
            return text.encode('utf-8')

    def print_html(self, html: str, job_id: int) -> PrintResult:
        """
        Print job HTML as a slip receipt.

        Args:
            html: Job content
            job_id: Job identifier, for results and logs

        Returns:
            PrintResult: Failed and not retryable when no receipt text
            can be derived from the HTML
        """
        logger.info(f"Slip print starting - {self.address}, Job ID: {job_id}")

        text = html_to_text(html)
        if not text:
            logger.error(f"Could not derive receipt text from HTML - Job ID: {job_id}")
            return PrintResult(success=False, job_id=job_id,
                               error='Could not convert HTML to receipt text', retryable=False)

        return self.print_text(text, job_id)

    def print_text(self, text: str, job_id: int) -> PrintResult:
        """Run one print session for already formatted receipt text."""
        sock: Optional[socket.socket] = None
        try:
            self.state = SlipSessionState.CONNECTING
            sock = socket.create_connection((self.host, self.port), timeout=self.connect_timeout)
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.settimeout(self.read_timeout)
            logger.info(f"Slip printer connected - {self.address}")

            self.state = SlipSessionState.INITIALIZING
            self._send_paced(sock, INITIALIZE)

            self.state = SlipSessionState.SENDING
            self._send_paced(sock, self.encode_text(text))

            self.state = SlipSessionState.FEEDING
            self._send_paced(sock, self.encode_text('\r\n' * FEED_LINES))

            self.state = SlipSessionState.RETRACTING
            self._send_paced(sock, REVERSE_FEED)
            if self.settle_delay > 0:
                time.sleep(self.settle_delay)

            self.state = SlipSessionState.RELEASING
            self._send_paced(sock, RELEASE)

            sock.shutdown(socket.SHUT_WR)
            sock.close()
            sock = None
            self.state = SlipSessionState.CLOSED

            logger.info(f"Slip print successful - {self.address}, Job ID: {job_id}")
            return PrintResult(success=True, job_id=job_id)

        except socket.timeout:
            return self._fail(job_id, 'Socket timeout')
        except OSError as e:
            return self._fail(job_id, str(e) or e.__class__.__name__)
        finally:
            if sock is not None:
                sock.close()

    def _send_paced(self, sock: socket.socket, data: bytes):
        for byte in data:
            sock.sendall(bytes((byte,)))
            if self.byte_delay > 0:
                time.sleep(self.byte_delay)

    def _fail(self, job_id: int, error: str) -> PrintResult:
        logger.error(f"Slip printer error in state {self.state.value} - {self.address}, Job ID: {job_id}: {error}")
        self.state = SlipSessionState.FAILED
        return PrintResult(success=False, job_id=job_id, error=error)
