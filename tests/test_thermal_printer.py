"""
Unit tests for the thermal printer client.
Tests address resolution, text and image printing and error handling.
"""
import pytest
from unittest.mock import Mock, patch

from escpos.exceptions import Error as EscposError

from job_printer_service.models import PrinterJob
from job_printer_service.thermal_printer import (
    HtmlRenderer, PrinterError, ThermalPrinterClient
)

RECEIPT_HTML = (
    '<div class="title">MASA 3</div>'
    '<div class="item-row"><span>ÜRÜN</span><span>ADET</span><span>TUTAR</span></div>'
    '<div class="item-row"><span>Su</span><span>1</span><span>₺10</span></div>'
)


def make_job(alt=None, content=RECEIPT_HTML):
    return PrinterJob(auto_id=11, printer_name="Mutfak", alt_printer_name=alt,
                      content=content, reference_number="R-11")


class StaticRenderer(HtmlRenderer):
    def __init__(self):
        self.rendered = []
        self.closed = False

    def render(self, html):
        self.rendered.append(html)
        return "receipt.png"

    def close(self):
        self.closed = True


class TestResolveAddress:
    def test_job_address_is_used(self):
        client = ThermalPrinterClient('10.0.0.1', 9100)

        assert client.resolve_address(make_job("10.0.0.5:9200")) == ("10.0.0.5", 9200)

    @pytest.mark.parametrize("alt", [None, "", "  ", "Kitchen printer", "10.0.0.5"])
    def test_default_printer_fallback(self, alt):
        client = ThermalPrinterClient('10.0.0.1', 9100)

        assert client.resolve_address(make_job(alt)) == ("10.0.0.1", 9100)


class TestThermalPrinterClient:
    """Test cases for the ThermalPrinterClient class."""

    @patch('job_printer_service.thermal_printer.Network')
    def test_print_text_mode(self, mock_network):
        mock_printer = Mock()
        mock_network.return_value = mock_printer
        client = ThermalPrinterClient('10.0.0.1', 9100, timeout=5)

        result = client.print_job(make_job("10.0.0.5:9200"))

        assert result.success is True
        assert result.job_id == 11
        mock_network.assert_called_once_with(host="10.0.0.5", port=9200, timeout=5)
        mock_printer.open.assert_called_once()
        printed = mock_printer.text.call_args.args[0]
        assert "MASA 3" in printed
        assert "10 TL" in printed
        mock_printer.cut.assert_called_once_with(mode='PART')
        mock_printer.close.assert_called_once()

    @patch('job_printer_service.thermal_printer.Network')
    def test_print_image_mode(self, mock_network):
        mock_printer = Mock()
        mock_network.return_value = mock_printer
        renderer = StaticRenderer()
        client = ThermalPrinterClient('10.0.0.1', 9100, renderer=renderer)

        result = client.print_job(make_job())

        assert result.success is True
        assert renderer.rendered == [RECEIPT_HTML]
        mock_printer.image.assert_called_once_with("receipt.png")
        mock_printer.text.assert_not_called()

    @patch('job_printer_service.thermal_printer.Network')
    def test_unprintable_content(self, mock_network):
        client = ThermalPrinterClient('10.0.0.1', 9100)

        result = client.print_job(make_job(content="<p>plain</p>"))

        assert result.success is False
        assert result.retryable is False
        mock_network.assert_not_called()

    @patch('job_printer_service.thermal_printer.Network')
    def test_connection_error(self, mock_network):
        mock_printer = Mock()
        mock_printer.open.side_effect = ConnectionRefusedError("Connection refused")
        mock_network.return_value = mock_printer
        client = ThermalPrinterClient('10.0.0.1', 9100)

        result = client.print_job(make_job())

        assert result.success is False
        assert result.retryable is True
        assert result.error == "Connection refused"
        mock_printer.close.assert_called_once()

    @patch('job_printer_service.thermal_printer.Network')
    def test_escpos_error(self, mock_network):
        mock_printer = Mock()
        mock_printer.cut.side_effect = EscposError("Paper out")
        mock_network.return_value = mock_printer
        client = ThermalPrinterClient('10.0.0.1', 9100)

        result = client.print_job(make_job())

        assert result.success is False
        assert "Paper out" in result.error

    @patch('job_printer_service.thermal_printer.Network')
    def test_connection_test(self, mock_network):
        client = ThermalPrinterClient('10.0.0.1', 9100)

        assert client.test_connection() is True
        mock_network.return_value.open.side_effect = OSError("No route to host")
        assert client.test_connection() is False

    def test_renderer_lifecycle(self):
        renderer = StaticRenderer()
        client = ThermalPrinterClient(renderer=renderer)

        client.initialize()
        client.close()

        assert renderer.closed is True

    def test_update_config(self):
        client = ThermalPrinterClient()

        client.update_config('10.0.0.9', 9101)
        assert (client.host, client.port) == ('10.0.0.9', 9101)

        with pytest.raises(PrinterError):
            client.update_config('10.0.0.9', 0)
