"""
Unit tests for receipt extraction.
Tests the HTML tree builder and each section extractor on its own.
"""
import pytest

from job_printer_service.receipt_parser import (
    parse_html, parse_receipt, clean_text, InfoLine, NotesBlock,
    extract_title, extract_info_lines, extract_items, extract_totals,
    extract_payments, extract_notes, extract_footer
)


SAMPLE_RECEIPT = """
<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <title>Adisyon</title>
  <style>.title { font-weight: bold; }</style>
</head>
<body>
<div class="receipt">
  <div class="title">MASA 12</div>
  <div class="order-info">
    <div class="info-line"><strong>Garson:</strong> Ayşe</div>
    <div class="info-line"><strong>Tarih</strong> 01.02.2026 12:30</div>
    <div class="info-line">Paket servis</div>
  </div>
  <div class="divider"></div>
  <div class="item-row"><span>ÜRÜN</span><span>ADET</span><span>TUTAR</span></div>
  <div class="item-row"><span>Adana Kebap</span><span>2</span><span>₺480</span></div>
  <div class="item-row"><span>Ayran</span><span>2</span><span>₺60</span></div>
  <div class="item-row"><span></span><span></span><span></span></div>
  <div class="divider"></div>
  <div class="totals">
    <div class="total-row"><span>Ara Toplam</span><span>₺540</span></div>
    <div class="total-row grand-total-row"><span>TOPLAM</span><span>₺540</span></div>
  </div>
  <div class="divider"></div>
  <div class="payments">
    <div class="section-title">ÖDEME BİLGİLERİ</div>
    <div class="payment-row"><span>Nakit</span><span>₺600</span></div>
    <div class="change-line"><span>Para Üstü</span><span>₺60</span></div>
  </div>
  <div class="divider"></div>
  <div class="order-notes-section">
    <div class="section-title">SİPARİŞ NOTU</div>
    <div class="order-notes">Soğansız &amp; acısız</div>
  </div>
  <div class="divider"></div>
  <div class="footer">
    <div class="footer-message">Afiyet olsun</div>
    <div class="footer-website">www.example.com</div>
  </div>
</div>
</body>
</html>
"""


class TestTreeBuilder:
    """Test cases for the HTML tree builder."""

    def test_clean_text(self):
        assert clean_text("  a \n\t b  ") == "a b"
        assert clean_text(None) == ""

    def test_entities_are_decoded(self):
        root = parse_html('<div class="title">Fish &amp; Chips&nbsp;&lt;1&gt;</div>')

        assert extract_title(root) == "Fish & Chips <1>"

    def test_style_and_head_title_are_ignored(self):
        root = parse_html("<head><title>Page</title><style>.x{}</style></head><div class='title'>T</div>")

        assert root.text == "T"

    def test_unclosed_and_stray_tags_are_tolerated(self):
        root = parse_html('<div class="title">Open <b>bold</div></span><div class="footer">')

        assert extract_title(root) == "Open bold"

    def test_void_elements_do_not_nest(self):
        root = parse_html('<div class="title">A<br>B</div><div class="footer"><div class="footer-message">M</div></div>')

        assert extract_title(root) == "A B"
        assert extract_footer(root) == ["M"]

    def test_class_tokens_match_whole_names(self):
        root = parse_html('<div class="section-title">Not a title</div>')

        assert extract_title(root) is None


class TestExtractTitle:
    def test_title(self):
        assert extract_title(parse_html(SAMPLE_RECEIPT)) == "MASA 12"

    def test_missing_title(self):
        assert extract_title(parse_html("<div>x</div>")) is None

    def test_empty_title(self):
        assert extract_title(parse_html('<div class="title">   </div>')) is None


class TestExtractInfoLines:
    def test_label_value_pairs(self):
        lines = extract_info_lines(parse_html(SAMPLE_RECEIPT))

        assert lines == [
            InfoLine("Garson:", "Ayşe"),
            InfoLine("Tarih:", "01.02.2026 12:30"),
            InfoLine("Paket servis"),
        ]

    def test_strong_directly_in_block(self):
        root = parse_html('<div class="order-info"><strong>Masa:</strong> 4 <br><strong>Kişi:</strong> 3</div>')

        assert [line.render() for line in extract_info_lines(root)] == ["Masa: 4", "Kişi: 3"]

    def test_label_without_value_is_skipped(self):
        root = parse_html('<div class="order-info"><strong>Masa:</strong></div>')

        assert extract_info_lines(root) == []

    def test_missing_block(self):
        assert extract_info_lines(parse_html('<div class="title">x</div>')) == []


class TestExtractItems:
    def test_header_and_rows(self):
        header, items = extract_items(parse_html(SAMPLE_RECEIPT))

        assert header == ("ÜRÜN", "ADET", "TUTAR")
        assert items == [("Adana Kebap", "2", "₺480"), ("Ayran", "2", "₺60")]

    def test_rows_with_fewer_than_three_spans_are_skipped(self):
        root = parse_html(
            '<div class="item-row"><span>A</span><span>B</span><span>C</span></div>'
            '<div class="item-row"><span>Only</span><span>two</span></div>'
            '<div class="item-row">No spans at all</div>'
        )

        header, items = extract_items(root)

        assert header == ("A", "B", "C")
        assert items == []

    def test_header_without_spans(self):
        root = parse_html(
            '<div class="item-row">Header text</div>'
            '<div class="item-row"><span>Tea</span><span>1</span><span>10</span></div>'
        )

        header, items = extract_items(root)

        assert header is None
        assert items == [("Tea", "1", "10")]

    def test_no_rows(self):
        assert extract_items(parse_html("")) == (None, [])


class TestExtractTotals:
    def test_total_rows(self):
        totals = extract_totals(parse_html(SAMPLE_RECEIPT))

        assert totals == [("Ara Toplam", "₺540"), ("TOPLAM", "₺540")]

    def test_only_inside_totals_block(self):
        root = parse_html('<div class="total-row"><span>Outside</span><span>1</span></div>')

        assert extract_totals(root) == []

    def test_rows_need_two_spans(self):
        root = parse_html('<div class="totals"><div class="total-row"><span>Lonely</span></div></div>')

        assert extract_totals(root) == []


class TestExtractPayments:
    def test_payments_block(self):
        payments = extract_payments(parse_html(SAMPLE_RECEIPT))

        assert payments.title == "ÖDEME BİLGİLERİ"
        assert payments.rows == [("Nakit", "₺600")]
        assert payments.change == ("Para Üstü", "₺60")

    def test_block_without_payment_rows_is_ignored(self):
        root = parse_html('<div class="payments"><div class="section-title">ÖDEME</div></div>')

        assert extract_payments(root) is None

    def test_without_title_or_change(self):
        root = parse_html('<div class="payments"><div class="payment-row"><span>Kart</span><span>100</span></div></div>')

        payments = extract_payments(root)

        assert payments.title is None
        assert payments.rows == [("Kart", "100")]
        assert payments.change is None


class TestExtractNotes:
    def test_notes(self):
        notes = extract_notes(parse_html(SAMPLE_RECEIPT))

        assert notes == NotesBlock(title="SİPARİŞ NOTU", text="Soğansız & acısız")

    def test_empty_section(self):
        assert extract_notes(parse_html('<div class="order-notes-section"></div>')) is None


class TestExtractFooter:
    def test_footer(self):
        assert extract_footer(parse_html(SAMPLE_RECEIPT)) == ["Afiyet olsun", "www.example.com"]

    def test_missing_footer(self):
        assert extract_footer(parse_html("<div></div>")) == []


class TestParseReceipt:
    def test_full_receipt(self):
        model = parse_receipt(SAMPLE_RECEIPT)

        assert model.title == "MASA 12"
        assert len(model.info_lines) == 3
        assert model.header == ("ÜRÜN", "ADET", "TUTAR")
        assert len(model.items) == 2
        assert len(model.totals) == 2
        assert model.payments is not None
        assert model.notes is not None
        assert model.footer == ["Afiyet olsun", "www.example.com"]
        assert not model.is_empty

    def test_empty_document(self):
        assert parse_receipt("").is_empty
