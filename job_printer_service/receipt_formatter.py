"""
Fixed-width receipt layout for slip printers.
Turns a ReceiptModel into 32-column plain text.
"""
import re
from typing import List

from .receipt_parser import ReceiptModel, parse_receipt

LINE_WIDTH = 32

# Item table columns: name, quantity, amount
ITEM_COLUMN_WIDTHS = (16, 5, 9)
# Totals, payments and change lines: label, value
TOTAL_COLUMN_WIDTHS = (18, 13)

CURRENCY_GLYPH = '₺'
DEFAULT_CURRENCY_SUFFIX = 'TL'
KNOWN_CURRENCY_SUFFIXES = ('TL', 'USD', 'EUR', 'GBP')

_BARE_NUMBER = re.compile(r'-?[\d.,]*\d[\d.,]*')


def separator(char: str = '-', width: int = LINE_WIDTH) -> str:
    """Create a full-width rule."""
    return char * width


def format_line(col1: str, col2: str, col3: str) -> str:
    """
    Format an item row: name left-aligned in 16 columns (truncated),
    quantity right-aligned in 5, amount right-aligned in 9.
    Columns are separated by a single space, for 32 characters in total.
    """
    name_width, qty_width, amount_width = ITEM_COLUMN_WIDTHS
    col1 = col1[:name_width]
    return col1.ljust(name_width) + ' ' + col2.rjust(qty_width) + ' ' + col3.rjust(amount_width)


def format_total_line(label: str, value: str) -> str:
    """Format a label/value row: label left-aligned in 18 (truncated), value right-aligned in 13."""
    label_width, value_width = TOTAL_COLUMN_WIDTHS
    label = label[:label_width]
    return label.ljust(label_width) + ' ' + value.rjust(value_width)


def convert_currency(text: str) -> str:
    """
    Normalize an amount for the printer code page.

    The local currency glyph is removed; a bare number without a known
    currency suffix gets the default suffix appended. Anything else is
    returned trimmed but otherwise unchanged.
    """
    if not text:
        return text

    text = text.replace(CURRENCY_GLYPH, '').strip()
    if text.endswith(KNOWN_CURRENCY_SUFFIXES):
        return text
    if _BARE_NUMBER.fullmatch(text):
        return f"{text} {DEFAULT_CURRENCY_SUFFIX}"
    return text


def format_receipt(model: ReceiptModel) -> str:
    """
    Lay out a receipt model as slip printer text.

    Returns:
        Newline-joined receipt text, or an empty string for an empty model
    """
    if model.is_empty:
        return ''

    output: List[str] = []

    if model.title:
        output.append(separator('='))
        output.append(model.title)
        output.append(separator('='))

    output.extend(line.render() for line in model.info_lines)
    output.append(separator())

    if model.header:
        output.append(format_line(*model.header))
        output.append(separator())

    for name, quantity, amount in model.items:
        output.append(format_line(name, quantity, convert_currency(amount)))
    output.append(separator())

    for label, value in model.totals:
        output.append(format_total_line(label, convert_currency(value)))
    output.append(separator())

    if model.payments:
        if model.payments.title:
            output.append(model.payments.title)
            output.append(separator())
        for method, amount in model.payments.rows:
            output.append(format_total_line(method, convert_currency(amount)))
        if model.payments.change:
            label, amount = model.payments.change
            output.append(format_total_line(label, convert_currency(amount)))
        output.append(separator())

    if model.notes:
        if model.notes.title:
            output.append(model.notes.title)
            output.append(separator())
        if model.notes.text:
            output.append(model.notes.text)
            output.append(separator())

    output.extend(model.footer)

    return '\n'.join(output)


def html_to_text(html: str) -> str:
    """Extract and lay out a receipt from job HTML."""
    if not html:
        return ''
    return format_receipt(parse_receipt(html))
