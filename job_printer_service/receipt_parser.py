"""
Receipt extraction from job HTML.

Job content is a receipt template rendered to HTML. Only a small, fixed set
of section shapes carries receipt data, so the document is reduced to a tree
of elements and each section is read by its own extractor:

    title     first div.title
    info      div.order-info: <strong>Label</strong> value pairs, then plain div.info-line texts
    items     every div.item-row with at least three spans; the first row is the header
    totals    div.totals: descendant divs whose class contains "total", two spans each
    payments  div.payments with payment rows: div.section-title, div.payment-row, div.change-line
    notes     div.order-notes-section: div.section-title, div.order-notes
    footer    div.footer: div.footer-message, div.footer-website

Class names are matched as whole tokens. Missing sections are left empty.
"""
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Callable, Iterator, List, Optional, Tuple

VOID_ELEMENTS = frozenset([
    'area', 'base', 'br', 'col', 'embed', 'hr', 'img', 'input',
    'link', 'meta', 'param', 'source', 'track', 'wbr',
])
SKIPPED_ELEMENTS = frozenset(['script', 'style', 'head', 'title'])

_WHITESPACE = re.compile(r'\s+')


def clean_text(text: str) -> str:
    """Collapse whitespace runs and trim."""
    return _WHITESPACE.sub(' ', text or '').strip()


class Element:
    """A parsed HTML element: tag, class tokens and ordered children (elements or text)."""

    def __init__(self, tag: str, classes: Tuple[str, ...] = ()):
        self.tag = tag
        self.classes = classes
        self.children: List[object] = []

    def has_class(self, name: str) -> bool:
        return name in self.classes

    @property
    def text(self) -> str:
        """Text content of this element and its descendants, whitespace-collapsed."""
        return clean_text(' '.join(self._iter_text()))

    def _iter_text(self) -> Iterator[str]:
        for child in self.children:
            if isinstance(child, Element):
                yield from child._iter_text()
            else:
                yield child

    def iter(self) -> Iterator['Element']:
        """Depth-first iteration over descendant elements (excluding self)."""
        for child in self.children:
            if isinstance(child, Element):
                yield child
                yield from child.iter()

    def find_all(self, predicate: Callable[['Element'], bool]) -> List['Element']:
        return [el for el in self.iter() if predicate(el)]

    def find(self, predicate: Callable[['Element'], bool]) -> Optional['Element']:
        for el in self.iter():
            if predicate(el):
                return el
        return None

    def __repr__(self):
        return f"<Element {self.tag} {'.'.join(self.classes)}>"


def div_with_class(name: str) -> Callable[[Element], bool]:
    return lambda el: el.tag == 'div' and el.has_class(name)


def is_span(el: Element) -> bool:
    return el.tag == 'span'


class _TreeBuilder(HTMLParser):
    """Builds an Element tree, tolerating unclosed and stray tags."""

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.root = Element('#document')
        self._stack = [self.root]
        self._skip_depth = 0

    def handle_starttag(self, tag, attrs):
        if self._skip_depth:
            if tag in SKIPPED_ELEMENTS:
                self._skip_depth += 1
            return
        if tag in SKIPPED_ELEMENTS:
            self._skip_depth = 1
            return

        class_attr = next((value for name, value in attrs if name == 'class'), None) or ''
        element = Element(tag, tuple(class_attr.split()))
        self._stack[-1].children.append(element)
        if tag not in VOID_ELEMENTS:
            self._stack.append(element)

    def handle_startendtag(self, tag, attrs):
        if self._skip_depth:
            return
        class_attr = next((value for name, value in attrs if name == 'class'), None) or ''
        self._stack[-1].children.append(Element(tag, tuple(class_attr.split())))

    def handle_endtag(self, tag):
        if self._skip_depth:
            if tag in SKIPPED_ELEMENTS:
                self._skip_depth -= 1
            return
        # Close up to the nearest open element with this tag; ignore stray end tags
        for index in range(len(self._stack) - 1, 0, -1):
            if self._stack[index].tag == tag:
                del self._stack[index:]
                return

    def handle_data(self, data):
        if not self._skip_depth and data:
            self._stack[-1].children.append(data)


def parse_html(html: str) -> Element:
    """Parse HTML into an Element tree rooted at a ``#document`` element."""
    builder = _TreeBuilder()
    builder.feed(html or '')
    builder.close()
    return builder.root


@dataclass
class InfoLine:
    """A line of order information, usually ``Label: value``."""
    label: str
    value: str = ''

    def render(self) -> str:
        return f"{self.label} {self.value}" if self.value else self.label


@dataclass
class PaymentsBlock:
    title: Optional[str] = None
    rows: List[Tuple[str, str]] = field(default_factory=list)
    change: Optional[Tuple[str, str]] = None


@dataclass
class NotesBlock:
    title: Optional[str] = None
    text: Optional[str] = None


@dataclass
class ReceiptModel:
    """Structured receipt sections extracted from job HTML."""
    title: Optional[str] = None
    info_lines: List[InfoLine] = field(default_factory=list)
    header: Optional[Tuple[str, str, str]] = None
    items: List[Tuple[str, str, str]] = field(default_factory=list)
    totals: List[Tuple[str, str]] = field(default_factory=list)
    payments: Optional[PaymentsBlock] = None
    notes: Optional[NotesBlock] = None
    footer: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.title or self.info_lines or self.header or self.items
                    or self.totals or self.payments or self.notes or self.footer)


def _span_texts(row: Element) -> List[str]:
    return [span.text for span in row.find_all(is_span)]


def _pair(row: Element) -> Optional[Tuple[str, str]]:
    spans = _span_texts(row)
    if len(spans) < 2:
        return None
    return spans[0], spans[1]


def extract_title(root: Element) -> Optional[str]:
    title = root.find(div_with_class('title'))
    if title is None:
        return None
    return title.text or None


def extract_info_lines(root: Element) -> List[InfoLine]:
    """Read ``<strong>Label</strong> value`` pairs and ``info-line`` texts from the order info block."""
    block = root.find(div_with_class('order-info'))
    if block is None:
        return []

    lines: List[InfoLine] = []
    for parent in [block] + block.find_all(lambda el: True):
        children = parent.children
        for index, child in enumerate(children):
            if not (isinstance(child, Element) and child.tag in ('strong', 'b')):
                continue
            label = child.text
            # The value is the text run directly after the label
            value = ''
            if index + 1 < len(children) and isinstance(children[index + 1], str):
                value = clean_text(children[index + 1])
            if label and value:
                if not label.endswith(':'):
                    label += ':'
                lines.append(InfoLine(label, value))

    rendered = '\n'.join(line.render() for line in lines)
    for info_line in block.find_all(div_with_class('info-line')):
        if info_line.find(lambda el: el.tag in ('strong', 'b')) is not None:
            continue
        text = info_line.text
        if text and text not in rendered:
            lines.append(InfoLine(text))
            rendered += '\n' + text
    return lines


def extract_items(root: Element) -> Tuple[Optional[Tuple[str, str, str]], List[Tuple[str, str, str]]]:
    """
    Read the item table.

    Returns:
        (header, rows): the first item row is the column header; data rows
        with an empty first column are skipped.
    """
    rows = root.find_all(div_with_class('item-row'))
    if not rows:
        return None, []

    header = None
    header_spans = _span_texts(rows[0])
    if len(header_spans) >= 3 and header_spans[0]:
        header = (header_spans[0], header_spans[1], header_spans[2])

    items = []
    for row in rows[1:]:
        spans = _span_texts(row)
        if len(spans) < 3 or not spans[0]:
            continue
        items.append((spans[0], spans[1], spans[2]))
    return header, items


def extract_totals(root: Element) -> List[Tuple[str, str]]:
    block = root.find(div_with_class('totals'))
    if block is None:
        return []

    totals = []
    for row in block.find_all(lambda el: el.tag == 'div' and any('total' in c for c in el.classes)):
        pair = _pair(row)
        if pair and pair[0]:
            totals.append(pair)
    return totals


def extract_payments(root: Element) -> Optional[PaymentsBlock]:
    block = root.find(div_with_class('payments'))
    if block is None:
        return None
    if block.find(lambda el: el.has_class('payment-row') or el.has_class('payment-info')) is None:
        return None

    payments = PaymentsBlock()
    section_title = block.find(div_with_class('section-title'))
    if section_title is not None and section_title.text:
        payments.title = section_title.text

    for row in block.find_all(div_with_class('payment-row')):
        pair = _pair(row)
        if pair and pair[0]:
            payments.rows.append(pair)

    change_line = block.find(div_with_class('change-line'))
    if change_line is not None:
        payments.change = _pair(change_line)
    return payments


def extract_notes(root: Element) -> Optional[NotesBlock]:
    block = root.find(div_with_class('order-notes-section'))
    if block is None:
        return None

    title = block.find(div_with_class('section-title'))
    body = block.find(div_with_class('order-notes'))
    notes = NotesBlock(
        title=(title.text or None) if title is not None else None,
        text=(body.text or None) if body is not None else None,
    )
    if not notes.title and not notes.text:
        return None
    return notes


def extract_footer(root: Element) -> List[str]:
    block = root.find(div_with_class('footer'))
    if block is None:
        return []

    lines = []
    for name in ('footer-message', 'footer-website'):
        part = block.find(div_with_class(name))
        if part is not None and part.text:
            lines.append(part.text)
    return lines


def parse_receipt(html: str) -> ReceiptModel:
    """Extract every known section from job HTML."""
    root = parse_html(html)
    header, items = extract_items(root)
    return ReceiptModel(
        title=extract_title(root),
        info_lines=extract_info_lines(root),
        header=header,
        items=items,
        totals=extract_totals(root),
        payments=extract_payments(root),
        notes=extract_notes(root),
        footer=extract_footer(root),
    )
