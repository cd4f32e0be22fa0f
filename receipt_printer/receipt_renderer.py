# Receipt Renderer - HTML receipt layout for 58mm thermal rolls
# One fixed locale per renderer; Indonesian by default

import html
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from .errors import RenderValidationFailed
from .models import ReceiptData

logger = logging.getLogger(__name__)


INDONESIAN_LABELS = {
    'date': 'Tanggal',
    'time': 'Waktu',
    'cashier': 'Kasir',
    'customer': 'Pelanggan',
    'subtotal': 'Subtotal',
    'discount': 'Diskon',
    'total': 'TOTAL',
    'paid': 'Bayar',
    'change': 'Kembali',
    'default_cashier': 'Admin',
    'default_payment': 'Cash',
    'no_returns': 'Barang yang sudah dibeli\ntidak dapat dikembalikan',
}


@dataclass(frozen=True)
class ReceiptLocale:
    currency: str = 'Rp'
    thousands_sep: str = '.'
    date_format: str = '%d/%m/%Y'
    time_format: str = '%H.%M.%S'
    labels: Dict[str, str] = field(default_factory=lambda: dict(INDONESIAN_LABELS))

    def number(self, value) -> str:
        """Integer with thousands separators: 12500 -> '12.500'"""
        amount = int(round(value))
        grouped = f"{abs(amount):,}".replace(',', self.thousands_sep)
        return f"-{grouped}" if amount < 0 else grouped

    def money(self, value) -> str:
        if value < 0:
            return f"-{self.currency} {self.number(-value)}"
        return f"{self.currency} {self.number(value)}"


RECEIPT_CSS = """
        @page {
          size: 58mm auto;
          margin: 2mm;
        }
        body {
          font-family: 'Courier New', monospace;
          font-size: 10px;
          line-height: 1.2;
          margin: 0;
          padding: 2mm;
          width: 54mm;
        }
        .center { text-align: center; }
        .bold { font-weight: bold; }
        .line { border-bottom: 1px dashed #000; margin: 2px 0; }
        .item { display: flex; justify-content: space-between; margin: 1px 0; }
        .total { font-weight: bold; font-size: 11px; }
"""


class ReceiptRenderer:
    """Turns ReceiptData into printable HTML markup"""

    def __init__(self, locale: Optional[ReceiptLocale] = None):
        self.locale = locale or ReceiptLocale()

    def render(self, data: ReceiptData) -> str:
        if not isinstance(data, ReceiptData):
            raise RenderValidationFailed(f'Expected ReceiptData, got {type(data).__name__}')
        data.validate()

        loc = self.locale
        labels = loc.labels
        parts = [
            '<!DOCTYPE html>',
            '<html>',
            '<head>',
            '<meta charset="utf-8">',
            f'<style>{RECEIPT_CSS}</style>',
            '</head>',
            '<body>',
            _div(data.company_name, 'center bold'),
            _div(data.company_address, 'center'),
            _div(data.company_phone, 'center'),
            _LINE,
            _div(f"{labels['date']}: {data.timestamp.strftime(loc.date_format)}"),
            _div(f"{labels['time']}: {data.timestamp.strftime(loc.time_format)}"),
            _div(f"{labels['cashier']}: {data.cashier or labels['default_cashier']}"),
        ]
        if data.customer_name:
            parts.append(_div(f"{labels['customer']}: {data.customer_name}"))
        parts.append(_LINE)

        for item in data.items:
            parts.append(_row(item.name))
            parts.append(_row(f"{loc.number(item.quantity)} x {loc.number(item.price)}",
                              loc.money(item.line_total)))

        discount = data.discount or 0
        subtotal = data.total + discount
        parts.append(_LINE)
        parts.append(_row(f"{labels['subtotal']}:", loc.money(subtotal), 'item total'))
        if discount > 0:
            parts.append(_row(f"{labels['discount']}:", loc.money(-discount)))
        parts.append(_row(f"{labels['total']}:", loc.money(data.total), 'item total'))

        paid = data.paid_amount if data.paid_amount is not None else data.total
        method = data.payment_method or labels['default_payment']
        parts.append(_row(f"{labels['paid']} ({method}):", loc.money(paid)))
        parts.append(_row(f"{labels['change']}:", loc.money(data.change or 0)))

        parts.append(_LINE)
        parts.append(_div(data.receipt_footer, 'center'))
        for line in labels['no_returns'].splitlines():
            parts.append(_div(line, 'center'))
        parts.extend(['</body>', '</html>'])

        return '\n'.join(parts) + '\n'


_LINE = '<div class="line"></div>'


def _div(text: str, css_class: Optional[str] = None) -> str:
    attr = f' class="{css_class}"' if css_class else ''
    return f'<div{attr}>{html.escape(str(text))}</div>'


def _row(left: str, right: Optional[str] = None, css_class: str = 'item') -> str:
    cells = f'<span>{html.escape(left)}</span>'
    if right is not None:
        cells += f'<span>{html.escape(right)}</span>'
    return f'<div class="{css_class}">{cells}</div>'


def render_receipt(data, locale: Optional[ReceiptLocale] = None) -> str:
    """Render a ReceiptData (or its dict form) to HTML"""
    if isinstance(data, dict):
        data = ReceiptData.from_dict(data)
    markup = ReceiptRenderer(locale).render(data)
    logger.debug(f"Rendered receipt with {len(data.items)} items ({len(markup)} chars)")
    return markup
