# Models - Data model for Receipt Print Agent
# Print requests, printer descriptors, attempts and receipt records

import time
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import PipelineExhausted, RenderValidationFailed


class PrinterStatus(str, Enum):
    IDLE = 'idle'
    UNKNOWN = 'unknown'
    OFFLINE = 'offline'


class Strategy(str, Enum):
    DIRECT = 'direct'
    DEFAULT_FALLBACK = 'defaultFallback'
    PDF_INTERMEDIATE = 'pdfIntermediate'
    EXTERNAL_VIEWER = 'externalViewer'


class Outcome(str, Enum):
    SUCCESS = 'success'
    FAILURE = 'failure'


@dataclass
class PrinterDescriptor:
    """A printer as seen by one discovery call"""
    name: str
    status: PrinterStatus = PrinterStatus.UNKNOWN
    is_default: bool = False
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'status': self.status.value,
            'isDefault': self.is_default,
            'description': self.description or '',
        }


@dataclass(frozen=True)
class PrintRequest:
    """Immutable print request; content is the markup to print"""
    content: str
    printer_name: Optional[str] = None
    copies: int = 1
    scale_factor: int = 85
    silent: bool = True
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=time.time)

    def __post_init__(self):
        if not isinstance(self.content, str) or not self.content.strip():
            raise RenderValidationFailed('Invalid content - must be non-empty string')
        if self.printer_name is not None and not isinstance(self.printer_name, str):
            raise RenderValidationFailed(f'printer name must be a string, got {self.printer_name!r}')
        if not isinstance(self.copies, int) or self.copies < 1:
            raise RenderValidationFailed(f'copies must be >= 1, got {self.copies!r}')
        if not isinstance(self.scale_factor, int) or self.scale_factor <= 0:
            raise RenderValidationFailed(f'scale_factor must be a positive percentage, got {self.scale_factor!r}')


@dataclass
class PrintAttempt:
    """One strategy tried while resolving a PrintRequest"""
    strategy: Strategy
    outcome: Outcome
    reason: Optional[str] = None
    printer_name: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == Outcome.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            'strategy': self.strategy.value,
            'outcome': self.outcome.value,
            'reason': self.reason,
            'printerName': self.printer_name,
        }


@dataclass
class PrintResult:
    """Terminal result of one PrintRequest"""
    success: bool
    strategy_used: Optional[str] = None
    attempts: List[PrintAttempt] = field(default_factory=list)
    pdf_path: Optional[str] = None

    @property
    def message(self) -> str:
        if self.success:
            return f'Print sent via {self.strategy_used}'
        for attempt in reversed(self.attempts):
            if attempt.reason:
                return attempt.reason
        return 'Print failed'

    def raise_for_status(self):
        """Raise PipelineExhausted if no strategy succeeded"""
        if not self.success:
            raise PipelineExhausted(self.message, self.attempts)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'success': self.success,
            'strategyUsed': self.strategy_used,
            'attempts': [a.to_dict() for a in self.attempts],
        }
        if self.pdf_path:
            result['pdfPath'] = self.pdf_path
        return result


@dataclass
class TempArtifact:
    """A temp file owned by one print request"""
    path: str
    created_at: float = field(default_factory=time.time)
    owner: Optional[str] = None


@dataclass
class ReceiptItem:
    name: str
    quantity: int
    price: float

    @property
    def line_total(self) -> float:
        return self.quantity * self.price


@dataclass
class ReceiptData:
    """Structured transaction record handed over by the POS UI"""
    items: List[ReceiptItem]
    total: float
    discount: float = 0
    timestamp: datetime = field(default_factory=datetime.now)
    cashier: Optional[str] = None
    customer_name: Optional[str] = None
    payment_method: Optional[str] = None
    paid_amount: Optional[float] = None
    change: Optional[float] = None
    company_name: str = 'KASIR POS SYSTEM'
    company_address: str = 'Jl. Contoh No. 123'
    company_phone: str = 'Telp: 021-12345678'
    receipt_footer: str = 'Terima kasih atas kunjungan Anda!'

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReceiptData':
        """Build from the UI payload; items may nest name/price under 'product'"""
        if not isinstance(data, dict):
            raise RenderValidationFailed('Receipt data must be an object')

        raw_items = data.get('items') or []
        if not isinstance(raw_items, list):
            raise RenderValidationFailed('Receipt items must be a list')

        items = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                raise RenderValidationFailed(f'Invalid receipt item: {raw!r}')
            product = raw.get('product') or {}
            if not isinstance(product, dict):
                raise RenderValidationFailed(f'Invalid product for receipt item: {raw!r}')
            name = product.get('name') or raw.get('name')
            price = product.get('selling_price')
            if price is None:
                price = raw.get('price')
            if not name or not _is_number(price):
                raise RenderValidationFailed(f'Invalid receipt item: {raw!r}')
            quantity = raw.get('quantity', 1)
            if not _is_number(quantity):
                raise RenderValidationFailed(f'Invalid quantity for item {name!r}')
            items.append(ReceiptItem(name=str(name), quantity=quantity, price=price))

        customer = data.get('customer') or data.get('customer_name')
        if isinstance(customer, dict):
            customer = customer.get('name')

        kwargs = {
            'items': items,
            'total': data.get('total'),
            'discount': data.get('discount') or 0,
            'cashier': data.get('cashier'),
            'customer_name': customer,
            'payment_method': data.get('paymentMethod') or data.get('payment_method'),
            'paid_amount': data.get('paidAmount', data.get('paid_amount')),
            'change': data.get('change'),
        }
        timestamp = data.get('timestamp')
        if timestamp is not None:
            kwargs['timestamp'] = _parse_timestamp(timestamp)
        for key in ('company_name', 'company_address', 'company_phone', 'receipt_footer'):
            if data.get(key):
                kwargs[key] = data[key]

        receipt = cls(**kwargs)
        receipt.validate()
        return receipt

    def validate(self):
        if not self.items:
            raise RenderValidationFailed('Receipt must contain at least one item')
        if not _is_number(self.total):
            raise RenderValidationFailed(f'Receipt total must be numeric, got {self.total!r}')
        if not _is_number(self.discount):
            raise RenderValidationFailed(f'Receipt discount must be numeric, got {self.discount!r}')
        for label, value in (('paid amount', self.paid_amount), ('change', self.change)):
            if value is not None and not _is_number(value):
                raise RenderValidationFailed(f'Receipt {label} must be numeric, got {value!r}')

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        return data


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if _is_number(value):
        # Epoch milliseconds from the UI
        try:
            return datetime.fromtimestamp(value / 1000)
        except (OverflowError, OSError, ValueError):
            raise RenderValidationFailed(f'Receipt timestamp out of range: {value!r}')
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise RenderValidationFailed(f'Invalid receipt timestamp: {value!r}')
