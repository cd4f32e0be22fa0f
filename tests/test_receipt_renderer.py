# Tests for receipt HTML rendering

from datetime import datetime

import pytest

from receipt_printer.errors import RenderValidationFailed
from receipt_printer.models import ReceiptData, ReceiptItem
from receipt_printer.receipt_renderer import ReceiptLocale, ReceiptRenderer, render_receipt


def make_receipt(**overrides):
    fields = dict(
        items=[
            ReceiptItem(name='Kopi Susu', quantity=2, price=15000),
            ReceiptItem(name='Roti Bakar', quantity=1, price=12500),
        ],
        total=37500,
        discount=5000,
        timestamp=datetime(2026, 10, 19, 14, 5, 9),
        cashier='Sari',
        customer_name='Budi',
        payment_method='Cash',
        paid_amount=50000,
        change=12500,
    )
    fields.update(overrides)
    return ReceiptData(**fields)


class TestReceiptRenderer:
    """Test thermal receipt markup"""

    def setup_method(self):
        self.renderer = ReceiptRenderer()

    def test_contains_every_item(self):
        markup = self.renderer.render(make_receipt())

        assert 'Kopi Susu' in markup
        assert 'Roti Bakar' in markup
        assert '<span>2 x 15.000</span><span>Rp 30.000</span>' in markup

    def test_totals_block(self):
        markup = self.renderer.render(make_receipt())

        # subtotal - discount == total
        assert '<span>Subtotal:</span><span>Rp 42.500</span>' in markup
        assert '<span>Diskon:</span><span>-Rp 5.000</span>' in markup
        assert '<span>TOTAL:</span><span>Rp 37.500</span>' in markup
        assert '<span>Bayar (Cash):</span><span>Rp 50.000</span>' in markup
        assert '<span>Kembali:</span><span>Rp 12.500</span>' in markup

    def test_header_lines(self):
        markup = self.renderer.render(make_receipt())

        assert 'Tanggal: 19/10/2026' in markup
        assert 'Waktu: 14.05.09' in markup
        assert 'Kasir: Sari' in markup
        assert 'Pelanggan: Budi' in markup
        assert 'size: 58mm auto' in markup

    def test_no_discount_line_without_discount(self):
        markup = self.renderer.render(make_receipt(discount=0, total=42500))

        assert 'Diskon' not in markup
        assert '<span>TOTAL:</span><span>Rp 42.500</span>' in markup

    def test_defaults_for_missing_fields(self):
        markup = self.renderer.render(make_receipt(cashier=None, customer_name=None,
                                                   payment_method=None, paid_amount=None, change=None))

        assert 'Kasir: Admin' in markup
        assert 'Pelanggan' not in markup
        assert '<span>Bayar (Cash):</span><span>Rp 37.500</span>' in markup
        assert '<span>Kembali:</span><span>Rp 0</span>' in markup

    def test_deterministic(self):
        data = make_receipt()

        assert self.renderer.render(data) == self.renderer.render(data)

    def test_escapes_markup(self):
        markup = self.renderer.render(make_receipt(
            items=[ReceiptItem(name='<b>Teh & Gula</b>', quantity=1, price=5000)], total=5000, discount=0))

        assert '&lt;b&gt;Teh &amp; Gula&lt;/b&gt;' in markup
        assert '<b>Teh' not in markup

    def test_empty_items_rejected(self):
        with pytest.raises(RenderValidationFailed):
            self.renderer.render(make_receipt(items=[]))

    def test_non_numeric_total_rejected(self):
        with pytest.raises(RenderValidationFailed):
            self.renderer.render(make_receipt(total='37500'))

    def test_custom_locale(self):
        locale = ReceiptLocale(currency='$', thousands_sep=',', labels=dict(
            ReceiptLocale().labels, total='TOTAL DUE'))
        markup = ReceiptRenderer(locale).render(make_receipt(total=1234567, discount=0))

        assert '<span>TOTAL DUE:</span><span>$ 1,234,567</span>' in markup


class TestRenderReceiptFromDict:
    def test_ui_payload(self):
        payload = {
            'items': [
                {'product': {'name': 'Nasi Goreng', 'selling_price': 25000}, 'quantity': 2},
                {'name': 'Es Teh', 'price': 5000, 'quantity': 1},
            ],
            'total': 55000,
            'timestamp': '2026-10-19T08:30:00',
            'customer': {'name': 'Ani'},
            'paymentMethod': 'QRIS',
            'paidAmount': 55000,
            'company_name': 'WARUNG MAJU',
        }

        markup = render_receipt(payload)

        assert 'Nasi Goreng' in markup
        assert 'Es Teh' in markup
        assert 'WARUNG MAJU' in markup
        assert 'Pelanggan: Ani' in markup
        assert '<span>Bayar (QRIS):</span><span>Rp 55.000</span>' in markup

    def test_payload_without_items(self):
        with pytest.raises(RenderValidationFailed):
            render_receipt({'items': [], 'total': 1000})

    def test_payload_missing_total(self):
        with pytest.raises(RenderValidationFailed):
            render_receipt({'items': [{'name': 'A', 'price': 1000, 'quantity': 1}]})
