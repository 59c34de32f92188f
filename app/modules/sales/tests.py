"""
Tests para la lectura de pagos y ventas

- Conversión del JSON de pago a su variante tipada
- Totales con valores ausentes
- Consultas por ventana de tiempo de SaleReader
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from pydantic import ValidationError

from app.modules.sales.payments import (
    CashBsPayment, CashUsdPayment, SplitPayment, FiaoPayment, UnrecognizedPayment,
    parse_payment, parse_totals, method_code
)
from app.modules.sales.repository import SaleReader


class TestParsePayment:
    """Tests de parse_payment"""

    def test_none_is_no_payment(self):
        assert parse_payment(None) is None

    def test_cash_bs_with_tender(self):
        payment = parse_payment({
            "method": "CASH_BS",
            "cash_payment_bs": {"received_bs": "100.00", "change_bs": "5.50"}
        })
        assert isinstance(payment, CashBsPayment)
        assert payment.cash_payment_bs.received_bs == Decimal("100.00")
        assert payment.cash_payment_bs.change_bs == Decimal("5.50")

    def test_cash_usd_without_tender(self):
        payment = parse_payment({"method": "CASH_USD"})
        assert isinstance(payment, CashUsdPayment)
        assert payment.cash_payment is None

    def test_split_missing_fields_are_zero(self):
        payment = parse_payment({
            "method": "SPLIT",
            "split": {"cash_bs": 10, "pago_movil_bs": None}
        })
        assert isinstance(payment, SplitPayment)
        assert payment.split.cash_bs == Decimal("10")
        assert payment.split.pago_movil_bs == Decimal("0")
        assert payment.split.other_bs == Decimal("0")

    def test_fiao(self):
        assert isinstance(parse_payment({"method": "FIAO"}), FiaoPayment)

    def test_unknown_method(self):
        payment = parse_payment({"method": "ZELLE"})
        assert isinstance(payment, UnrecognizedPayment)
        assert payment.method == "ZELLE"
        assert method_code(payment) == "ZELLE"

    def test_missing_method_groups_as_other(self):
        payment = parse_payment({"amount": 5})
        assert isinstance(payment, UnrecognizedPayment)
        assert payment.method is None
        assert method_code(payment) == "OTHER"

    def test_invalid_amount_is_rejected(self):
        with pytest.raises(ValidationError):
            parse_payment({"method": "CASH_BS", "cash_payment_bs": {"received_bs": "abc"}})


class TestParseTotals:
    """Tests de parse_totals"""

    def test_none(self):
        assert parse_totals(None) is None

    def test_missing_values_are_zero(self):
        totals = parse_totals({"total_bs": "36.50", "total_usd": None})
        assert totals.total_bs == Decimal("36.50")
        assert totals.total_usd == Decimal("0")


class TestSaleReader:
    """Tests de consultas de ventas"""

    def test_list_cashier_sales_window(self, db_session, store_id, cashier, other_cashier, clock, make_sale):
        start = clock()
        make_sale(store_id, cashier.id, start - timedelta(minutes=1), {"method": "CASH_BS"}, total_bs="1")
        inside = make_sale(store_id, cashier.id, start + timedelta(minutes=5), {"method": "CASH_BS"}, total_bs="2")
        make_sale(store_id, cashier.id, start + timedelta(hours=2), {"method": "CASH_BS"}, total_bs="3")
        make_sale(store_id, other_cashier.id, start + timedelta(minutes=5), {"method": "CASH_BS"}, total_bs="4")
        make_sale(store_id, cashier.id, start + timedelta(minutes=6), None, total_bs="5")

        sales = SaleReader(db_session).list_cashier_sales(
            store_id, cashier.id, since=start, until=start + timedelta(hours=1)
        )

        assert [sale.id for sale in sales] == [inside.id]

    def test_list_cashier_sales_without_upper_bound(self, db_session, store_id, cashier, clock, make_sale):
        start = clock()
        make_sale(store_id, cashier.id, start + timedelta(minutes=5), {"method": "CASH_BS"})
        make_sale(store_id, cashier.id, start + timedelta(days=3), {"method": "CASH_BS"})

        sales = SaleReader(db_session).list_cashier_sales(store_id, cashier.id, since=start)

        assert len(sales) == 2

    def test_count_store_sales_includes_every_cashier(self, db_session, store_id, other_store_id,
                                                      cashier, other_cashier, clock, make_sale):
        start = clock()
        make_sale(store_id, cashier.id, start + timedelta(minutes=1), {"method": "CASH_BS"})
        make_sale(store_id, other_cashier.id, start + timedelta(minutes=2), {"method": "FIAO"})
        make_sale(store_id, cashier.id, start + timedelta(minutes=3), None)
        make_sale(store_id, cashier.id, start - timedelta(minutes=3), {"method": "CASH_BS"})
        make_sale(other_store_id, cashier.id, start + timedelta(minutes=1), {"method": "CASH_BS"})

        assert SaleReader(db_session).count_store_sales(store_id, since=start) == 3
