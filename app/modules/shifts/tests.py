"""
Tests para el módulo de turnos de caja

Cubren:
- Cuadre de caja (totales esperados y totales de corte)
- Ciclo de vida del turno: apertura, cierre con arqueo, listado, resumen
- Cortes X/Z e impresión
- Endpoints REST con contexto de tienda y usuario

Todos los tests validan que los datos estén correctamente scoped por store_id.
"""

import pytest
from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from types import SimpleNamespace
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from app.common.utils import utcnow, MAX_AMOUNT
from app.database.database import Base
from app.modules.shifts.models import Shift, ShiftStatus, CutType
from app.modules.shifts.schemas import ShiftOpen, ShiftClose, ExpectedTotals, CountedTotals, CutTotals
from app.modules.shifts.calculator import compute_expected_totals, compute_cut_totals
from app.modules.shifts.repository import ShiftRepository
from app.modules.shifts.services import ShiftService, ShiftCutService, is_significant_difference


# ===== HELPERS =====

def _shift(bs="0", usd="0"):
    return SimpleNamespace(opening_amount_bs=Decimal(bs), opening_amount_usd=Decimal(usd))


def _sale(payment, total_bs="0", total_usd="0"):
    return SimpleNamespace(payment=payment, totals={"total_bs": total_bs, "total_usd": total_usd})


def _open(db_session, store_id, cashier, clock, bs="0", usd="0", note=None):
    service = ShiftService(db_session, clock=clock)
    return service.open_shift(
        ShiftOpen(opening_amount_bs=Decimal(bs), opening_amount_usd=Decimal(usd), note=note),
        store_id=store_id,
        cashier_id=cashier.id
    )


def _close(db_session, shift, store_id, cashier, clock, counted_bs="0", counted_usd="0", **extra):
    service = ShiftService(db_session, clock=clock)
    return service.close_shift(
        shift.id,
        ShiftClose(counted_bs=Decimal(counted_bs), counted_usd=Decimal(counted_usd), **extra),
        store_id=store_id,
        cashier_id=cashier.id
    )


def _open_count(db_session, store_id, cashier_id):
    return db_session.query(Shift).filter(
        Shift.store_id == store_id,
        Shift.cashier_id == cashier_id,
        Shift.status == ShiftStatus.OPEN
    ).count()


# ===== CALCULADORA: TOTALES ESPERADOS =====

class TestExpectedTotals:
    """Tests de compute_expected_totals"""

    def test_no_sales_returns_opening_amounts(self):
        totals = compute_expected_totals(_shift("150.00", "20.00"), [])
        assert totals == ExpectedTotals(cash_bs=Decimal("150.00"), cash_usd=Decimal("20.00"))

    def test_cash_bs_without_tender_adds_sale_total(self):
        sales = [
            _sale({"method": "CASH_BS"}, total_bs="50.00"),
            _sale({"method": "CASH_BS"}, total_bs="25.25"),
        ]
        totals = compute_expected_totals(_shift("100.00", "10.00"), sales)

        assert totals.cash_bs == Decimal("175.25")
        assert totals.cash_usd == Decimal("10.00")
        assert totals.total_bs == Decimal("75.25")

    def test_cash_bs_change_is_subtracted(self):
        sales = [_sale(
            {"method": "CASH_BS", "cash_payment_bs": {"received_bs": "150", "change_bs": "50"}},
            total_bs="100"
        )]
        totals = compute_expected_totals(_shift(), sales)
        assert totals.cash_bs == Decimal("100.00")

    def test_cash_bs_zero_received_uses_sale_total(self):
        sales = [_sale(
            {"method": "CASH_BS", "cash_payment_bs": {"received_bs": "0", "change_bs": "0"}},
            total_bs="42.10"
        )]
        totals = compute_expected_totals(_shift(), sales)
        assert totals.cash_bs == Decimal("42.10")

    def test_cash_usd_change_is_given_in_bs(self):
        sales = [_sale(
            {"method": "CASH_USD", "cash_payment": {"received_usd": "20", "change_bs": "36.50"}},
            total_bs="700", total_usd="19"
        )]
        totals = compute_expected_totals(_shift("100", "0"), sales)

        assert totals.cash_usd == Decimal("20.00")
        assert totals.cash_bs == Decimal("63.50")
        assert totals.total_usd == Decimal("19.00")

    def test_cash_usd_without_tender_adds_sale_total_usd(self):
        sales = [_sale({"method": "CASH_USD"}, total_bs="365", total_usd="10")]
        totals = compute_expected_totals(_shift(), sales)
        assert totals.cash_usd == Decimal("10.00")
        assert totals.cash_bs == Decimal("0.00")

    def test_electronic_methods(self):
        sales = [
            _sale({"method": "PAGO_MOVIL"}, total_bs="30"),
            _sale({"method": "TRANSFER"}, total_bs="40"),
            _sale({"method": "OTHER"}, total_bs="5"),
        ]
        totals = compute_expected_totals(_shift(), sales)

        assert totals.pago_movil_bs == Decimal("30.00")
        assert totals.transfer_bs == Decimal("40.00")
        assert totals.other_bs == Decimal("5.00")
        assert totals.cash_bs == Decimal("0.00")
        assert totals.total_bs == Decimal("75.00")

    def test_split_distributes_without_double_counting(self):
        sales = [_sale(
            {"method": "SPLIT", "split": {"cash_bs": "40", "pago_movil_bs": "60"}},
            total_bs="100", total_usd="2.74"
        )]
        totals = compute_expected_totals(_shift(), sales)

        assert totals.cash_bs == Decimal("40.00")
        assert totals.pago_movil_bs == Decimal("60.00")
        assert totals.transfer_bs == Decimal("0.00")
        assert totals.total_bs == Decimal("100.00")
        assert totals.total_usd == Decimal("2.74")

    def test_fiao_only_counts_in_totals(self):
        sales = [_sale({"method": "FIAO"}, total_bs="80", total_usd="2")]
        totals = compute_expected_totals(_shift("10", "1"), sales)

        assert totals.cash_bs == Decimal("10.00")
        assert totals.cash_usd == Decimal("1.00")
        assert totals.pago_movil_bs == totals.transfer_bs == totals.other_bs == Decimal("0.00")
        assert totals.total_bs == Decimal("80.00")
        assert totals.total_usd == Decimal("2.00")

    def test_unknown_method_only_counts_in_totals(self):
        sales = [_sale({"method": "ZELLE"}, total_bs="12")]
        totals = compute_expected_totals(_shift(), sales)
        assert totals.other_bs == Decimal("0.00")
        assert totals.total_bs == Decimal("12.00")

    def test_sales_without_payment_or_totals_are_skipped(self):
        sales = [
            SimpleNamespace(payment=None, totals={"total_bs": "10"}),
            SimpleNamespace(payment={"method": "CASH_BS"}, totals=None),
        ]
        totals = compute_expected_totals(_shift("5"), sales)
        assert totals == ExpectedTotals(cash_bs=Decimal("5.00"))

    def test_rounds_half_up_after_each_step(self):
        sales = [
            _sale({"method": "CASH_BS"}, total_bs="0.005"),
            _sale({"method": "CASH_BS"}, total_bs="0.005"),
        ]
        totals = compute_expected_totals(_shift(), sales)
        assert totals.cash_bs == Decimal("0.02")

    def test_is_deterministic(self):
        sales = [
            _sale({"method": "CASH_BS", "cash_payment_bs": {"received_bs": "60", "change_bs": "9.99"}}, total_bs="50.01"),
            _sale({"method": "SPLIT", "split": {"cash_usd": "1", "transfer_bs": "20"}}, total_bs="56.5", total_usd="1.5"),
        ]
        shift = _shift("12.34", "5")
        assert compute_expected_totals(shift, sales) == compute_expected_totals(shift, sales)


# ===== CALCULADORA: TOTALES DE CORTE =====

class TestCutTotals:
    """Tests de compute_cut_totals"""

    def test_empty(self):
        totals = compute_cut_totals([])
        assert totals.sales_count == 0
        assert totals.total_bs == Decimal("0.00")
        assert set(totals.by_payment_method) == {
            "CASH_BS", "CASH_USD", "PAGO_MOVIL", "TRANSFER", "OTHER", "FIAO", "SPLIT"
        }

    def test_groups_by_method(self):
        sales = [
            _sale({"method": "CASH_BS", "cash_payment_bs": {"received_bs": "100", "change_bs": "20"}}, total_bs="80"),
            _sale({"method": "CASH_USD"}, total_bs="365", total_usd="10"),
            _sale({"method": "PAGO_MOVIL"}, total_bs="30"),
            _sale({"method": "FIAO"}, total_bs="15"),
        ]
        totals = compute_cut_totals(sales)

        assert totals.sales_count == 4
        assert totals.total_bs == Decimal("490.00")
        assert totals.total_usd == Decimal("10.00")
        # Sin lógica de recibido/vuelto
        assert totals.cash_bs == Decimal("80.00")
        assert totals.cash_usd == Decimal("10.00")
        assert totals.pago_movil_bs == Decimal("30.00")
        assert totals.by_payment_method["CASH_BS"] == Decimal("80.00")
        assert totals.by_payment_method["CASH_USD"] == Decimal("365.00")
        assert totals.by_payment_method["FIAO"] == Decimal("15.00")

    def test_split_sub_amounts(self):
        sales = [_sale(
            {"method": "SPLIT", "split": {"cash_bs": "10", "cash_usd": "1", "other_bs": "5"}},
            total_bs="51.5", total_usd="1.41"
        )]
        totals = compute_cut_totals(sales)

        assert totals.cash_bs == Decimal("10.00")
        assert totals.cash_usd == Decimal("1.00")
        assert totals.other_bs == Decimal("5.00")
        assert totals.by_payment_method["SPLIT"] == Decimal("51.50")

    def test_missing_method_counts_as_other(self):
        totals = compute_cut_totals([_sale({"reference": "abc"}, total_bs="7")])
        assert totals.by_payment_method["OTHER"] == Decimal("7.00")
        assert totals.other_bs == Decimal("7.00")

    def test_unknown_method_has_no_bucket(self):
        totals = compute_cut_totals([_sale({"method": "ZELLE"}, total_bs="9")])
        assert "ZELLE" not in totals.by_payment_method
        assert totals.total_bs == Decimal("9.00")
        assert totals.other_bs == Decimal("0.00")


# ===== APERTURA =====

class TestOpenShift:
    """Tests de apertura de turno"""

    def test_open_shift(self, db_session, store_id, cashier, clock):
        shift = _open(db_session, store_id, cashier, clock, bs="100.456", usd="20", note="Turno mañana")

        assert shift.status == ShiftStatus.OPEN
        assert shift.store_id == store_id
        assert shift.cashier_id == cashier.id
        assert shift.opening_amount_bs == Decimal("100.46")
        assert shift.opening_amount_usd == Decimal("20.00")
        assert shift.note == "Turno mañana"
        assert shift.closed_at is None
        assert shift.expected_totals is None
        assert shift.difference_bs is None

    def test_second_open_is_conflict(self, db_session, store_id, cashier, clock):
        _open(db_session, store_id, cashier, clock)

        with pytest.raises(HTTPException) as exc_info:
            _open(db_session, store_id, cashier, clock)

        assert exc_info.value.status_code == 409
        assert _open_count(db_session, store_id, cashier.id) == 1

    def test_other_cashier_and_other_store_can_open(self, db_session, store_id, other_store_id,
                                                    cashier, other_cashier, clock):
        _open(db_session, store_id, cashier, clock)
        _open(db_session, store_id, other_cashier, clock)
        _open(db_session, other_store_id, cashier, clock)

        assert _open_count(db_session, store_id, cashier.id) == 1
        assert _open_count(db_session, store_id, other_cashier.id) == 1
        assert _open_count(db_session, other_store_id, cashier.id) == 1

    def test_reopen_after_close(self, db_session, store_id, cashier, clock):
        first = _open(db_session, store_id, cashier, clock)
        clock.advance(hours=8)
        _close(db_session, first, store_id, cashier, clock)
        clock.advance(minutes=5)

        second = _open(db_session, store_id, cashier, clock)

        assert second.id != first.id
        assert _open_count(db_session, store_id, cashier.id) == 1

    def test_unique_index_blocks_concurrent_open(self, db_session, store_id, cashier, clock):
        """Una apertura que pierde la carrera choca con el índice único parcial"""
        _open(db_session, store_id, cashier, clock)

        class StaleRepository(ShiftRepository):
            def find_open_for_cashier(self, store_id, cashier_id, with_cuts=False):
                return None

        service = ShiftService(db_session, shifts=StaleRepository(db_session), clock=clock)
        with pytest.raises(HTTPException) as exc_info:
            service.open_shift(
                ShiftOpen(opening_amount_bs=Decimal("0"), opening_amount_usd=Decimal("0")),
                store_id=store_id,
                cashier_id=cashier.id
            )

        assert exc_info.value.status_code == 409
        assert _open_count(db_session, store_id, cashier.id) == 1

    def test_index_rejects_direct_duplicate(self, db_session, store_id, cashier, clock):
        for _ in range(2):
            db_session.add(Shift(store_id=store_id, cashier_id=cashier.id, opened_at=clock()))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_negative_opening_is_invalid(self):
        with pytest.raises(ValueError):
            ShiftOpen(opening_amount_bs=Decimal("-1"), opening_amount_usd=Decimal("0"))

    @pytest.mark.parametrize("amount", ["1e30", "1e17", "10000000000000000.00"])
    def test_oversized_opening_is_invalid(self, amount):
        with pytest.raises(ValidationError):
            ShiftOpen(opening_amount_bs=amount, opening_amount_usd="0")

    def test_max_amount_is_accepted(self):
        shift_open = ShiftOpen(opening_amount_bs=str(MAX_AMOUNT), opening_amount_usd="0")
        assert shift_open.opening_amount_bs == MAX_AMOUNT

    def test_get_current_shift(self, db_session, store_id, cashier, clock):
        service = ShiftService(db_session, clock=clock)
        assert service.get_current_shift(store_id, cashier.id) is None

        shift = _open(db_session, store_id, cashier, clock)

        current = service.get_current_shift(store_id, cashier.id)
        assert current.id == shift.id
        assert current.cuts == []


# ===== CIERRE =====

class TestCloseShift:
    """Tests de cierre con arqueo"""

    def test_close_computes_expected_and_difference(self, db_session, store_id, cashier, other_cashier,
                                                     clock, make_sale):
        shift = _open(db_session, store_id, cashier, clock, bs="100", usd="10")
        opened = clock()
        make_sale(store_id, cashier.id, opened + timedelta(minutes=10), {"method": "CASH_BS"}, total_bs="50")
        make_sale(store_id, cashier.id, opened + timedelta(minutes=20), {"method": "PAGO_MOVIL"}, total_bs="30")
        make_sale(store_id, cashier.id, opened + timedelta(minutes=30), {"method": "CASH_USD"}, total_bs="182.5", total_usd="5")
        # Fuera de la ventana o de otro cajero
        make_sale(store_id, cashier.id, opened - timedelta(minutes=1), {"method": "CASH_BS"}, total_bs="999")
        make_sale(store_id, other_cashier.id, opened + timedelta(minutes=5), {"method": "CASH_BS"}, total_bs="999")
        clock.advance(hours=8)

        closed = _close(db_session, shift, store_id, cashier, clock,
                        counted_bs="148.50", counted_usd="15", counted_pago_movil_bs="30")

        expected = ExpectedTotals.model_validate(closed.expected_totals)
        assert expected.cash_bs == Decimal("150.00")
        assert expected.cash_usd == Decimal("15.00")
        assert expected.pago_movil_bs == Decimal("30.00")
        assert expected.total_bs == Decimal("262.50")
        assert expected.total_usd == Decimal("5.00")

        counted = CountedTotals.model_validate(closed.counted_totals)
        assert counted.cash_bs == Decimal("148.50")
        assert counted.pago_movil_bs == Decimal("30.00")

        assert closed.status == ShiftStatus.CLOSED
        assert closed.closed_at is not None
        assert closed.closing_amount_bs == Decimal("148.50")
        assert closed.closing_amount_usd == Decimal("15.00")
        assert closed.difference_bs == Decimal("-1.50")
        assert closed.difference_usd == Decimal("0.00")

    def test_exact_count_has_zero_difference(self, db_session, store_id, cashier, clock, make_sale):
        shift = _open(db_session, store_id, cashier, clock)
        make_sale(store_id, cashier.id, clock() + timedelta(minutes=1), {"method": "CASH_BS"}, total_bs="80.10")
        clock.advance(hours=1)

        closed = _close(db_session, shift, store_id, cashier, clock, counted_bs="80.10")

        assert closed.difference_bs == Decimal("0.00")

    def test_excludes_sales_after_close(self, db_session, store_id, cashier, clock, make_sale):
        shift = _open(db_session, store_id, cashier, clock)
        make_sale(store_id, cashier.id, clock() + timedelta(hours=3), {"method": "CASH_BS"}, total_bs="40")
        clock.advance(hours=1)

        closed = _close(db_session, shift, store_id, cashier, clock)

        assert ExpectedTotals.model_validate(closed.expected_totals).cash_bs == Decimal("0.00")

    def test_ceiling_rejects_excessive_count(self, db_session, store_id, cashier, clock, make_sale):
        shift = _open(db_session, store_id, cashier, clock)
        make_sale(store_id, cashier.id, clock() + timedelta(minutes=1), {"method": "CASH_BS"}, total_bs="100")
        clock.advance(hours=1)

        with pytest.raises(HTTPException) as exc_info:
            _close(db_session, shift, store_id, cashier, clock, counted_bs="201")

        assert exc_info.value.status_code == 400
        assert "200.00" in exc_info.value.detail
        db_session.expire_all()
        assert db_session.get(Shift, shift.id).status == ShiftStatus.OPEN

    def test_ceiling_accepts_reasonable_count(self, db_session, store_id, cashier, clock, make_sale):
        shift = _open(db_session, store_id, cashier, clock)
        make_sale(store_id, cashier.id, clock() + timedelta(minutes=1), {"method": "CASH_BS"}, total_bs="100")
        clock.advance(hours=1)

        closed = _close(db_session, shift, store_id, cashier, clock, counted_bs="199")

        assert closed.status == ShiftStatus.CLOSED
        assert closed.difference_bs == Decimal("99.00")

    def test_ceiling_applies_to_usd(self, db_session, store_id, cashier, clock):
        shift = _open(db_session, store_id, cashier, clock, usd="10")
        clock.advance(hours=1)

        with pytest.raises(HTTPException) as exc_info:
            _close(db_session, shift, store_id, cashier, clock, counted_usd="40.01")

        assert exc_info.value.status_code == 400
        assert "USD" in exc_info.value.detail

    def test_close_twice_is_not_found(self, db_session, store_id, cashier, clock):
        shift = _open(db_session, store_id, cashier, clock)
        clock.advance(hours=1)
        _close(db_session, shift, store_id, cashier, clock)

        with pytest.raises(HTTPException) as exc_info:
            _close(db_session, shift, store_id, cashier, clock)

        assert exc_info.value.status_code == 404

    def test_close_other_cashier_shift_is_not_found(self, db_session, store_id, other_store_id,
                                                    cashier, other_cashier, clock):
        shift = _open(db_session, store_id, cashier, clock)

        with pytest.raises(HTTPException) as exc_info:
            _close(db_session, shift, store_id, other_cashier, clock)
        assert exc_info.value.status_code == 404

        with pytest.raises(HTTPException) as exc_info:
            _close(db_session, shift, other_store_id, cashier, clock)
        assert exc_info.value.status_code == 404

    def test_note_is_kept_unless_replaced(self, db_session, store_id, cashier, clock):
        shift = _open(db_session, store_id, cashier, clock, note="apertura")
        clock.advance(hours=1)
        closed = _close(db_session, shift, store_id, cashier, clock)
        assert closed.note == "apertura"

        clock.advance(minutes=1)
        shift = _open(db_session, store_id, cashier, clock, note="apertura")
        clock.advance(hours=1)
        closed = _close(db_session, shift, store_id, cashier, clock, note="faltó sencillo")
        assert closed.note == "faltó sencillo"

    def test_null_optional_counts_are_zero(self):
        close_data = ShiftClose(counted_bs="10", counted_usd="0", counted_transfer_bs=None)
        assert close_data.to_counted_totals().transfer_bs == Decimal("0.00")

    def test_counts_are_rounded_before_sign_check(self):
        close_data = ShiftClose(counted_bs="-0.004", counted_usd="0.005")
        assert close_data.counted_bs == Decimal("0.00")
        assert not close_data.counted_bs.is_signed()
        assert close_data.counted_usd == Decimal("0.01")

        with pytest.raises(ValidationError):
            ShiftClose(counted_bs="-0.005", counted_usd="0")

    @pytest.mark.parametrize("field", [
        "counted_bs", "counted_usd", "counted_pago_movil_bs", "counted_transfer_bs", "counted_other_bs"
    ])
    def test_oversized_count_is_invalid(self, field):
        data = {"counted_bs": "0", "counted_usd": "0", field: "1e30"}
        with pytest.raises(ValidationError):
            ShiftClose(**data)

    def test_failed_verification_rolls_back(self, db_session, store_id, cashier, clock):
        """Si lo releído no coincide con lo enviado, no se guarda nada"""
        shift = _open(db_session, store_id, cashier, clock)
        clock.advance(hours=1)

        class TamperingRepository(ShiftRepository):
            def refresh(self, instance):
                super().refresh(instance)
                if isinstance(instance, Shift) and instance.status == ShiftStatus.CLOSED:
                    instance.closing_amount_bs = Decimal("1.00")

        service = ShiftService(db_session, shifts=TamperingRepository(db_session), clock=clock)
        with pytest.raises(HTTPException) as exc_info:
            service.close_shift(
                shift.id,
                ShiftClose(counted_bs=Decimal("0"), counted_usd=Decimal("0")),
                store_id=store_id,
                cashier_id=cashier.id
            )

        assert exc_info.value.status_code == 500
        db_session.expire_all()
        persisted = db_session.get(Shift, shift.id)
        assert persisted.status == ShiftStatus.OPEN
        assert persisted.closed_at is None


# ===== LISTADO Y RESUMEN =====

class TestListAndSummary:
    """Tests de listado y resumen de turnos"""

    def test_list_most_recent_first(self, db_session, store_id, cashier, other_cashier, clock):
        first = _open(db_session, store_id, cashier, clock)
        clock.advance(hours=1)
        _close(db_session, first, store_id, cashier, clock)
        clock.advance(hours=1)
        second = _open(db_session, store_id, cashier, clock)
        _open(db_session, store_id, other_cashier, clock)

        result = ShiftService(db_session, clock=clock).list_shifts(store_id, cashier.id)

        assert result["total"] == 2
        assert [shift.id for shift in result["shifts"]] == [second.id, first.id]

    def test_list_filters_by_status_and_paginates(self, db_session, store_id, cashier, clock):
        first = _open(db_session, store_id, cashier, clock)
        clock.advance(hours=1)
        _close(db_session, first, store_id, cashier, clock)
        clock.advance(hours=1)
        _open(db_session, store_id, cashier, clock)

        service = ShiftService(db_session, clock=clock)
        closed = service.list_shifts(store_id, cashier.id, status=ShiftStatus.CLOSED)
        page = service.list_shifts(store_id, cashier.id, limit=1, offset=1)

        assert [shift.id for shift in closed["shifts"]] == [first.id]
        assert page["total"] == 2
        assert [shift.id for shift in page["shifts"]] == [first.id]

    def test_summary_of_closed_shift(self, db_session, store_id, cashier, other_cashier, clock, make_sale):
        shift = _open(db_session, store_id, cashier, clock, bs="20")
        opened = clock()
        make_sale(store_id, cashier.id, opened + timedelta(minutes=1), {"method": "CASH_BS"}, total_bs="100")
        make_sale(store_id, other_cashier.id, opened + timedelta(minutes=2), {"method": "CASH_BS"}, total_bs="5")
        clock.advance(hours=1)
        _close(db_session, shift, store_id, cashier, clock, counted_bs="105")
        ShiftCutService(db_session, clock=clock).create_cut_z(shift.id, store_id, cashier.id, cashier.id)

        summary = ShiftService(db_session, clock=clock).get_shift_summary(shift.id, store_id)

        assert summary.shift.id == shift.id
        assert summary.cashier.full_name == "María Pérez"
        assert summary.sales_count == 2
        assert summary.cuts_count == 1
        assert summary.summary.opening.bs == Decimal("20.00")
        assert summary.summary.expected.cash_bs == Decimal("120.00")
        assert summary.summary.counted.cash_bs == Decimal("105.00")
        assert summary.summary.difference.bs == Decimal("-15.00")
        assert summary.summary.has_significant_difference is True

    def test_summary_of_open_shift(self, db_session, store_id, cashier, clock):
        shift = _open(db_session, store_id, cashier, clock)

        summary = ShiftService(db_session, clock=clock).get_shift_summary(shift.id, store_id)

        assert summary.summary.expected is None
        assert summary.summary.counted is None
        assert summary.summary.difference.bs is None
        assert summary.summary.has_significant_difference is False

    def test_summary_other_store_is_not_found(self, db_session, store_id, other_store_id, cashier, clock):
        shift = _open(db_session, store_id, cashier, clock)

        with pytest.raises(HTTPException) as exc_info:
            ShiftService(db_session, clock=clock).get_shift_summary(shift.id, other_store_id)

        assert exc_info.value.status_code == 404

    def test_significant_difference_threshold(self):
        assert is_significant_difference(Decimal("10.00"), Decimal("0")) is False
        assert is_significant_difference(Decimal("-10.01"), None) is True
        assert is_significant_difference(None, Decimal("10.5")) is True
        assert is_significant_difference(None, None) is False


# ===== CORTES =====

class TestShiftCuts:
    """Tests de cortes X/Z"""

    def test_cut_x_on_open_shift(self, db_session, store_id, cashier, clock, make_sale):
        shift = _open(db_session, store_id, cashier, clock)
        opened = clock()
        make_sale(store_id, cashier.id, opened + timedelta(minutes=5), {"method": "CASH_BS"}, total_bs="50")
        make_sale(store_id, cashier.id, opened + timedelta(hours=2), {"method": "CASH_BS"}, total_bs="70")
        clock.advance(hours=1)

        cut = ShiftCutService(db_session, clock=clock).create_cut_x(shift.id, store_id, cashier.id, cashier.id)

        totals = CutTotals.model_validate(cut.totals)
        assert cut.cut_type == CutType.X
        assert cut.shift_id == shift.id
        assert cut.created_by == cashier.id
        assert cut.printed_at is None
        assert cut.sales_count == 1
        assert totals.total_bs == Decimal("50.00")

    def test_cut_x_can_repeat(self, db_session, store_id, cashier, clock, make_sale):
        shift = _open(db_session, store_id, cashier, clock)
        service = ShiftCutService(db_session, clock=clock)
        make_sale(store_id, cashier.id, clock() + timedelta(minutes=1), {"method": "TRANSFER"}, total_bs="10")
        clock.advance(minutes=10)
        service.create_cut_x(shift.id, store_id, cashier.id, cashier.id)
        make_sale(store_id, cashier.id, clock() + timedelta(minutes=1), {"method": "TRANSFER"}, total_bs="15")
        clock.advance(minutes=10)
        service.create_cut_x(shift.id, store_id, cashier.id, cashier.id)

        cuts = service.get_cuts(shift.id, store_id)

        assert [cut.sales_count for cut in cuts] == [1, 2]
        assert CutTotals.model_validate(cuts[1].totals).transfer_bs == Decimal("25.00")

    def test_cut_x_on_closed_shift_is_not_found(self, db_session, store_id, cashier, clock):
        shift = _open(db_session, store_id, cashier, clock)
        clock.advance(hours=1)
        _close(db_session, shift, store_id, cashier, clock)

        with pytest.raises(HTTPException) as exc_info:
            ShiftCutService(db_session, clock=clock).create_cut_x(shift.id, store_id, cashier.id, cashier.id)

        assert exc_info.value.status_code == 404

    def test_cut_z_requires_closed_shift(self, db_session, store_id, cashier, clock, make_sale):
        shift = _open(db_session, store_id, cashier, clock)
        for minute in range(1, 4):
            make_sale(store_id, cashier.id, clock() + timedelta(minutes=minute), {"method": "CASH_BS"}, total_bs="1")

        with pytest.raises(HTTPException) as exc_info:
            ShiftCutService(db_session, clock=clock).create_cut_z(shift.id, store_id, cashier.id, cashier.id)

        assert exc_info.value.status_code == 404

    def test_cut_z_uses_close_window(self, db_session, store_id, cashier, clock, make_sale):
        shift = _open(db_session, store_id, cashier, clock)
        make_sale(store_id, cashier.id, clock() + timedelta(minutes=30), {"method": "CASH_BS"}, total_bs="60")
        clock.advance(hours=1)
        _close(db_session, shift, store_id, cashier, clock, counted_bs="60")
        make_sale(store_id, cashier.id, clock() + timedelta(minutes=5), {"method": "CASH_BS"}, total_bs="40")
        clock.advance(minutes=10)

        cut = ShiftCutService(db_session, clock=clock).create_cut_z(shift.id, store_id, cashier.id, cashier.id)

        assert cut.cut_type == CutType.Z
        assert cut.sales_count == 1
        assert CutTotals.model_validate(cut.totals).total_bs == Decimal("60.00")

    def test_mark_printed_only_changes_printed_at(self, db_session, store_id, cashier, clock, make_sale):
        shift = _open(db_session, store_id, cashier, clock)
        make_sale(store_id, cashier.id, clock() + timedelta(minutes=1), {"method": "OTHER"}, total_bs="3")
        clock.advance(minutes=5)
        service = ShiftCutService(db_session, clock=clock)
        cut = service.create_cut_x(shift.id, store_id, cashier.id, cashier.id)
        before = (dict(cut.totals), cut.cut_at, cut.cut_type, cut.shift_id, cut.sales_count)

        clock.advance(minutes=1)
        first_print = service.mark_cut_as_printed(cut.id, shift.id, store_id).printed_at
        clock.advance(minutes=1)
        second = service.mark_cut_as_printed(cut.id, shift.id, store_id)

        assert first_print is not None
        assert second.printed_at != first_print
        assert (dict(second.totals), second.cut_at, second.cut_type, second.shift_id, second.sales_count) == before

    def test_mark_printed_unknown_cut(self, db_session, store_id, other_store_id, cashier, clock):
        shift = _open(db_session, store_id, cashier, clock)
        service = ShiftCutService(db_session, clock=clock)
        cut = service.create_cut_x(shift.id, store_id, cashier.id, cashier.id)

        with pytest.raises(HTTPException) as exc_info:
            service.mark_cut_as_printed(uuid4(), shift.id)
        assert exc_info.value.status_code == 404

        with pytest.raises(HTTPException) as exc_info:
            service.mark_cut_as_printed(cut.id, uuid4())
        assert exc_info.value.status_code == 404

        with pytest.raises(HTTPException) as exc_info:
            service.mark_cut_as_printed(cut.id, shift.id, other_store_id)
        assert exc_info.value.status_code == 404

    def test_get_cuts_other_store_is_not_found(self, db_session, store_id, other_store_id, cashier, clock):
        shift = _open(db_session, store_id, cashier, clock)

        with pytest.raises(HTTPException) as exc_info:
            ShiftCutService(db_session, clock=clock).get_cuts(shift.id, other_store_id)

        assert exc_info.value.status_code == 404


# ===== ESCENARIO COMPLETO =====

class TestShiftScenario:
    """Apertura, ventas, corte X, cierre y corte Z"""

    def test_full_day(self, db_session, store_id, cashier, clock, make_sale):
        shift = _open(db_session, store_id, cashier, clock)
        cut_service = ShiftCutService(db_session, clock=clock)
        make_sale(store_id, cashier.id, clock() + timedelta(minutes=10), {"method": "CASH_BS"}, total_bs="50")
        make_sale(store_id, cashier.id, clock() + timedelta(minutes=20), {"method": "PAGO_MOVIL"}, total_bs="30")
        clock.advance(hours=1)

        cut_x = cut_service.create_cut_x(shift.id, store_id, cashier.id, cashier.id)
        assert cut_x.sales_count == 2

        clock.advance(minutes=30)
        closed = _close(db_session, shift, store_id, cashier, clock, counted_bs="50", counted_usd="0")

        assert closed.status == ShiftStatus.CLOSED
        assert closed.difference_bs == Decimal("0.00")
        assert ExpectedTotals.model_validate(closed.expected_totals) == ExpectedTotals(
            cash_bs=Decimal("50"), cash_usd=Decimal("0"), pago_movil_bs=Decimal("30"),
            transfer_bs=Decimal("0"), other_bs=Decimal("0"),
            total_bs=Decimal("80"), total_usd=Decimal("0")
        )

        clock.advance(minutes=1)
        cut_z = cut_service.create_cut_z(shift.id, store_id, cashier.id, cashier.id)
        z_totals = CutTotals.model_validate(cut_z.totals)
        assert z_totals.sales_count == 2
        assert z_totals.total_bs == Decimal("80.00")

        assert [cut.cut_type for cut in cut_service.get_cuts(shift.id, store_id)] == [CutType.X, CutType.Z]


# ===== ENDPOINTS =====

class TestShiftEndpoints:
    """Tests de la API REST de turnos"""

    @pytest.fixture
    def headers(self, store_id, cashier):
        return {"X-Store-ID": str(store_id), "X-User-ID": str(cashier.id)}

    def test_missing_store_header(self, client, cashier):
        response = client.get("/api/v1/shifts/current", headers={"X-User-ID": str(cashier.id)})
        assert response.status_code == 400
        assert "X-Store-ID" in response.json()["detail"]

    def test_invalid_user_header(self, client, store_id):
        response = client.get("/api/v1/shifts/current", headers={"X-Store-ID": str(store_id), "X-User-ID": "abc"})
        assert response.status_code == 400

    def test_unknown_user_is_forbidden(self, client, store_id):
        response = client.get("/api/v1/shifts/current", headers={"X-Store-ID": str(store_id), "X-User-ID": str(uuid4())})
        assert response.status_code == 403

    def test_health_does_not_require_store(self, client):
        assert client.get("/health").status_code == 200
        assert client.get("/").status_code == 200

    def test_invalid_store_header(self, client, cashier):
        response = client.get(
            "/api/v1/shifts/current", headers={"X-Store-ID": "tienda-1", "X-User-ID": str(cashier.id)}
        )
        assert response.status_code == 400
        assert "UUID" in response.json()["detail"]

    def test_store_header_is_echoed(self, client, headers, store_id):
        response = client.get("/api/v1/shifts/current", headers=headers)
        assert response.headers["X-Store-ID"] == str(store_id)

    def test_models_are_registered_once(self):
        assert Shift.__module__ == "app.modules.shifts.models"
        assert Base.metadata.tables["shifts"] is Shift.__table__

    def test_current_without_shift_is_null(self, client, headers):
        response = client.get("/api/v1/shifts/current", headers=headers)
        assert response.status_code == 200
        assert response.json() is None

    def test_open_and_conflict(self, client, headers, cashier):
        payload = {"opening_amount_bs": "100", "opening_amount_usd": "5"}

        response = client.post("/api/v1/shifts/open", json=payload, headers=headers)
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "open"
        assert data["cashier_id"] == str(cashier.id)
        assert Decimal(data["opening_amount_bs"]) == Decimal("100")

        response = client.post("/api/v1/shifts/open", json=payload, headers=headers)
        assert response.status_code == 409

    def test_open_negative_amount_is_422(self, client, headers):
        response = client.post(
            "/api/v1/shifts/open",
            json={"opening_amount_bs": "-1", "opening_amount_usd": "0"},
            headers=headers
        )
        assert response.status_code == 422

    def test_close_rejects_negative_count(self, client, headers):
        shift_id = client.post(
            "/api/v1/shifts/open", json={"opening_amount_bs": "0", "opening_amount_usd": "0"}, headers=headers
        ).json()["id"]

        response = client.post(
            f"/api/v1/shifts/{shift_id}/close",
            json={"counted_bs": "-5", "counted_usd": "0"},
            headers=headers
        )
        assert response.status_code == 422

    def test_oversized_amounts_are_422(self, client, headers):
        response = client.post(
            "/api/v1/shifts/open",
            json={"opening_amount_bs": "1e17", "opening_amount_usd": "0"},
            headers=headers
        )
        assert response.status_code == 422

        shift_id = client.post(
            "/api/v1/shifts/open", json={"opening_amount_bs": "0", "opening_amount_usd": "0"}, headers=headers
        ).json()["id"]

        response = client.post(
            f"/api/v1/shifts/{shift_id}/close",
            json={"counted_bs": "1e30", "counted_usd": "0"},
            headers=headers
        )
        assert response.status_code == 422

        current = client.get("/api/v1/shifts/current", headers=headers).json()
        assert current["status"] == "open"

    def test_full_flow(
self, client, headers, store_id, cashier, make_sale):
        shift = client.post(
            "/api/v1/shifts/open", json={"opening_amount_bs": "0", "opening_amount_usd": "0"}, headers=headers
        ).json()
        make_sale(store_id, cashier.id, utcnow(), {"method": "CASH_BS"}, total_bs="50")
        make_sale(store_id, cashier.id, utcnow(), {"method": "PAGO_MOVIL"}, total_bs="30")

        response = client.post(f"/api/v1/shifts/{shift['id']}/cuts/x", headers=headers)
        assert response.status_code == 201
        cut_x = response.json()
        assert cut_x["cut_type"] == "X"
        assert cut_x["sales_count"] == 2
        assert cut_x["creator"]["email"] == cashier.email

        current = client.get("/api/v1/shifts/current", headers=headers).json()
        assert current["id"] == shift["id"]
        assert len(current["cuts"]) == 1

        response = client.post(f"/api/v1/shifts/{shift['id']}/cuts/z", headers=headers)
        assert response.status_code == 404

        response = client.post(
            f"/api/v1/shifts/{shift['id']}/close",
            json={"counted_bs": "500", "counted_usd": "0"},
            headers=headers
        )
        assert response.status_code == 400
        assert "Máximo razonable" in response.json()["detail"]

        response = client.post(
            f"/api/v1/shifts/{shift['id']}/close",
            json={"counted_bs": "50", "counted_usd": "0", "note": "sin novedad"},
            headers=headers
        )
        assert response.status_code == 200
        closed = response.json()
        assert closed["status"] == "closed"
        assert Decimal(closed["difference_bs"]) == Decimal("0")
        assert Decimal(closed["expected_totals"]["pago_movil_bs"]) == Decimal("30")
        assert closed["note"] == "sin novedad"

        response = client.post(f"/api/v1/shifts/{shift['id']}/cuts/z", headers=headers)
        assert response.status_code == 201
        cut_z = response.json()
        assert Decimal(cut_z["totals"]["total_bs"]) == Decimal("80")

        response = client.post(f"/api/v1/shifts/{shift['id']}/cuts/{cut_z['id']}/print", headers=headers)
        assert response.status_code == 200
        assert response.json()["printed_at"] is not None

        cuts = client.get(f"/api/v1/shifts/{shift['id']}/cuts", headers=headers).json()
        assert [cut["cut_type"] for cut in cuts] == ["X", "Z"]

        summary = client.get(f"/api/v1/shifts/{shift['id']}/summary", headers=headers).json()
        assert summary["sales_count"] == 2
        assert summary["cuts_count"] == 2
        assert summary["summary"]["has_significant_difference"] is False

        listing = client.get("/api/v1/shifts/", params={"status": "closed"}, headers=headers).json()
        assert listing["total"] == 1
        assert listing["shifts"][0]["id"] == shift["id"]

    def test_shift_of_other_store_is_hidden(self, client, headers, other_store_id, cashier):
        shift_id = client.post(
            "/api/v1/shifts/open", json={"opening_amount_bs": "0", "opening_amount_usd": "0"}, headers=headers
        ).json()["id"]
        other_headers = {"X-Store-ID": str(other_store_id), "X-User-ID": str(cashier.id)}

        assert client.get(f"/api/v1/shifts/{shift_id}/summary", headers=other_headers).status_code == 404
        assert client.get(f"/api/v1/shifts/{shift_id}/cuts", headers=other_headers).status_code == 404
        assert client.post(
            f"/api/v1/shifts/{shift_id}/close",
            json={"counted_bs": "0", "counted_usd": "0"},
            headers=other_headers
        ).status_code == 404
