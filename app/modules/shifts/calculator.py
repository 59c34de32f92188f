"""
Cuadre de caja de un turno

Funciones puras: reciben el turno y las ventas ya consultadas y devuelven los
totales, sin tocar la base de datos. Todos los acumuladores se redondean a
centavos después de cada suma o resta.

Hay dos vistas sobre las mismas ventas:

- compute_expected_totals: reconstruye el efectivo que debería haber en la
  gaveta (fondo inicial + efectivo recibido - vuelto entregado) y los montos
  por medio electrónico. Se usa al cerrar el turno.
- compute_cut_totals: ingresos por método de pago, sin lógica de
  recibido/vuelto. Se usa en los cortes X/Z.
"""

from decimal import Decimal
from typing import Any, Iterable

from app.common.utils import round2
from app.modules.sales.payments import (
    CashBsPayment, CashUsdPayment, PagoMovilPayment, TransferPayment,
    OtherPayment, SplitPayment, UnrecognizedPayment,
    parse_payment, parse_totals, method_code
)
from app.modules.shifts.schemas import ExpectedTotals, CutTotals, empty_payment_buckets


def _add(total: Decimal, amount: Any) -> Decimal:
    return round2(total + round2(amount))


def _sub(total: Decimal, amount: Any) -> Decimal:
    return round2(total - round2(amount))


def compute_expected_totals(shift: Any, sales: Iterable[Any]) -> ExpectedTotals:
    """
    Totales esperados al cierre del turno.

    Args:
        shift: turno (solo se leen opening_amount_bs / opening_amount_usd)
        sales: ventas del turno, con `payment` y `totals` en crudo (JSON)

    Returns:
        ExpectedTotals con cash_bs/cash_usd partiendo del fondo inicial.
        total_bs/total_usd suman el total de todas las ventas, sea cual sea
        el medio de pago (FIAO incluido).
    """
    cash_bs = round2(shift.opening_amount_bs)
    cash_usd = round2(shift.opening_amount_usd)
    pago_movil_bs = round2(0)
    transfer_bs = round2(0)
    other_bs = round2(0)
    total_bs = round2(0)
    total_usd = round2(0)

    for sale in sales:
        payment = parse_payment(sale.payment)
        totals = parse_totals(sale.totals)
        if payment is None or totals is None:
            continue

        sale_bs = round2(totals.total_bs)
        sale_usd = round2(totals.total_usd)
        total_bs = _add(total_bs, sale_bs)
        total_usd = _add(total_usd, sale_usd)

        if isinstance(payment, CashBsPayment):
            tender = payment.cash_payment_bs
            if tender is not None and tender.received_bs:
                cash_bs = _add(cash_bs, tender.received_bs)
                if tender.change_bs and tender.change_bs > 0:
                    cash_bs = _sub(cash_bs, tender.change_bs)
            else:
                cash_bs = _add(cash_bs, sale_bs)

        elif isinstance(payment, CashUsdPayment):
            tender = payment.cash_payment
            if tender is not None and tender.received_usd:
                cash_usd = _add(cash_usd, tender.received_usd)
                # El vuelto de un pago en USD se entrega en Bs
                if tender.change_bs and tender.change_bs > 0:
                    cash_bs = _sub(cash_bs, tender.change_bs)
            else:
                cash_usd = _add(cash_usd, sale_usd)

        elif isinstance(payment, PagoMovilPayment):
            pago_movil_bs = _add(pago_movil_bs, sale_bs)

        elif isinstance(payment, TransferPayment):
            transfer_bs = _add(transfer_bs, sale_bs)

        elif isinstance(payment, OtherPayment):
            other_bs = _add(other_bs, sale_bs)

        elif isinstance(payment, SplitPayment):
            if payment.split is not None:
                cash_bs = _add(cash_bs, payment.split.cash_bs)
                cash_usd = _add(cash_usd, payment.split.cash_usd)
                pago_movil_bs = _add(pago_movil_bs, payment.split.pago_movil_bs)
                transfer_bs = _add(transfer_bs, payment.split.transfer_bs)
                other_bs = _add(other_bs, payment.split.other_bs)

        # FIAO y métodos desconocidos no mueven caja

    return ExpectedTotals(
        cash_bs=cash_bs,
        cash_usd=cash_usd,
        pago_movil_bs=pago_movil_bs,
        transfer_bs=transfer_bs,
        other_bs=other_bs,
        total_bs=total_bs,
        total_usd=total_usd
    )


def compute_cut_totals(sales: Iterable[Any]) -> CutTotals:
    """Totales de un corte X/Z: ingresos por método de pago"""
    sales = list(sales)
    totals = CutTotals(sales_count=len(sales), by_payment_method=empty_payment_buckets())
    by_method = totals.by_payment_method

    for sale in sales:
        payment = parse_payment(sale.payment)
        sale_totals = parse_totals(sale.totals)
        if payment is None or sale_totals is None:
            continue

        sale_bs = round2(sale_totals.total_bs)
        sale_usd = round2(sale_totals.total_usd)
        totals.total_bs = _add(totals.total_bs, sale_bs)
        totals.total_usd = _add(totals.total_usd, sale_usd)

        # Los códigos sin casilla cuentan en los totales pero no aquí
        code = method_code(payment)
        if code in by_method:
            by_method[code] = _add(by_method[code], sale_bs)

        if isinstance(payment, CashBsPayment):
            totals.cash_bs = _add(totals.cash_bs, sale_bs)
        elif isinstance(payment, CashUsdPayment):
            totals.cash_usd = _add(totals.cash_usd, sale_usd)
        elif isinstance(payment, PagoMovilPayment):
            totals.pago_movil_bs = _add(totals.pago_movil_bs, sale_bs)
        elif isinstance(payment, TransferPayment):
            totals.transfer_bs = _add(totals.transfer_bs, sale_bs)
        elif isinstance(payment, OtherPayment) or (
            isinstance(payment, UnrecognizedPayment) and payment.method is None
        ):
            totals.other_bs = _add(totals.other_bs, sale_bs)
        elif isinstance(payment, SplitPayment) and payment.split is not None:
            totals.cash_bs = _add(totals.cash_bs, payment.split.cash_bs)
            totals.cash_usd = _add(totals.cash_usd, payment.split.cash_usd)
            totals.pago_movil_bs = _add(totals.pago_movil_bs, payment.split.pago_movil_bs)
            totals.transfer_bs = _add(totals.transfer_bs, payment.split.transfer_bs)
            totals.other_bs = _add(totals.other_bs, payment.split.other_bs)

    return totals
