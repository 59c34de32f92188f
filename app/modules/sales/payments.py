"""
Estructura tipada de los pagos de una venta

`Sale.payment` llega como JSON libre desde el POS. Aquí se convierte en una
unión cerrada por método de pago, de forma que el cuadre de caja despacha
por tipo y no por cadenas:

- CASH_BS:    efectivo en bolívares, opcional `cash_payment_bs` {received_bs, change_bs}
- CASH_USD:   efectivo en dólares, opcional `cash_payment` {received_usd, change_bs}
- PAGO_MOVIL: pago móvil (Bs)
- TRANSFER:   transferencia (Bs)
- OTHER:      otros medios (Bs)
- FIAO:       venta a crédito (fiado), no entra en caja
- SPLIT:      pago mixto, opcional `split` {cash_bs, cash_usd, pago_movil_bs, transfer_bs, other_bs}

Cualquier otro código (o la ausencia de `method`) produce UnrecognizedPayment.
"""

from pydantic import BaseModel, Field, TypeAdapter, field_validator
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union


class PaymentMethod(str, Enum):
    CASH_BS = "CASH_BS"
    CASH_USD = "CASH_USD"
    PAGO_MOVIL = "PAGO_MOVIL"
    TRANSFER = "TRANSFER"
    OTHER = "OTHER"
    FIAO = "FIAO"
    SPLIT = "SPLIT"


# ===== SUB-REGISTROS =====

class CashBsTender(BaseModel):
    """Efectivo en Bs recibido y vuelto entregado"""
    received_bs: Optional[Decimal] = None
    change_bs: Optional[Decimal] = None


class CashUsdTender(BaseModel):
    """Efectivo en USD recibido; el vuelto se entrega en Bs"""
    received_usd: Optional[Decimal] = None
    change_bs: Optional[Decimal] = None


class SplitBreakdown(BaseModel):
    """Desglose de un pago mixto. Los montos ausentes valen cero."""
    cash_bs: Decimal = Decimal("0")
    cash_usd: Decimal = Decimal("0")
    pago_movil_bs: Decimal = Decimal("0")
    transfer_bs: Decimal = Decimal("0")
    other_bs: Decimal = Decimal("0")

    @field_validator("*", mode="before")
    @classmethod
    def none_as_zero(cls, v):
        return Decimal("0") if v is None else v


# ===== VARIANTES =====

class CashBsPayment(BaseModel):
    method: Literal["CASH_BS"]
    cash_payment_bs: Optional[CashBsTender] = None


class CashUsdPayment(BaseModel):
    method: Literal["CASH_USD"]
    cash_payment: Optional[CashUsdTender] = None


class PagoMovilPayment(BaseModel):
    method: Literal["PAGO_MOVIL"]


class TransferPayment(BaseModel):
    method: Literal["TRANSFER"]


class OtherPayment(BaseModel):
    method: Literal["OTHER"]


class FiaoPayment(BaseModel):
    method: Literal["FIAO"]


class SplitPayment(BaseModel):
    method: Literal["SPLIT"]
    split: Optional[SplitBreakdown] = None


class UnrecognizedPayment(BaseModel):
    """Código de método desconocido o ausente"""
    method: Optional[str] = None


SalePayment = Annotated[
    Union[
        CashBsPayment, CashUsdPayment, PagoMovilPayment, TransferPayment,
        OtherPayment, FiaoPayment, SplitPayment
    ],
    Field(discriminator="method")
]

AnyPayment = Union[
    CashBsPayment, CashUsdPayment, PagoMovilPayment, TransferPayment,
    OtherPayment, FiaoPayment, SplitPayment, UnrecognizedPayment
]

_payment_adapter = TypeAdapter(SalePayment)

_KNOWN_METHODS = {method.value for method in PaymentMethod}


class SaleTotals(BaseModel):
    """Totales registrados de la venta"""
    total_bs: Decimal = Decimal("0")
    total_usd: Decimal = Decimal("0")

    @field_validator("total_bs", "total_usd", mode="before")
    @classmethod
    def none_as_zero(cls, v):
        return Decimal("0") if v is None else v


def parse_payment(raw: Optional[Dict[str, Any]]) -> Optional[AnyPayment]:
    """Convierte el JSON de pago en su variante tipada. None si la venta no tiene pago."""
    if raw is None:
        return None
    method = raw.get("method")
    if method not in _KNOWN_METHODS:
        return UnrecognizedPayment(method=method)
    return _payment_adapter.validate_python(raw)


def parse_totals(raw: Optional[Dict[str, Any]]) -> Optional[SaleTotals]:
    if raw is None:
        return None
    return SaleTotals.model_validate(raw)


def method_code(payment: AnyPayment) -> str:
    """
    Código con el que la venta se agrupa en los cortes.

    Un pago sin método se agrupa como OTHER; un código desconocido se
    devuelve tal cual (no tiene casilla en by_payment_method).
    """
    return payment.method or PaymentMethod.OTHER.value
