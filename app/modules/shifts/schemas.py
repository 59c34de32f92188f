"""
Esquemas Pydantic para turnos de caja y cortes X/Z

Define la validación de entrada (apertura, cierre) y la forma de salida de:
- Shift con sus totales esperados/contados embebidos
- ShiftCut con los totales agregados por método de pago
- Resumen de turno

Los montos se redondean a 2 decimales (mitad alejándose de cero) al validar.
"""

from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List, Dict
from uuid import UUID
from datetime import datetime

from app.common.utils import round2, ZERO, MAX_AMOUNT
from app.modules.sales.payments import PaymentMethod
from app.modules.shifts.models import ShiftStatus, CutType


# ===== TOTALES EMBEBIDOS =====

class ExpectedTotals(BaseModel):
    """Lo que debería haber según las ventas del turno"""
    cash_bs: Decimal = ZERO
    cash_usd: Decimal = ZERO
    pago_movil_bs: Decimal = ZERO
    transfer_bs: Decimal = ZERO
    other_bs: Decimal = ZERO
    total_bs: Decimal = ZERO
    total_usd: Decimal = ZERO


class CountedTotals(BaseModel):
    """Lo que el cajero declara haber contado al cierre"""
    cash_bs: Decimal = ZERO
    cash_usd: Decimal = ZERO
    pago_movil_bs: Decimal = ZERO
    transfer_bs: Decimal = ZERO
    other_bs: Decimal = ZERO


def empty_payment_buckets() -> Dict[str, Decimal]:
    return {method.value: ZERO for method in PaymentMethod}


class CutTotals(BaseModel):
    """Agregado de ventas de un corte"""
    sales_count: int = 0
    total_bs: Decimal = ZERO
    total_usd: Decimal = ZERO
    by_payment_method: Dict[str, Decimal] = Field(default_factory=empty_payment_buckets)
    cash_bs: Decimal = ZERO
    cash_usd: Decimal = ZERO
    pago_movil_bs: Decimal = ZERO
    transfer_bs: Decimal = ZERO
    other_bs: Decimal = ZERO


# ===== ENTRADA =====

def validated_amount(v: Decimal) -> Decimal:
    """
    Redondea el monto a centavos y luego exige 0 <= monto <= MAX_AMOUNT.

    Se valida después de redondear: -0.004 queda en 0.00 y se acepta.
    """
    amount = round2(v)
    if amount == 0:
        return ZERO
    if amount < 0:
        raise ValueError("El monto no puede ser negativo")
    if amount > MAX_AMOUNT:
        raise ValueError(f"El monto excede el máximo permitido ({MAX_AMOUNT})")
    return amount


class ShiftOpen(BaseModel):
    """Esquema para abrir turno"""
    opening_amount_bs: Decimal = Field(..., description="Fondo inicial en Bs (>= 0)")
    opening_amount_usd: Decimal = Field(..., description="Fondo inicial en USD (>= 0)")
    note: Optional[str] = Field(None, max_length=500, description="Nota de apertura")

    @field_validator("opening_amount_bs", "opening_amount_usd")
    @classmethod
    def round_amount(cls, v: Decimal) -> Decimal:
        return validated_amount(v)


class ShiftClose(BaseModel):
    """Esquema para cerrar turno con arqueo"""
    counted_bs: Decimal = Field(..., description="Efectivo Bs contado (>= 0)")
    counted_usd: Decimal = Field(..., description="Efectivo USD contado (>= 0)")
    counted_pago_movil_bs: Decimal = Field(default=ZERO, description="Pago móvil conciliado")
    counted_transfer_bs: Decimal = Field(default=ZERO, description="Transferencias conciliadas")
    counted_other_bs: Decimal = Field(default=ZERO, description="Otros medios conciliados")
    note: Optional[str] = Field(None, max_length=500, description="Nota de cierre")

    @field_validator(
        "counted_bs", "counted_usd", "counted_pago_movil_bs",
        "counted_transfer_bs", "counted_other_bs", mode="before"
    )
    @classmethod
    def none_as_zero(cls, v):
        # Los montos opcionales pueden llegar como null desde el cliente
        return ZERO if v is None else v

    @field_validator(
        "counted_bs", "counted_usd", "counted_pago_movil_bs",
        "counted_transfer_bs", "counted_other_bs"
    )
    @classmethod
    def round_amount(cls, v: Decimal) -> Decimal:
        return validated_amount(v)

    def to_counted_totals(self) -> CountedTotals:
        return CountedTotals(
            cash_bs=self.counted_bs,
            cash_usd=self.counted_usd,
            pago_movil_bs=self.counted_pago_movil_bs,
            transfer_bs=self.counted_transfer_bs,
            other_bs=self.counted_other_bs
        )


# ===== SALIDA =====

class UserBrief(BaseModel):
    id: UUID
    full_name: str
    email: str

    model_config = {"from_attributes": True}


class ShiftCutOut(BaseModel):
    """Esquema de salida para corte X/Z"""
    id: UUID = Field(description="ID único del corte")
    shift_id: UUID = Field(description="ID del turno")
    cut_type: CutType = Field(description="X intermedio, Z final")
    cut_at: datetime = Field(description="Momento del corte")
    totals: CutTotals = Field(description="Totales agregados")
    sales_count: int = Field(description="Número de ventas incluidas")
    printed_at: Optional[datetime] = Field(None, description="Última impresión")
    created_by: UUID = Field(description="Usuario que generó el corte")
    creator: Optional[UserBrief] = Field(None, description="Datos del usuario que generó el corte")

    model_config = {"from_attributes": True}


class ShiftOut(BaseModel):
    """Esquema de salida para turno"""
    id: UUID
    store_id: UUID
    cashier_id: UUID
    status: ShiftStatus
    opened_at: datetime
    closed_at: Optional[datetime] = None
    opening_amount_bs: Decimal
    opening_amount_usd: Decimal
    closing_amount_bs: Optional[Decimal] = None
    closing_amount_usd: Optional[Decimal] = None
    expected_totals: Optional[ExpectedTotals] = None
    counted_totals: Optional[CountedTotals] = None
    difference_bs: Optional[Decimal] = None
    difference_usd: Optional[Decimal] = None
    note: Optional[str] = None

    model_config = {"from_attributes": True}


class ShiftDetail(ShiftOut):
    """Turno con sus cortes"""
    cuts: List[ShiftCutOut] = Field(default=[], description="Cortes del turno en orden cronológico")


class ShiftList(BaseModel):
    """Esquema para lista de turnos"""
    shifts: List[ShiftOut] = Field(description="Lista de turnos")
    total: int = Field(description="Total de turnos")
    limit: int = Field(description="Límite aplicado")
    offset: int = Field(description="Offset aplicado")


class AmountPair(BaseModel):
    bs: Optional[Decimal] = None
    usd: Optional[Decimal] = None


class ShiftSummaryFigures(BaseModel):
    opening: AmountPair
    expected: Optional[ExpectedTotals] = None
    counted: Optional[CountedTotals] = None
    difference: AmountPair
    has_significant_difference: bool = Field(
        False, description="La diferencia supera el umbral de alerta configurado"
    )


class ShiftSummary(BaseModel):
    """Resumen de turno tal como quedó persistido"""
    shift: ShiftDetail
    cashier: Optional[UserBrief] = None
    sales_count: int = Field(description="Ventas de la tienda desde la apertura del turno")
    cuts_count: int
    summary: ShiftSummaryFigures
