"""
Módulo de turnos de caja (shifts)

ENTIDADES PRINCIPALES:
- Shift: turno de un cajero en una tienda, con fondo inicial y arqueo al cierre
- ShiftCut: corte X (intermedio) o Z (final) con totales por método de pago

FUNCIONALIDADES:
- Apertura de turno (uno abierto por cajero y tienda)
- Cierre con cálculo de totales esperados, contados y diferencias
- Cortes X/Z inmutables, con registro de impresión
- Resumen del turno

INTEGRACIÓN CON OTROS MÓDULOS:
- Sales: solo lectura de ventas (payment/totals) por ventana de tiempo
- Users: cajero dueño del turno y autor de cada corte

REGLAS DE NEGOCIO:
- El cierre bloquea el turno y escribe todos los campos en una transacción
- La diferencia se calcula sobre el efectivo de la gaveta
- Montos en Decimal, redondeados a centavos en cada paso
"""

from .models import Shift, ShiftCut, ShiftStatus, CutType

from .schemas import (
    ShiftOpen, ShiftClose, ShiftOut, ShiftDetail, ShiftList,
    ShiftCutOut, ShiftSummary,
    ExpectedTotals, CountedTotals, CutTotals
)

from .services import ShiftService, ShiftCutService

from .routers import shifts_router

__all__ = [
    # Models
    "Shift", "ShiftCut", "ShiftStatus", "CutType",

    # Schemas
    "ShiftOpen", "ShiftClose", "ShiftOut", "ShiftDetail", "ShiftList",
    "ShiftCutOut", "ShiftSummary",
    "ExpectedTotals", "CountedTotals", "CutTotals",

    # Services
    "ShiftService", "ShiftCutService",

    # Routers
    "shifts_router"
]
