"""
Utilidades de dinero y tiempo compartidas por los módulos
"""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
# Mayor monto que cabe en Numeric(18, 2)
MAX_AMOUNT = Decimal("9999999999999999.99")


def to_decimal(value: Any) -> Decimal:
    """
    Convierte un monto a Decimal.

    None se toma como cero. Los float pasan por str() para no arrastrar
    la representación binaria. Lanza ValueError si el valor no es numérico.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"Monto inválido: {value!r}")
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValueError(f"Monto inválido: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Monto inválido: {value!r}")
    return result


def round2(value: Any) -> Decimal:
    """Redondea a centavos, mitad alejándose de cero (equivale a round(x*100)/100)."""
    try:
        return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # quantize no admite más de 28 dígitos significativos
        raise ValueError(f"Monto fuera de rango: {value!r}")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
