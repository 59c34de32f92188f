"""
Modelos SQLAlchemy para turnos de caja y cortes X/Z

- Shift: sesión de caja de un cajero en una tienda (apertura, arqueo, cierre)
- ShiftCut: fotografía inmutable de las ventas del turno por método de pago
    - X: corte intermedio, cualquier número de veces con el turno abierto
    - Z: corte final, con el turno ya cerrado

Solo puede existir un turno abierto por (tienda, cajero); lo garantiza el
índice único parcial uq_shifts_open_per_cashier.
"""

from app.database.database import Base, JSONDocument
from sqlalchemy import Column, DateTime, ForeignKey, Numeric, Enum, Text, Integer, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import StoreMixin, TimestampMixin
from app.common.utils import utcnow
import enum


# ===== ENUMS =====

class ShiftStatus(str, enum.Enum):
    """Estados del turno"""
    OPEN = "open"
    CLOSED = "closed"
    CANCELLED = "cancelled"  # Reservado, ninguna operación lleva a este estado


class CutType(str, enum.Enum):
    """Tipos de corte"""
    X = "X"  # Intermedio
    Z = "Z"  # Final


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# ===== MODELOS =====

class Shift(Base, StoreMixin, TimestampMixin):
    """
    Turno de caja

    Los campos de cierre (closed_at, closing_amount_*, expected_totals,
    counted_totals, difference_*) son nulos mientras el turno está abierto y
    se llenan juntos en el cierre. Después del cierre el turno no cambia.
    """
    __tablename__ = "shifts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    cashier_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(
        Enum(ShiftStatus, name="shift_status", values_callable=_enum_values),
        nullable=False, default=ShiftStatus.OPEN, index=True
    )

    opened_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    # Fondo inicial declarado
    opening_amount_bs = Column(Numeric(18, 2), nullable=False, default=0)
    opening_amount_usd = Column(Numeric(18, 2), nullable=False, default=0)

    # Arqueo (solo se llenan al cerrar)
    closing_amount_bs = Column(Numeric(18, 2), nullable=True)
    closing_amount_usd = Column(Numeric(18, 2), nullable=True)
    expected_totals = Column(JSONDocument, nullable=True)
    counted_totals = Column(JSONDocument, nullable=True)
    difference_bs = Column(Numeric(18, 2), nullable=True)   # contado - esperado
    difference_usd = Column(Numeric(18, 2), nullable=True)

    note = Column(Text, nullable=True)

    # Relationships
    cashier = relationship("User", foreign_keys=[cashier_id])
    cuts = relationship("ShiftCut", back_populates="shift", order_by="ShiftCut.cut_at")

    __table_args__ = (
        Index(
            "uq_shifts_open_per_cashier", "store_id", "cashier_id",
            unique=True,
            postgresql_where=text("status = 'open'"),
            sqlite_where=text("status = 'open'")
        ),
        Index("idx_shifts_store_cashier_opened_at", "store_id", "cashier_id", "opened_at"),
    )


class ShiftCut(Base, TimestampMixin):
    """
    Corte X/Z de un turno

    Inmutable una vez creado; solo printed_at cambia (impresión y reimpresión).
    """
    __tablename__ = "shift_cuts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    shift_id = Column(UUID(as_uuid=True), ForeignKey("shifts.id"), nullable=False, index=True)
    cut_type = Column(Enum(CutType, name="cut_type", values_callable=_enum_values), nullable=False)
    cut_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    totals = Column(JSONDocument, nullable=False)
    sales_count = Column(Integer, nullable=False, default=0)  # Copia de totals.sales_count
    printed_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)

    # Relationships
    shift = relationship("Shift", back_populates="cuts")
    creator = relationship("User", foreign_keys=[created_by])
