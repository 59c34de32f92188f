"""
Modelo de venta (Sale) visto desde el cuadre de caja.

La tabla la escribe el módulo de ventas del POS; aquí sólo se mapea para
leerla. `payment` y `totals` son documentos JSON, ver payments.py para su
estructura.
"""

from app.database.database import Base, JSONDocument
from sqlalchemy import Column, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from uuid import uuid4
from app.common.mixins import StoreMixin, TimestampMixin


class Sale(Base, StoreMixin, TimestampMixin):
    __tablename__ = "sales"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    sold_by_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    sold_at = Column(DateTime(timezone=True), nullable=False, index=True)

    payment = Column(JSONDocument, nullable=True)  # {"method": "CASH_BS", "cash_payment_bs": {...}}
    totals = Column(JSONDocument, nullable=True)   # {"total_bs": ..., "total_usd": ...}

    # Relationships
    sold_by = relationship("User", foreign_keys=[sold_by_user_id])

    __table_args__ = (
        Index("idx_sales_store_seller_sold_at", "store_id", "sold_by_user_id", "sold_at"),
    )
