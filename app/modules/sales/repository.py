"""
Lectura de ventas para el cuadre de caja. Nunca escribe en `sales`.
"""

from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from app.modules.sales.models import Sale


class SaleReader:
    """Consultas de ventas por ventana de tiempo"""

    def __init__(self, db: Session):
        self.db = db

    def list_cashier_sales(self, store_id: UUID, cashier_id: UUID, since: datetime,
                           until: Optional[datetime] = None) -> List[Sale]:
        """
        Ventas cobradas por un cajero en la tienda con sold_at en [since, until].

        Las ventas sin pago registrado quedan fuera.
        """
        query = self.db.query(Sale).filter(
            Sale.store_id == store_id,
            Sale.sold_by_user_id == cashier_id,
            Sale.sold_at >= since,
            Sale.payment.isnot(None)
        )

        if until is not None:
            query = query.filter(Sale.sold_at <= until)

        return query.order_by(Sale.sold_at).all()

    def count_store_sales(self, store_id: UUID, since: datetime) -> int:
        """Ventas de toda la tienda (cualquier cajero) desde `since`"""
        return self.db.query(func.count(Sale.id)).filter(
            Sale.store_id == store_id,
            Sale.sold_at >= since
        ).scalar() or 0
