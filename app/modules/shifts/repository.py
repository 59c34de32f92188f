"""
Acceso a datos de turnos y cortes

Los servicios no consultan la sesión directamente: reciben un ShiftRepository
(y un SaleReader) para poder sustituirlos en pruebas.
"""

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc
from typing import List, Optional, Tuple
from uuid import UUID

from app.modules.shifts.models import Shift, ShiftCut, ShiftStatus


class ShiftRepository:
    """Persistencia de Shift y ShiftCut"""

    def __init__(self, db: Session):
        self.db = db

    # ----- Shift -----

    def find_open_for_cashier(self, store_id: UUID, cashier_id: UUID,
                              with_cuts: bool = False) -> Optional[Shift]:
        """Turno abierto más reciente del cajero en la tienda"""
        query = self.db.query(Shift).filter(
            Shift.store_id == store_id,
            Shift.cashier_id == cashier_id,
            Shift.status == ShiftStatus.OPEN
        )
        if with_cuts:
            query = query.options(
                selectinload(Shift.cuts).selectinload(ShiftCut.creator)
            )
        return query.order_by(desc(Shift.opened_at)).first()

    def find_owned(self, shift_id: UUID, store_id: UUID, cashier_id: UUID,
                   status: ShiftStatus, for_update: bool = False) -> Optional[Shift]:
        """Turno del cajero en la tienda con el estado indicado"""
        query = self.db.query(Shift).filter(
            Shift.id == shift_id,
            Shift.store_id == store_id,
            Shift.cashier_id == cashier_id,
            Shift.status == status
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def find_in_store(self, shift_id: UUID, store_id: UUID,
                      with_relations: bool = False) -> Optional[Shift]:
        query = self.db.query(Shift).filter(
            Shift.id == shift_id,
            Shift.store_id == store_id
        )
        if with_relations:
            query = query.options(
                selectinload(Shift.cashier),
                selectinload(Shift.cuts).selectinload(ShiftCut.creator)
            )
        return query.first()

    def list_for_cashier(self, store_id: UUID, cashier_id: UUID,
                         status: Optional[ShiftStatus] = None,
                         limit: int = 50, offset: int = 0) -> Tuple[List[Shift], int]:
        query = self.db.query(Shift).filter(
            Shift.store_id == store_id,
            Shift.cashier_id == cashier_id
        )
        if status:
            query = query.filter(Shift.status == status)

        query = query.order_by(desc(Shift.opened_at))

        total = query.count()
        shifts = query.offset(offset).limit(limit).all()
        return shifts, total

    # ----- ShiftCut -----

    def list_cuts(self, shift_id: UUID) -> List[ShiftCut]:
        return self.db.query(ShiftCut).options(
            selectinload(ShiftCut.creator)
        ).filter(
            ShiftCut.shift_id == shift_id
        ).order_by(ShiftCut.cut_at).all()

    def find_cut(self, cut_id: UUID, shift_id: UUID) -> Optional[ShiftCut]:
        return self.db.query(ShiftCut).filter(
            ShiftCut.id == cut_id,
            ShiftCut.shift_id == shift_id
        ).first()

    # ----- Unidad de trabajo -----

    def add(self, instance) -> None:
        self.db.add(instance)

    def flush(self) -> None:
        self.db.flush()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def refresh(self, instance) -> None:
        self.db.refresh(instance)
