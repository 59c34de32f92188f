"""
Servicios de negocio para turnos de caja y cortes X/Z

- ShiftService: apertura, cierre con arqueo, turno actual, listado y resumen
- ShiftCutService: cortes X (turno abierto) y Z (turno cerrado), impresión

Reglas:
- Un solo turno abierto por (tienda, cajero). La verificación previa se
  complementa con el índice único parcial de `shifts`: si dos aperturas
  compiten, la segunda choca con el índice y se responde 409.
- El cierre bloquea la fila del turno (SELECT ... FOR UPDATE) y escribe
  todos los campos de cierre en una sola transacción.
- "No existe", "no es de este cajero" y "estado incorrecto" se responden
  igual (404) para no revelar turnos ajenos.
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from decimal import Decimal
from typing import Callable, Dict, Any, List, Optional
from uuid import UUID
from datetime import datetime
import logging

from app.core.config import settings
from app.common.utils import round2, utcnow
from app.modules.sales.repository import SaleReader
from app.modules.shifts.models import Shift, ShiftCut, ShiftStatus, CutType
from app.modules.shifts.repository import ShiftRepository
from app.modules.shifts.schemas import (
    ShiftOpen, ShiftClose, ExpectedTotals, CountedTotals, CutTotals,
    ShiftDetail, ShiftSummary, ShiftSummaryFigures, AmountPair, UserBrief
)
from app.modules.shifts.calculator import compute_expected_totals, compute_cut_totals

logger = logging.getLogger(__name__)


class ShiftService:
    """Servicio para el ciclo de vida de los turnos"""

    def __init__(self, db: Session, shifts: Optional[ShiftRepository] = None,
                 sales: Optional[SaleReader] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.shifts = shifts or ShiftRepository(db)
        self.sales = sales or SaleReader(db)
        self.clock = clock or utcnow

    def open_shift(self, open_data: ShiftOpen, store_id: UUID, cashier_id: UUID) -> Shift:
        """Abrir turno para el cajero"""
        try:
            existing = self.shifts.find_open_for_cashier(store_id, cashier_id)
            if existing:
                logger.warning(
                    f"Apertura rechazada: el cajero {cashier_id} ya tiene el turno {existing.id} abierto "
                    f"en la tienda {store_id}"
                )
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Ya existe un turno abierto para este cajero. Debe cerrarlo antes de abrir uno nuevo."
                )

            shift = Shift(
                store_id=store_id,
                cashier_id=cashier_id,
                status=ShiftStatus.OPEN,
                opened_at=self.clock(),
                opening_amount_bs=round2(open_data.opening_amount_bs),
                opening_amount_usd=round2(open_data.opening_amount_usd),
                note=open_data.note or None
            )

            self.shifts.add(shift)
            self.shifts.commit()
            self.shifts.refresh(shift)

            logger.info(
                f"Turno {shift.id} abierto por el cajero {cashier_id} en la tienda {store_id} "
                f"(fondo Bs {shift.opening_amount_bs}, USD {shift.opening_amount_usd})"
            )
            return shift

        except HTTPException:
            raise
        except IntegrityError:
            self.shifts.rollback()
            logger.warning(f"Apertura concurrente detectada para el cajero {cashier_id} en la tienda {store_id}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Ya existe un turno abierto para este cajero. Debe cerrarlo antes de abrir uno nuevo."
            )
        except Exception as e:
            self.shifts.rollback()
            logger.error(f"Error abriendo turno para el cajero {cashier_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def get_current_shift(self, store_id: UUID, cashier_id: UUID) -> Optional[Shift]:
        """
        Turno abierto actual del cajero, con sus cortes.

        Retorna None si el cajero no tiene turno abierto.
        """
        return self.shifts.find_open_for_cashier(store_id, cashier_id, with_cuts=True)

    def close_shift(self, shift_id: UUID, close_data: ShiftClose,
                    store_id: UUID, cashier_id: UUID) -> Shift:
        """Cerrar turno con arqueo"""
        try:
            shift = self.shifts.find_owned(
                shift_id, store_id, cashier_id, ShiftStatus.OPEN, for_update=True
            )
            if not shift:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Turno no encontrado, ya está cerrado o no pertenece a este cajero"
                )

            closed_at = self.clock()
            sales = self.sales.list_cashier_sales(
                store_id, cashier_id,
                since=shift.opened_at,
                until=shift.closed_at or closed_at
            )
            expected = compute_expected_totals(shift, sales)
            counted = close_data.to_counted_totals()

            self._check_reasonable_amount(
                "Bs", counted.cash_bs, expected.cash_bs, shift.opening_amount_bs
            )
            self._check_reasonable_amount(
                "USD", counted.cash_usd, expected.cash_usd, shift.opening_amount_usd
            )

            # Se concilia la gaveta (efectivo), no el total vendido
            difference_bs = round2(counted.cash_bs - expected.cash_bs)
            difference_usd = round2(counted.cash_usd - expected.cash_usd)

            shift.closed_at = closed_at
            shift.closing_amount_bs = counted.cash_bs
            shift.closing_amount_usd = counted.cash_usd
            shift.expected_totals = expected.model_dump(mode="json")
            shift.counted_totals = counted.model_dump(mode="json")
            shift.difference_bs = difference_bs
            shift.difference_usd = difference_usd
            shift.status = ShiftStatus.CLOSED
            shift.note = close_data.note or shift.note

            self.shifts.flush()
            self.shifts.refresh(shift)
            self._verify_persisted_close(shift, counted)

            self.shifts.commit()
            self.shifts.refresh(shift)

            logger.info(
                f"Turno {shift.id} cerrado por el cajero {cashier_id}: "
                f"ventas={len(sales)} esperado_bs={expected.cash_bs} esperado_usd={expected.cash_usd} "
                f"contado_bs={counted.cash_bs} contado_usd={counted.cash_usd} "
                f"diferencia_bs={difference_bs} diferencia_usd={difference_usd}"
            )
            if is_significant_difference(difference_bs, difference_usd):
                logger.warning(
                    f"Turno {shift.id} cerrado con diferencia significativa: "
                    f"Bs {difference_bs}, USD {difference_usd}"
                )

            return shift

        except HTTPException:
            self.shifts.rollback()
            raise
        except Exception as e:
            self.shifts.rollback()
            logger.error(f"Error cerrando turno {shift_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def _check_reasonable_amount(self, currency: str, counted: Decimal,
                                 expected_cash: Decimal, opening: Decimal) -> None:
        """Rechaza montos contados desproporcionados (p. ej. un cero de más)"""
        max_reasonable = round2(
            (round2(expected_cash) + round2(opening)) * settings.SHIFT_CLOSE_CEILING_FACTOR
        )
        if counted > max_reasonable:
            logger.warning(
                f"Cierre rechazado: contado {currency} {counted} supera el máximo razonable {max_reasonable}"
            )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=(
                    f"El monto contado en {currency} ({counted:.2f}) es excesivamente alto. "
                    f"Máximo razonable: {max_reasonable:.2f}"
                )
            )

    def _verify_persisted_close(self, shift: Shift, counted: CountedTotals) -> None:
        """Relee lo escrito en la transacción y lo compara con lo enviado"""
        persisted = CountedTotals.model_validate(shift.counted_totals or {})
        if (
            shift.closed_at is None
            or round2(shift.closing_amount_bs) != counted.cash_bs
            or round2(shift.closing_amount_usd) != counted.cash_usd
            or persisted != counted
        ):
            logger.error(f"Error de integridad al cerrar el turno {shift.id}: los valores guardados no coinciden")
            raise RuntimeError(
                "Error de integridad: los valores guardados no coinciden. "
                "Por favor, contacte al administrador."
            )

    def list_shifts(self, store_id: UUID, cashier_id: UUID,
                    status: Optional[ShiftStatus] = None,
                    limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        """Turnos del cajero, más recientes primero"""
        shifts, total = self.shifts.list_for_cashier(
            store_id, cashier_id, status=status, limit=limit, offset=offset
        )
        return {
            "shifts": shifts,
            "total": total,
            "limit": limit,
            "offset": offset
        }

    def get_shift_summary(self, shift_id: UUID, store_id: UUID) -> ShiftSummary:
        """
        Resumen del turno con las cifras persistidas (no recalcula).

        sales_count cuenta todas las ventas de la tienda desde la apertura,
        no solo las del cajero.
        """
        shift = self.shifts.find_in_store(shift_id, store_id, with_relations=True)
        if not shift:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Turno no encontrado"
            )

        sales_count = self.sales.count_store_sales(store_id, since=shift.opened_at)

        return ShiftSummary(
            shift=ShiftDetail.model_validate(shift),
            cashier=UserBrief.model_validate(shift.cashier) if shift.cashier else None,
            sales_count=sales_count,
            cuts_count=len(shift.cuts or []),
            summary=ShiftSummaryFigures(
                opening=AmountPair(bs=shift.opening_amount_bs, usd=shift.opening_amount_usd),
                expected=ExpectedTotals.model_validate(shift.expected_totals) if shift.expected_totals else None,
                counted=CountedTotals.model_validate(shift.counted_totals) if shift.counted_totals else None,
                difference=AmountPair(bs=shift.difference_bs, usd=shift.difference_usd),
                has_significant_difference=is_significant_difference(shift.difference_bs, shift.difference_usd)
            )
        )


def is_significant_difference(difference_bs: Optional[Decimal], difference_usd: Optional[Decimal]) -> bool:
    """Alguna diferencia (en valor absoluto) supera el umbral de alerta"""
    threshold = settings.SHIFT_DIFFERENCE_ALERT_THRESHOLD
    return any(
        value is not None and abs(round2(value)) > threshold
        for value in (difference_bs, difference_usd)
    )


class ShiftCutService:
    """Servicio para cortes X/Z"""

    def __init__(self, db: Session, shifts: Optional[ShiftRepository] = None,
                 sales: Optional[SaleReader] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.shifts = shifts or ShiftRepository(db)
        self.sales = sales or SaleReader(db)
        self.clock = clock or utcnow

    def create_cut_x(self, shift_id: UUID, store_id: UUID, cashier_id: UUID, user_id: UUID) -> ShiftCut:
        """Corte X (intermedio). Se puede repetir mientras el turno siga abierto."""
        shift = self.shifts.find_owned(shift_id, store_id, cashier_id, ShiftStatus.OPEN, for_update=True)
        if not shift:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Turno no encontrado, ya está cerrado o no pertenece a este cajero"
            )

        cut_at = self.clock()
        totals = self.calculate_cut_totals(shift, until=cut_at)
        return self._save_cut(shift, CutType.X, cut_at, totals, user_id)

    def create_cut_z(self, shift_id: UUID, store_id: UUID, cashier_id: UUID, user_id: UUID) -> ShiftCut:
        """Corte Z (final). Requiere el turno cerrado."""
        shift = self.shifts.find_owned(shift_id, store_id, cashier_id, ShiftStatus.CLOSED, for_update=True)
        if not shift:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Turno no encontrado o no está cerrado. Debe cerrar el turno antes de crear un corte Z."
            )

        totals = self.calculate_cut_totals(shift, is_final=True)
        return self._save_cut(shift, CutType.Z, self.clock(), totals, user_id)

    def calculate_cut_totals(self, shift: Shift, is_final: bool = False,
                             until: Optional[datetime] = None) -> CutTotals:
        """
        Totales de las ventas del cajero en el turno.

        Corte final: ventana [opened_at, closed_at]. Corte intermedio:
        [opened_at, until].
        """
        if is_final and shift.closed_at:
            until = shift.closed_at

        sales = self.sales.list_cashier_sales(
            shift.store_id, shift.cashier_id, since=shift.opened_at, until=until
        )
        return compute_cut_totals(sales)

    def _save_cut(self, shift: Shift, cut_type: CutType, cut_at: datetime,
                  totals: CutTotals, user_id: UUID) -> ShiftCut:
        try:
            cut = ShiftCut(
                shift_id=shift.id,
                cut_type=cut_type,
                cut_at=cut_at,
                totals=totals.model_dump(mode="json"),
                sales_count=totals.sales_count,
                created_by=user_id
            )

            self.shifts.add(cut)
            self.shifts.commit()
            self.shifts.refresh(cut)

            logger.info(
                f"Corte {cut_type.value} {cut.id} del turno {shift.id}: "
                f"ventas={totals.sales_count} total_bs={totals.total_bs} total_usd={totals.total_usd}"
            )
            return cut

        except Exception as e:
            self.shifts.rollback()
            logger.error(f"Error creando corte {cut_type.value} del turno {shift.id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def get_cuts(self, shift_id: UUID, store_id: UUID) -> List[ShiftCut]:
        """Cortes del turno en orden cronológico"""
        shift = self.shifts.find_in_store(shift_id, store_id)
        if not shift:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Turno no encontrado"
            )

        return self.shifts.list_cuts(shift_id)

    def mark_cut_as_printed(self, cut_id: UUID, shift_id: UUID,
                            store_id: Optional[UUID] = None) -> ShiftCut:
        """Registra la impresión del corte. Reimprimir solo actualiza la fecha."""
        if store_id is not None and not self.shifts.find_in_store(shift_id, store_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Corte no encontrado"
            )

        cut = self.shifts.find_cut(cut_id, shift_id)
        if not cut:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Corte no encontrado"
            )

        try:
            cut.printed_at = self.clock()
            self.shifts.commit()
            self.shifts.refresh(cut)

            logger.info(f"Corte {cut.id} marcado como impreso")
            return cut

        except Exception as e:
            self.shifts.rollback()
            logger.error(f"Error marcando como impreso el corte {cut_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )
