"""
Routers FastAPI para turnos de caja y cortes X/Z

Endpoints:
- Turnos: apertura, turno actual, cierre con arqueo, listado, resumen
- Cortes: corte X, corte Z, listado de cortes, marcar impreso

Contexto:
- Tienda: header X-Store-ID (StoreMiddleware)
- Cajero/usuario: header X-User-ID (usuario activo)
"""

from fastapi import APIRouter, status, Query, Path
from typing import Optional, List
from uuid import UUID

from app.core.config import settings
from app.dependencies.dbDependecies import db_dependency
from app.dependencies.storeDependencies import StoreId
from app.dependencies.userDependencies import user_dependency
from app.modules.shifts.services import ShiftService, ShiftCutService
from app.modules.shifts.schemas import (
    ShiftOpen, ShiftClose, ShiftOut, ShiftDetail, ShiftList,
    ShiftCutOut, ShiftSummary, ShiftStatus
)


shifts_router = APIRouter(prefix="/shifts", tags=["Shifts"])


# ===== TURNOS =====

@shifts_router.post("/open", response_model=ShiftOut, status_code=status.HTTP_201_CREATED)
async def open_shift(
    open_data: ShiftOpen,
    store_id: StoreId,
    current_user: user_dependency,
    db: db_dependency
):
    """
    Abrir turno para el cajero actual.

    - **opening_amount_bs**: Fondo inicial en bolívares (>= 0)
    - **opening_amount_usd**: Fondo inicial en dólares (>= 0)
    - **note**: Nota opcional

    Validaciones:
    - Solo un turno abierto por cajero en la tienda (409 si ya existe)
    """
    service = ShiftService(db)
    return service.open_shift(open_data, store_id=store_id, cashier_id=current_user.id)


@shifts_router.get("/current", response_model=Optional[ShiftDetail])
async def get_current_shift(
    store_id: StoreId,
    current_user: user_dependency,
    db: db_dependency
):
    """
    Turno abierto del cajero actual con sus cortes.

    Retorna null si el cajero no tiene turno abierto.
    """
    service = ShiftService(db)
    return service.get_current_shift(store_id=store_id, cashier_id=current_user.id)


@shifts_router.post("/{shift_id}/close", response_model=ShiftOut)
async def close_shift(
    close_data: ShiftClose,
    store_id: StoreId,
    current_user: user_dependency,
    db: db_dependency,
    shift_id: UUID = Path(..., description="ID del turno")
):
    """
    Cerrar turno con arqueo.

    - **counted_bs** / **counted_usd**: Efectivo contado en la gaveta
    - **counted_pago_movil_bs**, **counted_transfer_bs**, **counted_other_bs**: Opcionales
    - **note**: Reemplaza la nota del turno si se envía

    Funcionalidades:
    - Calcula los totales esperados a partir de las ventas del cajero
    - Guarda esperado, contado y diferencia (contado - esperado) del efectivo
    - Rechaza (400) montos contados desproporcionados
    """
    service = ShiftService(db)
    return service.close_shift(
        shift_id=shift_id,
        close_data=close_data,
        store_id=store_id,
        cashier_id=current_user.id
    )


@shifts_router.get("/", response_model=ShiftList)
async def list_shifts(
    store_id: StoreId,
    current_user: user_dependency,
    db: db_dependency,
    status: Optional[ShiftStatus] = Query(None, description="Filtrar por estado"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Límite de resultados"),
    offset: int = Query(0, ge=0, description="Offset para paginación")
):
    """
    Turnos del cajero actual, más recientes primero.
    """
    service = ShiftService(db)
    result = service.list_shifts(
        store_id=store_id,
        cashier_id=current_user.id,
        status=status,
        limit=limit,
        offset=offset
    )

    return ShiftList(
        shifts=result["shifts"],
        total=result["total"],
        limit=result["limit"],
        offset=result["offset"]
    )


@shifts_router.get("/{shift_id}/summary", response_model=ShiftSummary)
async def get_shift_summary(
    store_id: StoreId,
    current_user: user_dependency,
    db: db_dependency,
    shift_id: UUID = Path(..., description="ID del turno")
):
    """
    Resumen del turno: fondo inicial, esperado, contado, diferencias y cortes.
    """
    service = ShiftService(db)
    return service.get_shift_summary(shift_id=shift_id, store_id=store_id)


# ===== CORTES =====

@shifts_router.post("/{shift_id}/cuts/x", response_model=ShiftCutOut, status_code=status.HTTP_201_CREATED)
async def create_cut_x(
    store_id: StoreId,
    current_user: user_dependency,
    db: db_dependency,
    shift_id: UUID = Path(..., description="ID del turno")
):
    """
    Corte X: totales parciales del turno abierto. Se puede repetir.
    """
    service = ShiftCutService(db)
    return service.create_cut_x(
        shift_id=shift_id,
        store_id=store_id,
        cashier_id=current_user.id,
        user_id=current_user.id
    )


@shifts_router.post("/{shift_id}/cuts/z", response_model=ShiftCutOut, status_code=status.HTTP_201_CREATED)
async def create_cut_z(
    store_id: StoreId,
    current_user: user_dependency,
    db: db_dependency,
    shift_id: UUID = Path(..., description="ID del turno")
):
    """
    Corte Z: totales finales. Requiere el turno cerrado.
    """
    service = ShiftCutService(db)
    return service.create_cut_z(
        shift_id=shift_id,
        store_id=store_id,
        cashier_id=current_user.id,
        user_id=current_user.id
    )


@shifts_router.get("/{shift_id}/cuts", response_model=List[ShiftCutOut])
async def get_cuts(
    store_id: StoreId,
    current_user: user_dependency,
    db: db_dependency,
    shift_id: UUID = Path(..., description="ID del turno")
):
    """Cortes del turno en orden cronológico"""
    service = ShiftCutService(db)
    return service.get_cuts(shift_id=shift_id, store_id=store_id)


@shifts_router.post("/{shift_id}/cuts/{cut_id}/print", response_model=ShiftCutOut)
async def mark_cut_as_printed(
    store_id: StoreId,
    current_user: user_dependency,
    db: db_dependency,
    shift_id: UUID = Path(..., description="ID del turno"),
    cut_id: UUID = Path(..., description="ID del corte")
):
    """Registrar la impresión (o reimpresión) del corte"""
    service = ShiftCutService(db)
    return service.mark_cut_as_printed(cut_id=cut_id, shift_id=shift_id, store_id=store_id)
