from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from stock_ledger.api.dependencies import get_current_user, require_roles, get_stock_broadcaster
from stock_ledger.core.database import get_async_session
from stock_ledger.core.exceptions import NotFoundError
from stock_ledger.schemas.common.pagination import PaginatedResponse
from stock_ledger.schemas.inventory.stock_level import StockLevel, StockStats, CategoryBreakdown, StockDrift
from stock_ledger.schemas.inventory.stock_movement import StockAdjustment, StockReconcileRequest
from stock_ledger.services.inventory.stock_level_service import StockLevelService
from stock_ledger.services.inventory.part_service import PartService
from stock_ledger.services.notification.stock_broadcaster import StockUpdateBroadcaster
from stock_ledger.models.auth.user import User
from stock_ledger.models.shared.enums import UserRole
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

STOCK_ADMINS = (UserRole.ADMIN, UserRole.SUPERADMIN)

@router.post("/adjust", response_model=StockLevel)
async def adjust_stock(
    adjustment: StockAdjustment,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(require_roles(*STOCK_ADMINS)),
    broadcaster: StockUpdateBroadcaster = Depends(get_stock_broadcaster)
):
    """Record a stock movement and return the recomputed level"""
    part = await PartService(db).get_part(adjustment.part_id)
    if not part:
        raise NotFoundError("Part not found")

    service = StockLevelService(db, publisher=broadcaster)
    return await service.adjust_stock(
        part_id=adjustment.part_id,
        qty_change=adjustment.qty_change,
        reason=adjustment.reason,
        created_by=current_user.id,
        order_id=adjustment.order_id,
        notes=adjustment.notes
    )

@router.post("/reconcile", response_model=List[StockDrift])
async def reconcile_stock(
    request: StockReconcileRequest,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(require_roles(*STOCK_ADMINS))
):
    """Rebuild one level (partId given) or every level from the ledger"""
    service = StockLevelService(db)

    if request.part_id is None:
        drifted = await service.reconcile_all()
        logger.info(f"User {current_user.id} reconciled all stock levels, {len(drifted)} repaired")
        return drifted

    if not await PartService(db).get_part(request.part_id):
        raise NotFoundError("Part not found")

    before = await service.get_stock_level(request.part_id)
    before_quantities = StockLevelService._quantities(before) if before else None
    level = await service.reconcile_stock_level(request.part_id)
    after_quantities = StockLevelService._quantities(level)

    if before_quantities == after_quantities:
        return []
    return [{"part_id": request.part_id, "before": before_quantities, "after": after_quantities}]

@router.get("/levels", response_model=PaginatedResponse[StockLevel])
async def get_stock_levels(
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort_by: str = Query("name", alias="sortBy"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user)
):
    """Get stock levels with filtering and pagination"""
    service = StockLevelService(db)
    return await service.get_stock_levels(
        category=category,
        search=search,
        sort_by=sort_by,
        page=page,
        limit=limit
    )

@router.get("/stats", response_model=StockStats)
async def get_stock_stats(
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user)
):
    """Get dashboard statistics"""
    return await StockLevelService(db).get_stock_stats()

@router.get("/categories", response_model=List[CategoryBreakdown])
async def get_category_breakdown(
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user)
):
    """Get category breakdown"""
    return await StockLevelService(db).get_category_breakdown()

@router.get("/levels/{part_id}", response_model=StockLevel)
async def get_stock_level(
    part_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user)
):
    """Get the materialized level for one part"""
    level = await StockLevelService(db).get_stock_level(part_id)
    if not level:
        raise NotFoundError("Stock level not found")
    return level
