from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import datetime
from stock_ledger.api.dependencies import get_current_user
from stock_ledger.core.database import get_async_session
from stock_ledger.core.exceptions import NotFoundError
from stock_ledger.services.inventory.stock_ledger_service import StockLedgerService
from stock_ledger.services.inventory.part_service import PartService
from stock_ledger.schemas.inventory.stock_movement import StockMovement, MovementRecord
from stock_ledger.models.shared.enums import StockReason
from stock_ledger.models.auth.user import User

router = APIRouter()

@router.get("/history", response_model=List[MovementRecord])
async def get_stock_history(
    part_id: Optional[int] = Query(None, alias="partId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    reason: Optional[StockReason] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user)
):
    """Get stock movement history with filtering, newest first"""
    service = StockLedgerService(db)
    return await service.query_history(
        start_date=start_date,
        end_date=end_date,
        part_id=part_id,
        reason=reason,
        limit=limit
    )

@router.get("/recent-movements", response_model=List[MovementRecord])
async def get_recent_movements(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user)
):
    """Get recent stock movements"""
    return await StockLedgerService(db).recent_movements(limit)

@router.get("/parts/{part_id}/movements", response_model=List[StockMovement])
async def get_part_movements(
    part_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user)
):
    """Full ledger for one part in the order it was recorded"""
    if not await PartService(db).get_part(part_id):
        raise NotFoundError("Part not found")
    return await StockLedgerService(db).query_by_part(part_id)
