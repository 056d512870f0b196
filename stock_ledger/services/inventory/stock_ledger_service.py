from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import and_, case, desc, func
from stock_ledger.models.inventory.stock_movement import StockMovement
from stock_ledger.models.inventory.part import Part
from stock_ledger.models.auth.user import User
from stock_ledger.models.shared.enums import StockReason
from stock_ledger.core.exceptions import ValidationError
from stock_ledger.utils.clock import Clock, utcnow


@dataclass(frozen=True)
class LedgerTotals:
    movement_count: int = 0
    available: int = 0
    used: int = 0
    damaged: int = 0


class StockLedgerService:
    """Append-only store of stock movements"""

    def __init__(self, db: AsyncSession, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or utcnow

    async def append(
        self,
        part_id: int,
        qty_change: int,
        reason: StockReason,
        created_by: int,
        order_id: Optional[int] = None,
        notes: Optional[str] = None
    ) -> StockMovement:
        """Add a movement to the session; the caller owns flush/commit"""
        if part_id is None:
            raise ValidationError("part_id is required")
        if created_by is None:
            raise ValidationError("created_by is required")

        movement = StockMovement(
            part_id=part_id,
            qty_change=qty_change,
            reason=reason,
            order_id=order_id,
            created_by=created_by,
            notes=notes,
            created_at=self.clock()
        )
        self.db.add(movement)
        return movement

    async def query_by_part(self, part_id: int) -> List[StockMovement]:
        """All movements for a part in insertion order"""
        result = await self.db.execute(
            select(StockMovement)
            .where(StockMovement.part_id == part_id)
            .order_by(StockMovement.created_at, StockMovement.id)
        )
        return list(result.scalars().all())

    async def aggregate_for_part(self, part_id: int) -> LedgerTotals:
        """Net, used and damaged sums over the part's full ledger"""
        result = await self.db.execute(
            select(
                func.count(StockMovement.id).label('movement_count'),
                func.coalesce(func.sum(StockMovement.qty_change), 0).label('total'),
                func.coalesce(func.sum(case(
                    (StockMovement.reason == StockReason.USED, StockMovement.qty_change),
                    else_=0
                )), 0).label('used'),
                func.coalesce(func.sum(case(
                    (StockMovement.reason == StockReason.DAMAGED, StockMovement.qty_change),
                    else_=0
                )), 0).label('damaged'),
            ).where(StockMovement.part_id == part_id)
        )
        row = result.one()
        return LedgerTotals(
            movement_count=int(row.movement_count or 0),
            available=int(row.total or 0),
            used=int(row.used or 0),
            damaged=int(row.damaged or 0)
        )

    async def query_history(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        part_id: Optional[int] = None,
        reason: Optional[StockReason] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Movements filtered by date range (inclusive), part and reason, newest first"""
        conditions = []

        if start_date is not None:
            conditions.append(StockMovement.created_at >= start_date)

        if end_date is not None:
            conditions.append(StockMovement.created_at <= end_date)

        if part_id is not None:
            conditions.append(StockMovement.part_id == part_id)

        if reason is not None:
            conditions.append(StockMovement.reason == reason)

        return await self._denormalized(conditions, limit)

    async def recent_movements(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Latest movements across all parts for activity feeds"""
        return await self._denormalized([], limit)

    async def _denormalized(self, conditions: list, limit: Optional[int]) -> List[Dict[str, Any]]:
        query = (
            select(StockMovement, Part.name, Part.sku, User.full_name)
            .join(Part, StockMovement.part_id == Part.id)
            .join(User, StockMovement.created_by == User.id)
        )

        if conditions:
            query = query.where(and_(*conditions))

        query = query.order_by(desc(StockMovement.created_at), desc(StockMovement.id))

        if limit is not None:
            query = query.limit(limit)

        result = await self.db.execute(query)

        records = []
        for movement, part_name, sku, user_name in result.all():
            records.append({
                'id': movement.id,
                'part_id': movement.part_id,
                'part_name': part_name,
                'sku': sku,
                'qty_change': movement.qty_change,
                'reason': movement.reason,
                'order_id': movement.order_id,
                'notes': movement.notes,
                'created_at': movement.created_at,
                'created_by': {'id': movement.created_by, 'name': user_name}
            })
        return records
