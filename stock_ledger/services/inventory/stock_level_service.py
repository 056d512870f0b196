import logging
import math
from typing import List, Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload, contains_eager
from sqlalchemy import and_, or_, case, func, union
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from stock_ledger.models.inventory.stock_level import StockLevel
from stock_ledger.models.inventory.stock_movement import StockMovement
from stock_ledger.models.inventory.part import Part
from stock_ledger.models.shared.enums import StockReason
from stock_ledger.services.inventory.stock_ledger_service import StockLedgerService
from stock_ledger.services.notification.stock_broadcaster import StockUpdatePublisher
from stock_ledger.db.unit_of_work import Checkpoint, run_unit_of_work
from stock_ledger.core.exceptions import InsufficientStockError, ValidationError
from stock_ledger.core.config import settings
from stock_ledger.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)


class StockLevelService:
    """Materialized per-part stock levels, always re-aggregated from the ledger"""

    SORTABLE_PART_FIELDS = {
        "name": Part.name,
        "sku": Part.sku,
        "category": Part.category,
        "group": Part.group,
        "part_number": Part.part_number,
        "created_at": Part.created_at,
    }

    def __init__(
        self,
        db: AsyncSession,
        publisher: Optional[StockUpdatePublisher] = None,
        clock: Optional[Clock] = None,
        use_transactions: Optional[bool] = None,
        allow_negative: Optional[bool] = None
    ):
        self.db = db
        self.clock = clock or utcnow
        self.ledger = StockLedgerService(db, clock=self.clock)
        self.publisher = publisher
        self.use_transactions = settings.STOCK_USE_TRANSACTIONS if use_transactions is None else use_transactions
        self.allow_negative = settings.STOCK_ALLOW_NEGATIVE if allow_negative is None else allow_negative

    async def adjust_stock(
        self,
        part_id: int,
        qty_change: int,
        reason: StockReason,
        created_by: int,
        order_id: Optional[int] = None,
        notes: Optional[str] = None
    ) -> StockLevel:
        """Record a movement and rewrite the part's level from its full ledger"""
        reason = self._validate_adjustment(part_id, qty_change, reason, created_by)

        async def work(session: AsyncSession, checkpoint: Checkpoint) -> StockLevel:
            level = await self._ensure_stock_level(part_id)
            await checkpoint()

            if not self.allow_negative and qty_change < 0:
                current = await self.ledger.aggregate_for_part(part_id)
                if current.available + qty_change < 0:
                    raise InsufficientStockError(
                        f"Part {part_id} has {current.available} available, cannot apply {qty_change}"
                    )

            await self.ledger.append(
                part_id=part_id,
                qty_change=qty_change,
                reason=reason,
                created_by=created_by,
                order_id=order_id,
                notes=notes
            )
            await checkpoint()

            return await self._materialize(level, checkpoint)

        async def compensate(session: AsyncSession):
            # Bring the level back in line with whatever the ledger holds now
            level = await self._ensure_stock_level(part_id)
            await self._materialize(level, session.commit)

        level = await run_unit_of_work(
            self.db, work, use_transactions=self.use_transactions, compensate=compensate
        )
        logger.info(
            f"Stock adjusted for part {part_id}: {qty_change:+d} ({reason.value}) by user {created_by}, "
            f"available now {level.available_qty}"
        )

        await self._publish_update(level, reason)
        return await self.get_stock_level(part_id)

    async def reconcile_stock_level(self, part_id: int) -> StockLevel:
        """Re-materialize a level from the ledger without recording a movement"""
        if part_id is None:
            raise ValidationError("part_id is required")

        async def work(session: AsyncSession, checkpoint: Checkpoint) -> StockLevel:
            level = await self._ensure_stock_level(part_id)
            await checkpoint()
            return await self._materialize(level, checkpoint)

        await run_unit_of_work(self.db, work, use_transactions=self.use_transactions)
        return await self.get_stock_level(part_id)

    async def reconcile_all(self) -> List[Dict[str, Any]]:
        """Repair every level whose cached figures differ from its ledger"""
        part_ids_result = await self.db.execute(
            union(select(StockMovement.part_id), select(StockLevel.part_id))
        )
        part_ids = sorted(row[0] for row in part_ids_result.all())

        drifted = []
        for part_id in part_ids:
            existing = await self.get_stock_level(part_id)
            before = self._quantities(existing) if existing else None
            totals = await self.ledger.aggregate_for_part(part_id)
            expected = {
                "available_qty": totals.available,
                "used_qty": totals.used,
                "damaged_qty": totals.damaged,
            }
            if before == expected:
                continue

            level = await self.reconcile_stock_level(part_id)
            logger.warning(f"Stock level drift repaired for part {part_id}: {before} -> {expected}")
            drifted.append({"part_id": part_id, "before": before, "after": self._quantities(level)})

        return drifted

    async def get_stock_level(self, part_id: int) -> Optional[StockLevel]:
        result = await self.db.execute(
            select(StockLevel)
            .options(selectinload(StockLevel.part))
            .where(StockLevel.part_id == part_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_stock_levels(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "name",
        page: int = 1,
        limit: int = 20
    ) -> Dict[str, Any]:
        """Stock levels joined with their parts, filtered and paginated"""
        sort_column = self.SORTABLE_PART_FIELDS.get(sort_by)
        if sort_column is None:
            raise ValidationError(f"Cannot sort by '{sort_by}'")
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")

        conditions = []
        if category:
            conditions.append(Part.category == category)
        if search:
            like = f"%{search}%"
            conditions.append(or_(Part.name.ilike(like), Part.sku.ilike(like)))

        query = select(StockLevel).join(Part, StockLevel.part_id == Part.id)
        if conditions:
            query = query.where(and_(*conditions))

        total_result = await self.db.execute(select(func.count()).select_from(query.subquery()))
        total = total_result.scalar() or 0

        result = await self.db.execute(
            query.options(contains_eager(StockLevel.part))
            .order_by(sort_column, StockLevel.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )

        return {
            "items": list(result.scalars().all()),
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit)
        }

    async def get_stock_stats(self) -> Dict[str, Any]:
        """Dashboard counters over the materialized levels"""
        threshold = settings.LOW_STOCK_THRESHOLD
        result = await self.db.execute(
            select(
                func.count(StockLevel.id).label('total_parts'),
                func.coalesce(func.sum(case((StockLevel.available_qty < threshold, 1), else_=0)), 0).label('low_stock'),
                func.coalesce(func.sum(case((StockLevel.available_qty <= 0, 1), else_=0)), 0).label('out_of_stock'),
                func.coalesce(func.sum(StockLevel.available_qty), 0).label('total_qty')
            )
        )
        row = result.one()

        return {
            "total_parts": int(row.total_parts or 0),
            "low_stock": int(row.low_stock or 0),
            "out_of_stock": int(row.out_of_stock or 0),
            "total_value": int(row.total_qty or 0) * settings.STOCK_PLACEHOLDER_UNIT_VALUE
        }

    async def get_category_breakdown(self) -> List[Dict[str, Any]]:
        """Part count and placeholder value per category, for parts with a level"""
        result = await self.db.execute(
            select(
                Part.category,
                func.count(StockLevel.id).label('count'),
                func.coalesce(func.sum(StockLevel.available_qty), 0).label('total_qty')
            )
            .join(StockLevel, StockLevel.part_id == Part.id)
            .group_by(Part.category)
            .order_by(Part.category)
        )

        return [
            {
                "category": row.category,
                "count": int(row.count),
                "value": int(row.total_qty or 0) * settings.STOCK_PLACEHOLDER_UNIT_VALUE
            }
            for row in result.all()
        ]

    def _validate_adjustment(self, part_id, qty_change, reason, created_by) -> StockReason:
        if part_id is None:
            raise ValidationError("part_id is required")
        if created_by is None:
            raise ValidationError("created_by is required")
        if isinstance(qty_change, bool) or not isinstance(qty_change, int):
            raise ValidationError("qty_change must be an integer")
        try:
            return StockReason(reason)
        except ValueError:
            raise ValidationError(f"Unknown stock reason '{reason}'")

    async def _ensure_stock_level(self, part_id: int) -> StockLevel:
        """Create a zeroed level if missing, then lock it for this unit of work"""
        values = {
            "part_id": part_id,
            "available_qty": 0,
            "used_qty": 0,
            "damaged_qty": 0,
            "updated_at": self.clock(),
        }
        dialect = self.db.get_bind().dialect.name

        if dialect == "postgresql":
            await self.db.execute(
                pg_insert(StockLevel).values(**values).on_conflict_do_nothing(index_elements=["part_id"])
            )
        elif dialect == "sqlite":
            await self.db.execute(
                sqlite_insert(StockLevel).values(**values).on_conflict_do_nothing(index_elements=["part_id"])
            )
        else:
            existing = await self.db.execute(select(StockLevel.id).where(StockLevel.part_id == part_id))
            if existing.scalar_one_or_none() is None:
                self.db.add(StockLevel(**values))
                await self.db.flush()

        result = await self.db.execute(
            select(StockLevel)
            .where(StockLevel.part_id == part_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def _materialize(self, level: StockLevel, checkpoint: Checkpoint) -> StockLevel:
        # Overwrite, never increment: the ledger is the only source of these figures
        totals = await self.ledger.aggregate_for_part(level.part_id)
        level.available_qty = totals.available
        level.used_qty = totals.used
        level.damaged_qty = totals.damaged
        level.updated_at = self.clock()
        await checkpoint()
        return level

    async def _publish_update(self, level: StockLevel, reason: StockReason):
        if self.publisher is None:
            return
        event = {
            "partId": level.part_id,
            "availableQty": level.available_qty,
            "action": reason.value
        }
        try:
            await self.publisher.publish(event)
        except Exception:
            # The change is committed; only the live notification is lost
            logger.exception(f"Stock update broadcast failed for part {level.part_id}")

    @staticmethod
    def _quantities(level: StockLevel) -> Dict[str, int]:
        return {
            "available_qty": level.available_qty,
            "used_qty": level.used_qty,
            "damaged_qty": level.damaged_qty,
        }
