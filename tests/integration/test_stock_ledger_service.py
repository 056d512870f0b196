import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy import select
from stock_ledger.core.exceptions import LedgerImmutableError, ValidationError
from stock_ledger.models.inventory.stock_movement import StockMovement
from stock_ledger.models.shared.enums import StockReason
from stock_ledger.services.inventory.stock_ledger_service import LedgerTotals, StockLedgerService
from stock_ledger.services.inventory.stock_level_service import StockLevelService

START = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
class TestStockLedger:
    """Append-only movement store"""

    async def test_append_requires_part_and_user(self, db, admin_user, part):
        ledger = StockLedgerService(db)

        with pytest.raises(ValidationError):
            await ledger.append(None, 1, StockReason.PURCHASE, admin_user.id)
        with pytest.raises(ValidationError):
            await ledger.append(part.id, 1, StockReason.PURCHASE, None)

    async def test_append_uses_clock(self, db, admin_user, part, clock):
        ledger = StockLedgerService(db, clock=clock)

        movement = await ledger.append(part.id, 4, StockReason.PURCHASE, admin_user.id, order_id=77)
        await db.commit()

        assert movement.id is not None
        assert movement.order_id == 77
        assert movement.created_at.replace(tzinfo=None) == START.replace(tzinfo=None)

    async def test_aggregate_for_part_without_movements(self, db, part):
        totals = await StockLedgerService(db).aggregate_for_part(part.id)
        assert totals == LedgerTotals(movement_count=0, available=0, used=0, damaged=0)

    async def test_aggregate_splits_used_and_damaged(self, db, admin_user, part, clock):
        ledger = StockLedgerService(db, clock=clock)
        for qty_change, reason in [
            (50, StockReason.PURCHASE),
            (-10, StockReason.USED),
            (-5, StockReason.USED),
            (-2, StockReason.DAMAGED),
            (3, StockReason.RETURN),
            (-6, StockReason.RESERVE),
        ]:
            await ledger.append(part.id, qty_change, reason, admin_user.id)
        await db.commit()

        totals = await ledger.aggregate_for_part(part.id)

        assert totals == LedgerTotals(movement_count=6, available=30, used=-15, damaged=-2)

    async def test_query_by_part_in_recorded_order(self, db, admin_user, make_part, clock):
        ledger = StockLedgerService(db, clock=clock)
        first = await make_part()
        other = await make_part()
        await ledger.append(first.id, 1, StockReason.PURCHASE, admin_user.id)
        await ledger.append(other.id, 9, StockReason.PURCHASE, admin_user.id)
        await ledger.append(first.id, 2, StockReason.PURCHASE, admin_user.id)
        await db.commit()

        movements = await ledger.query_by_part(first.id)

        assert [m.qty_change for m in movements] == [1, 2]

    async def test_movements_cannot_be_updated(self, db, admin_user, part, clock):
        ledger = StockLedgerService(db, clock=clock)
        movement = await ledger.append(part.id, 5, StockReason.PURCHASE, admin_user.id)
        await db.commit()
        movement_id = movement.id

        movement.qty_change = 50
        with pytest.raises(LedgerImmutableError):
            await db.flush()
        await db.rollback()

        stored = await db.execute(
            select(StockMovement.qty_change).where(StockMovement.id == movement_id)
        )
        assert stored.scalar_one() == 5

    async def test_movements_cannot_be_deleted(self, db, admin_user, part, clock):
        ledger = StockLedgerService(db, clock=clock)
        movement = await ledger.append(part.id, 5, StockReason.PURCHASE, admin_user.id)
        await db.commit()

        await db.delete(movement)
        with pytest.raises(LedgerImmutableError):
            await db.flush()
        await db.rollback()

        assert len(await ledger.query_by_part(part.id)) == 1


@pytest.mark.asyncio
class TestStockHistory:
    """Denormalized history, newest first"""

    async def _record(self, db, make_part, admin_user, clock):
        service = StockLevelService(db, clock=clock)
        motor = await make_part(name="DC Motor", category="Motors", sku="DC-MOTOR")
        sensor = await make_part(name="IR Sensor", category="Sensors", sku="IR-SENSOR")
        await service.adjust_stock(motor.id, 10, StockReason.PURCHASE, admin_user.id)
        await service.adjust_stock(sensor.id, 4, StockReason.PURCHASE, admin_user.id)
        await service.adjust_stock(motor.id, -1, StockReason.DAMAGED, admin_user.id, notes="burnt")
        return motor, sensor

    async def test_newest_first_with_part_and_user(self, db, make_part, admin_user, clock):
        motor, sensor = await self._record(db, make_part, admin_user, clock)

        history = await StockLedgerService(db).query_history()

        assert [(h["part_id"], h["qty_change"]) for h in history] == [(motor.id, -1), (sensor.id, 4), (motor.id, 10)]
        latest = history[0]
        assert latest["part_name"] == "DC Motor"
        assert latest["sku"] == "DC-MOTOR"
        assert latest["reason"] == StockReason.DAMAGED
        assert latest["notes"] == "burnt"
        assert latest["created_by"] == {"id": admin_user.id, "name": admin_user.full_name}

    async def test_filters(self, db, make_part, admin_user, clock):
        motor, _ = await self._record(db, make_part, admin_user, clock)
        ledger = StockLedgerService(db)

        by_part = await ledger.query_history(part_id=motor.id)
        assert [h["qty_change"] for h in by_part] == [-1, 10]

        by_reason = await ledger.query_history(reason=StockReason.DAMAGED)
        assert [h["qty_change"] for h in by_reason] == [-1]

        limited = await ledger.query_history(limit=1)
        assert [h["qty_change"] for h in limited] == [-1]

    async def test_date_range_is_inclusive(self, db, admin_user, part):
        ledger = StockLedgerService(db)
        stamps = [START + timedelta(days=day) for day in range(4)]
        for day, stamp in enumerate(stamps):
            ledger.clock = lambda stamp=stamp: stamp
            await ledger.append(part.id, day + 1, StockReason.PURCHASE, admin_user.id)
        await db.commit()

        history = await ledger.query_history(start_date=stamps[1], end_date=stamps[2])

        assert [h["qty_change"] for h in history] == [3, 2]

    async def test_recent_movements(self, db, make_part, admin_user, clock):
        await self._record(db, make_part, admin_user, clock)

        recent = await StockLedgerService(db).recent_movements(limit=2)

        assert [h["qty_change"] for h in recent] == [-1, 4]

    async def test_part_and_date_range_combined(self, db, make_part, admin_user):
        motor = await make_part(name="Servo Motor", category="Motors", sku="SERVO")
        sensor = await make_part(name="Light Sensor", category="Sensors", sku="LDR")
        ledger = StockLedgerService(db)
        stamps = [START + timedelta(days=day) for day in range(3)]
        for day, stamp in enumerate(stamps):
            ledger.clock = lambda stamp=stamp: stamp
            await ledger.append(motor.id, day + 1, StockReason.PURCHASE, admin_user.id)
            await ledger.append(sensor.id, 10 * (day + 1), StockReason.PURCHASE, admin_user.id)
        await db.commit()

        history = await ledger.query_history(part_id=motor.id, start_date=stamps[1], end_date=stamps[2])

        assert [(h["part_id"], h["qty_change"]) for h in history] == [(motor.id, 3), (motor.id, 2)]

    async def test_zero_limit_returns_nothing(self, db, make_part, admin_user, clock):
        await self._record(db, make_part, admin_user, clock)

        assert await StockLedgerService(db).query_history(limit=0) == []
