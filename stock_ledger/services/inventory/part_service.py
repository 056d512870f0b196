from typing import List, Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import func, delete
from stock_ledger.models.inventory.part import Part
from stock_ledger.models.inventory.stock_level import StockLevel
from stock_ledger.models.inventory.stock_movement import StockMovement
from stock_ledger.schemas.inventory.part import PartCreate, PartUpdate
from stock_ledger.core.exceptions import NotFoundError, ValidationError

class PartService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_part(self, part_data: PartCreate, current_user_id: int) -> Part:
        part = Part(
            **part_data.model_dump(),
            created_by=current_user_id,
            updated_by=current_user_id
        )

        self.db.add(part)
        await self.db.commit()
        await self.db.refresh(part)
        return part

    async def get_part(self, part_id: int) -> Optional[Part]:
        result = await self.db.execute(
            select(Part).where(Part.id == part_id, Part.is_deleted.is_not(True))
        )
        return result.scalar_one_or_none()

    async def get_part_with_stock(self, part_id: int) -> Optional[Dict[str, Any]]:
        """Part plus its available quantity (0 when it has no level yet)"""
        result = await self.db.execute(
            select(Part, func.coalesce(StockLevel.available_qty, 0))
            .outerjoin(StockLevel, StockLevel.part_id == Part.id)
            .where(Part.id == part_id, Part.is_deleted.is_not(True))
        )
        row = result.first()
        if not row:
            return None
        part, available_qty = row
        return self._with_stock(part, available_qty)

    async def list_parts(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        query = (
            select(Part, func.coalesce(StockLevel.available_qty, 0))
            .outerjoin(StockLevel, StockLevel.part_id == Part.id)
            .where(Part.is_deleted.is_not(True))
        )
        if category:
            query = query.where(Part.category == category)

        result = await self.db.execute(query.order_by(Part.name, Part.id))
        return [self._with_stock(part, available_qty) for part, available_qty in result.all()]

    async def update_part(self, part_id: int, part_data: PartUpdate, current_user_id: int) -> Part:
        part = await self.get_part(part_id)
        if not part:
            raise NotFoundError("Part not found")

        for field, value in part_data.model_dump(exclude_unset=True).items():
            setattr(part, field, value)
        part.updated_by = current_user_id

        await self.db.commit()
        await self.db.refresh(part)
        return part

    async def delete_part(self, part_id: int) -> None:
        """Delete a part that never had stock recorded against it"""
        part = await self.get_part(part_id)
        if not part:
            raise NotFoundError("Part not found")

        history = await self.db.execute(
            select(func.count(StockMovement.id)).where(StockMovement.part_id == part_id)
        )
        if history.scalar():
            raise ValidationError("Part has stock history and cannot be deleted")

        await self.db.execute(delete(StockLevel).where(StockLevel.part_id == part_id))
        await self.db.execute(delete(Part).where(Part.id == part_id))
        await self.db.commit()

    @staticmethod
    def _with_stock(part: Part, available_qty: int) -> Dict[str, Any]:
        return {
            "id": part.id,
            "name": part.name,
            "category": part.category,
            "description": part.description,
            "sku": part.sku,
            "group": part.group,
            "part_number": part.part_number,
            "created_at": part.created_at,
            "updated_at": part.updated_at,
            "available_qty": int(available_qty or 0),
        }
