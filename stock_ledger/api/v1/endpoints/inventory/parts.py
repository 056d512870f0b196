import logging
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from stock_ledger.api.dependencies import get_current_user, require_roles
from stock_ledger.core.database import get_async_session
from stock_ledger.core.exceptions import NotFoundError
from stock_ledger.services.inventory.part_service import PartService
from stock_ledger.schemas.inventory.part import Part, PartCreate, PartUpdate, PartWithStock
from stock_ledger.models.auth.user import User
from stock_ledger.models.shared.enums import UserRole

router = APIRouter()
logger = logging.getLogger(__name__)

@router.post("/", response_model=Part, status_code=status.HTTP_201_CREATED)
async def create_part(
    part: PartCreate,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.SUPERADMIN))
):
    """Create a new part. Stock starts at zero until the first adjustment"""
    created = await PartService(db).create_part(part, current_user.id)
    logger.info(f"Part {created.id} created by user {current_user.id}")
    return created

@router.get("/", response_model=List[PartWithStock])
async def get_parts(
    category: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user)
):
    """Get all parts with their available quantity"""
    return await PartService(db).list_parts(category=category)

@router.get("/{part_id}", response_model=PartWithStock)
async def get_part(
    part_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user)
):
    part = await PartService(db).get_part_with_stock(part_id)
    if not part:
        raise NotFoundError("Part not found")
    return part

@router.put("/{part_id}", response_model=Part)
async def update_part(
    part_id: int,
    part: PartUpdate,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.SUPERADMIN))
):
    return await PartService(db).update_part(part_id, part, current_user.id)

@router.delete("/{part_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_part(
    part_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.SUPERADMIN))
):
    """Delete a part and its zeroed stock level. Parts with ledger history are kept"""
    await PartService(db).delete_part(part_id)
    logger.info(f"Part {part_id} deleted by user {current_user.id}")
