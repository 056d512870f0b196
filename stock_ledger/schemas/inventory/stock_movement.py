from pydantic import Field, field_validator
from typing import Optional
from datetime import datetime
from stock_ledger.models.shared.enums import StockReason
from stock_ledger.schemas.common.base import CamelModel

class StockAdjustment(CamelModel):
    part_id: int
    qty_change: int
    reason: StockReason
    order_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator('reason')
    @classmethod
    def validate_manual_reason(cls, v):
        if v not in StockReason.manual_reasons():
            raise ValueError(f"'{v.value}' is reserved for order workflows")
        return v

class StockReconcileRequest(CamelModel):
    part_id: Optional[int] = None

class StockMovement(CamelModel):
    id: int
    part_id: int
    qty_change: int
    reason: StockReason
    order_id: Optional[int] = None
    created_by: int
    notes: Optional[str] = None
    created_at: datetime

class ActorRef(CamelModel):
    id: int
    name: Optional[str] = None

class MovementRecord(CamelModel):
    id: int
    part_id: int
    part_name: str
    sku: str
    qty_change: int
    reason: StockReason
    order_id: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime
    created_by: ActorRef
