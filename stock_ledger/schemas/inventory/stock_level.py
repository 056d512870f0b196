from typing import Optional
from datetime import datetime
from stock_ledger.schemas.common.base import CamelModel
from stock_ledger.schemas.inventory.part import PartSummary

class StockLevel(CamelModel):
    id: int
    part_id: int
    available_qty: int
    used_qty: int
    damaged_qty: int
    updated_at: Optional[datetime] = None
    part: Optional[PartSummary] = None

class StockQuantities(CamelModel):
    available_qty: int
    used_qty: int
    damaged_qty: int

class StockDrift(CamelModel):
    part_id: int
    before: Optional[StockQuantities] = None
    after: StockQuantities

class StockStats(CamelModel):
    total_parts: int
    low_stock: int
    out_of_stock: int
    total_value: int

class CategoryBreakdown(CamelModel):
    category: str
    count: int
    value: int
