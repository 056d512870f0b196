from pydantic import Field
from typing import Optional
from datetime import datetime
from stock_ledger.schemas.common.base import CamelModel

class PartBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    sku: str = Field(..., min_length=1, max_length=100)
    group: Optional[str] = None
    part_number: Optional[str] = None

class PartCreate(PartBase):
    pass

class PartUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    sku: Optional[str] = Field(None, min_length=1, max_length=100)
    group: Optional[str] = None
    part_number: Optional[str] = None

class PartSummary(CamelModel):
    id: int
    name: str
    category: str
    sku: str

class Part(PartBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class PartWithStock(Part):
    available_qty: int = 0
