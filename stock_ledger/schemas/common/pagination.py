from typing import Generic, List, TypeVar
from stock_ledger.schemas.common.base import CamelModel

T = TypeVar("T")

class PaginatedResponse(CamelModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int
    total_pages: int
