from fastapi import APIRouter
from stock_ledger.api.v1.endpoints.inventory import parts, stock_levels, stock_movements
from stock_ledger.api.v1.endpoints.notification import stock_updates

api_router = APIRouter()

# Inventory routes
api_router.include_router(parts.router, prefix="/parts", tags=["Parts"])
api_router.include_router(stock_levels.router, prefix="/stock", tags=["Stock"])
api_router.include_router(stock_movements.router, prefix="/stock", tags=["Stock"])

# Real-time routes
api_router.include_router(stock_updates.router, prefix="/stock", tags=["Stock Updates"])
