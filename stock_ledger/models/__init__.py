from stock_ledger.models.auth.user import User
from stock_ledger.models.inventory.part import Part
from stock_ledger.models.inventory.stock_level import StockLevel
from stock_ledger.models.inventory.stock_movement import StockMovement
