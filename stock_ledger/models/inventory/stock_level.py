from sqlalchemy import Column, Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from stock_ledger.models.base import Base

class StockLevel(Base):
    """Per-part quantities re-aggregated from the stock ledger on every write"""
    __tablename__ = 'stock_levels'

    id = Column(Integer, primary_key=True, index=True)
    part_id = Column(Integer, ForeignKey('parts.id'), nullable=False, unique=True)
    available_qty = Column(Integer, nullable=False, default=0)
    used_qty = Column(Integer, nullable=False, default=0)
    damaged_qty = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True))

    # Relationships
    part = relationship("Part", back_populates="stock_level")
