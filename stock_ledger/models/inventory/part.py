from sqlalchemy import Column, String, Text
from sqlalchemy.orm import relationship
from stock_ledger.db.base import BaseModel

class Part(BaseModel):
    __tablename__ = 'parts'

    name = Column(String(200), nullable=False, index=True)
    category = Column(String(100), nullable=False)
    description = Column(Text)
    sku = Column(String(100), nullable=False, index=True)
    group = Column(String(100))
    part_number = Column(String(100))

    # Relationships
    stock_level = relationship("StockLevel", back_populates="part", uselist=False)
    stock_movements = relationship("StockMovement", back_populates="part", viewonly=True)

    def __repr__(self):
        return f"<Part {self.sku} {self.name}>"
