from sqlalchemy import Column, Integer, DateTime, Text, ForeignKey, Index, Enum as SQLEnum, event
from sqlalchemy.orm import relationship
from stock_ledger.models.base import Base
from stock_ledger.models.shared.enums import StockReason
from stock_ledger.core.exceptions import LedgerImmutableError

class StockMovement(Base):
    """Append-only ledger entry; the source of truth for stock quantities"""
    __tablename__ = 'stock_movements'

    id = Column(Integer, primary_key=True, index=True)
    part_id = Column(Integer, ForeignKey('parts.id'), nullable=False, index=True)
    qty_change = Column(Integer, nullable=False)
    reason = Column(
        SQLEnum(StockReason, name="stock_reason", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    order_id = Column(Integer)
    created_by = Column(Integer, ForeignKey('users.id'), nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    __table_args__ = (
        Index('ix_stock_movements_part_created', 'part_id', 'created_at'),
    )

    # Relationships
    part = relationship("Part", back_populates="stock_movements")
    user = relationship("User")


@event.listens_for(StockMovement, "before_update")
def _block_movement_update(mapper, connection, target):
    raise LedgerImmutableError(
        f"Stock movement {target.id} is immutable; append a compensating movement instead"
    )


@event.listens_for(StockMovement, "before_delete")
def _block_movement_delete(mapper, connection, target):
    raise LedgerImmutableError(f"Stock movement {target.id} cannot be deleted")
