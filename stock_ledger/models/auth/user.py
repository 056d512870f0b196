from sqlalchemy import Column, String, Boolean, Enum as SQLEnum
from stock_ledger.db.base import BaseModel
from stock_ledger.models.shared.enums import UserRole

class User(BaseModel):
    __tablename__ = "users"

    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    role = Column(
        SQLEnum(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.STUDENT,
    )
    is_active = Column(Boolean, default=True)

    def __repr__(self):
        return f"<User {self.email}>"
