from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
import enum
from openbook.database import Base


class WithdrawStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FROZEN = "FROZEN"


class WithdrawRequest(Base):
    __tablename__ = "withdraw_requests"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    admin_id = Column(Integer, ForeignKey("admins.id"), nullable=True, index=True)
    asset = Column(String(20), nullable=False, default="USDT")
    amount = Column(Numeric(20, 8), nullable=False)
    wallet_address = Column(String, nullable=False)
    status = Column(Enum(WithdrawStatus), nullable=False, default=WithdrawStatus.PENDING, index=True)
    note = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
