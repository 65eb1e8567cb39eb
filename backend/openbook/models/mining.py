from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
import enum
from openbook.database import Base

class MiningStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    REJECTED = "REJECTED"
    ABORTED = "ABORTED"
    COMPLETED = "COMPLETED"

TERMINAL_MINING_STATUSES = (MiningStatus.REJECTED, MiningStatus.ABORTED, MiningStatus.COMPLETED)

class MiningOrder(Base):
    __tablename__ = "mining_orders"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    plan_id = Column(String(20), nullable=False)
    amount = Column(Numeric(20, 8), nullable=False)
    status = Column(Enum(MiningStatus), nullable=False, default=MiningStatus.PENDING, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    activated_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    note = Column(String(500), nullable=True)
