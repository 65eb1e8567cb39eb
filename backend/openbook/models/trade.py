from sqlalchemy import Column, Integer, Numeric, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
import enum
from openbook.database import Base

class TradeSide(str, enum.Enum):
    BUY = "BUY"
    SELL = "SELL"

class TradeResult(str, enum.Enum):
    PENDING = "PENDING"
    WIN = "WIN"
    LOSE = "LOSE"

class TradeOrder(Base):
    """One settled simulated trade session."""
    __tablename__ = "trade_orders"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    side = Column(Enum(TradeSide), nullable=False)
    stake = Column(Numeric(20, 8), nullable=False)
    pnl = Column(Numeric(20, 8), nullable=False, default=0)
    result = Column(Enum(TradeResult), nullable=False, default=TradeResult.PENDING)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
