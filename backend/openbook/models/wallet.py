from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.sql import func
from openbook.database import Base

ASSETS = ("USDT", "BTC", "ETH", "SOL", "XRP")
QUOTE_ASSET = "USDT"

class Balance(Base):
    """Primary USDT balance, one row per user. Mirrors the USDT holding."""
    __tablename__ = "balances"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_balance_non_negative"),
    )

    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    balance = Column(Numeric(precision=20, scale=8), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

class Holding(Base):
    __tablename__ = "holdings"
    __table_args__ = (
        UniqueConstraint("user_id", "asset", name="uq_holding_user_asset"),
        CheckConstraint("balance >= 0", name="ck_holding_non_negative"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    asset = Column(String(20), nullable=False)
    balance = Column(Numeric(precision=20, scale=8), nullable=False, default=0)
