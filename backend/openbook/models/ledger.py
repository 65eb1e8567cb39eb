from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey
from sqlalchemy.sql import func
from openbook.database import Base


class LedgerKind:
    deposit = "deposit"
    withdraw = "withdraw"
    exchange = "exchange"
    trade = "trade"
    mining_purchase = "mining_purchase"
    mining_refund = "mining_refund"
    topup = "topup"


class LedgerEntry(Base):
    """Append-only audit row, one per balance mutation."""
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    admin_id = Column(Integer, ForeignKey("admins.id"), nullable=True)
    asset = Column(String(20), nullable=False)
    amount = Column(Numeric(20, 8), nullable=False)
    balance_after = Column(Numeric(20, 8), nullable=True)
    kind = Column(String(30), nullable=False)
    note = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
