from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
import enum
from openbook.database import Base


class DepositStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"


class DepositRequest(Base):
    __tablename__ = "deposit_requests"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    admin_id = Column(Integer, ForeignKey("admins.id"), nullable=True, index=True)
    asset = Column(String(20), nullable=False, default="USDT")
    amount = Column(Numeric(20, 8), nullable=False)
    wallet_address = Column(String, nullable=False)
    status = Column(Enum(DepositStatus), nullable=False, default=DepositStatus.PENDING, index=True)
    note = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class AdminDepositAddress(Base):
    """Receiving address an admin publishes to the users it manages."""
    __tablename__ = "admin_deposit_addresses"
    __table_args__ = (
        UniqueConstraint("admin_id", "asset", name="uq_deposit_address_admin_asset"),
    )

    id = Column(Integer, primary_key=True)
    admin_id = Column(Integer, ForeignKey("admins.id"), nullable=False)
    asset = Column(String(20), nullable=False)
    address = Column(String, nullable=False, default="")
