from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from openbook.database import Base

class UserAccessControl(Base):
    __tablename__ = "user_access_controls"

    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    trade_restricted = Column(Boolean, nullable=True)
    mining_restricted = Column(Boolean, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

class TradePermission(Base):
    __tablename__ = "trade_permissions"

    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    buy_enabled = Column(Boolean, nullable=False, default=True)
    sell_enabled = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
