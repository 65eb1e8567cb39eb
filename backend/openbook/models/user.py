from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
import enum
from openbook.database import Base

class AdminRole(str, enum.Enum):
    superadmin = "superadmin"
    admin = "admin"
    subadmin = "subadmin"

ROOT_ROLES = (AdminRole.superadmin, AdminRole.admin)

class AdminStatus(str, enum.Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

class Admin(Base):
    __tablename__ = "admins"
    __table_args__ = (
        UniqueConstraint("invitation_code", name="uq_admins_invitation_code"),
    )

    id = Column(Integer, primary_key=True)
    wallet_address = Column(String, unique=True, nullable=False, index=True)
    username = Column(String(64), nullable=True)
    role = Column(Enum(AdminRole), nullable=False, default=AdminRole.subadmin)
    managed_by = Column(Integer, ForeignKey("admins.id"), nullable=True)
    status = Column(Enum(AdminStatus), nullable=False, default=AdminStatus.APPROVED)
    # users sign up under a sub-admin with this code
    invitation_code = Column(String(32), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def is_root(self) -> bool:
        return self.role in ROOT_ROLES

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    wallet_address = Column(String, unique=True, nullable=False, index=True)
    username = Column(String(64), nullable=True)
    email = Column(String(255), nullable=True)
    managed_by = Column(Integer, ForeignKey("admins.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
