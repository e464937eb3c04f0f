from sqlalchemy import JSON, Column, Enum, ForeignKey, Integer, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from mfg_inventory.core.database import Base


class UserRole(str, enum.Enum):
    admin = "admin"
    user = "user"


class UserStatus(str, enum.Enum):
    active = "active"
    blocked = "blocked"


PERMISSION_KEYS = ("create", "read", "update", "delete")


def default_permissions() -> dict:
    return {"create": False, "read": True, "update": False, "delete": False}


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.user)
    status = Column(Enum(UserStatus), nullable=False, default=UserStatus.active)

    # Unit-scoped users only; admins have no unit
    unit_id = Column(Integer, ForeignKey("units.id", ondelete="SET NULL"), nullable=True)
    permissions = Column(JSON, nullable=False, default=default_permissions)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    unit = relationship("Unit", back_populates="users")

    def __repr__(self):
        return f"<User(email='{self.email}', role='{self.role}')>"
