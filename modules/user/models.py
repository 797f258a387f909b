"""
User Module - Staff User Model
================================
Shop staff who log in to the billing counter.
Roles are hierarchical: viewer < staff < admin.
"""

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index, text
from sqlalchemy.sql import func

from config.database import Base


class UserRole(str, enum.Enum):
    ADMIN = "admin"      # rates, users, archive
    STAFF = "staff"      # create bills / exchanges
    VIEWER = "viewer"    # read-only


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # === Identity ===
    username = Column(String(50), unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    full_name = Column(String, nullable=True)
    role = Column(String, default=UserRole.STAFF, nullable=False)
    is_active = Column(Boolean, default=True, server_default=text("true"), nullable=False, index=True)

    # === Shop profile (printed on bills) ===
    shop_name = Column(String, nullable=True)
    address = Column(String, nullable=True)
    gstin = Column(String(15), nullable=True)
    phone = Column(String(15), nullable=True)
    email = Column(String, nullable=True)

    # === Audit ===
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("ix_users_role_active", "role", "is_active"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def can_write(self) -> bool:
        """Staff and admins may create bills; viewers may not."""
        return self.role in (UserRole.ADMIN, UserRole.STAFF)

    @property
    def display_name(self) -> str:
        return self.full_name or self.username

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "role": self.role,
            "is_active": self.is_active,
            "shop_name": self.shop_name,
            "address": self.address,
            "gstin": self.gstin,
            "phone": self.phone,
            "email": self.email,
        }

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"
