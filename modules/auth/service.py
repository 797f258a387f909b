"""
Auth Module - Service Layer
=============================
Username/password login, staff user management, profile and password changes.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from common.helpers import now_utc
from common.security import hash_password, verify_password, create_token
from common.exceptions import AuthenticationError, AuthorizationError, NotFoundError, SwarnaBillError
from modules.user.models import User, UserRole

logger = logging.getLogger("swarnabill.auth")

PROFILE_FIELDS = ("full_name", "shop_name", "address", "gstin", "phone", "email")


class AuthService:
    """Handles authentication logic: credential check, token creation, user management."""

    def authenticate(self, db: Session, username: str, password: str) -> Tuple[User, str]:
        """
        Verify credentials and issue a token.

        Raises AuthenticationError on unknown user, inactive user or bad password.
        The message is the same for all three so usernames can't be enumerated.
        """
        user = db.query(User).filter(User.username == username.strip()).first()
        if not user or not user.is_active or not verify_password(password, user.password_hash):
            logger.info(f"Failed login for '{username}'")
            raise AuthenticationError("Invalid credentials")

        user.last_login_at = now_utc()
        db.flush()

        token = create_token({"sub": str(user.id), "username": user.username, "role": user.role})
        logger.info(f"User '{user.username}' logged in")
        return user, token

    def create_user(
        self, db: Session, username: str, password: str,
        role: str = UserRole.STAFF, **profile,
    ) -> User:
        """Create a staff user. Caller must commit."""
        username = username.strip()
        if db.query(User.id).filter(User.username == username).first():
            raise SwarnaBillError(f"Username '{username}' is already taken")
        try:
            role = UserRole(role).value
        except ValueError:
            raise SwarnaBillError(f"Unknown role: {role}")

        user = User(
            username=username,
            password_hash=hash_password(password),
            role=role,
            full_name=profile.get("full_name"),
            shop_name=profile.get("shop_name"),
            address=profile.get("address"),
            gstin=profile.get("gstin"),
            phone=profile.get("phone"),
            email=profile.get("email"),
        )
        db.add(user)
        db.flush()
        logger.info(f"Created user '{username}' with role {role}")
        return user

    def change_password(self, db: Session, user: User, current_password: str, new_password: str):
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")
        user.password_hash = hash_password(new_password)
        db.flush()

    def update_profile(self, db: Session, user: User, **profile) -> User:
        """Overwrite the given profile fields. None leaves a field untouched."""
        for field in PROFILE_FIELDS:
            value = profile.get(field)
            if value is not None:
                setattr(user, field, value.strip() or None)
        db.flush()
        return user

    # ==========================================
    # Staff management (admin)
    # ==========================================

    def list_users(self, db: Session, role: Optional[str] = None, is_active: Optional[bool] = None) -> List[User]:
        q = db.query(User)
        if role:
            q = q.filter(User.role == UserRole(role).value)
        if is_active is not None:
            q = q.filter(User.is_active == is_active)
        return q.order_by(User.username).all()

    def set_user_status(self, db: Session, admin: User, user_id: int, is_active: bool) -> User:
        """
        Activate or deactivate a user. Caller must commit.

        A deactivated user is rejected at login and by require_login, so their
        outstanding tokens stop working immediately.
        """
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        if user.id == admin.id and not is_active:
            raise AuthorizationError("You cannot deactivate your own account")

        user.is_active = is_active
        db.flush()
        logger.info(
            f"User '{user.username}' {'activated' if is_active else 'deactivated'} by '{admin.username}'"
        )
        return user


# Singleton
auth_service = AuthService()
