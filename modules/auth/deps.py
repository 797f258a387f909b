"""
Auth Module - Dependencies
===========================
FastAPI dependencies for staff authentication and authorization.
These are injected into route handlers via Depends().

A token is accepted from the Authorization: Bearer header (fetch frontend)
or the auth_token cookie.
"""

from typing import Optional

from fastapi import Request, Depends, HTTPException, status
from sqlalchemy.orm import Session

from config.database import get_db
from common.security import decode_token
from modules.user.models import User


def _extract_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get("auth_token")


def get_current_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """
    Identify the current user from the bearer token or auth_token cookie.
    Returns User object or None.
    """
    token = _extract_token(request)
    if not token:
        return None

    payload = decode_token(token)
    if not payload:
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None

    return db.query(User).filter(User.id == int(user_id), User.is_active == True).first()


def require_login(user=Depends(get_current_user)) -> User:
    """Require any authenticated active user. Raises 401 if not logged in."""
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Please authenticate")
    return user


def require_staff(user=Depends(require_login)) -> User:
    """Staff or admin. Viewers get 403."""
    if not user.can_write:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Staff or admin access required")
    return user


def require_admin(user=Depends(require_login)) -> User:
    """Only full admins."""
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
