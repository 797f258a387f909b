"""
Auth Module - API Routes
=========================
JSON login for the billing frontend, current user, staff management.

Endpoints:
  POST /api/auth/login      - Username/password -> token (+ auth_token cookie)
  POST /api/auth/logout     - Clear cookie
  GET  /api/auth/me         - Current user profile
  POST /api/auth/users      - Create staff user (admin)
  PUT  /api/auth/password   - Change own password
  PUT  /api/auth/profile    - Update own profile
  GET  /api/auth/users      - List staff users (admin)
  PUT  /api/auth/users/{id}/status - Activate / deactivate a user (admin)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from common.security import get_cookie_kwargs
from modules.auth.service import auth_service
from modules.auth.deps import require_login, require_admin
from modules.user.models import User, UserRole

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ==========================================
# Schemas
# ==========================================

class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1)


class CreateUserRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.STAFF
    full_name: Optional[str] = None
    shop_name: Optional[str] = None
    address: Optional[str] = None
    gstin: Optional[str] = Field(None, max_length=15)
    phone: Optional[str] = Field(None, max_length=15)
    email: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class ProfileUpdateRequest(BaseModel):
    full_name: Optional[str] = Field(None, max_length=100)
    shop_name: Optional[str] = Field(None, max_length=100)
    address: Optional[str] = Field(None, max_length=500)
    gstin: Optional[str] = Field(None, max_length=15)
    phone: Optional[str] = Field(None, max_length=15)
    email: Optional[str] = None


class UserStatusRequest(BaseModel):
    is_active: bool


# ==========================================
# Routes
# ==========================================

@router.post("/login")
async def login(body: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user, token = auth_service.authenticate(db, body.username, body.password)
    db.commit()
    response.set_cookie("auth_token", token, **get_cookie_kwargs())
    return {"success": True, "token": token, "user": user.to_dict()}


@router.post("/logout")
async def logout(response: Response):
    response.delete_cookie("auth_token")
    return {"success": True}


@router.get("/me")
async def me(user: User = Depends(require_login)):
    return {"success": True, "user": user.to_dict()}


@router.post("/users", status_code=201)
async def create_user(
    body: CreateUserRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    data = body.model_dump(exclude={"username", "password", "role"})
    user = auth_service.create_user(db, body.username, body.password, role=body.role.value, **data)
    db.commit()
    return {"success": True, "user": user.to_dict()}


@router.put("/password")
async def change_password(
    body: ChangePasswordRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_login),
):
    auth_service.change_password(db, user, body.current_password, body.new_password)
    db.commit()
    return {"success": True, "message": "Password updated"}


@router.put("/profile")
async def update_profile(
    body: ProfileUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_login),
):
    auth_service.update_profile(db, user, **body.model_dump())
    db.commit()
    return {"success": True, "message": "Profile updated", "user": user.to_dict()}


@router.get("/users")
async def list_users(
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    users = auth_service.list_users(db, role=role, is_active=is_active)
    return {"success": True, "users": [u.to_dict() for u in users], "total_records": len(users)}


@router.put("/users/{user_id}/status")
async def update_user_status(
    user_id: int,
    body: UserStatusRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = auth_service.set_user_status(db, admin, user_id, body.is_active)
    db.commit()
    state = "activated" if user.is_active else "deactivated"
    return {"success": True, "message": f"User {state}", "user": user.to_dict()}
