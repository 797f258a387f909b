"""
Rate Module - API Routes
=========================
Endpoints:
  GET  /api/rates                - Current active rate per metal
  POST /api/rates                - Set a new rate (admin)
  GET  /api/rates/history        - Rate history (paginated)
  GET  /api/rates/{metal_type}   - Active rate for one metal
"""

from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from common.exceptions import RateNotFoundError, raise_http
from modules.auth.deps import require_login, require_admin
from modules.rate.models import MetalType, RateUnit, RateMakingType
from modules.rate.service import rate_service
from modules.user.models import User

router = APIRouter(prefix="/api/rates", tags=["rates"])


# ==========================================
# Schemas
# ==========================================

class RateUpdateRequest(BaseModel):
    metal_type: MetalType
    rate_value: Decimal = Field(..., ge=0)
    unit: RateUnit = RateUnit.KG
    purity_levels: List[str] = Field(default_factory=list)
    making_charges_default: Decimal = Field(Decimal("0"), ge=0)
    making_charges_type: RateMakingType = RateMakingType.PERCENTAGE
    gst_rate: Optional[Decimal] = Field(None, ge=0, le=100)


# ==========================================
# Routes
# ==========================================

@router.get("")
async def current_rates(db: Session = Depends(get_db), user: User = Depends(require_login)):
    rates = rate_service.get_current_rates(db)
    return {"success": True, "rates": [rate_service.to_dict(r) for r in rates]}


@router.post("", status_code=201)
async def update_rate(
    body: RateUpdateRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    rate = rate_service.set_rate(
        db,
        metal_type=body.metal_type,
        rate_value=body.rate_value,
        unit=body.unit,
        purity_levels=body.purity_levels,
        making_charges_default=body.making_charges_default,
        making_charges_type=body.making_charges_type,
        gst_rate=body.gst_rate,
        updated_by=admin.username,
    )
    db.commit()
    return {"success": True, "message": "Rates updated successfully", "rate": rate_service.to_dict(rate)}


@router.get("/history")
async def rate_history(
    metal_type: Optional[MetalType] = None,
    page: int = 1,
    per_page: int = 10,
    db: Session = Depends(get_db),
    user: User = Depends(require_login),
):
    page = max(page, 1)
    per_page = min(max(per_page, 1), 100)
    items, total = rate_service.get_history(db, metal_type, page=page, per_page=per_page)
    return {
        "success": True,
        "rates": [rate_service.to_dict(r) for r in items],
        "total_records": total,
        "current_page": page,
        "total_pages": (total + per_page - 1) // per_page,
    }


@router.get("/{metal_type}")
async def rate_for_metal(
    metal_type: MetalType,
    db: Session = Depends(get_db),
    user: User = Depends(require_login),
):
    try:
        rate = rate_service.get_active_rate(db, metal_type)
    except RateNotFoundError as e:
        raise_http(e, 404)
    return {"success": True, "rate": rate_service.to_dict(rate)}
