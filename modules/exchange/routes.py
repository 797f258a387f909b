"""
Exchange Module - API Routes
=============================
Endpoints:
  POST   /api/exchanges/calculate               - Preview valuation
  POST   /api/exchanges                         - Save exchange (staff)
  GET    /api/exchanges                         - List exchanges
  GET    /api/exchanges/stats                   - Counts and values
  GET    /api/exchanges/{exchange_number}       - Exchange detail
  POST   /api/exchanges/{exchange_id}/convert   - Link to an existing bill (staff)
  POST   /api/exchanges/{exchange_id}/cancel    - Cancel (staff)
  DELETE /api/exchanges/{exchange_id}           - Archive (admin)
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_login, require_staff, require_admin
from modules.billing.schemas import ExchangeCalculateRequest, ExchangeCreateRequest, ExchangeConvertRequest
from modules.exchange.models import ExchangeStatus
from modules.exchange.service import exchange_service, exchange_to_dict
from modules.user.models import User

router = APIRouter(prefix="/api/exchanges", tags=["exchanges"])


@router.post("/calculate")
async def calculate_exchange(
    body: ExchangeCalculateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_login),
):
    result = exchange_service.calculate(db, body.model_dump())
    return {"success": True, **result}


@router.post("", status_code=201)
async def create_exchange(
    body: ExchangeCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    exchange = exchange_service.create_exchange(db, body.model_dump(), user=user)
    return {"success": True, "message": "Exchange saved", "exchange": exchange_to_dict(exchange)}


@router.get("")
async def list_exchanges(
    search: Optional[str] = None,
    status: Optional[ExchangeStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = 1,
    per_page: int = 20,
    db: Session = Depends(get_db),
    user: User = Depends(require_login),
):
    page = max(page, 1)
    per_page = min(max(per_page, 1), 100)
    items, total = exchange_service.list_exchanges(
        db, search=search, status=status, date_from=date_from, date_to=date_to,
        page=page, per_page=per_page,
    )
    return {
        "success": True,
        "exchanges": [exchange_to_dict(e) for e in items],
        "total_records": total,
        "current_page": page,
        "total_pages": (total + per_page - 1) // per_page,
    }


@router.get("/stats")
async def exchange_stats(db: Session = Depends(get_db), user: User = Depends(require_login)):
    return {"success": True, "stats": exchange_service.get_stats(db)}


@router.get("/{exchange_number}")
async def get_exchange(
    exchange_number: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_login),
):
    exchange = exchange_service.get_exchange(db, exchange_number, include_archived=user.is_admin)
    return {"success": True, "exchange": exchange_to_dict(exchange)}


@router.post("/{exchange_id}/convert")
async def convert_exchange(
    exchange_id: int,
    body: ExchangeConvertRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    exchange = exchange_service.convert_to_bill(db, exchange_id, body.bill_number)
    return {"success": True, "message": "Exchange linked to bill", "exchange": exchange_to_dict(exchange)}


@router.post("/{exchange_id}/cancel")
async def cancel_exchange(
    exchange_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    exchange = exchange_service.cancel_exchange(db, exchange_id, user=user)
    return {"success": True, "message": "Exchange cancelled", "exchange": exchange_to_dict(exchange)}


@router.delete("/{exchange_id}")
async def archive_exchange(
    exchange_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    exchange_service.archive_exchange(db, exchange_id, user=admin)
    return {"success": True, "message": "Exchange archived"}
