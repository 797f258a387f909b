"""
Billing Module - API Routes
============================
Endpoints:
  POST   /api/bills/calculate              - Preview totals (nothing saved)
  POST   /api/bills                        - Create bill (staff)
  GET    /api/bills                        - List bills (paginated, filters)
  GET    /api/bills/{bill_number}          - Bill detail
  PATCH  /api/bills/{bill_number}/payment  - Update payment status (staff)
  DELETE /api/bills/{bill_number}          - Archive bill (admin)
  GET    /api/bills/{bill_number}/qr       - Bill QR code PNG
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_login, require_staff, require_admin
from modules.billing.assembler import PaymentStatus
from modules.billing.qr import bill_qr_service
from modules.billing.schemas import BillCalculateRequest, BillCreateRequest, PaymentUpdateRequest
from modules.billing.service import billing_service, bill_to_dict
from modules.user.models import User

router = APIRouter(prefix="/api/bills", tags=["bills"])


def _printable(bill) -> dict:
    """Stored bill plus its QR payload and the QR image as a data: URL."""
    data = bill_to_dict(bill)
    payload = bill_qr_service.build_payload(bill)
    data["qr_payload"] = payload
    data["qr_image"] = bill_qr_service.generate_data_url(payload)
    return data


@router.post("/calculate")
async def calculate_bill(
    body: BillCalculateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_login),
):
    result = billing_service.calculate(db, body.model_dump())
    return {"success": True, **result}


@router.post("", status_code=201)
async def create_bill(
    body: BillCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    bill = billing_service.create_bill(db, body.model_dump(), user=user)
    return {"success": True, "message": "Bill created successfully", "bill": _printable(bill)}


@router.get("")
async def list_bills(
    search: Optional[str] = None,
    mobile: Optional[str] = None,
    payment_status: Optional[PaymentStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    include_archived: bool = False,
    page: int = 1,
    per_page: int = 20,
    db: Session = Depends(get_db),
    user: User = Depends(require_login),
):
    page = max(page, 1)
    per_page = min(max(per_page, 1), 100)
    bills, total = billing_service.list_bills(
        db,
        search=search,
        mobile=mobile,
        payment_status=payment_status,
        date_from=date_from,
        date_to=date_to,
        include_archived=include_archived and user.is_admin,
        page=page,
        per_page=per_page,
    )
    return {
        "success": True,
        "bills": [bill_to_dict(b, include_items=False) for b in bills],
        "total_records": total,
        "current_page": page,
        "total_pages": (total + per_page - 1) // per_page,
    }


@router.get("/{bill_number}")
async def get_bill(
    bill_number: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_login),
):
    bill = billing_service.get_bill(db, bill_number, include_archived=user.is_admin)
    return {"success": True, "bill": _printable(bill)}


@router.patch("/{bill_number}/payment")
async def update_payment(
    bill_number: str,
    body: PaymentUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    bill = billing_service.update_payment(
        db, bill_number,
        payment_status=body.payment_status,
        paid_amount=body.paid_amount,
        payment_mode=body.payment_mode,
        remarks=body.remarks,
        user=user,
    )
    return {"success": True, "message": "Payment updated", "bill": bill_to_dict(bill)}


@router.delete("/{bill_number}")
async def archive_bill(
    bill_number: str,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    billing_service.archive_bill(db, bill_number, user=admin)
    return {"success": True, "message": "Bill archived"}


@router.get("/{bill_number}/qr")
async def bill_qr(
    bill_number: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_login),
):
    bill = billing_service.get_bill(db, bill_number)
    png_bytes = bill_qr_service.generate_png(bill_qr_service.build_payload(bill))
    return Response(
        content=png_bytes,
        media_type="image/png",
        headers={"Cache-Control": "no-store"},
    )
