"""
Report Module - API Routes
===========================
Endpoints:
  GET /api/reports/sales      - Sales by day / month (format=excel for .xlsx)
  GET /api/reports/gst        - Monthly GST summary
  GET /api/reports/customers  - Customer totals and segments
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_login
from modules.rate.models import MetalType
from modules.report.export import sales_report_workbook
from modules.report.service import report_service
from modules.user.models import User

router = APIRouter(prefix="/api/reports", tags=["reports"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/sales")
async def sales_report(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    metal_type: Optional[MetalType] = None,
    group_by: str = Query("day", pattern="^(day|month)$"),
    format: str = Query("json", pattern="^(json|excel)$"),
    db: Session = Depends(get_db),
    user: User = Depends(require_login),
):
    report = report_service.sales_report(
        db, date_from=date_from, date_to=date_to, metal_type=metal_type, group_by=group_by,
    )
    if format == "excel":
        filename = f"sales-report-{date_from or 'all'}-{date_to or 'all'}.xlsx"
        return Response(
            content=sales_report_workbook(report),
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    return {"success": True, "report": report_service.to_json(report)}


@router.get("/gst")
async def gst_report(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    db: Session = Depends(get_db),
    user: User = Depends(require_login),
):
    report = report_service.gst_report(db, month=month, year=year)
    return {"success": True, "report": report_service.to_json(report)}


@router.get("/customers")
async def customer_report(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    min_purchase: Decimal = Query(Decimal("0"), ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    user: User = Depends(require_login),
):
    report = report_service.customer_report(
        db, date_from=date_from, date_to=date_to, min_purchase=min_purchase, limit=limit,
    )
    return {"success": True, **report_service.to_json(report)}
