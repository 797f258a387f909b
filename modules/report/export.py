"""
Report Module - Excel Export
============================
Sales report as an .xlsx workbook (openpyxl), returned as bytes.
"""

import io

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment

from config.settings import SHOP_NAME
from common.helpers import format_inr, money_float
from modules.rate.models import MetalType

HEADER_FILL = PatternFill(start_color="FFD700", end_color="FFD700", fill_type="solid")
PAYMENT_MODES = ("cash", "card", "upi", "bank_transfer", "cheque", "mixed")


def sales_report_workbook(report: dict) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Sales Report"

    metals = [m.value for m in MetalType]
    headers = ["Date", "Bills", "Sales (INR)", "Items"]
    headers += [f"{m} Sales" for m in metals]
    headers += [mode.replace("_", " ").title() for mode in PAYMENT_MODES]

    ws.append([f"{SHOP_NAME} - Sales Report"])
    ws["A1"].font = Font(bold=True, size=14)
    period = report["period"]
    ws.append([f"Period: {period['date_from'] or '-'} to {period['date_to'] or '-'}"])
    ws.append([])

    ws.append(headers)
    header_row = ws.max_row
    for cell in ws[header_row]:
        cell.font = Font(bold=True)
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center")

    for row in report["rows"]:
        values = [row["date"], row["total_bills"], money_float(row["total_sales"]), row["total_items"]]
        values += [money_float(row["metal_wise"].get(m, {}).get("amount", 0)) for m in metals]
        values += [money_float(row["payment_mode"].get(mode, 0)) for mode in PAYMENT_MODES]
        ws.append(values)

    summary = report["summary"]
    ws.append([])
    ws.append(["Total Bills", summary["total_period_bills"]])
    ws.append(["Total Sales", format_inr(summary["total_period_sales"])])
    ws.append(["Average Sales", format_inr(summary["average_sales"])])
    ws.append(["Highest Sale", summary["highest_sale"] or "-"])
    for cell in ws["A"][ws.max_row - 4:]:
        cell.font = Font(bold=True)

    for i, _ in enumerate(headers, start=1):
        ws.column_dimensions[ws.cell(row=header_row, column=i).column_letter].width = 16

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()
