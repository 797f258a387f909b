"""
Billing Module - Bill QR Code
==============================
QR payload summarising a bill, and its PNG rendering.

Images are generated on-the-fly, never saved to disk.
"""

import io
import json
import base64

import qrcode
from qrcode.image.pil import PilImage

from config.settings import SHOP_NAME, SHOP_GSTIN
from common.helpers import money_float
from modules.billing.models import Bill


class BillQRService:

    def build_payload(self, bill: Bill) -> dict:
        """Compact bill summary encoded into the printed QR."""
        return {
            "shop": SHOP_NAME,
            "billNumber": bill.bill_number,
            "customerName": bill.customer_name,
            "totalAmount": money_float(bill.grand_total),
            "date": bill.bill_date.isoformat() if bill.bill_date else None,
            "gstType": bill.gst_type,
            "gstNumber": SHOP_GSTIN,
        }

    def generate_png(self, payload: dict) -> bytes:
        qr = qrcode.QRCode(
            version=None,  # auto-fit
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=8,
            border=4,
        )
        qr.add_data(json.dumps(payload, ensure_ascii=False, separators=(",", ":")))
        qr.make(fit=True)

        img: PilImage = qr.make_image(fill_color="black", back_color="white")

        buf = io.BytesIO()
        img.save(buf, format="PNG")
        return buf.getvalue()

    def generate_data_url(self, payload: dict) -> str:
        """PNG as a data: URL, embeddable directly in the printed bill."""
        encoded = base64.b64encode(self.generate_png(payload)).decode("ascii")
        return f"data:image/png;base64,{encoded}"


bill_qr_service = BillQRService()
