"""
Billing Module - Request Schemas
=================================
Pydantic request bodies shared by the bill and exchange routes.
Boundary validation only; prices are never accepted from the client
except an old item's explicit rate.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from modules.billing.assembler import DiscountType, PaymentStatus
from modules.rate.models import MetalType

MOBILE_PATTERN = r"^\d{10}$"
PAN_PATTERN = r"^[A-Z]{5}[0-9]{4}[A-Z]$"
AADHAAR_PATTERN = r"^\d{12}$"
PAYMENT_MODE_PATTERN = r"^(cash|card|upi|bank_transfer|cheque|mixed)$"


class CustomerIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    mobile: str = Field(..., pattern=MOBILE_PATTERN)
    address: Optional[str] = Field(None, max_length=500)
    dob: Optional[date] = None
    pan: Optional[str] = Field(None, pattern=PAN_PATTERN)
    aadhaar: Optional[str] = Field(None, pattern=AADHAAR_PATTERN)

    @field_validator("name", "mobile", "address", "aadhaar", mode="before")
    @classmethod
    def _strip(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("pan", mode="before")
    @classmethod
    def _upper_pan(cls, v):
        if isinstance(v, str):
            return v.strip().upper() or None
        return v


class LineItemIn(BaseModel):
    description: Optional[str] = Field(None, max_length=200)
    metal_type: MetalType
    purity: Optional[str] = Field(None, max_length=20)
    weight: Optional[Decimal] = Field(None, gt=0)
    gross_weight: Optional[Decimal] = Field(None, gt=0)
    less_weight: Optional[Decimal] = Field(None, ge=0)
    making_charge_type: Optional[str] = Field(None, max_length=20)
    making_charge_value: Optional[Decimal] = Field(None, ge=0)
    making_charge_discount: Decimal = Field(Decimal("0"), ge=0, le=100)
    gst_on_metal: Optional[Decimal] = Field(None, ge=0, le=100)
    gst_on_making: Optional[Decimal] = Field(None, ge=0, le=100)
    huid_charge: Decimal = Field(Decimal("0"), ge=0)
    huid: Optional[str] = Field(None, max_length=20)
    tunch: Optional[str] = Field(None, max_length=20)
    unit: str = Field("GM", max_length=5)
    quantity: int = Field(1, ge=1)

    @model_validator(mode="after")
    def _needs_weight(self):
        if self.weight is None and self.gross_weight is None:
            raise ValueError("weight or gross_weight is required")
        return self


class OldItemIn(BaseModel):
    description: Optional[str] = Field(None, max_length=200)
    metal_type: MetalType
    purity: Optional[str] = Field(None, max_length=20)
    weight: Decimal = Field(..., gt=0)
    rate: Optional[Decimal] = Field(None, ge=0)
    wastage_deduction_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    melting_charge: Decimal = Field(Decimal("0"), ge=0)


class BillCalculateRequest(BaseModel):
    customer: Optional[CustomerIn] = None
    items: List[LineItemIn] = Field(..., min_length=1)
    exchange_items: List[OldItemIn] = Field(default_factory=list)
    exchange_id: Optional[int] = Field(None, gt=0)
    discount: Decimal = Field(Decimal("0"), ge=0)
    discount_type: DiscountType = DiscountType.AMOUNT
    is_intra_state: bool = True
    gst_on_metal: Optional[Decimal] = Field(None, ge=0, le=100)
    gst_on_making: Optional[Decimal] = Field(None, ge=0, le=100)
    huid_charges: Decimal = Field(Decimal("0"), ge=0)
    shop_deduction_percent: Optional[Decimal] = Field(None, ge=0, le=100)


class BillCreateRequest(BillCalculateRequest):
    customer: CustomerIn
    payment_mode: str = Field("cash", pattern=PAYMENT_MODE_PATTERN)
    payment_status: PaymentStatus = PaymentStatus.PAID
    paid_amount: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def _partial_needs_amount(self):
        if self.payment_status == PaymentStatus.PARTIAL and self.paid_amount is None:
            raise ValueError("paid_amount is required for partial payment")
        return self


class PaymentUpdateRequest(BaseModel):
    payment_status: PaymentStatus
    paid_amount: Optional[Decimal] = Field(None, ge=0)
    payment_mode: Optional[str] = Field(None, pattern=PAYMENT_MODE_PATTERN)
    remarks: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def _partial_needs_amount(self):
        if self.payment_status == PaymentStatus.PARTIAL and self.paid_amount is None:
            raise ValueError("paid_amount is required for partial payment")
        return self


class ExchangeCalculateRequest(BaseModel):
    customer: Optional[CustomerIn] = None
    old_items: List[OldItemIn] = Field(..., min_length=1)
    new_items: List[LineItemIn] = Field(default_factory=list)
    is_intra_state: bool = True
    shop_deduction_percent: Optional[Decimal] = Field(None, ge=0, le=100)


class ExchangeCreateRequest(ExchangeCalculateRequest):
    customer: CustomerIn
    notes: Optional[str] = Field(None, max_length=1000)


class ExchangeConvertRequest(BaseModel):
    bill_number: str = Field(..., min_length=1, max_length=40)
