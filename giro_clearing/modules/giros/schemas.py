"""
Pydantic schemas for the Giro module

Input and output shapes for:
- Giros: creation, descriptive updates, listing filters
- Clearing records: recording attempts and reading the history
- Detail and summary views consumed by the dashboard

Giro status is never accepted as input; it is derived from the clearing
history.
"""

from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from giro_clearing.modules.giros.models import GiroStatus, ClearingStatus
from giro_clearing.modules.giros.calculator import quantize_amount, is_whole_cents


def to_cents(v: Decimal) -> Decimal:
    """Amounts are accepted in whole cents only; sub-cent values are rejected, not rounded"""
    if not is_whole_cents(v):
        raise ValueError("at most 2 decimal places")
    return quantize_amount(v)


# ===== GIRO SCHEMAS =====

class GiroBase(BaseModel):
    customer_id: UUID = Field(..., description="Customer that handed over the giro")
    sales_person_id: Optional[UUID] = Field(None, description="Sales person that collected it")
    giro_number: str = Field(..., min_length=1, max_length=100, description="Instrument number")
    bank_name: str = Field(..., min_length=1, max_length=100, description="Issuing bank")
    bank_account: Optional[str] = Field(None, max_length=100, description="Account on the instrument")
    amount: Decimal = Field(..., gt=0, description="Face value")
    due_date: date = Field(..., description="Date the giro can be presented")
    received_date: date = Field(default_factory=date.today, description="Date the giro was received")
    invoice_number: Optional[str] = Field(None, max_length=100, description="Invoice paid by the giro")
    remarks: Optional[str] = Field(None, description="Additional notes")

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        return to_cents(v)


class GiroCreate(GiroBase):
    pass


class GiroUpdate(BaseModel):
    """Descriptive fields only. amount is rejected once clearings exist."""
    sales_person_id: Optional[UUID] = None
    giro_number: Optional[str] = Field(None, min_length=1, max_length=100)
    bank_name: Optional[str] = Field(None, min_length=1, max_length=100)
    bank_account: Optional[str] = Field(None, max_length=100)
    amount: Optional[Decimal] = Field(None, gt=0)
    due_date: Optional[date] = None
    received_date: Optional[date] = None
    invoice_number: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = None

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        if v is not None:
            return to_cents(v)
        return v


class GiroOut(GiroBase):
    id: UUID
    status: GiroStatus
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class GiroList(BaseModel):
    items: List[GiroOut]
    total: int
    limit: int
    offset: int


class GiroFilters(BaseModel):
    customer_id: Optional[UUID] = None
    status: Optional[GiroStatus] = None
    due_from: Optional[date] = None
    due_to: Optional[date] = None
    search: Optional[str] = Field(None, description="Matches giro number, bank or invoice")


# ===== CLEARING SCHEMAS =====

class GiroClearingBase(BaseModel):
    clearing_date: date = Field(default_factory=date.today, description="Date the clearing was posted")
    clearing_status: ClearingStatus = Field(ClearingStatus.CLEARED, description="Outcome of the attempt")
    clearing_amount: Decimal = Field(..., gt=0, description="Portion of the face value")
    reference_doc: Optional[str] = Field(None, max_length=100, description="Bank reference")
    remarks: Optional[str] = Field(None, description="Additional notes")

    @field_validator('clearing_amount')
    @classmethod
    def validate_amount(cls, v):
        return to_cents(v)


class GiroClearingCreate(GiroClearingBase):
    pass


class GiroClearingOut(GiroClearingBase):
    id: UUID
    giro_id: UUID
    giro_number: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account: Optional[str] = None
    invoice_number: Optional[str] = None
    created_by: str
    created_at: datetime

    class Config:
        from_attributes = True


# ===== VIEWS =====

class GiroDetail(BaseModel):
    giro: GiroOut
    records: List[GiroClearingOut]
    total_cleared: Decimal
    remaining: Decimal


class GiroRemaining(BaseModel):
    giro_id: UUID
    amount: Decimal
    remaining: Decimal
    status: GiroStatus


class GiroStatusBucket(BaseModel):
    status: GiroStatus
    count: int
    total_amount: Decimal


class GiroStatusSummary(BaseModel):
    due_from: Optional[date] = None
    due_to: Optional[date] = None
    currency: str
    buckets: List[GiroStatusBucket]
    total_outstanding: Decimal


class RecalculationResult(BaseModel):
    checked: int
    changed: int
