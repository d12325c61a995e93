"""
SQLAlchemy models for the Giro module

Entities:
- Giro: post-dated payment instrument received from a customer
- GiroClearingRecord: one attempt to realize part or all of a giro's value

Giro.status is stored for fast listing/filtering, but it is only ever written
by the status derivation in calculator.py. Customers live outside this
service, so customer_id and sales_person_id are plain references.
"""

from giro_clearing.database.database import Base
from sqlalchemy import Column, String, ForeignKey, Numeric, Enum, Date, Text, Uuid
from sqlalchemy.orm import relationship
from datetime import date
from uuid import uuid4
from giro_clearing.common.mixins import TimestampMixin
import enum


# ===== ENUMS =====

class GiroStatus(enum.Enum):
    """Aggregate status of a giro, derived from its clearing history"""
    PENDING = "pending"     # No clearing recorded yet
    PARTIAL = "partial"     # Part of the face value cleared
    CLEARED = "cleared"     # Face value fully cleared
    BOUNCED = "bounced"     # At least one attempt bounced


class ClearingStatus(enum.Enum):
    """Outcome of a single clearing attempt"""
    CLEARED = "cleared"
    BOUNCED = "bounced"


# ===== MODELS =====

class Giro(Base, TimestampMixin):
    """
    Giro received from a customer

    The face value (amount) is fixed by the physical document and cannot
    change once clearing records exist.
    """
    __tablename__ = "giros"

    id = Column(Uuid, primary_key=True, default=uuid4)
    customer_id = Column(Uuid, nullable=False, index=True)
    sales_person_id = Column(Uuid, nullable=True, index=True)

    # Instrument data
    giro_number = Column(String(100), nullable=False, index=True)  # Not unique, see DESIGN.md
    bank_name = Column(String(100), nullable=False)
    bank_account = Column(String(100), nullable=True)
    amount = Column(Numeric(15, 2), nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    received_date = Column(Date, nullable=False, default=date.today)

    status = Column(Enum(GiroStatus), nullable=False, default=GiroStatus.PENDING, index=True)
    invoice_number = Column(String(100), nullable=True)
    remarks = Column(Text, nullable=True)

    created_by = Column(String(100), nullable=True)

    # Relationships
    clearings = relationship(
        "GiroClearingRecord",
        back_populates="giro",
        order_by="GiroClearingRecord.clearing_date.desc()"
    )


class GiroClearingRecord(Base, TimestampMixin):
    """
    Clearing attempt for a giro

    Append-only in intent. The instrument fields are a snapshot of the
    parent giro taken when the attempt was recorded.
    """
    __tablename__ = "giro_clearings"

    id = Column(Uuid, primary_key=True, default=uuid4)
    giro_id = Column(Uuid, ForeignKey("giros.id"), nullable=False, index=True)

    clearing_date = Column(Date, nullable=False, default=date.today)
    clearing_status = Column(Enum(ClearingStatus), nullable=False)
    clearing_amount = Column(Numeric(15, 2), nullable=False)  # Must be > 0
    reference_doc = Column(String(100), nullable=True)
    remarks = Column(Text, nullable=True)

    # Snapshot of the giro
    giro_number = Column(String(100), nullable=True)
    bank_name = Column(String(100), nullable=True)
    bank_account = Column(String(100), nullable=True)
    invoice_number = Column(String(100), nullable=True)

    created_by = Column(String(100), nullable=False)

    # Relationships
    giro = relationship("Giro", back_populates="clearings")
