"""
Business services for the Giro module

Implements:
- Giro management (create, descriptive updates, delete, status summary)
- The clearing engine: recording clearing attempts under the no-overshoot
  rule, status recalculation from the full clearing history, remaining
  balance and detail views, record deletion

Concurrency:
Recording or deleting a clearing record and writing the recalculated giro
status happen in one transaction. Writers on the same giro are serialized by
an in-process lock per giro and, on backends that support it, by a row lock
on the giro (SELECT ... FOR UPDATE). The remaining balance is always read
inside that scope, right before the insert.
"""

from contextlib import contextmanager
from sqlalchemy.orm import Session
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Dict
from uuid import UUID
from datetime import date
import threading
import logging

from giro_clearing.core.config import settings
from giro_clearing.modules.giros.models import Giro, GiroClearingRecord, GiroStatus, ClearingStatus
from giro_clearing.modules.giros.schemas import (
    GiroCreate, GiroUpdate, GiroOut, GiroList, GiroFilters,
    GiroClearingOut, GiroDetail, GiroRemaining,
    GiroStatusBucket, GiroStatusSummary, RecalculationResult
)
from giro_clearing.modules.giros.calculator import calculate_balance, quantize_amount, is_whole_cents, ZERO
from giro_clearing.modules.giros.crud import GiroStore
from giro_clearing.modules.giros.exceptions import (
    GiroError, ValidationError, InsufficientRemainingAmount,
    InvalidGiroStateError, NotFoundError
)

logger = logging.getLogger(__name__)


class _GiroLock:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


_giro_locks: Dict[UUID, _GiroLock] = {}
_giro_locks_guard = threading.Lock()


@contextmanager
def giro_lock(giro_id: UUID):
    """
    Serialize writers on one giro within this process

    Entries are counted by holders and waiters, and dropped when the last one
    leaves, so the registry only holds giros being written right now.
    """
    with _giro_locks_guard:
        entry = _giro_locks.get(giro_id)
        if entry is None:
            entry = _giro_locks[giro_id] = _GiroLock()
        entry.holders += 1
    try:
        with entry.lock:
            yield
    finally:
        with _giro_locks_guard:
            entry.holders -= 1
            if entry.holders == 0:
                del _giro_locks[giro_id]


def apply_derived_status(store: GiroStore, giro: Giro, records) -> bool:
    """The only place a giro status is written. Returns True if it changed."""
    new_status = calculate_balance(giro.amount, records).status
    if giro.status == new_status:
        return False
    logger.info(f"Giro {giro.id} status {giro.status.value if giro.status else None} -> {new_status.value}")
    store.update_giro(giro, {"status": new_status})
    return True


def _parse_amount(field: str, value) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError(field, "a positive amount is required")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(field, f"{value!r} is not a number")
    if not amount.is_finite():
        raise ValidationError(field, f"{value!r} is not a number")
    if amount <= ZERO:
        raise ValidationError(field, "must be greater than zero")
    if not is_whole_cents(amount):
        raise ValidationError(field, "at most 2 decimal places")
    return quantize_amount(amount)


class GiroClearingService:
    """Clearing engine: records clearings and keeps giro status consistent"""

    def __init__(self, db: Session):
        self.db = db
        self.store = GiroStore(db)

    def record_clearing(
        self,
        giro_id: UUID,
        clearing_date: date,
        clearing_status,
        clearing_amount,
        created_by: str,
        reference_doc: Optional[str] = None,
        remarks: Optional[str] = None
    ) -> GiroClearingRecord:
        """
        Record a clearing attempt against a giro

        A cleared attempt is checked against the remaining balance computed
        from the existing records only; a bounced attempt does not consume
        face value and is not amount-checked.

        Raises:
            ValidationError: malformed input
            NotFoundError: the giro does not exist
            InvalidGiroStateError: cleared attempt on a bounced giro
            InsufficientRemainingAmount: the cleared amount exceeds the remaining balance
        """
        status = self._parse_clearing_status(clearing_status)
        amount = _parse_amount("clearing_amount", clearing_amount)
        if not isinstance(clearing_date, date):
            raise ValidationError("clearing_date", "a date is required")
        if not created_by or not str(created_by).strip():
            raise ValidationError("created_by", "the recording actor is required")

        with giro_lock(giro_id):
            try:
                giro = self._require_giro(giro_id, for_update=True)
                records = self.store.list_clearing_records(giro.id)

                if status == ClearingStatus.CLEARED:
                    balance = calculate_balance(giro.amount, records)
                    if balance.status == GiroStatus.BOUNCED and not settings.ALLOW_CLEARING_AFTER_BOUNCE:
                        raise InvalidGiroStateError(
                            giro.id, balance.status.value,
                            "a bounced giro cannot accept further cleared amounts"
                        )
                    if amount > balance.remaining:
                        raise InsufficientRemainingAmount(giro.id, amount, balance.remaining)

                record = self.store.create_clearing_record({
                    "giro_id": giro.id,
                    "clearing_date": clearing_date,
                    "clearing_status": status,
                    "clearing_amount": amount,
                    "reference_doc": reference_doc,
                    "remarks": remarks,
                    "created_by": str(created_by).strip(),
                    "giro_number": giro.giro_number,
                    "bank_name": giro.bank_name,
                    "bank_account": giro.bank_account,
                    "invoice_number": giro.invoice_number,
                })

                apply_derived_status(self.store, giro, records + [record])
                self.store.commit()
            except GiroError as e:
                logger.warning(f"Clearing rejected for giro {giro_id}: {e.message}")
                self.store.rollback()
                raise
            except Exception:
                self.store.rollback()
                raise

        logger.info(
            f"Recorded {status.value} clearing of {amount} on giro {giro_id} by {created_by}"
        )
        return record

    def recalculate_status(self, giro_id: UUID) -> Giro:
        """Recompute and persist a giro's status from its full history. Idempotent."""
        with giro_lock(giro_id):
            try:
                giro = self._require_giro(giro_id, for_update=True)
                apply_derived_status(self.store, giro, self.store.list_clearing_records(giro.id))
                self.store.commit()
            except Exception:
                self.store.rollback()
                raise
        return giro

    def recalculate_all(self) -> RecalculationResult:
        """Repair sweep over every giro; reports how many statuses drifted"""
        giro_ids = self.store.iter_giro_ids()
        changed = 0
        for giro_id in giro_ids:
            with giro_lock(giro_id):
                try:
                    giro = self.store.get_giro(giro_id, for_update=True)
                    if giro is None:
                        self.store.rollback()
                        continue
                    if apply_derived_status(self.store, giro, self.store.list_clearing_records(giro.id)):
                        changed += 1
                    self.store.commit()
                except Exception:
                    self.store.rollback()
                    raise

        logger.info(f"Recalculated {len(giro_ids)} giros, {changed} status changes")
        return RecalculationResult(checked=len(giro_ids), changed=changed)

    def get_remaining_amount(self, giro_id: UUID) -> Decimal:
        giro = self._require_giro(giro_id)
        return calculate_balance(giro.amount, self.store.list_clearing_records(giro.id)).remaining

    def get_remaining(self, giro_id: UUID) -> GiroRemaining:
        giro = self._require_giro(giro_id)
        balance = calculate_balance(giro.amount, self.store.list_clearing_records(giro.id))
        return GiroRemaining(giro_id=giro.id, amount=giro.amount, remaining=balance.remaining, status=balance.status)

    def list_giros(
        self,
        filters: Optional[GiroFilters] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> GiroList:
        """List giros, newest due date first"""
        if filters and filters.due_from and filters.due_to and filters.due_from > filters.due_to:
            raise ValidationError("due_to", "must not be before due_from")
        if limit is None:
            limit = settings.DEFAULT_PAGE_SIZE
        limit = min(limit, settings.MAX_PAGE_SIZE)

        giros, total = self.store.list_giros(filters, limit=limit, offset=offset)
        return GiroList(
            items=[GiroOut.model_validate(giro) for giro in giros],
            total=total,
            limit=limit,
            offset=offset
        )

    def get_giro_detail(self, giro_id: UUID) -> GiroDetail:
        giro = self._require_giro(giro_id)
        records = self.store.list_clearing_records(giro.id)
        balance = calculate_balance(giro.amount, records)
        return GiroDetail(
            giro=GiroOut.model_validate(giro),
            records=[GiroClearingOut.model_validate(record) for record in records],
            total_cleared=balance.total_cleared,
            remaining=balance.remaining
        )

    def list_clearing_records(self, giro_id: UUID) -> List[GiroClearingRecord]:
        giro = self._require_giro(giro_id)
        return self.store.list_clearing_records(giro.id)

    def delete_clearing_record(self, record_id: UUID) -> Giro:
        """Delete a clearing record and recalculate its giro in the same transaction"""
        record = self.store.get_clearing_record(record_id)
        if record is None:
            raise NotFoundError("GiroClearingRecord", record_id)
        giro_id = record.giro_id

        with giro_lock(giro_id):
            try:
                giro = self._require_giro(giro_id, for_update=True)
                # Re-read inside the lock, a concurrent request may have removed it
                record = self.store.get_clearing_record(record_id)
                if record is None:
                    raise NotFoundError("GiroClearingRecord", record_id)
                self.store.delete_clearing_record(record)
                apply_derived_status(self.store, giro, self.store.list_clearing_records(giro.id))
                self.store.commit()
            except Exception:
                self.store.rollback()
                raise

        logger.info(f"Deleted clearing record {record_id} of giro {giro_id}")
        return giro

    # ===== HELPERS =====

    def _require_giro(self, giro_id: UUID, for_update: bool = False) -> Giro:
        giro = self.store.get_giro(giro_id, for_update=for_update)
        if giro is None:
            raise NotFoundError("Giro", giro_id)
        return giro

    @staticmethod
    def _parse_clearing_status(value) -> ClearingStatus:
        if isinstance(value, ClearingStatus):
            return value
        try:
            return ClearingStatus(str(value).lower())
        except ValueError:
            raise ValidationError("clearing_status", f"must be 'cleared' or 'bounced', got {value!r}")


class GiroService:
    """Management of giro instruments"""

    def __init__(self, db: Session):
        self.db = db
        self.store = GiroStore(db)

    def create_giro(self, giro_data: GiroCreate, created_by: Optional[str] = None) -> Giro:
        """Register a received giro; it starts as pending"""
        amount = _parse_amount("amount", giro_data.amount)
        try:
            duplicates = self.store.find_by_number(giro_data.giro_number, giro_data.bank_name)
            if duplicates:
                logger.warning(
                    f"Giro number {giro_data.giro_number} at {giro_data.bank_name} "
                    f"already registered ({len(duplicates)} existing)"
                )

            values = giro_data.model_dump()
            values.update(amount=amount, status=GiroStatus.PENDING, created_by=created_by)
            giro = self.store.create_giro(values)
            self.store.commit()
        except Exception:
            self.store.rollback()
            raise

        logger.info(f"Created giro {giro.id} ({giro.giro_number}, {amount})")
        return giro

    def get_giro(self, giro_id: UUID) -> Giro:
        giro = self.store.get_giro(giro_id)
        if giro is None:
            raise NotFoundError("Giro", giro_id)
        return giro

    def update_giro(self, giro_id: UUID, giro_update: GiroUpdate) -> Giro:
        """
        Update descriptive fields of a giro

        The face value can only change while no clearing has been recorded.
        Status is not editable; it is recalculated after the update.
        """
        changes = giro_update.model_dump(exclude_unset=True)
        if "amount" in changes:
            changes["amount"] = _parse_amount("amount", changes["amount"])
        for field in ("giro_number", "bank_name", "due_date", "received_date"):
            if field in changes and changes[field] is None:
                raise ValidationError(field, "cannot be cleared")

        with giro_lock(giro_id):
            try:
                giro = self.store.get_giro(giro_id, for_update=True)
                if giro is None:
                    raise NotFoundError("Giro", giro_id)

                records = self.store.list_clearing_records(giro.id)
                if "amount" in changes and changes["amount"] != giro.amount and records:
                    raise InvalidGiroStateError(
                        giro.id, giro.status.value,
                        "the amount cannot change once clearing records exist"
                    )

                self.store.update_giro(giro, changes)
                apply_derived_status(self.store, giro, records)
                self.store.commit()
            except Exception:
                self.store.rollback()
                raise

        logger.info(f"Updated giro {giro_id}: {sorted(changes)}")
        return giro

    def delete_giro(self, giro_id: UUID) -> None:
        """Delete a giro that has no clearing history"""
        with giro_lock(giro_id):
            try:
                giro = self.store.get_giro(giro_id, for_update=True)
                if giro is None:
                    raise NotFoundError("Giro", giro_id)
                if self.store.count_clearing_records(giro.id):
                    raise InvalidGiroStateError(
                        giro.id, giro.status.value,
                        "giros with clearing records cannot be deleted"
                    )
                self.store.delete_giro(giro)
                self.store.commit()
            except Exception:
                self.store.rollback()
                raise

        logger.info(f"Deleted giro {giro_id}")

    def get_status_summary(
        self,
        due_from: Optional[date] = None,
        due_to: Optional[date] = None
    ) -> GiroStatusSummary:
        """Count and face value per status, plus the outstanding balance"""
        if due_from and due_to and due_from > due_to:
            raise ValidationError("due_to", "must not be before due_from")

        rows = {status: (count, total) for status, count, total in self.store.summarize_by_status(due_from, due_to)}
        buckets = []
        for status in GiroStatus:
            count, total = rows.get(status, (0, None))
            buckets.append(GiroStatusBucket(
                status=status,
                count=count,
                total_amount=quantize_amount(total or 0)
            ))

        open_amount = sum(
            (quantize_amount(rows[s][1] or 0) for s in (GiroStatus.PENDING, GiroStatus.PARTIAL) if s in rows),
            ZERO
        )
        cleared_on_open = quantize_amount(self.store.sum_cleared_amount(due_from, due_to) or 0)

        return GiroStatusSummary(
            due_from=due_from,
            due_to=due_to,
            currency=settings.CURRENCY,
            buckets=buckets,
            total_outstanding=max(ZERO, open_amount - cleared_on_open)
        )
