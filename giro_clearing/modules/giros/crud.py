"""
CRUD operations for the Giro module

Database access for:
- Giros: create, read (optionally row-locked), update, delete, filtered listing
- Clearing records: create, read, list per giro, delete
- Aggregates used by the status summary

Writes only flush; committing is left to the service so that a clearing
record and the recalculated giro status land in the same transaction.
Every SQLAlchemy failure is re-raised as StoreError.
"""

from contextlib import contextmanager
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import or_, func
from typing import List, Optional, Dict, Any, Tuple
from uuid import UUID
from datetime import date
import logging

from giro_clearing.modules.giros.models import Giro, GiroClearingRecord, GiroStatus, ClearingStatus
from giro_clearing.modules.giros.schemas import GiroFilters
from giro_clearing.modules.giros.exceptions import StoreError

logger = logging.getLogger(__name__)


@contextmanager
def store_errors(operation: str):
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Store operation {operation} failed: {e}")
        raise StoreError(operation, str(e)) from e


class GiroStore:
    """Persistence for giros and their clearing records"""

    def __init__(self, db: Session):
        self.db = db

    # ===== GIROS =====

    def create_giro(self, giro_data: Dict[str, Any]) -> Giro:
        with store_errors("create_giro"):
            giro = Giro(**giro_data)
            self.db.add(giro)
            self.db.flush()
            return giro

    def get_giro(self, giro_id: UUID, for_update: bool = False) -> Optional[Giro]:
        """
        Get a giro by ID

        Args:
            giro_id: ID of the giro
            for_update: Lock the row until the transaction ends and refresh
                any instance already held by the session

        Returns:
            The giro, or None if it does not exist
        """
        with store_errors("get_giro"):
            query = self.db.query(Giro).filter(Giro.id == giro_id)
            if for_update:
                query = query.with_for_update().populate_existing()
            return query.first()

    def update_giro(self, giro: Giro, changes: Dict[str, Any]) -> Giro:
        with store_errors("update_giro"):
            for field, value in changes.items():
                setattr(giro, field, value)
            self.db.flush()
            return giro

    def delete_giro(self, giro: Giro) -> None:
        with store_errors("delete_giro"):
            self.db.delete(giro)
            self.db.flush()

    def find_by_number(self, giro_number: str, bank_name: str, exclude_id: Optional[UUID] = None) -> List[Giro]:
        with store_errors("find_by_number"):
            query = self.db.query(Giro).filter(
                Giro.giro_number == giro_number,
                func.lower(Giro.bank_name) == bank_name.lower()
            )
            if exclude_id:
                query = query.filter(Giro.id != exclude_id)
            return query.all()

    def list_giros(
        self,
        filters: Optional[GiroFilters] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> Tuple[List[Giro], int]:
        """List giros ordered by due date, newest first"""
        with store_errors("list_giros"):
            query = self._filtered_giros(filters)
            total = query.count()
            query = query.order_by(Giro.due_date.desc(), Giro.created_at.desc()).offset(offset)
            if limit is not None:
                query = query.limit(limit)
            return query.all(), total

    def iter_giro_ids(self) -> List[UUID]:
        with store_errors("iter_giro_ids"):
            return [row[0] for row in self.db.query(Giro.id).order_by(Giro.due_date.desc()).all()]

    def summarize_by_status(
        self,
        due_from: Optional[date] = None,
        due_to: Optional[date] = None
    ) -> List[Tuple[GiroStatus, int, Any]]:
        """Count and face-value total per status"""
        with store_errors("summarize_by_status"):
            query = self.db.query(Giro.status, func.count(Giro.id), func.sum(Giro.amount))
            query = self._apply_due_range(query, due_from, due_to)
            return query.group_by(Giro.status).all()

    def sum_cleared_amount(
        self,
        due_from: Optional[date] = None,
        due_to: Optional[date] = None
    ) -> Any:
        """Total cleared amount over giros that are neither bounced nor fully cleared"""
        with store_errors("sum_cleared_amount"):
            query = self.db.query(func.sum(GiroClearingRecord.clearing_amount)).join(
                Giro, Giro.id == GiroClearingRecord.giro_id
            ).filter(
                GiroClearingRecord.clearing_status == ClearingStatus.CLEARED,
                Giro.status.in_([GiroStatus.PENDING, GiroStatus.PARTIAL])
            )
            query = self._apply_due_range(query, due_from, due_to)
            return query.scalar()

    # ===== CLEARING RECORDS =====

    def create_clearing_record(self, record_data: Dict[str, Any]) -> GiroClearingRecord:
        with store_errors("create_clearing_record"):
            record = GiroClearingRecord(**record_data)
            self.db.add(record)
            self.db.flush()
            return record

    def get_clearing_record(self, record_id: UUID) -> Optional[GiroClearingRecord]:
        with store_errors("get_clearing_record"):
            return self.db.query(GiroClearingRecord).filter(GiroClearingRecord.id == record_id).first()

    def list_clearing_records(self, giro_id: UUID) -> List[GiroClearingRecord]:
        """Clearing records of a giro, latest clearing date first"""
        with store_errors("list_clearing_records"):
            return self.db.query(GiroClearingRecord).filter(
                GiroClearingRecord.giro_id == giro_id
            ).order_by(
                GiroClearingRecord.clearing_date.desc(),
                GiroClearingRecord.created_at.desc()
            ).all()

    def count_clearing_records(self, giro_id: UUID) -> int:
        with store_errors("count_clearing_records"):
            return self.db.query(GiroClearingRecord).filter(GiroClearingRecord.giro_id == giro_id).count()

    def delete_clearing_record(self, record: GiroClearingRecord) -> None:
        with store_errors("delete_clearing_record"):
            self.db.delete(record)
            self.db.flush()

    # ===== TRANSACTION =====

    def commit(self) -> None:
        with store_errors("commit"):
            self.db.commit()

    def rollback(self) -> None:
        with store_errors("rollback"):
            self.db.rollback()

    # ===== HELPERS =====

    def _filtered_giros(self, filters: Optional[GiroFilters]):
        query = self.db.query(Giro)
        if not filters:
            return query

        if filters.customer_id:
            query = query.filter(Giro.customer_id == filters.customer_id)
        if filters.status:
            query = query.filter(Giro.status == filters.status)
        query = self._apply_due_range(query, filters.due_from, filters.due_to)
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            query = query.filter(or_(
                Giro.giro_number.ilike(pattern),
                Giro.bank_name.ilike(pattern),
                Giro.invoice_number.ilike(pattern)
            ))
        return query

    @staticmethod
    def _apply_due_range(query, due_from: Optional[date], due_to: Optional[date]):
        if due_from:
            query = query.filter(Giro.due_date >= due_from)
        if due_to:
            query = query.filter(Giro.due_date <= due_to)
        return query
