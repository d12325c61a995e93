"""
FastAPI router for the Giro module

Endpoints:
- Giros: create, list with filters, detail, descriptive update, delete
- Status summary for the dashboard
- Clearings: history, record an attempt, delete a record
- Remaining balance and on-demand status recalculation

Writes require the X-User-ID header; the value is stored as the actor.
Domain errors are translated to HTTP responses by the handlers in main.py.
"""

from fastapi import APIRouter, status, Query, Response
from typing import List, Optional
from uuid import UUID
from datetime import date

from giro_clearing.dependencies.dbDependecies import db_dependency
from giro_clearing.dependencies.userDependencies import actor_dependency
from giro_clearing.modules.giros.models import GiroStatus
from giro_clearing.modules.giros.service import GiroService, GiroClearingService
from giro_clearing.modules.giros.schemas import (
    GiroCreate, GiroUpdate, GiroOut, GiroList, GiroFilters,
    GiroClearingCreate, GiroClearingOut, GiroDetail, GiroRemaining,
    GiroStatusSummary, RecalculationResult
)

giros_router = APIRouter(prefix="/giros", tags=["Giros"])


# ===== GIROS ENDPOINTS =====

@giros_router.post("/", response_model=GiroOut, status_code=status.HTTP_201_CREATED)
def create_giro(giro_data: GiroCreate, db: db_dependency, actor_id: actor_dependency):
    """
    Register a received giro

    The giro starts as 'pending'; its status afterwards follows the
    clearing history.
    """
    return GiroService(db).create_giro(giro_data, created_by=actor_id)


@giros_router.get("/", response_model=GiroList)
def list_giros(
    db: db_dependency,
    limit: Optional[int] = Query(None, ge=1, description="Page size; defaults to and is capped by the configured page size"),
    offset: int = Query(0, ge=0),
    customer_id: Optional[UUID] = Query(None, description="Filter by customer"),
    giro_status: Optional[GiroStatus] = Query(None, alias="status", description="Filter by status"),
    due_from: Optional[date] = Query(None, description="Due date from (YYYY-MM-DD)"),
    due_to: Optional[date] = Query(None, description="Due date to (YYYY-MM-DD)"),
    search: Optional[str] = Query(None, description="Giro number, bank or invoice"),
):
    """List giros, latest due date first"""
    filters = GiroFilters(
        customer_id=customer_id,
        status=giro_status,
        due_from=due_from,
        due_to=due_to,
        search=search
    )
    return GiroClearingService(db).list_giros(filters, limit=limit, offset=offset)


@giros_router.get("/summary", response_model=GiroStatusSummary)
def get_status_summary(
    db: db_dependency,
    due_from: Optional[date] = Query(None, description="Due date from (YYYY-MM-DD)"),
    due_to: Optional[date] = Query(None, description="Due date to (YYYY-MM-DD)"),
):
    """Count and face value per status over a due-date range"""
    return GiroService(db).get_status_summary(due_from, due_to)


@giros_router.post("/recalculate", response_model=RecalculationResult)
def recalculate_all(db: db_dependency, actor_id: actor_dependency):
    """Recompute the status of every giro from its clearing history"""
    return GiroClearingService(db).recalculate_all()


@giros_router.get("/{giro_id}", response_model=GiroDetail)
def get_giro_detail(giro_id: UUID, db: db_dependency):
    """Giro with its clearing history, total cleared and remaining amount"""
    return GiroClearingService(db).get_giro_detail(giro_id)


@giros_router.patch("/{giro_id}", response_model=GiroOut)
def update_giro(giro_id: UUID, giro_update: GiroUpdate, db: db_dependency, actor_id: actor_dependency):
    """
    Update descriptive fields of a giro

    The amount can only change while the giro has no clearing records.
    """
    return GiroService(db).update_giro(giro_id, giro_update)


@giros_router.delete("/{giro_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_giro(giro_id: UUID, db: db_dependency, actor_id: actor_dependency):
    """Delete a giro without clearing history"""
    GiroService(db).delete_giro(giro_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@giros_router.get("/{giro_id}/remaining", response_model=GiroRemaining)
def get_remaining(giro_id: UUID, db: db_dependency):
    return GiroClearingService(db).get_remaining(giro_id)


@giros_router.post("/{giro_id}/recalculate", response_model=GiroOut)
def recalculate_status(giro_id: UUID, db: db_dependency, actor_id: actor_dependency):
    """Recompute the status of one giro; safe to call at any time"""
    return GiroClearingService(db).recalculate_status(giro_id)


# ===== CLEARINGS ENDPOINTS =====

@giros_router.get("/{giro_id}/clearings", response_model=List[GiroClearingOut])
def list_clearings(giro_id: UUID, db: db_dependency):
    """Clearing history of a giro, latest first"""
    return GiroClearingService(db).list_clearing_records(giro_id)


@giros_router.post("/{giro_id}/clearings", response_model=GiroClearingOut, status_code=status.HTTP_201_CREATED)
def record_clearing(giro_id: UUID, clearing_data: GiroClearingCreate, db: db_dependency, actor_id: actor_dependency):
    """
    Record a clearing attempt

    A cleared attempt cannot exceed the remaining amount (409). A bounced
    attempt marks the whole giro as bounced.
    """
    return GiroClearingService(db).record_clearing(
        giro_id=giro_id,
        clearing_date=clearing_data.clearing_date,
        clearing_status=clearing_data.clearing_status,
        clearing_amount=clearing_data.clearing_amount,
        created_by=actor_id,
        reference_doc=clearing_data.reference_doc,
        remarks=clearing_data.remarks
    )


@giros_router.delete("/clearings/{record_id}", response_model=GiroOut)
def delete_clearing(record_id: UUID, db: db_dependency, actor_id: actor_dependency):
    """Delete a clearing record; returns the giro with its recalculated status"""
    return GiroClearingService(db).delete_clearing_record(record_id)
