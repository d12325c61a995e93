"""
Giro module - Giro Clearing API

Tracks post-dated payment instruments (giros) received from customers and
reconciles them against clearing attempts.

ENTITIES:
- Giro: instrument with a fixed face value, due date and derived status
- GiroClearingRecord: one clearing attempt, cleared or bounced

GIRO STATUS (derived from the clearing history, never edited):
- pending: no clearing recorded
- partial: part of the face value cleared
- cleared: face value fully cleared
- bounced: at least one attempt bounced (dominates all others)

RULES:
- Cleared amounts can never exceed the face value in total
- Every insert or delete of a clearing record recalculates the giro status
  in the same transaction
- The face value is frozen once clearing records exist
- Giros with clearing records cannot be deleted

TYPICAL FLOW:
1. Register the giro when it is received (pending)
2. Record clearings as the bank realizes it (partial -> cleared)
3. Record a bounce if the bank rejects it (bounced)
"""

from .models import Giro, GiroClearingRecord, GiroStatus, ClearingStatus
from .schemas import (
    GiroCreate, GiroUpdate, GiroOut, GiroDetail,
    GiroClearingCreate, GiroClearingOut
)
from .service import GiroService, GiroClearingService
from .router import giros_router

__all__ = [
    # Models
    "Giro", "GiroClearingRecord", "GiroStatus", "ClearingStatus",

    # Schemas
    "GiroCreate", "GiroUpdate", "GiroOut", "GiroDetail",
    "GiroClearingCreate", "GiroClearingOut",

    # Services
    "GiroService", "GiroClearingService",

    # Router
    "giros_router"
]
