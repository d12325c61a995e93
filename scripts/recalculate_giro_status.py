"""
Maintenance script: recompute every giro status from its clearing history.

Status is always derived from the clearing records; this sweep repairs rows
whose stored status drifted (manual edits, restored backups). Running it
twice in a row reports zero changes the second time.

Run from the project root:
    python scripts/recalculate_giro_status.py
    python scripts/recalculate_giro_status.py --giro-id <uuid>
"""

# Add project root to sys.path so `giro_clearing.*` imports work even if CWD changes
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import logging
import uuid

from giro_clearing.core.config import settings
from giro_clearing.database.database import SessionLocal
from giro_clearing.modules.giros.service import GiroClearingService
from giro_clearing.modules.giros.exceptions import GiroError


def main():
    parser = argparse.ArgumentParser(description="Recalculate giro statuses")
    parser.add_argument("--giro-id", type=uuid.UUID, default=None, help="Only recalculate this giro")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    db = SessionLocal()
    try:
        engine = GiroClearingService(db)
        if args.giro_id:
            giro = engine.recalculate_status(args.giro_id)
            print(f"Giro {giro.id}: {giro.status.value}")
        else:
            result = engine.recalculate_all()
            print(f"Checked: {result.checked}")
            print(f"Changed: {result.changed}")
    except GiroError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
