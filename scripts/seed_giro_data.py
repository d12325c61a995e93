"""
Seed script: Populate the database with demo giros and clearing history.

What it creates:
- Customers (random UUIDs) and a few sales people.
- Giros (default 200) across several banks, with due dates spread around today.
- Clearing records recorded through the clearing engine, so every giro ends in
  a consistent state: some pending, some partially cleared, some fully
  cleared and a few bounced.

Run from the project root:
    python scripts/seed_giro_data.py --giros 200 --customers 40 --actor seed-script

Note: This is intended for development environments only.
"""

# Add project root to sys.path so `giro_clearing.*` imports work even if CWD changes
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import random
import uuid
from datetime import date, timedelta
from decimal import Decimal

from giro_clearing.database.database import SessionLocal, sync_engine, Base
from giro_clearing.modules.giros.models import ClearingStatus
from giro_clearing.modules.giros.schemas import GiroCreate
from giro_clearing.modules.giros.service import GiroService, GiroClearingService
from giro_clearing.modules.giros.exceptions import GiroError


BANKS = ["Bank Mandiri", "Bank BCA", "Bank BNI", "Bank BRI", "Bank CIMB Niaga", "Bank Danamon"]


def pick(seq):
    return random.choice(seq)


def random_amount() -> Decimal:
    # Round face values, as customers usually write them
    return Decimal(random.randint(10, 500) * 100000)


def create_giros(db, customers, sales_people, count: int, actor: str):
    service = GiroService(db)
    today = date.today()
    giros = []
    for i in range(count):
        received = today - timedelta(days=random.randint(0, 90))
        giro = service.create_giro(GiroCreate(
            customer_id=pick(customers),
            sales_person_id=pick(sales_people),
            giro_number=f"GR-{today.year}-{i + 1:05d}",
            bank_name=pick(BANKS),
            bank_account=f"{random.randint(100, 999)}-{random.randint(100000, 999999)}",
            amount=random_amount(),
            due_date=received + timedelta(days=random.randint(7, 60)),
            received_date=received,
            invoice_number=f"INV-{today.year}-{random.randint(1, 9999):04d}",
        ), created_by=actor)
        giros.append(giro)
        if (i + 1) % 50 == 0:
            print(f"  Giros created: {i + 1}")
    return giros


def create_clearings(db, giros, actor: str):
    """Walk each giro to one of the possible end states"""
    engine = GiroClearingService(db)
    created = 0
    outcomes = {"pending": 0, "partial": 0, "cleared": 0, "bounced": 0}

    for giro in giros:
        outcome = random.choices(list(outcomes), weights=[30, 30, 30, 10])[0]
        if outcome == "pending" or giro.due_date > date.today():
            outcomes["pending"] += 1
            continue

        clearing_date = giro.due_date + timedelta(days=random.randint(0, 3))
        try:
            if outcome == "bounced":
                engine.record_clearing(
                    giro.id, clearing_date, ClearingStatus.BOUNCED, giro.amount,
                    created_by=actor, remarks="Insufficient funds"
                )
                created += 1
            elif outcome == "partial":
                first = (giro.amount * Decimal(random.randint(20, 80)) / 100).quantize(Decimal("0.01"))
                engine.record_clearing(
                    giro.id, clearing_date, ClearingStatus.CLEARED, first,
                    created_by=actor, reference_doc=f"BK-{random.randint(10000, 99999)}"
                )
                created += 1
            else:
                installments = random.randint(1, 3)
                remaining = giro.amount
                for n in range(installments):
                    if n == installments - 1:
                        part = remaining
                    else:
                        part = (remaining / 2).quantize(Decimal("0.01"))
                    engine.record_clearing(
                        giro.id, clearing_date + timedelta(days=n), ClearingStatus.CLEARED, part,
                        created_by=actor, reference_doc=f"BK-{random.randint(10000, 99999)}"
                    )
                    remaining -= part
                    created += 1
        except GiroError as e:
            print(f"  Skipped giro {giro.giro_number}: {e.message}")
            continue
        outcomes[outcome] += 1

    return created, outcomes


def main():
    parser = argparse.ArgumentParser(description="Seed demo giros and clearings")
    parser.add_argument("--giros", type=int, default=200)
    parser.add_argument("--customers", type=int, default=40)
    parser.add_argument("--sales-people", type=int, default=5)
    parser.add_argument("--actor", default="seed-script")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible data")
    parser.add_argument("--create-tables", action="store_true", help="Create tables before seeding")
    args = parser.parse_args()

    if args.seed is not None:
        random.seed(args.seed)
    if args.create_tables:
        Base.metadata.create_all(bind=sync_engine)

    customers = [uuid.uuid4() for _ in range(args.customers)]
    sales_people = [uuid.uuid4() for _ in range(args.sales_people)]

    db = SessionLocal()
    try:
        print("Creating giros...")
        giros = create_giros(db, customers, sales_people, args.giros, args.actor)
        print(f"Giros created: {len(giros)}")

        print("Recording clearings...")
        created, outcomes = create_clearings(db, giros, args.actor)
        print(f"Clearing records created: {created}")

        print("\nSeed completed.")
        for outcome, count in outcomes.items():
            print(f"  {outcome:<8} {count}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
