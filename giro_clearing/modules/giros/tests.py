"""
Tests for the Giro module

Covers:
- Balance and status derivation (pure calculator)
- Recording clearings: no-overshoot rule, bounce handling, validation
- Recalculation after deletes and as a repair step
- Concurrent clearings against the same giro
- Giro management guards (frozen amount, protected delete)
- Listing filters and the status summary
- HTTP endpoints and error translation

Every test runs against its own SQLite database.
"""

import itertools
import threading
import pydantic
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from types import SimpleNamespace
from uuid import uuid4
from datetime import date, timedelta
from decimal import Decimal

from giro_clearing.main import app
from giro_clearing.core.config import settings
from giro_clearing.database.database import Base, build_engine, get_db
from giro_clearing.modules.giros.models import Giro, GiroStatus, ClearingStatus
from giro_clearing.modules.giros.schemas import GiroCreate, GiroUpdate, GiroFilters, GiroClearingCreate
from giro_clearing.modules.giros import service as service_module
from giro_clearing.modules.giros.service import GiroService, GiroClearingService, _giro_locks
from giro_clearing.modules.giros.calculator import calculate_balance, derive_status
from giro_clearing.modules.giros.exceptions import (
    ValidationError, InsufficientRemainingAmount, InvalidGiroStateError,
    NotFoundError, StoreError
)


ACTOR = "cashier-01"


# ===== FIXTURES =====

@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def customer_id():
    return uuid4()


def make_giro_data(customer_id, amount="1000", **overrides):
    data = {
        "customer_id": customer_id,
        "giro_number": "GR-0001",
        "bank_name": "Bank Mandiri",
        "bank_account": "123-456-789",
        "amount": Decimal(amount),
        "due_date": date(2026, 11, 30),
        "received_date": date(2026, 10, 1),
        "invoice_number": "INV-2026-001",
    }
    data.update(overrides)
    return GiroCreate(**data)


@pytest.fixture
def giro(db, customer_id):
    return GiroService(db).create_giro(make_giro_data(customer_id), created_by=ACTOR)


def record(db, giro_id, amount, clearing_status="cleared", clearing_date=None):
    return GiroClearingService(db).record_clearing(
        giro_id=giro_id,
        clearing_date=clearing_date or date(2026, 12, 1),
        clearing_status=clearing_status,
        clearing_amount=Decimal(amount),
        created_by=ACTOR,
    )


def attempt(clearing_status, amount):
    return SimpleNamespace(clearing_status=clearing_status, clearing_amount=Decimal(amount))


# ===== CALCULATOR =====

class TestBalanceDerivation:

    def test_no_records_is_pending_with_full_remaining(self):
        balance = calculate_balance(Decimal("1000"), [])

        assert balance.status == GiroStatus.PENDING
        assert balance.remaining == Decimal("1000")
        assert balance.total_cleared == Decimal("0")

    def test_partial_clearing(self):
        balance = calculate_balance(Decimal("1000"), [attempt(ClearingStatus.CLEARED, "400")])

        assert balance.status == GiroStatus.PARTIAL
        assert balance.remaining == Decimal("600")

    def test_full_clearing(self):
        balance = calculate_balance(Decimal("1000"), [attempt(ClearingStatus.CLEARED, "1000")])

        assert balance.status == GiroStatus.CLEARED
        assert balance.remaining == Decimal("0")

    def test_several_partials_add_up_to_cleared(self):
        records = [attempt(ClearingStatus.CLEARED, a) for a in ("250", "250.50", "499.50")]

        assert derive_status(Decimal("1000"), records) == GiroStatus.CLEARED

    def test_bounce_dominates_partial_clearing(self):
        records = [attempt(ClearingStatus.CLEARED, "500"), attempt(ClearingStatus.BOUNCED, "300")]
        balance = calculate_balance(Decimal("1000"), records)

        assert balance.status == GiroStatus.BOUNCED
        # A bounce does not consume face value
        assert balance.remaining == Decimal("500")

    def test_remaining_is_clamped_at_zero(self):
        records = [attempt(ClearingStatus.CLEARED, "700"), attempt(ClearingStatus.CLEARED, "700")]
        balance = calculate_balance(Decimal("1000"), records)

        assert balance.remaining == Decimal("0")
        assert balance.status == GiroStatus.CLEARED

    def test_derivation_ignores_record_order_and_repetition(self):
        records = [
            attempt(ClearingStatus.CLEARED, "100"),
            attempt(ClearingStatus.CLEARED, "200"),
            attempt(ClearingStatus.BOUNCED, "50"),
        ]
        results = {calculate_balance(Decimal("1000"), list(p)) for p in itertools.permutations(records)}
        results.add(calculate_balance(Decimal("1000"), records))

        assert len(results) == 1

    def test_accepts_plain_string_statuses(self):
        assert derive_status(Decimal("1000"), [attempt("cleared", "10")]) == GiroStatus.PARTIAL


# ===== RECORDING CLEARINGS =====

class TestRecordClearing:

    def test_new_giro_detail_round_trip(self, db, giro):
        detail = GiroClearingService(db).get_giro_detail(giro.id)

        assert detail.giro.status == GiroStatus.PENDING
        assert detail.remaining == detail.giro.amount == Decimal("1000")
        assert detail.records == []
        assert detail.total_cleared == Decimal("0")

    def test_partial_clearing(self, db, giro):
        record(db, giro.id, "400")
        engine_service = GiroClearingService(db)

        assert engine_service.get_giro_detail(giro.id).giro.status == GiroStatus.PARTIAL
        assert engine_service.get_remaining_amount(giro.id) == Decimal("600")

    def test_full_clearing(self, db, giro):
        record(db, giro.id, "1000")
        detail = GiroClearingService(db).get_giro_detail(giro.id)

        assert detail.giro.status == GiroStatus.CLEARED
        assert detail.remaining == Decimal("0")
        assert detail.total_cleared == Decimal("1000")

    def test_overshoot_is_rejected_and_state_unchanged(self, db, giro):
        record(db, giro.id, "700")

        with pytest.raises(InsufficientRemainingAmount) as exc_info:
            record(db, giro.id, "300.01")

        assert exc_info.value.remaining == Decimal("300")
        assert exc_info.value.requested == Decimal("300.01")
        assert exc_info.value.giro_id == giro.id

        detail = GiroClearingService(db).get_giro_detail(giro.id)
        assert len(detail.records) == 1
        assert detail.giro.status == GiroStatus.PARTIAL
        assert detail.remaining == Decimal("300")

    def test_cleared_giro_rejects_further_cleared_amounts(self, db, giro):
        record(db, giro.id, "1000")

        with pytest.raises(InsufficientRemainingAmount):
            record(db, giro.id, "1")

    def test_bounce_is_not_amount_checked(self, db, giro):
        record(db, giro.id, "5000", clearing_status="bounced")

        assert GiroService(db).get_giro(giro.id).status == GiroStatus.BOUNCED
        assert GiroClearingService(db).get_remaining_amount(giro.id) == Decimal("1000")

    def test_bounce_after_partial_marks_giro_bounced(self, db, giro):
        record(db, giro.id, "500")
        record(db, giro.id, "300", clearing_status=ClearingStatus.BOUNCED)

        assert GiroService(db).get_giro(giro.id).status == GiroStatus.BOUNCED

    def test_cleared_amount_after_bounce_is_rejected(self, db, giro):
        record(db, giro.id, "1000", clearing_status="bounced")

        with pytest.raises(InvalidGiroStateError):
            record(db, giro.id, "100")

    def test_cleared_amount_after_bounce_allowed_by_setting(self, db, giro, monkeypatch):
        monkeypatch.setattr(settings, "ALLOW_CLEARING_AFTER_BOUNCE", True)
        record(db, giro.id, "1000", clearing_status="bounced")
        record(db, giro.id, "100")

        detail = GiroClearingService(db).get_giro_detail(giro.id)
        assert detail.giro.status == GiroStatus.BOUNCED
        assert detail.remaining == Decimal("900")

    @pytest.mark.parametrize("amount", [0, -5, "abc", None, "NaN"])
    def test_invalid_amount_is_rejected(self, db, giro, amount):
        with pytest.raises(ValidationError) as exc_info:
            GiroClearingService(db).record_clearing(
                giro.id, date(2026, 12, 1), "cleared", amount, created_by=ACTOR
            )

        assert exc_info.value.field == "clearing_amount"

    def test_invalid_status_is_rejected(self, db, giro):
        with pytest.raises(ValidationError) as exc_info:
            GiroClearingService(db).record_clearing(
                giro.id, date(2026, 12, 1), "pending", Decimal("10"), created_by=ACTOR
            )

        assert exc_info.value.field == "clearing_status"

    def test_actor_is_required(self, db, giro):
        with pytest.raises(ValidationError) as exc_info:
            GiroClearingService(db).record_clearing(
                giro.id, date(2026, 12, 1), "cleared", Decimal("10"), created_by="  "
            )

        assert exc_info.value.field == "created_by"

    def test_unknown_giro(self, db):
        with pytest.raises(NotFoundError) as exc_info:
            record(db, uuid4(), "10")

        assert exc_info.value.entity_type == "Giro"

    def test_record_keeps_giro_snapshot_and_actor(self, db, giro):
        created = record(db, giro.id, "10")

        assert created.giro_number == "GR-0001"
        assert created.bank_name == "Bank Mandiri"
        assert created.bank_account == "123-456-789"
        assert created.invoice_number == "INV-2026-001"
        assert created.created_by == ACTOR

    def test_records_listed_latest_first(self, db, giro):
        record(db, giro.id, "100", clearing_date=date(2026, 12, 1))
        record(db, giro.id, "100", clearing_date=date(2026, 12, 15))
        record(db, giro.id, "100", clearing_date=date(2026, 12, 8))

        dates = [r.clearing_date for r in GiroClearingService(db).list_clearing_records(giro.id)]
        assert dates == [date(2026, 12, 15), date(2026, 12, 8), date(2026, 12, 1)]

    @pytest.mark.parametrize("amount,clearing_status", [
        ("1000.004", "cleared"),
        ("0.005", "bounced"),
        ("12.345", "cleared"),
    ])
    def test_sub_cent_amount_is_rejected_not_rounded(self, db, giro, amount, clearing_status):
        with pytest.raises(ValidationError) as exc_info:
            record(db, giro.id, amount, clearing_status=clearing_status)

        assert exc_info.value.field == "clearing_amount"
        assert GiroClearingService(db).list_clearing_records(giro.id) == []

    def test_trailing_zero_cents_are_accepted(self, db, giro):
        created = record(db, giro.id, "1000.000")

        assert created.clearing_amount == Decimal("1000.00")

    def test_failure_after_insert_leaves_giro_unchanged(self, db, giro, monkeypatch):
        def failing_status_update(*args, **kwargs):
            raise RuntimeError("status update failed")

        monkeypatch.setattr(service_module, "apply_derived_status", failing_status_update)

        with pytest.raises(RuntimeError):
            record(db, giro.id, "400")

        detail = GiroClearingService(db).get_giro_detail(giro.id)
        assert detail.records == []
        assert detail.giro.status == GiroStatus.PENDING
        assert detail.remaining == Decimal("1000")

    def test_failed_commit_leaves_no_record(self, db, giro, monkeypatch):
        def broken_commit():
            raise OperationalError("COMMIT", {}, Exception("connection lost"))

        monkeypatch.setattr(db, "commit", broken_commit)

        with pytest.raises(StoreError) as exc_info:
            record(db, giro.id, "400")

        assert exc_info.value.operation == "commit"
        detail = GiroClearingService(db).get_giro_detail(giro.id)
        assert detail.records == []
        assert detail.giro.status == GiroStatus.PENDING

    def test_lock_registry_is_released_after_writes(self, db, giro):
        for _ in range(20):
            with pytest.raises(NotFoundError):
                record(db, uuid4(), "10")
        record(db, giro.id, "600")
        with pytest.raises(InsufficientRemainingAmount):
            record(db, giro.id, "600")

        assert _giro_locks == {}


# ===== RECALCULATION =====

class TestRecalculation:

    def test_delete_triggers_recalculation(self, db, giro):
        created = record(db, giro.id, "1000")

        updated = GiroClearingService(db).delete_clearing_record(created.id)

        assert updated.status == GiroStatus.PENDING
        assert GiroClearingService(db).get_remaining_amount(giro.id) == Decimal("1000")

    def test_deleting_the_bounce_restores_partial(self, db, giro):
        record(db, giro.id, "400")
        bounce = record(db, giro.id, "600", clearing_status="bounced")

        updated = GiroClearingService(db).delete_clearing_record(bounce.id)

        assert updated.status == GiroStatus.PARTIAL

    def test_delete_unknown_record(self, db):
        with pytest.raises(NotFoundError) as exc_info:
            GiroClearingService(db).delete_clearing_record(uuid4())

        assert exc_info.value.entity_type == "GiroClearingRecord"

    def test_recalculate_repairs_drifted_status(self, db, giro):
        record(db, giro.id, "400")
        drifted = db.get(Giro, giro.id)
        drifted.status = GiroStatus.CLEARED
        db.commit()

        engine_service = GiroClearingService(db)
        first = engine_service.recalculate_status(giro.id).status
        second = engine_service.recalculate_status(giro.id).status

        assert first == second == GiroStatus.PARTIAL

    def test_recalculate_unknown_giro(self, db):
        with pytest.raises(NotFoundError):
            GiroClearingService(db).recalculate_status(uuid4())

    def test_recalculate_all_reports_changes(self, db, customer_id, giro):
        other = GiroService(db).create_giro(
            make_giro_data(customer_id, giro_number="GR-0002"), created_by=ACTOR
        )
        record(db, other.id, "1000")
        drifted = db.get(Giro, giro.id)
        drifted.status = GiroStatus.BOUNCED
        db.commit()

        result = GiroClearingService(db).recalculate_all()

        assert result.checked == 2
        assert result.changed == 1
        assert GiroService(db).get_giro(giro.id).status == GiroStatus.PENDING
        assert GiroService(db).get_giro(other.id).status == GiroStatus.CLEARED


# ===== CONCURRENCY =====

def test_concurrent_clearings_cannot_overshoot(tmp_path, customer_id):
    engine = build_engine(f"sqlite:///{tmp_path / 'giros.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    setup = factory()
    giro_id = GiroService(setup).create_giro(make_giro_data(customer_id), created_by=ACTOR).id
    setup.close()

    barrier = threading.Barrier(2)
    results_lock = threading.Lock()
    successes, rejections, failures = [], [], []

    def submit(actor):
        session = factory()
        try:
            barrier.wait()
            created = GiroClearingService(session).record_clearing(
                giro_id, date(2026, 12, 1), "cleared", Decimal("1000"), created_by=actor
            )
            with results_lock:
                successes.append(created.id)
        except InsufficientRemainingAmount as e:
            with results_lock:
                rejections.append(e)
        except Exception as e:
            with results_lock:
                failures.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=submit, args=(f"tab-{i}",)) for i in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert failures == []
    assert len(successes) == 1
    assert len(rejections) == 1

    check = factory()
    detail = GiroClearingService(check).get_giro_detail(giro_id)
    assert len(detail.records) == 1
    assert detail.remaining == Decimal("0")
    assert detail.giro.status == GiroStatus.CLEARED
    check.close()
    engine.dispose()


# ===== GIRO MANAGEMENT =====

class TestGiroManagement:

    def test_amount_editable_before_any_clearing(self, db, giro):
        updated = GiroService(db).update_giro(giro.id, GiroUpdate(amount=Decimal("1500")))

        assert updated.amount == Decimal("1500")
        assert updated.status == GiroStatus.PENDING

    def test_amount_frozen_once_clearings_exist(self, db, giro):
        record(db, giro.id, "100")

        with pytest.raises(InvalidGiroStateError):
            GiroService(db).update_giro(giro.id, GiroUpdate(amount=Decimal("1500")))

        assert GiroService(db).get_giro(giro.id).amount == Decimal("1000")

    def test_descriptive_fields_editable_with_clearings(self, db, giro):
        record(db, giro.id, "100")

        updated = GiroService(db).update_giro(giro.id, GiroUpdate(remarks="Handed over by driver"))

        assert updated.remarks == "Handed over by driver"
        assert updated.status == GiroStatus.PARTIAL

    def test_sub_cent_amounts_fail_schema_validation(self, customer_id):
        with pytest.raises(pydantic.ValidationError):
            make_giro_data(customer_id, amount="1000.005")
        with pytest.raises(pydantic.ValidationError):
            GiroUpdate(amount=Decimal("10.001"))
        with pytest.raises(pydantic.ValidationError):
            GiroClearingCreate(clearing_amount=Decimal("0.005"))

        assert GiroClearingCreate(clearing_amount=Decimal("10.50")).clearing_amount == Decimal("10.50")

    def test_required_fields_cannot_be_cleared(self, db, giro):
        with pytest.raises(ValidationError):
            GiroService(db).update_giro(giro.id, GiroUpdate(bank_name=None))

    def test_delete_without_clearings(self, db, giro):
        GiroService(db).delete_giro(giro.id)

        with pytest.raises(NotFoundError):
            GiroService(db).get_giro(giro.id)

    def test_delete_with_clearings_is_rejected(self, db, giro):
        record(db, giro.id, "100")

        with pytest.raises(InvalidGiroStateError):
            GiroService(db).delete_giro(giro.id)

        assert GiroService(db).get_giro(giro.id) is not None

    def test_duplicate_giro_number_is_allowed_but_logged(self, db, customer_id, giro, caplog):
        with caplog.at_level("WARNING"):
            duplicate = GiroService(db).create_giro(make_giro_data(customer_id), created_by=ACTOR)

        assert duplicate.id != giro.id
        assert "already registered" in caplog.text

    def test_store_failures_surface_as_store_error(self, db, giro, monkeypatch):
        def broken_query(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("connection lost"))

        monkeypatch.setattr(db, "query", broken_query)

        with pytest.raises(StoreError) as exc_info:
            GiroClearingService(db).get_remaining_amount(giro.id)

        assert exc_info.value.operation == "get_giro"


# ===== LISTING AND SUMMARY =====

class TestListingAndSummary:

    @pytest.fixture
    def portfolio(self, db, customer_id):
        service = GiroService(db)
        other_customer = uuid4()
        giros = {
            "early": service.create_giro(make_giro_data(
                customer_id, giro_number="GR-100", due_date=date(2026, 10, 5)), created_by=ACTOR),
            "middle": service.create_giro(make_giro_data(
                customer_id, giro_number="GR-200", amount="2000", due_date=date(2026, 11, 5),
                bank_name="Bank BCA"), created_by=ACTOR),
            "late": service.create_giro(make_giro_data(
                other_customer, giro_number="GR-300", amount="500", due_date=date(2026, 12, 5),
                invoice_number="INV-XYZ"), created_by=ACTOR),
        }
        record(db, giros["middle"].id, "500")
        record(db, giros["late"].id, "500", clearing_status="bounced")
        return giros

    def test_list_orders_by_due_date_descending(self, db, portfolio):
        result = GiroClearingService(db).list_giros()

        assert result.total == 3
        assert [g.giro_number for g in result.items] == ["GR-300", "GR-200", "GR-100"]

    def test_filter_by_customer(self, db, customer_id, portfolio):
        result = GiroClearingService(db).list_giros(GiroFilters(customer_id=customer_id))

        assert {g.giro_number for g in result.items} == {"GR-100", "GR-200"}

    def test_filter_by_status(self, db, portfolio):
        result = GiroClearingService(db).list_giros(GiroFilters(status=GiroStatus.PARTIAL))

        assert [g.giro_number for g in result.items] == ["GR-200"]

    def test_filter_by_due_range_and_search(self, db, portfolio):
        engine_service = GiroClearingService(db)

        in_range = engine_service.list_giros(GiroFilters(due_from=date(2026, 11, 1), due_to=date(2026, 11, 30)))
        by_bank = engine_service.list_giros(GiroFilters(search="bca"))
        by_invoice = engine_service.list_giros(GiroFilters(search="XYZ"))

        assert [g.giro_number for g in in_range.items] == ["GR-200"]
        assert [g.giro_number for g in by_bank.items] == ["GR-200"]
        assert [g.giro_number for g in by_invoice.items] == ["GR-300"]

    def test_inverted_due_range_is_rejected(self, db):
        with pytest.raises(ValidationError):
            GiroClearingService(db).list_giros(GiroFilters(due_from=date(2026, 12, 1), due_to=date(2026, 11, 1)))

    def test_pagination(self, db, portfolio):
        result = GiroClearingService(db).list_giros(limit=2, offset=2)

        assert result.total == 3
        assert [g.giro_number for g in result.items] == ["GR-100"]

    def test_status_summary(self, db, portfolio):
        summary = GiroService(db).get_status_summary()
        buckets = {b.status: b for b in summary.buckets}

        assert buckets[GiroStatus.PENDING].count == 1
        assert buckets[GiroStatus.PENDING].total_amount == Decimal("1000")
        assert buckets[GiroStatus.PARTIAL].total_amount == Decimal("2000")
        assert buckets[GiroStatus.BOUNCED].count == 1
        assert buckets[GiroStatus.CLEARED].count == 0
        # 1000 pending + (2000 - 500) partial
        assert summary.total_outstanding == Decimal("2500")
        assert summary.currency == settings.CURRENCY

    def test_status_summary_due_range(self, db, portfolio):
        summary = GiroService(db).get_status_summary(due_from=date(2026, 11, 1))
        buckets = {b.status: b for b in summary.buckets}

        assert buckets[GiroStatus.PENDING].count == 0
        assert summary.total_outstanding == Decimal("1500")


# ===== HTTP API =====

class TestGiroEndpoints:

    headers = {"X-User-ID": ACTOR}

    def create(self, client, customer_id, amount="1000"):
        payload = {
            "customer_id": str(customer_id),
            "giro_number": "GR-9001",
            "bank_name": "Bank BNI",
            "amount": amount,
            "due_date": "2026-12-31",
        }
        response = client.post("/giros/", json=payload, headers=self.headers)
        assert response.status_code == 201
        return response.json()

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_writes_require_actor_header(self, client, customer_id):
        response = client.post("/giros/", json={
            "customer_id": str(customer_id),
            "giro_number": "GR-9001",
            "bank_name": "Bank BNI",
            "amount": "1000",
            "due_date": "2026-12-31",
        })

        assert response.status_code == 400

    def test_create_and_detail(self, client, customer_id):
        created = self.create(client, customer_id)

        assert created["status"] == "pending"
        assert created["created_by"] == ACTOR

        detail = client.get(f"/giros/{created['id']}").json()
        assert Decimal(detail["remaining"]) == Decimal("1000")
        assert detail["records"] == []

    def test_record_clearing_flow(self, client, customer_id):
        giro_id = self.create(client, customer_id)["id"]

        response = client.post(
            f"/giros/{giro_id}/clearings",
            json={"clearing_amount": "400", "clearing_status": "cleared", "reference_doc": "BK-77"},
            headers=self.headers
        )
        assert response.status_code == 201
        assert response.json()["created_by"] == ACTOR

        remaining = client.get(f"/giros/{giro_id}/remaining").json()
        assert Decimal(remaining["remaining"]) == Decimal("600")
        assert remaining["status"] == "partial"

        history = client.get(f"/giros/{giro_id}/clearings").json()
        assert [h["reference_doc"] for h in history] == ["BK-77"]

    def test_overshoot_returns_conflict_with_context(self, client, customer_id):
        giro_id = self.create(client, customer_id)["id"]

        response = client.post(
            f"/giros/{giro_id}/clearings",
            json={"clearing_amount": "1000.01"},
            headers=self.headers
        )

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["error"] == "InsufficientRemainingAmount"
        assert detail["giro_id"] == giro_id
        assert Decimal(detail["remaining"]) == Decimal("1000")
        assert Decimal(detail["requested"]) == Decimal("1000.01")

    def test_non_positive_amount_is_unprocessable(self, client, customer_id):
        giro_id = self.create(client, customer_id)["id"]

        response = client.post(f"/giros/{giro_id}/clearings", json={"clearing_amount": "0"}, headers=self.headers)

        assert response.status_code == 422

    def test_sub_cent_amount_is_unprocessable(self, client, customer_id):
        giro_id = self.create(client, customer_id)["id"]

        response = client.post(f"/giros/{giro_id}/clearings", json={"clearing_amount": "1000.004"}, headers=self.headers)

        assert response.status_code == 422
        assert client.get(f"/giros/{giro_id}/clearings").json() == []

    def test_page_size_follows_settings(self, client, customer_id):
        self.create(client, customer_id)

        default_page = client.get("/giros/").json()
        capped_page = client.get("/giros/", params={"limit": settings.MAX_PAGE_SIZE + 400}).json()

        assert default_page["limit"] == settings.DEFAULT_PAGE_SIZE
        assert capped_page["limit"] == settings.MAX_PAGE_SIZE
        assert capped_page["total"] == 1

    def test_unknown_giro_is_not_found(self, client):
        response = client.get(f"/giros/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["detail"]["entity_type"] == "Giro"

    def test_delete_clearing_returns_recalculated_giro(self, client, customer_id):
        giro_id = self.create(client, customer_id)["id"]
        clearing = client.post(
            f"/giros/{giro_id}/clearings", json={"clearing_amount": "1000"}, headers=self.headers
        ).json()
        assert client.get(f"/giros/{giro_id}").json()["giro"]["status"] == "cleared"

        response = client.delete(f"/giros/clearings/{clearing['id']}", headers=self.headers)

        assert response.status_code == 200
        assert response.json()["status"] == "pending"

    def test_list_filter_and_summary(self, client, customer_id):
        first = self.create(client, customer_id)["id"]
        self.create(client, customer_id, amount="250")
        client.post(f"/giros/{first}/clearings", json={"clearing_amount": "100"}, headers=self.headers)

        partial = client.get("/giros/", params={"status": "partial"}).json()
        assert partial["total"] == 1
        assert partial["items"][0]["id"] == first

        summary = client.get("/giros/summary").json()
        assert Decimal(summary["total_outstanding"]) == Decimal("1150")

    def test_delete_giro_with_history_conflicts(self, client, customer_id):
        giro_id = self.create(client, customer_id)["id"]
        client.post(f"/giros/{giro_id}/clearings", json={"clearing_amount": "100"}, headers=self.headers)

        response = client.delete(f"/giros/{giro_id}", headers=self.headers)

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "InvalidGiroStateError"

    def test_recalculate_endpoint(self, client, customer_id):
        giro_id = self.create(client, customer_id)["id"]

        response = client.post(f"/giros/{giro_id}/recalculate", headers=self.headers)

        assert response.status_code == 200
        assert response.json()["status"] == "pending"
