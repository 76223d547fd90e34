from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from doseplan.engine.types import DoseStatus
from doseplan.exceptions import InvalidStatusTransition, ProtocolNotFound
from doseplan.models import (
    Dose,
    InjectionSite,
    InventoryCapsule,
    InventoryVial,
    Peptide,
    ProtocolItemRecord,
    ProtocolRecord,
)
from doseplan.services import regeneration
from doseplan.services.doses import get_doses_for_range, log_dose, reset_dose, skip_dose
from doseplan.services.inventory import get_forecasts
from doseplan.services.protocols import activate_protocol, load_protocol, replace_items
from doseplan.services.regeneration import activate_and_regenerate, regenerate_protocol

from conftest import PROTOCOL_START, TODAY

USER = "user-1"


@pytest.fixture
def protocol(db):
    db.add_all([Peptide(id=1, canonical_name="BPC-157"), Peptide(id=2, canonical_name="TB-500")])
    record = ProtocolRecord(id=1, user_id=USER, name="Recovery", start_date=PROTOCOL_START, is_active=True)
    record.items = [
        ProtocolItemRecord(
            peptide_id=1,
            dose_mg_per_administration=0.25,
            schedule="EVERYDAY",
            time_of_day="08:00",
            site_list_id=10,
        ),
        ProtocolItemRecord(
            peptide_id=2,
            dose_mg_per_administration=2,
            schedule="CUSTOM",
            custom_days=[1, 4],
        ),
    ]
    db.add(record)
    db.add_all([
        InjectionSite(list_id=10, name="Left", position=1),
        InjectionSite(list_id=10, name="Right", position=2),
    ])
    db.commit()
    return record


def doses(db, **filters):
    return db.query(Dose).filter_by(user_id=USER, **filters).order_by(Dose.date_for, Dose.peptide_id).all()


def test_load_protocol_reads_sites(db, protocol):
    engine_protocol, items = load_protocol(db, USER, 1)
    assert engine_protocol.start_date == PROTOCOL_START
    assert items[0].site_labels == ("Left", "Right")
    assert items[0].canonical_name == "BPC-157"
    assert items[1].site_labels == ()


def test_missing_protocol(db):
    with pytest.raises(ProtocolNotFound):
        load_protocol(db, USER, 99)


def test_regenerate_keeps_history(db, protocol, planner):
    db.add_all([
        Dose(user_id=USER, protocol_id=1, peptide_id=1, date_for=date(2024, 1, 2), status="PENDING", dose_mg=1),
        Dose(user_id=USER, protocol_id=1, peptide_id=1, date_for=date(2024, 1, 20), status="TAKEN", dose_mg=7),
        Dose(user_id=USER, protocol_id=1, peptide_id=1, date_for=date(2025, 6, 1), status="PENDING", dose_mg=1),
    ])
    db.commit()

    plan = regenerate_protocol(db, USER, 1, planner=planner, today=TODAY)

    assert plan.leftover == 0
    assert doses(db, date_for=date(2024, 1, 2))[0].status == "PENDING"
    kept = doses(db, date_for=date(2024, 1, 20), peptide_id=1)[0]
    assert (kept.status, kept.dose_mg) == ("TAKEN", 7)
    assert doses(db, date_for=date(2025, 6, 1)) == []

    upcoming = doses(db, date_for=date(2024, 1, 11))
    assert [(d.peptide_id, d.dose_mg, d.site_label) for d in upcoming] == [(1, 0.25, "Left"), (2, 2, None)]


def test_regenerate_twice_converges(db, protocol, planner):
    regenerate_protocol(db, USER, 1, planner=planner, today=TODAY)
    first = [(d.peptide_id, d.date_for, d.dose_mg) for d in doses(db)]
    regenerate_protocol(db, USER, 1, planner=planner, today=TODAY)
    second = [(d.peptide_id, d.date_for, d.dose_mg) for d in doses(db)]
    assert first == second
    assert len(second) == len(set((p, d) for p, d, _ in second))


def test_failed_delete_reports_leftover(db, protocol, planner, monkeypatch):
    db.add(Dose(user_id=USER, protocol_id=1, peptide_id=9, date_for=date(2024, 2, 1), status="PENDING", dose_mg=1))
    db.commit()

    def broken_delete(*args, **kwargs):
        raise SQLAlchemyError("delete refused")

    monkeypatch.setattr(regeneration, "delete_stale", broken_delete)
    plan = regenerate_protocol(db, USER, 1, planner=planner, today=TODAY)

    assert plan.leftover == 1
    assert len(plan.insert_rows) > 0
    assert len(doses(db, peptide_id=1)) == len([r for r in plan.insert_rows if r.peptide_id == 1])


def test_edit_then_regenerate(db, protocol, planner):
    regenerate_protocol(db, USER, 1, planner=planner, today=TODAY)
    replace_items(db, USER, 1, [
        {"peptide_id": 1, "dose_mg_per_administration": 0.5, "schedule": "EVERY_N_DAYS", "every_n_days": 7},
    ])
    regenerate_protocol(db, USER, 1, planner=planner, today=TODAY)

    remaining = doses(db)
    assert {d.peptide_id for d in remaining} == {1}
    assert all(d.dose_mg == 0.5 for d in remaining)
    assert remaining[0].date_for == date(2024, 1, 15)


def test_activate_restarts_protocol(db, protocol, planner):
    other = ProtocolRecord(id=2, user_id=USER, name="Old", start_date=date(2023, 1, 1), is_active=True)
    db.add(other)
    db.commit()

    activate_and_regenerate(db, USER, 1, planner=planner, today=TODAY)
    db.refresh(other)
    assert other.is_active is False
    assert protocol.start_date == TODAY
    assert doses(db)[0].date_for == date(2024, 1, 11)

    activate_protocol(db, USER, 2)
    db.refresh(protocol)
    assert protocol.is_active is False


def test_status_changes(db, protocol, planner):
    day = date(2024, 1, 10)
    dose = log_dose(db, USER, 1, 1, day, dose_mg=0.25, planner=planner)
    assert dose.status == "TAKEN"
    assert dose.dose_mg == 0.25

    with pytest.raises(InvalidStatusTransition):
        skip_dose(db, USER, 1, 1, day, dose_mg=0.25, planner=planner)

    assert reset_dose(db, USER, 1, 1, day, planner=planner).status == "PENDING"
    assert skip_dose(db, USER, 1, 1, day, dose_mg=0.25, planner=planner).status == "SKIPPED"
    assert len(doses(db, date_for=day)) == 1


def test_range_view_overlays_records(db, protocol, planner):
    log_dose(db, USER, 1, 1, date(2024, 1, 8), dose_mg=0.3, planner=planner)
    log_dose(db, USER, None, 2, date(2024, 1, 9), dose_mg=1, planner=planner)

    rows = get_doses_for_range(db, USER, "2024-01-08", "2024-01-09", planner=planner)
    assert [(r.date.day, r.canonical_name, r.status) for r in rows] == [
        (8, "BPC-157", DoseStatus.TAKEN),
        (8, "TB-500", DoseStatus.PENDING),
        (9, "BPC-157", DoseStatus.PENDING),
        (9, "TB-500", DoseStatus.TAKEN),
    ]
    assert rows[0].dose_mg == 0.3


def test_forecasts_for_active_protocol(db, protocol, planner):
    db.add(InventoryVial(user_id=USER, peptide_id=1, vials=1, mg_per_vial=5, bac_ml=2, current_used_mg=2.5))
    db.add(InventoryCapsule(user_id=USER, peptide_id=2, bottles=1, caps_per_bottle=2, mg_per_cap=2))
    db.commit()

    forecasts = {f["peptide_id"]: f for f in get_forecasts(db, USER, planner=planner, today=TODAY)}
    assert forecasts[1]["remainingDoses"] == 10
    assert forecasts[1]["reorderDateISO"] == "2024-01-24"
    assert forecasts[1]["syringe_units"] == pytest.approx(10)
    assert forecasts[2]["remainingDoses"] == 2
    assert forecasts[2]["reorderDateISO"] == "2024-01-17"
    assert forecasts[2]["syringe_units"] is None


def test_range_view_ignores_other_protocols(db, protocol, planner):
    db.add(ProtocolRecord(id=2, user_id=USER, name="Old", start_date=date(2023, 1, 1), is_active=False))
    db.add_all([
        Dose(user_id=USER, protocol_id=None, peptide_id=1, date_for=date(2024, 1, 9), status="TAKEN", dose_mg=5),
        Dose(user_id=USER, protocol_id=2, peptide_id=1, date_for=date(2024, 1, 9), status="PENDING", dose_mg=7),
    ])
    db.commit()

    rows = get_doses_for_range(db, USER, "2024-01-09", "2024-01-09", planner=planner)
    assert [(r.peptide_id, r.status, r.dose_mg, r.protocol_id) for r in rows] == [
        (1, DoseStatus.TAKEN, 5, None),
    ]


def test_adhoc_doses_are_unique_per_day(db, protocol):
    db.add(Dose(user_id=USER, protocol_id=None, peptide_id=1, date_for=date(2024, 1, 9), status="TAKEN", dose_mg=5))
    db.commit()
    db.add(Dose(user_id=USER, protocol_id=None, peptide_id=1, date_for=date(2024, 1, 9), status="TAKEN", dose_mg=5))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()
