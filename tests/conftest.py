from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from doseplan.db.database import Base
from doseplan.engine import DosePlanner
from doseplan.engine.calendar import UTC
from doseplan.engine.types import CycleRule, Everyday, ProtocolItem, TitrationRule
import doseplan.models  # noqa: F401  registers tables

TODAY = date(2024, 1, 10)
PROTOCOL_START = date(2024, 1, 1)  # a Monday


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def planner():
    return DosePlanner(frame=UTC, horizon_days=365)


@pytest.fixture
def make_item():
    def _make(peptide_id=1, dose_mg=10.0, cadence=None, name=None, **kwargs):
        return ProtocolItem(
            peptide_id=peptide_id,
            dose_mg=dose_mg,
            cadence=cadence or Everyday(),
            canonical_name=name or f"Peptide {peptide_id}",
            cycle=kwargs.pop("cycle", CycleRule()),
            titration=kwargs.pop("titration", TitrationRule()),
            **kwargs,
        )
    return _make
