#!/usr/bin/env python3
"""
Rebuild future PENDING doses for every active protocol.
Run after a deploy that changes scheduling rules:
    DATABASE_URL=... python scripts/regenerate_active.py
"""
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from doseplan.db import Base, SessionLocal, engine
from doseplan.engine import DosePlanner
from doseplan.models import ProtocolRecord
from doseplan.services.regeneration import regenerate_protocol

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("regenerate_active")


def main() -> int:
    Base.metadata.create_all(bind=engine)
    planner = DosePlanner()
    db = SessionLocal()
    failures = 0
    try:
        protocols = db.query(ProtocolRecord).filter(ProtocolRecord.is_active == True).all()
        logger.info(f"Regenerating {len(protocols)} active protocols ({planner.frame.name})")
        for protocol in protocols:
            try:
                plan = regenerate_protocol(db, protocol.user_id, protocol.id, planner=planner)
            except SQLAlchemyError as e:
                db.rollback()
                failures += 1
                logger.error(f"Protocol {protocol.id}: {e}")
                continue
            if plan.leftover:
                logger.warning(f"Protocol {protocol.id}: {plan.leftover} stale doses left behind")
    finally:
        db.close()
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
