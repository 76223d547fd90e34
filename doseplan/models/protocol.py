from sqlalchemy import Column, String, DateTime, Integer, Float, Boolean, Date, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from doseplan.db.database import Base


class Peptide(Base):
    __tablename__ = "peptides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    canonical_name = Column(String, nullable=False, unique=True)

    def to_dict(self):
        return {"id": self.id, "canonical_name": self.canonical_name}


class ProtocolRecord(Base):
    """A user's named, dated collection of dosing rules."""
    __tablename__ = "protocols"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False, default="")
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Items are replaced wholesale on edit
    items = relationship(
        "ProtocolItemRecord",
        back_populates="protocol",
        cascade="all, delete-orphan",
        order_by="ProtocolItemRecord.id",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "is_active": self.is_active,
        }


class ProtocolItemRecord(Base):
    __tablename__ = "protocol_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    protocol_id = Column(Integer, ForeignKey("protocols.id"), nullable=False)
    peptide_id = Column(Integer, ForeignKey("peptides.id"), nullable=False)
    dose_mg_per_administration = Column(Float, nullable=False, default=0)

    # EVERYDAY | WEEKDAYS | CUSTOM | EVERY_N_DAYS
    schedule = Column(String, nullable=False, default="EVERYDAY")
    custom_days = Column(JSON, nullable=True)  # Weekday indices, 0=Sunday
    every_n_days = Column(Integer, nullable=True)
    cycle_on_weeks = Column(Integer, nullable=False, default=0)
    cycle_off_weeks = Column(Integer, nullable=False, default=0)

    titration_interval_days = Column(Integer, nullable=True)
    titration_amount_mg = Column(Float, nullable=True)
    titration_target_mg = Column(Float, nullable=True)

    time_of_day = Column(String, nullable=True)  # "08:00" format
    site_list_id = Column(Integer, nullable=True)

    protocol = relationship("ProtocolRecord", back_populates="items")
    peptide = relationship("Peptide")

    def to_dict(self):
        return {
            "id": self.id,
            "protocol_id": self.protocol_id,
            "peptide_id": self.peptide_id,
            "canonical_name": self.peptide.canonical_name if self.peptide else "",
            "dose_mg_per_administration": self.dose_mg_per_administration,
            "schedule": self.schedule,
            "custom_days": self.custom_days,
            "every_n_days": self.every_n_days,
            "cycle_on_weeks": self.cycle_on_weeks,
            "cycle_off_weeks": self.cycle_off_weeks,
            "titration_interval_days": self.titration_interval_days,
            "titration_amount_mg": self.titration_amount_mg,
            "titration_target_mg": self.titration_target_mg,
            "time_of_day": self.time_of_day,
            "site_list_id": self.site_list_id,
        }


class InjectionSite(Base):
    """One entry in an ordered injection-site rotation list."""
    __tablename__ = "injection_sites"

    id = Column(Integer, primary_key=True, autoincrement=True)
    list_id = Column(Integer, nullable=False, index=True)
    name = Column(String, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    def to_dict(self):
        return {"list_id": self.list_id, "name": self.name, "position": self.position}
