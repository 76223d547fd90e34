from sqlalchemy import Column, String, DateTime, Integer, Float, Date, ForeignKey, Index, UniqueConstraint, text
from sqlalchemy.orm import relationship
from datetime import datetime

from doseplan.db.database import Base


class Dose(Base):
    """A scheduled or logged dose. One row per (user, protocol, peptide, date)."""
    __tablename__ = "doses"
    __table_args__ = (
        UniqueConstraint("user_id", "protocol_id", "peptide_id", "date_for", name="uq_dose_natural_key"),
        # NULL protocol ids never collide above; ad-hoc doses are unique here
        Index(
            "uq_dose_adhoc_key",
            "user_id", "peptide_id", "date_for",
            unique=True,
            sqlite_where=text("protocol_id IS NULL"),
            postgresql_where=text("protocol_id IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    protocol_id = Column(Integer, ForeignKey("protocols.id"), nullable=True)
    peptide_id = Column(Integer, ForeignKey("peptides.id"), nullable=False)
    date_for = Column(Date, nullable=False)
    status = Column(String, nullable=False, default="PENDING")  # PENDING, TAKEN, SKIPPED
    dose_mg = Column(Float, nullable=False, default=0)  # Captured at creation
    site_label = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    peptide = relationship("Peptide")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "protocol_id": self.protocol_id,
            "peptide_id": self.peptide_id,
            "canonical_name": self.peptide.canonical_name if self.peptide else None,
            "date_for": self.date_for.isoformat() if self.date_for else None,
            "status": self.status,
            "dose_mg": self.dose_mg,
            "site_label": self.site_label,
        }
