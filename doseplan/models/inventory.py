from sqlalchemy import Column, String, DateTime, Integer, Float, ForeignKey
from datetime import datetime

from doseplan.db.database import Base


class InventoryVial(Base):
    """Lyophilized peptide vials on hand."""
    __tablename__ = "inventory_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    peptide_id = Column(Integer, ForeignKey("peptides.id"), nullable=False)
    vials = Column(Float, nullable=False, default=0)
    mg_per_vial = Column(Float, nullable=False, default=0)
    bac_ml = Column(Float, nullable=False, default=0)
    current_used_mg = Column(Float, nullable=False, default=0)  # Drawn from the open vial
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "peptide_id": self.peptide_id,
            "vials": self.vials,
            "mg_per_vial": self.mg_per_vial,
            "bac_ml": self.bac_ml,
            "current_used_mg": self.current_used_mg,
        }


class InventoryCapsule(Base):
    """Capsule bottles on hand."""
    __tablename__ = "inventory_capsules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    peptide_id = Column(Integer, ForeignKey("peptides.id"), nullable=False)
    bottles = Column(Float, nullable=False, default=0)
    caps_per_bottle = Column(Float, nullable=False, default=0)
    mg_per_cap = Column(Float, nullable=False, default=0)
    current_used_mg = Column(Float, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "peptide_id": self.peptide_id,
            "bottles": self.bottles,
            "caps_per_bottle": self.caps_per_bottle,
            "mg_per_cap": self.mg_per_cap,
            "current_used_mg": self.current_used_mg,
        }
