from sqlalchemy import Column, Integer, String, DateTime, JSON
from datetime import datetime
from .database import Base
import enum


# --- Enums ---

class TierKey(str, enum.Enum):
    """Fixed pricing tier identifiers. Display labels are customisable; these are not."""
    T1 = "t1"
    T2 = "t2"
    T3 = "t3"
    RETAIL = "retail"


class PricingUnit(str, enum.Enum):
    EACH = "each"
    PER_LINEAR_METER = "per-linear-meter"
    PER_SQM = "per-sqm"


class ShapeType(str, enum.Enum):
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    CUSTOM = "custom"


# Default display labels, keyed by tier identifier
DEFAULT_TIER_LABELS = {
    TierKey.T1.value: "T1",
    TierKey.T2.value: "T2",
    TierKey.T3.value: "T3",
    TierKey.RETAIL.value: "Retail",
}

# Processing categories in presentation order. Only edgework is thickness-priced.
DEFAULT_PROCESSING_CATEGORIES = [
    {"id": "cat-edgework", "name": "Edgework", "thickness_based": True, "sequence_order": 0},
    {"id": "cat-corner", "name": "Corner Finish", "thickness_based": False, "sequence_order": 1},
    {"id": "cat-holes", "name": "Holes & Cutouts", "thickness_based": False, "sequence_order": 2},
    {"id": "cat-services", "name": "Services", "thickness_based": False, "sequence_order": 3},
    {"id": "cat-surface", "name": "Surface Finish", "thickness_based": False, "sequence_order": 4},
]


# --- Tables ---

class CatalogEntry(Base):
    """Key-value configuration row. One row per logical catalog document."""
    __tablename__ = "catalog_entries"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String, unique=True, nullable=False, index=True)
    value_json = Column(JSON, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
