"""
Catalog Store — versioned catalog documents behind a key-value interface.

Each catalog family lives under one fixed key as a JSON list (or dict for tier
labels). Reads are assembled into an immutable CatalogSnapshot; an absent key
is an empty catalog, never an error. All writes go through CatalogStore so the
structural invariants (unique display order, thickness pricing only on
thickness-based categories) are checked in one place.
"""

import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from . import models
from .errors import CatalogLookupError
from .schemas import (
    CustomerPricingOverride,
    GlassCatalogEntry,
    GlassTemplate,
    PricingTier,
    ProcessingCategory,
    ProcessingOption,
    Supplier,
    ThicknessEntry,
)

logger = logging.getLogger(__name__)

# Fixed logical keys
GLASS_TYPES_KEY = "glass-types-complete"
PROCESSING_CATEGORIES_KEY = "glass-processing-categories"
PROCESSING_OPTIONS_KEY = "glass-processing-options"
TEMPLATES_KEY = "glass-templates"
TIER_LABELS_KEY = "glass-tier-labels"
PRICING_TIERS_KEY = "glass-pricing-tiers"
CUSTOMER_PRICING_KEY = "glass-customer-pricing"
SUPPLIERS_KEY = "glass-suppliers"

CATALOG_KEYS = [
    GLASS_TYPES_KEY,
    PROCESSING_CATEGORIES_KEY,
    PROCESSING_OPTIONS_KEY,
    TEMPLATES_KEY,
    TIER_LABELS_KEY,
    PRICING_TIERS_KEY,
    CUSTOMER_PRICING_KEY,
    SUPPLIERS_KEY,
]

# Default tier discounts, used when no pricing tiers have been configured
DEFAULT_TIER_DISCOUNTS = {
    models.TierKey.T1: (15.0, "Premium customers, best pricing"),
    models.TierKey.T2: (10.0, "Standard customers, good pricing"),
    models.TierKey.T3: (5.0, "New customers, standard pricing"),
    models.TierKey.RETAIL: (0.0, "Retail customers, full pricing"),
}


# --- Key-value backends ---

class KeyValueStore(ABC):
    """get(key) -> JSON or None; set(key, JSON)."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass


class InMemoryStore(KeyValueStore):
    """Dict-backed store. Values are copied in and out so callers can't alias them."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})

    def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)


class DatabaseStore(KeyValueStore):
    """One catalog_entries row per key."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str) -> Optional[Any]:
        row = self.db.query(models.CatalogEntry).filter(models.CatalogEntry.key == key).first()
        return row.value_json if row else None

    def set(self, key: str, value: Any) -> None:
        row = self.db.query(models.CatalogEntry).filter(models.CatalogEntry.key == key).first()
        if row is None:
            row = models.CatalogEntry(key=key, value_json=value)
            self.db.add(row)
        else:
            row.value_json = value
            # JSON columns on SQLite don't detect in-place changes
            flag_modified(row, "value_json")
        self.db.commit()


# --- Snapshot ---

class CatalogSnapshot(BaseModel):
    """Read-only view of every catalog family at one point in time."""
    model_config = ConfigDict(frozen=True)

    glass_types: List[GlassCatalogEntry] = Field(default_factory=list)
    processing_categories: List[ProcessingCategory] = Field(default_factory=list)
    processing_options: List[ProcessingOption] = Field(default_factory=list)
    templates: List[GlassTemplate] = Field(default_factory=list)
    tier_labels: Dict[str, str] = Field(default_factory=lambda: dict(models.DEFAULT_TIER_LABELS))
    pricing_tiers: List[PricingTier] = Field(default_factory=list)
    customer_pricing: List[CustomerPricingOverride] = Field(default_factory=list)
    suppliers: List[Supplier] = Field(default_factory=list)

    def glass_type(self, glass_type_id: str) -> Optional[GlassCatalogEntry]:
        for gt in self.glass_types:
            if gt.id == glass_type_id:
                return gt
        return None

    def visible_glass_types(self) -> List[GlassCatalogEntry]:
        """Glass types the quoting flow may offer: active and complete."""
        return [gt for gt in self.glass_types if gt.visible]

    def category(self, category_id: str) -> Optional[ProcessingCategory]:
        for c in self.processing_categories:
            if c.id == category_id:
                return c
        return None

    def ordered_categories(self) -> List[ProcessingCategory]:
        return sorted(self.processing_categories, key=lambda c: (c.sequence_order, c.id))

    def option(self, option_id: str) -> Optional[ProcessingOption]:
        for o in self.processing_options:
            if o.id == option_id:
                return o
        return None

    def options_for(self, category_id: str, active_only: bool = True) -> List[ProcessingOption]:
        opts = [
            o for o in self.processing_options
            if o.category_id == category_id and (o.active or not active_only)
        ]
        return sorted(opts, key=lambda o: o.display_order)

    def template(self, template_id: str) -> Optional[GlassTemplate]:
        for t in self.templates:
            if t.id == template_id:
                return t
        return None

    def customer(self, customer_id: str) -> Optional[CustomerPricingOverride]:
        for c in self.customer_pricing:
            if c.customer_id == customer_id:
                return c
        return None

    def tier_label(self, tier) -> str:
        key = models.TierKey(tier).value
        return self.tier_labels.get(key) or models.DEFAULT_TIER_LABELS[key]

    def effective_pricing_tiers(self) -> List[PricingTier]:
        """Configured tiers, or the defaults labelled with the current tier labels."""
        if self.pricing_tiers:
            return [t.model_copy(update={"label": self.tier_label(t.id)}) for t in self.pricing_tiers]
        return [
            PricingTier(id=key, label=self.tier_label(key), discount_percentage=discount,
                        description=desc)
            for key, (discount, desc) in DEFAULT_TIER_DISCOUNTS.items()
        ]

    def thickness_entries(self) -> Iterator[ThicknessEntry]:
        for gt in self.glass_types:
            for variant in gt.variants:
                yield from variant.thicknesses

    def has_active_thickness(self) -> bool:
        return any(t.active for t in self.thickness_entries())

    def active_suppliers(self) -> List[Supplier]:
        return [s for s in self.suppliers if s.active]


# --- Store ---

class CatalogStore:
    """
    Catalog reads and admin writes over a KeyValueStore.

    The snapshot is cached until the next write or an explicit reload();
    readers may therefore see data that is stale relative to a remote source.
    """

    _LIST_KEYS = {
        GLASS_TYPES_KEY: ("glass_types", GlassCatalogEntry),
        PROCESSING_CATEGORIES_KEY: ("processing_categories", ProcessingCategory),
        PROCESSING_OPTIONS_KEY: ("processing_options", ProcessingOption),
        TEMPLATES_KEY: ("templates", GlassTemplate),
        PRICING_TIERS_KEY: ("pricing_tiers", PricingTier),
        CUSTOMER_PRICING_KEY: ("customer_pricing", CustomerPricingOverride),
        SUPPLIERS_KEY: ("suppliers", Supplier),
    }

    def __init__(self, backend: KeyValueStore):
        self.backend = backend
        self._snapshot: Optional[CatalogSnapshot] = None

    # --- Reads ---

    def snapshot(self) -> CatalogSnapshot:
        if self._snapshot is None:
            self._snapshot = self._load()
        return self._snapshot

    def reload(self) -> CatalogSnapshot:
        self._snapshot = None
        return self.snapshot()

    def is_empty(self) -> bool:
        return all(self.backend.get(key) is None for key in CATALOG_KEYS)

    def _load(self) -> CatalogSnapshot:
        data: Dict[str, Any] = {}
        for key, (field, model) in self._LIST_KEYS.items():
            raw = self.backend.get(key)
            data[field] = [model.model_validate(item) for item in (raw or [])]
        labels = dict(models.DEFAULT_TIER_LABELS)
        labels.update(self.backend.get(TIER_LABELS_KEY) or {})
        data["tier_labels"] = labels
        return CatalogSnapshot(**data)

    # --- Writes ---

    def _write(self, key: str, items: List[BaseModel]) -> None:
        self.backend.set(key, [item.model_dump(mode="json") for item in items])
        self._snapshot = None
        logger.info("Catalog key %s written (%d records)", key, len(items))

    @staticmethod
    def _upsert(items: list, record) -> list:
        out = [i for i in items if i.id != record.id]
        for idx, existing in enumerate(items):
            if existing.id == record.id:
                out.insert(idx, record)
                return out
        out.append(record)
        return out

    def save_glass_type(self, entry: GlassCatalogEntry) -> GlassCatalogEntry:
        snap = self.snapshot()
        self._write(GLASS_TYPES_KEY, self._upsert(list(snap.glass_types), entry))
        return entry

    def delete_glass_type(self, glass_type_id: str) -> bool:
        snap = self.snapshot()
        remaining = [gt for gt in snap.glass_types if gt.id != glass_type_id]
        if len(remaining) == len(snap.glass_types):
            return False
        self._write(GLASS_TYPES_KEY, remaining)
        return True

    def save_category(self, category: ProcessingCategory) -> ProcessingCategory:
        snap = self.snapshot()
        self._write(PROCESSING_CATEGORIES_KEY, self._upsert(list(snap.processing_categories), category))
        return category

    def save_processing_option(self, option: ProcessingOption) -> ProcessingOption:
        snap = self.snapshot()
        category = snap.category(option.category_id)
        if category is None:
            raise CatalogLookupError(f"Processing category not found: {option.category_id}")
        if option.pricing.kind == "thickness" and not category.thickness_based:
            raise ValueError(
                f"Category '{category.name}' is not thickness-based; "
                f"option {option.id} cannot use thickness pricing"
            )
        clash = [
            o for o in snap.processing_options
            if o.category_id == option.category_id and o.id != option.id
            and o.display_order == option.display_order
        ]
        if clash:
            raise ValueError(
                f"display_order {option.display_order} already used by option {clash[0].id}"
            )
        if option.pricing.kind == "variations":
            users = [t.id for t in snap.templates if option.id in t.auto_processing_option_ids]
            if users:
                raise ValueError(
                    f"Option {option.id} is auto-applied by template {users[0]}; "
                    f"auto-applied options cannot be range-priced"
                )
        self._write(PROCESSING_OPTIONS_KEY, self._upsert(list(snap.processing_options), option))
        return option

    def save_template(self, template: GlassTemplate) -> GlassTemplate:
        snap = self.snapshot()
        for option_id in template.auto_processing_option_ids:
            option = snap.option(option_id)
            if option is None:
                raise CatalogLookupError(f"Processing option not found: {option_id}")
            # Auto-applied selections carry no range
            if option.pricing.kind == "variations":
                raise ValueError(
                    f"Template {template.id} cannot auto-apply range-priced option {option_id}"
                )
        self._write(TEMPLATES_KEY, self._upsert(list(snap.templates), template))
        return template

    def save_supplier(self, supplier: Supplier) -> Supplier:
        snap = self.snapshot()
        self._write(SUPPLIERS_KEY, self._upsert(list(snap.suppliers), supplier))
        return supplier

    def save_pricing_tiers(self, tiers: List[PricingTier]) -> List[PricingTier]:
        self._write(PRICING_TIERS_KEY, tiers)
        return tiers

    def save_customer_pricing(self, pricing: CustomerPricingOverride) -> CustomerPricingOverride:
        snap = self.snapshot()
        others = [c for c in snap.customer_pricing if c.customer_id != pricing.customer_id]
        self._write(CUSTOMER_PRICING_KEY, others + [pricing])
        return pricing

    def set_tier_labels(self, labels: Dict[Any, str]) -> Dict[str, str]:
        merged = dict(self.snapshot().tier_labels)
        for key, label in labels.items():
            if not isinstance(key, models.TierKey):
                key = models.TierKey(str(key).strip().lower())
            merged[key.value] = label.strip() or models.DEFAULT_TIER_LABELS[key.value]
        self.backend.set(TIER_LABELS_KEY, merged)
        self._snapshot = None
        logger.info("Tier labels updated: %s", merged)
        return merged

    def replace(self, snapshot: CatalogSnapshot) -> CatalogSnapshot:
        """Overwrite every catalog key with the contents of a snapshot."""
        for key, (field, _model) in self._LIST_KEYS.items():
            self._write(key, list(getattr(snapshot, field)))
        self.backend.set(TIER_LABELS_KEY, dict(snapshot.tier_labels))
        return self.reload()

    def reload_from_remote(self, client) -> CatalogSnapshot:
        """
        Pull glass types, processing options and suppliers from the remote API
        into the local store. Families the API does not serve are left as-is.
        """
        current = self.snapshot()
        fetched = current.model_copy(update={
            "glass_types": client.get_glass_types(),
            "processing_options": client.get_processing_options(),
            "suppliers": client.get_suppliers(),
        })
        logger.info(
            "Reloaded catalog from remote: %d glass types, %d options, %d suppliers",
            len(fetched.glass_types), len(fetched.processing_options), len(fetched.suppliers),
        )
        return self.replace(fetched)
