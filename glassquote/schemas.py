"""
Catalog entities, price request/response and admin request bodies.

Catalog documents written by older admin screens use camelCase keys and
store blank numeric inputs as empty strings; every model accepts both
spellings and normalises blanks to None on the way in.
"""

from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from .models import PricingUnit, ShapeType, TierKey


def _blank_to_none(value):
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


def _tier_key(value):
    """Accept 'Retail', 'T1', TierKey.T1; stored as the lowercase key."""
    if isinstance(value, TierKey):
        return value
    if isinstance(value, str):
        return value.strip().lower()
    return value


class CatalogModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# --- Prices ---

class TierPrices(CatalogModel):
    """Per-tier sell price per m². Unset means 'fall back to cost price'."""
    t1: Optional[float] = None
    t2: Optional[float] = None
    t3: Optional[float] = None
    retail: Optional[float] = None

    @field_validator("t1", "t2", "t3", "retail", mode="before")
    @classmethod
    def _blank(cls, v):
        return _blank_to_none(v)

    @field_validator("t1", "t2", "t3", "retail")
    @classmethod
    def _positive(cls, v):
        if v is not None and v <= 0:
            raise ValueError("tier price must be positive")
        return v

    def get(self, tier) -> Optional[float]:
        return getattr(self, TierKey(_tier_key(tier)).value)


class PricingTuple(CatalogModel):
    """Cost plus one sell price per tier for a processing option."""
    cost: Optional[float] = Field(None, validation_alias=_alias("cost", "costPrice", "cost_price"))
    t1: Optional[float] = None
    t2: Optional[float] = None
    t3: Optional[float] = None
    retail: Optional[float] = None

    @field_validator("cost", "t1", "t2", "t3", "retail", mode="before")
    @classmethod
    def _blank(cls, v):
        return _blank_to_none(v)

    @field_validator("cost", "t1", "t2", "t3", "retail")
    @classmethod
    def _non_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError("price must not be negative")
        return v

    def get(self, tier) -> Optional[float]:
        return getattr(self, TierKey(_tier_key(tier)).value)


# --- Processing pricing models (exactly one per option) ---

class FlatPricing(CatalogModel):
    kind: Literal["flat"] = "flat"
    price: PricingTuple


class PriceVariation(CatalogModel):
    id: str
    range: str
    price: PricingTuple = Field(validation_alias=_alias("price", "pricing"))


class RangeVariations(CatalogModel):
    kind: Literal["variations"] = "variations"
    variations: List[PriceVariation] = Field(min_length=1)

    def find(self, selected: Optional[str]) -> Optional[PriceVariation]:
        """Match by variation id first, then by range label."""
        if not selected:
            return None
        for v in self.variations:
            if v.id == selected:
                return v
        for v in self.variations:
            if v.range == selected:
                return v
        return None


class ThicknessPricing(CatalogModel):
    kind: Literal["thickness"] = "thickness"
    prices: Dict[float, PricingTuple] = Field(min_length=1)

    def get(self, thickness_mm: float) -> Optional[PricingTuple]:
        # Exact key only
        return self.prices.get(float(thickness_mm))


ProcessingPricing = Annotated[
    Union[FlatPricing, RangeVariations, ThicknessPricing],
    Field(discriminator="kind"),
]


# --- Catalog entities ---

class ProcessingCategory(CatalogModel):
    id: str
    name: str
    thickness_based: bool = Field(False, validation_alias=_alias("thickness_based", "isThicknessBased"))
    sequence_order: int = Field(0, validation_alias=_alias("sequence_order", "sequenceOrder"))


class ProcessingOption(CatalogModel):
    id: str
    category_id: str = Field(validation_alias=_alias("category_id", "categoryId"))
    name: str
    description: Optional[str] = None
    supplier_id: Optional[str] = Field(None, validation_alias=_alias("supplier_id", "supplierId"))
    pricing_unit: PricingUnit = Field(
        PricingUnit.EACH, validation_alias=_alias("pricing_unit", "pricingUnit", "pricingType"),
    )
    display_order: int = Field(0, validation_alias=_alias("display_order", "displayOrder"))
    active: bool = Field(True, validation_alias=_alias("active", "isActive"))
    pricing: ProcessingPricing

    @field_validator("pricing_unit", mode="before")
    @classmethod
    def _legacy_unit(cls, v):
        if v == "per-sqmeter":
            return PricingUnit.PER_SQM
        return v

    @model_validator(mode="before")
    @classmethod
    def _legacy_pricing_shape(cls, data):
        """Fold flatPricing / variations / thicknessPricing into the tagged union."""
        if not isinstance(data, dict) or "pricing" in data:
            return data
        flat = data.get("flat_pricing", data.get("flatPricing"))
        variations = data.get("variations")
        by_thickness = data.get("thickness_pricing", data.get("thicknessPricing"))

        shapes = []
        if flat:
            shapes.append({"kind": "flat", "price": flat})
        if variations:
            shapes.append({"kind": "variations", "variations": variations})
        if by_thickness:
            shapes.append({"kind": "thickness", "prices": by_thickness})
        if len(shapes) != 1:
            raise ValueError(
                f"processing option must have exactly one pricing model, found {len(shapes)}"
            )
        return {**data, "pricing": shapes[0]}


class ThicknessEntry(CatalogModel):
    id: str
    sku: str = ""
    thickness_mm: float = Field(gt=0, validation_alias=_alias("thickness_mm", "thicknessMm", "thickness"))
    cost_price_per_sqm: float = Field(
        0.0, ge=0, validation_alias=_alias("cost_price_per_sqm", "costPricePerSqm", "pricePerMm"),
    )
    lead_time_days: int = Field(
        0, ge=0, validation_alias=_alias("lead_time_days", "leadTimeDays", "leadTimeBusinessDays"),
    )
    active: bool = Field(True, validation_alias=_alias("active", "isActive"))
    tier_prices: TierPrices = Field(
        default_factory=TierPrices, validation_alias=_alias("tier_prices", "tierPrices"),
    )

    @field_validator("sku", mode="before")
    @classmethod
    def _sku(cls, v):
        return (v or "").strip()

    @field_validator("cost_price_per_sqm", mode="before")
    @classmethod
    def _blank_cost(cls, v):
        return 0.0 if _blank_to_none(v) is None else v

    @field_validator("tier_prices", mode="before")
    @classmethod
    def _lazy_tier_prices(cls, v):
        return {} if v is None else v


class ProductVariant(CatalogModel):
    id: str
    toughened: bool = False
    glass_type_id: Optional[str] = Field(None, validation_alias=_alias("glass_type_id", "glassTypeId"))
    thicknesses: List[ThicknessEntry] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _legacy_name(cls, data):
        # Older documents carry name: 'Toughened' | 'Not Toughened' instead of a flag
        if isinstance(data, dict) and "toughened" not in data and "name" in data:
            return {**data, "toughened": str(data["name"]).strip().lower() == "toughened"}
        return data

    @model_validator(mode="after")
    def _unique_skus(self):
        seen = set()
        for entry in self.thicknesses:
            if not entry.sku:
                continue
            if entry.sku in seen:
                raise ValueError(f"duplicate SKU '{entry.sku}' in variant {self.id}")
            seen.add(entry.sku)
        return self

    def find_thickness(self, thickness_mm: float) -> Optional[ThicknessEntry]:
        for entry in self.thicknesses:
            if entry.thickness_mm == float(thickness_mm):
                return entry
        return None


class GlassCatalogEntry(CatalogModel):
    id: str
    name: str
    description: Optional[str] = None
    active: bool = Field(True, validation_alias=_alias("active", "isActive"))
    complete: bool = Field(False, validation_alias=_alias("complete", "isComplete"))
    variants: List[ProductVariant] = Field(
        default_factory=list, validation_alias=_alias("variants", "productTypes"),
    )

    @model_validator(mode="after")
    def _check_complete(self):
        for variant in self.variants:
            if variant.glass_type_id is None:
                variant.glass_type_id = self.id
            if self.complete and any(not t.sku for t in variant.thicknesses):
                raise ValueError(f"glass type {self.id} is marked complete but has blank SKUs")
        return self

    def variant(self, toughened: bool) -> Optional[ProductVariant]:
        for v in self.variants:
            if v.toughened == toughened:
                return v
        return None

    @property
    def visible(self) -> bool:
        return self.active and self.complete


class PricingTier(CatalogModel):
    id: TierKey
    label: str
    discount_percentage: float = Field(
        0.0, ge=0, lt=100, validation_alias=_alias("discount_percentage", "discountPercentage"),
    )
    # Shown on the tier list for sales staff; line pricing does not enforce it
    minimum_order_value: Optional[float] = Field(
        None, ge=0, validation_alias=_alias("minimum_order_value", "minimumOrderValue"),
    )
    description: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _key(cls, v):
        return _tier_key(v)


class CustomerPriceOverride(CatalogModel):
    glass_type_id: str = Field(validation_alias=_alias("glass_type_id", "glassTypeId"))
    toughened: bool = False
    thickness_mm: float = Field(gt=0, validation_alias=_alias("thickness_mm", "thicknessMm", "thickness"))
    price: float = Field(gt=0, validation_alias=_alias("price", "customPrice"))


class CustomerPricingOverride(CatalogModel):
    customer_id: str = Field(validation_alias=_alias("customer_id", "customerId"))
    customer_name: Optional[str] = Field(None, validation_alias=_alias("customer_name", "customerName"))
    tier: TierKey = Field(TierKey.RETAIL, validation_alias=_alias("tier", "tierId", "priceTier"))
    overrides: List[CustomerPriceOverride] = Field(
        default_factory=list, validation_alias=_alias("overrides", "specificGlassPricing"),
    )

    @field_validator("tier", mode="before")
    @classmethod
    def _key(cls, v):
        return _tier_key(v)

    def price_for(self, glass_type_id: str, toughened: bool, thickness_mm: float) -> Optional[float]:
        for o in self.overrides:
            if (o.glass_type_id == glass_type_id and o.toughened == toughened
                    and o.thickness_mm == float(thickness_mm)):
                return o.price
        return None


class GlassTemplate(CatalogModel):
    id: str
    name: str
    description: Optional[str] = None
    shape_type: ShapeType = Field(ShapeType.RECTANGLE, validation_alias=_alias("shape_type", "shapeType"))
    cost_multiplier: float = Field(1.0, gt=0, validation_alias=_alias("cost_multiplier", "costMultiplier"))
    auto_processing_option_ids: List[str] = Field(
        default_factory=list,
        validation_alias=_alias("auto_processing_option_ids", "autoProcessingSteps"),
    )
    compatible_glass_type_ids: List[str] = Field(
        default_factory=list,
        validation_alias=_alias("compatible_glass_type_ids", "applicableGlassTypes"),
    )
    active: bool = Field(True, validation_alias=_alias("active", "isActive"))

    def is_compatible(self, glass_type_id: str) -> bool:
        return not self.compatible_glass_type_ids or glass_type_id in self.compatible_glass_type_ids


class Supplier(CatalogModel):
    id: str
    name: str
    active: bool = Field(True, validation_alias=_alias("active", "isActive"))


# --- Price calculation ---

class ProcessingSelection(CatalogModel):
    """One choice per processing category. option_id None records an explicit 'none'."""
    category_id: str
    option_id: Optional[str] = None
    variation: Optional[str] = None

    def to_query(self) -> str:
        """'category:option[:variation]'; an explicit none is 'category:'."""
        parts = [self.category_id, self.option_id or ""]
        if self.variation:
            parts.append(self.variation)
        return ":".join(parts)

    @classmethod
    def from_query(cls, text: str) -> "ProcessingSelection":
        category_id, _, rest = text.partition(":")
        option_id, _, variation = rest.partition(":")
        if not category_id.strip():
            raise ValueError(f"processing selection needs a category: {text!r}")
        return cls(
            category_id=category_id.strip(),
            option_id=option_id.strip() or None,
            variation=variation or None,
        )


class PriceRequest(CatalogModel):
    glass_type_id: str
    toughened: bool = False
    thickness_mm: float
    width_mm: float
    height_mm: float
    quantity: int = 1
    # None: the customer's own tier when customer_id resolves, else DEFAULT_TIER
    customer_tier: Optional[TierKey] = None
    processing_selections: List[ProcessingSelection] = Field(default_factory=list)
    template_id: Optional[str] = None
    customer_id: Optional[str] = None

    @field_validator("customer_tier", mode="before")
    @classmethod
    def _tier(cls, v):
        return _tier_key(v)

    @field_validator("processing_selections")
    @classmethod
    def _one_per_category(cls, v):
        categories = [s.category_id for s in v]
        if len(categories) != len(set(categories)):
            raise ValueError("at most one processing selection per category")
        return v


class ConfigurationWarning(BaseModel):
    """Recoverable catalog gap. Never aborts pricing; always surfaced on the breakdown."""
    code: str  # 'missing_tier_price' | 'missing_thickness_price'
    message: str
    option_id: Optional[str] = None


class BreakdownLine(BaseModel):
    kind: Literal["glass", "processing", "template"]
    label: str
    category_id: Optional[str] = None
    option_id: Optional[str] = None
    basis: str
    unit_rate: float
    multiplier: float
    amount: float
    flagged: bool = False
    warning: Optional[ConfigurationWarning] = None


class PriceResult(BaseModel):
    total: float
    base_total: float
    processing_total: float
    template_cost: float
    area_sqm: float
    perimeter_m: float
    unit_base_price: float
    quantity: int
    customer_tier: TierKey
    breakdown: List[BreakdownLine]
    warnings: List[ConfigurationWarning] = Field(default_factory=list)

    @computed_field
    @property
    def processing_by_category(self) -> Dict[str, float]:
        totals: Dict[str, float] = {}
        for line in self.breakdown:
            if line.kind == "processing" and line.category_id:
                totals[line.category_id] = totals.get(line.category_id, 0.0) + line.amount
        return totals


# --- Admin request bodies ---

class SkuEntry(BaseModel):
    sku: str
    thickness_mm: float


class SkuPatternRequest(BaseModel):
    entries: List[SkuEntry]


class SkuPatternApply(BaseModel):
    prefix: str
    suffix: str = ""
    includes_thickness: bool = True


class MarginRequest(BaseModel):
    cost: float
    margin_percent: Optional[float] = None
    price: Optional[float] = None

    @model_validator(mode="after")
    def _exactly_one_target(self):
        if (self.margin_percent is None) == (self.price is None):
            raise ValueError("provide exactly one of margin_percent or price")
        return self


class TierLabelsUpdate(BaseModel):
    labels: Dict[TierKey, str]

    @field_validator("labels", mode="before")
    @classmethod
    def _keys(cls, v):
        if isinstance(v, dict):
            return {_tier_key(k): label for k, label in v.items()}
        return v


class QuoteFormState(BaseModel):
    """In-progress customer selections, as held by the quoting UI."""
    glass_type_id: Optional[str] = None
    toughened: Optional[bool] = None
    thickness_mm: Optional[float] = None
    width_mm: Optional[float] = None
    height_mm: Optional[float] = None
    quantity: Optional[int] = None
    template_chosen: bool = False
    template_id: Optional[str] = None
    # category id -> option id; None records an explicit 'none'
    processing: Dict[str, Optional[str]] = Field(default_factory=dict)
    # category id -> chosen range (variation id or label) for range-priced options
    variations: Dict[str, Optional[str]] = Field(default_factory=dict)

    def selections(self) -> List[ProcessingSelection]:
        return [
            ProcessingSelection(
                category_id=category_id,
                option_id=option_id,
                variation=self.variations.get(category_id) if option_id else None,
            )
            for category_id, option_id in self.processing.items()
        ]
