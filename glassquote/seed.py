"""
Starter catalog — five glass types, the standard processing menu and three
templates. Loaded into an empty store on first run (SEED_ON_STARTUP) or via
POST /api/glass/seed-initial-data.

Cost prices are per m²; tier prices are derived from a target retail margin
and the default tier discounts.
"""

import logging

from .catalog_store import DEFAULT_TIER_DISCOUNTS, CatalogSnapshot, CatalogStore
from .margin import discounted_price, price_from_margin
from .models import DEFAULT_PROCESSING_CATEGORIES, DEFAULT_TIER_LABELS, TierKey
from .schemas import (
    GlassCatalogEntry,
    GlassTemplate,
    ProcessingCategory,
    ProcessingOption,
    Supplier,
)

logger = logging.getLogger(__name__)

RETAIL_MARGIN = 40.0

STANDARD_THICKNESSES = [4, 5, 6, 8, 10, 12]

# Float glass cost per m² by thickness
BASE_COST_NOT_TOUGHENED = {4: 25.50, 5: 28.75, 6: 32.00, 8: 38.50, 10: 45.00, 12: 52.50}
BASE_COST_TOUGHENED = {4: 45.00, 5: 48.75, 6: 52.00, 8: 58.50, 10: 65.00, 12: 72.50}

# (id, name, sku code, cost factor, thicknesses, offered toughened)
DEFAULT_GLASS_TYPES = [
    ("clear", "Clear Glass", "CG", 1.00, STANDARD_THICKNESSES, True),
    ("ultra-clear", "Ultra Clear", "UC", 1.15, STANDARD_THICKNESSES, True),
    ("tinted", "Tinted", "TG", 1.20, [4, 5, 6, 8, 10], True),
    ("laminated", "Laminated", "LG", 1.50, [6, 8, 10, 12], False),
    ("mirror", "Mirror", "MR", 1.30, [4, 5, 6], False),
]

DEFAULT_SUPPLIERS = [
    {"id": "sup-inhouse", "name": "In-house workshop"},
    {"id": "sup-coatings", "name": "Coatings partner"},
]

# Edgework retail rate per linear metre at 10mm; other thicknesses scale from it
EDGEWORK_RATES = {
    "arrissed": ("Arrissed Edge", 8.00),
    "flat-polished": ("Flat Polished Edge", 15.00),
    "miter-polished": ("Miter Polished Edge", 25.00),
    "beveled": ("Beveled Edge", 30.00),
}

DEFAULT_TEMPLATES = [
    {
        "id": "tpl-rectangle", "name": "Standard Rectangle", "shape_type": "rectangle",
        "cost_multiplier": 1.0, "description": "Straight cut, four square corners",
    },
    {
        "id": "tpl-rounded", "name": "Rounded Corners", "shape_type": "rectangle",
        "cost_multiplier": 1.15, "description": "Rectangle with softened corners",
        "auto_processing_option_ids": ["corner-tip"],
    },
    {
        "id": "tpl-cutout", "name": "Panel with Cutout", "shape_type": "custom",
        "cost_multiplier": 1.25, "description": "Splashback panel with a power outlet cutout",
        "auto_processing_option_ids": ["power-cutout"],
        "compatible_glass_type_ids": ["clear", "ultra-clear", "tinted"],
    },
]


def _price_tuple(retail: float, cost_ratio: float = 0.6) -> dict:
    prices = {"cost": round(retail * cost_ratio, 2), "retail": round(retail, 2)}
    for tier in (TierKey.T1, TierKey.T2, TierKey.T3):
        discount, _ = DEFAULT_TIER_DISCOUNTS[tier]
        prices[tier.value] = round(discounted_price(retail, discount), 2)
    return prices


def _glass_types() -> list:
    entries = []
    for type_id, name, code, factor, thicknesses, toughenable in DEFAULT_GLASS_TYPES:
        variants = []
        for toughened in ([False, True] if toughenable else [False]):
            costs = BASE_COST_TOUGHENED if toughened else BASE_COST_NOT_TOUGHENED
            suffix = "T" if toughened else "NT"
            rows = []
            for t in thicknesses:
                cost = round(costs[t] * factor, 2)
                retail = price_from_margin(cost, RETAIL_MARGIN)
                tier_prices = {k: v for k, v in _price_tuple(retail).items() if k != "cost"}
                rows.append({
                    "id": f"{type_id}-{suffix.lower()}-{t}",
                    "sku": f"{code}-{t}-{suffix}",
                    "thickness_mm": t,
                    "cost_price_per_sqm": cost,
                    "lead_time_days": 5 if toughened else 2,
                    "tier_prices": tier_prices,
                })
            variants.append({
                "id": f"{type_id}-{suffix.lower()}",
                "toughened": toughened,
                "thicknesses": rows,
            })
        entries.append(GlassCatalogEntry.model_validate({
            "id": type_id, "name": name, "complete": True, "variants": variants,
        }))
    return entries


def _processing_options() -> list:
    options = []
    for order, (option_id, (name, rate_10mm)) in enumerate(EDGEWORK_RATES.items()):
        prices = {
            t: _price_tuple(rate_10mm * (0.6 + 0.04 * t)) for t in STANDARD_THICKNESSES
        }
        options.append({
            "id": option_id, "category_id": "cat-edgework", "name": name,
            "supplier_id": "sup-inhouse", "pricing_unit": "per-linear-meter",
            "display_order": order, "pricing": {"kind": "thickness", "prices": prices},
        })

    options += [
        {
            "id": "corner-tip", "category_id": "cat-corner", "name": "Corner Tip",
            "supplier_id": "sup-inhouse", "display_order": 0,
            "pricing": {"kind": "flat", "price": _price_tuple(2.50)},
        },
        {
            "id": "corner-radius", "category_id": "cat-corner", "name": "Corner Radius",
            "supplier_id": "sup-inhouse", "display_order": 1,
            "pricing": {"kind": "variations", "variations": [
                {"id": "r-small", "range": "R5-R20", "price": _price_tuple(5.00)},
                {"id": "r-medium", "range": "R21-R50", "price": _price_tuple(8.00)},
                {"id": "r-large", "range": "R51+", "price": _price_tuple(12.00)},
            ]},
        },
        {
            "id": "standard-hole", "category_id": "cat-holes", "name": "Standard Hole",
            "supplier_id": "sup-inhouse", "display_order": 0,
            "pricing": {"kind": "variations", "variations": [
                {"id": "hole-10", "range": "Up to 10mm", "price": _price_tuple(6.00)},
                {"id": "hole-30", "range": "11-30mm", "price": _price_tuple(9.00)},
                {"id": "hole-50", "range": "31-50mm", "price": _price_tuple(14.00)},
            ]},
        },
        {
            "id": "hinge-cutout", "category_id": "cat-holes", "name": "Hinge Cutout",
            "supplier_id": "sup-inhouse", "display_order": 1,
            "pricing": {"kind": "flat", "price": _price_tuple(25.00)},
        },
        {
            "id": "power-cutout", "category_id": "cat-holes", "name": "Power Outlet Cutout",
            "supplier_id": "sup-inhouse", "display_order": 2,
            "pricing": {"kind": "flat", "price": _price_tuple(35.00)},
        },
        {
            "id": "template-service", "category_id": "cat-services", "name": "Site Template",
            "supplier_id": "sup-inhouse", "display_order": 0,
            "pricing": {"kind": "flat", "price": _price_tuple(45.00)},
        },
        {
            "id": "labor", "category_id": "cat-services", "name": "Installation Labour",
            "supplier_id": "sup-inhouse", "display_order": 1,
            "pricing": {"kind": "flat", "price": _price_tuple(60.00)},
        },
        {
            "id": "setup", "category_id": "cat-services", "name": "Machine Setup",
            "supplier_id": "sup-inhouse", "display_order": 2,
            "pricing": {"kind": "flat", "price": _price_tuple(30.00)},
        },
        {
            "id": "paint", "category_id": "cat-surface", "name": "Back Painting",
            "supplier_id": "sup-coatings", "pricing_unit": "per-sqm", "display_order": 0,
            "pricing": {"kind": "flat", "price": _price_tuple(85.00)},
        },
        {
            "id": "sandblast", "category_id": "cat-surface", "name": "Sandblasting",
            "supplier_id": "sup-coatings", "pricing_unit": "per-sqm", "display_order": 1,
            "pricing": {"kind": "flat", "price": _price_tuple(65.00)},
        },
        {
            "id": "vinyl-backing", "category_id": "cat-surface", "name": "Safety Vinyl Backing",
            "supplier_id": "sup-coatings", "display_order": 2,
            "pricing": {"kind": "flat", "price": _price_tuple(20.00)},
        },
    ]
    return [ProcessingOption.model_validate(o) for o in options]


def build_default_catalog() -> CatalogSnapshot:
    return CatalogSnapshot(
        glass_types=_glass_types(),
        processing_categories=[ProcessingCategory.model_validate(c) for c in DEFAULT_PROCESSING_CATEGORIES],
        processing_options=_processing_options(),
        templates=[GlassTemplate.model_validate(t) for t in DEFAULT_TEMPLATES],
        tier_labels=dict(DEFAULT_TIER_LABELS),
        suppliers=[Supplier.model_validate(s) for s in DEFAULT_SUPPLIERS],
    )


def seed_catalog(store: CatalogStore, force: bool = False) -> bool:
    """Write the starter catalog. Refuses to overwrite existing data unless forced."""
    if not force and not store.is_empty():
        logger.info("Catalog already populated, skipping seed")
        return False
    snapshot = store.replace(build_default_catalog())
    logger.info(
        "Seeded catalog: %d glass types, %d processing options, %d templates",
        len(snapshot.glass_types), len(snapshot.processing_options), len(snapshot.templates),
    )
    return True
