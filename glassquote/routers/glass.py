from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from .. import schemas
from ..catalog_store import CatalogStore, DatabaseStore
from ..config import settings
from ..database import get_db
from ..errors import CatalogLookupError, PricingError, RemoteCatalogError, StepLockedError
from ..margin import margin_from_price, price_from_margin
from ..pricing_engine import PricingEngine
from ..remote_catalog import RemoteCatalogClient
from ..seed import seed_catalog
from ..sku_pattern import SkuPattern, apply_pattern, confirm_pattern, detect_pattern
from ..workflow import QUOTE_GATE, QuoteContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/glass", tags=["glass"])

engine = PricingEngine()


def get_store(db: Session = Depends(get_db)) -> CatalogStore:
    return CatalogStore(DatabaseStore(db))


def _http_error(exc: Exception) -> HTTPException:
    """Map core failures to HTTP status codes."""
    if isinstance(exc, CatalogLookupError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, StepLockedError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=422, detail=str(exc))


# --- Glass types ---

@router.get("/types", response_model=List[schemas.GlassCatalogEntry])
def list_glass_types(visible_only: bool = False, store: CatalogStore = Depends(get_store)):
    snap = store.snapshot()
    return snap.visible_glass_types() if visible_only else snap.glass_types


@router.post("/types", response_model=schemas.GlassCatalogEntry)
def create_glass_type(entry: schemas.GlassCatalogEntry, store: CatalogStore = Depends(get_store)):
    if store.snapshot().glass_type(entry.id):
        raise HTTPException(status_code=409, detail=f"Glass type {entry.id} already exists")
    return store.save_glass_type(entry)


@router.put("/types/{glass_type_id}", response_model=schemas.GlassCatalogEntry)
def update_glass_type(glass_type_id: str, entry: schemas.GlassCatalogEntry,
                      store: CatalogStore = Depends(get_store)):
    if entry.id != glass_type_id:
        raise HTTPException(status_code=400, detail="Body id does not match path")
    if not store.snapshot().glass_type(glass_type_id):
        raise HTTPException(status_code=404, detail="Glass type not found")
    return store.save_glass_type(entry)


@router.delete("/types/{glass_type_id}")
def delete_glass_type(glass_type_id: str, store: CatalogStore = Depends(get_store)):
    if not store.delete_glass_type(glass_type_id):
        raise HTTPException(status_code=404, detail="Glass type not found")
    return {"ok": True}


@router.post("/types/{glass_type_id}/variants/{variant_id}/apply-sku-pattern",
             response_model=schemas.GlassCatalogEntry)
def apply_sku_pattern(glass_type_id: str, variant_id: str, body: schemas.SkuPatternApply,
                      store: CatalogStore = Depends(get_store)):
    """Fill the variant's blank SKUs from a pattern the admin accepted."""
    entry = store.snapshot().glass_type(glass_type_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Glass type not found")
    if not any(v.id == variant_id for v in entry.variants):
        raise HTTPException(status_code=404, detail="Product type not found")

    pattern = SkuPattern(prefix=body.prefix, suffix=body.suffix,
                         includes_thickness=body.includes_thickness)
    variants = [apply_pattern(v, pattern) if v.id == variant_id else v for v in entry.variants]
    return store.save_glass_type(entry.model_copy(update={"variants": variants}))


# --- SKU patterns and margins ---

@router.post("/sku-pattern")
def sku_pattern(body: schemas.SkuPatternRequest):
    """Detect a pattern from one SKU, or confirm it across two or more."""
    entries = [(e.sku, e.thickness_mm) for e in body.entries]
    if len(entries) == 1:
        pattern = detect_pattern(*entries[0])
        confirmed = False
    else:
        pattern = confirm_pattern(entries)
        confirmed = pattern is not None
    return {"pattern": pattern.model_dump() if pattern else None, "confirmed": confirmed}


@router.post("/margin")
def convert_margin(body: schemas.MarginRequest):
    try:
        if body.margin_percent is not None:
            price = price_from_margin(body.cost, body.margin_percent)
            margin = body.margin_percent
        else:
            price = body.price
            margin = margin_from_price(body.cost, body.price)
    except PricingError as e:
        raise _http_error(e)
    return {"cost": body.cost, "price": round(price, 2), "margin_percent": round(margin, 2)}


# --- Processing ---

@router.get("/processing-categories", response_model=List[schemas.ProcessingCategory])
def list_processing_categories(store: CatalogStore = Depends(get_store)):
    return store.snapshot().ordered_categories()


@router.get("/processing-options", response_model=List[schemas.ProcessingOption])
def list_processing_options(category_id: Optional[str] = None, active_only: bool = False,
                            store: CatalogStore = Depends(get_store)):
    snap = store.snapshot()
    if category_id:
        return snap.options_for(category_id, active_only=active_only)
    return [o for o in snap.processing_options if o.active or not active_only]


@router.post("/processing-options", response_model=schemas.ProcessingOption)
def create_processing_option(option: schemas.ProcessingOption,
                             store: CatalogStore = Depends(get_store)):
    if store.snapshot().option(option.id):
        raise HTTPException(status_code=409, detail=f"Processing option {option.id} already exists")
    try:
        return store.save_processing_option(option)
    except (PricingError, ValueError) as e:
        raise _http_error(e)


@router.put("/processing-options/{option_id}", response_model=schemas.ProcessingOption)
def update_processing_option(option_id: str, option: schemas.ProcessingOption,
                             store: CatalogStore = Depends(get_store)):
    if option.id != option_id:
        raise HTTPException(status_code=400, detail="Body id does not match path")
    if not store.snapshot().option(option_id):
        raise HTTPException(status_code=404, detail="Processing option not found")
    try:
        return store.save_processing_option(option)
    except (PricingError, ValueError) as e:
        raise _http_error(e)


@router.get("/suppliers", response_model=List[schemas.Supplier])
def list_suppliers(store: CatalogStore = Depends(get_store)):
    return store.snapshot().suppliers


@router.get("/templates", response_model=List[schemas.GlassTemplate])
def list_templates(glass_type_id: Optional[str] = None, store: CatalogStore = Depends(get_store)):
    templates = [t for t in store.snapshot().templates if t.active]
    if glass_type_id:
        templates = [t for t in templates if t.is_compatible(glass_type_id)]
    return templates


# --- Tiers and customer pricing ---

@router.get("/pricing-tiers", response_model=List[schemas.PricingTier])
def list_pricing_tiers(store: CatalogStore = Depends(get_store)):
    return store.snapshot().effective_pricing_tiers()


@router.put("/tier-labels")
def update_tier_labels(body: schemas.TierLabelsUpdate, store: CatalogStore = Depends(get_store)):
    return store.set_tier_labels(body.labels)


@router.get("/customer-pricing", response_model=List[schemas.CustomerPricingOverride])
def list_customer_pricing(store: CatalogStore = Depends(get_store)):
    return store.snapshot().customer_pricing


@router.get("/customer-pricing/{customer_id}", response_model=schemas.CustomerPricingOverride)
def get_customer_pricing(customer_id: str, store: CatalogStore = Depends(get_store)):
    pricing = store.snapshot().customer(customer_id)
    if not pricing:
        raise HTTPException(status_code=404, detail="No pricing for this customer")
    return pricing


@router.post("/customer-pricing", response_model=schemas.CustomerPricingOverride)
def save_customer_pricing(pricing: schemas.CustomerPricingOverride,
                          store: CatalogStore = Depends(get_store)):
    return store.save_customer_pricing(pricing)


# --- Price calculation ---

def _calculate(request: schemas.PriceRequest, store: CatalogStore) -> schemas.PriceResult:
    try:
        return engine.calculate(request, store.snapshot())
    except PricingError as e:
        logger.info("Price calculation rejected: %s", e)
        raise _http_error(e)


@router.get("/calculate-price", response_model=schemas.PriceResult)
def calculate_price_query(
    glass_type_id: str,
    thickness_mm: float,
    width_mm: float,
    height_mm: float,
    toughened: bool = False,
    quantity: int = 1,
    customer_tier: Optional[str] = None,
    template_id: Optional[str] = None,
    customer_id: Optional[str] = None,
    processing: List[str] = Query(default=[]),
    store: CatalogStore = Depends(get_store),
):
    """Query-string form. Each processing value is 'category:option[:variation]'."""
    try:
        request = schemas.PriceRequest(
            glass_type_id=glass_type_id,
            toughened=toughened,
            thickness_mm=thickness_mm,
            width_mm=width_mm,
            height_mm=height_mm,
            quantity=quantity,
            customer_tier=customer_tier or None,
            template_id=template_id,
            customer_id=customer_id,
            processing_selections=[schemas.ProcessingSelection.from_query(p) for p in processing],
        )
    except ValueError as e:
        raise _http_error(e)
    return _calculate(request, store)


@router.post("/calculate-price", response_model=schemas.PriceResult)
def calculate_price(request: schemas.PriceRequest, store: CatalogStore = Depends(get_store)):
    return _calculate(request, store)


# --- Workflow ---

@router.post("/workflow/quote")
def quote_workflow(form: schemas.QuoteFormState, store: CatalogStore = Depends(get_store)):
    """Which quoting steps and processing categories the form state unlocks."""
    ctx = QuoteContext(store.snapshot(), form)
    return {
        "reachable_steps": [s.value for s in QUOTE_GATE.reachable_steps(ctx)],
        "reachable_categories": QUOTE_GATE.reachable_categories(ctx),
    }


# --- Seed ---

@router.post("/seed-initial-data")
def seed_initial_data(force: bool = False, store: CatalogStore = Depends(get_store)):
    seeded = seed_catalog(store, force=force)
    return {"ok": True, "seeded": seeded}


@router.post("/reload")
def reload_catalog(store: CatalogStore = Depends(get_store)):
    """Pull glass types, processing options and suppliers from CATALOG_API_BASE."""
    if not settings.CATALOG_API_BASE:
        raise HTTPException(status_code=503, detail="Remote catalog is not configured")
    try:
        snap = store.reload_from_remote(RemoteCatalogClient())
    except RemoteCatalogError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {
        "ok": True,
        "glass_types": len(snap.glass_types),
        "processing_options": len(snap.processing_options),
        "suppliers": len(snap.suppliers),
    }
