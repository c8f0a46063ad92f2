"""
Shared test fixtures — SQLite database, test client, sample glass catalog.
"""

import os
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Point settings at the test database before importing app modules
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["SEED_ON_STARTUP"] = "false"

from glassquote.database import Base, get_db
from glassquote.main import app
from glassquote.catalog_store import CatalogSnapshot, CatalogStore, DatabaseStore, InMemoryStore
from glassquote.models import DEFAULT_PROCESSING_CATEGORIES
from glassquote.schemas import (
    CustomerPricingOverride,
    GlassCatalogEntry,
    GlassTemplate,
    ProcessingCategory,
    ProcessingOption,
    Supplier,
)


TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


# --- Sample catalog ---

def sample_catalog() -> CatalogSnapshot:
    """
    Small catalog used across the pricing, workflow and API tests.

    Clear Glass (not toughened) at 6/10/12mm: 10mm costs 120 and sells at 150
    retail; 6mm has no retail price. Polished Edge is priced at 10 and 12mm
    only, 8/m retail at 10mm.
    """
    clear = GlassCatalogEntry.model_validate({
        "id": "clear",
        "name": "Clear Glass",
        "complete": True,
        "variants": [
            {
                "id": "clear-nt",
                "toughened": False,
                "thicknesses": [
                    {"id": "c6", "sku": "CG-6-NT", "thickness_mm": 6, "cost_price_per_sqm": 90},
                    {"id": "c10", "sku": "CG-10-NT", "thickness_mm": 10, "cost_price_per_sqm": 120,
                     "tier_prices": {"retail": 150, "t1": 135}},
                    {"id": "c12", "sku": "CG-12-NT", "thickness_mm": 12, "cost_price_per_sqm": 140,
                     "tier_prices": {"retail": 175}},
                ],
            },
            {
                "id": "clear-t",
                "toughened": True,
                "thicknesses": [
                    {"id": "ct10", "sku": "CG-10-T", "thickness_mm": 10, "cost_price_per_sqm": 160,
                     "tier_prices": {"retail": 200}},
                    {"id": "ct12", "sku": "CG-12-T", "thickness_mm": 12, "cost_price_per_sqm": 180,
                     "tier_prices": {"retail": 230}, "active": False},
                ],
            },
        ],
    })
    draft = GlassCatalogEntry.model_validate({
        "id": "draft-glass",
        "name": "Draft Glass",
        "complete": False,
        "variants": [
            {"id": "draft-nt", "toughened": False, "thicknesses": [
                {"id": "d6", "sku": "", "thickness_mm": 6, "cost_price_per_sqm": 50,
                 "tier_prices": {"retail": 80}},
            ]},
        ],
    })
    options = [
        {
            "id": "polished-edge", "category_id": "cat-edgework", "name": "Polished Edge",
            "pricing_unit": "per-linear-meter", "display_order": 0,
            "pricing": {"kind": "thickness", "prices": {
                10: {"cost": 5, "retail": 8, "t1": 6},
                12: {"cost": 6, "retail": 10, "t1": 8},
            }},
        },
        {
            "id": "corner-tip", "category_id": "cat-corner", "name": "Corner Tip",
            "display_order": 0, "pricing": {"kind": "flat", "price": {"cost": 1.5, "retail": 2.5}},
        },
        {
            "id": "corner-radius", "category_id": "cat-corner", "name": "Corner Radius",
            "display_order": 1,
            "pricing": {"kind": "variations", "variations": [
                {"id": "r-small", "range": "R5-R20", "price": {"cost": 3, "retail": 5}},
                {"id": "r-large", "range": "R51+", "price": {"cost": 7, "retail": 12}},
            ]},
        },
        {
            "id": "hinge-cutout", "category_id": "cat-holes", "name": "Hinge Cutout",
            "display_order": 0, "pricing": {"kind": "flat", "price": {"cost": 15, "retail": 25}},
        },
        {
            "id": "site-visit", "category_id": "cat-services", "name": "Site Visit",
            "display_order": 0, "active": False,
            "pricing": {"kind": "flat", "price": {"cost": 40, "retail": 60}},
        },
        {
            "id": "paint", "category_id": "cat-surface", "name": "Back Painting",
            "pricing_unit": "per-sqm", "display_order": 0,
            "pricing": {"kind": "flat", "price": {"cost": 50, "retail": 85}},
        },
    ]
    templates = [
        {"id": "tpl-rectangle", "name": "Standard Rectangle", "cost_multiplier": 1.0},
        {"id": "tpl-rounded", "name": "Rounded Corners", "cost_multiplier": 1.15,
         "auto_processing_option_ids": ["corner-tip"]},
        {"id": "tpl-mirror", "name": "Mirror Oval", "shape_type": "circle",
         "cost_multiplier": 1.25, "compatible_glass_type_ids": ["mirror"]},
        {"id": "tpl-retired", "name": "Retired Shape", "active": False},
    ]
    customers = [
        {"customer_id": "cust-1", "customer_name": "Harbour Builders", "tier": "t1",
         "overrides": [{"glass_type_id": "clear", "toughened": False, "thickness_mm": 10,
                        "price": 130}]},
    ]
    return CatalogSnapshot(
        glass_types=[clear, draft],
        processing_categories=[ProcessingCategory.model_validate(c) for c in DEFAULT_PROCESSING_CATEGORIES],
        processing_options=[ProcessingOption.model_validate(o) for o in options],
        templates=[GlassTemplate.model_validate(t) for t in templates],
        customer_pricing=[CustomerPricingOverride.model_validate(c) for c in customers],
        suppliers=[Supplier(id="sup-inhouse", name="In-house workshop")],
    )


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def db():
    """Direct database session for test setup/assertions."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def catalog():
    return sample_catalog()


@pytest.fixture
def memory_store(catalog):
    """CatalogStore over an in-memory backend, loaded with the sample catalog."""
    store = CatalogStore(InMemoryStore())
    store.replace(catalog)
    return store


@pytest.fixture
def loaded_client(client, db, catalog):
    """Test client whose database holds the sample catalog."""
    CatalogStore(DatabaseStore(db)).replace(catalog)
    return client
