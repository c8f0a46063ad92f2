"""
Workflow gate tests — admin glass flow, admin processing tabs, customer quoting flow.
"""

import pytest

from glassquote.catalog_store import CatalogSnapshot
from glassquote.errors import StepLockedError
from glassquote.pricing_engine import PricingEngine
from glassquote.schemas import GlassCatalogEntry, PriceRequest, QuoteFormState, Supplier
from glassquote.workflow import (
    ADMIN_GLASS_GATE,
    ADMIN_PROCESSING_GATE,
    QUOTE_GATE,
    AdminGlassContext,
    AdminGlassStep,
    AdminProcessingContext,
    AdminProcessingStep,
    ProcessingTab,
    QuoteContext,
    QuoteStep,
)


def _form(**fields):
    return QuoteFormState(**fields)


def _complete_form(**overrides):
    data = {
        "glass_type_id": "clear",
        "toughened": False,
        "thickness_mm": 10,
        "width_mm": 1000,
        "height_mm": 2000,
        "quantity": 1,
        "template_chosen": True,
        "template_id": None,
        "processing": {
            "cat-edgework": "polished-edge",
            "cat-corner": None,
            "cat-holes": None,
            "cat-services": None,
            "cat-surface": None,
        },
    }
    data.update(overrides)
    return QuoteFormState(**data)


# --- Customer quoting flow ---

def test_empty_form_only_reaches_first_step(catalog):
    ctx = QuoteContext(catalog, _form())
    assert QUOTE_GATE.reachable_steps(ctx) == [QuoteStep.GLASS_TYPE]


def test_steps_unlock_in_order(catalog):
    ctx = QuoteContext(catalog, _form(glass_type_id="clear", toughened=False, thickness_mm=10))
    assert QUOTE_GATE.reachable_steps(ctx) == [
        QuoteStep.GLASS_TYPE, QuoteStep.PRODUCT_TYPE, QuoteStep.THICKNESS, QuoteStep.DIMENSIONS,
    ]


def test_later_selection_does_not_skip_missing_one(catalog):
    """Dimensions entered but no thickness chosen, so dimensions stay locked."""
    ctx = QuoteContext(catalog, _form(glass_type_id="clear", toughened=False,
                                      width_mm=1000, height_mm=1000))
    assert not QUOTE_GATE.can_enter(QuoteStep.DIMENSIONS, ctx)
    assert not QUOTE_GATE.can_enter(QuoteStep.TEMPLATE, ctx)


def test_incomplete_glass_type_is_not_selectable(catalog):
    ctx = QuoteContext(catalog, _form(glass_type_id="draft-glass"))
    assert QUOTE_GATE.reachable_steps(ctx) == [QuoteStep.GLASS_TYPE]


def test_inactive_thickness_blocks_dimensions(catalog):
    ctx = QuoteContext(catalog, _form(glass_type_id="clear", toughened=True, thickness_mm=12))
    assert not QUOTE_GATE.can_enter(QuoteStep.DIMENSIONS, ctx)


def test_missing_quantity_blocks_template(catalog):
    ctx = QuoteContext(catalog, _complete_form(quantity=None))
    assert QUOTE_GATE.can_enter(QuoteStep.DIMENSIONS, ctx)
    assert not QUOTE_GATE.can_enter(QuoteStep.TEMPLATE, ctx)


@pytest.mark.parametrize("width", [float("nan"), float("inf"), 0])
def test_invalid_width_blocks_template(catalog, width):
    ctx = QuoteContext(catalog, _complete_form(width_mm=width))
    assert not QUOTE_GATE.can_enter(QuoteStep.TEMPLATE, ctx)


def test_no_template_is_a_valid_choice(catalog):
    ctx = QuoteContext(catalog, _complete_form(processing={}))
    assert QUOTE_GATE.can_enter(QuoteStep.PROCESSING, ctx)
    assert not QUOTE_GATE.can_enter(QuoteStep.FINALIZE, ctx)


def test_undecided_template_blocks_processing(catalog):
    ctx = QuoteContext(catalog, _complete_form(template_chosen=False))
    assert not QUOTE_GATE.can_enter(QuoteStep.PROCESSING, ctx)


def test_incompatible_template_blocks_processing(catalog):
    ctx = QuoteContext(catalog, _complete_form(template_id="tpl-mirror"))
    assert not QUOTE_GATE.can_enter(QuoteStep.PROCESSING, ctx)


def test_finalize_needs_every_category_touched(catalog):
    ctx = QuoteContext(catalog, _complete_form())
    assert QUOTE_GATE.can_enter(QuoteStep.FINALIZE, ctx)
    assert QUOTE_GATE.reachable_steps(ctx) == list(QuoteStep)


def test_processing_categories_unlock_one_at_a_time(catalog):
    ctx = QuoteContext(catalog, _complete_form(processing={"cat-edgework": None}))
    assert QUOTE_GATE.reachable_categories(ctx) == ["cat-edgework", "cat-corner"]


def test_invalid_option_keeps_category_open(catalog):
    ctx = QuoteContext(catalog, _complete_form(processing={"cat-edgework": "paint"}))
    assert QUOTE_GATE.reachable_categories(ctx) == ["cat-edgework"]


def _corner_radius_form(**overrides):
    processing = {
        "cat-edgework": "polished-edge",
        "cat-corner": "corner-radius",
        "cat-holes": None,
        "cat-services": None,
        "cat-surface": None,
    }
    return _complete_form(processing=processing, **overrides)


def test_range_priced_option_needs_a_range(catalog):
    ctx = QuoteContext(catalog, _corner_radius_form())
    assert not QUOTE_GATE.can_enter(QuoteStep.FINALIZE, ctx)
    assert QUOTE_GATE.reachable_categories(ctx) == ["cat-edgework", "cat-corner"]


def test_unknown_range_keeps_category_open(catalog):
    ctx = QuoteContext(catalog, _corner_radius_form(variations={"cat-corner": "R999"}))
    assert not QUOTE_GATE.can_enter(QuoteStep.FINALIZE, ctx)


def test_finalized_form_can_be_priced(catalog):
    form = _corner_radius_form(variations={"cat-corner": "R5-R20"})
    assert QUOTE_GATE.can_enter(QuoteStep.FINALIZE, QuoteContext(catalog, form))

    result = PricingEngine().calculate(PriceRequest(
        glass_type_id=form.glass_type_id, toughened=form.toughened,
        thickness_mm=form.thickness_mm, width_mm=form.width_mm, height_mm=form.height_mm,
        quantity=form.quantity, processing_selections=form.selections(),
    ), catalog)
    corner = [l for l in result.breakdown if l.category_id == "cat-corner"]
    assert corner[0].label == "Corner Radius (R5-R20)"


def test_no_categories_before_processing_step(catalog):
    ctx = QuoteContext(catalog, _form(glass_type_id="clear"))
    assert QUOTE_GATE.reachable_categories(ctx) == []


def test_go_to_moves_cursor(catalog):
    ctx = QuoteContext(catalog, _form(glass_type_id="clear"))
    assert QUOTE_GATE.go_to(QuoteStep.PRODUCT_TYPE, ctx) == QuoteStep.PRODUCT_TYPE
    assert ctx.current_step == QuoteStep.PRODUCT_TYPE


def test_go_to_locked_step_raises(catalog):
    ctx = QuoteContext(catalog, _form(glass_type_id="clear"))
    with pytest.raises(StepLockedError) as exc:
        QUOTE_GATE.go_to(QuoteStep.FINALIZE, ctx)
    assert exc.value.step == QuoteStep.FINALIZE
    assert "toughened" in exc.value.reason
    assert ctx.current_step == QuoteStep.GLASS_TYPE


# --- Admin glass flow ---

def _draft(with_thickness):
    thicknesses = [{"id": "t6", "sku": "", "thickness_mm": 6}] if with_thickness else []
    return GlassCatalogEntry.model_validate({
        "id": "new", "name": "New Glass",
        "variants": [{"id": "v", "toughened": False, "thicknesses": thicknesses}],
    })


def test_admin_empty_catalog_stays_on_overview():
    ctx = AdminGlassContext(CatalogSnapshot())
    assert ADMIN_GLASS_GATE.reachable_steps(ctx) == [AdminGlassStep.OVERVIEW]


def test_admin_complete_type_unlocks_configuration(catalog):
    ctx = AdminGlassContext(catalog)
    assert ADMIN_GLASS_GATE.can_enter(AdminGlassStep.CONFIGURE_TYPES, ctx)
    assert not ADMIN_GLASS_GATE.can_enter(AdminGlassStep.CUSTOMER_PRICING, ctx)


def test_admin_draft_without_thickness_blocks_pricing():
    ctx = AdminGlassContext(CatalogSnapshot(), draft=_draft(False))
    assert ADMIN_GLASS_GATE.reachable_steps(ctx) == [
        AdminGlassStep.OVERVIEW, AdminGlassStep.CONFIGURE_TYPES,
    ]


def test_admin_draft_with_thickness_reaches_pricing():
    ctx = AdminGlassContext(CatalogSnapshot(), draft=_draft(True))
    ADMIN_GLASS_GATE.go_to(AdminGlassStep.CUSTOMER_PRICING, ctx)
    assert ctx.current_step == AdminGlassStep.CUSTOMER_PRICING


# --- Admin processing tabs ---

def test_edgework_requires_active_thickness():
    ctx = AdminProcessingContext(CatalogSnapshot(), ProcessingTab.EDGEWORK)
    with pytest.raises(StepLockedError):
        ADMIN_PROCESSING_GATE.go_to(AdminProcessingStep.CONFIGURE_OPTIONS, ctx)


def test_edgework_unlocked_by_catalog(catalog):
    ctx = AdminProcessingContext(catalog, "edgework")
    assert ADMIN_PROCESSING_GATE.can_enter(AdminProcessingStep.CONFIGURE_OPTIONS, ctx)


def test_other_tab_requires_supplier():
    empty = AdminProcessingContext(CatalogSnapshot(), ProcessingTab.OTHER)
    assert not ADMIN_PROCESSING_GATE.can_enter(AdminProcessingStep.CONFIGURE_OPTIONS, empty)

    with_supplier = AdminProcessingContext(
        CatalogSnapshot(suppliers=[Supplier(id="s1", name="Acme Glass")]), ProcessingTab.OTHER,
    )
    assert ADMIN_PROCESSING_GATE.can_enter(AdminProcessingStep.CONFIGURE_OPTIONS, with_supplier)
