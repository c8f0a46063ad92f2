"""
Workflow Gate — which step of an admin or quoting flow may be entered.

Each flow is an ordered list of steps with one guard per step. A guard looks
at the context and returns None when the step may be entered, or a reason
string when it is locked. Flows are linear: a step is reachable only if every
step before it is reachable too. Guards never mutate the context; go_to()
only moves the context's current_step cursor.
"""

import enum
import logging
import math
from typing import Callable, Dict, List, Optional

from .catalog_store import CatalogSnapshot
from .errors import StepLockedError
from .schemas import GlassCatalogEntry, QuoteFormState

logger = logging.getLogger(__name__)


# --- Steps ---

class AdminGlassStep(str, enum.Enum):
    OVERVIEW = "overview"
    CONFIGURE_TYPES = "configure_types"
    CUSTOMER_PRICING = "customer_pricing"


class ProcessingTab(str, enum.Enum):
    EDGEWORK = "edgework"
    OTHER = "other"


class AdminProcessingStep(str, enum.Enum):
    OVERVIEW = "overview"
    CONFIGURE_OPTIONS = "configure_options"


class QuoteStep(str, enum.Enum):
    GLASS_TYPE = "glass_type"
    PRODUCT_TYPE = "product_type"
    THICKNESS = "thickness"
    DIMENSIONS = "dimensions"
    TEMPLATE = "template"
    PROCESSING = "processing"
    FINALIZE = "finalize"


# --- Contexts ---

class AdminGlassContext:
    """Catalog state plus the glass type the admin is currently editing, if any."""

    def __init__(self, snapshot: CatalogSnapshot, draft: Optional[GlassCatalogEntry] = None,
                 current_step: AdminGlassStep = AdminGlassStep.OVERVIEW):
        self.snapshot = snapshot
        self.draft = draft
        self.current_step = current_step


class AdminProcessingContext:
    def __init__(self, snapshot: CatalogSnapshot, tab: ProcessingTab,
                 current_step: AdminProcessingStep = AdminProcessingStep.OVERVIEW):
        self.snapshot = snapshot
        self.tab = ProcessingTab(tab)
        self.current_step = current_step


class QuoteContext:
    """Customer selections so far, checked against the catalog snapshot."""

    def __init__(self, snapshot: CatalogSnapshot, form: QuoteFormState,
                 current_step: QuoteStep = QuoteStep.GLASS_TYPE):
        self.snapshot = snapshot
        self.form = form
        self.current_step = current_step

    def glass(self) -> Optional[GlassCatalogEntry]:
        if not self.form.glass_type_id:
            return None
        glass = self.snapshot.glass_type(self.form.glass_type_id)
        if glass is None or not glass.visible:
            return None
        return glass

    def variant(self):
        glass = self.glass()
        if glass is None or self.form.toughened is None:
            return None
        return glass.variant(self.form.toughened)


Guard = Callable[[object], Optional[str]]


# --- Gate ---

class WorkflowGate:
    """A linear flow of steps, each behind a guard."""

    def __init__(self, name: str, steps: List[enum.Enum], guards: Dict[enum.Enum, Guard]):
        self.name = name
        self.steps = list(steps)
        self.guards = guards

    def _lock_reason(self, step, ctx) -> Optional[str]:
        """Reason the step is locked, checking every step up to and including it."""
        for s in self.steps:
            guard = self.guards.get(s)
            reason = guard(ctx) if guard else None
            if reason:
                return reason
            if s == step:
                return None
        raise ValueError(f"Unknown {self.name} step: {step}")

    def reachable_steps(self, ctx) -> List[enum.Enum]:
        reachable = []
        for s in self.steps:
            guard = self.guards.get(s)
            if guard and guard(ctx):
                break
            reachable.append(s)
        return reachable

    def can_enter(self, step, ctx) -> bool:
        return self._lock_reason(step, ctx) is None

    def go_to(self, step, ctx):
        """Move the context to step, or raise StepLockedError."""
        reason = self._lock_reason(step, ctx)
        if reason:
            logger.debug("%s: step %s locked (%s)", self.name, step, reason)
            raise StepLockedError(step, reason)
        ctx.current_step = step
        return step


# --- Admin glass flow ---

def _has_draft_or_complete_type(ctx: AdminGlassContext) -> Optional[str]:
    if ctx.draft is not None:
        return None
    if any(gt.complete for gt in ctx.snapshot.glass_types):
        return None
    return "start a glass type or complete one first"


def _draft_has_thickness(ctx: AdminGlassContext) -> Optional[str]:
    if ctx.draft is None:
        return "no glass type is being edited"
    if not any(v.thicknesses for v in ctx.draft.variants):
        return "add at least one thickness to a product type"
    return None


ADMIN_GLASS_GATE = WorkflowGate(
    "admin-glass",
    list(AdminGlassStep),
    {
        AdminGlassStep.CONFIGURE_TYPES: _has_draft_or_complete_type,
        AdminGlassStep.CUSTOMER_PRICING: _draft_has_thickness,
    },
)


# --- Admin processing flow ---

def _tab_prerequisites(ctx: AdminProcessingContext) -> Optional[str]:
    if ctx.tab == ProcessingTab.EDGEWORK:
        if not ctx.snapshot.has_active_thickness():
            return "edgework is priced per thickness; configure glass thicknesses first"
        return None
    if not ctx.snapshot.active_suppliers():
        return "add a supplier first"
    return None


ADMIN_PROCESSING_GATE = WorkflowGate(
    "admin-processing",
    list(AdminProcessingStep),
    {AdminProcessingStep.CONFIGURE_OPTIONS: _tab_prerequisites},
)


# --- Customer quoting flow ---

def _glass_chosen(ctx: QuoteContext) -> Optional[str]:
    if ctx.glass() is None:
        return "choose an available glass type"
    return None


def _variant_chosen(ctx: QuoteContext) -> Optional[str]:
    if ctx.variant() is None:
        return "choose toughened or not toughened"
    return None


def _thickness_chosen(ctx: QuoteContext) -> Optional[str]:
    variant = ctx.variant()
    if ctx.form.thickness_mm is None:
        return "choose a thickness"
    entry = variant.find_thickness(ctx.form.thickness_mm)
    if entry is None or not entry.active:
        return f"{ctx.form.thickness_mm:g}mm is not available"
    return None


def _dimensions_entered(ctx: QuoteContext) -> Optional[str]:
    form = ctx.form
    for value in (form.width_mm, form.height_mm):
        if value is None or not (math.isfinite(value) and value > 0):
            return "enter a positive width and height"
    if form.quantity is None or form.quantity < 1:
        return "quantity must be at least 1"
    return None


def _template_decided(ctx: QuoteContext) -> Optional[str]:
    form = ctx.form
    if not form.template_chosen:
        return "choose a template or no template"
    if form.template_id is None:
        return None
    template = ctx.snapshot.template(form.template_id)
    if template is None or not template.active or not template.is_compatible(form.glass_type_id):
        return "the chosen template is not available for this glass"
    return None


def _category_selection_error(ctx: QuoteContext, category_id: str) -> Optional[str]:
    if category_id not in ctx.form.processing:
        return f"make a choice for {category_id}"
    option_id = ctx.form.processing[category_id]
    if option_id is None:
        return None
    option = ctx.snapshot.option(option_id)
    if option is None or not option.active or option.category_id != category_id:
        return f"option {option_id} is not available for {category_id}"
    if option.pricing.kind == "variations":
        if option.pricing.find(ctx.form.variations.get(category_id)) is None:
            return f"choose a range for {option.name}"
    return None


def _processing_complete(ctx: QuoteContext) -> Optional[str]:
    for category in ctx.snapshot.ordered_categories():
        reason = _category_selection_error(ctx, category.id)
        if reason:
            return reason
    return None


class QuoteGate(WorkflowGate):
    """Customer flow, plus the per-category sub-gate inside PROCESSING."""

    def reachable_categories(self, ctx: QuoteContext) -> List[str]:
        """Category ids the customer may work on, in sequence order."""
        if not self.can_enter(QuoteStep.PROCESSING, ctx):
            return []
        reachable = []
        for category in ctx.snapshot.ordered_categories():
            reachable.append(category.id)
            if _category_selection_error(ctx, category.id):
                break
        return reachable


QUOTE_GATE = QuoteGate(
    "quote",
    list(QuoteStep),
    {
        QuoteStep.PRODUCT_TYPE: _glass_chosen,
        QuoteStep.THICKNESS: _variant_chosen,
        QuoteStep.DIMENSIONS: _thickness_chosen,
        QuoteStep.TEMPLATE: _dimensions_entered,
        QuoteStep.PROCESSING: _template_decided,
        QuoteStep.FINALIZE: _processing_complete,
    },
)
