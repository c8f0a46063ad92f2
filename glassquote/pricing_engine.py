"""
Pricing Engine — glass price for one configured line item.

Glass cost by area, processing by unit (each / per m² / per linear metre),
and a template adjustment on the glass cost. Pure math over a CatalogSnapshot;
never writes to the store.

Input: PriceRequest + CatalogSnapshot
Output: PriceResult with an itemised breakdown. Amounts are not rounded here.
"""

import logging
import math
from typing import List, Optional, Tuple

from .catalog_store import CatalogSnapshot
from .config import settings
from .errors import CatalogLookupError, InvalidDimensionError
from .models import PricingUnit, TierKey
from .schemas import (
    BreakdownLine,
    ConfigurationWarning,
    GlassCatalogEntry,
    GlassTemplate,
    PriceRequest,
    PriceResult,
    PricingTuple,
    ProcessingOption,
    ProcessingSelection,
    ThicknessEntry,
)

logger = logging.getLogger(__name__)

MISSING_TIER_PRICE = "missing_tier_price"
MISSING_THICKNESS_PRICE = "missing_thickness_price"


class PricingEngine:
    """
    Prices a single glass line.
    Stateless; one engine serves any number of snapshots.
    """

    def calculate(self, request: PriceRequest, snapshot: CatalogSnapshot) -> PriceResult:
        """
        Price a configured glass line.

        Args:
            request: glass / variant / thickness, dimensions in mm, quantity,
                customer tier, processing selections and optional template
            snapshot: catalog state to price against

        Returns:
            PriceResult; every breakdown amount equals unit_rate * multiplier.

        Raises:
            CatalogLookupError: glass, thickness, option or template missing or inactive
            InvalidDimensionError: width, height or quantity not positive
        """
        self._validate_dimensions(request)
        glass, entry = self._resolve_glass(request, snapshot)
        template = self._resolve_template(request, snapshot)

        tier = self._resolve_tier(request, snapshot)
        area_sqm = (request.width_mm / 1000) * (request.height_mm / 1000)
        perimeter_m = 2 * (request.width_mm + request.height_mm) / 1000
        warnings: List[ConfigurationWarning] = []

        # --- Glass ---
        glass_line = self._calculate_glass_line(request, snapshot, glass, entry, tier, area_sqm)
        if glass_line.warning:
            warnings.append(glass_line.warning)
        base_total = glass_line.amount

        # --- Processing ---
        processing_lines = []
        for selection in self._effective_selections(request, snapshot, template):
            line = self._calculate_processing_line(
                selection, request, snapshot, tier, area_sqm, perimeter_m,
            )
            if line.warning:
                warnings.append(line.warning)
            processing_lines.append(line)
        processing_total = sum(line.amount for line in processing_lines)

        # --- Template ---
        template_lines = []
        template_cost = 0.0
        if template is not None:
            template_line = self._calculate_template_line(template, base_total)
            template_cost = template_line.amount
            template_lines.append(template_line)

        for w in warnings:
            logger.warning("Pricing %s: %s", request.glass_type_id, w.message)

        return PriceResult(
            total=base_total + processing_total + template_cost,
            base_total=base_total,
            processing_total=processing_total,
            template_cost=template_cost,
            area_sqm=area_sqm,
            perimeter_m=perimeter_m,
            unit_base_price=glass_line.unit_rate,
            quantity=request.quantity,
            customer_tier=tier,
            breakdown=[glass_line] + processing_lines + template_lines,
            warnings=warnings,
        )

    # --- Resolution ---

    def _validate_dimensions(self, request: PriceRequest) -> None:
        if not all(math.isfinite(v) and v > 0 for v in (request.width_mm, request.height_mm)):
            raise InvalidDimensionError(
                f"Dimensions must be positive, got {request.width_mm} x {request.height_mm} mm"
            )
        if request.quantity < 1:
            raise InvalidDimensionError(f"Quantity must be at least 1, got {request.quantity}")

    def _resolve_tier(self, request: PriceRequest, snapshot: CatalogSnapshot) -> TierKey:
        """Explicit request tier, else the customer's own tier, else the default tier."""
        if request.customer_tier is not None:
            return TierKey(request.customer_tier)
        if request.customer_id:
            customer = snapshot.customer(request.customer_id)
            if customer is not None:
                return customer.tier
        return TierKey(settings.DEFAULT_TIER.strip().lower())

    def _resolve_glass(
        self, request: PriceRequest, snapshot: CatalogSnapshot,
    ) -> Tuple[GlassCatalogEntry, ThicknessEntry]:
        glass = snapshot.glass_type(request.glass_type_id)
        if glass is None or not glass.visible:
            raise CatalogLookupError(f"Glass type not available: {request.glass_type_id}")

        variant = glass.variant(request.toughened)
        if variant is None:
            kind = "toughened" if request.toughened else "not toughened"
            raise CatalogLookupError(f"{glass.name} is not offered {kind}")

        # Exact thickness only, no nearest match
        entry = variant.find_thickness(request.thickness_mm)
        if entry is None or not entry.active:
            raise CatalogLookupError(
                f"{glass.name} is not available in {request.thickness_mm:g}mm"
            )
        return glass, entry

    def _resolve_template(
        self, request: PriceRequest, snapshot: CatalogSnapshot,
    ) -> Optional[GlassTemplate]:
        if not request.template_id:
            return None
        template = snapshot.template(request.template_id)
        if template is None or not template.active:
            raise CatalogLookupError(f"Template not available: {request.template_id}")
        if not template.is_compatible(request.glass_type_id):
            raise CatalogLookupError(
                f"Template {template.name} cannot be used with {request.glass_type_id}"
            )
        return template

    def _resolve_option(
        self, selection: ProcessingSelection, snapshot: CatalogSnapshot,
    ) -> ProcessingOption:
        option = snapshot.option(selection.option_id)
        if option is None or not option.active:
            raise CatalogLookupError(f"Processing option not available: {selection.option_id}")
        if option.category_id != selection.category_id:
            raise CatalogLookupError(
                f"Option {option.id} belongs to {option.category_id}, not {selection.category_id}"
            )
        return option

    def _effective_selections(
        self,
        request: PriceRequest,
        snapshot: CatalogSnapshot,
        template: Optional[GlassTemplate],
    ) -> List[ProcessingSelection]:
        """
        Customer selections plus template auto-applied options, in category order.

        An auto-applied option is only added when the customer made no choice
        (including an explicit 'none') for its category.
        """
        selections = [s for s in request.processing_selections if s.option_id]
        touched = {s.category_id for s in request.processing_selections}

        if template is not None:
            for option_id in template.auto_processing_option_ids:
                option = snapshot.option(option_id)
                if option is None or not option.active:
                    raise CatalogLookupError(
                        f"Template {template.name} auto-applies unavailable option {option_id}"
                    )
                if option.category_id in touched:
                    continue
                touched.add(option.category_id)
                selections.append(
                    ProcessingSelection(category_id=option.category_id, option_id=option.id)
                )

        order = {c.id: c.sequence_order for c in snapshot.processing_categories}
        fallback = len(order)
        return sorted(selections, key=lambda s: order.get(s.category_id, fallback))

    # --- Line calculations ---

    def _calculate_glass_line(
        self,
        request: PriceRequest,
        snapshot: CatalogSnapshot,
        glass: GlassCatalogEntry,
        entry: ThicknessEntry,
        tier: TierKey,
        area_sqm: float,
    ) -> BreakdownLine:
        """
        Unit price per m², by precedence: customer override, tier price, cost price.
        """
        warning = None
        unit_price = None

        if request.customer_id:
            customer = snapshot.customer(request.customer_id)
            if customer is not None:
                unit_price = customer.price_for(glass.id, request.toughened, entry.thickness_mm)

        if unit_price is None:
            unit_price = entry.tier_prices.get(tier)

        if unit_price is None:
            unit_price = entry.cost_price_per_sqm
            warning = ConfigurationWarning(
                code=MISSING_TIER_PRICE,
                message=(
                    f"No {snapshot.tier_label(tier)} price for {glass.name} "
                    f"{entry.thickness_mm:g}mm; using cost price {unit_price:.2f}"
                ),
            )

        multiplier = area_sqm * request.quantity
        finish = "Toughened" if request.toughened else "Not Toughened"
        return BreakdownLine(
            kind="glass",
            label=f"{glass.name} {entry.thickness_mm:g}mm ({finish})",
            basis=f"{area_sqm:.3f} m² × {request.quantity}",
            unit_rate=unit_price,
            multiplier=multiplier,
            amount=unit_price * multiplier,
            flagged=warning is not None,
            warning=warning,
        )

    def _calculate_processing_line(
        self,
        selection: ProcessingSelection,
        request: PriceRequest,
        snapshot: CatalogSnapshot,
        tier: TierKey,
        area_sqm: float,
        perimeter_m: float,
    ) -> BreakdownLine:
        option = self._resolve_option(selection, snapshot)
        label = option.name
        warning = None

        prices = self._pricing_tuple(option, selection, request.thickness_mm)
        if prices is None:
            rate = 0.0
            warning = ConfigurationWarning(
                code=MISSING_THICKNESS_PRICE,
                message=f"{option.name} has no price for {request.thickness_mm:g}mm",
                option_id=option.id,
            )
        else:
            rate = prices.get(tier)
            if rate is None:
                rate = prices.cost or 0.0
                warning = ConfigurationWarning(
                    code=MISSING_TIER_PRICE,
                    message=(
                        f"{option.name} has no {snapshot.tier_label(tier)} price; "
                        f"using cost {rate:.2f}"
                    ),
                    option_id=option.id,
                )
            if option.pricing.kind == "variations":
                label = f"{option.name} ({option.pricing.find(selection.variation).range})"

        multiplier, basis = self._unit_multiplier(option.pricing_unit, request.quantity,
                                                  area_sqm, perimeter_m)
        return BreakdownLine(
            kind="processing",
            label=label,
            category_id=option.category_id,
            option_id=option.id,
            basis=basis,
            unit_rate=rate,
            multiplier=multiplier,
            amount=rate * multiplier,
            flagged=warning is not None,
            warning=warning,
        )

    def _pricing_tuple(
        self, option: ProcessingOption, selection: ProcessingSelection, thickness_mm: float,
    ) -> Optional[PricingTuple]:
        """Tuple for the option's pricing model. None only for a missing thickness key."""
        pricing = option.pricing
        if pricing.kind == "flat":
            return pricing.price
        if pricing.kind == "variations":
            variation = pricing.find(selection.variation)
            if variation is None:
                raise CatalogLookupError(
                    f"{option.name} has no range '{selection.variation}'"
                )
            return variation.price
        return pricing.get(thickness_mm)

    def _unit_multiplier(
        self, unit: PricingUnit, quantity: int, area_sqm: float, perimeter_m: float,
    ) -> Tuple[float, str]:
        if unit == PricingUnit.PER_SQM:
            return area_sqm * quantity, f"{area_sqm:.3f} m² × {quantity}"
        if unit == PricingUnit.PER_LINEAR_METER:
            return perimeter_m * quantity, f"{perimeter_m:.3f} m × {quantity}"
        return float(quantity), f"{quantity} each"

    def _calculate_template_line(self, template: GlassTemplate, base_total: float) -> BreakdownLine:
        multiplier = template.cost_multiplier - 1
        return BreakdownLine(
            kind="template",
            label=template.name,
            basis=f"glass × {template.cost_multiplier:g}",
            unit_rate=base_total,
            multiplier=multiplier,
            amount=base_total * multiplier,
        )
