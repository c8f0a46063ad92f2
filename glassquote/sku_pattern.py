"""
SKU pattern inference for admin catalog authoring.

Given SKUs the admin has already typed (e.g. CG-6-NT for 6mm, CG-10-NT for
10mm) infer "CG-[thickness]-NT" and generate codes for the remaining
thicknesses. Detection is advisory: nothing is written until the admin accepts
the pattern, and applying it only fills blank SKUs.

Nothing in this module raises. Bad or insufficient input means "no pattern".
"""

import math
from typing import Iterable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, computed_field

from .schemas import ProductVariant


class SkuPattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    prefix: str
    suffix: str = ""
    includes_thickness: bool

    @computed_field
    @property
    def example(self) -> str:
        if self.includes_thickness:
            return f"{self.prefix}[thickness]{self.suffix}"
        return self.prefix


def _thickness_text(thickness_mm) -> Optional[str]:
    """Whole-millimetre text, rounding halves up (2.5 -> '3')."""
    try:
        value = float(thickness_mm)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return str(int(math.floor(value + 0.5)))


def detect_pattern(sku: str, thickness_mm) -> Optional[SkuPattern]:
    """Split a single SKU around its thickness, or treat it as a static code."""
    if not sku or not str(sku).strip():
        return None
    text = _thickness_text(thickness_mm)
    if text is None:
        return None

    idx = sku.find(text)
    if idx >= 0:
        return SkuPattern(
            prefix=sku[:idx],
            suffix=sku[idx + len(text):],
            includes_thickness=True,
        )
    return SkuPattern(prefix=sku, suffix="", includes_thickness=False)


def confirm_pattern(entries: Iterable[Tuple[str, float]]) -> Optional[SkuPattern]:
    """
    Returns the shared pattern when every (sku, thickness) pair agrees.

    Needs at least two entries. One disagreeing entry rejects the whole set.
    """
    entries = list(entries)
    if len(entries) < 2:
        return None

    first = None
    for sku, thickness in entries:
        pattern = detect_pattern(sku, thickness)
        if pattern is None:
            return None
        if first is None:
            first = pattern
        elif pattern != first:
            return None
    return first


def generate_sku(thickness_mm, pattern: Optional[SkuPattern]) -> str:
    if pattern is None:
        return ""
    if pattern.includes_thickness:
        text = _thickness_text(thickness_mm)
        if text is None:
            return ""
        return f"{pattern.prefix}{text}{pattern.suffix}"
    # Static code, same for every thickness
    return pattern.prefix


def pattern_for_variant(variant: ProductVariant) -> Optional[SkuPattern]:
    """Confirm a pattern from the entries of a variant that already have SKUs."""
    return confirm_pattern(
        (t.sku, t.thickness_mm) for t in variant.thicknesses if t.sku
    )


def apply_pattern(variant: ProductVariant, pattern: SkuPattern) -> ProductVariant:
    """
    Fill every blank SKU in the variant from an accepted pattern.

    Manually entered SKUs are never touched, so applying twice changes nothing.
    A generated code that is already taken in the variant (always the case for
    a second blank under a static pattern) is left blank for the admin.
    """
    taken = {t.sku for t in variant.thicknesses if t.sku}
    filled = []
    for entry in variant.thicknesses:
        if entry.sku:
            filled.append(entry)
            continue
        sku = generate_sku(entry.thickness_mm, pattern)
        if sku and sku not in taken:
            taken.add(sku)
            entry = entry.model_copy(update={"sku": sku})
        filled.append(entry)
    return variant.model_copy(update={"thicknesses": filled})
