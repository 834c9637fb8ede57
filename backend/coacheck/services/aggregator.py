"""
Potency aggregation: total THC, total CBD and total cannabinoids.
"""
from __future__ import annotations

import logging
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from ..config import BelowLoqPolicy, Settings, settings as default_settings
from ..models import AnalyteResult, Cannabinoid, PotencyTotals
from .classifier import classify

logger = logging.getLogger(__name__)

DECARB_FACTOR = 0.877

# Canonical analyte names, in report order
THCA = "THCa"
D9_THC = "Δ9-THC"
D8_THC = "Δ8-THC"
THCV = "THCV"
CBDA = "CBDa"
CBD = "CBD"
CBDV = "CBDV"
CBN = "CBN"
CBGA = "CBGa"
CBG = "CBG"
CBC = "CBC"

CBD_FAMILY = frozenset({CBDA, CBD, CBDV})

_ANALYTE_ALIASES = {
    "thca": THCA,
    "thcaa": THCA,
    "delta9thc": D9_THC,
    "d9thc": D9_THC,
    "delta9": D9_THC,
    "d9": D9_THC,
    "delta9tetrahydrocannabinol": D9_THC,
    "delta8thc": D8_THC,
    "d8thc": D8_THC,
    "delta8": D8_THC,
    "d8": D8_THC,
    "delta8tetrahydrocannabinol": D8_THC,
    "thcv": THCV,
    "cbda": CBDA,
    "cbd": CBD,
    "cannabidiol": CBD,
    "cbdv": CBDV,
    "cbn": CBN,
    "cannabinol": CBN,
    "cbga": CBGA,
    "cbg": CBG,
    "cannabigerol": CBG,
    "cbc": CBC,
    "cannabichromene": CBC,
}


def canonical_analyte(name: str) -> str:
    """Resolve spelling variants ("THCA", "Delta-9 THC", "d9-thc") to one name.

    Unknown names come back stripped but otherwise unchanged.
    """
    base = (name or "").replace("Δ", "delta").replace("∆", "delta").lower()
    base = re.sub(r"[^a-z0-9]+", "", base)
    return _ANALYTE_ALIASES.get(base, (name or "").strip())


def round_display(value: float, places: int = 2) -> float:
    """Round half-up for presentation only."""
    quant = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quant, rounding=ROUND_HALF_UP))


def _quantity_of(cannabinoids: Iterable[Cannabinoid], analyte: str) -> float:
    return sum(c.percent_weight for c in cannabinoids if canonical_analyte(c.name) == analyte)


def total_thc(cannabinoids: Iterable[Cannabinoid], decarb_factor: float = DECARB_FACTOR) -> float:
    """Delta-9 THC plus decarboxylated THCa. Delta-8 is never included."""
    items = list(cannabinoids)
    return _quantity_of(items, D9_THC) + decarb_factor * _quantity_of(items, THCA)


def total_cbd(cannabinoids: Iterable[Cannabinoid], decarb_factor: float = DECARB_FACTOR) -> float:
    items = list(cannabinoids)
    return _quantity_of(items, CBD) + decarb_factor * _quantity_of(items, CBDA)


def contribution(cannabinoid: Cannabinoid, policy: BelowLoqPolicy = "zero") -> float:
    """What one analyte adds to total cannabinoids.

    The band is re-derived from quantity/LOD/LOQ; the stored tag is not trusted.
    ND adds nothing. "< LOQ" adds 0 (``zero``), half its LOQ (``half_loq``)
    or its measured quantity (``measured``).
    """
    band = classify(cannabinoid.percent_weight, cannabinoid.lod, cannabinoid.loq)
    if band is AnalyteResult.ND:
        return 0.0
    if band is AnalyteResult.BELOW_LOQ:
        if policy == "zero":
            return 0.0
        if policy == "half_loq":
            return cannabinoid.loq / 2
        if policy == "measured":
            return cannabinoid.percent_weight
        raise ValueError(f"Unknown below-LOQ policy: {policy!r}")
    return cannabinoid.percent_weight


def total_cannabinoids(
    cannabinoids: Iterable[Cannabinoid], policy: BelowLoqPolicy = "zero"
) -> float:
    return sum(contribution(c, policy) for c in cannabinoids)


def compute_totals(
    cannabinoids: Iterable[Cannabinoid],
    policy: Optional[BelowLoqPolicy] = None,
    settings: Optional[Settings] = None,
) -> PotencyTotals:
    """Full-precision totals for an analyte list."""
    cfg = settings or default_settings
    items = list(cannabinoids)
    totals = PotencyTotals(
        total_thc=total_thc(items, cfg.decarb_factor),
        total_cbd=total_cbd(items, cfg.decarb_factor),
        total_cannabinoids=total_cannabinoids(items, policy or cfg.below_loq_policy),
    )
    logger.debug(
        f"Computed totals over {len(items)} analytes: "
        f"THC={totals.total_thc} CBD={totals.total_cbd} sum={totals.total_cannabinoids}"
    )
    return totals
