"""
Synthetic measurement generation from cannabinoid profiles.

Every draw comes from an explicit ``random.Random`` so a seed fully
determines the output.
"""
from __future__ import annotations

import logging
import random
from typing import Iterable, List, Optional, Tuple, Union

from ..config import Settings, settings as default_settings
from ..models import (
    Cannabinoid,
    CustomRanges,
    GeneratedProfile,
    PanelTests,
    PotencyTotals,
    ProductType,
    ProfileName,
    Report,
)
from .aggregator import D9_THC, THCA, compute_totals
from .classifier import classify
from .profiles import ANALYTE_ORDER, REFERENCE_LIMITS, ProfileConfig, get_product, get_profile

logger = logging.getLogger(__name__)

# Declared dosage pins the Delta-9 range to +/- this fraction of the target
DOSAGE_SPREAD = 0.05

RandomSource = Union[int, str, random.Random]


def make_rng(seed: RandomSource) -> random.Random:
    """Return a private random source; an existing ``Random`` is used as-is.

    ``None`` is rejected: OS-entropy seeding would make output unrepeatable.
    """
    if isinstance(seed, random.Random):
        return seed
    if seed is None:
        raise ValueError("An explicit seed or random.Random instance is required")
    return random.Random(seed)


def _draw(rng: random.Random, bounds: Tuple[float, float]) -> float:
    low, high = bounds
    if low == high:
        return low
    # uniform() may land a hair outside [low, high] through float rounding
    return min(max(rng.uniform(low, high), low), high)


def _dosage_range(dosage: float, unit_weight: float) -> Tuple[float, float]:
    """Delta-9 bounds (percent) for a declared dosage in mg per unit.

    The whole range must sit at or above the Delta-9 LOQ; a dosage that
    cannot be quantified is a caller error.
    """
    target = dosage / (unit_weight * 10)
    low, high = target * (1 - DOSAGE_SPREAD), target * (1 + DOSAGE_SPREAD)
    loq = REFERENCE_LIMITS[D9_THC].loq
    if low < loq:
        raise ValueError(
            f"Declared dosage {dosage} mg in {unit_weight} g is {target:.4f}%, "
            f"below the Delta-9 LOQ ({loq}%) once the {DOSAGE_SPREAD:.0%} spread is applied"
        )
    return low, high


def _build_analytes(
    config: ProfileConfig, thca: float, d9: float, unit_weight: Optional[float]
) -> List[Cannabinoid]:
    sources = {"thca": thca, "d9": d9}
    analytes: List[Cannabinoid] = []
    for name in ANALYTE_ORDER:
        if name == THCA:
            quantity = thca
        elif name == D9_THC:
            quantity = d9
        elif name in config.minors:
            minor = config.minors[name]
            quantity = minor.ratio * sources[minor.source]
        else:
            quantity = 0.0
        limits = REFERENCE_LIMITS[name]
        mg_per_g = quantity * 10
        analytes.append(
            Cannabinoid(
                name=name,
                percent_weight=quantity,
                mg_per_g=mg_per_g,
                lod=limits.lod,
                loq=limits.loq,
                result=classify(quantity, limits.lod, limits.loq),
                mg_per_unit=mg_per_g * unit_weight if unit_weight is not None else None,
            )
        )
    return analytes


def generate_profile(
    profile: Union[ProfileName, str, None],
    rng: RandomSource,
    product_type: Union[ProductType, str] = ProductType.FLOWER,
    custom_ranges: Optional[CustomRanges] = None,
    edible_dosage: Optional[float] = None,
    edible_weight: Optional[float] = None,
    settings: Optional[Settings] = None,
) -> GeneratedProfile:
    """Produce a complete, internally consistent analyte list plus totals.

    THCa and Delta-9 THC are drawn uniformly inside the profile bounds
    (``custom_ranges`` replaces them); minors follow the profile's fixed
    ratios. For per-unit products every analyte also gets ``mg_per_unit``
    and the totals are repeated in mg per unit.
    """
    cfg = settings or default_settings
    product = get_product(product_type)
    config = get_profile(profile if profile is not None else product.default_profile)
    source = make_rng(rng)

    unit_weight: Optional[float] = None
    if product.per_unit:
        unit_weight = edible_weight if edible_weight is not None else product.default_unit_weight
        if unit_weight is None or unit_weight <= 0:
            raise ValueError(f"Unit weight must be positive, got {unit_weight!r}")

    config = config.with_ranges(custom_ranges)
    if custom_ranges is None and unit_weight is not None and edible_dosage:
        config = ProfileConfig(
            name=config.name,
            thca_range=config.thca_range,
            d9_range=_dosage_range(edible_dosage, unit_weight),
            minors=config.minors,
        )

    # Draw order is fixed (THCa first) so a seed maps to one result
    thca = _draw(source, config.thca_range)
    d9 = _draw(source, config.d9_range)

    analytes = _build_analytes(config, thca, d9, unit_weight)
    totals = compute_totals(analytes, settings=cfg)

    per_unit = None
    if unit_weight is not None:
        per_unit = PotencyTotals(
            total_thc=totals.total_thc * 10 * unit_weight,
            total_cbd=totals.total_cbd * 10 * unit_weight,
            total_cannabinoids=totals.total_cannabinoids * 10 * unit_weight,
        )

    logger.debug(f"Generated {config.name.value} profile: THCa={thca} D9={d9}")
    return GeneratedProfile(
        profile=config.name,
        product_type=ProductType(product_type),
        cannabinoids=analytes,
        totals=totals,
        unit_weight=unit_weight,
        per_unit=per_unit,
    )


def _sample_id(rng: random.Random) -> str:
    return f"S{rng.randrange(10**9):09d}"


def generate_report(
    rng: RandomSource,
    profile: Union[ProfileName, str, None] = None,
    product_type: Union[ProductType, str] = ProductType.FLOWER,
    custom_ranges: Optional[CustomRanges] = None,
    sample_id: Optional[str] = None,
    batch_id: str = "",
    sample_name: str = "",
    strain: str = "",
    edible_dosage: Optional[float] = None,
    edible_weight: Optional[float] = None,
    settings: Optional[Settings] = None,
) -> Report:
    """Wrap a generated profile into a report whose stated totals match its analytes."""
    source = make_rng(rng)
    product = get_product(product_type)
    generated = generate_profile(
        profile,
        source,
        product_type=product_type,
        custom_ranges=custom_ranges,
        edible_dosage=edible_dosage,
        edible_weight=edible_weight,
        settings=settings,
    )
    moisture = None
    if product.moisture_range is not None:
        moisture = _draw(source, product.moisture_range)

    report = Report(
        sample_id=sample_id or _sample_id(source),
        batch_id=batch_id,
        sample_name=sample_name or strain,
        strain=strain,
        sample_type=product.sample_type,
        product_type=generated.product_type,
        profile=generated.profile,
        cannabinoids=generated.cannabinoids,
        total_thc=generated.totals.total_thc,
        total_cbd=generated.totals.total_cbd,
        total_cannabinoids=generated.totals.total_cannabinoids,
        moisture=moisture,
        tests=PanelTests(moisture=True if moisture is not None else None),
        edible_dosage=edible_dosage if product.per_unit else None,
        edible_weight=generated.unit_weight,
    )
    logger.info(f"Generated report {report.sample_id} ({generated.profile.value}, {product_type})")
    return report


def generate_batch(
    strains: Iterable[str],
    seed: int,
    batch_id: str,
    profile: Union[ProfileName, str, None] = None,
    product_type: Union[ProductType, str] = ProductType.FLOWER,
    custom_ranges: Optional[CustomRanges] = None,
    edible_dosage: Optional[float] = None,
    edible_weight: Optional[float] = None,
    settings: Optional[Settings] = None,
) -> List[Report]:
    """One report per strain, all sharing ``batch_id``.

    Entry ``i`` is seeded from ``(seed, i)`` alone, so entries are
    independent and may be produced in any order.
    """
    reports = []
    for index, strain in enumerate(strains):
        entry_rng = random.Random(f"{seed}:{index}")
        reports.append(
            generate_report(
                entry_rng,
                profile=profile,
                product_type=product_type,
                custom_ranges=custom_ranges,
                sample_id=f"{batch_id}-{index + 1:03d}" if batch_id else None,
                batch_id=batch_id,
                strain=strain.strip(),
                edible_dosage=edible_dosage,
                edible_weight=edible_weight,
                settings=settings,
            )
        )
    logger.info(f"Generated batch {batch_id or '<none>'} with {len(reports)} reports")
    return reports
