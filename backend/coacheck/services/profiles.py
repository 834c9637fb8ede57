"""
Reference tables for synthetic measurement generation.

Profiles give the bounds for the two primary analytes (THCa and Delta-9 THC)
and fixed ratios for every minor analyte. Products map a product type onto
its display sample type, default profile and unit handling.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union

from ..models import CustomRanges, ProductType, ProfileName
from .aggregator import CBC, CBD, CBDA, CBDV, CBG, CBGA, CBN, D8_THC, D9_THC, THCA, THCV

# Stable report order
ANALYTE_ORDER: Tuple[str, ...] = (THCA, D9_THC, D8_THC, THCV, CBDA, CBD, CBDV, CBN, CBGA, CBG, CBC)


@dataclass(frozen=True)
class AnalyteLimits:
    lod: float
    loq: float


# Percent-by-weight LOD/LOQ per analyte
REFERENCE_LIMITS: Dict[str, AnalyteLimits] = {
    THCA: AnalyteLimits(lod=0.01, loq=0.03),
    D9_THC: AnalyteLimits(lod=0.01, loq=0.03),
    D8_THC: AnalyteLimits(lod=0.01, loq=0.05),
    THCV: AnalyteLimits(lod=0.01, loq=0.05),
    CBDA: AnalyteLimits(lod=0.01, loq=0.05),
    CBD: AnalyteLimits(lod=0.01, loq=0.05),
    CBDV: AnalyteLimits(lod=0.01, loq=0.05),
    CBN: AnalyteLimits(lod=0.01, loq=0.05),
    CBGA: AnalyteLimits(lod=0.01, loq=0.05),
    CBG: AnalyteLimits(lod=0.01, loq=0.05),
    CBC: AnalyteLimits(lod=0.01, loq=0.05),
}


@dataclass(frozen=True)
class MinorRatio:
    """Minor analyte quantity = ratio * quantity of ``source`` ("thca" or "d9")."""
    source: str
    ratio: float


@dataclass(frozen=True)
class ProfileConfig:
    name: ProfileName
    thca_range: Tuple[float, float]
    d9_range: Tuple[float, float]
    minors: Dict[str, MinorRatio] = field(default_factory=dict)

    def with_ranges(self, custom: Optional[CustomRanges]) -> "ProfileConfig":
        if custom is None:
            return self
        return ProfileConfig(
            name=self.name,
            thca_range=(custom.thca_min, custom.thca_max),
            d9_range=(custom.d9thc_min, custom.d9thc_max),
            minors=self.minors,
        )


# Flower-style ratios keyed off THCa
_FLOWER_MINORS = {
    THCV: MinorRatio("thca", 0.004),
    CBDA: MinorRatio("thca", 0.002),
    CBN: MinorRatio("d9", 0.08),
    CBGA: MinorRatio("thca", 0.035),
    CBG: MinorRatio("thca", 0.004),
    CBC: MinorRatio("thca", 0.006),
}

# Heated material: acids mostly converted, neutral forms keyed off Delta-9
_DECARBED_MINORS = {
    THCV: MinorRatio("d9", 0.004),
    CBD: MinorRatio("d9", 0.003),
    CBN: MinorRatio("d9", 0.03),
    CBGA: MinorRatio("thca", 0.05),
    CBG: MinorRatio("d9", 0.03),
    CBC: MinorRatio("d9", 0.008),
}

PROFILES: Dict[ProfileName, ProfileConfig] = {
    ProfileName.HIGH_THC: ProfileConfig(ProfileName.HIGH_THC, (22.0, 30.0), (0.15, 0.30), _FLOWER_MINORS),
    ProfileName.MEDIUM_THC: ProfileConfig(ProfileName.MEDIUM_THC, (15.0, 22.0), (0.10, 0.25), _FLOWER_MINORS),
    ProfileName.LOW_THC: ProfileConfig(ProfileName.LOW_THC, (8.0, 15.0), (0.05, 0.20), _FLOWER_MINORS),
    ProfileName.HEMP: ProfileConfig(
        ProfileName.HEMP,
        (0.05, 0.20),
        (0.03, 0.09),
        {
            CBDA: MinorRatio("thca", 60.0),
            CBD: MinorRatio("thca", 4.0),
            CBDV: MinorRatio("thca", 0.5),
            CBGA: MinorRatio("thca", 1.5),
            CBG: MinorRatio("thca", 0.3),
            CBC: MinorRatio("thca", 0.4),
        },
    ),
    ProfileName.DECARBED: ProfileConfig(ProfileName.DECARBED, (0.5, 2.0), (15.0, 25.0), _DECARBED_MINORS),
    ProfileName.DISPOSABLE_VAPE: ProfileConfig(
        ProfileName.DISPOSABLE_VAPE, (2.0, 6.0), (75.0, 88.0), _DECARBED_MINORS
    ),
    ProfileName.CONCENTRATE: ProfileConfig(
        ProfileName.CONCENTRATE,
        (65.0, 85.0),
        (1.0, 4.0),
        {
            THCV: MinorRatio("thca", 0.006),
            CBDA: MinorRatio("thca", 0.001),
            CBN: MinorRatio("d9", 0.1),
            CBGA: MinorRatio("thca", 0.025),
            CBG: MinorRatio("thca", 0.005),
            CBC: MinorRatio("thca", 0.004),
        },
    ),
    ProfileName.GUMMY: ProfileConfig(
        ProfileName.GUMMY,
        (0.0, 0.0),
        (0.10, 0.30),
        {CBN: MinorRatio("d9", 0.05), CBG: MinorRatio("d9", 0.1)},
    ),
}


@dataclass(frozen=True)
class ProductConfig:
    sample_type: str
    default_profile: ProfileName
    per_unit: bool = False
    # Grams per unit when the caller does not declare one
    default_unit_weight: Optional[float] = None
    moisture_range: Optional[Tuple[float, float]] = None


PRODUCTS: Dict[ProductType, ProductConfig] = {
    ProductType.FLOWER: ProductConfig(
        "Flower - Cured", ProfileName.HIGH_THC, moisture_range=(8.0, 13.0)
    ),
    ProductType.CONCENTRATE: ProductConfig("Concentrate", ProfileName.CONCENTRATE),
    ProductType.VAPORIZER: ProductConfig("Vape Cartridge", ProfileName.DISPOSABLE_VAPE),
    ProductType.DISPOSABLE: ProductConfig("Disposable Vape", ProfileName.DISPOSABLE_VAPE),
    ProductType.EDIBLE: ProductConfig("Edible", ProfileName.GUMMY, per_unit=True, default_unit_weight=5.0),
    ProductType.BEVERAGE: ProductConfig(
        "Beverage", ProfileName.GUMMY, per_unit=True, default_unit_weight=355.0
    ),
    ProductType.GUMMY: ProductConfig("Gummy", ProfileName.GUMMY, per_unit=True, default_unit_weight=4.0),
}


def get_profile(profile: Union[ProfileName, str]) -> ProfileConfig:
    """Look up a profile by enum or by its string value ("high-thc")."""
    try:
        key = ProfileName(profile)
    except ValueError:
        raise ValueError(f"Unknown cannabinoid profile: {profile!r}") from None
    return PROFILES[key]


def get_product(product_type: Union[ProductType, str]) -> ProductConfig:
    try:
        key = ProductType(product_type)
    except ValueError:
        raise ValueError(f"Unknown product type: {product_type!r}") from None
    return PRODUCTS[key]
