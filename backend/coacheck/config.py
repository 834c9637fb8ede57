"""
Configuration management for the COA calculation and validation core.
"""

from __future__ import annotations

from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BelowLoqPolicy = Literal["zero", "half_loq", "measured"]


class Settings(BaseSettings):
    # Potency arithmetic
    decarb_factor: float = 0.877
    # How a "< LOQ" analyte contributes to total cannabinoids
    below_loq_policy: BelowLoqPolicy = "zero"

    # Formula consistency (percentage points)
    formula_tolerance: float = 0.01
    formula_error_threshold: float = 0.10

    # Logic consistency
    moisture_min: float = 5.0
    moisture_max: float = 15.0

    # Presentation
    display_places: int = 2

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_prefix="COA_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("formula_tolerance", "formula_error_threshold", "decarb_factor")
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("below_loq_policy", mode="before")
    @classmethod
    def _normalize_policy(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_")
        return v

    @model_validator(mode="after")
    def _check_bounds(self) -> "Settings":
        if self.formula_error_threshold < self.formula_tolerance:
            raise ValueError("formula_error_threshold must be >= formula_tolerance")
        if self.moisture_min > self.moisture_max:
            raise ValueError("moisture_min must be <= moisture_max")
        return self


# Global settings instance
settings = Settings()
