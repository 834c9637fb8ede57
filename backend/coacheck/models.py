"""
Pydantic models for report data and validation verdicts.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class AnalyteResult(str, Enum):
    """Outcome for a single analyte."""
    DETECTED = "detected"
    ND = "ND"
    BELOW_LOQ = "< LOQ"


class PanelStatus(str, Enum):
    """Outcome for a whole test panel; never used for a single analyte."""
    COMPLETE = "Complete"
    NOT_SUBMITTED = "Not Submitted"
    NOT_TESTED = "Not Tested"


class ProfileName(str, Enum):
    HIGH_THC = "high-thc"
    MEDIUM_THC = "medium-thc"
    LOW_THC = "low-thc"
    HEMP = "hemp"
    DECARBED = "decarbed"
    DISPOSABLE_VAPE = "disposable-vape"
    CONCENTRATE = "concentrate"
    GUMMY = "gummy"


class ProductType(str, Enum):
    FLOWER = "flower"
    CONCENTRATE = "concentrate"
    VAPORIZER = "vaporizer"
    DISPOSABLE = "disposable"
    EDIBLE = "edible"
    BEVERAGE = "beverage"
    GUMMY = "gummy"


class CheckType(str, Enum):
    INPUT_STRUCTURE = "input-structure"
    CANNABINOID_FORMULA = "cannabinoid-formula"
    LOGIC_CONSISTENCY = "logic-consistency"
    DATA_UNIQUENESS = "data-uniqueness"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


_RESULT_ALIASES = {
    "detected": AnalyteResult.DETECTED,
    "nd": AnalyteResult.ND,
    "not detected": AnalyteResult.ND,
    "< loq": AnalyteResult.BELOW_LOQ,
    "<loq": AnalyteResult.BELOW_LOQ,
    "below loq": AnalyteResult.BELOW_LOQ,
}


def _coerce_fields(data: Dict[str, Any], fields: Dict[str, str], required: tuple) -> List[str]:
    """Coerce numeric fields in place (by field name or camelCase alias).

    Returns the names of fields that were missing or malformed and were
    replaced by 0.0.
    """
    from .services.classifier import coerce_quantity

    issues: List[str] = []
    for name, alias in fields.items():
        key = name if name in data else alias if alias in data else None
        if key is None:
            if name in required:
                data[name] = 0.0
                issues.append(name)
            continue
        raw = data.pop(key)
        if raw is None and name not in required:
            data[name] = None
            continue
        value, ok = coerce_quantity(raw)
        data[name] = value
        if not ok:
            issues.append(name)
    return issues


class _CoaModel(BaseModel):
    # Accept camelCase keys from the surrounding application as well.
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        use_enum_values=False,
    )


class Cannabinoid(_CoaModel):
    """One analyte measurement. Percent-by-weight is the quantity of record."""
    name: str = Field(..., description="Analyte identifier, e.g. THCa")
    percent_weight: float = Field(0.0, description="Quantity as percent by weight")
    mg_per_g: float = Field(0.0, description="percent_weight * 10")
    loq: float = Field(0.0, description="Limit of quantitation (%)")
    lod: float = Field(0.0, description="Limit of detection (%)")
    result: AnalyteResult = AnalyteResult.ND
    mg_per_unit: Optional[float] = Field(None, description="Absolute mass per unit for edible products")
    # Fields replaced by 0.0 because the input was missing or malformed
    input_issues: List[str] = Field(default_factory=list, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def _sanitize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        issues = _coerce_fields(
            data,
            {"percent_weight": "percentWeight", "mg_per_g": "mgPerG", "loq": "loq", "lod": "lod"},
            required=("percent_weight", "loq", "lod"),
        )
        if data.get("mg_per_g") is None:
            data["mg_per_g"] = data["percent_weight"] * 10

        # A missing or unrecognised tag is re-derived from the thresholds
        raw_result = data.get("result")
        if isinstance(raw_result, AnalyteResult):
            pass
        elif isinstance(raw_result, str) and raw_result.strip().lower() in _RESULT_ALIASES:
            data["result"] = _RESULT_ALIASES[raw_result.strip().lower()]
        else:
            from .services.classifier import classify

            if raw_result is not None:
                issues.append("result")
            data["result"] = classify(data["percent_weight"], data["lod"], data["loq"])

        data["input_issues"] = list(data.get("input_issues") or []) + issues
        return data

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Analyte name cannot be empty")
        return v.strip()


class PanelTests(_CoaModel):
    """Per-panel test flags. None means the panel was not submitted."""
    batch: Optional[bool] = True
    cannabinoids: Optional[bool] = True
    moisture: Optional[bool] = None
    heavy_metals: Optional[bool] = None
    pesticides: Optional[bool] = None
    microbials: Optional[bool] = None

    def statuses(self) -> Dict[str, PanelStatus]:
        from .services.classifier import panel_status

        return {name: panel_status(getattr(self, name)) for name in type(self).model_fields}


class CustomRanges(_CoaModel):
    """Caller override for the two primary analyte bounds (percent)."""
    thca_min: float = Field(..., ge=0)
    thca_max: float = Field(..., ge=0)
    d9thc_min: float = Field(..., ge=0)
    d9thc_max: float = Field(..., ge=0)

    @model_validator(mode="after")
    def _ordered(self) -> "CustomRanges":
        if self.thca_min > self.thca_max:
            raise ValueError("thca_min must be <= thca_max")
        if self.d9thc_min > self.d9thc_max:
            raise ValueError("d9thc_min must be <= d9thc_max")
        return self


class Report(_CoaModel):
    """A certificate of analysis as handed to the validation engine."""
    sample_id: str
    batch_id: str = ""
    sample_name: str = ""
    strain: str = ""
    sample_type: str = ""
    product_type: ProductType = ProductType.FLOWER
    profile: Optional[ProfileName] = None

    # None is the structurally unrecoverable case
    cannabinoids: Optional[List[Cannabinoid]] = None
    total_thc: float = 0.0
    total_cbd: float = 0.0
    total_cannabinoids: float = 0.0

    moisture: Optional[float] = None
    tests: PanelTests = Field(default_factory=PanelTests)

    edible_dosage: Optional[float] = Field(None, description="mg per unit")
    edible_weight: Optional[float] = Field(None, description="grams per unit")

    notes: str = ""
    input_issues: List[str] = Field(default_factory=list, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def _sanitize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        # Source records spell the totals as totalTHC / totalCBD
        for upper, name in (("totalTHC", "total_thc"), ("totalCBD", "total_cbd")):
            if upper in data and name not in data:
                data[name] = data.pop(upper)
        issues = _coerce_fields(
            data,
            {
                "total_thc": "totalThc",
                "total_cbd": "totalCbd",
                "total_cannabinoids": "totalCannabinoids",
                "moisture": "moisture",
                "edible_dosage": "edibleDosage",
                "edible_weight": "edibleWeight",
            },
            required=("total_thc", "total_cbd", "total_cannabinoids"),
        )
        data["input_issues"] = list(data.get("input_issues") or []) + issues
        return data

    @field_validator("sample_id")
    @classmethod
    def _validate_sample_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Sample ID cannot be empty")
        return v.strip()


class PotencyTotals(BaseModel):
    """Derived totals at full precision."""
    total_thc: float
    total_cbd: float
    total_cannabinoids: float

    def rounded(self, places: Optional[int] = None) -> "PotencyTotals":
        """Presentation copy; never feed this back into a calculation."""
        from .config import settings
        from .services.aggregator import round_display

        if places is None:
            places = settings.display_places
        return PotencyTotals(
            total_thc=round_display(self.total_thc, places),
            total_cbd=round_display(self.total_cbd, places),
            total_cannabinoids=round_display(self.total_cannabinoids, places),
        )


class GeneratedProfile(BaseModel):
    """Output of the measurement generator."""
    profile: ProfileName
    product_type: ProductType
    cannabinoids: List[Cannabinoid]
    totals: PotencyTotals
    unit_weight: Optional[float] = None
    per_unit: Optional[PotencyTotals] = Field(None, description="Totals in mg per unit")


class ValidationIssue(BaseModel):
    type: CheckType
    severity: Severity
    message: str
    field: Optional[str] = None
    expected_value: Optional[float] = None
    actual_value: Optional[float] = None


class CannabinoidFormulaCheck(BaseModel):
    total_thc_calculated: float = 0.0
    total_thc_reported: float = 0.0
    total_cbd_calculated: float = 0.0
    total_cbd_reported: float = 0.0
    sum_of_cannabinoids_calculated: float = 0.0
    sum_of_cannabinoids_reported: float = 0.0
    thc_mismatch: float = 0.0
    cbd_mismatch: float = 0.0
    sum_mismatch: float = 0.0
    issues: List[ValidationIssue] = Field(default_factory=list)


class LogicConsistencyCheck(BaseModel):
    nd_or_loq_present: bool = False
    total_cannabinoids_gte_total_thc: bool = True
    cbd_slice_exists: bool = False
    moisture_in_range: bool = True
    delta8_thc_flagged: bool = False
    result_tags_consistent: bool = True
    issues: List[ValidationIssue] = Field(default_factory=list)


class DataUniquenessCheck(BaseModel):
    duplicate_cannabinoids_found: bool = False
    duplicate_moisture_found: bool = False
    duplicate_batch_id_found: bool = False
    duplicate_sample_id_found: bool = False
    reports_compared: int = 0
    issues: List[ValidationIssue] = Field(default_factory=list)


class ValidationVerdict(BaseModel):
    """Single structured verdict consumed by the publish workflow."""
    is_valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)
    structural_issues: List[ValidationIssue] = Field(default_factory=list)
    cannabinoid_formula_check: CannabinoidFormulaCheck = Field(default_factory=CannabinoidFormulaCheck)
    logic_consistency_check: LogicConsistencyCheck = Field(default_factory=LogicConsistencyCheck)
    data_uniqueness_check: DataUniquenessCheck = Field(default_factory=DataUniquenessCheck)
