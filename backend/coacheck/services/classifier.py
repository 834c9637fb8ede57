from __future__ import annotations

import logging
import math
import re
from typing import Any

from ..models import AnalyteResult, PanelStatus

logger = logging.getLogger(__name__)

# Precompiled patterns for hand-entered quantities such as "0.25", "0,25", "1,234.5", "0.25 %"
NUM = re.compile(r"^(?:\d{1,3}(?:,\d{3})+|\d+)(?:[\.,]\d+)?$|^\.\d+$")
ND_TOKEN = re.compile(r"^(?:nd|n\.d\.|n/d|not\s+detected)$", re.IGNORECASE)
LOQ_TOKEN = re.compile(r"^(?:<\s*loq|below\s+loq|bloq)$", re.IGNORECASE)
PERCENT_TAIL = re.compile(r"\s*%$")


def _normalize_number_str(s: str) -> str:
    if "," in s and "." in s:
        # Treat commas as thousands separators when both present
        return s.replace(",", "")
    if "," in s:
        if re.fullmatch(r"\d{1,3}(?:,\d{3})+", s):
            return s.replace(",", "")
        # Else assume decimal comma
        return s.replace(",", ".")
    return s


def coerce_quantity(raw: Any) -> tuple[float, bool]:
    """Turn a raw quantity into a non-negative float.

    Returns ``(value, ok)``. Missing, negative, non-finite or unparsable
    input yields ``(0.0, False)`` so the caller can report it instead of
    failing. ``ND`` and ``<LOQ`` tokens are well-formed and read as 0.0.
    """
    if raw is None or isinstance(raw, bool):
        return 0.0, False
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        s = PERCENT_TAIL.sub("", raw.strip())
        if ND_TOKEN.match(s) or LOQ_TOKEN.match(s):
            return 0.0, True
        if not NUM.match(s):
            logger.warning(f"Unparsable quantity {raw!r} treated as 0.0")
            return 0.0, False
        value = float(_normalize_number_str(s))
    else:
        return 0.0, False

    if not math.isfinite(value) or value < 0:
        logger.warning(f"Invalid quantity {raw!r} treated as 0.0")
        return 0.0, False
    return value, True


def classify(quantity: float, lod: float, loq: float) -> AnalyteResult:
    """Map a quantity onto ND / < LOQ / detected using its LOD and LOQ.

    Boundaries belong to the upper band: ``quantity == lod`` is ``< LOQ``
    and ``quantity == loq`` is ``detected``.
    """
    if quantity < lod:
        return AnalyteResult.ND
    if quantity < loq:
        return AnalyteResult.BELOW_LOQ
    return AnalyteResult.DETECTED


def classify_raw(raw: Any, lod: float, loq: float) -> tuple[AnalyteResult, bool]:
    """Classify unvalidated input; the flag is False when it had to be coerced."""
    quantity, ok = coerce_quantity(raw)
    return classify(quantity, lod, loq), ok


def panel_status(flag: bool | None) -> PanelStatus:
    if flag is None:
        return PanelStatus.NOT_SUBMITTED
    return PanelStatus.COMPLETE if flag else PanelStatus.NOT_TESTED
