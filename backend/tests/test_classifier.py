import math

import pytest

from coacheck.models import AnalyteResult, PanelStatus
from coacheck.services.classifier import classify, classify_raw, coerce_quantity, panel_status


class TestClassify:
    LOD = 0.01
    LOQ = 0.05

    def test_below_lod_is_nd(self):
        assert classify(0.005, self.LOD, self.LOQ) is AnalyteResult.ND

    def test_between_lod_and_loq_is_below_loq(self):
        assert classify(0.03, self.LOD, self.LOQ) is AnalyteResult.BELOW_LOQ

    def test_above_loq_is_detected(self):
        assert classify(0.10, self.LOD, self.LOQ) is AnalyteResult.DETECTED

    def test_exactly_lod_is_below_loq(self):
        assert classify(0.01, self.LOD, self.LOQ) is AnalyteResult.BELOW_LOQ

    def test_exactly_loq_is_detected(self):
        assert classify(0.05, self.LOD, self.LOQ) is AnalyteResult.DETECTED

    def test_zero_is_nd(self):
        assert classify(0.0, self.LOD, self.LOQ) is AnalyteResult.ND


class TestCoerceQuantity:
    def test_float_passes_through(self):
        assert coerce_quantity(0.25) == (0.25, True)

    def test_int_becomes_float(self):
        value, ok = coerce_quantity(3)
        assert ok is True
        assert isinstance(value, float) and value == 3.0

    def test_numeric_string_with_percent(self):
        value, ok = coerce_quantity("0.25 %")
        assert ok is True
        assert value == pytest.approx(0.25)

    def test_decimal_comma(self):
        value, ok = coerce_quantity("0,25")
        assert ok is True
        assert value == pytest.approx(0.25)

    def test_thousands_separator(self):
        value, ok = coerce_quantity("1,234.5")
        assert ok is True
        assert value == pytest.approx(1234.5)

    @pytest.mark.parametrize("token", ["ND", "n.d.", "not detected", "<LOQ", "< LOQ"])
    def test_nd_and_loq_tokens_are_zero(self, token):
        assert coerce_quantity(token) == (0.0, True)

    @pytest.mark.parametrize("raw", [-0.5, "-0.5", "abc", None, True, math.nan, math.inf, [1.0]])
    def test_invalid_input_is_zero_and_flagged(self, raw):
        assert coerce_quantity(raw) == (0.0, False)


def test_classify_raw_reports_coercion():
    result, ok = classify_raw("garbage", 0.01, 0.05)
    assert result is AnalyteResult.ND
    assert ok is False

    result, ok = classify_raw("0.2", 0.01, 0.05)
    assert result is AnalyteResult.DETECTED
    assert ok is True


def test_panel_status_outcomes():
    assert panel_status(True) is PanelStatus.COMPLETE
    assert panel_status(False) is PanelStatus.NOT_TESTED
    assert panel_status(None) is PanelStatus.NOT_SUBMITTED
