import pytest
from pydantic import ValidationError

from coacheck.models import (
    AnalyteResult,
    Cannabinoid,
    CustomRanges,
    PanelStatus,
    PanelTests,
    PotencyTotals,
    ProfileName,
    Report,
)


def test_mg_per_g_defaults_to_percent_times_ten():
    c = Cannabinoid(name="THCa", percent_weight=21.5, lod=0.01, loq=0.03)
    assert c.mg_per_g == 215.0
    assert c.input_issues == []


def test_missing_result_is_derived():
    assert Cannabinoid(name="CBN", percent_weight=0.02, lod=0.01, loq=0.05).result is AnalyteResult.BELOW_LOQ


def test_result_aliases():
    assert Cannabinoid(name="CBN", percent_weight=0, lod=0.01, loq=0.05, result="nd").result is AnalyteResult.ND
    assert (
        Cannabinoid(name="CBN", percent_weight=0.02, lod=0.01, loq=0.05, result="<LOQ").result
        is AnalyteResult.BELOW_LOQ
    )


def test_unknown_result_tag_is_recorded():
    c = Cannabinoid(name="CBN", percent_weight=0.2, lod=0.01, loq=0.05, result="Complete")
    assert c.result is AnalyteResult.DETECTED
    assert c.input_issues == ["result"]


def test_camel_case_input_accepted():
    c = Cannabinoid.model_validate({"name": "CBG", "percentWeight": "0.4", "mgPerG": 4, "lod": 0.01, "loq": 0.05})
    assert c.percent_weight == pytest.approx(0.4)
    assert c.mg_per_g == 4.0


def test_missing_numbers_become_zero_with_issues():
    c = Cannabinoid(name="CBC")
    assert (c.percent_weight, c.lod, c.loq) == (0.0, 0.0, 0.0)
    assert sorted(c.input_issues) == ["lod", "loq", "percent_weight"]


def test_input_issues_not_serialized():
    c = Cannabinoid(name="CBC", percent_weight="x", lod=0.01, loq=0.05)
    assert "input_issues" not in c.model_dump()


def test_empty_name_rejected():
    with pytest.raises(ValidationError):
        Cannabinoid(name="  ", percent_weight=1.0, lod=0.01, loq=0.05)


def test_report_is_frozen():
    report = Report(sample_id="S-1", cannabinoids=[])
    with pytest.raises(ValidationError):
        report.total_thc = 3.0


def test_report_accepts_source_record_keys():
    report = Report.model_validate(
        {
            "sampleId": "S-9",
            "batchId": "B-9",
            "totalTHC": "21.4",
            "totalCBD": 0.05,
            "totalCannabinoids": 24.0,
            "profile": "high-thc",
            "cannabinoids": [],
        }
    )
    assert report.total_thc == pytest.approx(21.4)
    assert report.total_cbd == pytest.approx(0.05)
    assert report.profile is ProfileName.HIGH_THC
    assert report.input_issues == []


def test_panel_statuses():
    tests = PanelTests(batch=True, cannabinoids=True, moisture=False)
    statuses = tests.statuses()
    assert statuses["cannabinoids"] is PanelStatus.COMPLETE
    assert statuses["moisture"] is PanelStatus.NOT_TESTED
    assert statuses["microbials"] is PanelStatus.NOT_SUBMITTED
    assert set(statuses) == {"batch", "cannabinoids", "moisture", "heavy_metals", "pesticides", "microbials"}


def test_custom_ranges_must_be_ordered():
    with pytest.raises(ValidationError):
        CustomRanges(thca_min=10, thca_max=5, d9thc_min=0.1, d9thc_max=0.2)
    with pytest.raises(ValidationError):
        CustomRanges(thca_min=1, thca_max=5, d9thc_min=0.3, d9thc_max=0.2)


def test_rounded_totals_are_a_copy():
    totals = PotencyTotals(total_thc=21.3456, total_cbd=0.044, total_cannabinoids=25.999)
    shown = totals.rounded(2)
    assert (shown.total_thc, shown.total_cbd, shown.total_cannabinoids) == (21.35, 0.04, 26.0)
    assert totals.total_thc == 21.3456


def test_rounded_defaults_to_configured_places(monkeypatch):
    from coacheck import config

    monkeypatch.setattr(config, "settings", config.Settings(_env_file=None, display_places=1))
    assert PotencyTotals(total_thc=21.36, total_cbd=0.0, total_cannabinoids=0.0).rounded().total_thc == 21.4
