"""Tests for the deterministic smart-completion heuristics and AI output merging."""

from types import SimpleNamespace

import pytest

from stratix.domain.completion import (
    EMPLOYEE_COUNT_RATIONALE,
    coerce_analysis,
    fallback_analysis,
    fallback_completion,
    fallback_step_review,
    merge_ai_completion,
    merge_ai_step_review,
)
from stratix.domain.validation import ValidationResult

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "count,size",
    [(5, "startup"), (10, "startup"), (11, "pyme"), (200, "empresa"), (251, "corporacion")],
)
def test_company_size_inferred_from_employee_count(count, size):
    result = fallback_completion({"company": {"employee_count": count}})

    assert result["completed_fields"]["company_size"] == size
    assert result["confidence_scores"]["company_size"] == 85
    assert result["rationale"]["company_size"] == EMPLOYEE_COUNT_RATIONALE


def test_existing_company_size_is_not_overwritten():
    result = fallback_completion({"company": {"employee_count": 500, "company_size": "pyme"}})

    assert "company_size" not in result["completed_fields"]


@pytest.mark.parametrize(
    "experience,maturity,confidence",
    [("none", "beginner", 90), ("advanced", "advanced", 90), ("basic", "intermediate", 85)],
)
def test_okr_maturity_from_experience(experience, maturity, confidence):
    result = fallback_completion({"welcome": {"experience_with_okr": experience}})

    assert result["completed_fields"]["okr_maturity"] == maturity
    assert result["confidence_scores"]["okr_maturity"] == confidence


def test_business_goals_suggested_by_size():
    result = fallback_completion({"company": {"company_size": "startup"}})

    assert result["suggestions"]["business_goals"] == ["revenue_growth", "product_development", "market_expansion"]
    assert result["suggestions"]["communication_style"] == ["formal", "informal"]


def test_fields_filter_limits_output():
    result = fallback_completion(
        {"company": {"employee_count": 30}, "welcome": {"experience_with_okr": "none"}},
        fields=["okr_maturity"],
    )

    assert result["completed_fields"] == {"okr_maturity": "beginner"}
    assert result["suggestions"] == {}


def test_fallback_analysis_scores_completed_steps():
    progress = [SimpleNamespace(completed=True), SimpleNamespace(completed=False), SimpleNamespace(completed=True)]

    analysis = fallback_analysis(5, progress)

    assert analysis["completeness_score"] == 40
    assert analysis["recommendations"]


def test_fallback_step_review_for_valid_and_invalid():
    assert fallback_step_review(ValidationResult(is_valid=True))["validation_score"] == 75

    invalid = fallback_step_review(ValidationResult(is_valid=False, errors=["falta"]))
    assert invalid["validation_score"] == 0
    assert invalid["errors"] == ["falta"]


def test_merge_ai_completion_takes_well_formed_sections():
    base = fallback_completion({"company": {"employee_count": 4}})

    merged = merge_ai_completion(
        base,
        {
            "completed_fields": {"industry_id": "tech"},
            "confidence_scores": {"industry_id": 140},
            "suggestions": "not a dict",
        },
    )

    assert merged["completed_fields"] == {"company_size": "startup", "industry_id": "tech"}
    assert merged["confidence_scores"]["industry_id"] == 100
    assert merged["suggestions"] == base["suggestions"]


def test_merge_ai_completion_respects_requested_fields():
    base = fallback_completion({"company": {"employee_count": 20}}, ["company_size"])

    merged = merge_ai_completion(
        base,
        {
            "completed_fields": {"company_size": "pyme", "country": "Chile"},
            "suggestions": {"business_goals": ["innovation"]},
        },
        ["company_size"],
    )

    assert merged["completed_fields"] == {"company_size": "pyme"}
    assert merged["suggestions"] == {}


def test_merge_ai_completion_ignores_non_dict_payload():
    base = fallback_completion({})

    assert merge_ai_completion(base, ["nope"]) is base


def test_ai_review_never_validates_an_invalid_step():
    base = fallback_step_review(ValidationResult(is_valid=False, errors=["falta"]))

    review = merge_ai_step_review(base, {"is_valid": True, "validation_score": 95})

    assert review["is_valid"] is False
    assert review["validation_score"] == 0


def test_low_ai_score_adds_warning():
    base = fallback_step_review(ValidationResult(is_valid=True))

    review = merge_ai_step_review(base, {"validation_score": 40})

    assert review["validation_score"] == 40
    assert review["warnings"][-1] == "La información podría necesitar revisión antes de continuar."


def test_high_ai_score_prepends_hint():
    base = fallback_step_review(ValidationResult(is_valid=True))

    review = merge_ai_step_review(base, {"validation_score": 95, "next_step_hints": ["Sigue así"]})

    assert review["next_step_hints"][0] == "¡Excelente! Estás listo para el siguiente paso."
    assert "Sigue así" in review["next_step_hints"]


def test_coerce_analysis_requires_full_shape():
    fallback = fallback_analysis(5, [])

    assert coerce_analysis(fallback, {"completeness_score": 70}) is fallback

    payload = {
        "completeness_score": 70,
        "missing_critical_fields": ["country"],
        "recommendations": ["a"],
        "risk_factors": [],
        "success_predictors": ["b"],
    }
    assert coerce_analysis(fallback, payload) == payload
