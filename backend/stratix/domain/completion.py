"""Deterministic smart-completion heuristics and AI output coercion.

The heuristics here are the primary path: AI output is only layered on top
when it parses into the expected shape. Pure functions, no I/O.
"""

import json
from typing import Any

from stratix.domain.validation import ValidationResult

EMPLOYEE_COUNT_RATIONALE = "Inferido basado en el número de empleados"
EXPERIENCE_RATIONALE = "Basado en la experiencia declarada con OKRs"

SUPPORTED_FIELDS = ("company_size", "okr_maturity", "communication_style", "business_goals")

_GOALS_BY_SIZE: dict[str, list[str]] = {
    "startup": ["revenue_growth", "product_development", "market_expansion"],
    "corporacion": ["operational_efficiency", "customer_satisfaction", "innovation"],
}
_DEFAULT_GOALS = ["revenue_growth", "operational_efficiency", "team_development"]


def empty_completion() -> dict[str, dict]:
    return {"completed_fields": {}, "suggestions": {}, "confidence_scores": {}, "rationale": {}}


def _size_from_employee_count(count: float) -> str:
    if count <= 10:
        return "startup"
    if count <= 50:
        return "pyme"
    if count <= 250:
        return "empresa"
    return "corporacion"


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def fallback_completion(form_data: dict[str, Any], fields: list[str] | None = None) -> dict[str, dict]:
    """Infer missing onboarding fields from what the user already entered.

    Args:
        form_data: Session form data keyed by step name, merged with any
            partial data from the request
        fields: Restrict output to these field names (None means all)

    Returns:
        {"completed_fields", "suggestions", "confidence_scores", "rationale"}

    Rules:
        - company_size from company.employee_count (85)
        - okr_maturity from welcome.experience_with_okr (90 for none/advanced, else 85)
        - communication_style: suggest both styles (60)
        - business_goals: suggestions by company_size (70)
    """
    result = empty_completion()
    completed = result["completed_fields"]
    suggestions = result["suggestions"]
    confidence = result["confidence_scores"]
    rationale = result["rationale"]

    welcome = form_data.get("welcome") or {}
    company = form_data.get("company") or {}
    organization = form_data.get("organization") or {}
    preferences = form_data.get("preferences") or {}

    def wanted(name: str) -> bool:
        return fields is None or name in fields

    employee_count = _as_number(company.get("employee_count"))
    if wanted("company_size") and not company.get("company_size") and employee_count:
        completed["company_size"] = _size_from_employee_count(employee_count)
        confidence["company_size"] = 85
        rationale["company_size"] = EMPLOYEE_COUNT_RATIONALE

    experience = welcome.get("experience_with_okr")
    if wanted("okr_maturity") and not organization.get("okr_maturity") and experience:
        if experience == "none":
            completed["okr_maturity"], confidence["okr_maturity"] = "beginner", 90
        elif experience == "advanced":
            completed["okr_maturity"], confidence["okr_maturity"] = "advanced", 90
        else:
            completed["okr_maturity"], confidence["okr_maturity"] = "intermediate", 85
        rationale["okr_maturity"] = EXPERIENCE_RATIONALE

    if wanted("communication_style") and not preferences.get("communication_style"):
        suggestions["communication_style"] = ["formal", "informal"]
        confidence["communication_style"] = 60
        rationale["communication_style"] = "Ambos estilos son válidos, depende de la cultura empresarial"

    if wanted("business_goals") and not organization.get("business_goals"):
        size = company.get("company_size") or completed.get("company_size")
        suggestions["business_goals"] = list(_GOALS_BY_SIZE.get(size, _DEFAULT_GOALS))
        confidence["business_goals"] = 70
        rationale["business_goals"] = "Sugerencias basadas en el tamaño y contexto empresarial"

    return result


def fallback_analysis(total_steps: int, progress: list[Any]) -> dict:
    """Completeness analysis used when the AI service is unavailable."""
    done = sum(1 for p in progress if p.completed)
    total = total_steps or 5
    return {
        "completeness_score": round(done / total * 100),
        "missing_critical_fields": [],
        "recommendations": [
            "Completa todos los pasos del onboarding",
            "Revisa la información ingresada para asegurar precisión",
            "Considera configurar integraciones adicionales",
        ],
        "risk_factors": ["Información incompleta podría afectar las recomendaciones"],
        "success_predictors": ["Completitud de información", "Claridad en objetivos"],
    }


def fallback_step_review(validation: ValidationResult) -> dict:
    """Step review used when the AI service is unavailable."""
    if not validation.is_valid:
        return {
            "is_valid": False,
            "validation_score": 0,
            "errors": list(validation.errors),
            "warnings": list(validation.warnings),
            "suggestions": [],
            "next_step_hints": [],
        }
    return {
        "is_valid": True,
        "validation_score": 75,
        "errors": [],
        "warnings": list(validation.warnings),
        "suggestions": ["Los datos proporcionados parecen correctos. Continúa al siguiente paso."],
        "next_step_hints": ["Asegúrate de revisar la información antes de continuar."],
    }


def _str_list(value: Any) -> list[str] | None:
    if not isinstance(value, list):
        return None
    return [str(item) for item in value]


def merge_ai_completion(
    fallback: dict[str, dict], ai_payload: Any, fields: list[str] | None = None
) -> dict[str, dict]:
    """Layer parsed AI output over the heuristic result.

    Only dict-shaped sections are taken; anything else in the AI payload is
    ignored and the heuristic value stands. When ``fields`` is given, AI
    entries for any other field name are dropped.
    """
    if not isinstance(ai_payload, dict):
        return fallback

    merged = {key: dict(value) for key, value in fallback.items()}
    for key in merged:
        section = ai_payload.get(key)
        if not isinstance(section, dict):
            continue
        for name, value in section.items():
            if fields is not None and name not in fields:
                continue
            if key == "suggestions":
                items = _str_list(value)
                if items is not None:
                    merged[key][str(name)] = items
            elif key == "confidence_scores":
                number = _as_number(value)
                if number is not None:
                    merged[key][str(name)] = max(0, min(100, int(number)))
            elif key == "rationale":
                merged[key][str(name)] = str(value)
            else:
                merged[key][str(name)] = value
    return merged


def merge_ai_step_review(base: dict, ai_payload: Any) -> dict:
    """Combine the schema review with the AI review.

    Schema errors always win: the AI can add warnings, suggestions and hints,
    and can mark an otherwise valid step as questionable, but never makes an
    invalid step valid.
    """
    if not isinstance(ai_payload, dict):
        return base

    review = dict(base)
    score = _as_number(ai_payload.get("validation_score"))
    if score is not None and base["is_valid"]:
        review["validation_score"] = max(0, min(100, int(score)))
    if ai_payload.get("is_valid") is False:
        review["is_valid"] = False
    for key in ("warnings", "suggestions", "next_step_hints"):
        items = _str_list(ai_payload.get(key))
        if items:
            review[key] = list(base.get(key, [])) + items

    if review["validation_score"] < 60 and base["is_valid"]:
        review["warnings"] = review["warnings"] + ["La información podría necesitar revisión antes de continuar."]
    if review["validation_score"] > 90:
        review["next_step_hints"] = ["¡Excelente! Estás listo para el siguiente paso."] + review["next_step_hints"]
    return review


def completion_prompt(form_data: dict[str, Any], fields: list[str] | None) -> str:
    return (
        "Eres un experto en consultoría empresarial y onboarding. Basándote en la información "
        "existente, completa de manera inteligente los campos faltantes.\n\n"
        f"INFORMACIÓN EXISTENTE:\n{json.dumps(form_data, ensure_ascii=False, indent=2, default=str)}\n\n"
        f"CAMPOS A COMPLETAR:\n{', '.join(fields) if fields else 'Todos los campos relevantes'}\n\n"
        "REGLAS:\n"
        "- Solo completa campos con alta confianza (>70%)\n"
        "- Para campos de menor confianza, proporciona sugerencias múltiples\n"
        "- Mantén coherencia con la información existente\n\n"
        "Responde solo con JSON:\n"
        '{"completed_fields": {"campo": "valor"}, "suggestions": {"campo": ["opción"]}, '
        '"confidence_scores": {"campo": 85}, "rationale": {"campo": "razón"}}'
    )


def analysis_prompt(form_data: dict[str, Any], progress: list[dict]) -> str:
    return (
        "Eres un experto en análisis de completitud de onboarding empresarial. Analiza la "
        "información proporcionada y genera un reporte completo.\n\n"
        f"DATOS DEL ONBOARDING:\n{json.dumps(form_data, ensure_ascii=False, indent=2, default=str)}\n\n"
        f"PROGRESO DE PASOS:\n{json.dumps(progress, ensure_ascii=False, indent=2, default=str)}\n\n"
        "Responde solo con JSON:\n"
        '{"completeness_score": 85, "missing_critical_fields": [], "recommendations": [], '
        '"risk_factors": [], "success_predictors": []}'
    )


def step_review_prompt(step_name: str, step_data: dict[str, Any], context: dict[str, Any] | None) -> str:
    return (
        "Eres un experto en onboarding empresarial. Valida los datos del paso "
        f"'{step_name}' y proporciona sugerencias.\n\n"
        f"DATOS:\n{json.dumps(step_data, ensure_ascii=False, indent=2, default=str)}\n\n"
        f"CONTEXTO:\n{json.dumps(context or {}, ensure_ascii=False, indent=2, default=str)}\n\n"
        "Responde solo con JSON:\n"
        '{"is_valid": true, "validation_score": 80, "suggestions": [], "warnings": [], '
        '"next_step_hints": []}'
    )


def coerce_analysis(fallback: dict, ai_payload: Any) -> dict:
    """Take the AI analysis only when every key has the expected type."""
    if not isinstance(ai_payload, dict):
        return fallback
    score = _as_number(ai_payload.get("completeness_score"))
    if score is None:
        return fallback
    analysis = {"completeness_score": max(0, min(100, int(score)))}
    for key in ("missing_critical_fields", "recommendations", "risk_factors", "success_predictors"):
        items = _str_list(ai_payload.get(key))
        if items is None:
            return fallback
        analysis[key] = items
    return analysis
