"""Tests for the completion summary heuristics."""

import pytest

from stratix.domain.summary import (
    GENERAL_NEXT_STEPS,
    build_completion_summary,
    completion_report,
    next_steps,
    recommend_okrs,
)

pytestmark = pytest.mark.unit


def _form(experience="none", size="startup", urgency="medium", challenges=(), goals=(), **sections):
    form = {
        "welcome": {"full_name": "Ana", "experience_with_okr": experience, "urgency_level": urgency},
        "company": {"company_name": "Acme", "company_size": size},
        "organization": {"current_challenges": list(challenges), "business_goals": list(goals)},
    }
    form.update(sections)
    return form


def test_summary_for_first_time_startup_with_high_urgency():
    summary = build_completion_summary(_form(urgency="high"))

    assert summary.startswith("¡Felicitaciones, Ana! Has completado exitosamente")
    assert "primera experiencia con OKRs" in summary
    assert "Para startups como Acme" in summary
    assert "alta urgencia" in summary
    assert summary.endswith("que he considerado en las recomendaciones.")
    assert "sector tecnología" in summary


def test_summary_for_advanced_corporation_names_industry():
    summary = build_completion_summary(_form(experience="advanced", size="corporacion"), industry_name="Retail")

    assert "experiencia avanzada" in summary
    assert "organizaciones grandes como Acme" in summary
    assert "sector Retail" in summary
    assert "alta urgencia" not in summary


def test_summary_tolerates_empty_form_data():
    summary = build_completion_summary({})

    assert summary.startswith("¡Felicitaciones, equipo!")


def test_growth_okr_depends_on_company_size():
    startup = recommend_okrs(_form(goals=["revenue_growth"]))
    established = recommend_okrs(_form(size="pyme", goals=["market_expansion"]))

    assert [o["objective"] for o in startup] == ["Acelerar el crecimiento de ingresos y base de clientes"]
    assert [o["objective"] for o in established] == ["Expandir presencia en el mercado y aumentar ingresos"]
    assert len(startup[0]["key_results"]) == 3


def test_customer_okr_depends_on_industry():
    form = _form(challenges=["communication"])

    default = recommend_okrs(form)
    retail = recommend_okrs(form, industry_name="Retail")

    assert default[0]["objective"] == "Elevar la experiencia y satisfacción del cliente"
    assert retail[0]["objective"] == "Fortalecer relaciones con clientes y aumentar retención"


def test_recommendations_are_capped_at_four():
    form = _form(
        challenges=["execution", "culture", "communication"],
        goals=["revenue_growth", "innovation"],
    )

    okrs = recommend_okrs(form)

    assert len(okrs) == 4
    assert okrs[-1]["objective"] == "Acelerar innovación y desarrollo de productos"


def test_no_matching_goals_means_no_recommendations():
    assert recommend_okrs(_form(goals=["sustainability"])) == []


def test_next_steps_for_intermediate_user():
    steps = next_steps(_form(experience="intermediate"))

    assert steps[0].endswith("personalízalos según tu contexto")
    assert steps[2:] == list(GENERAL_NEXT_STEPS)


def test_next_steps_are_capped_at_six():
    form = _form(
        preferences={"ai_assistance_level": "extensive"},
        review={"setup_demo": "yes", "invite_team_members": "immediately"},
    )

    steps = next_steps(form)

    assert len(steps) == 6
    assert "🤖 Activa notificaciones de IA para obtener sugerencias proactivas" in steps
    assert any("Invita a tu equipo" in step for step in steps)
    assert steps[-1] == "🔐 Configura permisos y roles para cada miembro del equipo"
    assert GENERAL_NEXT_STEPS[0] not in steps


def test_completion_report_shape():
    report = completion_report(None)

    assert set(report) == {"ai_summary", "recommended_okrs", "next_steps"}
    assert report["recommended_okrs"] == []
