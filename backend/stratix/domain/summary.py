"""Completion summary for a finished onboarding session.

Deterministic text built from the session's form_data: a personalised
summary paragraph, up to four recommended OKRs and up to six next steps.
Pure functions, no I/O.
"""

from typing import Any

DEFAULT_INDUSTRY = "tecnología"
MAX_RECOMMENDED_OKRS = 4
MAX_NEXT_STEPS = 6

GENERAL_NEXT_STEPS = (
    "✅ Crea tu primer OKR siguiendo las recomendaciones personalizadas",
    "📝 Programa tu primera revisión semanal de progreso",
    "🎯 Explora la biblioteca de plantillas de OKRs para tu industria",
)


def _section(form_data: dict[str, Any], name: str) -> dict[str, Any]:
    value = form_data.get(name)
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []


def build_completion_summary(form_data: dict[str, Any], industry_name: str | None = None) -> str:
    """Congratulation paragraph tuned to OKR experience, company size and urgency."""
    welcome = _section(form_data, "welcome")
    company = _section(form_data, "company")

    experience = welcome.get("experience_with_okr") or "none"
    size = company.get("company_size") or "startup"
    urgency = welcome.get("urgency_level") or "medium"
    industry = industry_name or DEFAULT_INDUSTRY
    company_name = company.get("company_name") or "tu empresa"

    parts = [
        f"¡Felicitaciones, {welcome.get('full_name') or 'equipo'}! "
        "Has completado exitosamente la configuración inicial de StratixV2."
    ]

    if experience == "none":
        parts.append(
            "Como esta es tu primera experiencia con OKRs, he preparado una guía paso a paso "
            "que te ayudará a comenzar de manera gradual."
        )
    elif experience == "advanced":
        parts.append(
            "Con tu experiencia avanzada en OKRs, tienes acceso a todas las características "
            "avanzadas desde el inicio."
        )

    if size == "startup":
        parts.append(
            f"Para startups como {company_name}, es crucial mantener flexibilidad mientras se "
            "mantiene el enfoque en resultados clave."
        )
    elif size == "corporacion":
        parts.append(
            f"Para organizaciones grandes como {company_name}, la alineación entre equipos será "
            "fundamental para el éxito."
        )

    if urgency == "high":
        parts.append(
            "He notado que tienes alta urgencia, por lo que priorizaré configuraciones que te "
            "permitan ver resultados rápidamente."
        )

    parts.append(
        f"Tu empresa en el sector {industry} tiene características únicas que he considerado "
        "en las recomendaciones."
    )
    return " ".join(parts)


def _okr(objective: str, key_results: list[str], rationale: str) -> dict[str, Any]:
    return {"objective": objective, "key_results": key_results, "rationale": rationale}


def recommend_okrs(form_data: dict[str, Any], industry_name: str | None = None) -> list[dict[str, Any]]:
    """Starter OKRs picked from business goals and current challenges.

    Returns:
        At most four {"objective", "key_results", "rationale"} dicts, in
        growth, efficiency, customer, innovation, team order
    """
    company = _section(form_data, "company")
    organization = _section(form_data, "organization")

    size = company.get("company_size") or "startup"
    challenges = _as_list(organization.get("current_challenges"))
    goals = _as_list(organization.get("business_goals"))
    industry = industry_name or DEFAULT_INDUSTRY

    okrs = []

    if "revenue_growth" in goals or "market_expansion" in goals:
        if size == "startup":
            okrs.append(_okr(
                "Acelerar el crecimiento de ingresos y base de clientes",
                [
                    "Aumentar ingresos mensuales recurrentes (MRR) en 100%",
                    "Adquirir 50 nuevos clientes activos",
                    "Reducir el costo de adquisición de clientes (CAC) en 25%",
                ],
                f"Para startups en {industry}, el crecimiento acelerado es fundamental. "
                "Este OKR equilibra crecimiento con eficiencia.",
            ))
        else:
            okrs.append(_okr(
                "Expandir presencia en el mercado y aumentar ingresos",
                [
                    "Incrementar ingresos en 40% comparado con el trimestre anterior",
                    "Lanzar en 2 nuevos mercados geográficos",
                    "Mejorar tasa de conversión de leads en 30%",
                ],
                f"Para empresas establecidas en {industry}, la expansión sostenible es clave "
                "para mantener competitividad.",
            ))

    if "execution" in challenges or "resources" in challenges or "operational_efficiency" in goals:
        okrs.append(_okr(
            "Optimizar procesos operativos y eficiencia del equipo",
            [
                "Reducir tiempo de entrega de proyectos en 30%",
                "Automatizar 80% de tareas repetitivas",
                "Aumentar satisfacción del equipo a 4.5/5",
            ],
            "La eficiencia operativa mejora tanto la productividad como la moral del equipo, "
            "creando un círculo virtuoso de rendimiento.",
        ))

    if "customer_satisfaction" in goals or "communication" in challenges:
        lowered = industry.lower()
        if "tecnología" in lowered or "software" in lowered:
            okrs.append(_okr(
                "Elevar la experiencia y satisfacción del cliente",
                [
                    "Alcanzar NPS (Net Promoter Score) de 70+",
                    "Reducir tiempo de respuesta de soporte a < 2 horas",
                    "Implementar 3 mejoras solicitadas por clientes",
                ],
                "En tecnología, la experiencia del cliente diferencia productos similares y "
                "genera lealtad a largo plazo.",
            ))
        else:
            okrs.append(_okr(
                "Fortalecer relaciones con clientes y aumentar retención",
                [
                    "Aumentar tasa de retención de clientes al 90%",
                    "Implementar programa de feedback mensual",
                    "Reducir quejas de clientes en 50%",
                ],
                "La retención de clientes es más rentable que la adquisición y fortalece la "
                "base de ingresos.",
            ))

    if "product_development" in goals or "innovation" in goals:
        okrs.append(_okr(
            "Acelerar innovación y desarrollo de productos",
            [
                "Lanzar 2 características principales solicitadas por usuarios",
                "Reducir tiempo de desarrollo de features en 40%",
                "Alcanzar 95% de adopción de nuevas características",
            ],
            "La innovación continua mantiene relevancia en el mercado y satisface necesidades "
            "evolutivas de los clientes.",
        ))

    if "culture" in challenges or "alignment" in challenges or "team_development" in goals:
        okrs.append(_okr(
            "Desarrollar capacidades del equipo y cultura organizacional",
            [
                "100% del equipo completa plan de desarrollo individual",
                "Implementar 1-on-1s semanales con 95% de cumplimiento",
                "Mejorar alineación organizacional a 4.2/5 en encuesta",
            ],
            "El desarrollo del equipo es la base de todos los demás logros organizacionales y "
            "mejora la retención de talento.",
        ))

    return okrs[:MAX_RECOMMENDED_OKRS]


def next_steps(form_data: dict[str, Any]) -> list[str]:
    """Follow-up actions from OKR experience, AI assistance level and review answers."""
    welcome = _section(form_data, "welcome")
    preferences = _section(form_data, "preferences")
    review = _section(form_data, "review")

    experience = welcome.get("experience_with_okr") or "none"
    steps = []

    if experience == "none":
        steps += [
            "📚 Revisa la guía 'OKRs para Principiantes' en tu dashboard",
            "🎯 Define tu primer objetivo usando la plantilla sugerida",
        ]
    elif experience == "advanced":
        steps += [
            "⚡ Configura integraciones avanzadas en Configuración > Integraciones",
            "📊 Personaliza tu dashboard con métricas específicas",
        ]
    else:
        steps += [
            "🔍 Explora los OKRs sugeridos y personalízalos según tu contexto",
            "📈 Configura tus primeras métricas de seguimiento",
        ]

    if (preferences.get("ai_assistance_level") or "moderate") == "extensive":
        steps.append("🤖 Activa notificaciones de IA para obtener sugerencias proactivas")

    if review.get("setup_demo") == "yes":
        steps.append("📅 Un especialista te contactará en 24-48 horas para agendar tu demo personalizada")

    if review.get("invite_team_members") in ("immediately", "soon"):
        steps += [
            "👥 Invita a tu equipo usando el botón 'Invitar Miembros' en tu dashboard",
            "🔐 Configura permisos y roles para cada miembro del equipo",
        ]

    steps += GENERAL_NEXT_STEPS
    return steps[:MAX_NEXT_STEPS]


def completion_report(form_data: dict[str, Any], industry_name: str | None = None) -> dict[str, Any]:
    """{"ai_summary", "recommended_okrs", "next_steps"} for the completion endpoints."""
    form_data = form_data or {}
    return {
        "ai_summary": build_completion_summary(form_data, industry_name),
        "recommended_okrs": recommend_okrs(form_data, industry_name),
        "next_steps": next_steps(form_data),
    }
