"""Canned feedback messages shown after a step submission.

Lookup table keyed by (step, discriminant field value). Pure, no I/O.
"""

from collections.abc import Mapping
from typing import Any

from stratix.domain.validation import ValidationResult

INVALID_SUBMISSION = "Por favor, completa los campos requeridos antes de continuar."
UNKNOWN_STEP = "¡Excelente progreso! Continuemos con el siguiente paso."

# step -> discriminant field
DISCRIMINANTS: dict[int, str] = {
    1: "experience_with_okr",
    2: "company_size",
    3: "current_challenges",
    4: "ai_assistance_level",
}

# (step, value) -> message. For list-valued discriminants, entries are
# checked in insertion order and the first member present wins.
MESSAGES: dict[tuple[int, str], str] = {
    (1, "none"): (
        "¡Perfecto! Es genial que estés comenzando con OKRs. "
        "Te guiaré paso a paso para que tengas una excelente experiencia."
    ),
    (1, "advanced"): (
        "Excelente, con tu experiencia avanzada podremos configurar características "
        "más sofisticadas. ¡Esto será rápido!"
    ),
    (2, "startup"): (
        "Las startups necesitan agilidad. Te ayudaré a configurar OKRs que permitan "
        "pivotear rápidamente mientras mantienes el enfoque."
    ),
    (2, "corporacion"): (
        "Las corporaciones requieren alineación a gran escala. Configuraremos un sistema "
        "que facilite la coordinación entre múltiples equipos."
    ),
    (3, "alignment"): (
        "La alineación es crucial. Priorizaremos características que mejoren la "
        "visibilidad y coordinación entre equipos."
    ),
    (3, "measurement"): (
        "Excelente identificación. Te ayudaré a configurar métricas claras y dashboards "
        "que faciliten el seguimiento."
    ),
    (4, "extensive"): (
        "¡Perfecto! Te proporcionaré sugerencias proactivas y análisis detallados para "
        "optimizar tus OKRs continuamente."
    ),
    (4, "minimal"): "Entendido, mantendré las sugerencias de IA al mínimo y solo cuando sea realmente útil.",
}

DEFAULTS: dict[int, str] = {
    1: "¡Genial! Con tu nivel de experiencia, te ayudaré a aprovechar al máximo StratixV2.",
    2: (
        "Perfecto, entiendo tu contexto empresarial. Esto me ayudará a sugerir OKRs "
        "específicos para tu industria y tamaño."
    ),
    3: "Con esta información podré personalizar tu experiencia para abordar tus desafíos específicos.",
    4: "Excelente, he configurado tu experiencia según tus preferencias. ¡Estás casi listo!",
    5: (
        "¡Fantástico! Has completado la configuración inicial. Ahora te ayudaré a crear "
        "tu primera estructura de OKRs."
    ),
}


def generate_feedback(step_number: int, step_data: Mapping[str, Any], validation: ValidationResult) -> str:
    """Pick the feedback message for a submission."""
    if not validation.is_valid:
        return INVALID_SUBMISSION

    if step_number not in DEFAULTS:
        return UNKNOWN_STEP

    discriminant = DISCRIMINANTS.get(step_number)
    if discriminant is None:
        return DEFAULTS[step_number]

    value = step_data.get(discriminant)
    if isinstance(value, list):
        for (step, candidate), message in MESSAGES.items():
            if step == step_number and candidate in value:
                return message
    elif isinstance(value, str):
        message = MESSAGES.get((step_number, value))
        if message:
            return message

    return DEFAULTS[step_number]


def welcome_greeting(language: str = "es", style: str = "formal", experience_level: str = "beginner") -> str:
    """Greeting returned when a session is started or resumed."""
    first_time = experience_level in ("none", "beginner")
    if language == "en":
        if style == "formal":
            return (
                "Welcome to StratixV2! I'll help you set up your OKR management system. "
                f"Based on your {experience_level} experience level, I'll provide appropriate "
                "guidance throughout the process."
            )
        return (
            "Hey there! 👋 Welcome to StratixV2! I'm here to help you get started with OKRs. "
            f"Don't worry if you're {'new to this' if first_time else 'still learning'} - we'll make it easy!"
        )

    if style == "formal":
        return (
            "Bienvenido a StratixV2. Le ayudaré a configurar su sistema de gestión de OKRs. "
            f"Basándome en su nivel de experiencia {experience_level}, proporcionaré la "
            "orientación adecuada durante todo el proceso."
        )
    reassurance = "No te preocupes si es tu primera vez" if first_time else "Tranquilo si aún estás aprendiendo"
    return (
        "¡Hola! 👋 ¡Bienvenido a StratixV2! Estoy aquí para ayudarte a empezar con los OKRs. "
        f"{reassurance} - ¡lo haremos fácil!"
    )
