"""Onboarding step catalogue.

One table keyed by step number drives the validator, the "next step"
metadata returned to the client, and time-remaining estimates.

Pure data with no external dependencies.
"""

from dataclasses import dataclass, field
from enum import StrEnum


class FieldType(StrEnum):
    TEXT = "text"
    TEXTAREA = "textarea"
    SELECT = "select"
    MULTISELECT = "multiselect"
    NUMBER = "number"


@dataclass(frozen=True)
class StepField:
    """One form field and its validation rules.

    ``required_message`` is the canonical error emitted when a required field
    is missing. ``must_equal`` turns a select into a confirmation checkbox.
    """

    name: str
    type: FieldType
    label: str
    required: bool = False
    required_message: str = ""
    options: tuple[tuple[str, str], ...] = ()
    placeholder: str | None = None
    min_value: int | None = None
    max_value: int | None = None
    must_equal: str | None = None
    url: bool = False

    @property
    def option_values(self) -> frozenset[str]:
        return frozenset(value for value, _ in self.options)

    def to_dict(self) -> dict:
        data: dict = {
            "name": self.name,
            "type": self.type.value,
            "label": self.label,
            "required": self.required,
        }
        if self.placeholder:
            data["placeholder"] = self.placeholder
        if self.type in (FieldType.SELECT, FieldType.MULTISELECT):
            data["options"] = [{"value": v, "label": lbl} for v, lbl in self.options]
        if self.min_value is not None or self.max_value is not None:
            data["validation"] = {"min": self.min_value, "max": self.max_value}
        return data


@dataclass(frozen=True)
class StepDefinition:
    step_number: int
    step_name: str
    title: str
    description: str
    fields: tuple[StepField, ...]
    ai_hints: tuple[str, ...] = field(default_factory=tuple)
    estimated_time: int = 5  # minutes

    def to_dict(self) -> dict:
        return {
            "step_number": self.step_number,
            "step_name": self.step_name,
            "title": self.title,
            "description": self.description,
            "fields": [f.to_dict() for f in self.fields],
            "ai_hints": list(self.ai_hints),
            "estimated_time": self.estimated_time,
        }


DEFAULT_TOTAL_STEPS = 5
DEFAULT_STEP_MINUTES = 5

COMPANY_SIZE_OPTIONS = (
    ("startup", "Startup (1-10 empleados)"),
    ("pyme", "PyME (11-50 empleados)"),
    ("empresa", "Empresa (51-250 empleados)"),
    ("corporacion", "Corporación (250+ empleados)"),
)

CHALLENGE_OPTIONS = (
    ("alignment", "Alineación entre equipos"),
    ("measurement", "Medición y seguimiento"),
    ("focus", "Falta de enfoque y priorización"),
    ("communication", "Comunicación de objetivos"),
    ("execution", "Ejecución de estrategias"),
    ("culture", "Cultura de resultados"),
    ("resources", "Gestión de recursos"),
    ("growth", "Escalamiento del negocio"),
)

BUSINESS_GOAL_OPTIONS = (
    ("revenue_growth", "Crecimiento de ingresos"),
    ("market_expansion", "Expansión de mercado"),
    ("product_development", "Desarrollo de producto"),
    ("operational_efficiency", "Eficiencia operacional"),
    ("customer_satisfaction", "Satisfacción del cliente"),
    ("team_development", "Desarrollo del equipo"),
    ("innovation", "Innovación"),
    ("sustainability", "Sostenibilidad"),
)


WELCOME = StepDefinition(
    step_number=1,
    step_name="welcome",
    title="Bienvenido a StratixV2",
    description="Cuéntanos sobre ti y tu experiencia con OKRs para personalizar tu experiencia.",
    fields=(
        StepField(
            "full_name", FieldType.TEXT, "Nombre completo",
            required=True, required_message="El nombre completo es requerido",
            placeholder="Tu nombre completo",
        ),
        StepField(
            "job_title", FieldType.TEXT, "Cargo o posición",
            required=True, required_message="El cargo o posición es requerido",
            placeholder="Ej: CEO, Gerente de Producto, etc.",
        ),
        StepField(
            "experience_with_okr", FieldType.SELECT, "¿Cuál es tu experiencia con OKRs?",
            required=True, required_message="La experiencia con OKRs es requerida",
            options=(
                ("none", "Nunca he usado OKRs"),
                ("basic", "Conocimiento básico"),
                ("intermediate", "Experiencia intermedia"),
                ("advanced", "Experto en OKRs"),
            ),
        ),
        StepField(
            "primary_goal", FieldType.TEXTAREA, "¿Cuál es tu objetivo principal con StratixV2?",
            required=True, required_message="El objetivo principal es requerido",
            placeholder="Describe qué esperas lograr...",
        ),
        StepField(
            "urgency_level", FieldType.SELECT, "¿Qué tan urgente es implementar OKRs?",
            required=True, required_message="El nivel de urgencia es requerido",
            options=(
                ("low", "Puedo tomarlo con calma"),
                ("medium", "Moderadamente urgente"),
                ("high", "Muy urgente"),
            ),
        ),
    ),
    ai_hints=(
        "La información que proporciones nos ayudará a personalizar tu experiencia",
        "Sé honesto sobre tu nivel de experiencia - no hay respuestas incorrectas",
        "Podemos adaptar el proceso según tu urgencia",
    ),
    estimated_time=3,
)

COMPANY = StepDefinition(
    step_number=2,
    step_name="company",
    title="Información de tu empresa",
    description="Ayúdanos a entender tu contexto empresarial para brindarte recomendaciones más precisas.",
    fields=(
        StepField(
            "company_name", FieldType.TEXT, "Nombre de la empresa",
            required=True, required_message="El nombre de la empresa es requerido",
            placeholder="Nombre de tu empresa",
        ),
        # Options come from the industries catalogue, not validated here
        StepField("industry_id", FieldType.SELECT, "Industria"),
        StepField(
            "company_size", FieldType.SELECT, "Tamaño de la empresa",
            required=True, required_message="El tamaño de la empresa es requerido",
            options=COMPANY_SIZE_OPTIONS,
        ),
        StepField(
            "description", FieldType.TEXTAREA, "Descripción de la empresa",
            required=True, required_message="La descripción de la empresa es requerida",
            placeholder="Describe brevemente lo que hace tu empresa...",
        ),
        StepField("website", FieldType.TEXT, "Sitio web (opcional)", placeholder="https://...", url=True),
        StepField(
            "country", FieldType.TEXT, "País",
            required=True, required_message="El país es requerido",
            placeholder="País donde opera la empresa",
        ),
        StepField(
            "employee_count", FieldType.NUMBER, "Número de empleados (aproximado)",
            min_value=1, max_value=100000,
        ),
    ),
    ai_hints=(
        "Esta información nos ayuda a sugerir OKRs específicos para tu industria",
        "Si no encuentras tu industria, selecciona la más similar",
        "El tamaño de empresa influye en la complejidad de los OKRs recomendados",
    ),
    estimated_time=4,
)

ORGANIZATION = StepDefinition(
    step_number=3,
    step_name="organization",
    title="Estructura organizacional",
    description="Entendamos cómo está estructurada tu organización y tu experiencia con metodologías ágiles.",
    fields=(
        StepField(
            "department", FieldType.TEXT, "Departamento o área",
            placeholder="Ej: Producto, Marketing, Ventas...",
        ),
        StepField("team_size", FieldType.NUMBER, "Tamaño de tu equipo directo", min_value=0, max_value=500),
        StepField(
            "okr_maturity", FieldType.SELECT, "Nivel de madurez organizacional con OKRs",
            required=True, required_message="El nivel de madurez con OKRs es requerido",
            options=(
                ("beginner", "Principiante - Primera vez con OKRs"),
                ("intermediate", "Intermedio - Algunos ciclos de OKRs"),
                ("advanced", "Avanzado - OKRs bien establecidos"),
            ),
        ),
        StepField(
            "current_challenges", FieldType.MULTISELECT, "Principales desafíos actuales",
            required=True, required_message="Debe seleccionar al menos un desafío actual",
            options=CHALLENGE_OPTIONS,
        ),
        StepField(
            "business_goals", FieldType.MULTISELECT, "Objetivos de negocio prioritarios",
            required=True, required_message="Debe seleccionar al menos un objetivo de negocio",
            options=BUSINESS_GOAL_OPTIONS,
        ),
    ),
    ai_hints=(
        "Los desafíos actuales nos ayudan a priorizar las características más útiles",
        "Los objetivos de negocio guían nuestras recomendaciones de OKRs",
        "Esta información se usa para personalizar tu dashboard inicial",
    ),
    estimated_time=5,
)

PREFERENCES = StepDefinition(
    step_number=4,
    step_name="preferences",
    title="Preferencias del sistema",
    description="Personaliza tu experiencia en StratixV2 según tus preferencias de trabajo.",
    fields=(
        StepField(
            "communication_style", FieldType.SELECT, "Estilo de comunicación preferido",
            required=True, required_message="El estilo de comunicación es requerido",
            options=(("formal", "Formal y profesional"), ("informal", "Amigable e informal")),
        ),
        StepField(
            "language", FieldType.SELECT, "Idioma preferido",
            required=True, required_message="El idioma es requerido",
            options=(("es", "Español"), ("en", "English")),
        ),
        StepField(
            "notification_frequency", FieldType.SELECT, "Frecuencia de notificaciones",
            required=True, required_message="La frecuencia de notificaciones es requerida",
            options=(("daily", "Diarias"), ("weekly", "Semanales"), ("monthly", "Mensuales")),
        ),
        StepField(
            "focus_areas", FieldType.MULTISELECT, "Áreas de enfoque principales",
            required=True, required_message="Debe seleccionar al menos un área de enfoque",
            options=(
                ("strategy", "Planificación estratégica"),
                ("execution", "Ejecución y seguimiento"),
                ("analytics", "Análisis y métricas"),
                ("collaboration", "Colaboración en equipo"),
                ("reporting", "Reportes y comunicación"),
            ),
        ),
        StepField(
            "ai_assistance_level", FieldType.SELECT, "Nivel de asistencia de IA",
            required=True, required_message="El nivel de asistencia de IA es requerido",
            options=(
                ("minimal", "Mínima - Solo cuando lo solicite"),
                ("moderate", "Moderada - Sugerencias ocasionales"),
                ("extensive", "Extensiva - Máxima asistencia"),
            ),
        ),
    ),
    ai_hints=(
        "Estas preferencias se pueden cambiar después en tu perfil",
        "El nivel de asistencia de IA afecta la frecuencia de sugerencias",
        "Las áreas de enfoque determinan qué características priorizamos",
    ),
    estimated_time=3,
)

REVIEW = StepDefinition(
    step_number=5,
    step_name="review",
    title="Revisión y confirmación",
    description="Revisa tu información y confirma para completar la configuración inicial.",
    fields=(
        StepField(
            "confirmed", FieldType.SELECT, "¿Confirmas que la información es correcta?",
            required=True, required_message="Debe confirmar que la información es correcta",
            options=(("true", "Sí, la información es correcta"), ("false", "No, quiero hacer cambios")),
            must_equal="true",
        ),
        StepField(
            "additional_notes", FieldType.TEXTAREA, "Notas adicionales (opcional)",
            placeholder="Cualquier información adicional que consideres relevante...",
        ),
        StepField(
            "setup_demo", FieldType.SELECT, "¿Te gustaría una demostración personalizada?",
            options=(("yes", "Sí, agendar demo"), ("no", "No por ahora"), ("later", "Tal vez más tarde")),
        ),
        StepField(
            "invite_team_members", FieldType.SELECT, "¿Planeas invitar miembros del equipo?",
            options=(
                ("immediately", "Inmediatamente"),
                ("soon", "En los próximos días"),
                ("later", "Más adelante"),
                ("no", "Solo yo por ahora"),
            ),
        ),
    ),
    ai_hints=(
        "Puedes editar cualquier información después de completar el onboarding",
        "La demo te ayudará a aprovechar al máximo StratixV2",
        "Invitar miembros del equipo mejora la colaboración en OKRs",
    ),
    estimated_time=2,
)

STEPS: dict[int, StepDefinition] = {step.step_number: step for step in (WELCOME, COMPANY, ORGANIZATION, PREFERENCES, REVIEW)}

STEP_NUMBERS_BY_NAME: dict[str, int] = {step.step_name: number for number, step in STEPS.items()}


def get_step(step_number: int) -> StepDefinition | None:
    return STEPS.get(step_number)


def step_name_for(step_number: int) -> str:
    """Return the catalogue name, or ``step_<n>`` for numbers outside it."""
    step = STEPS.get(step_number)
    return step.step_name if step else f"step_{step_number}"


def estimated_minutes(step_number: int) -> int:
    step = STEPS.get(step_number)
    return step.estimated_time if step else DEFAULT_STEP_MINUTES
