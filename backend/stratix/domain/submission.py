"""Step submission planning.

Given a snapshot of the session and one step payload, decide every write the
service has to make. Pure function, no DB access: the service applies the
plan inside one RLS-scoped unit of work.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from stratix.core.exceptions import InvalidArgumentError
from stratix.domain.feedback import generate_feedback
from stratix.domain.steps import step_name_for
from stratix.domain.validation import ValidationResult, validate_step


@dataclass
class SessionSnapshot:
    """The session fields the planner reads."""

    current_step: int
    total_steps: int
    completion_percentage: int
    form_data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Any) -> "SessionSnapshot":
        return cls(
            current_step=row.current_step,
            total_steps=row.total_steps,
            completion_percentage=row.completion_percentage or 0,
            form_data=dict(row.form_data or {}),
        )


@dataclass
class SubmissionPlan:
    """Result of planning one step submission."""

    step_number: int
    step_name: str
    validation: ValidationResult
    completed: bool
    skipped: bool
    form_data: dict[str, Any]
    current_step: int
    completion_percentage: int
    completes_session: bool
    feedback: str

    @property
    def advanced(self) -> bool:
        return self.current_step > self.step_number


def merge_form_data(existing: dict[str, Any] | None, step_name: str, step_data: dict[str, Any]) -> dict[str, Any]:
    """Shallow per-step overwrite: ``form_data[step_name] = step_data``."""
    merged = dict(existing or {})
    merged[step_name] = dict(step_data)
    return merged


def missing_steps(total_steps: int, done_steps: Iterable[int], through: int | None = None) -> list[int]:
    """Step numbers in 1..through (default total_steps) not yet completed or skipped."""
    done = set(done_steps)
    last = total_steps if through is None else through
    return [n for n in range(1, last + 1) if n not in done]


def require_steps_done(total_steps: int, done_steps: Iterable[int], through: int | None = None) -> None:
    """Raises InvalidArgumentError naming how many steps are still pending."""
    pending = missing_steps(total_steps, done_steps, through)
    if pending:
        raise InvalidArgumentError(f"Faltan {len(pending)} pasos por completar")


def plan_step_submission(
    session: SessionSnapshot,
    step_number: int,
    step_data: dict[str, Any],
    completed: bool = False,
    skipped: bool = False,
    auto_advance: bool = True,
    done_steps: Iterable[int] = (),
) -> SubmissionPlan:
    """Plan the writes for one step submission.

    Rules:
        - The step is stored as completed only when the payload is valid
        - form_data is merged only for valid payloads
        - current_step advances when auto_advance is set, the step is
          completed or skipped, the payload is valid and the submitted step
          is the current one; it never passes total_steps
        - The stored percentage rises to step/total*100 on valid payloads
          and never decreases
        - A valid, completed final step completes the session, provided every
          earlier step is in ``done_steps`` (completed or skipped)

    Raises:
        InvalidArgumentError: If step_number is outside 1..total_steps, or
            the final step would complete the session with steps pending
    """
    if step_number < 1 or step_number > session.total_steps:
        raise InvalidArgumentError(f"Step number must be between 1 and {session.total_steps}")

    validation = validate_step(step_number, step_data)
    step_name = step_name_for(step_number)
    is_valid = validation.is_valid

    form_data = session.form_data
    current_step = session.current_step
    percentage = session.completion_percentage
    completes = False

    if is_valid:
        form_data = merge_form_data(session.form_data, step_name, step_data)
        percentage = max(percentage, int(step_number / session.total_steps * 100))

        if auto_advance and (completed or skipped) and step_number == session.current_step:
            current_step = min(step_number + 1, session.total_steps)

        if completed and step_number == session.total_steps:
            require_steps_done(session.total_steps, done_steps, through=step_number - 1)
            completes = True
            percentage = 100

    return SubmissionPlan(
        step_number=step_number,
        step_name=step_name,
        validation=validation,
        completed=completed and is_valid,
        skipped=skipped,
        form_data=form_data,
        current_step=current_step,
        completion_percentage=min(percentage, 100),
        completes_session=completes,
        feedback=generate_feedback(step_number, step_data, validation),
    )
