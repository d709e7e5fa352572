"""AI enhancement layer for onboarding: smart completion, analysis, step review.

Architecture:
- AITextService: direct anthropic.AsyncAnthropic call, tenacity retry on 529
  overload, asyncio.wait_for timeout. Any failure surfaces as
  UpstreamUnavailableError.
- SmartCompletionService: runs the deterministic heuristics from
  stratix.domain.completion first, then layers parsed AI output on top.
  It never raises because of the AI provider; the heuristic result is
  returned with source="fallback" instead.
"""

import asyncio
import json
from typing import Any

import anthropic
import structlog
from anthropic._exceptions import OverloadedError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from stratix.core.config import get_settings
from stratix.core.exceptions import UpstreamUnavailableError
from stratix.domain import completion
from stratix.domain.steps import step_name_for
from stratix.domain.validation import validate_step

logger = structlog.get_logger(__name__)

AI_TIMEOUT_SECONDS: float = 20.0

_SYSTEM_PROMPT = (
    "Eres el asistente de onboarding de StratixV2, una plataforma de gestión de OKRs. "
    "Responde siempre con un único objeto JSON válido, sin texto adicional."
)


def _strip_json_fences(content: str) -> str:
    """Remove markdown code fences wrapping JSON output."""
    content = content.strip()
    if content.startswith("```"):
        first_newline = content.find("\n")
        if first_newline != -1:
            content = content[first_newline + 1 :]
        if content.endswith("```"):
            content = content[:-3].rstrip()
    return content


def _parse_json_response(content: str) -> Any:
    return json.loads(_strip_json_fences(content))


@retry(
    retry=retry_if_exception_type(OverloadedError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    reraise=True,
    before_sleep=lambda rs: logger.warning(
        "claude_overloaded_retrying",
        attempt=rs.attempt_number,
        sleep_seconds=rs.next_action.sleep,
    ),
)
async def _create_message(client: Any, model: str, prompt: str, max_tokens: int, temperature: float) -> str:
    response = await client.messages.create(
        model=model,
        system=_SYSTEM_PROMPT,
        messages=[{"role": "user", "content": prompt}],
        max_tokens=max_tokens,
        temperature=temperature,
    )
    return response.content[0].text


class AITextService:
    """Thin text-generation client. Output is untrusted free text."""

    def __init__(self, client: Any | None = None, model: str | None = None):
        settings = get_settings()
        self.model = model or settings.ai_model
        self._client = client
        self._api_key = settings.anthropic_api_key

    def _get_client(self) -> Any:
        if self._client is None:
            if not self._api_key:
                raise UpstreamUnavailableError("AI provider is not configured")
            self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._client

    async def generate_text(self, prompt: str, max_tokens: int | None = None, temperature: float | None = None) -> str:
        """Generate a completion.

        Raises:
            UpstreamUnavailableError: On missing configuration, timeout or any API error
        """
        settings = get_settings()
        client = self._get_client()
        try:
            return await asyncio.wait_for(
                _create_message(
                    client,
                    self.model,
                    prompt,
                    max_tokens or settings.ai_max_tokens,
                    settings.ai_temperature if temperature is None else temperature,
                ),
                timeout=AI_TIMEOUT_SECONDS,
            )
        except TimeoutError as e:
            raise UpstreamUnavailableError("AI provider timed out") from e
        except anthropic.APIError as e:
            raise UpstreamUnavailableError(f"AI provider error: {type(e).__name__}") from e


class SmartCompletionService:
    """Heuristics first, AI on top when it answers with the expected shape."""

    def __init__(self, text_service: AITextService | None = None):
        self.text_service = text_service or AITextService()

    async def _ask_json(self, operation: str, prompt: str, max_tokens: int, temperature: float) -> Any | None:
        try:
            text = await self.text_service.generate_text(prompt, max_tokens=max_tokens, temperature=temperature)
            return _parse_json_response(text)
        except UpstreamUnavailableError as e:
            logger.warning("ai_fallback_used", operation=operation, reason=e.message)
        except (ValueError, IndexError, AttributeError) as e:
            logger.warning("ai_fallback_used", operation=operation, reason="unparseable_response", error=str(e))
        return None

    async def smart_fill(self, form_data: dict[str, Any], fields: list[str] | None = None) -> dict:
        """Complete missing fields. Returns the completion dict plus ``source``."""
        result = completion.fallback_completion(form_data, fields)
        payload = await self._ask_json("completion", completion.completion_prompt(form_data, fields), 1500, 0.4)
        if payload is None:
            return {**result, "source": "fallback"}
        return {**completion.merge_ai_completion(result, payload, fields), "source": "ai"}

    async def analyze(self, form_data: dict[str, Any], total_steps: int, progress: list[Any]) -> dict:
        """Completeness analysis of a whole session."""
        fallback = completion.fallback_analysis(total_steps, progress)
        progress_view = [
            {"step_number": p.step_number, "step_name": p.step_name, "completed": p.completed, "skipped": p.skipped}
            for p in progress
        ]
        payload = await self._ask_json("analysis", completion.analysis_prompt(form_data, progress_view), 1200, 0.3)
        if payload is None:
            return {**fallback, "source": "fallback"}
        analysis = completion.coerce_analysis(fallback, payload)
        return {**analysis, "source": "ai" if analysis is not fallback else "fallback"}

    async def review_step(self, step_number: int, step_data: dict[str, Any], context: dict[str, Any] | None = None) -> dict:
        """Schema validation plus an optional AI review of one step."""
        validation = validate_step(step_number, step_data)
        base = completion.fallback_step_review(validation)
        if not validation.is_valid:
            # No point asking the model about a payload the schema already rejects
            return {**base, "source": "schema"}

        prompt = completion.step_review_prompt(step_name_for(step_number), step_data, context)
        payload = await self._ask_json("validation", prompt, 800, 0.2)
        if payload is None:
            return {**base, "source": "fallback"}
        return {**completion.merge_ai_step_review(base, payload), "source": "ai"}
