"""
AI Provider - Unified text generation over Anthropic Claude and Google Gemini

The configured provider is tried first; the other one is used as a
fallback when it has an API key. Callers get plain response text and
decide how to parse it (see extract_json).

Example:
    provider = AIProvider(get_settings())
    text = await provider.generate(system_prompt, user_prompt, temperature=0.1)
    data = extract_json(text)
"""
import json
from decimal import Decimal
from typing import Any, Optional

import anthropic
import google.generativeai as genai
import structlog

from packages.common.config import Settings
from packages.common.errors import GenerationError
from packages.common.metrics import AI_GENERATION_CALLS

logger = structlog.get_logger()

JSON_INSTRUCTION = "Return ONLY valid JSON, no markdown, no explanation, no code blocks."


def extract_json(response_text: str) -> Any:
    """
    Parse a JSON response, tolerating markdown code fences.

    Raises:
        ValueError: If the text is empty or not valid JSON
    """
    text = (response_text or "").strip()
    if not text:
        raise ValueError("Empty response")

    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif text.startswith("```"):
        text = text.split("```")[1].split("```")[0].strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Response is not valid JSON: {e}") from e


class AIProvider:
    """
    Text generation with primary/fallback provider selection.

    Uses the Anthropic async client and the google-generativeai SDK.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.primary = settings.ai_provider

        self._anthropic_client: Optional[anthropic.AsyncAnthropic] = None
        self._gemini_configured = False

        # Claude Sonnet pricing per 1K tokens
        self.input_cost_per_1k = Decimal("0.003")
        self.output_cost_per_1k = Decimal("0.015")

        if not self.available_providers():
            logger.warning("ai_provider_not_configured",
                           message="Neither ANTHROPIC_API_KEY nor GEMINI_API_KEY is set, generation will fail")

    def available_providers(self) -> list[str]:
        """Providers with credentials, primary first"""
        configured = {
            "anthropic": bool(self.settings.anthropic_api_key),
            "gemini": bool(self.settings.gemini_api_key),
        }
        order = [self.primary] + [p for p in ("anthropic", "gemini") if p != self.primary]
        return [p for p in order if configured[p]]

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        response_format: str = "json",
    ) -> str:
        """
        Generate text with the primary provider, falling back on failure.

        Args:
            system_prompt: Role and rules for the model
            user_prompt: Task input
            temperature: Sampling temperature
            response_format: "json" or "text"

        Returns:
            Non-empty response text

        Raises:
            GenerationError: If every configured provider fails
        """
        providers = self.available_providers()
        if not providers:
            raise GenerationError("No AI provider configured")

        errors = {}
        for provider in providers:
            try:
                logger.info("ai_generation_started",
                            provider=provider,
                            temperature=temperature,
                            response_format=response_format)
                if provider == "anthropic":
                    text = await self._generate_with_anthropic(
                        system_prompt, user_prompt, temperature, response_format
                    )
                else:
                    text = await self._generate_with_gemini(
                        system_prompt, user_prompt, temperature, response_format
                    )

                if not text or not text.strip():
                    raise GenerationError(f"Received empty response from {provider}")

                AI_GENERATION_CALLS.labels(provider=provider, outcome="success").inc()
                return text.strip()

            except Exception as e:
                AI_GENERATION_CALLS.labels(provider=provider, outcome="error").inc()
                errors[provider] = str(e)
                logger.warning("ai_generation_failed",
                               provider=provider,
                               error=str(e))

        raise GenerationError(
            f"All AI providers failed: {', '.join(errors)}",
            details={"errors": errors}
        )

    async def _generate_with_anthropic(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        response_format: str,
    ) -> str:
        if self._anthropic_client is None:
            self._anthropic_client = anthropic.AsyncAnthropic(
                api_key=self.settings.anthropic_api_key
            )

        if response_format == "json":
            system_prompt = f"{system_prompt}\n\n{JSON_INSTRUCTION}"

        response = await self._anthropic_client.messages.create(
            model=self.settings.anthropic_model,
            max_tokens=self.settings.anthropic_max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=[
                {
                    "role": "user",
                    "content": user_prompt
                }
            ]
        )

        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens
        logger.info("ai_generation_complete",
                    provider="anthropic",
                    model=self.settings.anthropic_model,
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    cost_usd=float(self._calculate_cost(input_tokens, output_tokens)))

        return response.content[0].text if response.content else ""

    async def _generate_with_gemini(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        response_format: str,
    ) -> str:
        if not self._gemini_configured:
            genai.configure(api_key=self.settings.gemini_api_key)
            self._gemini_configured = True

        model = genai.GenerativeModel(
            self.settings.gemini_model,
            system_instruction=system_prompt,
            generation_config=genai.GenerationConfig(
                temperature=temperature,
                response_mime_type="application/json" if response_format == "json" else "text/plain",
            ),
        )
        response = await model.generate_content_async(user_prompt)

        logger.info("ai_generation_complete",
                    provider="gemini",
                    model=self.settings.gemini_model)

        return response.text

    def _calculate_cost(self, input_tokens: int, output_tokens: int) -> Decimal:
        """Cost of one Anthropic call in USD"""
        input_cost = (Decimal(input_tokens) / 1000) * self.input_cost_per_1k
        output_cost = (Decimal(output_tokens) / 1000) * self.output_cost_per_1k
        return input_cost + output_cost
