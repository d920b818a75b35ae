"""Generation-model client.

Wraps the OpenAI-compatible chat API (OpenRouter or OpenAI) and the Anthropic
messages API behind one ``complete`` call taking role-tagged messages.
Transient connection failures are retried with exponential backoff; anything
that still fails surfaces as ``GenerationError``.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from research.config import ResearchConfig
from research.errors import ConfigurationError, GenerationError
from research.prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)


@dataclass
class Completion:
    """Text produced by one generation call."""
    content: str
    model: str = ""
    usage: dict = field(default_factory=dict)


class GenerationBackend(Protocol):
    def complete(
        self,
        messages: list[dict],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Completion:
        ...


class LLMClient:
    """Chat-completion client for OpenRouter, OpenAI, or Anthropic."""

    def __init__(self, config: ResearchConfig):
        config.require("llm_provider", "llm_model", "llm_api_key")
        self.config = config
        self.provider = config.llm_provider
        self.model = config.llm_model

        if self.provider == "anthropic":
            import anthropic
            self.client = anthropic.Anthropic(
                api_key=config.llm_api_key,
                timeout=config.llm_timeout_seconds,
                max_retries=0,
            )
            self._transient_errors = (
                anthropic.APIConnectionError,
                anthropic.RateLimitError,
                anthropic.InternalServerError,
            )
        elif self.provider in ("openrouter", "openai"):
            import openai
            self.client = openai.OpenAI(
                api_key=config.llm_api_key,
                base_url=config.llm_base_url or None,
                timeout=config.llm_timeout_seconds,
                max_retries=0,
                default_headers={"X-Title": "Transcript Research Assistant"},
            )
            self._transient_errors = (
                openai.APIConnectionError,
                openai.RateLimitError,
                openai.InternalServerError,
            )
        else:
            raise ConfigurationError(f"Unsupported provider: {self.provider}")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def complete(
        self,
        messages: list[dict],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Completion:
        """Send role-tagged messages and return the generated text."""
        temperature = self.config.temperature if temperature is None else temperature
        max_tokens = max_tokens or self.config.max_output_tokens

        t_start = time.time()
        try:
            for attempt in Retrying(
                stop=stop_after_attempt(self.config.retry_attempts),
                wait=wait_exponential(multiplier=1, min=2, max=10),
                retry=retry_if_exception_type(self._transient_errors),
                reraise=True,
            ):
                with attempt:
                    if self.provider == "anthropic":
                        completion = self._complete_anthropic(messages, temperature, max_tokens)
                    else:
                        completion = self._complete_openai(messages, temperature, max_tokens)
        except GenerationError:
            raise
        except Exception as e:
            logger.error("Generation call to %s failed: %s", self.model, e)
            raise GenerationError(f"Generation call failed: {e}") from e

        logger.debug(
            "Generation call to %s: %d chars in, %d chars out, %d ms",
            self.model,
            sum(len(m.get("content", "")) for m in messages),
            len(completion.content),
            int((time.time() - t_start) * 1000),
        )
        return completion

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    def _complete_openai(
        self, messages: list[dict], temperature: float, max_tokens: int
    ) -> Completion:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        if not response.choices or response.choices[0].message.content is None:
            raise GenerationError("Generation response had no content")
        usage = {}
        if response.usage is not None:
            usage = {
                "input_tokens": response.usage.prompt_tokens,
                "output_tokens": response.usage.completion_tokens,
            }
        return Completion(
            content=response.choices[0].message.content,
            model=self.model,
            usage=usage,
        )

    def _complete_anthropic(
        self, messages: list[dict], temperature: float, max_tokens: int
    ) -> Completion:
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        conversation = [m for m in messages if m["role"] != "system"]
        params = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": min(temperature, 1.0),
            "messages": conversation,
        }
        if system:
            params["system"] = system
        response = self.client.messages.create(**params)

        text = ""
        for block in response.content:
            if getattr(block, "type", None) == "text":
                text += block.text
        if not text:
            raise GenerationError("Generation response had no content")
        return Completion(
            content=text,
            model=self.model,
            usage={
                "input_tokens": getattr(response.usage, "input_tokens", 0),
                "output_tokens": getattr(response.usage, "output_tokens", 0),
            },
        )


def with_system_prompt(messages: list[dict], system_prompt: Optional[str] = None) -> list[dict]:
    """Prepend the fixed system instruction, dropping caller system messages."""
    return [{"role": "system", "content": system_prompt or SYSTEM_PROMPT}] + [
        {"role": m["role"], "content": m["content"]}
        for m in messages
        if m.get("role") != "system"
    ]
