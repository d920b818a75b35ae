"""Runtime configuration for the research pipeline, read from the environment."""

import os
from dataclasses import dataclass, fields

from dotenv import load_dotenv

from research.errors import ConfigurationError

load_dotenv()

PROVIDER_BASE_URLS = {
    "openrouter": "https://openrouter.ai/api/v1",
    "openai": "https://api.openai.com/v1",
    "anthropic": "",
}

DEFAULT_MODELS = {
    "openrouter": "deepseek/deepseek-chat",
    "openai": "gpt-4o-mini",
    "anthropic": "claude-sonnet-4-6",
}


def env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class ResearchConfig:
    search_endpoint: str = ""
    search_api_key: str = ""
    search_index: str = "furytranscripts"
    search_page_size: int = 200
    search_timeout_seconds: float = 30.0

    llm_provider: str = "openrouter"
    llm_model: str = DEFAULT_MODELS["openrouter"]
    llm_api_key: str = ""
    llm_base_url: str = PROVIDER_BASE_URLS["openrouter"]
    llm_timeout_seconds: float = 180.0
    temperature: float = 0.7
    plan_temperature: float = 0.8
    max_output_tokens: int = 4000

    context_token_limit: int = 128_000
    safe_chunk_tokens: int = 60_000
    instruction_overhead_tokens: int = 8_000
    max_hit_chars: int = 40_000
    max_parallel_llm: int = 10
    retry_attempts: int = 3
    dedup_prefix_chars: int = 200
    verify_quotes: bool = True

    # Environment variable backing each required setting, for error messages.
    ENV_NAMES = {
        "search_endpoint": "SEARCH_ENDPOINT",
        "search_api_key": "SEARCH_API_KEY",
        "search_index": "SEARCH_INDEX",
        "llm_provider": "LLM_PROVIDER",
        "llm_model": "LLM_MODEL",
        "llm_api_key": "LLM_API_KEY",
    }

    @classmethod
    def from_env(cls) -> "ResearchConfig":
        provider = os.getenv("LLM_PROVIDER", "openrouter").strip().lower()
        if provider not in PROVIDER_BASE_URLS:
            raise ConfigurationError(
                f"LLM_PROVIDER must be one of: {', '.join(PROVIDER_BASE_URLS)}"
            )
        api_key_fallback = {
            "openrouter": "OPENROUTER_API_KEY",
            "openai": "OPENAI_API_KEY",
            "anthropic": "ANTHROPIC_API_KEY",
        }[provider]

        try:
            return cls(
                search_endpoint=os.getenv("SEARCH_ENDPOINT", "").rstrip("/"),
                search_api_key=os.getenv("SEARCH_API_KEY", ""),
                search_index=os.getenv("SEARCH_INDEX", "furytranscripts"),
                search_page_size=max(1, int(os.getenv("SEARCH_PAGE_SIZE", "200"))),
                search_timeout_seconds=float(os.getenv("SEARCH_TIMEOUT_SECONDS", "30")),
                llm_provider=provider,
                llm_model=os.getenv("LLM_MODEL", DEFAULT_MODELS[provider]),
                llm_api_key=os.getenv("LLM_API_KEY", os.getenv(api_key_fallback, "")),
                llm_base_url=os.getenv("LLM_BASE_URL", PROVIDER_BASE_URLS[provider]).rstrip("/"),
                llm_timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "180")),
                temperature=float(os.getenv("LLM_TEMPERATURE", "0.7")),
                plan_temperature=float(os.getenv("LLM_PLAN_TEMPERATURE", "0.8")),
                max_output_tokens=int(os.getenv("LLM_MAX_OUTPUT_TOKENS", "4000")),
                context_token_limit=int(os.getenv("CONTEXT_TOKEN_LIMIT", "128000")),
                safe_chunk_tokens=int(os.getenv("SAFE_CHUNK_TOKENS", "60000")),
                instruction_overhead_tokens=int(os.getenv("INSTRUCTION_OVERHEAD_TOKENS", "8000")),
                max_hit_chars=int(os.getenv("MAX_HIT_CHARS", "40000")),
                max_parallel_llm=max(1, int(os.getenv("MAX_PARALLEL_LLM", "10"))),
                retry_attempts=max(1, int(os.getenv("RETRY_ATTEMPTS", "3"))),
                dedup_prefix_chars=max(1, int(os.getenv("DEDUP_PREFIX_CHARS", "200"))),
                verify_quotes=env_bool("VERIFY_QUOTES", True),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

    @property
    def generation_budget(self) -> int:
        """Prompt tokens a single-shot call may use, leaving room for the answer."""
        return self.context_token_limit - self.max_output_tokens

    def require(self, *names: str) -> None:
        """Raise ConfigurationError naming the first unset setting."""
        known = {f.name for f in fields(self)}
        for name in names:
            if name not in known:
                raise KeyError(name)
            if not getattr(self, name):
                env_name = self.ENV_NAMES.get(name, name.upper())
                raise ConfigurationError(f"{env_name} is not configured")
