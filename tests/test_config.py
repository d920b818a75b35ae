import pytest

from research.config import ResearchConfig
from research.errors import ConfigurationError

ENV_VARS = [
    "SEARCH_ENDPOINT", "SEARCH_API_KEY", "SEARCH_INDEX", "SEARCH_PAGE_SIZE", "SEARCH_TIMEOUT_SECONDS",
    "LLM_PROVIDER", "LLM_MODEL", "LLM_API_KEY", "LLM_BASE_URL", "LLM_TIMEOUT_SECONDS",
    "LLM_TEMPERATURE", "LLM_PLAN_TEMPERATURE", "LLM_MAX_OUTPUT_TOKENS",
    "CONTEXT_TOKEN_LIMIT", "SAFE_CHUNK_TOKENS", "INSTRUCTION_OVERHEAD_TOKENS", "MAX_HIT_CHARS",
    "MAX_PARALLEL_LLM", "RETRY_ATTEMPTS", "DEDUP_PREFIX_CHARS", "VERIFY_QUOTES",
    "OPENROUTER_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestFromEnv:
    def test_defaults(self):
        config = ResearchConfig.from_env()
        assert config.llm_provider == "openrouter"
        assert config.llm_base_url == "https://openrouter.ai/api/v1"
        assert config.search_index == "furytranscripts"
        assert config.search_page_size == 200
        assert config.max_parallel_llm == 10
        assert config.verify_quotes is True

    def test_reads_settings(self, monkeypatch):
        monkeypatch.setenv("SEARCH_ENDPOINT", "https://search.example.com/")
        monkeypatch.setenv("LLM_PROVIDER", "Anthropic")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
        monkeypatch.setenv("MAX_PARALLEL_LLM", "4")
        monkeypatch.setenv("VERIFY_QUOTES", "off")

        config = ResearchConfig.from_env()

        assert config.search_endpoint == "https://search.example.com"
        assert config.llm_provider == "anthropic"
        assert config.llm_api_key == "sk-ant"
        assert config.llm_model == "claude-sonnet-4-6"
        assert config.max_parallel_llm == 4
        assert config.verify_quotes is False

    def test_explicit_key_beats_provider_key(self, monkeypatch):
        monkeypatch.setenv("LLM_API_KEY", "explicit")
        monkeypatch.setenv("OPENROUTER_API_KEY", "fallback")
        assert ResearchConfig.from_env().llm_api_key == "explicit"

    def test_unknown_provider(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "mystery")
        with pytest.raises(ConfigurationError, match="LLM_PROVIDER"):
            ResearchConfig.from_env()

    def test_bad_number(self, monkeypatch):
        monkeypatch.setenv("SAFE_CHUNK_TOKENS", "lots")
        with pytest.raises(ConfigurationError):
            ResearchConfig.from_env()


class TestBudgets:
    def test_generation_budget_leaves_room_for_output(self):
        config = ResearchConfig(context_token_limit=128_000, max_output_tokens=4000)
        assert config.generation_budget == 124_000


class TestRequire:
    def test_names_the_environment_variable(self):
        with pytest.raises(ConfigurationError, match="LLM_API_KEY is not configured"):
            ResearchConfig().require("llm_provider", "llm_api_key")

    def test_passes_when_set(self):
        ResearchConfig(search_endpoint="https://x").require("search_endpoint")

    def test_unknown_setting(self):
        with pytest.raises(KeyError):
            ResearchConfig().require("nope")
