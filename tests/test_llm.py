from types import SimpleNamespace

import httpx
import openai
import pytest

from research.config import ResearchConfig
from research.errors import ConfigurationError, GenerationError
from research.llm import LLMClient, with_system_prompt
from research.prompts import SYSTEM_PROMPT


def _openai_response(content="hello"):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message)],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=2),
    )


class FakeCompletions:
    def __init__(self, replies):
        self.replies = list(replies)
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def _client(replies, **overrides) -> tuple[LLMClient, FakeCompletions]:
    config = ResearchConfig(llm_provider="openrouter", llm_model="test-model", llm_api_key="k", **overrides)
    client = LLMClient(config)
    completions = FakeCompletions(replies)
    client.client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return client, completions


class TestWithSystemPrompt:
    def test_prepends_and_drops_caller_system(self):
        messages = with_system_prompt([
            {"role": "system", "content": "mine"},
            {"role": "user", "content": "hi"},
        ])
        assert messages == [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": "hi"},
        ]


class TestLLMClient:
    def test_requires_api_key(self):
        with pytest.raises(ConfigurationError, match="LLM_API_KEY"):
            LLMClient(ResearchConfig(llm_api_key=""))

    def test_unsupported_provider(self):
        with pytest.raises(ConfigurationError):
            LLMClient(ResearchConfig(llm_provider="mystery", llm_api_key="k"))

    def test_complete_passes_parameters(self):
        client, completions = _client([_openai_response("hello")], temperature=0.7, max_output_tokens=4000)
        completion = client.complete([{"role": "user", "content": "hi"}])

        assert completion.content == "hello"
        assert completion.usage == {"input_tokens": 10, "output_tokens": 2}
        request = completions.requests[0]
        assert request["model"] == "test-model"
        assert request["temperature"] == 0.7
        assert request["max_tokens"] == 4000

    def test_transient_errors_are_retried(self, monkeypatch):
        monkeypatch.setattr("time.sleep", lambda seconds: None)
        error = openai.APIConnectionError(request=httpx.Request("POST", "https://openrouter.ai/api/v1"))
        client, completions = _client([error, _openai_response("recovered")])

        assert client.complete([{"role": "user", "content": "hi"}]).content == "recovered"
        assert len(completions.requests) == 2

    def test_other_errors_fail_fast(self):
        client, completions = _client([RuntimeError("boom"), _openai_response()])
        with pytest.raises(GenerationError, match="boom"):
            client.complete([{"role": "user", "content": "hi"}])
        assert len(completions.requests) == 1

    def test_missing_content(self):
        client, _ = _client([_openai_response(None)])
        with pytest.raises(GenerationError, match="no content"):
            client.complete([{"role": "user", "content": "hi"}])


class TestAnthropicProvider:
    def test_system_messages_are_lifted(self):
        config = ResearchConfig(llm_provider="anthropic", llm_model="claude-test", llm_api_key="k")
        client = LLMClient(config)
        requests = []

        def create(**kwargs):
            requests.append(kwargs)
            return SimpleNamespace(
                content=[SimpleNamespace(type="text", text="answer")],
                usage=SimpleNamespace(input_tokens=5, output_tokens=1),
            )

        client.client = SimpleNamespace(messages=SimpleNamespace(create=create))
        completion = client.complete(with_system_prompt([{"role": "user", "content": "hi"}]))

        assert completion.content == "answer"
        assert requests[0]["system"] == SYSTEM_PROMPT
        assert requests[0]["messages"] == [{"role": "user", "content": "hi"}]
