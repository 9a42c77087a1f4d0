import pytest

from api.base_client import BaseGenerationClient
from prompts.prompt_store import PromptName, PromptStore

LLM_ENV = {
    "AIBOT_LLM_BASE_URL": "https://llm.example.test/v1",
    "AIBOT_LLM_API_KEY": "test-llm-key",
    "AIBOT_LLM_MODEL": "test-model",
}


class FakeGenerationClient(BaseGenerationClient):
    """Returns queued replies in order and records every call."""

    def __init__(self, config, factory):
        super().__init__(config)
        self.factory = factory

    def generate(self, system: str, prompt: str) -> str:
        self.factory.calls.append((system, prompt))
        if self.factory.error is not None:
            raise self.factory.error
        if self.factory.replies:
            return self.factory.replies.pop(0)
        return ""

    def stream(self, system, messages):
        self.factory.calls.append((system, list(messages)))
        if self.factory.error is not None:
            raise self.factory.error
        yield from self.factory.stream_chunks


class FakeClientFactory:
    def __init__(self, replies=None, error=None, stream_chunks=("片段一", "片段二")):
        self.replies = list(replies or [])
        self.error = error
        self.stream_chunks = list(stream_chunks)
        self.configs = []
        self.calls = []

    def __call__(self, config):
        self.configs.append(config)
        return FakeGenerationClient(config, self)


@pytest.fixture
def llm_env(monkeypatch):
    """Default LLM endpoint configured through the environment."""
    for key, value in LLM_ENV.items():
        monkeypatch.setenv(key, value)
    return LLM_ENV


@pytest.fixture
def no_llm_env(monkeypatch):
    for key in LLM_ENV:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def prompts_dir(tmp_path):
    """A prompt directory whose templates are just their own names."""
    for name in PromptName:
        (tmp_path / f"{name.value}.md").write_text(f"PROMPT:{name.value}", encoding="utf-8")
    return tmp_path


@pytest.fixture
def prompt_store(prompts_dir):
    return PromptStore(prompts_dir=prompts_dir)


@pytest.fixture
def fake_llm():
    """Factory for fake generation-client factories: ``fake_llm(replies=[...])``."""
    return FakeClientFactory
