import pytest

from prompts.cache import PromptCache
from prompts.prompt_store import PromptName, PromptStore
from utils.exceptions import PromptNotFoundError


class CountingReader:
    def __init__(self, text="模板内容"):
        self.text = text
        self.paths = []

    def __call__(self, path):
        self.paths.append(path)
        return self.text


def test_load_prompt_reads_once_and_returns_identical_text(tmp_path):
    reader = CountingReader()
    store = PromptStore(prompts_dir=tmp_path, reader=reader)

    first = store.load_prompt(PromptName.RECOMMENDATION)
    second = store.load_prompt(PromptName.RECOMMENDATION)

    assert first == second == "模板内容"
    assert len(reader.paths) == 1
    assert reader.paths[0] == tmp_path / "recommendation.md"


def test_enum_and_string_names_share_cache_entry(tmp_path):
    reader = CountingReader()
    store = PromptStore(prompts_dir=tmp_path, reader=reader)

    store.load_prompt(PromptName.KEYWORD_GENERATION)
    store.load_prompt("keyword_generation")

    assert len(reader.paths) == 1


def test_clear_cache_then_reload_reproduces_content(prompts_dir):
    store = PromptStore(prompts_dir=prompts_dir)
    original = store.load_prompt(PromptName.ARTICLE_ANALYSIS)

    store.clear_cache()
    assert len(store.cache) == 0

    assert store.load_prompt(PromptName.ARTICLE_ANALYSIS) == original


def test_clear_cache_forces_new_read(tmp_path):
    reader = CountingReader()
    store = PromptStore(prompts_dir=tmp_path, reader=reader)

    store.load_prompt(PromptName.ARTICLE_ANALYSIS)
    store.clear_cache()
    store.load_prompt(PromptName.ARTICLE_ANALYSIS)

    assert len(reader.paths) == 2


def test_missing_prompt_raises_and_is_not_cached(tmp_path):
    store = PromptStore(prompts_dir=tmp_path)

    with pytest.raises(PromptNotFoundError):
        store.load_prompt(PromptName.RECOMMENDATION)
    assert PromptName.RECOMMENDATION.value not in store.cache


def test_injected_cache_is_used(tmp_path):
    cache = PromptCache()
    cache.set("recommendation", "预置")
    store = PromptStore(prompts_dir=tmp_path, cache=cache)

    assert store.load_prompt(PromptName.RECOMMENDATION) == "预置"


def test_shipped_templates_cover_every_prompt_name():
    store = PromptStore()
    for name in PromptName:
        assert store.load_prompt(name).strip()


def test_undecodable_prompt_raises_prompt_not_found(tmp_path):
    (tmp_path / "recommendation.md").write_bytes(b"\xff\xfe\x00broken")
    store = PromptStore(prompts_dir=tmp_path)

    with pytest.raises(PromptNotFoundError):
        store.load_prompt(PromptName.RECOMMENDATION)
