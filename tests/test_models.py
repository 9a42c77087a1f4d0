import json
import math

import pytest

from models.chat_message import ChatMessage, ChatRole
from models.intent import AIBotMode, Intent, IntentClassificationResult
from models.research import KeywordPriority, WebSearchSnippet
from models.retrieval import BookInfo, RetrievalResult


def test_snippet_title_is_never_empty():
    snippet = WebSearchSnippet(title="  ", url=None, snippet="s", source="jina")
    assert snippet.title == "搜索结果"
    assert snippet.url == ""


@pytest.mark.parametrize(
    "value, expected",
    [("HIGH", KeywordPriority.HIGH), ("low", KeywordPriority.LOW), ("urgent", KeywordPriority.MEDIUM), (None, KeywordPriority.MEDIUM)],
)
def test_keyword_priority_normalization(value, expected):
    assert KeywordPriority.normalize(value) is expected


@pytest.mark.parametrize("raw, expected", [(1.7, 1.0), (-0.1, 0.0), (math.nan, 0.5), ("x", 0.5), (0.42, 0.42)])
def test_classification_confidence_is_clamped(raw, expected):
    result = IntentClassificationResult(intent=Intent.OTHER, confidence=raw, source="llm")
    assert result.confidence == pytest.approx(expected)


def test_intent_and_mode_parsing():
    assert Intent.normalize("deep_search") is Intent.DEEP_SEARCH
    assert Intent.normalize("DEEP_SEARCH") is Intent.SIMPLE_SEARCH
    assert AIBotMode.parse("deep") is AIBotMode.DEEP
    assert AIBotMode.parse("text") is None


def test_chat_message_from_dict_rejects_unknown_role():
    assert ChatMessage.from_dict({"role": "user", "content": "hi"}).role is ChatRole.USER
    with pytest.raises(ValueError):
        ChatMessage.from_dict({"role": "robot", "content": "hi"})


def test_book_info_accepts_snake_case():
    book = BookInfo.from_mapping(
        {"book_id": "b1", "book_title": "辽史", "call_number": "K246", "similarity_score": 0.5, "rating": "8.7"}
    )
    assert book.id == "b1"
    assert book.title == "辽史"
    assert book.call_number == "K246"
    assert book.rating == pytest.approx(8.7)


def test_retrieval_result_emptiness():
    assert RetrievalResult().is_empty
    assert not RetrievalResult(context_plain_text="ctx").is_empty
    assert not RetrievalResult(metadata={"books": [{"title": "宋史"}]}).is_empty
    assert RetrievalResult(metadata={"books": "oops"}).books == []


def test_non_finite_numbers_are_treated_as_missing():
    # json.loads (and httpx Response.json) accept the NaN / Infinity literals
    metadata = json.loads(
        '{"books": [{"title": "宋史", "publishYear": NaN, "pageCount": Infinity,'
        ' "rating": "nan", "finalScore": -Infinity, "similarityScore": 0.8}]}'
    )

    (book,) = RetrievalResult(metadata=metadata).books

    assert book.publish_year is None
    assert book.page_count is None
    assert book.rating is None
    assert book.final_score is None
    assert book.similarity_score == pytest.approx(0.8)
