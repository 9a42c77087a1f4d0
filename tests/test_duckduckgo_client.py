import httpx
import pytest

from tools.web.duckduckgo_client import DuckDuckGoSearchProvider, flatten_topics
from utils.exceptions import WebSearchError

PAYLOAD = {
    "RelatedTopics": [
        {"Text": "宋史 - 二十四史之一", "FirstURL": "https://duckduckgo.com/Song_Shi", "Result": "<a>宋史</a>"},
        {
            "Name": "相关",
            "Topics": [
                {"Text": "辽史", "FirstURL": "https://duckduckgo.com/Liao_Shi"},
                {"Topics": [{"FirstURL": "https://duckduckgo.com/Jin_Shi"}]},
            ],
        },
        "not-a-topic",
    ],
    "Results": [{"FirstURL": "https://song.example"}, {"Text": "官网", "Result": "官方网站"}],
}


def make_provider(handler):
    return DuckDuckGoSearchProvider(http_client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_flattens_nested_topics_and_appends_results():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=PAYLOAD)

    results = make_provider(handler).search("宋史", top_k=10)

    assert seen["params"] == {
        "q": "宋史",
        "format": "json",
        "no_redirect": "1",
        "no_html": "1",
        "skip_disambig": "1",
    }
    assert [r.title for r in results] == [
        "宋史 - 二十四史之一",
        "辽史",
        "https://duckduckgo.com/Jin_Shi",
        "DuckDuckGo 结果 1",
        "官网",
    ]
    assert results[0].snippet == "<a>宋史</a>"
    assert results[1].snippet == "辽史"
    assert results[2].snippet == "暂无摘要"
    assert results[4].url == "https://duckduckgo.com"
    assert all(r.source == "duckduckgo" for r in results)


def test_truncates_to_top_k():
    results = make_provider(lambda request: httpx.Response(200, json=PAYLOAD)).search("宋史", top_k=2)
    assert len(results) == 2


def test_topic_without_text_or_url_gets_placeholders():
    [only] = flatten_topics([{}])
    assert only.title == "DuckDuckGo"
    assert only.url == "https://duckduckgo.com"
    assert only.snippet == "暂无摘要"


def test_error_status_raises():
    with pytest.raises(WebSearchError):
        make_provider(lambda request: httpx.Response(503)).search("宋史")


def test_empty_answer_is_empty_list():
    assert make_provider(lambda request: httpx.Response(200, json={})).search("宋史") == []
