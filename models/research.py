"""Records produced and consumed by the research workflow."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Literal

from config.llm_config import LLMConfig
from models.intent import AIBotMode

SnippetSource = Literal["jina", "duckduckgo"]

DEFAULT_SNIPPET_TITLE = "搜索结果"


@dataclass(frozen=True)
class WebSearchSnippet:
    """A normalized search hit. Title is never empty and url is always a string."""

    title: str
    url: str
    snippet: str
    source: SnippetSource
    content: str | None = None
    raw: Any = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        title = self.title.strip() if isinstance(self.title, str) else ""
        object.__setattr__(self, "title", title or DEFAULT_SNIPPET_TITLE)
        if not isinstance(self.url, str):
            object.__setattr__(self, "url", "")
        if not isinstance(self.snippet, str):
            object.__setattr__(self, "snippet", "")

    def to_dict(self) -> dict[str, Any]:
        data = {
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "source": self.source,
        }
        if self.content:
            data["content"] = self.content
        return data


class KeywordPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def normalize(cls, value: object) -> "KeywordPriority":
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return cls.MEDIUM


@dataclass(frozen=True)
class KeywordResult:
    keyword: str
    reason: str
    priority: KeywordPriority

    def to_dict(self) -> dict[str, str]:
        return {"keyword": self.keyword, "reason": self.reason, "priority": self.priority.value}


@dataclass(frozen=True)
class DraftWorkflowResult:
    user_input: str
    search_snippets: tuple[WebSearchSnippet, ...]
    article_analysis: str
    cross_analysis: str
    draft_markdown: str


@dataclass(frozen=True)
class DeepSearchAnalysisResult:
    user_input: str
    keywords: tuple[KeywordResult, ...]
    search_snippets: tuple[WebSearchSnippet, ...]
    article_analysis: str
    draft_markdown: str


@dataclass(frozen=True)
class ChatWorkflowContext:
    mode: AIBotMode
    system_prompt: str
    context_plain_text: str
    metadata: dict[str, Any]
    llm_config: LLMConfig

    def summary(self) -> dict[str, Any]:
        summary = asdict(self)
        summary["mode"] = self.mode.value
        summary["llm_config"] = self.llm_config.describe()
        summary.pop("system_prompt")
        summary["system_prompt_length"] = len(self.system_prompt)
        return summary


@dataclass(frozen=True)
class DocumentInput:
    """An uploaded document: file name plus extracted text."""

    name: str
    content: str


@dataclass(frozen=True)
class DocumentAnalysisResult:
    document_names: tuple[str, ...]
    document_analyses: tuple[str, ...]
    draft_markdown: str

    @property
    def user_input(self) -> str:
        return f"文档分析：{', '.join(self.document_names)}"
