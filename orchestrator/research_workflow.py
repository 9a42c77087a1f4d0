"""
ResearchWorkflow - sequences web search, generation and book retrieval.

Entry points:
- run_draft_workflow: one search -> article analysis -> cross analysis
- run_document_analysis: per-document analysis -> cross analysis
- generate_keywords / run_deep_search_analysis: keyword-driven deep research
- search_books_for_draft / simple_search: book retrieval for the UI
- build_chat_workflow_context: system prompt + retrieval context for a chat turn
- build_interpretation_prompt / run_deep_interpretation: reading guides over picked books

Steps are blocking calls made in order (document analyses run in a small
thread pool); nothing here retries.
"""

import concurrent.futures
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from api.base_client import BaseGenerationClient
from api.openai_compatible_client import create_generation_client
from config.llm_config import LLMConfig, extract_llm_hint, resolve_llm_config
from models.chat_message import ChatMessage, ChatRole
from models.intent import AIBotMode
from models.research import (
    ChatWorkflowContext,
    DeepSearchAnalysisResult,
    DocumentAnalysisResult,
    DocumentInput,
    DraftWorkflowResult,
    KeywordPriority,
    KeywordResult,
    WebSearchSnippet,
)
from models.retrieval import BookInfo, RetrievalResult
from orchestrator.classifier import GenerationClientFactory
from prompts.prompt_store import PromptName, PromptStore
from tools.books.retrieval_client import (
    DEFAULT_MULTI_QUERY_TOP_K,
    DEFAULT_TOP_K,
    BookRetrievalClient,
)
from tools.web.web_search_service import WebSearchService
from utils.exceptions import AIBotError, EmptyRetrievalError, WorkflowInputError
from utils.llm_output import parse_json_object
from utils.logger import get_logger

logger = get_logger(__name__)

DEEP_SEARCH_SNIPPETS_PER_KEYWORD = 6
FALLBACK_KEYWORD_REASON = "基于用户原始输入"
MAX_DOCUMENT_WORKERS = 4
ANALYSIS_SEPARATOR = "\n\n---\n\n"


@dataclass(frozen=True)
class WorkflowSettings:
    """Fan-out limits for the workflows."""

    draft_search_top_k: int = DEFAULT_TOP_K
    keyword_search_top_k: int = DEEP_SEARCH_SNIPPETS_PER_KEYWORD
    text_search_top_k: int = DEFAULT_TOP_K
    chat_per_query_top_k: int = DEFAULT_MULTI_QUERY_TOP_K
    chat_final_top_k: int = DEFAULT_TOP_K
    draft_books_per_query_top_k: int = 8
    draft_books_final_top_k: int = 12


def join_snippets(snippets: Sequence[WebSearchSnippet]) -> str:
    """Numbered citation block: ``【i】title\\nurl\\nsnippet`` separated by blank lines."""
    return "\n\n".join(
        f"【{index}】{item.title}\n{item.url}\n{item.snippet}"
        for index, item in enumerate(snippets, start=1)
    )


def extract_latest_user_message(messages: Sequence[ChatMessage]) -> str:
    for message in reversed(list(messages or [])):
        if message.role is ChatRole.USER and message.content.strip():
            return message.content
    return ""


def _resolve_draft(draft_markdown: str | None, deep_metadata: Any) -> str:
    if draft_markdown is not None:
        return draft_markdown
    if deep_metadata is None:
        return ""
    if isinstance(deep_metadata, Mapping):
        value = deep_metadata.get("draft_markdown")
        if value is None:
            value = deep_metadata.get("draftMarkdown")
    else:
        value = getattr(deep_metadata, "draft_markdown", None)
    return value if isinstance(value, str) else ""


def build_system_prompt(
    base_prompt: str, context_plain_text: str, user_input: str, draft_markdown: str = ""
) -> str:
    sections = [
        base_prompt.strip(),
        "\n\n# 对话背景\n",
        f"## 用户输入\n{user_input.strip()}",
        f"\n\n## 检索结果\n{context_plain_text.strip()}",
    ]
    if draft_markdown:
        sections.append(f"\n\n## 草稿参考\n{draft_markdown.strip()}")
    return "".join(sections)


def _score(value: float | None) -> str:
    return f"{value:.3f}" if value is not None else "暂无"


def format_book_listing(books: Sequence[BookInfo]) -> str:
    entries = []
    for index, book in enumerate(books, start=1):
        entries.append(
            f"## 图书 {index}\n"
            f"**书名：** {book.title}\n"
            f"**作者：** {book.author or '暂无'}\n"
            f"**评分：** {book.rating if book.rating else '暂无评分'}\n"
            f"**相似度：** {_score(book.similarity_score)}\n"
            f"**索书号：** {book.call_number or '暂无'}\n"
            f"**内容简介：** {book.description or '暂无简介'}\n"
            f"**融合分数：** {_score(book.fused_score)}\n"
            f"**最终分数：** {_score(book.final_score)}"
        )
    return "\n\n".join(entries)


def format_candidate_books(books: Sequence[BookInfo]) -> str:
    """Richer per-book sections for the draft-aware interpretation; absent fields are left out."""
    sections = []
    for index, book in enumerate(books, start=1):
        lines = [f"## 书籍 {index}", "", f"**书名**: {book.title}"]
        if book.subtitle:
            lines.append(f"**副标题**: {book.subtitle}")
        lines.append(f"**作者**: {book.author}")
        if book.publisher:
            lines.append(f"**出版社**: {book.publisher}")
        if book.publish_year:
            lines.append(f"**出版年份**: {book.publish_year}")
        if book.rating:
            lines.append(f"**评分**: {book.rating}")
        if book.call_number:
            lines.append(f"**索书号**: {book.call_number}")
        lines += ["", "**内容简介**:", book.description or "暂无简介"]
        if book.author_intro:
            lines += ["", f"**作者简介**:\n{book.author_intro}"]
        if book.highlights:
            lines += ["", f"**亮点**: {'; '.join(book.highlights)}"]
        lines += ["", "---", ""]
        sections.append("\n".join(lines))
    return "\n".join(sections)


def parse_keywords(text: str, user_input: str) -> list[KeywordResult]:
    """
    Read ``{"keywords": [...]}`` from a model reply.

    Entries without a keyword string are dropped and priorities normalized.
    If nothing usable remains, the user input itself becomes the only keyword.
    """
    fallback = [
        KeywordResult(
            keyword=user_input, reason=FALLBACK_KEYWORD_REASON, priority=KeywordPriority.HIGH
        )
    ]
    try:
        data = parse_json_object(text)
    except ValueError as e:
        logger.error(
            "Failed to parse keyword output, using user input",
            extra={"extra_fields": {"error": str(e), "raw_output": text[:500]}},
        )
        return fallback

    raw_keywords = data.get("keywords")
    keywords = []
    if isinstance(raw_keywords, list):
        for item in raw_keywords:
            if not isinstance(item, Mapping):
                continue
            keyword = item.get("keyword")
            if not isinstance(keyword, str) or not keyword.strip():
                continue
            reason = item.get("reason")
            keywords.append(
                KeywordResult(
                    keyword=keyword.strip(),
                    reason=reason if isinstance(reason, str) else "",
                    priority=KeywordPriority.normalize(item.get("priority")),
                )
            )

    if not keywords:
        logger.warning(
            "Keyword output had no usable keywords, using user input",
            extra={"extra_fields": {"raw_output": text[:500]}},
        )
        return fallback
    return keywords


class ResearchWorkflow:
    """Runs the AIBot research and chat-context pipelines."""

    def __init__(
        self,
        prompt_store: PromptStore,
        web_search: WebSearchService,
        retrieval_client: BookRetrievalClient,
        client_factory: GenerationClientFactory = create_generation_client,
        settings: WorkflowSettings | None = None,
    ):
        self.prompt_store = prompt_store
        self.web_search = web_search
        self.retrieval_client = retrieval_client
        self.client_factory = client_factory
        self.settings = settings or WorkflowSettings()

    def _client(self, config: LLMConfig | None = None) -> BaseGenerationClient:
        config = config or resolve_llm_config()
        logger.info("Creating generation client", extra={"extra_fields": config.describe()})
        return self.client_factory(config)

    def run_draft_workflow(self, user_input: str) -> DraftWorkflowResult:
        """
        Seed a deep search from a single web search.

        Raises:
            ConfigurationError, WebSearchError, GenerationError, PromptNotFoundError
        """
        start_time = time.time()
        client = self._client()

        snippets = self.web_search.search(user_input, top_k=self.settings.draft_search_top_k)
        citations = join_snippets(snippets)

        article_prompt = self.prompt_store.load_prompt(PromptName.ARTICLE_ANALYSIS)
        article_analysis = client.generate(
            article_prompt, f"# 用户输入\n{user_input}\n\n# 网络搜索摘要\n{citations}"
        ).strip()

        cross_prompt = self.prompt_store.load_prompt(PromptName.ARTICLE_CROSS_ANALYSIS)
        cross_analysis = client.generate(
            cross_prompt, f"# 用户输入\n{user_input}\n\n# 文章分析结果\n{article_analysis}"
        ).strip()

        logger.info(
            "Draft workflow completed",
            extra={
                "extra_fields": {
                    "snippet_count": len(snippets),
                    "draft_length": len(cross_analysis),
                    "latency_ms": int((time.time() - start_time) * 1000),
                }
            },
        )
        return DraftWorkflowResult(
            user_input=user_input,
            search_snippets=tuple(snippets),
            article_analysis=article_analysis,
            cross_analysis=cross_analysis,
            draft_markdown=cross_analysis.strip(),
        )

    def _analyze_document(self, client: BaseGenerationClient, document: DocumentInput) -> str:
        try:
            article_prompt = self.prompt_store.load_prompt(PromptName.ARTICLE_ANALYSIS)
            return client.generate(
                article_prompt, f"# 文档名称\n{document.name}\n\n# 文档内容\n{document.content}"
            ).strip()
        except AIBotError as e:
            logger.error(
                "Document analysis failed",
                extra={"extra_fields": {"document_name": document.name, "error": str(e)}},
            )
            return f"文档 {document.name} 分析失败：{e.message}"

    def run_document_analysis(self, documents: Sequence[DocumentInput]) -> DocumentAnalysisResult:
        """
        Analyze uploaded documents in parallel, then cross-analyze them into a draft.

        A document whose analysis fails contributes an inline failure note
        instead of failing the batch. Only the cross analysis is fatal.

        Raises:
            WorkflowInputError: No documents given
            ConfigurationError, GenerationError, PromptNotFoundError
        """
        if not documents:
            raise WorkflowInputError("At least one document is required")

        start_time = time.time()
        client = self._client()
        names = [document.name for document in documents]
        logger.info(
            "Starting document analysis",
            extra={"extra_fields": {"document_count": len(documents), "document_names": names}},
        )

        workers = min(MAX_DOCUMENT_WORKERS, len(documents))
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(lambda doc: self._analyze_document(client, doc), documents))
        analyses = [analysis for analysis in results if analysis]

        cross_prompt = self.prompt_store.load_prompt(PromptName.ARTICLE_CROSS_ANALYSIS)
        draft_markdown = client.generate(
            cross_prompt,
            f"# 文档名称\n{', '.join(names)}\n\n# 文档分析结果\n{ANALYSIS_SEPARATOR.join(analyses)}",
        ).strip()

        logger.info(
            "Document analysis completed",
            extra={
                "extra_fields": {
                    "document_count": len(documents),
                    "analysis_count": len(analyses),
                    "draft_length": len(draft_markdown),
                    "latency_ms": int((time.time() - start_time) * 1000),
                }
            },
        )
        return DocumentAnalysisResult(
            document_names=tuple(names),
            document_analyses=tuple(analyses),
            draft_markdown=draft_markdown,
        )

    def generate_keywords(
        self, user_input: str, client: BaseGenerationClient | None = None
    ) -> list[KeywordResult]:
        """Ask the model for search keywords; an unparseable reply yields the input itself."""
        client = client or self._client()
        prompt = self.prompt_store.load_prompt(PromptName.KEYWORD_GENERATION)
        text = client.generate(prompt, f"用户输入：{user_input}\n\n请生成适合的检索关键词。")
        keywords = parse_keywords(text, user_input)
        logger.info(
            "Keywords generated",
            extra={
                "extra_fields": {
                    "keyword_count": len(keywords),
                    "keywords": [k.keyword for k in keywords],
                }
            },
        )
        return keywords

    def run_deep_search_analysis(self, user_input: str) -> DeepSearchAnalysisResult:
        """
        Keywords -> one web search and article analysis per keyword -> cross analysis.

        Keywords are processed in the order the model returned them; a keyword
        whose search comes back empty contributes no analysis.
        """
        start_time = time.time()
        client = self._client()
        keywords = self.generate_keywords(user_input, client=client)

        all_snippets: list[WebSearchSnippet] = []
        analyses: list[str] = []
        for item in keywords:
            snippets = self.web_search.search(item.keyword, top_k=self.settings.keyword_search_top_k)
            all_snippets.extend(snippets)
            if not snippets:
                continue

            article_prompt = self.prompt_store.load_prompt(PromptName.ARTICLE_ANALYSIS)
            analysis = client.generate(
                article_prompt,
                f"# 关键词\n{item.keyword}\n\n# 用户原始输入\n{user_input}"
                f"\n\n# 网络搜索摘要\n{join_snippets(snippets)}",
            ).strip()
            analyses.append(analysis)
            logger.info(
                "Keyword analysis completed",
                extra={"extra_fields": {"keyword": item.keyword, "analysis_length": len(analysis)}},
            )

        combined = ANALYSIS_SEPARATOR.join(analyses)
        keyword_lines = "\n".join(f"- {k.keyword} ({k.priority.value})" for k in keywords)
        cross_prompt = self.prompt_store.load_prompt(PromptName.ARTICLE_CROSS_ANALYSIS)
        draft_markdown = client.generate(
            cross_prompt,
            f"# 用户原始输入\n{user_input}\n\n# 检索关键词\n{keyword_lines}"
            f"\n\n# 文章分析结果\n{combined}",
        ).strip()

        logger.info(
            "Deep search analysis completed",
            extra={
                "extra_fields": {
                    "keyword_count": len(keywords),
                    "snippet_count": len(all_snippets),
                    "analysis_count": len(analyses),
                    "draft_length": len(draft_markdown),
                    "latency_ms": int((time.time() - start_time) * 1000),
                }
            },
        )
        return DeepSearchAnalysisResult(
            user_input=user_input,
            keywords=tuple(keywords),
            search_snippets=tuple(all_snippets),
            article_analysis=combined,
            draft_markdown=draft_markdown,
        )

    def search_books_for_draft(self, draft_markdown: str, user_input: str = "") -> RetrievalResult:
        """
        Multi-query book retrieval driven by a draft, with reranking.

        Raises:
            EmptyRetrievalError: Only when both the context text and the book list are empty
        """
        result = self.retrieval_client.multi_query(
            draft_markdown,
            per_query_top_k=self.settings.draft_books_per_query_top_k,
            final_top_k=self.settings.draft_books_final_top_k,
            enable_rerank=True,
        )
        logger.info(
            "Draft book retrieval completed",
            extra={
                "extra_fields": {
                    "user_input": user_input,
                    "draft_length": len(draft_markdown),
                    "context_length": len(result.context_plain_text),
                    "book_count": len(result.books),
                }
            },
        )
        if result.is_empty:
            raise EmptyRetrievalError(
                "Book retrieval returned no result", details={"operation": "deep_search"}
            )
        return result

    def simple_search(self, query: str) -> RetrievalResult:
        result = self.retrieval_client.text_search(query, top_k=self.settings.text_search_top_k)
        if not result.context_plain_text:
            logger.error("Simple search returned no context", extra={"extra_fields": {"query": query}})
            raise EmptyRetrievalError(
                "Book retrieval returned no result", details={"operation": "search_only"}
            )
        return result

    def build_chat_workflow_context(
        self,
        mode: AIBotMode | str,
        messages: Sequence[ChatMessage],
        draft_markdown: str | None = None,
        deep_metadata: Any = None,
    ) -> ChatWorkflowContext:
        """
        Prepare the system prompt, retrieval context and LLM config for a chat turn.

        Raises:
            WorkflowInputError: No user message, or deep mode without a draft
            EmptyRetrievalError: Retrieval produced no context text
            ConfigurationError: LLM config incomplete after applying the hint
        """
        parsed_mode = AIBotMode.parse(mode)
        if parsed_mode is None:
            raise WorkflowInputError(f"Unknown AIBot mode: {mode!r}", details={"mode": str(mode)})

        user_input = extract_latest_user_message(messages)
        if not user_input:
            raise WorkflowInputError("A user message is required to start the chat workflow")

        draft = _resolve_draft(draft_markdown, deep_metadata)
        logger.info(
            "Building chat workflow context",
            extra={
                "extra_fields": {
                    "mode": parsed_mode.value,
                    "message_count": len(messages),
                    "draft_length": len(draft),
                }
            },
        )

        if parsed_mode is AIBotMode.DEEP and not draft.strip():
            raise WorkflowInputError("Deep mode requires a draft", details={"mode": parsed_mode.value})

        if parsed_mode is AIBotMode.TEXT:
            retrieval = self.retrieval_client.text_search(
                user_input, top_k=self.settings.text_search_top_k
            )
        else:
            retrieval = self.retrieval_client.multi_query(
                draft,
                per_query_top_k=self.settings.chat_per_query_top_k,
                final_top_k=self.settings.chat_final_top_k,
            )

        if not retrieval.context_plain_text:
            logger.error(
                "Retrieval returned no context", extra={"extra_fields": {"mode": parsed_mode.value}}
            )
            raise EmptyRetrievalError(
                "Book retrieval returned no result", details={"mode": parsed_mode.value}
            )

        base_prompt = self.prompt_store.load_prompt(PromptName.RECOMMENDATION)
        system_prompt = build_system_prompt(
            base_prompt, retrieval.context_plain_text, user_input, draft
        )
        llm_config = resolve_llm_config(extract_llm_hint(retrieval.metadata))

        return ChatWorkflowContext(
            mode=parsed_mode,
            system_prompt=system_prompt,
            context_plain_text=retrieval.context_plain_text,
            metadata=retrieval.metadata,
            llm_config=llm_config,
        )

    def build_interpretation_prompt(
        self, original_query: str, books: Sequence[BookInfo]
    ) -> tuple[str, str]:
        """(system, user) prompts for a reading guide over selected books."""
        if not original_query.strip() or not books:
            raise WorkflowInputError("An original query and at least one book are required")
        system_prompt = self.prompt_store.load_prompt(PromptName.RECOMMENDATION)
        user_prompt = (
            f"# 用户原始查询\n{original_query}\n\n"
            f"# 候选图书列表\n{format_book_listing(books)}\n\n"
            "请基于以上信息，按照系统提示词的要求生成导读和书单推荐。"
        )
        return system_prompt, user_prompt

    def build_deep_interpretation_prompt(
        self, original_query: str, draft_markdown: str, books: Sequence[BookInfo]
    ) -> tuple[str, str]:
        """(system, user) prompts that read the picked books against the research draft."""
        if not books:
            raise WorkflowInputError("At least one selected book is required")
        if not draft_markdown.strip():
            raise WorkflowInputError("A draft is required for the deep interpretation")
        if not original_query.strip():
            raise WorkflowInputError("The original query is required")

        system_prompt = self.prompt_store.load_prompt(PromptName.RECOMMENDATION)
        user_prompt = (
            f"# 主题分析报告\n\n## 原始查询\n{original_query}\n\n"
            f"## 检索草案\n{draft_markdown}\n\n---\n\n"
            f"# 待选书目列表\n\n{format_candidate_books(books)}"
        )
        return system_prompt, user_prompt

    def run_deep_interpretation(
        self, original_query: str, draft_markdown: str, books: Sequence[BookInfo]
    ) -> str:
        """Generate the draft-aware interpretation in one (non-streamed) call."""
        system_prompt, user_prompt = self.build_deep_interpretation_prompt(
            original_query, draft_markdown, books
        )
        interpretation = self._client().generate(system_prompt, user_prompt).strip()
        logger.info(
            "Deep interpretation generated",
            extra={
                "extra_fields": {
                    "book_count": len(books),
                    "draft_length": len(draft_markdown),
                    "prompt_length": len(user_prompt),
                    "interpretation_length": len(interpretation),
                }
            },
        )
        return interpretation

    def stream_reply(
        self, config: LLMConfig, system_prompt: str, messages: Sequence[ChatMessage]
    ):
        """Stream a reply with the given config (chat and interpretation endpoints)."""
        return self._client(config).stream(system_prompt, messages)
