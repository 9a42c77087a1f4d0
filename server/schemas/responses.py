"""Pydantic response models (DTOs) for FastAPI endpoints."""

from dataclasses import asdict
from typing import Any

from pydantic import BaseModel, Field

from models.intent import IntentClassificationResult
from models.research import (
    DeepSearchAnalysisResult,
    DocumentAnalysisResult,
    DraftWorkflowResult,
    KeywordResult,
    WebSearchSnippet,
)
from models.retrieval import RetrievalResult


class ErrorDTO(BaseModel):
    message: str
    error_code: str


class ErrorResponseDTO(BaseModel):
    """Body of a workflow error response (FastAPI wraps HTTPException detail)."""

    detail: ErrorDTO


class ClassificationResponseDTO(BaseModel):
    intent: str
    confidence: float
    source: str
    reason: str | None = None
    suggested_query: str | None = None
    raw_output: str | None = None
    bypassed: bool = False

    @classmethod
    def from_result(cls, result: IntentClassificationResult, bypassed: bool = False):
        return cls(**result.to_dict(), bypassed=bypassed)


class KeywordDTO(BaseModel):
    keyword: str
    reason: str
    priority: str

    @classmethod
    def from_result(cls, keyword: KeywordResult):
        return cls(**keyword.to_dict())


class SnippetDTO(BaseModel):
    title: str
    url: str
    snippet: str
    source: str
    content: str | None = None

    @classmethod
    def from_snippet(cls, snippet: WebSearchSnippet):
        return cls(**snippet.to_dict())


class KeywordsResponseDTO(BaseModel):
    success: bool = True
    keywords: list[KeywordDTO]
    user_input: str


class DraftResponseDTO(BaseModel):
    success: bool = True
    user_input: str
    search_snippets: list[SnippetDTO]
    article_analysis: str
    cross_analysis: str
    draft_markdown: str

    @classmethod
    def from_result(cls, result: DraftWorkflowResult):
        return cls(
            user_input=result.user_input,
            search_snippets=[SnippetDTO.from_snippet(s) for s in result.search_snippets],
            article_analysis=result.article_analysis,
            cross_analysis=result.cross_analysis,
            draft_markdown=result.draft_markdown,
        )


class DeepSearchAnalysisResponseDTO(BaseModel):
    success: bool = True
    user_input: str
    keywords: list[KeywordDTO]
    search_snippets: list[SnippetDTO]
    article_analysis: str
    draft_markdown: str

    @classmethod
    def from_result(cls, result: DeepSearchAnalysisResult):
        return cls(
            user_input=result.user_input,
            keywords=[KeywordDTO.from_result(k) for k in result.keywords],
            search_snippets=[SnippetDTO.from_snippet(s) for s in result.search_snippets],
            article_analysis=result.article_analysis,
            draft_markdown=result.draft_markdown,
        )


class RetrievalResponseDTO(BaseModel):
    success: bool = True
    query: str
    context_plain_text: str
    books: list[dict[str, Any]] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, query: str, result: RetrievalResult):
        return cls(
            query=query,
            context_plain_text=result.context_plain_text,
            books=[asdict(book) for book in result.books],
            metadata=result.metadata,
        )


class ClearResponseDTO(BaseModel):
    success: bool = True


class HealthResponseDTO(BaseModel):
    status: str
    timestamp: str
    version: str = "1.0.0"
    aibot_enabled: bool = False


class DocumentAnalysisResponseDTO(BaseModel):
    success: bool = True
    user_input: str
    document_names: list[str]
    document_analyses: list[str]
    draft_markdown: str

    @classmethod
    def from_result(cls, result: DocumentAnalysisResult):
        return cls(
            user_input=result.user_input,
            document_names=list(result.document_names),
            document_analyses=list(result.document_analyses),
            draft_markdown=result.draft_markdown,
        )


class DeepInterpretationResponseDTO(BaseModel):
    success: bool = True
    interpretation: str
    selected_books: list[dict[str, Any]]
    draft_markdown: str
    original_query: str
