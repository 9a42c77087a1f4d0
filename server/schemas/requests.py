"""Pydantic request models for FastAPI endpoints."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class ChatMessageItem(BaseModel):
    role: str = Field(..., pattern="^(system|user|assistant|tool)$")
    content: str


class ClassifyRequest(BaseModel):
    user_input: str
    messages: list[ChatMessageItem] = Field(default_factory=list)
    previous_mode: Optional[str] = Field(None, pattern="^(text-search|deep)$")


class UserInputRequest(BaseModel):
    user_input: str


class DeepSearchRequest(BaseModel):
    draft_markdown: str
    user_input: str = ""


class SearchOnlyRequest(BaseModel):
    query: str
    messages: list[ChatMessageItem] = Field(default_factory=list)


class InterpretationRequest(BaseModel):
    original_query: str
    selected_books: list[dict[str, Any]] = Field(default_factory=list)
    messages: list[ChatMessageItem] = Field(default_factory=list)


class ChatRequest(BaseModel):
    mode: str = Field("text-search", pattern="^(text-search|deep)$")
    messages: list[ChatMessageItem] = Field(..., min_length=1)
    draft_markdown: Optional[str] = None
    deep_metadata: Optional[dict[str, Any]] = None


class DocumentItem(BaseModel):
    name: str = Field(..., min_length=1)
    content: str


class DocumentAnalysisRequest(BaseModel):
    documents: list[DocumentItem] = Field(..., min_length=1)


class DeepInterpretationRequest(BaseModel):
    original_query: str
    draft_markdown: str
    selected_books: list[dict[str, Any]] = Field(default_factory=list)
