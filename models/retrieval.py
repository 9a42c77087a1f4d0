"""Book retrieval records."""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _as_float(value: Any) -> float | None:
    """Finite number or None; NaN and Infinity count as missing."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _as_int(value: Any) -> int | None:
    number = _as_float(value)
    return int(number) if number is not None else None


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class BookInfo:
    """Structured book record as returned in retrieval metadata."""

    id: str
    title: str
    author: str = ""
    subtitle: str | None = None
    translator: str | None = None
    publisher: str | None = None
    publish_year: int | None = None
    rating: float | None = None
    call_number: str | None = None
    page_count: int | None = None
    cover_url: str | None = None
    description: str | None = None
    author_intro: str | None = None
    isbn: str | None = None
    tags: tuple[str, ...] = ()
    highlights: tuple[str, ...] = ()
    fused_score: float | None = None
    similarity_score: float | None = None
    reranker_score: float | None = None
    final_score: float | None = None
    match_source: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], index: int = 0) -> "BookInfo":
        """Accept both the camelCase and snake_case field spellings of the API."""
        tags = data.get("tags") or []
        highlights = data.get("highlights") or []
        return cls(
            id=_as_text(_pick(data, "id", "book_id", "bookId")) or f"book-{index + 1}",
            title=_as_text(_pick(data, "title", "book_title")) or "未知书名",
            author=_as_text(_pick(data, "author", "book_author")) or "",
            subtitle=_as_text(data.get("subtitle")),
            translator=_as_text(data.get("translator")),
            publisher=_as_text(data.get("publisher")),
            publish_year=_as_int(_pick(data, "publishYear", "publish_year")),
            rating=_as_float(data.get("rating")),
            call_number=_as_text(_pick(data, "callNumber", "call_number", "call_no")),
            page_count=_as_int(_pick(data, "pageCount", "page_count")),
            cover_url=_as_text(_pick(data, "coverUrl", "cover_url")),
            description=_as_text(_pick(data, "description", "summary")),
            author_intro=_as_text(_pick(data, "authorIntro", "author_intro")),
            isbn=_as_text(data.get("isbn")),
            tags=tuple(str(t) for t in tags) if isinstance(tags, list) else (),
            highlights=tuple(str(h) for h in highlights) if isinstance(highlights, list) else (),
            fused_score=_as_float(_pick(data, "fusedScore", "fused_score")),
            similarity_score=_as_float(_pick(data, "similarityScore", "similarity_score")),
            reranker_score=_as_float(_pick(data, "rerankerScore", "reranker_score")),
            final_score=_as_float(_pick(data, "finalScore", "final_score")),
            match_source=_as_text(_pick(data, "matchSource", "match_source")),
        )


@dataclass(frozen=True)
class RetrievalResult:
    """
    Output of the book retrieval service.

    An empty ``context_plain_text`` means "no usable result"; callers decide
    whether that is an error.
    """

    context_plain_text: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def books(self) -> list[BookInfo]:
        raw_books = self.metadata.get("books") if isinstance(self.metadata, dict) else None
        if not isinstance(raw_books, list):
            return []
        return [
            BookInfo.from_mapping(item, index)
            for index, item in enumerate(raw_books)
            if isinstance(item, Mapping)
        ]

    @property
    def is_empty(self) -> bool:
        return not self.context_plain_text.strip() and not self.books
