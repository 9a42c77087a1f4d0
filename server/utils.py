"""Shared utilities for FastAPI routes."""

from collections.abc import Iterator, Sequence

from fastapi import HTTPException, status

from models.chat_message import ChatMessage
from server.schemas.requests import ChatMessageItem
from server.schemas.responses import ErrorDTO
from utils.exceptions import AIBotError, EmptyRetrievalError, GenerationError, WorkflowInputError
from utils.logger import get_logger

logger = get_logger(__name__)


def require_text(value: str | None, field: str) -> str:
    """Trimmed value, or a 400 when the field is blank."""
    text = (value or "").strip()
    if not text:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=ErrorDTO(
                message=f"{field} must not be empty", error_code=WorkflowInputError.error_code
            ).model_dump(),
        )
    return text


def to_chat_messages(items: Sequence[ChatMessageItem]) -> list[ChatMessage]:
    return [ChatMessage.from_dict(item.model_dump()) for item in items]


def http_error_for(
    exc: AIBotError, *, operation: str, empty_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
) -> HTTPException:
    """
    Map a workflow error onto an HTTP error.

    Input errors become 400, empty retrieval becomes ``empty_status``, and
    everything else a 500 that carries only a generic message and the code.
    """
    logger.error(
        f"AIBot {operation} failed",
        extra={
            "extra_fields": {
                "operation": operation,
                "error_code": exc.error_code,
                "error_message": exc.message,
                "details": exc.details,
            }
        },
    )
    if isinstance(exc, WorkflowInputError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=ErrorDTO(message=exc.message, error_code=exc.error_code).model_dump(),
        )
    if isinstance(exc, EmptyRetrievalError):
        return HTTPException(
            status_code=empty_status,
            detail=ErrorDTO(message="图书检索返回空结果", error_code=exc.error_code).model_dump(),
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=ErrorDTO(
            message=f"{operation} failed, please retry later", error_code=exc.error_code
        ).model_dump(),
    )


def guard_stream(chunks: Iterator[str], *, operation: str) -> Iterator[str]:
    """Pass chunks through; a mid-stream generation failure ends the stream and is logged."""
    try:
        yield from chunks
    except GenerationError as e:
        logger.error(
            f"AIBot {operation} stream interrupted",
            extra={"extra_fields": {"operation": operation, "error_message": e.message}},
        )
