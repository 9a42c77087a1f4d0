"""AIBot endpoints: classification, research workflows, book retrieval and chat."""

import asyncio
from itertools import chain

from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse

from config.llm_config import resolve_llm_config
from models.chat_message import ChatMessage, ChatRole
from models.intent import AIBotMode
from models.research import DocumentInput
from models.retrieval import BookInfo
from orchestrator.classifier import IntentClassifier, bypass_result, should_bypass_classifier
from orchestrator.research_workflow import ResearchWorkflow
from server.dependencies import get_classifier, get_workflow, require_aibot_enabled
from server.schemas.requests import (
    ChatRequest,
    ClassifyRequest,
    DeepInterpretationRequest,
    DeepSearchRequest,
    DocumentAnalysisRequest,
    InterpretationRequest,
    SearchOnlyRequest,
    UserInputRequest,
)
from server.schemas.responses import (
    ClassificationResponseDTO,
    ClearResponseDTO,
    DeepInterpretationResponseDTO,
    DeepSearchAnalysisResponseDTO,
    DocumentAnalysisResponseDTO,
    DraftResponseDTO,
    ErrorResponseDTO,
    KeywordDTO,
    KeywordsResponseDTO,
    RetrievalResponseDTO,
)
from server.utils import guard_stream, http_error_for, require_text, to_chat_messages
from utils.exceptions import AIBotError
from utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/v1/aibot",
    tags=["AIBot"],
    dependencies=[Depends(require_aibot_enabled)],
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponseDTO},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponseDTO},
    },
)

STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"


async def _start_stream(iterator, *, operation: str):
    """
    Pull the first chunk before the response starts, so configuration and
    connection failures still produce a proper error status.
    """
    try:
        first = await asyncio.to_thread(next, iterator, None)
    except AIBotError as e:
        raise http_error_for(e, operation=operation)
    head = [first] if first is not None else []
    return guard_stream(chain(head, iterator), operation=operation)


@router.post("/classify", response_model=ClassificationResponseDTO)
async def classify(
    request: ClassifyRequest, classifier: IntentClassifier = Depends(get_classifier)
):
    """Classify a user turn; short continuations of the previous mode skip the model."""
    if request.previous_mode and should_bypass_classifier(request.user_input, request.previous_mode):
        result = bypass_result(AIBotMode.parse(request.previous_mode))
        return ClassificationResponseDTO.from_result(result, bypassed=True)

    history = to_chat_messages(request.messages)
    result = await asyncio.to_thread(classifier.classify, request.user_input, history)
    return ClassificationResponseDTO.from_result(result)


@router.post("/keywords", response_model=KeywordsResponseDTO)
async def generate_keywords(
    request: UserInputRequest, workflow: ResearchWorkflow = Depends(get_workflow)
):
    user_input = require_text(request.user_input, "user_input")
    try:
        keywords = await asyncio.to_thread(workflow.generate_keywords, user_input)
    except AIBotError as e:
        raise http_error_for(e, operation="keyword generation")
    return KeywordsResponseDTO(
        keywords=[KeywordDTO.from_result(k) for k in keywords], user_input=user_input
    )


@router.post("/draft", response_model=DraftResponseDTO)
async def draft(request: UserInputRequest, workflow: ResearchWorkflow = Depends(get_workflow)):
    user_input = require_text(request.user_input, "user_input")
    try:
        result = await asyncio.to_thread(workflow.run_draft_workflow, user_input)
    except AIBotError as e:
        raise http_error_for(e, operation="draft")
    return DraftResponseDTO.from_result(result)


@router.post("/document-analysis", response_model=DocumentAnalysisResponseDTO)
async def document_analysis(
    request: DocumentAnalysisRequest, workflow: ResearchWorkflow = Depends(get_workflow)
):
    """Draft from uploaded documents instead of a web search."""
    documents = [DocumentInput(name=item.name, content=item.content) for item in request.documents]
    try:
        result = await asyncio.to_thread(workflow.run_document_analysis, documents)
    except AIBotError as e:
        raise http_error_for(e, operation="document analysis")
    return DocumentAnalysisResponseDTO.from_result(result)


@router.post("/deep-search-analysis", response_model=DeepSearchAnalysisResponseDTO)
async def deep_search_analysis(
    request: UserInputRequest, workflow: ResearchWorkflow = Depends(get_workflow)
):
    user_input = require_text(request.user_input, "user_input")
    try:
        result = await asyncio.to_thread(workflow.run_deep_search_analysis, user_input)
    except AIBotError as e:
        raise http_error_for(e, operation="deep search analysis")
    return DeepSearchAnalysisResponseDTO.from_result(result)


@router.post("/deep-search", response_model=RetrievalResponseDTO)
async def deep_search(request: DeepSearchRequest, workflow: ResearchWorkflow = Depends(get_workflow)):
    draft_markdown = require_text(request.draft_markdown, "draft_markdown")
    try:
        result = await asyncio.to_thread(
            workflow.search_books_for_draft, draft_markdown, request.user_input
        )
    except AIBotError as e:
        raise http_error_for(e, operation="deep search")
    return RetrievalResponseDTO.from_result(request.user_input, result)


@router.post("/search-only", response_model=RetrievalResponseDTO)
async def search_only(request: SearchOnlyRequest, workflow: ResearchWorkflow = Depends(get_workflow)):
    query = require_text(request.query, "query")
    try:
        result = await asyncio.to_thread(workflow.simple_search, query)
    except AIBotError as e:
        raise http_error_for(e, operation="search", empty_status=status.HTTP_404_NOT_FOUND)
    return RetrievalResponseDTO.from_result(query, result)


@router.post("/interpretation")
async def interpretation(
    request: InterpretationRequest, workflow: ResearchWorkflow = Depends(get_workflow)
):
    """Stream a reading guide for the books the user picked."""
    original_query = require_text(request.original_query, "original_query")
    books = [BookInfo.from_mapping(item, index) for index, item in enumerate(request.selected_books)]
    try:
        system_prompt, user_prompt = await asyncio.to_thread(
            workflow.build_interpretation_prompt, original_query, books
        )
        config = resolve_llm_config()
    except AIBotError as e:
        raise http_error_for(e, operation="interpretation")

    logger.info(
        "Generating interpretation",
        extra={"extra_fields": {"book_count": len(books), "model": config.model}},
    )
    chunks = workflow.stream_reply(
        config, system_prompt, [ChatMessage(role=ChatRole.USER, content=user_prompt)]
    )
    return StreamingResponse(
        await _start_stream(chunks, operation="interpretation"),
        media_type=STREAM_MEDIA_TYPE,
        headers={"X-AIBot-Mode": "interpretation", "X-AIBot-Books-Count": str(len(books))},
    )


@router.post("/deep-interpretation", response_model=DeepInterpretationResponseDTO)
async def deep_interpretation(
    request: DeepInterpretationRequest, workflow: ResearchWorkflow = Depends(get_workflow)
):
    """Interpret the picked books against the research draft, in one JSON response."""
    original_query = require_text(request.original_query, "original_query")
    draft_markdown = require_text(request.draft_markdown, "draft_markdown")
    books = [BookInfo.from_mapping(item, index) for index, item in enumerate(request.selected_books)]
    try:
        text = await asyncio.to_thread(
            workflow.run_deep_interpretation, original_query, draft_markdown, books
        )
    except AIBotError as e:
        raise http_error_for(e, operation="deep interpretation")
    return DeepInterpretationResponseDTO(
        interpretation=text,
        selected_books=request.selected_books,
        draft_markdown=draft_markdown,
        original_query=original_query,
    )


@router.post("/chat")
async def chat(request: ChatRequest, workflow: ResearchWorkflow = Depends(get_workflow)):
    """Stream a grounded recommendation reply for the latest user turn."""
    messages = to_chat_messages(request.messages)
    try:
        context = await asyncio.to_thread(
            workflow.build_chat_workflow_context,
            request.mode,
            messages,
            request.draft_markdown,
            request.deep_metadata,
        )
    except AIBotError as e:
        raise http_error_for(e, operation="chat")

    logger.info("Chat context ready", extra={"extra_fields": context.summary()})
    chunks = workflow.stream_reply(context.llm_config, context.system_prompt, messages)
    return StreamingResponse(
        await _start_stream(chunks, operation="chat"),
        media_type=STREAM_MEDIA_TYPE,
        headers={"X-AIBot-Mode": context.mode.value},
    )


@router.post("/clear", response_model=ClearResponseDTO)
async def clear():
    """Conversation state lives in the client; nothing to clear server-side."""
    return ClearResponseDTO()
