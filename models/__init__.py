"""
Models package for AIBot records.
"""

from .chat_message import ChatMessage, ChatRole
from .intent import AIBotMode, Intent, IntentClassificationResult
from .research import (
    ChatWorkflowContext,
    DeepSearchAnalysisResult,
    DraftWorkflowResult,
    KeywordPriority,
    KeywordResult,
    WebSearchSnippet,
)
from .retrieval import BookInfo, RetrievalResult

__all__ = [
    "AIBotMode",
    "BookInfo",
    "ChatMessage",
    "ChatRole",
    "ChatWorkflowContext",
    "DeepSearchAnalysisResult",
    "DraftWorkflowResult",
    "Intent",
    "IntentClassificationResult",
    "KeywordPriority",
    "KeywordResult",
    "RetrievalResult",
    "WebSearchSnippet",
]
