"""
Intent classification for AIBot turns.

Two layers:
- pure heuristics (``has_prompt_injection_risk``, ``should_bypass_classifier``)
  that decide whether a short follow-up can reuse the previous turn's mode
- ``IntentClassifier``, which asks a small model to pick one of the three
  intents and degrades to ``simple_search`` on any failure
"""

import re
from collections.abc import Callable, Sequence

from api.base_client import BaseGenerationClient
from api.openai_compatible_client import create_generation_client
from config.config import DEFAULT_CLASSIFIER_MODEL
from config.llm_config import LLMConfig, resolve_llm_config
from models.chat_message import ChatMessage
from models.intent import AIBotMode, Intent, IntentClassificationResult
from prompts.prompt_store import PromptName, PromptStore
from utils.llm_output import parse_json_object
from utils.logger import get_logger

logger = get_logger(__name__)

GenerationClientFactory = Callable[[LLMConfig], BaseGenerationClient]

# Bump the version whenever the pattern list changes so logged decisions can be traced
PROMPT_INJECTION_PATTERNS_VERSION = "1"
PROMPT_INJECTION_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"ignore\s+previous", re.IGNORECASE),
    re.compile(r"forget\s+instructions?", re.IGNORECASE),
    re.compile(r"system\s+prompt", re.IGNORECASE),
    re.compile(r"jailbreak", re.IGNORECASE),
    re.compile(r"越狱"),
    re.compile(r"提示词"),
    re.compile(r"注入"),
    re.compile(r"指令"),
    re.compile(r"act\s+as", re.IGNORECASE),
)

CONTINUE_KEYWORDS = ("继续", "下一步", "接着", "继续执行", "go on", "next", "proceed", "确认执行")
QUICK_ACK_KEYWORDS = ("继续", "ok", "收到")
GREETING_PATTERNS = ("你好", "您好", "hello", "hi", "嗨", "在吗", "在不在")

MAX_DEEP_CONTINUE_LENGTH = 24
MAX_QUICK_ACK_LENGTH = 12

MAX_CONTEXT_MESSAGES = 6
MAX_CONTEXT_MESSAGE_CHARS = 280

FALLBACK_REASON = "LLM 分类失败，回落到默认检索"
EMPTY_INPUT_REASON = "empty input"


def has_prompt_injection_risk(text: str) -> bool:
    """True when any injection indicator matches; blank text is never risky."""
    if not text or not text.strip():
        return False
    return any(pattern.search(text) for pattern in PROMPT_INJECTION_PATTERNS)


def _is_greeting(lowered: str) -> bool:
    return any(lowered == pattern or lowered.startswith(pattern) for pattern in GREETING_PATTERNS)


def should_bypass_classifier(content: str, previous_mode: AIBotMode | str | None) -> bool:
    """
    Decide whether the previous turn's mode can be reused without an LLM call.

    Only short continuation phrases qualify: up to 24 characters ending in a
    continue keyword after a deep turn, or an exact quick acknowledgement of
    up to 12 characters after a text-search turn. Greetings and anything that
    looks like prompt injection always go through full classification.
    """
    mode = AIBotMode.parse(previous_mode)
    trimmed = (content or "").strip()

    if previous_mode is None or not trimmed:
        return False
    if has_prompt_injection_risk(trimmed):
        logger.info(
            "Classifier bypass refused: injection risk",
            extra={"extra_fields": {"patterns_version": PROMPT_INJECTION_PATTERNS_VERSION}},
        )
        return False

    lowered = trimmed.lower()
    if _is_greeting(lowered):
        return False

    if mode is AIBotMode.DEEP:
        matched = len(trimmed) <= MAX_DEEP_CONTINUE_LENGTH and any(
            lowered == keyword or lowered.endswith(keyword) for keyword in CONTINUE_KEYWORDS
        )
    elif mode is AIBotMode.TEXT:
        matched = len(trimmed) <= MAX_QUICK_ACK_LENGTH and lowered in QUICK_ACK_KEYWORDS
    else:
        matched = False

    logger.info(
        "Classifier bypass check",
        extra={
            "extra_fields": {
                "previous_mode": getattr(previous_mode, "value", previous_mode),
                "content_length": len(trimmed),
                "bypass": matched,
            }
        },
    )
    return matched


def summarize_history(history: Sequence[ChatMessage] | None) -> str:
    """Last few messages as ``[role] text`` lines, whitespace collapsed and truncated."""
    if not history:
        return ""
    lines = []
    for message in list(history)[-MAX_CONTEXT_MESSAGES:]:
        normalized = " ".join(message.content.split())[:MAX_CONTEXT_MESSAGE_CHARS]
        lines.append(f"[{message.role.value}] {normalized}")
    return "\n".join(lines)


def build_classifier_request(user_input: str, history: Sequence[ChatMessage] | None) -> str:
    request = f"# 当前用户输入\n{user_input.strip()}"
    summary = summarize_history(history)
    if summary:
        request += f"\n\n\n# 历史对话\n{summary}"
    return request


def fallback_result(
    *, confidence: float = 0.5, reason: str = FALLBACK_REASON, raw_output: str | None = None
) -> IntentClassificationResult:
    return IntentClassificationResult(
        intent=Intent.SIMPLE_SEARCH,
        confidence=confidence,
        source="rule",
        reason=reason,
        raw_output=raw_output,
    )


def bypass_result(previous_mode: AIBotMode) -> IntentClassificationResult:
    """Rule result for a turn that continues the previous mode."""
    intent = Intent.DEEP_SEARCH if previous_mode is AIBotMode.DEEP else Intent.SIMPLE_SEARCH
    return IntentClassificationResult(
        intent=intent,
        confidence=1.0,
        source="rule",
        reason=f"continuation of previous mode '{previous_mode.value}'",
    )


def parse_classifier_output(text: str) -> IntentClassificationResult:
    """Turn a model reply into a result; unparseable replies give the fallback."""
    raw = text.strip()
    try:
        data = parse_json_object(raw)
    except ValueError as e:
        logger.error(
            "Failed to parse classifier output, using fallback",
            extra={"extra_fields": {"error": str(e), "raw_output": raw[:500]}},
        )
        return fallback_result(raw_output=raw)

    confidence = data.get("confidence")
    if isinstance(confidence, str):
        try:
            confidence = float(confidence)
        except ValueError:
            confidence = None
    reason = data.get("reason")
    suggested_query = data.get("suggested_query")

    return IntentClassificationResult(
        intent=Intent.normalize(data.get("intent")),
        confidence=confidence,
        source="llm",
        reason=reason if isinstance(reason, str) else None,
        suggested_query=suggested_query if isinstance(suggested_query, str) else None,
        raw_output=raw,
    )


class IntentClassifier:
    """Classifies a user turn as simple_search, deep_search or other."""

    def __init__(
        self,
        prompt_store: PromptStore,
        client_factory: GenerationClientFactory = create_generation_client,
        classifier_model: str = DEFAULT_CLASSIFIER_MODEL,
    ):
        self.prompt_store = prompt_store
        self.client_factory = client_factory
        self.classifier_model = classifier_model

    def classify(
        self, user_input: str, history: Sequence[ChatMessage] | None = None
    ) -> IntentClassificationResult:
        """
        Classify one user turn.

        Never raises: an empty input returns the fallback with confidence 0
        without calling the model, and any prompt, configuration or generation
        failure returns the fallback with confidence 0.5.
        """
        trimmed = (user_input or "").strip()
        if not trimmed:
            return fallback_result(confidence=0.0, reason=EMPTY_INPUT_REASON)

        try:
            system_prompt = self.prompt_store.load_prompt(PromptName.QUESTION_CLASSIFIER)
            config = resolve_llm_config(
                overrides={"model": self.classifier_model, "temperature": 0}
            )
            client = self.client_factory(config)
            text = client.generate(system_prompt, build_classifier_request(trimmed, history))
        except Exception as e:
            logger.error(
                "Intent classification call failed, using fallback",
                extra={
                    "extra_fields": {
                        "model": self.classifier_model,
                        "error_type": type(e).__name__,
                        "error_message": str(e),
                    }
                },
            )
            return fallback_result()

        result = parse_classifier_output(text)
        logger.info(
            "Intent classified",
            extra={
                "extra_fields": {
                    "intent": result.intent.value,
                    "confidence": result.confidence,
                    "source": result.source,
                }
            },
        )
        return result
