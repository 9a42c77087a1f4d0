import time
from collections.abc import Iterator, Sequence

import openai

from config.llm_config import LLMConfig
from models.chat_message import ChatMessage, ChatRole
from utils.exceptions import GenerationError
from utils.logger import get_logger

from .base_client import BaseGenerationClient

logger = get_logger(__name__)

DEFAULT_TIMEOUT_S = 60.0


class OpenAICompatibleClient(BaseGenerationClient):
    """
    Generation client for any OpenAI-compatible chat-completions endpoint.

    Uses the OpenAI SDK with a custom base URL, so the same class serves
    OpenAI, DeepSeek, local gateways and similar providers.
    """

    def __init__(self, config: LLMConfig, timeout_s: float = DEFAULT_TIMEOUT_S, **kwargs):
        super().__init__(config, **kwargs)
        self.timeout_s = timeout_s
        # Retries are the caller's decision
        self.client = openai.OpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=timeout_s,
            max_retries=0,
        )

    def _request_kwargs(self) -> dict:
        kwargs = {"model": self.config.model}
        if self.config.temperature is not None:
            kwargs["temperature"] = self.config.temperature
        return kwargs

    def generate(self, system: str, prompt: str) -> str:
        start_time = time.time()
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]

        try:
            response = self.client.chat.completions.create(messages=messages, **self._request_kwargs())
        except openai.OpenAIError as e:
            logger.error(
                f"Generation failed: {type(e).__name__}",
                extra={
                    "extra_fields": {
                        "model": self.config.model,
                        "base_url": self.config.base_url,
                        "error_type": type(e).__name__,
                        "error_message": str(e),
                    }
                },
            )
            raise GenerationError(
                f"Generation request failed: {e}",
                details={"model": self.config.model, "error_type": type(e).__name__},
            ) from e

        choices = getattr(response, "choices", None) or []
        text = choices[0].message.content if choices and choices[0].message else None
        if text is None:
            logger.error(
                "Generation returned no content",
                extra={"extra_fields": {"model": self.config.model}},
            )
            raise GenerationError(
                "Generation response contained no text", details={"model": self.config.model}
            )

        latency_ms = int((time.time() - start_time) * 1000)
        usage = getattr(response, "usage", None)
        logger.info(
            "Generation completed",
            extra={
                "extra_fields": {
                    "model": self.config.model,
                    "latency_ms": latency_ms,
                    "output_length": len(text),
                    "total_tokens": getattr(usage, "total_tokens", None),
                }
            },
        )
        return text

    def stream(self, system: str, messages: Sequence[ChatMessage]) -> Iterator[str]:
        payload = [{"role": "system", "content": system}]
        payload.extend(
            message.to_dict()
            for message in messages
            if message.role in (ChatRole.USER, ChatRole.ASSISTANT) and message.content.strip()
        )

        try:
            response = self.client.chat.completions.create(
                messages=payload, stream=True, **self._request_kwargs()
            )
            for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta is not None and delta.content:
                    yield delta.content
        except openai.OpenAIError as e:
            logger.error(
                f"Streaming generation failed: {type(e).__name__}",
                extra={
                    "extra_fields": {
                        "model": self.config.model,
                        "error_type": type(e).__name__,
                        "error_message": str(e),
                    }
                },
            )
            raise GenerationError(
                f"Streaming request failed: {e}",
                details={"model": self.config.model, "error_type": type(e).__name__},
            ) from e


def create_generation_client(config: LLMConfig) -> BaseGenerationClient:
    """Default factory used by the classifier and the research workflow."""
    from config.config import Config

    return OpenAICompatibleClient(config, timeout_s=Config().AIBOT_LLM_TIMEOUT_SECONDS)
