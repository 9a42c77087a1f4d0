"""LLM endpoint resolution: explicit overrides > retrieval hint > environment defaults."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from utils.exceptions import ConfigurationError
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class LLMConfig:
    base_url: str
    api_key: str
    model: str
    temperature: float | None = None

    def describe(self) -> dict[str, Any]:
        """Loggable view; never exposes the key."""
        return {
            "model": self.model,
            "base_url": self.base_url,
            "has_api_key": bool(self.api_key),
            "temperature": self.temperature,
        }


@dataclass(frozen=True)
class LLMHintMetadata:
    """LLM suggestion embedded in a retrieval response."""

    base_url: str | None = None
    api_key: str | None = None
    model: str | None = None
    base_url_env: str | None = None
    api_key_env: str | None = None
    model_env: str | None = None
    suggested_temperature: float | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "LLMHintMetadata | None":
        if not isinstance(data, Mapping):
            return None

        def _text(key: str) -> str | None:
            value = data.get(key)
            return value if isinstance(value, str) and value else None

        temperature = data.get("suggested_temperature")
        if isinstance(temperature, bool) or not isinstance(temperature, (int, float)):
            temperature = None

        return cls(
            base_url=_text("base_url"),
            api_key=_text("api_key"),
            model=_text("model"),
            base_url_env=_text("base_url_env"),
            api_key_env=_text("api_key_env"),
            model_env=_text("model_env"),
            suggested_temperature=float(temperature) if temperature is not None else None,
        )


def _read_env(key: str | None) -> str | None:
    if not key:
        return None
    return os.getenv(key) or None


def _first(*values: str | None) -> str | None:
    for value in values:
        if value:
            return value
    return None


def extract_llm_hint(metadata: Mapping[str, Any] | None) -> LLMHintMetadata | None:
    """Read the hint from retrieval metadata (``llm_hint`` or ``llmHint``)."""
    if not isinstance(metadata, Mapping):
        return None
    raw = metadata.get("llm_hint")
    if raw is None:
        raw = metadata.get("llmHint")
    return LLMHintMetadata.from_mapping(raw)


def resolve_llm_config(
    hint: LLMHintMetadata | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> LLMConfig:
    """
    Combine explicit overrides, a retrieval hint and the AIBOT_LLM_* defaults.

    Args:
        hint: Optional hint from retrieval metadata. Direct values win over
            the environment variables the hint names.
        overrides: Optional mapping with any of base_url, api_key, model,
            temperature. Highest precedence.

    Returns:
        Fully populated LLMConfig

    Raises:
        ConfigurationError: If base_url, api_key or model stays unresolved
    """
    overrides = overrides or {}
    hint = hint or LLMHintMetadata()

    base_url = _first(
        overrides.get("base_url"),
        hint.base_url,
        _read_env(hint.base_url_env),
        os.getenv("AIBOT_LLM_BASE_URL"),
    )
    api_key = _first(
        overrides.get("api_key"),
        hint.api_key,
        _read_env(hint.api_key_env),
        os.getenv("AIBOT_LLM_API_KEY"),
    )
    model = _first(
        overrides.get("model"),
        hint.model,
        _read_env(hint.model_env),
        os.getenv("AIBOT_LLM_MODEL"),
    )

    if not base_url or not api_key or not model:
        logger.error(
            "LLM configuration incomplete",
            extra={
                "extra_fields": {
                    "has_base_url": bool(base_url),
                    "has_api_key": bool(api_key),
                    "has_model": bool(model),
                }
            },
        )
        raise ConfigurationError(
            "AIBot LLM configuration is incomplete (base URL, API key and model are required)",
            details={
                "has_base_url": bool(base_url),
                "has_api_key": bool(api_key),
                "has_model": bool(model),
            },
        )

    temperature = overrides.get("temperature")
    if temperature is None:
        temperature = hint.suggested_temperature

    return LLMConfig(base_url=base_url, api_key=api_key, model=model, temperature=temperature)
