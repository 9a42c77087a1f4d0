"""Text-generation clients."""

from .base_client import BaseGenerationClient
from .openai_compatible_client import OpenAICompatibleClient, create_generation_client

__all__ = ["BaseGenerationClient", "OpenAICompatibleClient", "create_generation_client"]
