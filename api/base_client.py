from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence

from config.llm_config import LLMConfig
from models.chat_message import ChatMessage


class BaseGenerationClient(ABC):
    """
    Abstract base class for text-generation clients.
    All provider-specific clients should inherit from this class and implement its methods.
    """

    def __init__(self, config: LLMConfig, **kwargs):
        """
        Initialize the client.

        Args:
            config: Resolved endpoint, credentials, model and temperature
            **kwargs: Additional provider-specific parameters
        """
        self.config = config
        self.model_name = config.model

    @abstractmethod
    def generate(self, system: str, prompt: str) -> str:
        """
        Generate text for a (system prompt, user prompt) pair.

        Blocking network call with no automatic retry.

        Returns:
            The generated text

        Raises:
            GenerationError: On timeout, non-success status or malformed response
        """

    @abstractmethod
    def stream(self, system: str, messages: Sequence[ChatMessage]) -> Iterator[str]:
        """
        Stream a reply to a conversation as text deltas.

        Raises:
            GenerationError: If the call fails before or while streaming
        """
