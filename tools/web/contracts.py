"""Contract shared by every web search provider."""

from abc import ABC, abstractmethod

from models.research import WebSearchSnippet


class WebSearchProvider(ABC):
    """A search backend that returns normalized snippets."""

    name: str = "provider"

    @abstractmethod
    def search(self, query: str, top_k: int) -> list[WebSearchSnippet]:
        """
        Search the web for ``query``.

        Returns:
            Up to ``top_k`` snippets, best first

        Raises:
            WebSearchError: If the provider cannot answer
        """
