"""Client for the external book retrieval service."""

from .retrieval_client import BookRetrievalClient, create_retrieval_client_from_env

__all__ = ["BookRetrievalClient", "create_retrieval_client_from_env"]
