"""FastAPI dependencies for the feature switch and workflow access."""

from fastapi import HTTPException, status

from config.config import Config, assert_aibot_enabled
from utils.exceptions import AIBotDisabledError
from utils.logger import get_logger

logger = get_logger(__name__)


def require_aibot_enabled() -> None:
    """Hide every AIBot endpoint unless AIBOT_LOCAL_ENABLED=1."""
    try:
        assert_aibot_enabled()
    except AIBotDisabledError as e:
        logger.info(
            "AIBot request rejected: local mode disabled",
            extra={"extra_fields": {"error_code": e.error_code}},
        )
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")


def get_workflow():
    """Dependency to get the research workflow (singleton pattern)."""
    from orchestrator.research_workflow import ResearchWorkflow
    from prompts.prompt_store import get_prompt_store
    from tools.books.retrieval_client import create_retrieval_client_from_env
    from tools.web.factory import create_web_search_service_from_env

    if not hasattr(get_workflow, "_instance"):
        config = Config()
        get_workflow._instance = ResearchWorkflow(
            prompt_store=get_prompt_store(),
            web_search=create_web_search_service_from_env(config),
            retrieval_client=create_retrieval_client_from_env(config),
        )
    return get_workflow._instance


def get_classifier():
    """Dependency to get the intent classifier (singleton pattern)."""
    from orchestrator.classifier import IntentClassifier
    from prompts.prompt_store import get_prompt_store

    if not hasattr(get_classifier, "_instance"):
        get_classifier._instance = IntentClassifier(
            get_prompt_store(), classifier_model=Config().AIBOT_CLASSIFIER_MODEL
        )
    return get_classifier._instance
