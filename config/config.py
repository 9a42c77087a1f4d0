import os
from pathlib import Path

from dotenv import load_dotenv

from utils.exceptions import AIBotDisabledError
from utils.logger import get_logger

logger = get_logger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent

DEFAULT_BOOK_API_BASE_URL = "http://127.0.0.1:8000"
DEFAULT_CLASSIFIER_MODEL = "gpt-4.1-nano"
DEFAULT_PLAIN_TEXT_TEMPLATE = "【{title}】{highlights} - {rating}分"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(
            "Invalid numeric environment value, using default",
            extra={"extra_fields": {"variable": name, "default": default}},
        )
        return default


class Config:
    """Configuration management for the AIBot service."""

    def __init__(self):
        """Initialize configuration with environment variables."""
        env_path = PROJECT_ROOT / '.env'
        if env_path.exists():
            load_dotenv(dotenv_path=env_path)

        # Feature switch for the whole AIBot surface
        self.AIBOT_LOCAL_ENABLED = os.getenv('AIBOT_LOCAL_ENABLED', '0').strip() == '1'

        # Default LLM endpoint
        self.AIBOT_LLM_BASE_URL = os.getenv('AIBOT_LLM_BASE_URL')
        self.AIBOT_LLM_API_KEY = os.getenv('AIBOT_LLM_API_KEY')
        self.AIBOT_LLM_MODEL = os.getenv('AIBOT_LLM_MODEL')
        self.AIBOT_CLASSIFIER_MODEL = os.getenv('AIBOT_CLASSIFIER_MODEL', DEFAULT_CLASSIFIER_MODEL)
        self.AIBOT_LLM_TIMEOUT_SECONDS = _env_float('AIBOT_LLM_TIMEOUT_SECONDS', 60.0)

        # Book retrieval backend
        self.BOOK_API_BASE_URL = (os.getenv('BOOK_API_BASE_URL') or DEFAULT_BOOK_API_BASE_URL).rstrip('/')
        self.BOOK_API_TIMEOUT_SECONDS = _env_float('BOOK_API_TIMEOUT_SECONDS', 30.0)

        # Web search
        self.JINA_API_KEY = os.getenv('JINA_API_KEY')
        self.USE_JINA_SEARCH = os.getenv('USE_JINA_SEARCH', 'true').strip().lower() != 'false'
        self.JINA_FETCH_CONTENT = _env_flag('JINA_FETCH_CONTENT', 'false')

        # DuckDuckGo MCP server; stdio command wins over the WebSocket URL
        self.DDG_MCP_COMMAND = os.getenv('DDG_MCP_COMMAND') or None
        self.DDG_MCP_ARGS = [a for a in os.getenv('DDG_MCP_ARGS', '').split(',') if a]
        self.DDG_MCP_WS_URL = os.getenv('DDG_MCP_WS_URL') or None
        self.DDG_MCP_TOOL_NAME = os.getenv('DDG_MCP_TOOL_NAME') or 'search'

        prompts_dir = os.getenv('AIBOT_PROMPTS_DIR')
        self.PROMPTS_DIR = Path(prompts_dir) if prompts_dir else PROJECT_ROOT / 'prompts' / 'templates'

    def validate(self) -> bool:
        """
        Check that the settings the workflows need are present.

        Missing values are reported but never defaulted; the request that needs
        them fails with a ConfigurationError instead.

        Returns:
            bool: True if configuration is complete, False otherwise
        """
        missing = [
            name
            for name in ('AIBOT_LLM_BASE_URL', 'AIBOT_LLM_API_KEY', 'AIBOT_LLM_MODEL')
            if not getattr(self, name)
        ]
        if self.USE_JINA_SEARCH and not self.JINA_API_KEY:
            missing.append('JINA_API_KEY')

        if missing:
            logger.warning(
                "AIBot configuration incomplete",
                extra={"extra_fields": {"missing": missing}},
            )
            return False
        return True

    def get_model_info(self) -> str:
        """Human-readable description of the default LLM endpoint."""
        if not self.AIBOT_LLM_MODEL:
            return "Unconfigured"
        return f"{self.AIBOT_LLM_MODEL} @ {self.AIBOT_LLM_BASE_URL or 'unset'}"


def assert_aibot_enabled(config: Config | None = None) -> None:
    """
    Raises:
        AIBotDisabledError: Unless AIBOT_LOCAL_ENABLED=1
    """
    config = config or Config()
    if not config.AIBOT_LOCAL_ENABLED:
        raise AIBotDisabledError()
