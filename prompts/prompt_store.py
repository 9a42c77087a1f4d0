"""Lazy loader for the markdown prompt templates."""

from collections.abc import Callable
from enum import Enum
from pathlib import Path

from utils.exceptions import PromptNotFoundError
from utils.logger import get_logger

from .cache import PromptCache

logger = get_logger(__name__)

DEFAULT_PROMPTS_DIR = Path(__file__).parent / "templates"


class PromptName(str, Enum):
    KEYWORD_GENERATION = "keyword_generation"
    ARTICLE_ANALYSIS = "article_analysis"
    ARTICLE_CROSS_ANALYSIS = "article_cross_analysis"
    QUESTION_CLASSIFIER = "aibot_question_classifier"
    RECOMMENDATION = "recommendation"


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


class PromptStore:
    """
    Serves prompt templates from ``<prompts_dir>/<name>.md``.

    The first request for a name reads the file; later requests are served
    from the cache until ``clear_cache()`` is called.
    """

    def __init__(
        self,
        prompts_dir: Path | str | None = None,
        cache: PromptCache | None = None,
        reader: Callable[[Path], str] | None = None,
    ):
        self.prompts_dir = Path(prompts_dir) if prompts_dir else DEFAULT_PROMPTS_DIR
        self.cache = cache if cache is not None else PromptCache()
        self._reader = reader or _read_text

    def path_for(self, name: str) -> Path:
        return self.prompts_dir / f"{name}.md"

    def _load_from_disk(self, name: str) -> str:
        path = self.path_for(name)
        try:
            content = self._reader(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.error(
                "Failed to read prompt",
                extra={"extra_fields": {"prompt_name": name, "path": str(path), "error": str(e)}},
            )
            raise PromptNotFoundError(
                f"Prompt '{name}' could not be loaded", details={"path": str(path)}
            ) from e
        logger.debug(
            "Prompt loaded",
            extra={"extra_fields": {"prompt_name": name, "length": len(content)}},
        )
        return content

    def load_prompt(self, name: PromptName | str) -> str:
        """
        Return the prompt text for ``name``.

        Raises:
            PromptNotFoundError: If the prompt file is missing or unreadable
        """
        key = name.value if isinstance(name, PromptName) else str(name)
        return self.cache.get_or_load(key, self._load_from_disk)

    def clear_cache(self) -> None:
        """Drop every cached prompt (hot reload, test isolation)."""
        self.cache.clear()
        logger.info("Prompt cache cleared")


_default_store: PromptStore | None = None


def get_prompt_store() -> PromptStore:
    """Process-wide store, rooted at AIBOT_PROMPTS_DIR when set."""
    global _default_store
    if _default_store is None:
        from config.config import Config

        _default_store = PromptStore(prompts_dir=Config().PROMPTS_DIR)
    return _default_store


def load_prompt(name: PromptName | str) -> str:
    return get_prompt_store().load_prompt(name)


def clear_prompt_cache() -> None:
    get_prompt_store().clear_cache()
