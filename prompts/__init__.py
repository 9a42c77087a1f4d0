"""Prompt templates and their process-wide cache."""

from .prompt_store import PromptName, PromptStore, clear_prompt_cache, get_prompt_store, load_prompt

__all__ = ["PromptName", "PromptStore", "clear_prompt_cache", "get_prompt_store", "load_prompt"]
