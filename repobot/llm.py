"""
LLM interface for Repobot using LiteLLM.

Turns the rendered repository digest into a short written report.
LiteLLM supports 100+ providers:
- OpenAI (gpt-4o, gpt-4-turbo)
- Anthropic (claude-3-opus, claude-3-sonnet)
- Google (gemini-pro, gemini-1.5-pro)
- Azure, AWS Bedrock, Ollama, and more

See: https://docs.litellm.ai/docs/providers
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import AIConfig

logger = logging.getLogger(__name__)

# Suppress LiteLLM's verbose logging
logging.getLogger("LiteLLM").setLevel(logging.WARNING)

SYSTEM_PROMPT = (
    "You are Repobot, an assistant that writes concise progress reports "
    "for software repositories."
)


def build_summary_prompt(digest: str, report_type: str) -> str:
    return (
        f"Write a {report_type} progress report from the repository state below. "
        "Highlight finished work, open tasks and uncommitted changes.\n\n"
        f"{digest}"
    )


class LLMClient:
    """LiteLLM-based client for report summaries."""

    def __init__(
        self,
        model: str = "gpt-4",
        temperature: float = 0.3,
        max_tokens: int = 1500,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._litellm = None

    def _get_litellm(self):
        """Lazy import LiteLLM."""
        if self._litellm is None:
            import litellm
            self._litellm = litellm
        return self._litellm

    @property
    def enabled(self) -> bool:
        """Check if the provider's API key is present."""
        model_lower = self.model.lower()
        if model_lower.startswith(("gpt-", "o1", "o3", "openai/")):
            return bool(os.environ.get("OPENAI_API_KEY"))
        elif model_lower.startswith(("claude-", "anthropic/")):
            return bool(os.environ.get("ANTHROPIC_API_KEY"))
        elif model_lower.startswith("gemini"):
            return bool(os.environ.get("GOOGLE_API_KEY") or os.environ.get("GEMINI_API_KEY"))
        return True

    def _complete(self, digest: str, report_type: str) -> str:
        litellm = self._get_litellm()
        response = litellm.completion(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_summary_prompt(digest, report_type)},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        return response.choices[0].message.content or ""

    async def summarize(self, digest: str, report_type: str = "daily") -> str | None:
        """Summarize the digest. Returns None if the call fails."""
        try:
            content = await asyncio.to_thread(self._complete, digest, report_type)
        except Exception as e:
            logger.warning(f"LLM summary failed: {e}")
            return None
        return content.strip() or None


class NoOpLLM:
    """No-op LLM for when AI is disabled."""

    @property
    def enabled(self) -> bool:
        return False

    async def summarize(self, digest: str, report_type: str = "daily") -> str | None:
        return None


def get_llm_client(config: AIConfig | None = None) -> LLMClient | NoOpLLM:
    """Get the configured LLM client."""
    if config is None or not config.enabled:
        return NoOpLLM()

    return LLMClient(
        model=config.litellm_model,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )
