"""
Report generation for Repobot.

Renders the repository context to a markdown digest with Jinja2 and, when
an LLM is configured, asks it to turn the digest into a written report.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, PackageLoader, TemplateError

from .context import RepositoryContext
from .errors import ConfigurationError
from .llm import LLMClient, NoOpLLM

logger = logging.getLogger(__name__)

REPORT_TEMPLATES = ("daily", "weekly", "monthly", "custom")

TITLES = {
    "daily": "Daily repository report",
    "weekly": "Weekly repository report",
    "monthly": "Monthly repository report",
    "custom": "Repository report",
}


def get_template_env(template_dir: Path | None = None) -> Environment:
    """Get Jinja2 environment with template loaders."""
    if template_dir is not None:
        loader = FileSystemLoader(str(template_dir))
    else:
        # Try package loader first, fall back to file loader
        try:
            loader = PackageLoader("repobot", "templates")
        except ValueError:
            loader = FileSystemLoader(str(Path(__file__).parent / "templates"))
    return Environment(
        loader=loader,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def build_template_context(context: RepositoryContext, template: str) -> dict[str, Any]:
    completed, total = context.task_totals
    return {
        "title": TITLES.get(template, TITLES["custom"]),
        "report_type": template,
        "timestamp": context.timestamp,
        "git": context.git,
        "todos": context.todos,
        "documentation": context.documentation,
        "completed": completed,
        "total": total,
    }


def render_digest(
    context: RepositoryContext,
    template: str = "daily",
    template_file: Path | None = None,
) -> str:
    """Render the context as markdown. `template_file` replaces the built-in layout."""
    if template_file is not None:
        if not template_file.is_file():
            raise ConfigurationError(f"Report template not found: {template_file}")
        env = get_template_env(template_file.parent)
        name = template_file.name
    else:
        env = get_template_env()
        name = "report.md.j2"

    try:
        return env.get_template(name).render(**build_template_context(context, template)).strip() + "\n"
    except TemplateError as e:
        raise ConfigurationError(f"Failed to render report template {name}: {e}") from e


class ReportGenerator:
    """Produces report text for a report type."""

    def __init__(self, llm: LLMClient | NoOpLLM | None = None):
        self.llm = llm or NoOpLLM()

    async def generate(
        self,
        template: str,
        context: RepositoryContext,
        template_file: Path | None = None,
    ) -> str:
        if template not in REPORT_TEMPLATES:
            raise ConfigurationError(
                f"Unknown report template: {template} (expected one of {', '.join(REPORT_TEMPLATES)})"
            )
        if template == "custom" and template_file is None:
            raise ConfigurationError("Custom reports need a template file")

        digest = render_digest(context, template, template_file)
        if not self.llm.enabled:
            return digest

        summary = await self.llm.summarize(digest, template)
        if summary is None:
            logger.warning("LLM summary unavailable, falling back to the plain digest")
            return digest
        return summary
