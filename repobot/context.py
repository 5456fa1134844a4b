"""
Repository context assembly.

Gathers git state, TODO checklists and documentation concurrently into a
single RepositoryContext that reports and the LLM consume.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .config import RepobotConfig
from .documents import ChecklistDocument, DocumentIndex, StructuredDocument
from .git import GitInfo, get_git_info

logger = logging.getLogger(__name__)


@dataclass
class RepositoryContext:
    """Everything a report is written from."""
    git: GitInfo | None = None
    todos: dict[str, ChecklistDocument] = field(default_factory=dict)
    documentation: dict[str, StructuredDocument] = field(default_factory=dict)
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )

    @property
    def task_totals(self) -> tuple[int, int]:
        """(completed, total) across all checklist files."""
        completed = sum(doc.completed_count for doc in self.todos.values())
        total = sum(len(doc.tasks) for doc in self.todos.values())
        return completed, total

    def to_dict(self) -> dict[str, Any]:
        return {
            "git": self.git.to_dict() if self.git else None,
            "todos": {path: doc.to_dict() for path, doc in self.todos.items()},
            "documentation": {path: doc.to_dict() for path, doc in self.documentation.items()},
            "timestamp": self.timestamp,
        }


async def _nothing() -> None:
    return None


async def gather_context(
    config: RepobotConfig,
    index: DocumentIndex,
    include_git: bool = True,
    include_todos: bool = True,
    include_documentation: bool = True,
) -> RepositoryContext:
    """Collect the requested parts of the context concurrently."""
    paths = config.repository.paths
    git_info, todos, docs = await asyncio.gather(
        get_git_info(config.get_repo_path()) if include_git else _nothing(),
        index.read_checklists(paths.todos) if include_todos else _nothing(),
        index.read_documents(paths.documentation) if include_documentation else _nothing(),
    )

    context = RepositoryContext(
        git=git_info,
        todos=todos or {},
        documentation=docs or {},
    )
    completed, total = context.task_totals
    logger.info(
        "Gathered context: %d TODO file(s) (%d/%d tasks done), %d doc file(s)",
        len(context.todos), completed, total, len(context.documentation),
    )
    return context
