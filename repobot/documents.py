"""
Document discovery and parsing for Repobot.

Finds TODO checklists and markdown documentation under configured glob
patterns, drops paths excluded by ignore rules, and parses survivors into:
- ChecklistDocument: tasks with completion state, grouped by section
- StructuredDocument: header-delimited sections of a markdown file

Task completion is updated by rewriting only the checkbox of matching
lines; every other byte of the file is preserved.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable

from .errors import NotFoundError
from .ignore import RuleSet, is_ignored, load_rule_set, normalize_path
from .storage import LocalStorage, Storage

if TYPE_CHECKING:
    from .config import RepobotConfig

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"

HEADER_RE = re.compile(r"^(#+)\s+(.+)$")
TASK_RE = re.compile(r"^[-*]\s+\[([ x])\]\s+(.+)$")
# Same grammar as TASK_RE, split around the checkbox marker
TASK_MARKER_RE = re.compile(r"^([-*]\s+\[)[ x](\]\s+.+)$")


@dataclass
class Task:
    """A checklist item."""
    description: str
    completed: bool
    section: str = UNCATEGORIZED


@dataclass
class ChecklistDocument:
    """Parsed task-list file."""
    tasks: list[Task] = field(default_factory=list)
    sections: list[str] = field(default_factory=list)

    @property
    def completed_count(self) -> int:
        return sum(1 for task in self.tasks if task.completed)

    @property
    def pending(self) -> list[Task]:
        return [task for task in self.tasks if not task.completed]

    def tasks_in(self, section: str) -> list[Task]:
        return [task for task in self.tasks if task.section == section]

    def to_dict(self) -> dict[str, Any]:
        return {
            "tasks": [asdict(task) for task in self.tasks],
            "sections": list(self.sections),
        }


@dataclass
class DocumentSection:
    """A header and the non-blank lines under it."""
    title: str
    level: int
    content: list[str] = field(default_factory=list)


@dataclass
class StructuredDocument:
    """Parsed markdown file."""
    sections: list[DocumentSection] = field(default_factory=list)
    title: str = ""
    content: str = ""  # raw source, unmodified

    def to_dict(self) -> dict[str, Any]:
        return {
            "sections": [asdict(section) for section in self.sections],
            "title": self.title,
            "content": self.content,
        }


def parse_checklist(text: str) -> ChecklistDocument:
    """
    Parse a TODO file.

    Header lines set the current section; `- [ ] task` / `* [x] task` lines
    become tasks. Anything else is ignored, so malformed items never raise.
    """
    tasks: list[Task] = []
    current_section = ""

    for line in text.split("\n"):
        header = HEADER_RE.match(line)
        if header:
            current_section = header.group(2).strip()
            continue

        item = TASK_RE.match(line)
        if item:
            tasks.append(Task(
                description=item.group(2).strip(),
                completed=item.group(1) == "x",
                section=current_section or UNCATEGORIZED,
            ))

    sections: list[str] = []
    for task in tasks:
        if task.section not in sections:
            sections.append(task.section)

    return ChecklistDocument(tasks=tasks, sections=sections)


def parse_document(text: str) -> StructuredDocument:
    """
    Parse a markdown file into sections.

    A section is only kept if its header is followed by at least one
    non-blank line before the next header. Lines before the first header
    are not part of any section.
    """
    sections: list[DocumentSection] = []
    current = DocumentSection(title="", level=0)

    for line in text.split("\n"):
        header = HEADER_RE.match(line)
        if header:
            if current.title and current.content:
                sections.append(current)
            current = DocumentSection(
                title=header.group(2).strip(),
                level=len(header.group(1)),
            )
            continue

        if line.strip():
            current.content.append(line)

    if current.title and current.content:
        sections.append(current)

    return StructuredDocument(
        sections=sections,
        title=sections[0].title if sections else "",
        content=text,
    )


def set_completion_in_text(text: str, substring: str, completed: bool) -> tuple[str, int]:
    """
    Rewrite the checkbox of every task line containing `substring`.

    Returns the new text and the number of lines rewritten. Substring
    matching is not unique: all matching task lines change.
    """
    marker = "x" if completed else " "
    lines = text.split("\n")
    count = 0

    for i, line in enumerate(lines):
        item = TASK_MARKER_RE.match(line)
        if item and substring in line:
            lines[i] = f"{item.group(1)}{marker}{item.group(2)}"
            count += 1

    return "\n".join(lines), count


class DocumentIndex:
    """Discovers, filters, parses and updates repository documents."""

    def __init__(self, root: str | Path, rules: RuleSet | None = None, storage: Storage | None = None):
        self.root = str(root)
        self.rules = rules if rules is not None else RuleSet(root=self.root)
        self.storage = storage or LocalStorage()

    @classmethod
    async def open(cls, config: RepobotConfig, storage: Storage | None = None) -> DocumentIndex:
        """Build an index for the configured repository, loading its ignore rules."""
        storage = storage or LocalStorage()
        root = config.get_repo_path()
        rules = await load_rule_set(storage, root, config.repository.ignore)
        return cls(root, rules, storage)

    def relative(self, path: str | Path) -> str:
        return normalize_path(path, self.root)

    def _outside_root(self, rel: str) -> bool:
        return rel.startswith("../") or rel in ("", "..") or os.path.isabs(rel)

    def _check_visible(self, path: str | Path) -> str:
        rel = self.relative(path)
        if self._outside_root(rel):
            raise NotFoundError(f"Path is outside the repository: {path}", str(path))
        if is_ignored(self.rules, rel, is_dir=False):
            raise NotFoundError(f"File is ignored by ignore rules: {rel}", rel)
        return rel

    async def find_files(self, patterns: Iterable[str]) -> list[str]:
        """
        Expand glob patterns and return visible repository-relative paths.

        Results keep glob-match order; duplicates (by resolved absolute path)
        keep their first occurrence.
        """
        seen: set[str] = set()
        files: list[str] = []

        for pattern in patterns:
            for match in await self.storage.list_paths(pattern, self.root):
                absolute = os.path.join(self.root, match)
                resolved = os.path.realpath(absolute)
                if resolved in seen:
                    continue
                seen.add(resolved)

                rel = self.relative(absolute)
                if self._outside_root(rel):
                    logger.debug("Skipping %s outside the repository", match)
                    continue
                if is_ignored(self.rules, rel, is_dir=False):
                    logger.debug("Skipping ignored file %s", rel)
                    continue
                files.append(rel)

        return files

    async def read_text(self, path: str | Path) -> str:
        """Read a visible file. Raises NotFoundError if absent or ignored."""
        return await self._read(self._check_visible(path))

    async def _read(self, rel: str) -> str:
        return await self.storage.read_text(os.path.join(self.root, rel))

    async def read_checklists(self, patterns: Iterable[str]) -> dict[str, ChecklistDocument]:
        """Parse every visible file matching `patterns` as a checklist."""
        checklists: dict[str, ChecklistDocument] = {}
        for rel in await self.find_files(patterns):
            checklists[rel] = parse_checklist(await self._read(rel))
        logger.debug("Parsed %d checklist files", len(checklists))
        return checklists

    async def read_documents(self, patterns: Iterable[str]) -> dict[str, StructuredDocument]:
        """Parse every visible file matching `patterns` as markdown."""
        documents: dict[str, StructuredDocument] = {}
        for rel in await self.find_files(patterns):
            documents[rel] = parse_document(await self._read(rel))
        logger.debug("Parsed %d documentation files", len(documents))
        return documents

    async def update_tasks(self, path: str | Path, substring: str, completed: bool) -> int:
        """
        Rewrite the checkbox of tasks containing `substring` and save the file.

        The whole file is rewritten, even when nothing matched. No lock is
        taken: concurrent writers to the same path race and the last write wins.

        Returns:
            Number of task lines that matched
        """
        rel = self._check_visible(path)
        text = await self._read(rel)
        updated, count = set_completion_in_text(text, substring, completed)
        await self.storage.write_text(os.path.join(self.root, rel), updated)

        if count:
            logger.info("Updated %d task(s) in %s", count, rel)
        else:
            logger.warning("No task matching %r in %s", substring, rel)
        return count

    async def set_task_completion(self, path: str | Path, substring: str, completed: bool) -> bool:
        """
        Mark tasks containing `substring` as completed or not.

        Returns True once the file has been rewritten. Failures raise
        NotFoundError or StorageError; a substring with no matching task is
        not a failure (see `update_tasks` for the match count).
        """
        await self.update_tasks(path, substring, completed)
        return True
