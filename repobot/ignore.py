"""
Gitignore-style path filtering for Repobot.

Compiles ignore rules from one or more rule files into an immutable
RuleSet and answers visibility queries for repository paths:
- `*.log` matches at any depth, `docs/*.md` is anchored to the root
- `build/` matches the directory and everything beneath it
- `!keep.log` re-includes a path excluded by an earlier rule
- the last matching rule decides; no matching rule means visible
"""

from __future__ import annotations

import logging
import os
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from .errors import ConfigurationError, NotFoundError

if TYPE_CHECKING:
    from .config import IgnoreConfig
    from .storage import Storage

logger = logging.getLogger(__name__)


def translate_glob(pattern: str) -> str:
    """
    Translate a gitignore glob into a regular expression body (no anchors).

    `*` and `?` never cross a `/`; `**/` matches zero or more directories and
    a trailing `/**` matches everything inside. An unclosed `[` is literal.
    """
    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                j = i + 2
                at_segment_start = i == 0 or pattern[i - 1] == "/"
                if at_segment_start and j < n and pattern[j] == "/":
                    out.append("(?:.*/)?")
                    i = j + 1
                    continue
                if at_segment_start and j == n:
                    out.append(".*")
                    i = j
                    continue
                out.append("[^/]*")
                i = j
                continue
            out.append("[^/]*")
            i += 1
        elif c == "?":
            out.append("[^/]")
            i += 1
        elif c == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                j += 1
            if j >= n:
                out.append(re.escape(c))
                i += 1
                continue
            body = pattern[i + 1:j]
            negate = body[:1] in ("!", "^")
            if negate:
                body = body[1:]
            body = body.replace("\\", "\\\\").replace("[", "\\[")
            out.append("[" + ("^" if negate else "") + body + "]")
            i = j + 1
        elif c == "\\" and i + 1 < n:
            out.append(re.escape(pattern[i + 1]))
            i += 2
        else:
            out.append(re.escape(c))
            i += 1
    return "".join(out)


@dataclass(frozen=True)
class IgnoreRule:
    """A single compiled ignore pattern."""
    pattern: str  # source line, as written
    negated: bool
    directory_only: bool
    anchored: bool
    regex: re.Pattern[str] = field(compare=False, repr=False)

    @classmethod
    def parse(cls, line: str) -> IgnoreRule | None:
        """Parse one pattern line. Returns None for lines that match nothing."""
        text = line.strip()
        negated = False
        if text.startswith("!"):
            negated = True
            text = text[1:]
        elif text.startswith(("\\!", "\\#")):
            text = text[1:]

        directory_only = text.endswith("/")
        text = text.rstrip("/")
        if not text:
            return None

        anchored = "/" in text
        text = text.lstrip("/")
        if not text:
            return None

        prefix = "^" if anchored else "(?:^|/)"
        try:
            regex = re.compile(prefix + translate_glob(text) + "$")
        except re.error:
            # e.g. a reversed character range; match the text literally
            regex = re.compile(prefix + re.escape(text) + "$")

        return cls(
            pattern=line.strip(),
            negated=negated,
            directory_only=directory_only,
            anchored=anchored,
            regex=regex,
        )

    def matches(self, path: str, parents: list[str], is_dir: bool | None) -> bool:
        """True if this rule matches `path` or one of its parent directories."""
        for parent in parents:
            if self.regex.search(parent):
                return True
        if self.directory_only and is_dir is False:
            return False
        return self.regex.search(path) is not None


@dataclass(frozen=True)
class RuleSet:
    """Immutable, ordered collection of ignore rules."""
    rules: tuple[IgnoreRule, ...] = ()
    root: str | None = None  # used to relativize absolute query paths

    def __len__(self) -> int:
        return len(self.rules)

    @property
    def patterns(self) -> list[str]:
        return [rule.pattern for rule in self.rules]


def compile_rules(rule_texts: Iterable[str], root: str | Path | None = None) -> RuleSet:
    """
    Compile raw rule file contents into a RuleSet.

    Blobs are read in the order given (primary file first); blank lines and
    comment lines are dropped. Parsing is permissive and never raises.
    """
    rules: list[IgnoreRule] = []
    for text in rule_texts:
        for line in text.splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            rule = IgnoreRule.parse(line)
            if rule is not None:
                rules.append(rule)
    return RuleSet(rules=tuple(rules), root=str(root) if root is not None else None)


def normalize_path(path: str | Path, root: str | Path | None = None) -> str:
    """
    Normalize a path to repository-relative form with `/` separators.

    Returns "" for the root itself. Paths outside the root keep their
    leading `../` so that no rule can match them.
    """
    text = str(path)
    if root is not None and os.path.isabs(text):
        try:
            text = os.path.relpath(text, str(root))
        except ValueError:
            # different drive on Windows
            pass
    text = text.replace(os.sep, "/").replace("\\", "/")
    if not text:
        return ""
    text = posixpath.normpath(text)
    return "" if text == "." else text


def is_ignored(rule_set: RuleSet, path: str | Path, is_dir: bool | None = None) -> bool:
    """
    Check whether `path` is excluded by `rule_set`.

    `is_dir` says whether the path is a directory. When unknown (None),
    directory-only rules are allowed to match the path itself. A trailing
    `/` on `path` marks it as a directory.
    """
    raw = str(path)
    if raw.endswith(("/", "\\")) and is_dir is None:
        is_dir = True

    rel = normalize_path(raw, rule_set.root)
    if not rel or rel == ".." or rel.startswith("../") or os.path.isabs(rel):
        return False

    parts = rel.split("/")
    parents = ["/".join(parts[:k]) for k in range(1, len(parts))]

    ignored = False
    for rule in rule_set.rules:
        if rule.matches(rel, parents, is_dir):
            ignored = not rule.negated
    return ignored


async def load_rule_set(storage: Storage, root: str | Path, config: IgnoreConfig) -> RuleSet:
    """
    Read the primary and supplementary ignore files and compile them.

    Supplementary files are optional. A missing primary file is an empty
    rule source unless `config.require_primary` is set.
    """
    texts: list[str] = []
    primary_path = os.path.join(str(root), config.primary)
    try:
        texts.append(await storage.read_text(primary_path))
        logger.debug("Loaded ignore rules from %s", config.primary)
    except NotFoundError:
        if config.require_primary:
            raise ConfigurationError(
                f"Required ignore file not found: {config.primary}"
            ) from None
        logger.info("No %s found, continuing without its rules", config.primary)

    for extra in config.extra:
        try:
            texts.append(await storage.read_text(os.path.join(str(root), extra)))
            logger.debug("Loaded supplementary ignore rules from %s", extra)
        except NotFoundError:
            logger.debug("Supplementary ignore file %s not found, skipped", extra)

    rule_set = compile_rules(texts, root=root)
    logger.debug("Compiled %d ignore rules", len(rule_set))
    return rule_set
