"""
Git working-tree state for Repobot reports.

Shells out to `git` to collect the current branch, pending changes,
recent commits, remotes and tags.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from .errors import GitError

logger = logging.getLogger(__name__)

# Field separator for `git log --pretty`
SEP = "\x1f"


@dataclass
class GitCommit:
    hash: str
    message: str
    author: str
    date: str


@dataclass
class GitInfo:
    """Snapshot of the repository state."""
    path: str
    current_branch: str
    is_clean: bool
    modified_files: list[str] = field(default_factory=list)
    staged_files: list[str] = field(default_factory=list)
    untracked_files: list[str] = field(default_factory=list)
    recent_commits: list[GitCommit] = field(default_factory=list)
    remotes: dict[str, str] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def run_git(args: list[str], repo_root: Path) -> str:
    """Run a git command and return its stdout."""
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=repo_root,
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError:
        raise GitError("git executable not found") from None
    except subprocess.CalledProcessError as e:
        raise GitError(f"git {' '.join(args)} failed: {e.stderr.strip()}") from e
    return result.stdout


def parse_status(output: str) -> tuple[list[str], list[str], list[str]]:
    """
    Parse `git status --porcelain` output.

    Returns (modified, staged, untracked). A file can be both staged and
    modified when it has further edits after `git add`.
    """
    modified: list[str] = []
    staged: list[str] = []
    untracked: list[str] = []

    for line in output.splitlines():
        if len(line) < 4:
            continue
        index, worktree, path = line[0], line[1], line[3:]
        if " -> " in path:
            # renames report "old -> new"
            path = path.split(" -> ", 1)[1]
        if index == "?" and worktree == "?":
            untracked.append(path)
            continue
        if index not in (" ", "?"):
            staged.append(path)
        if worktree in ("M", "D"):
            modified.append(path)

    return modified, staged, untracked


def parse_log(output: str) -> list[GitCommit]:
    commits = []
    for line in output.splitlines():
        parts = line.split(SEP)
        if len(parts) != 4:
            continue
        commits.append(GitCommit(hash=parts[0], author=parts[1], date=parts[2], message=parts[3]))
    return commits


def parse_remotes(output: str) -> dict[str, str]:
    """Map remote name to its fetch URL from `git remote -v`."""
    remotes: dict[str, str] = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) == 3 and parts[2] == "(fetch)":
            remotes[parts[0]] = parts[1]
    return remotes


def collect_git_info(repo_root: Path, max_commits: int = 10) -> GitInfo:
    """Collect repository state. Raises GitError if `repo_root` is not a git repo."""
    inside = run_git(["rev-parse", "--is-inside-work-tree"], repo_root).strip()
    if inside != "true":
        raise GitError(f"Not a git repository: {repo_root}")

    try:
        branch = run_git(["rev-parse", "--abbrev-ref", "HEAD"], repo_root).strip()
        log_output = run_git(
            ["log", f"-n{max_commits}", f"--pretty=format:%H{SEP}%an{SEP}%aI{SEP}%s"],
            repo_root,
        )
    except GitError:
        # Fresh repository without commits
        logger.debug("No commits yet in %s", repo_root)
        branch = "HEAD"
        log_output = ""

    modified, staged, untracked = parse_status(run_git(["status", "--porcelain"], repo_root))

    return GitInfo(
        path=str(repo_root),
        current_branch=branch or "HEAD",
        is_clean=not (modified or staged or untracked),
        modified_files=modified,
        staged_files=staged,
        untracked_files=untracked,
        recent_commits=parse_log(log_output),
        remotes=parse_remotes(run_git(["remote", "-v"], repo_root)),
        tags=run_git(["tag"], repo_root).split(),
    )


async def get_git_info(repo_root: Path, max_commits: int = 10) -> GitInfo:
    return await asyncio.to_thread(collect_git_info, repo_root, max_commits)
