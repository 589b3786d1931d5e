"""Changed files and diff for a push, computed with the git CLI."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from gate import ReviewGateError

logger = logging.getLogger(__name__)

# git hash-object -t tree /dev/null
EMPTY_TREE_SHA = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


class GitError(ReviewGateError):
    """A git command failed."""


@dataclass(frozen=True)
class RefUpdate:
    """One line of pre-push stdin."""

    local_ref: str
    local_sha: str
    remote_ref: str
    remote_sha: str

    @property
    def is_delete(self) -> bool:
        return _is_zero_sha(self.local_sha)

    @property
    def is_new_ref(self) -> bool:
        return _is_zero_sha(self.remote_sha)


@dataclass
class PushChanges:
    files: list[str] = field(default_factory=list)
    diff: str = ""


def _is_zero_sha(sha: str) -> bool:
    return bool(sha) and set(sha) == {"0"}


def parse_push_refs(lines: Iterable[str]) -> list[RefUpdate]:
    """Parse ``<local ref> <local sha> <remote ref> <remote sha>`` lines."""
    updates: list[RefUpdate] = []
    for line in lines:
        parts = line.split()
        if not parts:
            continue
        if len(parts) != 4:
            logger.warning("Ignoring malformed pre-push line: %r", line.rstrip("\n"))
            continue
        updates.append(RefUpdate(*parts))
    return updates


def run_git(args: list[str], cwd: str | Path | None = None) -> str:
    """Execute a git command and return stdout."""
    cmd = ["git", *args]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, cwd=cwd, check=True)
    except subprocess.CalledProcessError as e:
        raise GitError(f"{' '.join(cmd)} failed: {e.stderr.strip() or e.returncode}") from e
    except OSError as e:
        raise GitError(f"could not run git: {e}") from e
    return result.stdout


def repo_root(cwd: str | Path | None = None) -> Path:
    return Path(run_git(["rev-parse", "--show-toplevel"], cwd=cwd).strip())


def hooks_dir(cwd: str | Path | None = None) -> Path:
    """Hooks directory of the repository, honouring core.hooksPath."""
    path = Path(run_git(["rev-parse", "--git-path", "hooks"], cwd=cwd).strip())
    if not path.is_absolute():
        path = Path(cwd or ".").resolve() / path
    return path


def _commit_exists(sha: str, cwd: str | Path | None) -> bool:
    try:
        run_git(["cat-file", "-e", f"{sha}^{{commit}}"], cwd=cwd)
    except GitError:
        return False
    return True


def push_base(
    update: RefUpdate,
    remote: str,
    base_branch: str = "main",
    cwd: str | Path | None = None,
) -> str:
    """Return the commit (or empty tree) the pushed commits are compared to.

    An existing remote ref is its own base when known locally. Otherwise the
    merge base with ``<remote>/<base_branch>`` is used, and the empty tree
    when there is none.
    """
    if not update.is_new_ref and _commit_exists(update.remote_sha, cwd):
        return update.remote_sha

    try:
        merge_base = run_git(
            ["merge-base", update.local_sha, f"refs/remotes/{remote}/{base_branch}"], cwd=cwd,
        ).strip()
    except GitError:
        merge_base = ""

    if merge_base:
        return merge_base
    logger.info("No merge base for %s, diffing against the empty tree", update.local_ref)
    return EMPTY_TREE_SHA


def collect_push_changes(
    updates: Iterable[RefUpdate],
    remote: str,
    base_branch: str = "main",
    cwd: str | Path | None = None,
) -> PushChanges:
    """Union of changed files (first-seen order) and concatenated diffs."""
    changes = PushChanges()
    seen: set[str] = set()
    diffs: list[str] = []

    for update in updates:
        if update.is_delete:
            logger.debug("Skipping deleted ref %s", update.remote_ref)
            continue

        base = push_base(update, remote, base_branch=base_branch, cwd=cwd)
        names = run_git(["diff", "--name-only", base, update.local_sha], cwd=cwd)
        for name in names.splitlines():
            name = name.strip()
            if name and name not in seen:
                seen.add(name)
                changes.files.append(name)

        diff = run_git(["diff", base, update.local_sha], cwd=cwd)
        if diff.strip():
            diffs.append(diff)

    changes.diff = "\n".join(diffs)
    return changes
