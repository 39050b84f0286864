#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Git-side branch inspection.

- RepoIdentity / parse_remote_url / resolve_repo_identity: owner/repo from the remote URL
- BranchInspector: last commit, merge status, open PR, diff stats for one branch

Every git call goes through a CommandRunner so the whole module can be driven by scripted
output in tests.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from common import (
    DEFAULT_FALLBACK_MAIN_BRANCH,
    DEFAULT_MAIN_BRANCH,
    DEFAULT_REMOTE_NAME,
    CommandError,
    CommandRunner,
)
from common_github import GitHubCLIClient
from common_types import MergeStatus

_logger = logging.getLogger(__name__)

UNKNOWN = "unknown"
DEFAULT_HOST = "github.com"
MAX_MESSAGE_LEN = 80

# scheme://[user@]host[:port]/owner/repo[.git][/]
_HTTPS_REMOTE_RE = re.compile(
    r"^[A-Za-z][A-Za-z0-9+.-]*://(?:[^@/]+@)?(?P<host>[^/:]+)(?::\d+)?/(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$"
)
# user@host:owner/repo[.git]
_SSH_REMOTE_RE = re.compile(
    r"^[^@\s/]+@(?P<host>[^:/\s]+):(?P<owner>[^/\s]+)/(?P<repo>[^/\s]+?)(?:\.git)?/?$"
)

_FILES_CHANGED_RE = re.compile(r"(\d+) files? changed")
_INSERTIONS_RE = re.compile(r"(\d+) insertions?\(\+\)")
_DELETIONS_RE = re.compile(r"(\d+) deletions?\(-\)")


# ======================================================================================
# Repository identity
# ======================================================================================

@dataclass(frozen=True)
class RepoIdentity:
    owner: str
    name: str
    host: str = DEFAULT_HOST

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"

    def branch_url(self, branch: str, *, remote_name: Optional[str] = None) -> str:
        """Hosting-provider branch view, e.g. https://github.com/acme/widgets/tree/feature/x

        `remote_name` is set only for remote-tracking names ("origin/feature/x"); local
        branch names are linked verbatim.
        """
        name = strip_remote_prefix(branch, remote_name) if remote_name else branch
        return f"https://{self.host}/{self.owner}/{self.name}/tree/{name}"


UNKNOWN_IDENTITY = RepoIdentity(owner=UNKNOWN, name=UNKNOWN)


def strip_remote_prefix(branch: str, remote_name: str = DEFAULT_REMOTE_NAME) -> str:
    """"origin/feature/x" -> "feature/x"; local names are returned unchanged."""
    prefix = f"{remote_name}/"
    return branch[len(prefix):] if branch.startswith(prefix) else branch


def parse_remote_url(url: str) -> Optional[RepoIdentity]:
    """Parse HTTPS-style or SSH-style remote URLs (any host).

    Examples:
        "https://example.com/acme/widgets.git" -> RepoIdentity("acme", "widgets", "example.com")
        "git@example.com:acme/widgets.git"     -> RepoIdentity("acme", "widgets", "example.com")
        "/srv/git/widgets.git"                 -> None
    """
    u = str(url or "").strip()
    for regex in (_HTTPS_REMOTE_RE, _SSH_REMOTE_RE):
        m = regex.match(u)
        if m:
            return RepoIdentity(owner=m.group("owner"), name=m.group("repo"), host=m.group("host"))
    return None


def resolve_repo_identity(runner: CommandRunner, remote_name: str = DEFAULT_REMOTE_NAME) -> RepoIdentity:
    """Owner/repo of `remote_name`, or the unknown placeholder (with a warning)."""
    try:
        url = runner.run(["config", "--get", f"remote.{remote_name}.url"]).strip()
    except CommandError:
        _logger.warning("No URL configured for remote '%s'; branch links will use %s/%s", remote_name, UNKNOWN, UNKNOWN)
        return UNKNOWN_IDENTITY
    identity = parse_remote_url(url)
    if identity is None:
        _logger.warning("Could not parse remote URL %r; branch links will use %s/%s", url, UNKNOWN, UNKNOWN)
        return UNKNOWN_IDENTITY
    return identity


def detect_main_branch(
    runner: CommandRunner,
    *,
    remote_name: str = DEFAULT_REMOTE_NAME,
    remote_mode: bool = False,
) -> str:
    """Prefer `main`; fall back to `master` when only that exists."""
    def _exists(branch: str) -> bool:
        ref = f"refs/remotes/{remote_name}/{branch}" if remote_mode else f"refs/heads/{branch}"
        return runner.succeeds(["rev-parse", "--verify", "--quiet", ref])

    if not _exists(DEFAULT_MAIN_BRANCH) and _exists(DEFAULT_FALLBACK_MAIN_BRANCH):
        _logger.info("No '%s' branch; using '%s' as mainline", DEFAULT_MAIN_BRANCH, DEFAULT_FALLBACK_MAIN_BRANCH)
        return DEFAULT_FALLBACK_MAIN_BRANCH
    return DEFAULT_MAIN_BRANCH


# ======================================================================================
# Parsing helpers
# ======================================================================================

@dataclass(frozen=True)
class LastCommitInfo:
    timestamp: datetime
    author: str
    message: str


@dataclass(frozen=True)
class BranchStats:
    commit_count: int = 0
    files_changed: int = 0
    lines_added: int = 0
    lines_deleted: int = 0

    @property
    def net_change(self) -> int:
        return self.lines_added - self.lines_deleted


def sanitize_commit_message(message: str, *, max_len: int = MAX_MESSAGE_LEN) -> str:
    """Collapse whitespace, replace `|`, and cap at `max_len` characters.

    An 81-character message becomes 77 characters + "..."; 80 characters stay as-is.
    """
    text = " ".join(str(message or "").replace("|", "/").split())
    if len(text) > max_len:
        text = text[: max_len - 3] + "..."
    return text


def parse_last_commit_line(output: str) -> Optional[LastCommitInfo]:
    """Parse "<iso date>|<author>|<subject>" (first non-empty line)."""
    lines = [ln for ln in str(output or "").splitlines() if ln.strip()]
    if not lines:
        return None
    parts = lines[0].split("|", 2)
    if len(parts) != 3:
        return None
    date_s, author, subject = (p.strip() for p in parts)
    try:
        ts = datetime.fromisoformat(date_s.replace("Z", "+00:00"))
    except ValueError:
        return None
    return LastCommitInfo(timestamp=ts, author=author, message=sanitize_commit_message(subject))


def parse_shortstat(output: str) -> Tuple[int, int, int]:
    """Parse `git diff --shortstat` -> (files_changed, insertions, deletions).

    Each clause is optional; e.g. " 2 files changed, 5 deletions(-)" -> (2, 0, 5).
    """
    text = str(output or "")

    def _num(regex: "re.Pattern[str]") -> int:
        m = regex.search(text)
        return int(m.group(1)) if m else 0

    return _num(_FILES_CHANGED_RE), _num(_INSERTIONS_RE), _num(_DELETIONS_RE)


# ======================================================================================
# Branch inspection
# ======================================================================================

class BranchInspector:
    """Per-branch queries against the mainline branch.

    In remote mode the mainline ref is "<remote>/<main>" and branch names carry the remote
    prefix ("origin/feature/x"); the prefix is stripped for PR lookups.
    """

    def __init__(
        self,
        runner: CommandRunner,
        github: GitHubCLIClient,
        *,
        main_branch: str = DEFAULT_MAIN_BRANCH,
        remote_name: str = DEFAULT_REMOTE_NAME,
        remote_mode: bool = False,
    ):
        self.runner = runner
        self.github = github
        self.main_branch = main_branch
        self.remote_name = remote_name
        self.remote_mode = remote_mode

    @property
    def mainline_ref(self) -> str:
        return f"{self.remote_name}/{self.main_branch}" if self.remote_mode else self.main_branch

    def _pr_head(self, branch: str) -> str:
        return strip_remote_prefix(branch, self.remote_name) if self.remote_mode else branch

    def list_unmerged_branches(self) -> List[str]:
        """Branches git reports as not merged into mainline, in listing order."""
        args = ["branch"]
        if self.remote_mode:
            args.append("-r")
        args += ["--no-merged", self.mainline_ref, "--format=%(refname:short)"]
        if self.remote_mode:
            # `-r` lists every remote; only the configured one is compared against mainline.
            args += ["--list", f"{self.remote_name}/*"]
        out = self.runner.run(args)

        branches: List[str] = []
        for line in out.splitlines():
            name = line.strip()
            if not name or "->" in name:
                continue
            # Symbolic remote HEAD shows up as "origin/HEAD" (or bare "origin" on newer git).
            if self.remote_mode and (name == self.remote_name or name.endswith("/HEAD")):
                continue
            if name == self.mainline_ref:
                continue
            branches.append(name)
        return branches

    def get_last_commit_info(self, branch: str) -> Optional[LastCommitInfo]:
        out = self.runner.run(["log", "-1", "--format=%aI|%an|%s", branch])
        info = parse_last_commit_line(out)
        if info is None:
            if out.strip():
                _logger.warning("Skipping %s: unexpected commit info %r", branch, out.strip()[:200])
            else:
                _logger.warning("Skipping %s: no commits found", branch)
        return info

    def count_commits_ahead(self, branch: str, base_ref: str) -> int:
        out = self.runner.run(["rev-list", "--count", branch, f"^{base_ref}"]).strip()
        return int(out or "0")

    def is_branch_merged(self, branch: str) -> MergeStatus:
        """MERGED / UNMERGED / AMBIGUOUS (see MergeStatus)."""
        if self.runner.succeeds(["merge-base", "--is-ancestor", branch, self.mainline_ref]):
            return MergeStatus.MERGED
        if self.count_commits_ahead(branch, self.mainline_ref) > 0:
            return MergeStatus.UNMERGED
        # Not an ancestor, yet nothing unique: a squash merge or a moved pointer.
        if self.github.has_merged_pr(head=self._pr_head(branch), base=self.main_branch):
            return MergeStatus.MERGED
        return MergeStatus.AMBIGUOUS

    def has_open_pr(self, branch: str) -> bool:
        return self.github.has_open_pr(head=self._pr_head(branch), base=self.main_branch)

    def get_merge_base(self, branch: str) -> str:
        return self.runner.run(["merge-base", branch, self.mainline_ref]).strip()

    def get_stats(self, branch: str, base_ref: str) -> BranchStats:
        commit_count = self.count_commits_ahead(branch, base_ref)
        # -l0: no rename limit
        out = self.runner.run(["diff", "--shortstat", "-l0", base_ref, branch])
        files, added, deleted = parse_shortstat(out)
        return BranchStats(
            commit_count=commit_count,
            files_changed=files,
            lines_added=added,
            lines_deleted=deleted,
        )
