#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Stale-branches shared utilities.

Shared constants, exceptions, configuration loading and the command runners used by
`common_git.py`, `common_github.py` and the HTML generator under `html_pages/`.

Command execution goes through a narrow interface (`CommandRunner`):
- `run(args)`      -> stdout text (raises CommandError on a non-zero exit)
- `succeeds(args)` -> True/False from the exit status (for predicates like `merge-base --is-ancestor`)
- `describe(args)` -> the exact command string (used as the cache key)

Tests swap in a scripted runner; production uses `GitRunner` (GitPython) and `GhRunner` (subprocess).
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

# Let `main()` report a missing git executable itself instead of failing at import time.
os.environ.setdefault("GIT_PYTHON_REFRESH", "quiet")

import git  # type: ignore[import-not-found]  # noqa: E402
import yaml  # type: ignore[import-not-found]  # noqa: E402

# Global logger for the module
_logger = logging.getLogger(__name__)

#
# Defaults (single source of truth)
#
DEFAULT_MAIN_BRANCH: str = "main"
DEFAULT_FALLBACK_MAIN_BRANCH: str = "master"
DEFAULT_REMOTE_NAME: str = "origin"
DEFAULT_CACHE_MAX_AGE_MINUTES: int = 60
# ^ Freshness window for cached command output.
#   Example: re-running the report within an hour (e.g. while tuning --older-than) replays
#   every git/gh query from disk instead of re-walking history.
DEFAULT_OUTPUT_FILENAME: str = "stale_branches.html"
CACHE_DIR_NAME: str = "stale-branches-cache"


# ======================================================================================
# Exceptions
# ======================================================================================

class StaleBranchesError(Exception):
    """Base class for all stale-branches errors."""


class CommandError(StaleBranchesError):
    """An external command exited non-zero (or could not be started)."""

    def __init__(self, command: str, status: Optional[int] = None, stderr: str = ""):
        self.command = command
        self.status = status
        self.stderr = (stderr or "").strip()
        detail = f" (exit {status})" if status is not None else ""
        msg = f"Command failed{detail}: {command}"
        if self.stderr:
            msg += f": {self.stderr}"
        super().__init__(msg)


class ToolNotFoundError(StaleBranchesError):
    """A required executable is not on PATH."""


class NotARepositoryError(StaleBranchesError):
    """The requested path is not inside a git repository."""


# ======================================================================================
# Locations
# ======================================================================================

def stale_branches_cache_dir() -> Path:
    """Return the command cache directory.

    Resolution order:
    - STALE_BRANCHES_CACHE_DIR (explicit override)
    - <system temp dir>/stale-branches-cache
    """
    override = os.environ.get("STALE_BRANCHES_CACHE_DIR")
    if override:
        return Path(override).expanduser()
    return Path(tempfile.gettempdir()) / CACHE_DIR_NAME


def default_output_path() -> Path:
    """Default report location: ~/Documents/stale_branches.html."""
    return Path.home() / "Documents" / DEFAULT_OUTPUT_FILENAME


def default_config_path() -> Path:
    return Path.home() / ".config" / "stale-branches" / "config.yaml"


def load_config_file(path: Optional[Path]) -> Dict[str, Any]:
    """Load the optional YAML config file.

    A missing file yields {}. An unreadable or malformed file is ignored with a warning;
    configuration problems never abort a scan.

    Example file:
        main_branch: develop
        remote_name: upstream
        cache_max_age_minutes: 30
        output: ~/reports/stale.html
    """
    if path is None:
        return {}
    p = Path(path).expanduser()
    if not p.is_file():
        return {}
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8") or "") or {}
    except (OSError, yaml.YAMLError) as e:
        _logger.warning("Ignoring config file %s: %s", p, e)
        return {}
    if not isinstance(data, dict):
        _logger.warning("Ignoring config file %s: expected a mapping, got %s", p, type(data).__name__)
        return {}
    return data


# ======================================================================================
# External tools
# ======================================================================================

def tool_available(name: str) -> bool:
    return shutil.which(name) is not None


def require_tool(name: str) -> str:
    """Return the resolved path of `name`, or raise ToolNotFoundError."""
    path = shutil.which(name)
    if not path:
        raise ToolNotFoundError(f"Required executable '{name}' was not found on PATH")
    return path


def _quote_command(command: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(arg)) for arg in command)


class CommandRunner:
    """Run a query, get text back.

    Subclasses implement `_execute()`; `run()`/`succeeds()` add debug logging.
    """

    def describe(self, args: Sequence[str]) -> str:
        raise NotImplementedError

    def _execute(self, args: Sequence[str]) -> Tuple[int, str, str]:
        """Return (status, stdout, stderr)."""
        raise NotImplementedError

    def run(self, args: Sequence[str]) -> str:
        """Run and return stdout; raise CommandError on a non-zero exit."""
        command = self.describe(args)
        _logger.debug("+ %s", command)
        status, stdout, stderr = self._execute(args)
        if status != 0:
            raise CommandError(command, status, stderr)
        return stdout

    def succeeds(self, args: Sequence[str]) -> bool:
        """Run a predicate command and report whether it exited 0."""
        _logger.debug("+ %s", self.describe(args))
        status, _stdout, _stderr = self._execute(args)
        return status == 0


class GitRunner(CommandRunner):
    """Git command runner using GitPython's `Git.execute()`.

    Example:
        runner = GitRunner("/path/to/repo")
        runner.run(["rev-list", "--count", "feature", "^main"])  # -> "3"
    """

    def __init__(self, repo_path: Any):
        self.repo_path = Path(repo_path).expanduser().resolve()
        try:
            self.repo = git.Repo(self.repo_path, search_parent_directories=True)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError) as e:
            raise NotARepositoryError(f"Not a git repository: {self.repo_path}") from e
        self.work_dir = Path(self.repo.working_tree_dir or self.repo_path)

    def describe(self, args: Sequence[str]) -> str:
        return _quote_command(["git", "-C", str(self.work_dir), *args])

    def _execute(self, args: Sequence[str]) -> Tuple[int, str, str]:
        try:
            status, stdout, stderr = self.repo.git.execute(
                ["git", *args],
                with_extended_output=True,
                with_exceptions=False,
            )
        except git.GitCommandNotFound as e:
            raise ToolNotFoundError(str(e)) from e
        return int(status or 0), str(stdout or ""), str(stderr or "")


class GhRunner(CommandRunner):
    """GitHub CLI runner (subprocess), executed from inside the repository so `gh`
    resolves the repository from its remotes."""

    def __init__(self, work_dir: Any):
        self.work_dir = Path(work_dir)

    def describe(self, args: Sequence[str]) -> str:
        # The working directory decides which repository gh talks to, so it is part of the key.
        return f"cd {shlex.quote(str(self.work_dir))} && " + _quote_command(["gh", *args])

    def _execute(self, args: Sequence[str]) -> Tuple[int, str, str]:
        try:
            res = subprocess.run(
                ["gh", *args],
                cwd=str(self.work_dir),
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise CommandError(self.describe(args), None, str(e)) from e
        return res.returncode, res.stdout or "", res.stderr or ""


# ======================================================================================
# Timing
# ======================================================================================

class PhaseTimer:
    """Accumulate wall-clock time per named phase.

    Example:
        t = PhaseTimer()
        with t.phase("scan"):
            ...
        t.rows()  # -> [("scan", "1.23s"), ("total", "1.25s")]
    """

    def __init__(self) -> None:
        self._t0 = time.monotonic()
        self._phases: Dict[str, float] = {}

    @contextmanager
    def phase(self, name: str) -> Iterator[None]:
        start = time.monotonic()
        try:
            yield
        finally:
            self._phases[name] = self._phases.get(name, 0.0) + (time.monotonic() - start)

    def total_secs(self) -> float:
        return max(0.0, time.monotonic() - self._t0)

    def rows(self) -> List[Tuple[str, str]]:
        out = [(name, f"{secs:.2f}s") for name, secs in self._phases.items()]
        out.append(("total", f"{self.total_secs():.2f}s"))
        return out
