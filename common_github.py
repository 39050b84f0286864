#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Pull-request lookups through the GitHub CLI (`gh`).

All lookups are best-effort: a missing `gh`, an unauthenticated session, a non-zero exit,
unparseable JSON or a cache write error is logged as a warning and answered with False.
PR status must never abort branch processing.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from common import CommandError, CommandRunner

_logger = logging.getLogger(__name__)


class GitHubCLIClient:
    """Thin wrapper over `gh pr list`.

    Example:
        gh = GitHubCLIClient(CachedRunner(GhRunner(repo_dir), cache))
        gh.has_open_pr(head="feature/x", base="main")    # -> True
        gh.has_merged_pr(head="feature/x", base="main")  # -> False
    """

    def __init__(self, runner: Optional[CommandRunner]):
        # runner=None means `gh` is not installed; every lookup answers False.
        self.runner = runner

    @property
    def available(self) -> bool:
        return self.runner is not None

    @staticmethod
    def _pr_list(runner: CommandRunner, *, head: str, base: str, state: str) -> List[Dict[str, Any]]:
        out = runner.run(
            [
                "pr", "list",
                "--base", base,
                "--head", head,
                "--state", state,
                "--json", "number",
                "--limit", "1",
            ]
        )
        data = json.loads(out.strip() or "[]")
        if not isinstance(data, list):
            raise ValueError(f"unexpected gh output: {out[:200]!r}")
        return data

    def _has_pr(self, *, head: str, base: str, state: str) -> bool:
        if self.runner is None:
            return False
        try:
            return bool(self._pr_list(self.runner, head=head, base=base, state=state))
        except (CommandError, OSError, ValueError) as e:
            # json.JSONDecodeError is a ValueError; OSError covers an unwritable cache dir
            _logger.warning("Could not check %s PRs for %s -> %s: %s", state, head, base, e)
            return False

    def has_open_pr(self, *, head: str, base: str) -> bool:
        return self._has_pr(head=head, base=base, state="open")

    def has_merged_pr(self, *, head: str, base: str) -> bool:
        return self._has_pr(head=head, base=base, state="merged")
