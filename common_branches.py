#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Branch enumeration, filtering and the per-branch record.

collect_stale_branches() walks the unmerged branches one at a time:

    list --no-merged  ->  [limit]  ->  last commit  ->  age filter  ->  merge status
        ->  open PR  ->  merge base  ->  diff stats  ->  BranchRecord

and returns the records newest-first. Branches that turn out MERGED are dropped.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from common import (
    DEFAULT_CACHE_MAX_AGE_MINUTES,
    DEFAULT_MAIN_BRANCH,
    DEFAULT_REMOTE_NAME,
    CommandError,
)
from common_git import BranchInspector
from common_types import (
    STATUS_POINTER_MERGED,
    STATUS_POINTER_MERGED_PR_OPEN,
    STATUS_PR_OPEN,
    STATUS_UNKNOWN,
    STATUS_UNMERGED,
    MergeStatus,
    StaleSeverity,
)

_logger = logging.getLogger(__name__)

HIGH_SEVERITY_DAYS = 90
MID_SEVERITY_DAYS = 30


@dataclass(frozen=True)
class ScanConfig:
    """Resolved scan settings (CLI > env > config file > defaults)."""

    main_branch: str = DEFAULT_MAIN_BRANCH
    remote_name: str = DEFAULT_REMOTE_NAME
    remote_mode: bool = False
    older_than_days: int = 0  # 0 disables the age filter
    limit: int = 0  # 0 = unlimited
    cache_max_age_minutes: int = DEFAULT_CACHE_MAX_AGE_MINUTES


@dataclass(frozen=True)
class BranchRecord:
    name: str
    last_commit: datetime
    age_days: int
    author: str
    message: str
    commit_count: int
    files_changed: int
    lines_added: int
    lines_deleted: int
    merge_status: MergeStatus
    has_open_pr: bool
    status: str
    severity: StaleSeverity

    @property
    def net_change(self) -> int:
        return self.lines_added - self.lines_deleted


@dataclass(frozen=True)
class AuthorSummary:
    author: str
    count: int


def age_in_days(timestamp: datetime, now: datetime) -> int:
    """Whole days from `timestamp` to `now`; never negative."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return max(0, int((now - timestamp).total_seconds() // 86400))


def severity_for_age(age_days: int) -> StaleSeverity:
    if age_days >= HIGH_SEVERITY_DAYS:
        return StaleSeverity.HIGH
    if age_days >= MID_SEVERITY_DAYS:
        return StaleSeverity.MID
    return StaleSeverity.LOW


def display_status(merge_status: MergeStatus, has_open_pr: bool) -> Optional[str]:
    """Displayed status for a branch; None means "merged, do not show".

    | merge status | open PR | displayed                  |
    |--------------|---------|----------------------------|
    | UNMERGED     | yes     | PR Open                    |
    | UNMERGED     | no      | Unmerged                   |
    | AMBIGUOUS    | yes     | Pointer Merged + PR Open   |
    | AMBIGUOUS    | no      | Pointer Merged             |
    | MERGED       | any     | (excluded)                 |
    """
    if merge_status == MergeStatus.MERGED:
        return None
    if merge_status == MergeStatus.UNMERGED:
        return STATUS_PR_OPEN if has_open_pr else STATUS_UNMERGED
    if merge_status == MergeStatus.AMBIGUOUS:
        return STATUS_POINTER_MERGED_PR_OPEN if has_open_pr else STATUS_POINTER_MERGED
    return STATUS_UNKNOWN


def inspect_branch(
    inspector: BranchInspector,
    branch: str,
    *,
    now: datetime,
    older_than_days: int = 0,
) -> Optional[BranchRecord]:
    """Build the record for one branch, or None when it is skipped/merged."""
    info = inspector.get_last_commit_info(branch)
    if info is None:
        return None

    age = age_in_days(info.timestamp, now)
    if older_than_days > 0 and age < older_than_days:
        _logger.debug("Skipping %s: %d days old (< %d)", branch, age, older_than_days)
        return None

    merge_status = inspector.is_branch_merged(branch)
    if merge_status == MergeStatus.MERGED:
        _logger.debug("Skipping %s: merged", branch)
        return None

    has_pr = inspector.has_open_pr(branch)
    status = display_status(merge_status, has_pr) or STATUS_UNKNOWN

    merge_base = inspector.get_merge_base(branch)
    stats = inspector.get_stats(branch, merge_base)

    return BranchRecord(
        name=branch,
        last_commit=info.timestamp,
        age_days=age,
        author=info.author,
        message=info.message,
        commit_count=stats.commit_count,
        files_changed=stats.files_changed,
        lines_added=stats.lines_added,
        lines_deleted=stats.lines_deleted,
        merge_status=merge_status,
        has_open_pr=has_pr,
        status=status,
        severity=severity_for_age(age),
    )


def collect_stale_branches(
    inspector: BranchInspector,
    config: ScanConfig,
    *,
    now: Optional[datetime] = None,
) -> List[BranchRecord]:
    """Inspect every unmerged branch (first `config.limit` only, when set)."""
    now = now or datetime.now(timezone.utc)

    try:
        candidates = inspector.list_unmerged_branches()
    except CommandError as e:
        _logger.warning("Could not list branches not merged into %s: %s", inspector.mainline_ref, e)
        return []
    if config.limit > 0:
        candidates = candidates[: config.limit]

    total = len(candidates)
    _logger.info("Inspecting %d branch(es) against %s", total, inspector.mainline_ref)

    records: List[BranchRecord] = []
    for i, branch in enumerate(candidates, start=1):
        _logger.info("[%d/%d] %s", i, total, branch)
        try:
            record = inspect_branch(inspector, branch, now=now, older_than_days=config.older_than_days)
        except (CommandError, ValueError) as e:
            _logger.warning("Skipping %s: %s", branch, e)
            continue
        if record is not None:
            records.append(record)

    records.sort(key=lambda r: r.last_commit, reverse=True)
    return records


def summarize_authors(records: Iterable[BranchRecord]) -> List[AuthorSummary]:
    """Branch count per author, most branches first (ties by name)."""
    counts = Counter(r.author for r in records)
    return [
        AuthorSummary(author=author, count=count)
        for author, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    ]
