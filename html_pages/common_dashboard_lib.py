#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Common dashboard helpers for the HTML generator under html_pages/.

- row/badge CSS class names (kept in sync with show_stale_branches.j2)
- timestamp formatting
- page statistics rows
- atomic file writes
"""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from common_types import (
    STATUS_POINTER_MERGED,
    STATUS_POINTER_MERGED_PR_OPEN,
    STATUS_PR_OPEN,
    STATUS_UNMERGED,
    StaleSeverity,
)

# ======================================================================================
# Shared UI snippets
# ======================================================================================

_SEVERITY_ROW_CLASS = {
    StaleSeverity.HIGH: "stale-high",
    StaleSeverity.MID: "stale-mid",
    StaleSeverity.LOW: "stale-low",
}

_STATUS_BADGE_CLASS = {
    STATUS_PR_OPEN: "badge-pr-open",
    STATUS_UNMERGED: "badge-unmerged",
    STATUS_POINTER_MERGED_PR_OPEN: "badge-pointer-pr",
    STATUS_POINTER_MERGED: "badge-pointer",
}


def severity_row_class(severity: StaleSeverity) -> str:
    return _SEVERITY_ROW_CLASS.get(StaleSeverity(severity), "stale-low")


def status_badge_class(status: str) -> str:
    return _STATUS_BADGE_CLASS.get(str(status), "badge-unknown")


def format_commit_time(dt: datetime) -> str:
    """"2025-03-04 17:05 +0100" (the committer's own offset is kept)."""
    return dt.strftime("%Y-%m-%d %H:%M %z").strip()


def format_signed(n: int) -> str:
    return f"+{n}" if n > 0 else str(n)


# ======================================================================================
# Page statistics
# ======================================================================================

def build_page_stats(
    *,
    phase_rows: Iterable[Tuple[str, str]] = (),
    cache_hits: int = 0,
    cache_misses: int = 0,
    cache_writes: int = 0,
    cache_entries: Optional[int] = None,
    cache_dir: Optional[Path] = None,
    gh_available: Optional[bool] = None,
) -> List[Tuple[str, str]]:
    """Rows for the collapsible Statistics block at the bottom of the page."""
    rows: List[Tuple[str, str]] = []
    for name, value in phase_rows:
        rows.append((f"time.{name}", value))
    rows.append(("cache.hit", str(int(cache_hits))))
    rows.append(("cache.miss", str(int(cache_misses))))
    rows.append(("cache.write", str(int(cache_writes))))
    if cache_entries is not None:
        rows.append(("cache.entries", str(int(cache_entries))))
    if cache_dir is not None:
        rows.append(("cache.dir", str(cache_dir)))
    if gh_available is not None:
        rows.append(("gh", "available" if gh_available else "not found (PR status disabled)"))
    return rows


# ======================================================================================
# Files
# ======================================================================================

def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Atomically replace `path` with `content` (temp file in the same directory + os.replace()).

    Readers never observe a half-written report; the previous file is fully overwritten.
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_name(f".{p.name}.tmp.{os.getpid()}")
    tmp.write_text(content, encoding=encoding)
    os.replace(str(tmp), str(p))
