#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Common shared enums/types that must be used by both:
- `common_git.py` / `common_branches.py` (data layer)
- `html_pages/*` report renderer

This module MUST NOT import `common.py` or any html_pages modules to avoid cycles.
"""

from __future__ import annotations

from enum import Enum


class MergeStatus(str, Enum):
    """Outcome of the merge check against the mainline branch.

    AMBIGUOUS ("pointer merged") is a real third answer: the branch tip is not an ancestor
    of mainline, yet it has no commits outside mainline and no merged PR was found
    (typically a squash merge, or a branch pointer that was moved by hand).
    """

    MERGED = "merged"
    UNMERGED = "unmerged"
    AMBIGUOUS = "pointer_merged"
    UNKNOWN = "unknown"


class StaleSeverity(str, Enum):
    """Visual age class for a branch row (never used for filtering)."""

    HIGH = "high"
    MID = "mid"
    LOW = "low"


# Displayed status strings (see common_branches.display_status()).
STATUS_PR_OPEN = "PR Open"
STATUS_UNMERGED = "Unmerged"
STATUS_POINTER_MERGED_PR_OPEN = "Pointer Merged + PR Open"
STATUS_POINTER_MERGED = "Pointer Merged"
STATUS_UNKNOWN = "Unknown"
