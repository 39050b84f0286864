"""
Pytest tests for common_dashboard_lib.py functions.

Run from the repository root:
    pytest html_pages/test_common_dashboard_lib.py -v
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Set up path for imports
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

from common_types import StaleSeverity
from html_pages.common_dashboard_lib import (
    atomic_write_text,
    build_page_stats,
    format_commit_time,
    format_signed,
    severity_row_class,
    status_badge_class,
)


# ============================================================================
# Row / badge classes
# ============================================================================

@pytest.mark.parametrize(
    "severity,expected",
    [
        (StaleSeverity.HIGH, "stale-high"),
        (StaleSeverity.MID, "stale-mid"),
        (StaleSeverity.LOW, "stale-low"),
        ("high", "stale-high"),
    ],
)
def test_severity_row_class(severity, expected):
    assert severity_row_class(severity) == expected


@pytest.mark.parametrize(
    "status,expected",
    [
        ("PR Open", "badge-pr-open"),
        ("Unmerged", "badge-unmerged"),
        ("Pointer Merged + PR Open", "badge-pointer-pr"),
        ("Pointer Merged", "badge-pointer"),
        ("Unknown", "badge-unknown"),
        ("something else", "badge-unknown"),
    ],
)
def test_status_badge_class(status, expected):
    assert status_badge_class(status) == expected


# ============================================================================
# Formatting
# ============================================================================

def test_format_commit_time_keeps_author_offset():
    dt = datetime(2025, 3, 4, 17, 5, 59, tzinfo=timezone(timedelta(hours=1)))
    assert format_commit_time(dt) == "2025-03-04 17:05 +0100"
    assert format_commit_time(dt.replace(tzinfo=timezone.utc)) == "2025-03-04 17:05 +0000"


def test_format_signed():
    assert format_signed(12) == "+12"
    assert format_signed(0) == "0"
    assert format_signed(-7) == "-7"


# ============================================================================
# Page statistics
# ============================================================================

def test_build_page_stats_rows():
    rows = build_page_stats(
        phase_rows=[("scan", "1.50s"), ("total", "1.75s")],
        cache_hits=3,
        cache_misses=2,
        cache_writes=2,
        cache_entries=9,
        cache_dir=Path("/tmp/stale-branches-cache"),
        gh_available=False,
    )
    d = dict(rows)
    assert d["time.scan"] == "1.50s"
    assert d["time.total"] == "1.75s"
    assert (d["cache.hit"], d["cache.miss"], d["cache.write"]) == ("3", "2", "2")
    assert d["cache.entries"] == "9"
    assert d["cache.dir"] == "/tmp/stale-branches-cache"
    assert d["gh"].startswith("not found")


def test_build_page_stats_omits_unknown_values():
    keys = [k for k, _ in build_page_stats()]
    assert keys == ["cache.hit", "cache.miss", "cache.write"]


# ============================================================================
# atomic_write_text
# ============================================================================

def test_atomic_write_text_replaces_and_leaves_no_temp(tmp_path):
    out = tmp_path / "reports" / "stale_branches.html"
    atomic_write_text(out, "first")
    atomic_write_text(out, "second")
    assert out.read_text(encoding="utf-8") == "second"
    assert [p.name for p in out.parent.iterdir()] == ["stale_branches.html"]
