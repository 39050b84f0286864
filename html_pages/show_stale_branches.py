#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Generate an HTML report of branches not yet merged into the mainline branch.

For every unmerged branch (local, or remote-tracking with --remote) the report shows the
last commit (date, author, message), age, commits ahead, diff stats against the merge base,
and a merge status:

- PR Open / Unmerged                          : branch has commits outside mainline
- Pointer Merged / Pointer Merged + PR Open   : no unique commits, but not an ancestor of
                                                mainline either (squash merge or moved pointer)

Branches that are fully merged (ancestor of mainline, or a merged PR exists) are left out.

All git/gh output is cached on disk for --cache-max-age minutes (see cache/cache_command.py),
so re-running with different filters is cheap. Use --clean-cache to start fresh.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

# Ensure we can import sibling utilities (common.py) from the parent directory when run as a script
_THIS_DIR = Path(__file__).resolve().parent
_UTILS_DIR = _THIS_DIR.parent
if str(_UTILS_DIR) not in sys.path:
    sys.path.insert(0, str(_UTILS_DIR))

# Jinja2 for HTML template rendering
from jinja2 import Environment, FileSystemLoader, select_autoescape  # noqa: E402

from cache.cache_command import CachedRunner, default_command_cache  # noqa: E402
from common import (  # noqa: E402
    DEFAULT_CACHE_MAX_AGE_MINUTES,
    DEFAULT_MAIN_BRANCH,
    DEFAULT_REMOTE_NAME,
    CommandRunner,
    GhRunner,
    GitRunner,
    NotARepositoryError,
    PhaseTimer,
    ToolNotFoundError,
    default_config_path,
    default_output_path,
    load_config_file,
    require_tool,
    stale_branches_cache_dir,
    tool_available,
)
from common_branches import (  # noqa: E402
    AuthorSummary,
    BranchRecord,
    ScanConfig,
    collect_stale_branches,
    summarize_authors,
)
from common_git import (  # noqa: E402
    UNKNOWN_IDENTITY,
    BranchInspector,
    RepoIdentity,
    detect_main_branch,
    resolve_repo_identity,
)
from common_github import GitHubCLIClient  # noqa: E402
from html_pages.common_dashboard_lib import (  # noqa: E402
    atomic_write_text,
    build_page_stats,
    format_commit_time,
    format_signed,
    severity_row_class,
    status_badge_class,
)

_logger = logging.getLogger(__name__)

TEMPLATE_NAME = "show_stale_branches.j2"


def _branch_vm(
    record: BranchRecord, *, identity: RepoIdentity, remote_name: str, remote_mode: bool
) -> Dict[str, Any]:
    """Template view-model for one branch row."""
    return {
        "name": record.name,
        "url": identity.branch_url(record.name, remote_name=remote_name if remote_mode else None),
        "author": record.author,
        "last_commit": format_commit_time(record.last_commit),
        "last_commit_epoch": int(record.last_commit.timestamp()),
        "age_days": record.age_days,
        "commit_count": record.commit_count,
        "files_changed": record.files_changed,
        "lines_added": record.lines_added,
        "lines_deleted": record.lines_deleted,
        "net_change": record.net_change,
        "net_change_str": format_signed(record.net_change),
        "status": record.status,
        "badge_class": status_badge_class(record.status),
        "row_class": severity_row_class(record.severity),
        "message": record.message,
    }


def generate_html(
    records: Sequence[BranchRecord],
    authors: Sequence[AuthorSummary],
    *,
    identity: RepoIdentity = UNKNOWN_IDENTITY,
    config: Optional[ScanConfig] = None,
    page_stats: Optional[List[Tuple[str, str]]] = None,
    generated_at: Optional[datetime] = None,
) -> str:
    """Render the report page (self-contained: inline CSS + JS)."""
    config = config or ScanConfig()
    generated_at = generated_at or datetime.now(timezone.utc)
    mainline_ref = f"{config.remote_name}/{config.main_branch}" if config.remote_mode else config.main_branch

    env = Environment(
        loader=FileSystemLoader(str(_THIS_DIR)),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )
    template = env.get_template(TEMPLATE_NAME)
    return template.render(
        repo_slug=identity.slug,
        generated_time=generated_at.astimezone().strftime("%Y-%m-%d %H:%M:%S %Z"),
        mainline_ref=mainline_ref,
        remote_mode=bool(config.remote_mode),
        older_than_days=int(config.older_than_days),
        limit=int(config.limit),
        branches=[
            _branch_vm(r, identity=identity, remote_name=config.remote_name, remote_mode=config.remote_mode)
            for r in records
        ],
        authors=list(authors),
        page_stats=page_stats or [],
    )


def render_report(
    records: Sequence[BranchRecord],
    authors: Sequence[AuthorSummary],
    output_path: Path,
    **kwargs: Any,
) -> Path:
    """Render and write the report, replacing any previous file. Returns the path written."""
    out = Path(output_path).expanduser().resolve()
    atomic_write_text(out, generate_html(records, authors, **kwargs))
    return out


def _first_set(*values: Any) -> Any:
    for v in values:
        if v is not None and v != "":
            return v
    return None


def _as_text(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {type(value).__name__}")
    return value


def _as_minutes(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("expected a number of minutes, got bool")
    minutes = int(value)
    if minutes < 0:
        raise ValueError(f"expected a non-negative number of minutes, got {minutes}")
    return minutes


def _file_value(file_config: Dict[str, Any], key: str, convert: Callable[[Any], Any]) -> Any:
    """Config file value for `key` converted by `convert`, or None when absent or invalid.

    Invalid values are ignored with a warning (the next source in the precedence chain wins).
    """
    raw = file_config.get(key)
    if raw is None or raw == "":
        return None
    try:
        return convert(raw)
    except (TypeError, ValueError) as e:
        _logger.warning("Ignoring config file value %s=%r: %s", key, raw, e)
        return None


def resolve_cache_max_age(args: argparse.Namespace, file_config: Dict[str, Any]) -> int:
    return int(_first_set(
        args.cache_max_age,
        _file_value(file_config, "cache_max_age_minutes", _as_minutes),
        DEFAULT_CACHE_MAX_AGE_MINUTES,
    ))


def resolve_scan_config(
    args: argparse.Namespace,
    file_config: Dict[str, Any],
    *,
    runner: Optional[CommandRunner] = None,
) -> ScanConfig:
    """Merge CLI > environment > config file > defaults.

    The mainline branch is auto-detected (main, else master) only when nothing names it.
    """
    remote_mode = bool(args.remote)
    remote_name = str(_first_set(args.remote_name, _file_value(file_config, "remote_name", _as_text), DEFAULT_REMOTE_NAME))
    main_branch = _first_set(
        args.main_branch,
        os.environ.get("STALE_BRANCHES_MAIN_BRANCH"),
        _file_value(file_config, "main_branch", _as_text),
    )
    if main_branch is None:
        main_branch = (
            detect_main_branch(runner, remote_name=remote_name, remote_mode=remote_mode)
            if runner is not None
            else DEFAULT_MAIN_BRANCH
        )
    return ScanConfig(
        main_branch=str(main_branch),
        remote_name=remote_name,
        remote_mode=remote_mode,
        older_than_days=max(0, int(args.older_than or 0)),
        limit=max(0, int(args.limit or 0)),
        cache_max_age_minutes=resolve_cache_max_age(args, file_config),
    )


def resolve_output_path(args: argparse.Namespace, file_config: Dict[str, Any]) -> Path:
    out = _first_set(args.output, _file_value(file_config, "output", _as_text))
    return Path(out).expanduser() if out is not None else default_output_path()


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Report branches not merged into the mainline branch (HTML-only)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Environment Variables:
  STALE_BRANCHES_CACHE_DIR
      Override the command cache directory ({stale_branches_cache_dir()})

  STALE_BRANCHES_MAIN_BRANCH
      Mainline branch when --main-branch is not given

Config file (YAML, optional; default {default_config_path()}):
  main_branch, remote_name, cache_max_age_minutes, output
        """,
    )
    parser.add_argument("--older-than", type=int, default=0, metavar="DAYS",
                        help="Only report branches whose last commit is at least DAYS old (0 = no filter)")
    parser.add_argument("--remote", action="store_true",
                        help="Inspect remote-tracking branches instead of local branches")
    parser.add_argument("--clean-cache", action="store_true",
                        help="Delete the command cache before scanning")
    parser.add_argument("--output", type=Path, default=None,
                        help=f"Output HTML path (default: {default_output_path()})")
    parser.add_argument("--repo-path", type=Path, default=None,
                        help="Path to the git repository (default: current directory)")
    parser.add_argument("--limit", type=int, default=0,
                        help="Inspect only the first N candidate branches (0 = unlimited)")
    parser.add_argument("--main-branch", default=None,
                        help="Mainline branch (default: config/env, else main, else master)")
    parser.add_argument("--remote-name", default=None,
                        help=f"Remote to read the URL from and compare against (default: {DEFAULT_REMOTE_NAME})")
    parser.add_argument("--cache-max-age", type=int, default=None, metavar="MINUTES",
                        help=f"Reuse cached command output younger than this (default: {DEFAULT_CACHE_MAX_AGE_MINUTES})")
    parser.add_argument("--config", type=Path, default=None,
                        help="YAML config file (default: ~/.config/stale-branches/config.yaml)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    phase_t = PhaseTimer()
    args = build_arg_parser().parse_args(argv)

    # Configure logging
    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format="[%(levelname)s] %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")

    try:
        require_tool("git")
    except ToolNotFoundError as e:
        _logger.error("%s", e)
        return 1

    file_config = load_config_file(args.config or default_config_path())
    repo_path = (args.repo_path or Path.cwd()).resolve()

    try:
        git_runner = GitRunner(repo_path)
    except NotARepositoryError as e:
        _logger.error("%s", e)
        return 1

    cache = default_command_cache()
    if args.clean_cache:
        _logger.info("Clearing command cache %s", stale_branches_cache_dir())
        cache.clear()

    # Main-branch detection already goes through the cache, so the max age is resolved up front.
    cache_max_age = resolve_cache_max_age(args, file_config)
    runner = CachedRunner(git_runner, cache, max_age_minutes=cache_max_age)

    if tool_available("gh"):
        github = GitHubCLIClient(CachedRunner(GhRunner(git_runner.work_dir), cache, max_age_minutes=cache_max_age))
    else:
        _logger.warning("GitHub CLI (gh) not found on PATH; PR status will be reported as 'no PR'")
        github = GitHubCLIClient(None)

    config = resolve_scan_config(args, file_config, runner=runner)
    output_path = resolve_output_path(args, file_config)

    identity = resolve_repo_identity(runner, config.remote_name)
    inspector = BranchInspector(
        runner,
        github,
        main_branch=config.main_branch,
        remote_name=config.remote_name,
        remote_mode=config.remote_mode,
    )

    with phase_t.phase("scan"):
        records = collect_stale_branches(inspector, config, now=datetime.now(timezone.utc))
    authors = summarize_authors(records)

    with phase_t.phase("render"):
        page_stats = build_page_stats(
            phase_rows=phase_t.rows(),
            cache_hits=cache.stats.hit,
            cache_misses=cache.stats.miss,
            cache_writes=cache.stats.write,
            cache_entries=cache.store.count(),
            cache_dir=stale_branches_cache_dir(),
            gh_available=github.available,
        )
        written = render_report(
            records,
            authors,
            output_path,
            identity=identity,
            config=config,
            page_stats=page_stats,
        )

    _logger.info("Found %d stale branch(es)", len(records))
    _logger.info("Report written to %s", written)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
