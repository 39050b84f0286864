"""
Pytest tests for show_stale_branches.py (HTML rendering, config precedence, main()).

Run from the repository root:
    pytest html_pages/test_show_stale_branches.py -v
"""

import logging
import shutil
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Set up path for imports
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

import git

from common import ToolNotFoundError
from common_branches import AuthorSummary, BranchRecord, ScanConfig
from common_git import RepoIdentity
from common_types import MergeStatus, StaleSeverity
from html_pages import show_stale_branches
from html_pages.show_stale_branches import (
    build_arg_parser,
    generate_html,
    render_report,
    resolve_output_path,
    resolve_scan_config,
)

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
IDENTITY = RepoIdentity(owner="acme", name="widgets", host="example.com")

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")


def _record(name, *, author="Ada", age=10, status="Unmerged", severity=StaleSeverity.LOW,
            message="Work in progress", added=10, deleted=4):
    return BranchRecord(
        name=name,
        last_commit=NOW - timedelta(days=age),
        age_days=age,
        author=author,
        message=message,
        commit_count=2,
        files_changed=3,
        lines_added=added,
        lines_deleted=deleted,
        merge_status=MergeStatus.UNMERGED,
        has_open_pr=status.endswith("PR Open"),
        status=status,
        severity=severity,
    )


@pytest.fixture
def clean_env(monkeypatch):
    monkeypatch.delenv("STALE_BRANCHES_MAIN_BRANCH", raising=False)
    monkeypatch.delenv("STALE_BRANCHES_CACHE_DIR", raising=False)
    return monkeypatch


# ============================================================================
# generate_html / render_report
# ============================================================================

def test_generate_html_rows_links_and_classes():
    records = [
        _record("feature/new", age=3, status="PR Open"),
        _record("old-work", author="Grace", age=120, severity=StaleSeverity.HIGH, added=2, deleted=8),
    ]
    authors = [AuthorSummary(author="Ada", count=1), AuthorSummary(author="Grace", count=1)]

    html = generate_html(records, authors, identity=IDENTITY, config=ScanConfig(older_than_days=30), generated_at=NOW)

    assert "<title>Stale Branches - acme/widgets</title>" in html
    assert 'href="https://example.com/acme/widgets/tree/feature/new"' in html
    assert 'id="stale-count">2<' in html
    assert "stale-high" in html
    assert "badge-pr-open" in html
    assert ">-6<" in html
    assert "older than 30 days" in html
    assert 'data-author="Grace"' in html
    assert "No stale branches found." not in html


def test_generate_html_empty_report_still_renders():
    html = generate_html([], [], generated_at=NOW)
    assert "No stale branches found." in html
    assert 'id="stale-count">0<' in html
    assert "unknown/unknown" in html


def test_generate_html_unknown_identity_links_to_placeholder():
    html = generate_html([_record("fix")], [AuthorSummary(author="Ada", count=1)], generated_at=NOW)
    assert 'href="https://github.com/unknown/unknown/tree/fix"' in html


def test_generate_html_escapes_text():
    html = generate_html([_record("x", message="use <b> & friends")], [], generated_at=NOW)
    assert "use &lt;b&gt; &amp; friends" in html
    assert "use <b> & friends" not in html


def test_generate_html_remote_mode_strips_prefix_in_links():
    config = ScanConfig(remote_mode=True, remote_name="upstream")
    html = generate_html([_record("upstream/feat")], [], identity=IDENTITY, config=config, generated_at=NOW)
    assert "<code>upstream/main</code>" in html
    assert 'href="https://example.com/acme/widgets/tree/feat"' in html
    assert "remote-tracking" in html


def test_generate_html_stats_block():
    html = generate_html([], [], page_stats=[("cache.hit", "7")], generated_at=NOW)
    assert "<summary>Statistics</summary>" in html
    assert "cache.hit" in html
    assert "<summary>Statistics</summary>" not in generate_html([], [], generated_at=NOW)


def test_generate_html_local_branch_named_like_remote_is_linked_verbatim():
    html = generate_html([_record("origin/foo")], [], identity=IDENTITY, config=ScanConfig(), generated_at=NOW)
    assert 'href="https://example.com/acme/widgets/tree/origin/foo"' in html


def test_render_report_overwrites_previous_file(tmp_path):
    out = tmp_path / "out" / "report.html"
    render_report([_record("a")], [], out, generated_at=NOW)
    first = out.read_text(encoding="utf-8")
    written = render_report([], [], out, generated_at=NOW)
    assert written == out.resolve()
    second = out.read_text(encoding="utf-8")
    assert first != second
    assert "No stale branches found." in second


# ============================================================================
# Configuration precedence
# ============================================================================

def test_resolve_scan_config_cli_beats_env_and_file(clean_env):
    clean_env.setenv("STALE_BRANCHES_MAIN_BRANCH", "from-env")
    args = build_arg_parser().parse_args(["--main-branch", "from-cli", "--cache-max-age", "5"])
    config = resolve_scan_config(args, {"main_branch": "from-file", "cache_max_age_minutes": 15})
    assert config.main_branch == "from-cli"
    assert config.cache_max_age_minutes == 5


def test_resolve_scan_config_env_beats_file(clean_env):
    clean_env.setenv("STALE_BRANCHES_MAIN_BRANCH", "from-env")
    args = build_arg_parser().parse_args([])
    config = resolve_scan_config(args, {"main_branch": "from-file", "cache_max_age_minutes": 15})
    assert config.main_branch == "from-env"
    assert config.cache_max_age_minutes == 15


def test_resolve_scan_config_file_then_defaults(clean_env):
    args = build_arg_parser().parse_args(["--remote", "--older-than", "-4", "--limit", "7"])
    config = resolve_scan_config(args, {"main_branch": "develop", "remote_name": "upstream"})
    assert (config.main_branch, config.remote_name, config.remote_mode) == ("develop", "upstream", True)
    assert config.older_than_days == 0
    assert config.limit == 7

    defaults = resolve_scan_config(build_arg_parser().parse_args([]), {})
    assert defaults == ScanConfig()


@pytest.mark.parametrize(
    "file_config",
    [
        {"cache_max_age_minutes": "soon"},
        {"cache_max_age_minutes": -5},
        {"cache_max_age_minutes": [30]},
        {"main_branch": ["develop"], "remote_name": 7},
    ],
)
def test_resolve_scan_config_invalid_file_values_fall_back(clean_env, caplog, file_config):
    args = build_arg_parser().parse_args([])
    with caplog.at_level(logging.WARNING):
        config = resolve_scan_config(args, file_config)
    assert config == ScanConfig()
    assert "Ignoring config file value" in caplog.text


def test_resolve_output_path_invalid_file_value_falls_back(caplog):
    args = build_arg_parser().parse_args([])
    with caplog.at_level(logging.WARNING):
        assert resolve_output_path(args, {"output": 5}).name == "stale_branches.html"
    assert "Ignoring config file value output=5" in caplog.text


def test_resolve_scan_config_detects_master(clean_env, make_runner):
    runner = make_runner(predicates={
        "rev-parse --verify --quiet refs/heads/main": False,
        "rev-parse --verify --quiet refs/heads/master": True,
    })
    config = resolve_scan_config(build_arg_parser().parse_args([]), {}, runner=runner)
    assert config.main_branch == "master"


def test_resolve_output_path(tmp_path):
    args = build_arg_parser().parse_args(["--output", str(tmp_path / "cli.html")])
    assert resolve_output_path(args, {"output": "/ignored.html"}) == tmp_path / "cli.html"

    args = build_arg_parser().parse_args([])
    assert resolve_output_path(args, {"output": str(tmp_path / "file.html")}) == tmp_path / "file.html"
    assert resolve_output_path(args, {}).name == "stale_branches.html"


# ============================================================================
# main()
# ============================================================================

def test_main_fails_without_git(clean_env, monkeypatch, tmp_path):
    def missing(name):
        raise ToolNotFoundError(f"Required executable '{name}' was not found on PATH")

    monkeypatch.setattr(show_stale_branches, "require_tool", missing)
    assert show_stale_branches.main(["--output", str(tmp_path / "r.html")]) == 1
    assert not (tmp_path / "r.html").exists()


def test_main_fails_outside_repository(clean_env, monkeypatch, tmp_path):
    monkeypatch.setattr(show_stale_branches, "require_tool", lambda name: None)
    rc = show_stale_branches.main([
        "--repo-path", str(tmp_path / "missing"),
        "--config", str(tmp_path / "none.yaml"),
        "--output", str(tmp_path / "r.html"),
    ])
    assert rc == 1
    assert not (tmp_path / "r.html").exists()


@requires_git
def test_main_end_to_end_on_real_repository(clean_env, monkeypatch, tmp_path):
    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()
    repo = git.Repo.init(repo_dir)
    with repo.config_writer() as cw:
        cw.set_value("user", "name", "Test User")
        cw.set_value("user", "email", "test@example.com")
        cw.set_value("commit", "gpgsign", "false")
    repo.git.symbolic_ref("HEAD", "refs/heads/main")
    (repo_dir / "README.md").write_text("hello\n")
    repo.git.add("README.md")
    repo.git.commit("-m", "initial")
    repo.git.checkout("-b", "feature")
    (repo_dir / "feature.txt").write_text("one\ntwo\n")
    repo.git.add("feature.txt")
    repo.git.commit("-m", "add feature | with pipe")
    repo.git.checkout("main")
    repo.git.branch("merged-already")

    clean_env.setenv("STALE_BRANCHES_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setattr(show_stale_branches, "tool_available", lambda name: False)
    out = tmp_path / "report.html"
    # Malformed values are ignored with a warning; the run still completes.
    cfg = tmp_path / "config.yaml"
    cfg.write_text("cache_max_age_minutes: soon\noutput: 5\n")
    argv = ["--repo-path", str(repo_dir), "--config", str(cfg), "--output", str(out)]

    assert show_stale_branches.main(argv) == 0
    html = out.read_text(encoding="utf-8")
    assert 'data-branch="feature"' in html
    assert "merged-already" not in html
    assert "add feature / with pipe" in html
    assert "Unmerged" in html
    assert 'id="stale-count">1<' in html
    assert any((tmp_path / "cache").iterdir())

    # Second run is answered from the cache and rewrites the report.
    out.write_text("stale", encoding="utf-8")
    assert show_stale_branches.main(argv) == 0
    assert 'data-branch="feature"' in out.read_text(encoding="utf-8")
