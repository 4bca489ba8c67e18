"""
Site build: turns repositories into per-branch directories of static pages.

Layout under the output directory:

    <repo>/<branch>/{log,files,refs}.html
    <repo>/<branch>/commit/<hash>.html
    <repo>/<branch>/file/<path>.html
    <repo>/<branch>/<special>.html
    <repo>/<branch>/{atom,rss}.xml
    index.html                      (write_index)

Commit pages double as the record of what has already been built: a run
only renders the commits that have no page yet, and skips the rest of a
branch entirely when none were new.
"""

from __future__ import annotations
import pathlib
import sys
from typing import Dict, Iterable, List

from . import render
from .config import SiteConfig
from .git import GitError, NotARepository
from .model import Branch, Repository


def write_text(path: pathlib.Path, text: str) -> None:
    path.write_text(text, encoding="utf-8")


# ---- incremental commit pages ------------------------------------------------

def write_commits(commit_dir: pathlib.Path, config: SiteConfig, repo: Repository, branch: Branch) -> bool:
    """
    Render pages for commits that don't have one yet, newest first.

    History only grows at the tip, so the first commit that already has a
    page means all of its ancestors have one too. Returns True when at
    least one page was written.

    Every pending diff is computed before the first page is written: a
    diff failure leaves no new pages behind, so the next run retries the
    whole branch instead of stopping at a page that was written before
    the failure.
    """
    pending = []
    for commit in branch.commits:
        target = commit_dir / f"{commit.id}.html"
        if not config.force and target.exists():
            break
        pending.append((target, commit))

    for _, commit in pending:
        commit.diff.deltas

    for target, commit in pending:
        write_text(target, render.commit_page(config, repo, branch, commit))
    return bool(pending)


# ---- per-branch pages --------------------------------------------------------

def write_files(file_dir: pathlib.Path, config: SiteConfig, repo: Repository, branch: Branch) -> None:
    for file in branch.files:
        target = file_dir / f"{file.path}.html"
        target.parent.mkdir(parents=True, exist_ok=True)
        write_text(target, render.file_page(config, repo, branch, file))


def write_special(base: pathlib.Path, config: SiteConfig, repo: Repository, branch: Branch) -> None:
    for file in branch.special:
        write_text(base / render.special_target(file), render.special_page(config, repo, branch, file))


def build_branch(base: pathlib.Path, config: SiteConfig, repo: Repository, branch: Branch) -> bool:
    branch_dir = base / branch.name
    commit_dir = branch_dir / "commit"
    commit_dir.mkdir(parents=True, exist_ok=True)

    # always refresh refs: new branches and tags show up without new commits
    write_text(branch_dir / "refs.html", render.refs_page(config, repo, branch))

    changed = write_commits(commit_dir, config, repo, branch)
    if not config.force and not changed:
        return False

    write_text(branch_dir / "log.html", render.log_page(config, repo, branch))
    write_text(branch_dir / "files.html", render.files_page(config, repo, branch))
    write_special(branch_dir, config, repo, branch)

    file_dir = branch_dir / "file"
    file_dir.mkdir(exist_ok=True)
    write_files(file_dir, config, repo, branch)

    feed_url = f"{config.base_url}/{repo.name}/{branch.name}"
    write_text(branch_dir / "atom.xml", render.atom_feed(config, branch, feed_url))
    write_text(branch_dir / "rss.xml", render.rss_feed(config, branch, feed_url))
    return True


def build_repository(path: str | pathlib.Path, config: SiteConfig) -> Dict[str, bool]:
    """Build every branch of one repository; maps branch name -> re-rendered."""
    repo = Repository(path, config.special)
    base = config.output_dir / repo.name
    base.mkdir(parents=True, exist_ok=True)

    result: Dict[str, bool] = {}
    for branch in repo.branches:
        result[branch.name] = build_branch(base, config, repo, branch)
    return result


def build_site(paths: Iterable[str | pathlib.Path], config: SiteConfig) -> int:
    """
    Build all repositories in `paths`; returns the process exit status.

    Paths that aren't repositories are skipped with a warning. A git failure
    while reading a repository abandons that repository only, but makes the
    overall status non-zero.
    """
    config.output_dir.mkdir(parents=True, exist_ok=True)
    status = 0
    for path in paths:
        print(f"📁 Reading {path}", file=sys.stderr)
        try:
            result = build_repository(path, config)
        except NotARepository:
            print(f"Warning: {path} is not a repository", file=sys.stderr)
            continue
        except GitError as err:
            print(f"Error (git): {path}: {err}", file=sys.stderr)
            status = 1
            continue
        for name, changed in result.items():
            mark = "✓" if changed else "·"
            print(f"  {mark} {name}{'' if changed else ' (up to date)'}", file=sys.stderr)
    return status


# ---- index -------------------------------------------------------------------

def write_index(paths: Iterable[str | pathlib.Path], config: SiteConfig) -> int:
    """Write <output>/index.html listing each repository's index branch."""
    config.output_dir.mkdir(parents=True, exist_ok=True)
    rows: List[str] = []
    status = 0
    for path in paths:
        try:
            repo = Repository(path, config.special)
            branch = repo.branch(config.index_branch)
            if branch is None:
                print(f"Warning: {repo.path} doesn't have {config.index_branch} branch", file=sys.stderr)
                continue
            rows.append(render.index_row(repo, branch))
        except NotARepository:
            print(f"Warning: {path} is not a repository", file=sys.stderr)
            continue
        except GitError as err:
            print(f"Error (git): {path}: {err}", file=sys.stderr)
            status = 1
            continue

    target = config.output_dir / "index.html"
    print(f"💾 Writing: {target.resolve()}", file=sys.stderr)
    write_text(target, render.index_page(config, rows))
    return status
