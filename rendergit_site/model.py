"""
In-memory snapshot of a repository: branches, commits, files and tags.

Built once per site build and read-only afterwards. Everything the page
renderers show comes from these objects.
"""

from __future__ import annotations
import datetime as dt
import functools
import pathlib
import posixpath
import stat
from typing import AbstractSet, List, Optional, Tuple

from .diff import Diff
from .git import CommitInfo, EntryKind, GitError, GitRepo, TagInfo, TraversalError

# ---- constants & utilities ---------------------------------------------------

SUMMARY_LIMIT = 50
SUMMARY_MARKER = 4
UNKNOWN = "Unknown"


def truncate_summary(text: str, limit: int = SUMMARY_LIMIT, marker: int = SUMMARY_MARKER) -> str:
    """Cap at `limit` characters, the last `marker` of them replaced by dots."""
    if len(text) <= limit:
        return text
    return text[:limit - marker] + "." * marker


def time_short(seconds: int) -> str:
    return dt.datetime.fromtimestamp(seconds, dt.timezone.utc).strftime("%Y-%m-%d %H:%M")


def to_datetime(seconds: int, offset_minutes: int = 0) -> dt.datetime:
    tz = dt.timezone(dt.timedelta(minutes=offset_minutes))
    return dt.datetime.fromtimestamp(seconds, tz)


def time_long(seconds: int, offset_minutes: int) -> str:
    # e.g. "Tue,  2 Jan 2024 03:04:05 +0100"
    when = to_datetime(seconds, offset_minutes)
    sign = "-" if offset_minutes < 0 else "+"
    offset = abs(offset_minutes)
    return (f"{when:%a}, {when.day:>2} {when:%b %Y %H:%M:%S} "
            f"{sign}{offset // 60:02}{offset % 60:02}")


def read_metadata(base: pathlib.Path, name: str) -> str:
    """First line of `<base>/<name>` or `<base>/.git/<name>`, else "Unknown"."""
    for candidate in (base / name, base / ".git" / name):
        try:
            with candidate.open(encoding="utf-8", errors="replace") as f:
                return f.readline().rstrip("\n")
        except OSError:
            continue
    return UNKNOWN


# ---- entities ----------------------------------------------------------------

class File:
    def __init__(self, git: GitRepo, path: str, mode: int, oid: str, size: int):
        self._git = git
        self.path = path
        self.mode = mode
        self.id = oid
        self.size = size

    def __repr__(self) -> str:
        return f"File({self.path!r})"

    @property
    def name(self) -> str:
        return posixpath.basename(self.path)

    @property
    def filemode(self) -> str:
        return stat.filemode(self.mode)

    @property
    def content(self) -> bytes:
        return self._git.blob_content(self.id)

    @functools.cached_property
    def is_binary(self) -> bool:
        return self._git.blob_is_binary(self.id)

    @functools.cached_property
    def lines(self) -> int:
        return self.content.count(b"\n")


def traverse(git: GitRepo, tree: str, special: AbstractSet[str]) -> Tuple[List[File], List[File]]:
    """
    Walk `tree` depth-first.

    Returns every blob as a File with its `/`-joined path, plus the
    root-level blobs whose name is in `special`, last-found first.
    """
    files: List[File] = []
    found: List[File] = []

    def walk(tree_id: str, prefix: str) -> None:
        try:
            entries = git.tree_entries(tree_id)
        except GitError as err:
            raise TraversalError(f"cannot read tree {tree_id}: {err}") from err
        for entry in entries:
            path = f"{prefix}/{entry.name}" if prefix else entry.name
            if entry.kind is EntryKind.TREE:
                walk(entry.id, path)
            elif entry.kind is EntryKind.BLOB:
                file = File(git, path, entry.mode, entry.id, entry.size)
                files.append(file)
                if not prefix and entry.name in special:
                    found.append(file)
            elif entry.kind in (EntryKind.COMMIT, EntryKind.TAG, EntryKind.INVALID):
                continue
            else:
                raise ValueError(f"unhandled tree entry kind: {entry.kind}")

    walk(tree, "")
    found.reverse()
    return files, found


class Commit:
    def __init__(self, git: GitRepo, info: CommitInfo):
        self._git = git
        self._info = info

    def __repr__(self) -> str:
        return f"Commit({self.id[:8]})"

    @property
    def id(self) -> str:
        return self._info.id

    @property
    def tree(self) -> str:
        return self._info.tree

    @property
    def parent_count(self) -> int:
        return len(self._info.parents)

    @property
    def parent_id(self) -> Optional[str]:
        return self._info.parents[0] if self._info.parents else None

    @property
    def author_name(self) -> str:
        return self._info.author_name

    @property
    def author_email(self) -> str:
        return self._info.author_email

    @property
    def time(self) -> str:
        return time_short(self._info.author_time)

    @property
    def time_long(self) -> str:
        return time_long(self._info.author_time, self._info.author_offset)

    @property
    def time_raw(self) -> dt.datetime:
        return to_datetime(self._info.author_time, self._info.author_offset)

    @property
    def summary(self) -> str:
        return truncate_summary(self._info.summary)

    @property
    def message(self) -> str:
        return self._info.message

    @functools.cached_property
    def diff(self) -> Diff:
        return Diff(self._git, self.parent_id, self.id)


class Tag:
    def __init__(self, info: TagInfo):
        self.name = info.name
        self.author = info.tagger_name
        self.time = time_short(info.tagger_time)


class Branch:
    def __init__(self, git: GitRepo, name: str, special: AbstractSet[str] = frozenset()):
        self.name = name
        tip = git.resolve_ref(f"refs/heads/{name}")
        self.commits: List[Commit] = [Commit(git, info) for info in git.walk_ancestry(tip)]
        self.files: List[File] = []
        self.special: List[File] = []
        if self.commits:
            self.files, self.special = traverse(git, self.commits[0].tree, special)

    def __repr__(self) -> str:
        return f"Branch({self.name!r}, commits={len(self.commits)})"

    @property
    def last_commit(self) -> Optional[Commit]:
        return self.commits[0] if self.commits else None


class Repository:
    def __init__(self, path: str | pathlib.Path, special: AbstractSet[str] = frozenset()):
        self.git = GitRepo.open(path)
        self.path = self.git.path
        self.name = self.path.stem or self.path.name or "repo"

        self.url = read_metadata(self.path, "url")
        self.owner = read_metadata(self.path, "owner")
        self.description = read_metadata(self.path, "description")

        self.branches: List[Branch] = [Branch(self.git, name, special) for name in self.git.branches()]
        self.tags: List[Tag] = [Tag(info) for info in self.git.tags()]

    def __repr__(self) -> str:
        return f"Repository({self.name!r})"

    def branch(self, name: str) -> Optional[Branch]:
        for branch in self.branches:
            if branch.name == name:
                return branch
        return None
