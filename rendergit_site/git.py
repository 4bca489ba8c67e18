"""
Thin access layer over the `git` command line.

Everything the site builder knows about a repository comes through
`GitRepo`: references, ancestry walks, tree listings, blobs and
tree-to-tree diffs. Diffs are delivered through file/hunk/line callbacks,
fired strictly in that nesting order.
"""

from __future__ import annotations
import dataclasses
import enum
import pathlib
import re
import subprocess
from typing import Callable, Iterator, List, Optional

# ---- constants & utilities ---------------------------------------------------

EMPTY_TREE_SHA = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"
BINARY_PROBE_BYTES = 8000

_HUNK_RE = re.compile(rb"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@ ?(.*)$")


class GitError(RuntimeError):
    """A git invocation failed."""


class NotARepository(GitError):
    pass


class TraversalError(GitError):
    pass


class DiffError(GitError):
    pass


def run(cmd: List[str], cwd: str | None = None, check: bool = True, text: bool = True) -> subprocess.CompletedProcess:
    if text:
        return subprocess.run(cmd, cwd=cwd, check=check, capture_output=True,
                              encoding="utf-8", errors="replace")
    return subprocess.run(cmd, cwd=cwd, check=check, capture_output=True)


# ---- value types -------------------------------------------------------------

class EntryKind(enum.Enum):
    BLOB = "blob"
    TREE = "tree"
    COMMIT = "commit"  # submodule
    TAG = "tag"
    INVALID = "invalid"

    @classmethod
    def parse(cls, name: str) -> "EntryKind":
        try:
            return cls(name)
        except ValueError:
            return cls.INVALID


class DeltaStatus(enum.Enum):
    UNMODIFIED = " "
    ADDED = "A"
    DELETED = "D"
    MODIFIED = "M"
    RENAMED = "R"
    COPIED = "C"
    TYPECHANGE = "T"

    @classmethod
    def parse(cls, letter: str) -> "DeltaStatus":
        # rename/copy carry a score, e.g. "R100"
        try:
            return cls(letter[:1])
        except ValueError:
            return cls.MODIFIED


@dataclasses.dataclass(frozen=True)
class TreeEntry:
    name: str
    kind: EntryKind
    mode: int
    id: str
    size: int


@dataclasses.dataclass(frozen=True)
class CommitInfo:
    id: str
    parents: List[str]
    tree: str
    author_name: str
    author_email: str
    author_time: int
    author_offset: int  # minutes east of UTC
    summary: str
    message: str


@dataclasses.dataclass(frozen=True)
class TagInfo:
    name: str
    tagger_name: str
    tagger_time: int


@dataclasses.dataclass(frozen=True)
class DeltaInfo:
    status: DeltaStatus
    old_path: str
    new_path: str


@dataclasses.dataclass(frozen=True)
class HunkInfo:
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    heading: str


@dataclasses.dataclass(frozen=True)
class LineInfo:
    origin: str
    content: str


FileCallback = Callable[[DeltaInfo], None]
HunkCallback = Callable[[HunkInfo], None]
LineCallback = Callable[[LineInfo], None]


def parse_offset(stamp: str) -> int:
    """Minutes east of UTC from a `+HHMM`/`-HHMM` suffix."""
    tz = stamp.strip()[-5:]
    if len(tz) != 5 or tz[0] not in "+-" or not tz[1:].isdigit():
        return 0
    minutes = int(tz[1:3]) * 60 + int(tz[3:5])
    return -minutes if tz[0] == "-" else minutes


def parse_hunk_header(line: bytes) -> HunkInfo:
    m = _HUNK_RE.match(line)
    if m is None:
        raise DiffError(f"malformed hunk header: {line!r}")
    old_start, old_lines, new_start, new_lines, heading = m.groups()
    return HunkInfo(
        old_start=int(old_start),
        old_lines=int(old_lines) if old_lines is not None else 1,
        new_start=int(new_start),
        new_lines=int(new_lines) if new_lines is not None else 1,
        heading=heading.decode("utf-8", errors="replace"),
    )


# ---- repository handle -------------------------------------------------------

class GitRepo:
    def __init__(self, path: pathlib.Path):
        self.path = path

    @classmethod
    def open(cls, path: str | pathlib.Path) -> "GitRepo":
        """Open `path` as a repository without searching parent directories."""
        path = pathlib.Path(path)
        if not path.is_dir():
            raise NotARepository(f"{path} is not a repository")
        path = path.resolve()
        try:
            git_dir = run(["git", "rev-parse", "--absolute-git-dir"], cwd=str(path)).stdout.strip()
        except subprocess.CalledProcessError as err:
            raise NotARepository(f"{path} is not a repository") from err
        # a linked worktree has a .git file pointing into the main repository
        if (path / ".git").is_file():
            return cls(path)
        if pathlib.Path(git_dir).resolve() not in (path, path / ".git"):
            raise NotARepository(f"{path} is not a repository")
        return cls(path)

    def git(self, *args: str, text: bool = True):
        try:
            return run(["git", "-c", "core.quotepath=off", *args], cwd=str(self.path), text=text).stdout
        except subprocess.CalledProcessError as err:
            stderr = err.stderr.decode("utf-8", errors="replace") if isinstance(err.stderr, bytes) else err.stderr
            raise GitError(f"git {args[0]} failed: {(stderr or '').strip()}") from err

    # -- refs --

    def resolve_ref(self, name: str) -> str:
        return self.git("rev-parse", "--verify", "--quiet", f"{name}^{{commit}}").strip()

    def branches(self) -> List[str]:
        out = self.git("for-each-ref", "--format=%(refname:short)", "refs/heads")
        return [line for line in out.splitlines() if line]

    def tags(self) -> List[TagInfo]:
        fmt = "%(refname:short)%1f%(taggername)%1f%(taggerdate:unix)%1f%(authorname)%1f%(authordate:unix)"
        out = self.git("for-each-ref", f"--format={fmt}", "refs/tags")
        tags: List[TagInfo] = []
        for rec in out.splitlines():
            if not rec:
                continue
            name, tagger, tagger_date, author, author_date = rec.split("\x1f")
            # lightweight tags have no tagger; fall back to the tagged commit
            if tagger:
                tags.append(TagInfo(name, tagger, int(tagger_date or 0)))
            else:
                tags.append(TagInfo(name, author, int(author_date or 0)))
        return tags

    # -- history --

    def walk_ancestry(self, start: str) -> Iterator[CommitInfo]:
        # field sep 0x1f, records NUL-terminated via -z
        fmt = "%H%x1f%P%x1f%T%x1f%an%x1f%ae%x1f%at%x1f%ai%x1f%s%x1f%B"
        out = self.git("log", "-z", "--no-show-signature", "--format=" + fmt, start, "--")
        for rec in out.split("\x00"):
            if not rec.strip():
                continue
            h, p, t, an, ae, at, ai, s, b = rec.split("\x1f", 8)
            yield CommitInfo(
                id=h.strip(),
                parents=[x for x in p.split() if x],
                tree=t,
                author_name=an,
                author_email=ae,
                author_time=int(at),
                author_offset=parse_offset(ai),
                summary=s,
                message=b,
            )

    # -- trees & blobs --

    def tree_entries(self, tree: str) -> List[TreeEntry]:
        out = self.git("ls-tree", "-l", "-z", tree)
        entries: List[TreeEntry] = []
        for rec in out.split("\x00"):
            if not rec:
                continue
            meta, name = rec.split("\t", 1)
            mode, kind, oid, size = meta.split()
            entries.append(TreeEntry(
                name=name,
                kind=EntryKind.parse(kind),
                mode=int(mode, 8),
                id=oid,
                size=int(size) if size.isdigit() else 0,
            ))
        return entries

    def blob_content(self, oid: str) -> bytes:
        return self.git("cat-file", "blob", oid, text=False)

    def blob_is_binary(self, oid: str) -> bool:
        return b"\x00" in self.blob_content(oid)[:BINARY_PROBE_BYTES]

    # -- diffs --

    def _raw_diff(self, old: str, new: str) -> List[DeltaInfo]:
        out = self.git("diff-tree", "-r", "-z", "--raw", "--no-renames",
                       "--ignore-submodules=all", old, new)
        fields = out.split("\x00")
        deltas: List[DeltaInfo] = []
        i = 0
        while i + 1 < len(fields):
            meta, path = fields[i], fields[i + 1]
            i += 2
            if not meta.startswith(":"):
                continue
            status = DeltaStatus.parse(meta.split()[-1])
            deltas.append(DeltaInfo(status, path, path))
        return deltas

    def diff_trees(self, old: Optional[str], new: str, on_file: FileCallback,
                   on_hunk: HunkCallback, on_line: LineCallback) -> None:
        """
        Diff `old` (None for the empty tree) against `new`, calling
        on_file/on_hunk/on_line in stream order.

        git prints a type change as a deletion followed by an addition of the
        same path; both halves are reported under a single file callback.
        """
        old = old or EMPTY_TREE_SHA
        deltas = self._raw_diff(old, new)
        patch = self.git("diff-tree", "-r", "-p", "--no-renames", "--no-color",
                         "--no-ext-diff", "--no-textconv", "--full-index",
                         "--ignore-submodules=all", old, new, text=False)

        idx = -1
        in_hunk = False
        typechange_half: bytes | None = None
        for raw in patch.split(b"\n"):
            if raw.startswith(b"diff --git "):
                in_hunk = False
                if typechange_half is not None and raw == typechange_half:
                    typechange_half = None
                    continue
                idx += 1
                if idx >= len(deltas):
                    raise DiffError(f"unexpected diff section: {raw!r}")
                delta = deltas[idx]
                typechange_half = None
                if delta.status is DeltaStatus.TYPECHANGE:
                    p = delta.new_path.encode("utf-8", errors="surrogateescape")
                    typechange_half = b"diff --git a/" + p + b" b/" + p
                on_file(delta)
            elif raw.startswith(b"@@ "):
                in_hunk = True
                on_hunk(parse_hunk_header(raw))
            elif in_hunk and raw[:1] in (b"+", b"-", b" "):
                content = raw[1:].decode("utf-8", errors="replace") + "\n"
                on_line(LineInfo(raw[:1].decode("ascii"), content))
            elif raw.startswith(b"\\"):
                # "\ No newline at end of file"
                continue
            else:
                in_hunk = False
