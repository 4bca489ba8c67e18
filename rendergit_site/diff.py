"""
Structured commit diffs: deltas (one per changed path), hunks and lines,
plus the diffstat helpers used by the commit pages.
"""

from __future__ import annotations
import dataclasses
import functools
import math
from typing import List, Optional, Tuple

from .git import DeltaInfo, DeltaStatus, DiffError, GitError, GitRepo, HunkInfo, LineInfo

DIFFSTAT_WIDTH = 80


@dataclasses.dataclass
class Line:
    origin: str  # "+", "-" or " "
    content: str

    def is_add(self) -> bool:
        return self.origin == "+"

    def is_del(self) -> bool:
        return self.origin == "-"


@dataclasses.dataclass
class Hunk:
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    heading: str
    lines: List[Line] = dataclasses.field(default_factory=list)

    @property
    def header(self) -> str:
        return f"@@ -{self.old_start},{self.old_lines} +{self.new_start},{self.new_lines} @@"


@dataclasses.dataclass
class Delta:
    status: DeltaStatus
    old_path: str
    new_path: str
    hunks: List[Hunk] = dataclasses.field(default_factory=list)
    adds: int = 0
    dels: int = 0


class DiffBuilder:
    """
    Collects the facade's file/hunk/line callbacks into a delta list.

    The facade guarantees strict file -> hunk -> line ordering, so the
    current delta and hunk are always the last ones appended. A hunk
    before any file, or a line before any hunk, breaks that contract and
    trips an assertion.
    """

    def __init__(self):
        self.deltas: List[Delta] = []

    def on_file(self, info: DeltaInfo) -> None:
        self.deltas.append(Delta(info.status, info.old_path, info.new_path))

    def on_hunk(self, info: HunkInfo) -> None:
        assert self.deltas, "hunk callback before any file callback"
        self.deltas[-1].hunks.append(
            Hunk(info.old_start, info.old_lines, info.new_start, info.new_lines, info.heading)
        )

    def on_line(self, info: LineInfo) -> None:
        assert self.deltas and self.deltas[-1].hunks, "line callback before any hunk callback"
        self.deltas[-1].hunks[-1].lines.append(Line(info.origin, info.content))

    def finish(self) -> List[Delta]:
        # hunks are appended before their lines arrive, so counts are summed afterwards
        for delta in self.deltas:
            delta.adds = sum(line.is_add() for hunk in delta.hunks for line in hunk.lines)
            delta.dels = sum(line.is_del() for hunk in delta.hunks for line in hunk.lines)
        return self.deltas


class Diff:
    """Diff of a commit's tree against its parent's (or the empty tree)."""

    def __init__(self, git: GitRepo, old: Optional[str], new: str):
        self._git = git
        self.old = old
        self.new = new

    @functools.cached_property
    def deltas(self) -> List[Delta]:
        builder = DiffBuilder()
        try:
            self._git.diff_trees(self.old, self.new, builder.on_file, builder.on_hunk, builder.on_line)
        except DiffError:
            raise
        except GitError as err:
            raise DiffError(f"cannot diff {self.new}: {err}") from err
        return builder.finish()

    @property
    def files_changed(self) -> int:
        return len(self.deltas)

    @property
    def insertions(self) -> int:
        return sum(d.adds for d in self.deltas)

    @property
    def deletions(self) -> int:
        return sum(d.dels for d in self.deltas)


def scale_diffstat(adds: int, dels: int, budget: int = DIFFSTAT_WIDTH) -> Tuple[int, int]:
    """
    Fit a delta's +/- bar into `budget` columns.

    Counts are scaled proportionally only when they overflow the budget;
    any non-zero side gets one extra column so it never collapses to zero.
    """
    changed = adds + dels
    if changed <= budget:
        return adds, dels
    ratio = budget / changed
    if adds > 0:
        adds = math.floor(ratio * adds + 0.5) + 1
    if dels > 0:
        dels = math.floor(ratio * dels + 0.5) + 1
    return adds, dels
