import pytest

from rendergit_site.diff import Diff, DiffBuilder, scale_diffstat
from rendergit_site.git import DeltaInfo, DeltaStatus, DiffError, GitError, HunkInfo, LineInfo


def hunk(old_start=1, old_lines=1, new_start=1, new_lines=1):
    return HunkInfo(old_start, old_lines, new_start, new_lines, "def main():")


EVENTS = [
    DeltaInfo(DeltaStatus.MODIFIED, "a.py", "a.py"),
    hunk(),
    LineInfo(" ", "ctx\n"),
    LineInfo("-", "old\n"),
    LineInfo("+", "new\n"),
    LineInfo("+", "newer\n"),
    hunk(10, 2, 11, 1),
    LineInfo("-", "gone\n"),
    DeltaInfo(DeltaStatus.ADDED, "b.txt", "b.txt"),
    hunk(0, 0, 1, 1),
    LineInfo("+", "hello\n"),
    DeltaInfo(DeltaStatus.DELETED, "empty", "empty"),
]


def test_builder_nests_callbacks_and_counts_lines():
    builder = DiffBuilder()
    for event in EVENTS:
        if isinstance(event, DeltaInfo):
            builder.on_file(event)
        elif isinstance(event, HunkInfo):
            builder.on_hunk(event)
        else:
            builder.on_line(event)
    deltas = builder.finish()

    assert [d.new_path for d in deltas] == ["a.py", "b.txt", "empty"]
    assert [len(d.hunks) for d in deltas] == [2, 1, 0]
    assert (deltas[0].adds, deltas[0].dels) == (2, 2)
    assert (deltas[1].adds, deltas[1].dels) == (1, 0)
    assert (deltas[2].adds, deltas[2].dels) == (0, 0)
    for delta in deltas:
        lines = [line for h in delta.hunks for line in h.lines]
        assert delta.adds == sum(line.is_add() for line in lines)
        assert delta.dels == sum(line.is_del() for line in lines)


def test_builder_rejects_hunk_before_file():
    with pytest.raises(AssertionError):
        DiffBuilder().on_hunk(hunk())


def test_builder_rejects_line_before_hunk():
    builder = DiffBuilder()
    builder.on_file(DeltaInfo(DeltaStatus.ADDED, "a", "a"))
    with pytest.raises(AssertionError):
        builder.on_line(LineInfo("+", "x\n"))


def test_hunk_header():
    builder = DiffBuilder()
    builder.on_file(DeltaInfo(DeltaStatus.MODIFIED, "a", "a"))
    builder.on_hunk(hunk(3, 4, 5, 6))
    assert builder.deltas[0].hunks[0].header == "@@ -3,4 +5,6 @@"


def test_diff_is_computed_once_and_aggregated(fake_git):
    fake_git.diff_events = EVENTS
    diff = Diff(fake_git, "p" * 40, "c" * 40)
    first = diff.deltas
    assert diff.deltas is first
    assert fake_git.calls["diff_trees"] == 1
    assert (diff.files_changed, diff.insertions, diff.deletions) == (3, 3, 2)


def test_diff_failure_is_wrapped(fake_git):
    fake_git.diff_events = [GitError("bad object")]
    with pytest.raises(DiffError):
        Diff(fake_git, None, "c" * 40).deltas


# ---- diffstat ----------------------------------------------------------------

def test_scale_noop_for_empty_delta():
    assert scale_diffstat(0, 0) == (0, 0)


def test_scale_leaves_small_deltas_alone():
    assert scale_diffstat(50, 30) == (50, 30)
    assert scale_diffstat(3, 0, budget=3) == (3, 0)


def test_scale_large_insertion_fits_budget():
    adds, dels = scale_diffstat(1000, 0, budget=80)
    assert 0 < adds <= 81
    assert dels == 0


def test_scale_keeps_tiny_side_visible():
    adds, dels = scale_diffstat(10000, 1)
    assert dels == 1
    assert adds == 81


def test_scale_is_proportional():
    assert scale_diffstat(60, 60) == (41, 41)
    assert scale_diffstat(150, 50) == (61, 21)
