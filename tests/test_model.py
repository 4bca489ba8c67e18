import pytest

from rendergit_site.git import EntryKind, TraversalError
from rendergit_site.model import (UNKNOWN, Branch, Commit, File, read_metadata, time_long,
                                  time_short, traverse, truncate_summary)

from conftest import BLOB, COMMIT, TREE, commit_info


# ---- summary -----------------------------------------------------------------

def test_summary_at_limit_is_untouched():
    text = "x" * 50
    assert truncate_summary(text) == text


def test_summary_over_limit_is_capped_with_dots():
    text = "abcdefghij" * 5 + "klmn"
    out = truncate_summary(text)
    assert len(out) == 50
    assert out.endswith("....")
    assert out[:46] == text[:46]


def test_summary_counts_code_points():
    out = truncate_summary("é" * 60)
    assert out == "é" * 46 + "...."


def test_commit_summary_uses_truncation(fake_git):
    commit = Commit(fake_git, commit_info("a" * 40, summary="s" * 70))
    assert commit.summary == "s" * 46 + "...."
    assert commit.parent_id is None
    assert commit.parent_count == 0


# ---- time --------------------------------------------------------------------

def test_time_formats():
    assert time_short(0) == "1970-01-01 00:00"
    assert time_long(0, 90) == "Thu,  1 Jan 1970 01:30:00 +0130"
    assert time_long(0, -300) == "Wed, 31 Dec 1969 19:00:00 -0500"


# ---- metadata ----------------------------------------------------------------

def test_metadata_defaults_to_unknown(tmp_path):
    assert read_metadata(tmp_path, "owner") == UNKNOWN
    assert read_metadata(tmp_path, "description") == UNKNOWN
    assert read_metadata(tmp_path, "url") == UNKNOWN


def test_metadata_reads_first_line_with_git_dir_fallback(tmp_path):
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "owner").write_text("Grace\nsecond line\n")
    (tmp_path / "description").write_text("Top level wins\n")
    (tmp_path / ".git" / "description").write_text("ignored\n")
    assert read_metadata(tmp_path, "owner") == "Grace"
    assert read_metadata(tmp_path, "description") == "Top level wins"


def test_metadata_unreadable_path_is_default(tmp_path):
    (tmp_path / "url").mkdir()  # a directory cannot be read as a file
    assert read_metadata(tmp_path, "url") == UNKNOWN


# ---- traversal ---------------------------------------------------------------

@pytest.fixture
def tree_git(fake_git):
    fake_git.blobs.update({"b1": b"license\n", "b2": b"x\n", "b3": b"# readme\n", "b4": b"int main;\n\n",
                           "b5": b"deep\n", "b6": b"nested readme\n"})
    fake_git.add_tree("deep", [("leaf.txt", BLOB, 0o100644, "b5")])
    fake_git.add_tree("src", [("README.md", BLOB, 0o100644, "b6"), ("lib", TREE, 0o040000, "deep"),
                              ("main.c", BLOB, 0o100755, "b4")])
    fake_git.add_tree("root", [
        ("LICENSE.md", BLOB, 0o100644, "b1"),
        ("src", TREE, 0o040000, "src"),
        ("vendor", COMMIT, 0o160000, "c" * 40),
        ("x.txt", BLOB, 0o100644, "b2"),
        ("README.md", BLOB, 0o100644, "b3"),
    ])
    return fake_git


def test_traversal_lists_every_blob_with_joined_paths(tree_git):
    files, _ = traverse(tree_git, "root", frozenset())
    assert [f.path for f in files] == [
        "LICENSE.md", "src/README.md", "src/lib/leaf.txt", "src/main.c", "x.txt", "README.md",
    ]


def test_special_files_are_root_level_in_reverse_order(tree_git):
    _, special = traverse(tree_git, "root", frozenset({"README.md", "LICENSE.md"}))
    assert [f.path for f in special] == ["README.md", "LICENSE.md"]


def test_special_match_is_case_sensitive(tree_git):
    _, special = traverse(tree_git, "root", frozenset({"readme.md"}))
    assert special == []


def test_traversal_failure_is_wrapped(tree_git):
    tree_git.add_tree("broken", [("gone", TREE, 0o040000, "missing")])
    with pytest.raises(TraversalError):
        traverse(tree_git, "broken", frozenset())


def test_unknown_entry_kinds_are_skipped(fake_git):
    fake_git.blobs["b"] = b""
    fake_git.add_tree("root", [("a", EntryKind.TAG, 0, "t"), ("b", EntryKind.INVALID, 0, "i"),
                               ("c", BLOB, 0o100644, "b")])
    files, _ = traverse(fake_git, "root", frozenset())
    assert [f.path for f in files] == ["c"]


# ---- files -------------------------------------------------------------------

def test_file_mode_strings(fake_git):
    assert File(fake_git, "a", 0o100644, "x", 0).filemode == "-rw-r--r--"
    assert File(fake_git, "a", 0o100755, "x", 0).filemode == "-rwxr-xr-x"
    assert File(fake_git, "a", 0o120000, "x", 0).filemode == "l---------"


def test_file_line_count_is_memoized(fake_git):
    fake_git.blobs["b"] = b"one\ntwo\nthree"
    f = File(fake_git, "dir/notes.txt", 0o100644, "b", 13)
    assert f.lines == 2
    assert f.lines == 2
    assert fake_git.calls["blob_content"] == 1
    assert f.name == "notes.txt"


def test_file_binary_flag(fake_git):
    fake_git.blobs.update({"bin": b"\x89PNG\x00\x01", "txt": b"hello\n"})
    assert File(fake_git, "a.png", 0o100644, "bin", 6).is_binary
    assert not File(fake_git, "a.txt", 0o100644, "txt", 6).is_binary


# ---- branches ----------------------------------------------------------------

def test_empty_branch_is_valid(fake_git):
    branch = Branch(fake_git, "master", frozenset({"README.md"}))
    assert branch.commits == []
    assert branch.files == []
    assert branch.special == []
    assert branch.last_commit is None
    assert "tree_entries" not in fake_git.calls


def test_branch_walks_history_and_tip_tree(tree_git):
    tree_git.history = [commit_info("2" * 40, parents=["1" * 40], tree="root"),
                        commit_info("1" * 40, tree="src")]
    branch = Branch(tree_git, "master", frozenset({"README.md"}))
    assert [c.id for c in branch.commits] == ["2" * 40, "1" * 40]
    assert branch.last_commit.parent_id == "1" * 40
    assert len(branch.files) == 6
    assert [f.path for f in branch.special] == ["README.md"]
