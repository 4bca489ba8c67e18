import os
import pathlib
import shutil
import subprocess
from typing import Dict, List, Optional, Union

import pytest

from rendergit_site.git import (CommitInfo, DeltaInfo, EntryKind, GitError, HunkInfo,
                                LineInfo, TreeEntry)

needs_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


class FakeGit:
    """In-memory stand-in for GitRepo."""

    def __init__(self):
        self.trees: Dict[str, List[TreeEntry]] = {}
        self.blobs: Dict[str, bytes] = {}
        self.history: List[CommitInfo] = []
        self.diff_events: list = []
        self.calls: Dict[str, int] = {}

    def _count(self, name):
        self.calls[name] = self.calls.get(name, 0) + 1

    def add_tree(self, tree_id, entries):
        self.trees[tree_id] = [
            TreeEntry(name=name, kind=kind, mode=mode, id=oid, size=len(self.blobs.get(oid, b"")))
            for name, kind, mode, oid in entries
        ]

    def tree_entries(self, tree):
        self._count("tree_entries")
        if tree not in self.trees:
            raise GitError(f"missing tree {tree}")
        return self.trees[tree]

    def blob_content(self, oid):
        self._count("blob_content")
        return self.blobs[oid]

    def blob_is_binary(self, oid):
        self._count("blob_is_binary")
        return b"\x00" in self.blobs[oid][:8000]

    def resolve_ref(self, name):
        return self.history[0].id if self.history else "0" * 40

    def walk_ancestry(self, start):
        return iter(self.history)

    def diff_trees(self, old, new, on_file, on_hunk, on_line):
        self._count("diff_trees")
        for event in self.diff_events:
            if isinstance(event, Exception):
                raise event
            if isinstance(event, DeltaInfo):
                on_file(event)
            elif isinstance(event, HunkInfo):
                on_hunk(event)
            elif isinstance(event, LineInfo):
                on_line(event)


def commit_info(cid: str, parents=(), summary="summary", message=None, tree="t0", when=1700000000):
    return CommitInfo(
        id=cid, parents=list(parents), tree=tree, author_name="Ada", author_email="ada@example.com",
        author_time=when, author_offset=60, summary=summary,
        message=message if message is not None else summary + "\n",
    )


@pytest.fixture
def fake_git():
    return FakeGit()


BLOB, TREE, COMMIT = EntryKind.BLOB, EntryKind.TREE, EntryKind.COMMIT


class RepoFactory:
    """Builds a throwaway repository with deterministic authors and dates."""

    def __init__(self, path: pathlib.Path):
        self.path = path
        self.path.mkdir(parents=True)
        self._clock = 1700000000
        self.git("init", "-q")
        self.git("symbolic-ref", "HEAD", "refs/heads/master")

    def env(self) -> Dict[str, str]:
        date = f"{self._clock} +0100"
        return {
            **os.environ,
            "HOME": str(self.path.parent),
            "GIT_CONFIG_NOSYSTEM": "1",
            "GIT_AUTHOR_NAME": "Ada Lovelace",
            "GIT_AUTHOR_EMAIL": "ada@example.com",
            "GIT_COMMITTER_NAME": "Ada Lovelace",
            "GIT_COMMITTER_EMAIL": "ada@example.com",
            "GIT_AUTHOR_DATE": date,
            "GIT_COMMITTER_DATE": date,
        }

    def git(self, *args: str) -> str:
        cp = subprocess.run(["git", "-c", "commit.gpgsign=false", "-c", "tag.gpgsign=false", *args],
                            cwd=self.path, check=True, capture_output=True, text=True, env=self.env())
        return cp.stdout

    def write(self, files: Dict[str, Optional[Union[str, bytes]]]) -> None:
        for name, content in files.items():
            target = self.path / name
            if content is None:
                target.unlink()
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content)

    def commit(self, files: Dict[str, Optional[Union[str, bytes]]], message: str) -> str:
        self.write(files)
        self._clock += 60
        self.git("add", "-A")
        self.git("commit", "-q", "--allow-empty", "-m", message)
        return self.git("rev-parse", "HEAD").strip()


@pytest.fixture
def make_repo(tmp_path):
    def factory(name: str = "project") -> RepoFactory:
        return RepoFactory(tmp_path / "repos" / name)
    return factory
