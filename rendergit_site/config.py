from __future__ import annotations
import dataclasses
import pathlib
from typing import FrozenSet

DEFAULT_SPECIAL = frozenset({
    "BUILDING.md",
    "CODE_OF_CONDUCT.md",
    "CONTRIBUTING.md",
    "HACKING.md",
    "LICENSE.md",
    "README.md",
})
DEFAULT_TITLE = "Collection of git repositories"
DEFAULT_DESCRIPTION = "Publicly available personal projects"
DEFAULT_INDEX_BRANCH = "master"


def strip_slash(url: str) -> str:
    return url[:-1] if url.endswith("/") else url


def parse_special(value: str) -> FrozenSet[str]:
    """Comma separated file names, e.g. "README.md,LICENSE.md"."""
    return frozenset(name.strip() for name in value.split(",") if name.strip())


@dataclasses.dataclass(frozen=True)
class SiteConfig:
    """Settings for one site build, passed explicitly to every stage."""

    output_dir: pathlib.Path = pathlib.Path(".")
    base_url: str = ""
    resource_url: str = ""
    author: str = "Unknown"
    title: str = DEFAULT_TITLE
    description: str = DEFAULT_DESCRIPTION
    special: FrozenSet[str] = DEFAULT_SPECIAL
    force: bool = False
    index_branch: str = DEFAULT_INDEX_BRANCH

    def __post_init__(self):
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "output_dir", pathlib.Path(self.output_dir))
        object.__setattr__(self, "base_url", strip_slash(self.base_url))
        object.__setattr__(self, "resource_url", strip_slash(self.resource_url))
        object.__setattr__(self, "special", frozenset(self.special))

