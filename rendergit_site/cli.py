from __future__ import annotations
import argparse
import pathlib
import sys
from typing import List, Optional

from .build import build_site, write_index
from .config import (DEFAULT_DESCRIPTION, DEFAULT_INDEX_BRANCH, DEFAULT_SPECIAL, DEFAULT_TITLE,
                     SiteConfig, parse_special)


def add_common_options(ap: argparse.ArgumentParser) -> None:
    out = ap.add_argument_group("Output mode")
    out.add_argument("--output", "-o", default=".", help="Output directory")
    out.add_argument("--force", "-f", action="store_true", help="Force write even if file exists")

    info = ap.add_argument_group("General information")
    info.add_argument("--base", "-b", default="", help="Absolute destination URL")
    info.add_argument("--resource", "-r", default="", help="URL that houses styles and scripts")
    info.add_argument("--author", "-a", default="Unknown", help="Owner of the repositories")
    info.add_argument("--title", "-t", default=DEFAULT_TITLE, help="Title for the index page and feeds")
    info.add_argument("--description", "-d", default=DEFAULT_DESCRIPTION, help="Description for the index page and feeds")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Render git repositories as a static HTML site")
    ap.add_argument("repositories", nargs="+", help="Repository directories")
    add_common_options(ap)
    ap.add_argument("--special", "-s", type=parse_special, default=DEFAULT_SPECIAL,
                    help="Comma separated root files to be rendered to html")
    return ap


def build_index_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Render an index page over several repositories")
    ap.add_argument("repositories", nargs="+", help="Repository directories")
    add_common_options(ap)
    ap.add_argument("--branch", default=DEFAULT_INDEX_BRANCH, help="Branch each repository is listed by")
    return ap


def config_from_args(args: argparse.Namespace) -> SiteConfig:
    return SiteConfig(
        output_dir=pathlib.Path(args.output),
        base_url=args.base,
        resource_url=args.resource,
        author=args.author,
        title=args.title,
        description=args.description,
        special=getattr(args, "special", DEFAULT_SPECIAL),
        force=args.force,
        index_branch=getattr(args, "branch", DEFAULT_INDEX_BRANCH),
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = config_from_args(args)
    try:
        return build_site(args.repositories, config)
    except Exception as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1


def index_main(argv: Optional[List[str]] = None) -> int:
    args = build_index_parser().parse_args(argv)
    config = config_from_args(args)
    try:
        return write_index(args.repositories, config)
    except Exception as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
