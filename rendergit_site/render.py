"""
HTML and feed markup for every page of a branch.

Each function returns a complete document as a string; writing files is
left to the build module.
"""

from __future__ import annotations
import datetime as dt
import email.utils
import html
import posixpath
from typing import Iterable, List

import markdown
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_for_filename
from pygments.util import ClassNotFound

from .config import SiteConfig
from .diff import Delta, Diff, Hunk, scale_diffstat
from .model import Branch, Commit, File, Repository

GENERATOR = "rendergit-site"
MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "toc"]


def esc(s: object) -> str:
    return html.escape(str(s), quote=True)


def special_target(file: File) -> str:
    """README.md -> README.html"""
    stem, _ = posixpath.splitext(file.path)
    return f"{stem}.html"


def special_label(file: File) -> str:
    return posixpath.splitext(file.path)[0]


def repo_root(branch_name: str) -> str:
    """Prefix leading from a branch directory back to the repository directory."""
    return "../" * (branch_name.count("/") + 1)


def relpath_for(path: str) -> str:
    """Prefix leading from file/<path>.html back to the branch directory."""
    return "../" * (path.count("/") + 1)


# ---- document frame ----------------------------------------------------------

def document(config: SiteConfig, title: str, description: str, author: str, body: str,
             relpath: str = "./", has_feed: bool = True) -> str:
    formatter = HtmlFormatter()
    pygments_css = formatter.get_style_defs(".highlight")
    res = config.resource_url
    feeds = ""
    if has_feed:
        feeds = (
            f'<link rel="alternate" type="application/rss+xml" title="RSS feed" href="{esc(relpath)}rss.xml" />\n'
            f'<link rel="alternate" type="application/atom+xml" title="Atom feed" href="{esc(relpath)}atom.xml" />\n'
        )
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<title>{esc(title)}</title>
<meta charset="UTF-8" />
<meta name="author" content="{esc(author)}" />
<meta name="description" content="{esc(description)}" />
<meta name="viewport" content="width=device-width, initial-scale=1" />
<link rel="stylesheet" type="text/css" href="{esc(res)}/css/index.css" />
<link rel="stylesheet" type="text/css" href="{esc(res)}/css/colors.css" />
{feeds}<link rel="icon" type="image/png" sizes="32x32" href="{esc(res)}/img/favicon-32x32.png" />
<link rel="icon" type="image/png" sizes="16x16" href="{esc(res)}/img/favicon-16x16.png" />
<style>
  table {{ margin-left: 0; background-color: inherit; border: none; }}
  select {{ color: var(--theme_fg1); background-color: inherit; border: 1px solid var(--theme_bg4); }}
  .add {{ color: var(--theme_green); }}
  .del {{ color: var(--theme_red); }}
  .inline {{ white-space: pre; font-family: monospace; }}
  /* Pygments */
  {pygments_css}
</style>
</head>
<body>
<input type="checkbox" id="theme_switch" class="theme_switch" />
<div id="content">
<main>
<label for="theme_switch" class="switch_label"> </label>
{body}
</main>
</div>
<script src="{esc(res)}/scripts/main.js"></script>
</body>
</html>
"""


def branch_document(config: SiteConfig, repo: Repository, branch: Branch, description: str,
                    body: str, relpath: str = "./") -> str:
    title = f"{repo.name} ({branch.name}) - {repo.description}"
    return document(config, title, description, repo.owner, body, relpath=relpath)


def table(head: Iterable[str], rows: Iterable[str]) -> str:
    head_html = "".join(f"<td>{h}</td>" for h in head)
    return (
        f"<table>\n<thead><tr>{head_html}</tr></thead>\n"
        f"<tbody>\n{''.join(rows)}</tbody>\n</table>\n"
    )


def page_title(repo: Repository, branch: Branch, relpath: str = "./") -> str:
    nav: List[str] = [
        f'<a href="{relpath}log.html">Log</a>',
        f'<a href="{relpath}files.html">Files</a>',
        f'<a href="{relpath}refs.html">Refs</a>',
    ]
    for file in branch.special:
        nav.append(f'<a href="{esc(relpath + special_target(file))}">{esc(special_label(file))}</a>')

    options = []
    for other in repo.branches:
        selected = ' selected="true"' if other.name == branch.name else ""
        target = f"{relpath}{repo_root(branch.name)}{other.name}/log.html"
        options.append(f'<option value="{esc(target)}"{selected}>{esc(other.name)}</option>')
    nav.append(
        '<span><label for="branch">Branch: </label>'
        '<select id="branch" onchange="window.location.href = this.value">'
        f"{''.join(options)}</select></span>"
    )

    return (
        "<table>\n"
        f"<tr><td><h1>{esc(repo.name)}</h1><span>{esc(repo.description)}</span></td></tr>\n"
        f'<tr><td>git clone <a href="{esc(repo.url)}">{esc(repo.url)}</a></td></tr>\n'
        f"<tr><td>{' | '.join(nav)}</td></tr>\n"
        "</table>\n<hr />\n"
    )


# ---- tables ------------------------------------------------------------------

def commit_table(branch: Branch) -> str:
    rows = []
    for commit in branch.commits:
        d = commit.diff
        rows.append(
            f"<tr><td>{esc(commit.time)}</td>"
            f'<td><a href="./commit/{commit.id}.html">{esc(commit.summary)}</a></td>'
            f"<td>{esc(commit.author_name)}</td>"
            f"<td>{d.files_changed}</td><td>{d.insertions}</td><td>{d.deletions}</td></tr>\n"
        )
    return table(["Date", "Commit message", "Author", "Files", "+", "-"], rows)


def files_table(branch: Branch) -> str:
    rows = []
    for file in branch.files:
        size = f"{file.size}B" if file.is_binary else f"{file.lines}L"
        rows.append(
            f"<tr><td>{esc(file.filemode)}</td>"
            f'<td><a href="./file/{esc(file.path)}.html">{esc(file.path)}</a></td>'
            f"<td>{size}</td></tr>\n"
        )
    return table(["Mode", "Name", "Size"], rows)


def branch_table(repo: Repository, current: str) -> str:
    rows = []
    for branch in repo.branches:
        last = branch.last_commit
        is_current = branch.name == current
        mark = "*" if is_current else "&nbsp;"
        name = esc(branch.name) if is_current else f'<a href="{repo_root(current)}{esc(branch.name)}/refs.html">{esc(branch.name)}</a>'
        rows.append(
            f"<tr><td>{mark}</td><td>{name}</td>"
            f"<td>{esc(last.time) if last else ''}</td>"
            f"<td>{esc(last.author_name) if last else ''}</td></tr>\n"
        )
    return "<h2>Branches</h2>\n" + table(["&nbsp;", "Name", "Last commit date", "Author"], rows)


def tag_table(repo: Repository) -> str:
    rows = [
        f"<tr><td>&nbsp;</td><td>{esc(tag.name)}</td><td>{esc(tag.time)}</td><td>{esc(tag.author)}</td></tr>\n"
        for tag in repo.tags
    ]
    return "<h2>Tags</h2>\n" + table(["&nbsp;", "Name", "Last commit date", "Author"], rows)


# ---- commit view -------------------------------------------------------------

def file_changes(diff: Diff) -> str:
    rows = []
    for delta in diff.deltas:
        add, dele = scale_diffstat(delta.adds, delta.dels)
        rows.append(
            f"<tr><td>{delta.status.value}</td>"
            f'<td><a href="#{esc(delta.new_path)}">{esc(delta.new_path)}</a></td>'
            f"<td>|</td>"
            f'<td><span class="add">{"+" * add}</span><span class="del">{"-" * dele}</span></td></tr>\n'
        )
    summary = (f"{diff.files_changed} files changed, {diff.insertions} insertions(+), "
               f"{diff.deletions} deletions(-)")
    return f"<b>Diffstat:</b>\n<table><tbody>\n{''.join(rows)}</tbody></table>\n<p>{summary}</p>\n"


def diff_hunk(hunk: Hunk) -> str:
    lines = []
    for line in hunk.lines:
        cls = "inline add" if line.is_add() else "inline del" if line.is_del() else "inline"
        lines.append(f'<div class="{cls}">{esc(line.origin + line.content.rstrip(chr(10)))}</div>')
    return f"<h4>{esc(hunk.header)} {esc(hunk.heading)}</h4>\n<span>{''.join(lines)}</span>\n"


def file_diff(delta: Delta) -> str:
    old_link = f"../file/{esc(delta.old_path)}.html"
    new_link = f"../file/{esc(delta.new_path)}.html"
    return (
        f'<h3 id="{esc(delta.new_path)}">diff --git '
        f'a/<a href="{old_link}">{esc(delta.old_path)}</a> '
        f'b/<a href="{new_link}">{esc(delta.new_path)}</a></h3>\n'
        + "".join(diff_hunk(h) for h in delta.hunks)
    )


def commit_diff(commit: Commit) -> str:
    parent = ""
    if commit.parent_id is not None:
        parent = (f'<tr><td><b>parent</b></td>'
                  f'<td><a href="../commit/{commit.parent_id}.html">{commit.parent_id}</a></td></tr>\n')
    return (
        "<table><tbody>\n"
        f'<tr><td><b>commit</b></td><td><a href="../commit/{commit.id}.html">{commit.id}</a></td></tr>\n'
        f"{parent}"
        f"<tr><td><b>author</b></td><td>{esc(commit.author_name)} &lt;"
        f'<a href="mailto:{esc(commit.author_email)}">{esc(commit.author_email)}</a>&gt;</td></tr>\n'
        f"<tr><td><b>date</b></td><td>{esc(commit.time_long)}</td></tr>\n"
        "</tbody></table>\n<br />\n"
        f'<p class="inline">{esc(commit.message)}</p>\n'
        f"{file_changes(commit.diff)}<hr />\n"
        + "".join(file_diff(d) for d in commit.diff.deltas)
    )


# ---- file view ---------------------------------------------------------------

def file_content(file: File) -> str:
    if file.is_binary:
        return "<h4>Binary file</h4>\n"
    text = file.content.decode("utf-8", errors="replace")
    try:
        lexer = get_lexer_for_filename(file.name, stripall=False)
    except ClassNotFound:
        lexer = TextLexer(stripall=False)
    formatter = HtmlFormatter(linenos="table", lineanchors="l", anchorlinenos=True)
    return highlight(text, lexer, formatter)


def render_markdown(file: File) -> str:
    text = file.content.decode("utf-8", errors="replace")
    if file.path.lower().endswith((".md", ".markdown")):
        return markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS)
    return f"<pre>{esc(text)}</pre>"


# ---- pages -------------------------------------------------------------------

def log_page(config: SiteConfig, repo: Repository, branch: Branch) -> str:
    body = page_title(repo, branch) + commit_table(branch)
    return branch_document(config, repo, branch, "Commit list", body)


def files_page(config: SiteConfig, repo: Repository, branch: Branch) -> str:
    body = page_title(repo, branch) + files_table(branch)
    return branch_document(config, repo, branch, "File list", body)


def refs_page(config: SiteConfig, repo: Repository, branch: Branch) -> str:
    body = page_title(repo, branch) + branch_table(repo, branch.name) + tag_table(repo)
    return branch_document(config, repo, branch, "Refs list", body)


def commit_page(config: SiteConfig, repo: Repository, branch: Branch, commit: Commit) -> str:
    body = page_title(repo, branch, "../") + commit_diff(commit)
    return branch_document(config, repo, branch, commit.summary, body, relpath="../")


def file_page(config: SiteConfig, repo: Repository, branch: Branch, file: File) -> str:
    relpath = relpath_for(file.path)
    body = (
        page_title(repo, branch, relpath)
        + f"<h3>{esc(file.name)} ({file.size}B)</h3>\n<hr />\n"
        + file_content(file)
    )
    return branch_document(config, repo, branch, file.path, body, relpath=relpath)


def special_page(config: SiteConfig, repo: Repository, branch: Branch, file: File) -> str:
    body = page_title(repo, branch) + render_markdown(file)
    return branch_document(config, repo, branch, file.path, body)


def index_page(config: SiteConfig, rows: List[str]) -> str:
    body = (
        f"<h1>{esc(config.title)}</h1>\n<p>{esc(config.description)}</p>\n"
        + table(["Name", "Description", "Owner", "Last commit"], rows)
    )
    return document(config, config.title, config.description, config.author, body, has_feed=False)


def index_row(repo: Repository, branch: Branch) -> str:
    last = branch.last_commit
    return (
        f'<tr><td><a href="{esc(repo.name)}/{esc(branch.name)}/log.html">{esc(repo.name)}</a></td>'
        f"<td>{esc(repo.description)}</td><td>{esc(repo.owner)}</td>"
        f"<td>{esc(last.time) if last else ''}</td></tr>\n"
    )


# ---- feeds -------------------------------------------------------------------

def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc).replace(microsecond=0)


def atom_feed(config: SiteConfig, branch: Branch, base_url: str) -> str:
    entries = []
    for commit in branch.commits:
        url = f"{base_url}/commit/{commit.id}.html"
        entries.append(
            "<entry>\n"
            f"<id>{esc(url)}</id>\n"
            f"<updated>{commit.time_raw.isoformat()}</updated>\n"
            f"<title>{esc(commit.summary)}</title>\n"
            f'<link href="{esc(url)}" />\n'
            f"<author><name>{esc(commit.author_name)}</name><email>{esc(commit.author_email)}</email></author>\n"
            f"<content>{esc(commit.message)}</content>\n"
            "</entry>\n"
        )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<feed xmlns="http://www.w3.org/2005/Atom">\n'
        f"<title>{esc(config.title)}</title>\n"
        f"<subtitle>{esc(config.description)}</subtitle>\n"
        f"<id>{esc(base_url)}/</id>\n"
        f"<updated>{_now().isoformat()}</updated>\n"
        f"<author><name>{esc(config.author)}</name></author>\n"
        f'<link rel="self" href="{esc(base_url)}/atom.xml" />\n'
        f'<link rel="alternate" href="{esc(config.resource_url)}" />\n'
        f"{''.join(entries)}</feed>\n"
    )


def rss_feed(config: SiteConfig, branch: Branch, base_url: str) -> str:
    items = []
    for commit in branch.commits:
        url = f"{base_url}/commit/{commit.id}.html"
        items.append(
            "<item>\n"
            f"<title>{esc(commit.summary)}</title>\n"
            f"<link>{esc(url)}</link>\n"
            f"<guid>{esc(url)}</guid>\n"
            f"<pubDate>{email.utils.format_datetime(commit.time_raw)}</pubDate>\n"
            f"<author>{esc(commit.author_email)} ({esc(commit.author_name)})</author>\n"
            "</item>\n"
        )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">\n<channel>\n'
        f"<title>{esc(config.title)}</title>\n"
        f"<description>{esc(config.description)}</description>\n"
        f"<link>{esc(base_url)}/</link>\n"
        f"<generator>{GENERATOR}</generator>\n"
        "<language>en-us</language>\n"
        f'<atom:link href="{esc(base_url)}/atom.xml" rel="self" type="application/rss+xml" />\n'
        f"{''.join(items)}</channel>\n</rss>\n"
    )
