"""
Page data and HTML for the static site.

Each page is built in two steps: gather an aggregate record from the
repository (`tree_data`, `blob_data`, `log_data`, `commit_data`), then turn it
into a complete document (`render_*`). Rendering is plain f-strings with
`html.escape`; source files are highlighted with Pygments and READMEs go
through Python-Markdown.
"""

from __future__ import annotations

import dataclasses
import html
import posixpath
from datetime import datetime, timezone
from typing import Dict, List, Sequence
from urllib.parse import quote, urlsplit

import markdown
import nh3
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_for_filename
from pygments.util import ClassNotFound

from .diff import DEFAULT_CONTEXT, format_diff
from .git import blob_lines, is_binary
from .models import (
    Commit,
    DiffBlock,
    DiffRole,
    FileMode,
    FileStat,
    NoteData,
    ShortRef,
    TagData,
    TreeEntry,
)
from .refs import CommitRefIndex
from .util import bytes_human

MARKDOWN_EXTENSIONS = ["fenced_code", "tables"]
SUBMODULE_URL_SCHEMES = ("http", "https", "ssh", "git", "git+ssh")

# ---- page data -----------------------------------------------------------------


@dataclasses.dataclass
class NavData:
    commit: str = ""
    branch: str = ""


@dataclasses.dataclass
class BaseData:
    title: str
    home: str
    style_path: str
    root: str
    nav: NavData = dataclasses.field(default_factory=NavData)


@dataclasses.dataclass
class TreeFile:
    name: str
    mode: FileMode
    size: str
    link: str


@dataclasses.dataclass
class TreeData:
    tree_name: str
    files: List[TreeFile]
    readme: str = ""


@dataclasses.dataclass
class BlobData:
    name: str
    is_binary: bool
    size: int
    lines: List[str]
    markdown: str = ""


@dataclasses.dataclass
class LogStats:
    files: int = 0
    additions: int = 0
    deletions: int = 0


@dataclasses.dataclass
class LogCommit:
    hash: str
    author: str
    date: int
    message: str
    refs: List[ShortRef]
    stats: LogStats


@dataclasses.dataclass
class LogData:
    commits: List[LogCommit]


@dataclasses.dataclass
class CommitData:
    commit: Commit
    notes: List[NoteData]
    stats: List[FileStat]
    lines: List[DiffBlock]


def markdown_to_html(text: str) -> str:
    # a README that fails to convert is simply not shown
    try:
        return nh3.clean(markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS))
    except Exception:
        return ""


def submodule_link(url: str) -> str:
    """The submodule URL when it is safe to link to, else an empty string."""
    try:
        scheme = urlsplit(url).scheme.lower()
    except ValueError:
        return ""
    return url if scheme in SUBMODULE_URL_SCHEMES else ""


def tree_data(repo, children: Sequence[TreeEntry], submodules: Dict[str, str], tree_name: str) -> TreeData:
    """Listing of one directory level; links are relative to the listing page."""
    files: List[TreeFile] = []
    readme = ""
    for entry in sorted(children, key=lambda e: e.name):
        size = ""
        link = posixpath.join(tree_name, entry.name) + ".html"
        if entry.mode is FileMode.SUBMODULE:
            link = submodule_link(submodules.get(entry.path, ""))
        elif entry.mode not in (FileMode.SYMLINK, FileMode.DIR):
            data = repo.read_blob(entry.hash)
            lowered = entry.name.lower()
            if lowered == "readme" and not readme:
                readme = markdown_to_html(data.decode("utf-8", errors="replace"))
            elif lowered == "readme.md":
                readme = markdown_to_html(data.decode("utf-8", errors="replace"))
            if is_binary(data):
                size = bytes_human(entry.size if entry.size >= 0 else len(data))
            else:
                size = f"{len(blob_lines(data))}L"
        files.append(TreeFile(entry.name, entry.mode, size, link))
    return TreeData(tree_name=tree_name, files=files, readme=readme)


def blob_data(repo, entry: TreeEntry) -> BlobData:
    data = repo.read_blob(entry.hash)
    if is_binary(data):
        return BlobData(entry.name, True, len(data), [])
    lines = blob_lines(data)
    md = ""
    if entry.name.lower().endswith(".md"):
        md = markdown_to_html(data.decode("utf-8", errors="replace"))
    return BlobData(entry.name, False, len(data), lines, md)


def log_data(repo, commits: Sequence[Commit], ref_index: CommitRefIndex) -> LogData:
    entries: List[LogCommit] = []
    for c in commits:
        stats = repo.stats(repo.commit_patches(c))
        entries.append(
            LogCommit(
                hash=c.hash,
                author=c.author.name,
                date=c.author.time,
                message=c.head,
                refs=list(ref_index.get(c.hash, [])),
                stats=LogStats(
                    files=len(stats),
                    additions=sum(s.additions for s in stats),
                    deletions=sum(s.deletions for s in stats),
                ),
            )
        )
    return LogData(entries)


def commit_data(repo, commit: Commit, notes: Sequence[NoteData], context: int = DEFAULT_CONTEXT) -> CommitData:
    patches = repo.commit_patches(commit)
    return CommitData(
        commit=commit,
        notes=list(notes),
        stats=repo.stats(patches),
        lines=format_diff(patches, context=context),
    )


# ---- HTML ----------------------------------------------------------------------

_ROLE_CLASSES = {
    DiffRole.CONTEXT: "diff-context",
    DiffRole.META: "diff-meta",
    DiffRole.FRAGMENT: "diff-frag",
    DiffRole.REMOVED: "diff-old",
    DiffRole.ADDED: "diff-new",
}

_MODE_LABELS = {
    FileMode.EMPTY: "?",
    FileMode.DIR: "d",
    FileMode.REGULAR: "-",
    FileMode.DEPRECATED: "-",
    FileMode.EXECUTABLE: "x",
    FileMode.SYMLINK: "l",
    FileMode.SUBMODULE: "m",
}

STYLE_CSS = """\
:root {
  --bg:#fff; --muted:#666; --line:#eee; --brand:#0366d6; --pill:#f2f4f7;
  --plus:#0a7b34; --minus:#a01515; --frag:#6f42c1;
}
* { box-sizing: border-box; }
body { margin:0; font-family: -apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Helvetica,Arial; line-height:1.45; }
code, pre { font-family: ui-monospace,SFMono-Regular,Menlo,Monaco,Consolas,'Liberation Mono','Courier New', monospace; }
a { color: var(--brand); text-decoration: none; }
a:hover { text-decoration: underline; }
nav.top { display:flex; gap:1rem; align-items:center; padding:.6rem 1rem; border-bottom:1px solid var(--line); background:#fafbfc; }
nav.top .home { font-weight:bold; }
main.container { padding: 1rem; }
footer { color: var(--muted); font-size:.85rem; padding: 1rem; border-top:1px solid var(--line); }
.meta { color: var(--muted); font-size: .9rem; }
.pill { background: var(--pill); border:1px solid #e1e5ea; padding:.15rem .5rem; border-radius: 999px; font-size:.85rem; }
.pill.plus { color: var(--plus); }
.pill.minus { color: var(--minus); }
.ref { font-size:.75rem; padding:.05rem .4rem; border-radius:999px; margin-right:.35rem; border:1px solid #d1d9e0; }
.ref.branch { background:#eefbf2; }
.ref.tag { background:#fff6ea; }
.ref.remote { background:#eef2fb; }
table.listing { border-collapse: collapse; }
table.listing td, table.listing th { padding:.2rem .6rem; text-align:left; }
table.listing tr:nth-child(even) { background:#fafbfc; }
pre { background:#f6f8fa; padding:.75rem; overflow:auto; border-radius:6px; }
pre.diff span { white-space: pre; }
.diff-meta { font-weight: bold; }
.diff-frag { color: var(--frag); }
.diff-old { color: var(--minus); background:#fdf7f7; }
.diff-new { color: var(--plus); background:#f6fbf7; }
.highlight { overflow-x: auto; }
.markdown-content { max-width: 60rem; }
"""


def stylesheet() -> str:
    return STYLE_CSS + HtmlFormatter().get_style_defs(".highlight") + "\n"


def _fmt_time(ts: int) -> str:
    if not ts:
        return ""
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _href(*parts: str) -> str:
    # undecodable path bytes are percent-encoded as they are on disk
    return quote("".join(parts), errors="surrogateescape")


def _commit_link(root: str, commit_hash: str, short: bool = True) -> str:
    label = commit_hash[:8] if short else commit_hash
    return f"<a href='{_href(root, 'c/', commit_hash, '.html')}'><code class='sha'>{label}</code></a>"


def _style_href(base: BaseData) -> str:
    # absolute URLs and root-relative paths are used as given
    if urlsplit(base.style_path).scheme or base.style_path.startswith("/"):
        return base.style_path
    return base.root + base.style_path


def render_page(base: BaseData, body: str) -> str:
    nav = [
        f"<a class='home' href='{_href(base.root, 'refs.html')}'>{html.escape(base.home)}</a>",
        f"<a href='{_href(base.root, 'refs.html')}'>refs</a>",
    ]
    if base.nav.branch:
        branch = base.nav.branch
        nav.append(f"<a href='{_href(base.root, branch, '/index.html')}'>{html.escape(branch)}</a>")
        nav.append(f"<a href='{_href(base.root, branch, '/log.html')}'>log</a>")
    if base.nav.commit:
        nav.append(_commit_link(base.root, base.nav.commit))

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8" />
<meta name="viewport" content="width=device-width, initial-scale=1" />
<title>{html.escape(base.title)} – {html.escape(base.home)}</title>
<link rel="stylesheet" href="{html.escape(_style_href(base), quote=True)}" />
</head>
<body>
<nav class="top">
  {" ".join(nav)}
</nav>
<main class="container">
{body}
</main>
<footer>Generated by rendergit-site</footer>
</body>
</html>
"""


def render_diff(blocks: Sequence[DiffBlock]) -> str:
    spans = "".join(
        f"<span class='{_ROLE_CLASSES[b.role]}'>{html.escape(b.text)}</span>" for b in blocks
    )
    return f"<pre class='diff'>{spans}</pre>"


def render_commit(base: BaseData, data: CommitData) -> str:
    c = data.commit

    def person(label: str, sig) -> str:
        return (
            f"<div><strong>{label}:</strong> {html.escape(sig.name)} &lt;{html.escape(sig.email)}&gt; "
            f"&middot; {html.escape(_fmt_time(sig.time))}</div>"
        )

    parents = " ".join(_commit_link(base.root, p) for p in c.parents) or "∅ (root)"
    notes = ""
    for note in data.notes:
        notes += (
            f"<section class='note'><h3>Note <small class='meta'>{html.escape(note.reference)}</small></h3>"
            f"<pre>{html.escape(chr(10).join(note.lines))}</pre></section>"
        )
    rows = "".join(
        f"<tr><td><code>{html.escape(s.path)}</code></td>"
        f"<td class='pill plus'>+{s.additions}</td><td class='pill minus'>-{s.deletions}</td></tr>"
        for s in data.stats
    )
    additions = sum(s.additions for s in data.stats)
    deletions = sum(s.deletions for s in data.stats)
    body = f"""<section class="commit">
  <h2><code class='sha'>{c.hash[:8]}</code> {html.escape(c.head) or "(no subject)"}</h2>
  <div class="meta">
    <div><strong>Commit:</strong> <code>{c.hash}</code></div>
    {person("Author", c.author)}
    {person("Committer", c.committer)}
    <div><strong>Parents:</strong> {parents}</div>
  </div>
  <pre class="message">{html.escape(c.message.rstrip())}</pre>
  {notes}
  <div class="stats">
    <span class="pill">{len(data.stats)} files</span>
    <span class="pill plus">+{additions}</span>
    <span class="pill minus">-{deletions}</span>
  </div>
  <table class="listing">{rows}</table>
  {render_diff(data.lines)}
</section>"""
    return render_page(base, body)


def render_tree(base: BaseData, data: TreeData) -> str:
    rows = []
    for f in data.files:
        name = html.escape(f.name + ("/" if f.mode is FileMode.DIR else ""))
        cell = f"<a href='{_href(f.link)}'>{name}</a>" if f.link else name
        if f.mode is FileMode.SUBMODULE and f.link:
            cell = f"<a href='{html.escape(f.link, quote=True)}'>{name}</a>"
        rows.append(
            f"<tr><td><code>{_MODE_LABELS[f.mode]}</code></td><td>{cell}</td>"
            f"<td class='meta'>{html.escape(f.size)}</td></tr>"
        )
    readme = f"<article class='markdown-content'>{data.readme}</article>" if data.readme else ""
    body = (
        f"<h2>{html.escape(base.title)}</h2>"
        f"<table class='listing'>{''.join(rows)}</table>"
        f"{readme}"
    )
    return render_page(base, body)


def render_blob(base: BaseData, data: BlobData) -> str:
    if data.is_binary:
        content = f"<p><em>Binary file</em> ({html.escape(bytes_human(data.size))})</p>"
    else:
        text = "\n".join(data.lines) + ("\n" if data.lines else "")
        try:
            lexer = get_lexer_for_filename(data.name, stripall=False)
        except ClassNotFound:
            lexer = TextLexer(stripall=False)
        content = highlight(text, lexer, HtmlFormatter(linenos="table"))
        if data.markdown:
            content = f"<article class='markdown-content'>{data.markdown}</article>" + content
    body = (
        f"<h2>{html.escape(base.title)}</h2>"
        f"<div class='meta'>{len(data.lines)} lines &middot; {html.escape(bytes_human(data.size))}</div>"
        f"{content}"
    )
    return render_page(base, body)


def render_log(base: BaseData, data: LogData) -> str:
    rows = []
    for entry in data.commits:
        refs = "".join(
            f"<span class='ref {r.kind.value}'>{html.escape(r.name)}</span>" for r in entry.refs
        )
        rows.append(
            f"<tr><td>{_commit_link(base.root, entry.hash)}</td>"
            f"<td>{refs}{html.escape(entry.message)}</td>"
            f"<td>{html.escape(entry.author)}</td>"
            f"<td class='meta'>{html.escape(_fmt_time(entry.date))}</td>"
            f"<td class='meta'>{entry.stats.files} files</td>"
            f"<td class='pill plus'>+{entry.stats.additions}</td>"
            f"<td class='pill minus'>-{entry.stats.deletions}</td></tr>"
        )
    body = f"<h2>{html.escape(base.title)}</h2><table class='listing log'>{''.join(rows)}</table>"
    return render_page(base, body)


def render_refs(base: BaseData, branches: Sequence[str], tags: Sequence[TagData]) -> str:
    branch_rows = "".join(
        f"<li><a href='{_href(base.root, b, '/index.html')}'>{html.escape(b)}</a> "
        f"(<a href='{_href(base.root, b, '/log.html')}'>log</a>)</li>"
        for b in branches
    )
    tag_rows = "".join(
        f"<tr><td>{html.escape(t.name)}</td><td>{_commit_link(base.root, t.target)}</td>"
        f"<td>{html.escape(t.head)}</td><td>{html.escape(t.tagger)}</td>"
        f"<td class='meta'>{html.escape(_fmt_time(t.date))}</td></tr>"
        for t in tags
    )
    body = (
        f"<h2>Branches</h2><ul class='branches'>{branch_rows}</ul>"
        f"<h2>Tags</h2><table class='listing tags'>{tag_rows}</table>"
    )
    return render_page(base, body)
