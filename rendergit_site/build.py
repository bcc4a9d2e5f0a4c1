"""
Site build orchestration.

A run goes through four phases, each finishing before the next starts:

1. build the note index and the commit -> refs index;
2. write one page per commit (``c/<hash>.html``);
3. write every branch: ``<branch>/index.html``, ``<branch>/log.html`` and a
   ``<branch>/t/`` mirror of the tip's tree;
4. write ``refs.html``.

Pages whose output file is newer than their logical timestamp are skipped.
Independent pages are rendered on a thread pool; the first failure in a task
group stops the build.
"""

from __future__ import annotations

import dataclasses
import os
import sys
import threading
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

from .diff import DEFAULT_CONTEXT
from .git import GitRef, GitRepository
from .models import Commit, FileMode, NoteData, TreeEntry
from .pages import (
    BaseData,
    NavData,
    blob_data,
    commit_data,
    log_data,
    render_blob,
    render_commit,
    render_log,
    render_refs,
    render_tree,
    stylesheet,
    tree_data,
)
from .refs import (
    CommitRefIndex,
    NoteIndex,
    branch_refs,
    build_commit_ref_index,
    build_note_index,
    recent_note_time,
    short_name,
    sorted_tags,
)
from .util import is_skip_write, site_rel_root, write_html
from .workers import TaskGroup

DEFAULT_OUTPUT_DIR = "public"
DEFAULT_STYLE_PATH = "style.css"
COMMIT_DIR = "c"
TREE_PREFIX = "t"


def default_jobs() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


@dataclasses.dataclass
class BuildConfig:
    log_limit: int = 0  # 0 = whole history on log pages
    style_path: str = DEFAULT_STYLE_PATH
    context_lines: int = DEFAULT_CONTEXT
    jobs: int = dataclasses.field(default_factory=default_jobs)
    force: bool = False
    verbose: bool = False


@dataclasses.dataclass
class BuildReport:
    written: int = 0
    skipped: int = 0


class BuildError(Exception):
    """Generating one artifact failed."""

    def __init__(self, path: str, cause: BaseException) -> None:
        super().__init__(f"{path}: {cause}")
        self.path = path
        self.cause = cause


class SiteBuilder:
    def __init__(self, repo: GitRepository, repository_name: str, base_dir: str,
                 config: Optional[BuildConfig] = None) -> None:
        self.repo = repo
        self.repository_name = repository_name
        self.base_dir = base_dir
        self.config = config or BuildConfig()
        self.report = BuildReport()
        self._lock = threading.Lock()
        self.note_index: NoteIndex = {}
        self.ref_index: CommitRefIndex = {}

    # ---- helpers -----------------------------------------------------------------

    def _log(self, msg: str) -> None:
        if self.config.verbose:
            print(msg, file=sys.stderr)

    def _base(self, path: str, title: str, nav: Optional[NavData] = None) -> BaseData:
        return BaseData(
            title=title,
            home=self.repository_name,
            style_path=self.config.style_path,
            root=site_rel_root(self.base_dir, path),
            nav=nav or NavData(),
        )

    def _should_write(self, path: str, logical_time: float) -> bool:
        if not self.config.force and is_skip_write(path, logical_time):
            with self._lock:
                self.report.skipped += 1
            return False
        return True

    def _write(self, path: str, content: str) -> None:
        write_html(path, content)
        with self._lock:
            self.report.written += 1

    def _task(self, path: str, fn: Callable[..., None], *args) -> None:
        try:
            fn(path, *args)
        except BuildError:
            raise
        except Exception as e:
            raise BuildError(path, e) from e

    # ---- phases ------------------------------------------------------------------

    def run(self) -> BuildReport:
        os.makedirs(self.base_dir, exist_ok=True)

        self._log("🔎 Indexing refs and notes...")
        refs = self.repo.list_refs()
        self.note_index = build_note_index(self.repo)
        self.ref_index = build_commit_ref_index(refs)

        jobs = max(1, self.config.jobs)
        with ThreadPoolExecutor(max_workers=jobs) as leaf_pool, \
                ThreadPoolExecutor(max_workers=jobs) as branch_pool:
            self.write_commits(leaf_pool)

            branches = branch_refs(refs)
            self._log(f"🌿 Writing {len(branches)} branches...")
            with TaskGroup(branch_pool) as group:
                for ref in branches:
                    group.go(self.write_branch, ref, leaf_pool)

        self.write_refs(refs)
        if self.config.style_path == DEFAULT_STYLE_PATH:
            self.write_stylesheet()
        self._log(f"✓ Done ({self.report.written} written, {self.report.skipped} up to date)")
        return self.report

    def write_commits(self, pool: ThreadPoolExecutor) -> None:
        commit_dir = os.path.join(self.base_dir, COMMIT_DIR)
        os.makedirs(commit_dir, exist_ok=True)

        commits = self.repo.list_commits()
        self._log(f"📜 Writing commit pages ({len(commits)} commits)...")
        with TaskGroup(pool) as group:
            for c in commits:
                path = os.path.join(commit_dir, f"{c.hash}.html")
                notes = self.note_index.get(c.hash, [])
                logical_time = max(c.committer.time, recent_note_time(notes))
                if not self._should_write(path, logical_time):
                    continue
                group.go(self._task, path, self._commit_page, c, notes)

    def _commit_page(self, path: str, commit: Commit, notes: List[NoteData]) -> None:
        base = self._base(path, commit.hash)
        data = commit_data(self.repo, commit, notes, context=self.config.context_lines)
        self._write(path, render_commit(base, data))

    def write_branch(self, ref: GitRef, pool: ThreadPoolExecutor) -> None:
        name = short_name(ref.name)
        branch_dir = os.path.join(self.base_dir, name)
        tree_dir = os.path.join(branch_dir, TREE_PREFIX)
        os.makedirs(tree_dir, exist_ok=True)

        tip = self.repo.commit(ref.hash)
        entries = self.repo.tree_entries(tip.hash)
        submodules = self.repo.submodule_map(tip.hash)
        children: Dict[str, List[TreeEntry]] = defaultdict(list)
        for entry in entries:
            children[entry.parent].append(entry)

        self._log(f"  💾 {name}: index, log and {len(entries)} tree entries")
        self._task(os.path.join(branch_dir, "index.html"), self._index_page,
                   tip, name, children[""], submodules)
        self._task(os.path.join(branch_dir, "log.html"), self._log_page, tip, name)
        self.write_tree(tip, name, tree_dir, entries, children, submodules, pool)

    def _index_page(self, path: str, tip: Commit, name: str,
                    top: List[TreeEntry], submodules: Dict[str, str]) -> None:
        if not self._should_write(path, tip.committer.time):
            return
        base = self._base(path, name, NavData(commit=tip.hash, branch=name))
        data = tree_data(self.repo, top, submodules, TREE_PREFIX)
        self._write(path, render_tree(base, data))

    def _log_page(self, path: str, tip: Commit, name: str) -> None:
        if not self._should_write(path, tip.committer.time):
            return
        base = self._base(path, f"{name} - log", NavData(commit=tip.hash, branch=name))
        commits = self.repo.list_commits(tip.hash, limit=self.config.log_limit)
        self._write(path, render_log(base, log_data(self.repo, commits, self.ref_index)))

    def write_tree(self, tip: Commit, name: str, tree_dir: str, entries: List[TreeEntry],
                   children: Dict[str, List[TreeEntry]], submodules: Dict[str, str],
                   pool: ThreadPoolExecutor) -> None:
        """One page per directory (written here, in walk order) and per blob (fanned out)."""
        with TaskGroup(pool) as group:
            for entry in entries:
                if entry.mode is FileMode.SUBMODULE:
                    # rendered as an external link in its directory listing
                    continue
                if entry.mode is FileMode.DIR:
                    folder = os.path.join(tree_dir, entry.path)
                    os.makedirs(folder, exist_ok=True)
                    self._task(folder + ".html", self._dir_page, tip, name, entry,
                               children[entry.path], submodules)
                    continue
                path = os.path.join(tree_dir, entry.path + ".html")
                if self._should_write(path, tip.committer.time):
                    group.go(self._task, path, self._blob_page, name, entry)

    def _dir_page(self, path: str, tip: Commit, name: str, entry: TreeEntry,
                  listing: List[TreeEntry], submodules: Dict[str, str]) -> None:
        if not self._should_write(path, tip.committer.time):
            return
        base = self._base(path, entry.path, NavData(branch=name))
        data = tree_data(self.repo, listing, submodules, entry.name)
        self._write(path, render_tree(base, data))

    def _blob_page(self, path: str, name: str, entry: TreeEntry) -> None:
        base = self._base(path, entry.path, NavData(branch=name))
        self._write(path, render_blob(base, blob_data(self.repo, entry)))

    def write_refs(self, refs: List[GitRef]) -> None:
        path = os.path.join(self.base_dir, "refs.html")
        branches = [short_name(r.name) for r in branch_refs(refs)]
        tags = sorted_tags(refs)
        logical_time = max(
            [r.committer_time for r in branch_refs(refs)] + [t.date for t in tags],
            default=0,
        )
        if not self._should_write(path, logical_time):
            return
        self._log("🔖 Writing refs page...")
        base = self._base(path, "References")
        self._task(path, lambda p: self._write(p, render_refs(base, branches, tags)))

    def write_stylesheet(self) -> None:
        path = os.path.join(self.base_dir, DEFAULT_STYLE_PATH)
        content = stylesheet()
        try:
            with open(path, "r", encoding="utf-8") as f:
                if f.read() == content:
                    return
        except FileNotFoundError:
            pass
        write_html(path, content)


def run(repo: GitRepository, repository_name: str, base_dir: str = DEFAULT_OUTPUT_DIR,
        config: Optional[BuildConfig] = None) -> BuildReport:
    """Build (or refresh) the whole site; raises on the first failure."""
    return SiteBuilder(repo, repository_name, base_dir, config).run()
