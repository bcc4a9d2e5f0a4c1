"""
Repository access over the ``git`` executable.

Everything the site builder needs from a repository (history, refs, notes,
trees, blobs and per-file chunk lists) goes through `GitRepository`. Output is
requested in machine-friendly formats (NUL / 0x1f / 0x1e separated) and parsed
into the records of `rendergit_site.models`.
"""

from __future__ import annotations

import dataclasses
import difflib
import os
from typing import Dict, List, Optional, Sequence, Tuple

from .diff import split_lines
from .models import (
    Chunk,
    ChunkKind,
    Commit,
    FileIdentity,
    FileMode,
    FilePatch,
    FileStat,
    Signature,
    TreeEntry,
)
from .util import run

EMPTY_TREE_SHA = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"
BINARY_SNIFF_BYTES = 8000

FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"
_COMMIT_FORMAT = "%H%x1f%P%x1f%an%x1f%ae%x1f%at%x1f%cn%x1f%ce%x1f%ct%x1f%B%x1e"
_REF_FORMAT = "%1f".join([
    "%(refname)",
    "%(objectname)",
    "%(objecttype)",
    "%(symref)",
    "%(*objectname)",
    "%(taggername)",
    "%(taggerdate:unix)",
    "%(authorname)",
    "%(committerdate:unix)",
    "%(contents)",
]) + "%1e"


class GitError(Exception):
    """A git invocation failed."""


class GitRepositoryError(GitError):
    """The path is not a usable git repository."""


class ObjectNotFoundError(GitError):
    """A requested object does not exist in the repository."""


@dataclasses.dataclass(frozen=True)
class GitRef:
    name: str
    hash: str
    object_type: str  # commit | tag | tree | blob
    symref: str = ""
    target: str = ""  # peeled object of an annotated tag
    tagger: str = ""
    tagger_time: int = 0
    author: str = ""  # set when the ref points straight at a commit
    committer_time: int = 0
    message: str = ""

    @property
    def is_annotated_tag(self) -> bool:
        return self.object_type == "tag"


def _int(field: str) -> int:
    return int(field) if field.strip() else 0


def _unexpected(command: str, rec: str) -> GitError:
    return GitError(f"unexpected output from git {command}: {rec[:80]!r}")


def is_binary(data: bytes) -> bool:
    return b"\x00" in data[:BINARY_SNIFF_BYTES]


def blob_lines(data: bytes) -> List[str]:
    """Lines of a text blob without terminators; a final empty line is dropped."""
    lines = data.decode("utf-8", errors="replace").split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def chunks_from_lines(old: Sequence[str], new: Sequence[str]) -> List[Chunk]:
    """Equal/Delete/Insert chunks between two line lists (terminators kept)."""
    matcher = difflib.SequenceMatcher(None, old, new, autojunk=False)
    chunks: List[Chunk] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            chunks.append(Chunk(ChunkKind.EQUAL, "".join(old[i1:i2])))
            continue
        if tag in ("delete", "replace"):
            chunks.append(Chunk(ChunkKind.DELETE, "".join(old[i1:i2])))
        if tag in ("insert", "replace"):
            chunks.append(Chunk(ChunkKind.INSERT, "".join(new[j1:j2])))
    return chunks


def stats(patches: Sequence[FilePatch]) -> List[FileStat]:
    out: List[FileStat] = []
    for patch in patches:
        identity = patch.new if patch.new is not None else patch.old
        additions = deletions = 0
        for chunk in patch.chunks:
            if chunk.kind is ChunkKind.INSERT:
                additions += len(split_lines(chunk.text))
            elif chunk.kind is ChunkKind.DELETE:
                deletions += len(split_lines(chunk.text))
        out.append(FileStat(identity.path if identity else "", additions, deletions))
    return out


class GitRepository:
    def __init__(self, path: str) -> None:
        self.path = path

    @classmethod
    def open(cls, path: str) -> "GitRepository":
        if not os.path.isdir(path):
            raise GitRepositoryError(f"no such directory: {path}")
        repo = cls(path)
        try:
            repo._git(["rev-parse", "--git-dir"])
        except GitError as e:
            raise GitRepositoryError(f"not a git repository: {path}") from e
        return repo

    # ---- plumbing ----------------------------------------------------------------

    def _git(self, args: List[str], text: bool = True, ok_codes: Tuple[int, ...] = (0,)):
        """Run git; with ``text`` stdout is decoded so that non-UTF-8 path bytes survive as surrogates."""
        try:
            cp = run(["git"] + args, cwd=self.path, check=False, text=False)
        except FileNotFoundError as e:
            raise GitError("git is not installed or not found in PATH") from e
        if cp.returncode not in ok_codes:
            stderr = cp.stderr.decode("utf-8", errors="replace")
            raise GitError(f"git {' '.join(args)} failed: {stderr.strip()}")
        if text:
            cp.stdout = cp.stdout.decode("utf-8", errors="surrogateescape")
        return cp

    # ---- history -----------------------------------------------------------------

    def _parse_commits(self, out: str) -> List[Commit]:
        commits: List[Commit] = []
        for rec in out.split(RECORD_SEP):
            rec = rec.lstrip("\n")
            if not rec:
                continue
            try:
                h, p, an, ae, at, cn, ce, ct, msg = rec.split(FIELD_SEP, 8)
                author = Signature(an, ae, _int(at))
                committer = Signature(cn, ce, _int(ct))
            except ValueError as e:
                raise _unexpected("log", rec) from e
            commits.append(
                Commit(
                    hash=h,
                    parents=[x for x in p.split() if x],
                    author=author,
                    committer=committer,
                    message=msg,
                )
            )
        return commits

    def list_commits(self, ref: Optional[str] = None, limit: int = 0) -> List[Commit]:
        """Commits in committer-time order, newest first.

        ``ref=None`` walks every ref except notes, otherwise only what ``ref`` reaches.
        """
        args = ["log", "--pretty=format:" + _COMMIT_FORMAT]
        if limit > 0:
            args.append(f"--max-count={limit}")
        if ref is None:
            args += ["--exclude=refs/notes/*", "--all"]
        else:
            args += [ref, "--"]
        commits = self._parse_commits(self._git(args).stdout)
        if ref is None:
            commits.sort(key=lambda c: c.committer.time, reverse=True)
        return commits

    def commit(self, rev: str) -> Commit:
        cp = self._git(["log", "-1", "--pretty=format:" + _COMMIT_FORMAT, rev, "--"], ok_codes=(0, 128))
        commits = self._parse_commits(cp.stdout) if cp.returncode == 0 else []
        if not commits:
            raise ObjectNotFoundError(f"commit not found: {rev}")
        return commits[0]

    # ---- refs & notes --------------------------------------------------------------

    def list_refs(self) -> List[GitRef]:
        out = self._git(["for-each-ref", "--format=" + _REF_FORMAT]).stdout
        refs: List[GitRef] = []
        for rec in out.split(RECORD_SEP):
            rec = rec.lstrip("\n")
            if not rec:
                continue
            try:
                (name, obj, otype, symref, peeled, tagger, tagger_time,
                 author, committer_time, contents) = rec.split(FIELD_SEP, 9)
                ref = GitRef(
                    name=name,
                    hash=obj,
                    object_type=otype,
                    symref=symref,
                    target=peeled,
                    tagger=tagger,
                    tagger_time=_int(tagger_time),
                    author=author,
                    committer_time=_int(committer_time),
                    message=contents,
                )
            except ValueError as e:
                raise _unexpected("for-each-ref", rec) from e
            refs.append(ref)
        return refs

    def dereference_annotated_tag(self, ref: GitRef) -> Optional[str]:
        return ref.target if ref.is_annotated_tag and ref.target else None

    def list_notes(self) -> List[GitRef]:
        return [r for r in self.list_refs() if r.name.startswith("refs/notes/")]

    def note_files(self, notes_commit: str) -> List[Tuple[str, str]]:
        """(annotated commit hash, note blob hash) pairs stored in a notes commit."""
        pairs: List[Tuple[str, str]] = []
        for entry in self.tree_entries(notes_commit, include_trees=False):
            if entry.mode is FileMode.SUBMODULE:
                continue
            pairs.append((entry.path.replace("/", ""), entry.hash))
        return pairs

    # ---- trees & blobs -----------------------------------------------------------

    def tree_entries(self, treeish: str, include_trees: bool = True) -> List[TreeEntry]:
        """Recursive listing; a directory always precedes its contents."""
        args = ["ls-tree", "-r", "-l", "-z"]
        if include_trees:
            args.append("-t")
        out = self._git(args + [treeish]).stdout
        entries: List[TreeEntry] = []
        for rec in out.split("\0"):
            if not rec:
                continue
            try:
                meta, path = rec.split("\t", 1)
                mode, _otype, obj, size = meta.split()
                entry = TreeEntry(
                    path=path,
                    mode=FileMode.from_git(int(mode, 8)),
                    hash=obj,
                    size=-1 if size == "-" else int(size),
                )
            except ValueError as e:
                raise _unexpected("ls-tree", rec) from e
            entries.append(entry)
        return entries

    def read_blob(self, blob_hash: str) -> bytes:
        cp = self._git(["cat-file", "blob", blob_hash], text=False, ok_codes=(0, 128))
        if cp.returncode != 0:
            raise ObjectNotFoundError(f"blob not found: {blob_hash}")
        return cp.stdout

    def submodule_map(self, commit: str) -> Dict[str, str]:
        """Submodule path -> remote URL from the commit's ``.gitmodules``."""
        listing = self._git(["ls-tree", "-z", commit, "--", ".gitmodules"]).stdout
        if not listing.strip("\0"):
            return {}
        if listing.startswith("120000 "):
            raise GitError(".gitmodules is a symlink")

        cp = self._git(
            ["config", "-z", "--blob", f"{commit}:.gitmodules", "--get-regexp", r"^submodule\..*\.(path|url)$"],
            ok_codes=(0, 1),
        )
        paths: Dict[str, str] = {}
        urls: Dict[str, str] = {}
        for rec in cp.stdout.split("\0"):
            if not rec:
                continue
            key, _, value = rec.partition("\n")
            name, _, field = key[len("submodule."):].rpartition(".")
            (paths if field == "path" else urls)[name] = value
        return {path: urls.get(name, "") for name, path in paths.items()}

    # ---- diffs -------------------------------------------------------------------

    def _side_text(self, identity: FileIdentity) -> bytes:
        if identity.mode == FileMode.SUBMODULE.value:
            return f"Subproject commit {identity.hash}\n".encode("utf-8")
        return self.read_blob(identity.hash)

    def diff(self, old: Optional[str], new: str) -> List[FilePatch]:
        """File patches turning tree-ish ``old`` (None = empty tree) into ``new``."""
        args = ["diff-tree", "-r", "-M", "-z", "--raw", "--no-commit-id", old or EMPTY_TREE_SHA, new]
        tokens = self._git(args).stdout.split("\0")
        patches: List[FilePatch] = []
        i = 0
        while i < len(tokens):
            meta = tokens[i]
            if not meta.startswith(":"):
                i += 1
                continue
            try:
                old_mode, new_mode, old_hash, new_hash, status = meta[1:].split()
                if status[0] in "RC":
                    old_path, new_path = tokens[i + 1], tokens[i + 2]
                    i += 3
                else:
                    old_path = new_path = tokens[i + 1]
                    i += 2
                old_id = None if status == "A" else FileIdentity(old_path, int(old_mode, 8), old_hash)
                new_id = None if status == "D" else FileIdentity(new_path, int(new_mode, 8), new_hash)
            except (ValueError, IndexError) as e:
                raise _unexpected("diff-tree", meta) from e
            patches.append(self._file_patch(old_id, new_id))
        return patches

    def _file_patch(self, old: Optional[FileIdentity], new: Optional[FileIdentity]) -> FilePatch:
        if old is not None and new is not None and old.hash == new.hash:
            return FilePatch(old, new)
        old_data = self._side_text(old) if old is not None else b""
        new_data = self._side_text(new) if new is not None else b""
        if is_binary(old_data) or is_binary(new_data):
            return FilePatch(old, new, is_binary=True)
        old_lines = split_lines(old_data.decode("utf-8", errors="replace"))
        new_lines = split_lines(new_data.decode("utf-8", errors="replace"))
        return FilePatch(old, new, chunks=chunks_from_lines(old_lines, new_lines))

    def commit_patches(self, commit: Commit) -> List[FilePatch]:
        """Changes introduced by ``commit`` relative to its first parent."""
        return self.diff(commit.first_parent, commit.hash)

    def stats(self, patches: Sequence[FilePatch]) -> List[FileStat]:
        return stats(patches)
