"""
Joins between commits and the things that point at or annotate them.

Both indexes are built once, single-threaded, before any page is generated,
and only read afterwards.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List

from .git import GitRef, blob_lines
from .models import NoteData, RefKind, ShortRef, TagData

CommitRefIndex = Dict[str, List[ShortRef]]
NoteIndex = Dict[str, List[NoteData]]

_SHORT_PREFIXES = ("refs/heads/", "refs/tags/", "refs/remotes/")


def ref_kind(ref: GitRef) -> RefKind:
    name = ref.name
    if ref.symref:
        return RefKind.SYMBOLIC
    if name.startswith("refs/heads/"):
        return RefKind.BRANCH
    if name.startswith("refs/notes/"):
        return RefKind.NOTE
    if name.startswith("refs/remotes/"):
        return RefKind.REMOTE
    if name.startswith("refs/tags/"):
        return RefKind.TAG
    return RefKind.INVALID


def short_name(name: str) -> str:
    for prefix in _SHORT_PREFIXES:
        if name.startswith(prefix):
            return name[len(prefix):]
    return name.removeprefix("refs/")


def short_ref(ref: GitRef) -> ShortRef:
    kind = ref_kind(ref)
    return ShortRef(short_name(ref.name) if kind is not RefKind.INVALID else "", kind)


def build_commit_ref_index(refs: Iterable[GitRef]) -> CommitRefIndex:
    """Commit hash -> refs resolving to it; annotated tags count under their target."""
    index: CommitRefIndex = defaultdict(list)
    for ref in refs:
        short = short_ref(ref)
        if short.kind in (RefKind.INVALID, RefKind.SYMBOLIC, RefKind.NOTE):
            continue
        target = ref.hash
        if short.kind is RefKind.TAG and ref.is_annotated_tag and ref.target:
            target = ref.target
        index[target].append(short)
    return dict(index)


def build_note_index(repo) -> NoteIndex:
    """Commit hash -> notes attached through every ``refs/notes/*`` ref."""
    index: NoteIndex = defaultdict(list)
    for note_ref in repo.list_notes():
        notes_commit = repo.commit(note_ref.hash)
        for subject, blob_hash in repo.note_files(notes_commit.hash):
            index[subject].append(
                NoteData(
                    reference=note_ref.name,
                    hash=notes_commit.hash,
                    time=notes_commit.committer.time,
                    lines=blob_lines(repo.read_blob(blob_hash)),
                )
            )
    return dict(index)


def recent_note_time(notes: Iterable[NoteData]) -> int:
    return max((n.time for n in notes), default=0)


def tag_data(ref: GitRef) -> TagData:
    name = short_name(ref.name)
    if ref.is_annotated_tag:
        return TagData(
            name=name,
            target=ref.target,
            annotated=True,
            head=ref.message.split("\n\n")[0].strip(),
            tagger=ref.tagger,
            date=ref.tagger_time,
        )
    # lightweight: borrow from the commit it names
    return TagData(
        name=name,
        target=ref.hash,
        annotated=False,
        head="",
        tagger=ref.author,
        date=ref.committer_time,
    )


def sorted_tags(refs: Iterable[GitRef]) -> List[TagData]:
    """Tags newest first; equal dates fall back to name order."""
    tags = [tag_data(r) for r in refs if ref_kind(r) is RefKind.TAG]
    tags.sort(key=lambda t: t.name)
    tags.sort(key=lambda t: t.date, reverse=True)
    return tags


def branch_refs(refs: Iterable[GitRef]) -> List[GitRef]:
    return [r for r in refs if ref_kind(r) is RefKind.BRANCH]
