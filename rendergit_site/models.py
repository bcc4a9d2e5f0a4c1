"""
Plain records shared by the repository adapter, the diff formatter, the
reference indexes and the page renderer.
"""

from __future__ import annotations

import dataclasses
import enum
from typing import List, Optional


# ---- diff input ----------------------------------------------------------------

class ChunkKind(enum.Enum):
    EQUAL = "equal"
    INSERT = "insert"
    DELETE = "delete"


@dataclasses.dataclass(frozen=True)
class Chunk:
    kind: ChunkKind
    text: str  # may span several lines; terminators are kept


@dataclasses.dataclass(frozen=True)
class FileIdentity:
    path: str
    mode: int  # git file mode, e.g. 0o100644
    hash: str


@dataclasses.dataclass
class FilePatch:
    old: Optional[FileIdentity]
    new: Optional[FileIdentity]
    is_binary: bool = False
    chunks: List[Chunk] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(frozen=True)
class FileStat:
    path: str
    additions: int
    deletions: int


# ---- diff output ---------------------------------------------------------------

class DiffRole(enum.Enum):
    CONTEXT = "context"
    META = "meta"
    FRAGMENT = "fragment"
    REMOVED = "removed"
    ADDED = "added"


@dataclasses.dataclass(frozen=True)
class DiffBlock:
    role: DiffRole
    text: str


# ---- commits -------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class Signature:
    name: str
    email: str
    time: int  # unix seconds


@dataclasses.dataclass(frozen=True)
class Commit:
    hash: str
    parents: List[str]
    author: Signature
    committer: Signature
    message: str

    @property
    def head(self) -> str:
        """First paragraph of the message."""
        return self.message.split("\n\n")[0].strip()

    @property
    def first_parent(self) -> Optional[str]:
        return self.parents[0] if self.parents else None


# ---- references ----------------------------------------------------------------

class RefKind(enum.Enum):
    BRANCH = "branch"
    NOTE = "note"
    REMOTE = "remote"
    TAG = "tag"
    SYMBOLIC = "symbolic"
    INVALID = "invalid"


@dataclasses.dataclass(frozen=True)
class ShortRef:
    name: str
    kind: RefKind


@dataclasses.dataclass(frozen=True)
class TagData:
    name: str
    target: str
    annotated: bool
    head: str
    tagger: str
    date: int  # unix seconds


@dataclasses.dataclass(frozen=True)
class NoteData:
    reference: str
    hash: str  # the notes commit carrying this note
    time: int
    lines: List[str]


# ---- trees ---------------------------------------------------------------------

class FileMode(enum.Enum):
    EMPTY = 0
    DIR = 0o040000
    REGULAR = 0o100644
    DEPRECATED = 0o100664
    EXECUTABLE = 0o100755
    SYMLINK = 0o120000
    SUBMODULE = 0o160000

    @classmethod
    def from_git(cls, mode: int) -> "FileMode":
        try:
            return cls(mode)
        except ValueError:
            return cls.EMPTY


@dataclasses.dataclass(frozen=True)
class TreeEntry:
    path: str  # slash-separated, relative to the tree root
    mode: FileMode
    hash: str
    size: int  # -1 when git reports none (directories, submodules)

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def parent(self) -> str:
        return self.path.rsplit("/", 1)[0] if "/" in self.path else ""
