"""
Turn per-file chunk lists into a unified diff made of typed blocks.

The output mirrors `git diff` text (file headers, `@@` fragments, context,
removed and added lines) but keeps every piece tagged with its role so the
page renderer can style it without re-parsing.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from .models import Chunk, ChunkKind, DiffBlock, DiffRole, FilePatch

DEFAULT_CONTEXT = 3
ZERO_HASH = "0" * 40
NO_NEWLINE_MARKER = "\\ No newline at end of file\n"


def split_lines(text: str) -> List[str]:
    """Split on '\\n' keeping terminators; a trailing empty piece is dropped."""
    parts = text.split("\n")
    lines = [p + "\n" for p in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


# ---- block sequence ------------------------------------------------------------

class DiffBuilder:
    """Collects blocks and hands them back run-length compressed by role."""

    def __init__(self) -> None:
        self._queue: List[DiffBlock] = []

    def add(self, role: DiffRole, text: str) -> None:
        self._queue.append(DiffBlock(role, text))

    def extend(self, blocks: Iterable[DiffBlock]) -> None:
        self._queue.extend(blocks)

    def blocks(self) -> List[DiffBlock]:
        out: List[DiffBlock] = []
        if not self._queue:
            return out
        role = self._queue[0].role
        parts: List[str] = []
        for block in self._queue:
            if block.role != role:
                out.append(DiffBlock(role, "".join(parts)))
                parts = []
                role = block.role
            parts.append(block.text)
        out.append(DiffBlock(role, "".join(parts)))
        return out


# ---- file header ---------------------------------------------------------------

def _path_lines(from_path: str, to_path: str, is_binary: bool) -> List[str]:
    if is_binary:
        return [f"Binary files {from_path} and {to_path} differ\n"]
    return [f"--- {from_path}\n", f"+++ {to_path}\n"]


def make_diff_header(patch: FilePatch) -> str:
    old, new = patch.old, patch.new
    if old is None and new is None:
        return ""

    lines: List[str] = []
    if old is None:
        lines.append(f"diff --git a/{new.path} b/{new.path}\n")
        lines.append(f"new file mode {new.mode:o}\n")
        lines.append(f"index {ZERO_HASH[:7]}..{new.hash[:7]}\n")
        lines += _path_lines("/dev/null", "b/" + new.path, patch.is_binary)
    elif new is None:
        lines.append(f"diff --git a/{old.path} b/{old.path}\n")
        lines.append(f"deleted file mode {old.mode:o}\n")
        lines.append(f"index {old.hash[:7]}..{ZERO_HASH[:7]}\n")
        lines += _path_lines("a/" + old.path, "/dev/null", patch.is_binary)
    else:
        lines.append(f"diff --git a/{old.path} b/{new.path}\n")
        if old.mode != new.mode:
            lines.append(f"old mode {old.mode:o}\n")
            lines.append(f"new mode {new.mode:o}\n")
        if old.path != new.path:
            lines.append(f"rename from {old.path}\n")
            lines.append(f"rename to {new.path}\n")
        if old.hash != new.hash:
            index = f"index {old.hash[:7]}..{new.hash[:7]}"
            if old.mode == new.mode:
                index += f" {old.mode:o}"
            lines.append(index + "\n")
            lines += _path_lines("a/" + old.path, "b/" + new.path, patch.is_binary)
    return "".join(lines)


# ---- hunks ---------------------------------------------------------------------

_OP_ROLES = {
    ChunkKind.EQUAL: (" ", DiffRole.CONTEXT),
    ChunkKind.DELETE: ("-", DiffRole.REMOVED),
    ChunkKind.INSERT: ("+", DiffRole.ADDED),
}


class Hunk:
    def __init__(self, context_prefix: str = "") -> None:
        self.from_line = 0
        self.to_line = 0
        self.from_count = 0
        self.to_count = 0
        self.context_prefix = context_prefix
        self.ops: List[Tuple[ChunkKind, str]] = []

    def add_op(self, kind: ChunkKind, lines: Sequence[str]) -> None:
        n = len(lines)
        if kind is not ChunkKind.INSERT:
            self.from_count += n
        if kind is not ChunkKind.DELETE:
            self.to_count += n
        self.ops.extend((kind, line) for line in lines)

    def header(self) -> str:
        def span(start: int, count: int) -> str:
            return f"{start}" if count == 1 else f"{start},{count}"

        return f"@@ -{span(self.from_line, self.from_count)} +{span(self.to_line, self.to_count)} @@"

    def blocks(self) -> List[DiffBlock]:
        out = [DiffBlock(DiffRole.FRAGMENT, self.header())]
        hint = f" {self.context_prefix}" if self.context_prefix else ""
        out.append(DiffBlock(DiffRole.META, hint + "\n"))
        for kind, line in self.ops:
            sign, role = _OP_ROLES[kind]
            if line.endswith("\n"):
                out.append(DiffBlock(role, sign + line))
            else:
                out.append(DiffBlock(role, sign + line + "\n"))
                out.append(DiffBlock(DiffRole.META, NO_NEWLINE_MARKER))
        return out


class HunksGenerator:
    """Scans one file's chunks and groups changes into context-windowed hunks.

    ``before_context`` holds equal lines seen while no hunk is open,
    ``after_context`` holds equal lines seen since the open hunk's last change.
    Two changes separated by at most ``2 * context`` equal lines share a hunk.
    """

    def __init__(self, chunks: Sequence[Chunk], context: int = DEFAULT_CONTEXT) -> None:
        self.chunks = list(chunks)
        self.context = context
        self.from_line = 0
        self.to_line = 0
        self.current: Optional[Hunk] = None
        self.hunks: List[Hunk] = []
        self.before_context: List[str] = []
        self.after_context: List[str] = []

    def generate(self) -> List[Hunk]:
        last = len(self.chunks) - 1
        for i, chunk in enumerate(self.chunks):
            lines = split_lines(chunk.text)
            n = len(lines)

            if chunk.kind is ChunkKind.EQUAL:
                self.from_line += n
                self.to_line += n
                self._process_equal(lines, i)
            elif not n:
                # an empty change moves no counters and opens nothing
                pass
            elif chunk.kind is ChunkKind.DELETE:
                self.from_line += 1
                self._open_hunk(i, chunk.kind)
                self.from_line += n - 1
                self.current.add_op(chunk.kind, lines)
            else:
                self.to_line += 1
                self._open_hunk(i, chunk.kind)
                self.to_line += n - 1
                self.current.add_op(chunk.kind, lines)

            if i == last and self.current is not None:
                self._close(self.after_context)
        return self.hunks

    def _close(self, trailing: List[str]) -> None:
        self.current.add_op(ChunkKind.EQUAL, trailing)
        self.hunks.append(self.current)
        self.current = None
        self.after_context = []

    def _open_hunk(self, i: int, kind: ChunkKind) -> None:
        if self.current is not None:
            return

        prefix = ""
        lines_before = len(self.before_context)
        if lines_before > self.context:
            prefix = self.before_context[lines_before - self.context - 1]
            self.before_context = self.before_context[lines_before - self.context:]
            lines_before = self.context

        hunk = Hunk(prefix.removesuffix("\n"))
        hunk.add_op(ChunkKind.EQUAL, self.before_context)
        if kind is ChunkKind.DELETE:
            hunk.from_line, hunk.to_line = self._start_lines(
                self.from_line, self.to_line, lines_before, i, ChunkKind.INSERT)
        else:
            hunk.to_line, hunk.from_line = self._start_lines(
                self.to_line, self.from_line, lines_before, i, ChunkKind.DELETE)
        self.current = hunk
        self.before_context = []

    def _start_lines(self, la: int, lb: int, lines_before: int, i: int,
                     other: ChunkKind) -> Tuple[int, int]:
        """Start line on the changed side (``la``) and on the other side (``lb``)."""
        start_a = la - lines_before
        start_b = 0
        has_next = i != len(self.chunks) - 1
        if lines_before and self.context:
            start_b = lb - self.context + 1 if lb > self.context else 1
        elif not self.context:
            # without context the other side starts inside the hunk only when it changes too
            start_b = lb + 1 if has_next and self.chunks[i + 1].kind is other else lb
        elif has_next:
            # the other side only starts inside this hunk if more lines follow
            if self.chunks[i + 1].kind in (other, ChunkKind.EQUAL):
                start_b = lb + 1
        return start_a, start_b

    def _process_equal(self, lines: List[str], i: int) -> None:
        if self.current is None:
            self.before_context.extend(lines)
            return

        self.after_context.extend(lines)
        if len(self.after_context) <= self.context * 2 and i != len(self.chunks) - 1:
            self.current.add_op(ChunkKind.EQUAL, self.after_context)
            self.after_context = []
            return

        keep = min(self.context, len(self.after_context))
        rest = self.after_context[keep:]
        self._close(self.after_context[:keep])
        self.before_context = rest


def format_file_patch(patch: FilePatch, context: int = DEFAULT_CONTEXT) -> List[DiffBlock]:
    out = [DiffBlock(DiffRole.META, make_diff_header(patch))]
    if patch.is_binary:
        return out
    if patch.old is not None and patch.new is not None and patch.old.hash == patch.new.hash:
        return out
    for hunk in HunksGenerator(patch.chunks, context).generate():
        out.extend(hunk.blocks())
    return out


def format_diff(patches: Iterable[FilePatch], message: Optional[str] = None,
                context: int = DEFAULT_CONTEXT) -> List[DiffBlock]:
    """Render a whole commit's patches as coalesced DiffBlocks."""
    builder = DiffBuilder()
    if message:
        if not message.endswith("\n"):
            message += "\n"
        builder.add(DiffRole.META, message)
    for patch in patches:
        builder.extend(format_file_patch(patch, context))
    return builder.blocks()
