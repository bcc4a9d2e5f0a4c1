from __future__ import annotations

from rendergit_site.diff import DiffBuilder, format_diff
from rendergit_site.models import Chunk, ChunkKind, DiffBlock, DiffRole, FileIdentity, FilePatch


def numbered(start: int, end: int, prefix: str = "line") -> str:
    return "".join(f"{prefix} {i}\n" for i in range(start, end + 1))


def modified(path: str, chunks: list[Chunk]) -> FilePatch:
    return FilePatch(
        old=FileIdentity(path, 0o100644, "a" * 40),
        new=FileIdentity(path, 0o100644, "b" * 40),
        chunks=chunks,
    )


def test_builder_merges_neighbouring_blocks_of_one_role() -> None:
    builder = DiffBuilder()
    builder.add(DiffRole.ADDED, "+a\n")
    builder.add(DiffRole.ADDED, "+b\n")
    builder.add(DiffRole.CONTEXT, " c\n")
    builder.add(DiffRole.ADDED, "+d\n")

    assert builder.blocks() == [
        DiffBlock(DiffRole.ADDED, "+a\n+b\n"),
        DiffBlock(DiffRole.CONTEXT, " c\n"),
        DiffBlock(DiffRole.ADDED, "+d\n"),
    ]


def test_empty_builder_yields_nothing() -> None:
    assert DiffBuilder().blocks() == []


def test_new_file_renders_as_header_fragment_and_added_run() -> None:
    patch = FilePatch(old=None, new=FileIdentity("a.txt", 0o100644, "c" * 40),
                      chunks=[Chunk(ChunkKind.INSERT, numbered(1, 5))])

    blocks = format_diff([patch])

    assert [b.role for b in blocks] == [DiffRole.META, DiffRole.FRAGMENT, DiffRole.META, DiffRole.ADDED]
    assert "--- /dev/null\n" in blocks[0].text
    assert "index 0000000..ccccccc\n" in blocks[0].text
    assert blocks[1].text == "@@ -0,0 +1,5 @@"
    assert blocks[2].text == "\n"
    assert blocks[3].text == "".join(f"+line {i}\n" for i in range(1, 6))


def test_missing_final_newline_gets_its_own_meta_block() -> None:
    patch = modified("f.txt", [
        Chunk(ChunkKind.EQUAL, "a\n"),
        Chunk(ChunkKind.DELETE, "b"),
        Chunk(ChunkKind.INSERT, "c"),
    ])

    blocks = format_diff([patch])

    assert [b.role for b in blocks] == [
        DiffRole.META,
        DiffRole.FRAGMENT,
        DiffRole.META,
        DiffRole.CONTEXT,
        DiffRole.REMOVED,
        DiffRole.META,
        DiffRole.ADDED,
        DiffRole.META,
    ]
    assert blocks[1].text == "@@ -1,2 +1,2 @@"
    assert blocks[4].text == "-b\n"
    assert blocks[5].text == "\\ No newline at end of file\n"
    assert blocks[6].text == "+c\n"


def test_context_prefix_follows_the_fragment() -> None:
    patch = modified("f.py", [
        Chunk(ChunkKind.EQUAL, numbered(1, 5) + "def main():\n" + numbered(7, 9)),
        Chunk(ChunkKind.DELETE, "old\n"),
        Chunk(ChunkKind.EQUAL, numbered(11, 20)),
    ])

    blocks = format_diff([patch])

    assert blocks[1] == DiffBlock(DiffRole.FRAGMENT, "@@ -7,7 +7,6 @@")
    assert blocks[2] == DiffBlock(DiffRole.META, " def main():\n")


def test_message_is_leading_meta_and_merges_with_first_header() -> None:
    patch = modified("f.txt", [Chunk(ChunkKind.DELETE, "x\n"), Chunk(ChunkKind.INSERT, "y\n")])

    blocks = format_diff([patch], message="subject")

    assert blocks[0].role is DiffRole.META
    assert blocks[0].text.startswith("subject\ndiff --git a/f.txt b/f.txt\n")


def test_no_two_consecutive_blocks_share_a_role() -> None:
    patches = [
        modified("one.txt", [
            Chunk(ChunkKind.EQUAL, numbered(1, 9)),
            Chunk(ChunkKind.DELETE, numbered(10, 11)),
            Chunk(ChunkKind.INSERT, numbered(10, 12, "new")),
            Chunk(ChunkKind.EQUAL, numbered(12, 40)),
            Chunk(ChunkKind.INSERT, "tail"),
        ]),
        FilePatch(old=FileIdentity("bin.dat", 0o100644, "d" * 40), new=None, is_binary=True),
        FilePatch(old=None, new=FileIdentity("two.txt", 0o100644, "e" * 40),
                  chunks=[Chunk(ChunkKind.INSERT, "only\n")]),
    ]

    blocks = format_diff(patches, message="msg\n")

    assert all(a.role != b.role for a, b in zip(blocks, blocks[1:]))
    assert "".join(b.text for b in blocks).count("diff --git") == 3
