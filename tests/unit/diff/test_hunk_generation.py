from __future__ import annotations

from rendergit_site.diff import HunksGenerator
from rendergit_site.models import Chunk, ChunkKind


def numbered(start: int, end: int, prefix: str = "line") -> str:
    return "".join(f"{prefix} {i}\n" for i in range(start, end + 1))


def eq(text: str) -> Chunk:
    return Chunk(ChunkKind.EQUAL, text)


def delete(text: str) -> Chunk:
    return Chunk(ChunkKind.DELETE, text)


def insert(text: str) -> Chunk:
    return Chunk(ChunkKind.INSERT, text)


def two_changes(gap: int) -> list[Chunk]:
    """Lines 10 and 11+gap replaced in a 100-line file."""
    second = 11 + gap
    return [
        eq(numbered(1, 9)),
        delete(numbered(10, 10)),
        insert(numbered(10, 10, "new")),
        eq(numbered(11, second - 1)),
        delete(numbered(second, second)),
        insert(numbered(second, second, "new")),
        eq(numbered(second + 1, 100)),
    ]


def test_replaced_block_gets_three_lines_of_context_each_side() -> None:
    chunks = [
        eq(numbered(1, 9)),
        delete(numbered(10, 12)),
        insert(numbered(10, 12, "new")),
        eq(numbered(13, 100)),
    ]

    hunks = HunksGenerator(chunks).generate()

    assert len(hunks) == 1
    hunk = hunks[0]
    assert hunk.header() == "@@ -7,9 +7,9 @@"
    assert hunk.context_prefix == "line 6"
    kinds = [kind for kind, _ in hunk.ops]
    assert kinds == [ChunkKind.EQUAL] * 3 + [ChunkKind.DELETE] * 3 + [ChunkKind.INSERT] * 3 + [ChunkKind.EQUAL] * 3
    assert [line for _, line in hunk.ops[:3]] == ["line 7\n", "line 8\n", "line 9\n"]
    assert [line for _, line in hunk.ops[-3:]] == ["line 13\n", "line 14\n", "line 15\n"]


def test_pure_insertion_counts_only_the_new_side() -> None:
    chunks = [eq(numbered(1, 9)), insert("inserted\n"), eq(numbered(10, 100))]

    (hunk,) = HunksGenerator(chunks).generate()

    assert hunk.header() == "@@ -7,6 +7,7 @@"


def test_changes_separated_by_twice_the_window_share_a_hunk() -> None:
    hunks = HunksGenerator(two_changes(gap=6)).generate()

    assert [h.header() for h in hunks] == ["@@ -7,14 +7,14 @@"]


def test_changes_separated_by_more_than_twice_the_window_split() -> None:
    hunks = HunksGenerator(two_changes(gap=7)).generate()

    assert [h.header() for h in hunks] == ["@@ -7,7 +7,7 @@", "@@ -15,7 +15,7 @@"]
    assert hunks[1].context_prefix == "line 14"


def test_far_apart_clusters_form_separate_hunks() -> None:
    chunks = [
        eq(numbered(1, 9)),
        delete(numbered(10, 10)),
        insert(numbered(10, 10, "new")),
        eq(numbered(11, 49)),
        delete(numbered(50, 50)),
        insert(numbered(50, 50, "new")),
        eq(numbered(51, 100)),
    ]

    hunks = HunksGenerator(chunks).generate()

    assert [h.header() for h in hunks] == ["@@ -7,7 +7,7 @@", "@@ -47,7 +47,7 @@"]


def test_line_counts_match_ops_for_every_hunk() -> None:
    for gap in (0, 1, 5, 6, 7, 20):
        for hunk in HunksGenerator(two_changes(gap)).generate():
            kinds = [kind for kind, _ in hunk.ops]
            assert hunk.from_count == kinds.count(ChunkKind.EQUAL) + kinds.count(ChunkKind.DELETE)
            assert hunk.to_count == kinds.count(ChunkKind.EQUAL) + kinds.count(ChunkKind.INSERT)


def test_context_never_exceeds_the_window() -> None:
    window = 2
    for gap in (0, 3, 4, 5, 30):
        for hunk in HunksGenerator(two_changes(gap), context=window).generate():
            kinds = [kind for kind, _ in hunk.ops]
            leading = next(i for i, k in enumerate(kinds) if k is not ChunkKind.EQUAL)
            trailing = next(i for i, k in enumerate(reversed(kinds)) if k is not ChunkKind.EQUAL)
            assert leading <= window
            assert trailing <= window


def test_change_at_file_start_has_short_leading_context() -> None:
    chunks = [eq(numbered(1, 1)), delete(numbered(2, 2)), eq(numbered(3, 20))]

    (hunk,) = HunksGenerator(chunks).generate()

    assert hunk.header() == "@@ -1,5 +1,4 @@"
    assert hunk.context_prefix == ""


def test_trailing_context_is_short_at_file_end() -> None:
    chunks = [eq(numbered(1, 10)), insert("tail\n"), eq(numbered(11, 11))]

    (hunk,) = HunksGenerator(chunks).generate()

    assert hunk.header() == "@@ -8,4 +8,5 @@"
    assert hunk.ops[-1] == (ChunkKind.EQUAL, "line 11\n")


def test_new_file_starts_from_zero_on_the_old_side() -> None:
    (hunk,) = HunksGenerator([insert(numbered(1, 5))]).generate()

    assert hunk.header() == "@@ -0,0 +1,5 @@"
    assert hunk.from_count == 0


def test_deleted_file_ends_at_zero_on_the_new_side() -> None:
    (hunk,) = HunksGenerator([delete(numbered(1, 5))]).generate()

    assert hunk.header() == "@@ -1,5 +0,0 @@"


def test_single_line_counts_are_omitted() -> None:
    (hunk,) = HunksGenerator([delete("old\n"), insert("new\n")]).generate()

    assert hunk.header() == "@@ -1 +1 @@"


def test_empty_change_chunk_moves_no_counters() -> None:
    chunks = [eq(numbered(1, 9)), delete(""), insert("inserted\n"), eq(numbered(10, 100))]

    (hunk,) = HunksGenerator(chunks).generate()

    assert hunk.header() == "@@ -7,6 +7,7 @@"


def test_zero_context_window() -> None:
    chunks = [eq(numbered(1, 9)), delete(numbered(10, 10)), insert("x\n"), eq(numbered(11, 20))]

    (hunk,) = HunksGenerator(chunks, context=0).generate()

    assert hunk.header() == "@@ -10 +10 @@"
    assert [k for k, _ in hunk.ops] == [ChunkKind.DELETE, ChunkKind.INSERT]


def test_only_equal_chunks_produce_no_hunks() -> None:
    assert HunksGenerator([eq(numbered(1, 50))]).generate() == []
