from __future__ import annotations

import pytest

from ragchat.rag.chunking import split_text


def test_sliding_window_spans():
    chunks = split_text("abcdefghij", 4, 1)

    assert [(c.start, c.end, c.text) for c in chunks] == [
        (0, 4, "abcd"),
        (3, 7, "defg"),
        (6, 10, "ghij"),
    ]


def test_2000_chars_with_default_policy():
    text = "x" * 2000
    chunks = split_text(text, 1000, 100)

    assert [(c.start, c.end) for c in chunks] == [(0, 1000), (900, 1900), (1800, 2000)]


def test_short_text_is_one_trimmed_chunk():
    chunks = split_text("   hello world  ", 1000, 100)

    assert len(chunks) == 1
    assert chunks[0].text == "hello world"
    assert (chunks[0].start, chunks[0].end) == (0, 16)


@pytest.mark.parametrize("text", ["", "    ", "\n\t\n"])
def test_blank_text_gives_no_chunks(text):
    assert split_text(text, 1000, 100) == []


def test_whitespace_windows_are_dropped():
    text = "abcd" + " " * 8 + "efgh"
    chunks = split_text(text, 4, 0)

    assert [c.text for c in chunks] == ["abcd", "efgh"]


def test_last_chunk_ends_at_len_and_is_not_duplicated():
    text = "0123456789" * 7  # 70 chars
    chunks = split_text(text, 20, 5)

    assert chunks[-1].end == len(text)
    assert len({(c.start, c.end) for c in chunks}) == len(chunks)


def test_windows_cover_text_without_gaps():
    text = "lorem ipsum dolor sit amet " * 40
    chunks = split_text(text, 97, 13)

    assert chunks[0].start == 0
    assert chunks[-1].end == len(text)
    for prev, nxt in zip(chunks, chunks[1:]):
        assert nxt.start <= prev.end
        assert prev.end - nxt.start == 13


def test_chunk_text_is_substring_of_source():
    text = "alpha beta gamma delta " * 30
    for c in split_text(text, 50, 10):
        assert c.text in text[c.start:c.end]
        assert 0 <= c.start < c.end <= len(text)


@pytest.mark.parametrize("size,overlap", [(10, 10), (10, 11), (0, 0), (10, -1)])
def test_rejects_bad_policy(size, overlap):
    with pytest.raises(ValueError):
        split_text("some text", size, overlap)
