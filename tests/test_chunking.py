import pytest

from pdf.pdf_pipeline.chunking import chunk_text, parse_numbered_lines
from pdf.pdf_pipeline.tokenization import prepare_statement_text


def numbered(n, body="16 Apr Coffee Shop 4.50 1,103.38"):
    return prepare_statement_text("\n".join(f"{body} #{i}" for i in range(n))).text


def test_chunks_respect_max_length_and_line_boundaries():
    text = numbered(40)
    chunks = chunk_text(text, max_len=200)
    assert len(chunks) > 1
    assert all(len(c) <= 200 for c in chunks)
    assert "\n".join(chunks) == text


def test_line_numbers_survive_chunking():
    text = numbered(25)
    chunks = chunk_text(text, max_len=150)
    numbers = [n for c in chunks for n, _ in parse_numbered_lines(c)]
    assert numbers == list(range(1, 26))


def test_short_text_is_one_chunk():
    text = numbered(3)
    assert chunk_text(text, max_len=9000) == [text]


def test_overlong_line_is_hard_split():
    line = "1. " + "x" * 117
    chunks = chunk_text("1. short\n" + line.replace("1.", "2.", 1), max_len=50)
    assert chunks[0] == "1. short"
    assert [len(c) for c in chunks[1:]] == [50, 50, 20]


def test_non_positive_limit_rejected():
    with pytest.raises(ValueError):
        chunk_text("1. a", max_len=0)


def test_parse_numbered_lines_skips_unnumbered():
    assert parse_numbered_lines("1. a\nnot numbered\n12. b c") == [(1, "a"), (12, "b c")]
