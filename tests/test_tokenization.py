from pdf.models import PiiMatch, PiiReason, PositionedFragment
from pdf.pdf_pipeline.tokenization import (
    COLUMN_SEPARATOR,
    REDACTED_TOKEN,
    build_prepared_document,
    fragments_to_rows,
    join_row,
    prepare_statement_text,
    reconstruct_text,
)


def frag(text, x, y, width=20.0, page=0):
    return PositionedFragment(text=text, x=x, y=y, width=width, height=10.0, page_index=page)


def test_rows_group_by_vertical_tolerance():
    frags = [frag("b", 100, 101.5), frag("a", 10, 100), frag("c", 10, 110)]
    rows = fragments_to_rows(frags)
    assert [[f.text for f in row] for row in rows] == [["a", "b"], ["c"]]


def test_page_change_starts_new_row():
    frags = [frag("p2", 10, 100, page=1), frag("p1", 10, 100, page=0)]
    rows = fragments_to_rows(frags)
    assert [[f.text for f in row] for row in rows] == [["p1"], ["p2"]]


def test_gap_separators():
    # each fragment is 20 wide, so gaps are measured from x + 20
    row = [frag("a", 0, 0), frag("b", 55, 0), frag("c", 90, 0), frag("d", 115, 0), frag("e", 136, 0)]
    assert join_row(row) == "a" + COLUMN_SEPARATOR + "b  c d" + "e"


def test_redacted_fragments_are_replaced():
    secret = frag("12345678", 60, 50, width=40)
    frags = [frag("Account", 10, 50, width=45), secret, frag("16 Apr", 10, 80)]
    text = reconstruct_text(frags, [PiiMatch(secret, PiiReason.ACCOUNT_NUMBER)])
    assert "12345678" not in text
    assert text.splitlines()[0] == f"Account {REDACTED_TOKEN}"


def test_redaction_matches_by_position_and_page():
    secret = frag("12345678", 60, 50, width=40, page=0)
    twin_on_other_page = frag("12345678", 60, 50, width=40, page=1)
    text = reconstruct_text([secret, twin_on_other_page], [PiiMatch(secret, PiiReason.ACCOUNT_NUMBER)])
    assert text.splitlines() == [REDACTED_TOKEN, "12345678"]


def test_prepare_numbers_non_blank_rows_densely():
    doc = prepare_statement_text("  Opening   balance \n\n\t\n16 Apr  Coffee   4.50\r\n")
    assert doc.lines == ((1, "Opening balance"), (2, "16 Apr Coffee 4.50"))
    assert doc.text == "1. Opening balance\n2. 16 Apr Coffee 4.50"
    assert len(doc) == len(doc.text)


def test_prepare_is_idempotent_on_its_own_output():
    doc = prepare_statement_text("a   b\n\n c \n")
    again = prepare_statement_text("\n".join(line for _, line in doc.lines))
    assert again == doc


def test_empty_layout_gives_empty_document():
    doc = build_prepared_document([])
    assert doc.is_empty
    assert doc.text == ""


def test_content_hash_is_stable_prefix():
    a = prepare_statement_text("x\ny")
    b = prepare_statement_text("x \n\ny")
    assert a.content_hash() == b.content_hash()
    assert len(a.content_hash()) == 12
