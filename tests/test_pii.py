import pytest

from pdf.models import PiiReason, PositionedFragment
from pdf.pdf_pipeline.pii import PiiDetector


@pytest.fixture
def detector():
    return PiiDetector(["Acme"])


@pytest.mark.parametrize(
    "text,reason",
    [
        ("jane.doe@example.com", PiiReason.EMAIL),
        ("4111 1111 1111 1111", PiiReason.CARD_NUMBER),
        ("4111-1111-1111-1111", PiiReason.CARD_NUMBER),
        ("Account 12345678", PiiReason.ACCOUNT_NUMBER),
        ("Transit 0012-3456-78", PiiReason.ACCOUNT_NUMBER),
        ("(416) 555-0199", PiiReason.PHONE),
        ("Name: Jane Doe", PiiReason.NAME_LABEL),
        ("Customer: J. Doe", PiiReason.NAME_LABEL),
        ("ACME CORP PAYROLL", PiiReason.CUSTOM_WORD),
    ],
)
def test_classify_flags_pii(detector, text, reason):
    assert detector.classify(text) == reason


@pytest.mark.parametrize(
    "text",
    ["2024-04-16", "16/04/2024", "04.16.2024", "1,103.38", "880.00", "Coffee Shop", "16 Apr", "", "   "],
)
def test_classify_leaves_ordinary_tokens(detector, text):
    assert detector.classify(text) is None


def test_detect_returns_matching_fragments_only(detector):
    frags = [
        PositionedFragment("16 Apr", 50, 120, 28, 10, 0),
        PositionedFragment("Account 12345678", 50, 80, 90, 10, 0),
        PositionedFragment("jane@example.com", 50, 40, 80, 10, 1),
    ]
    matches = detector.detect(frags)
    assert [m.fragment.text for m in matches] == ["Account 12345678", "jane@example.com"]
    assert matches[1].page_index == 1


def test_no_extra_words_means_no_custom_matches():
    assert PiiDetector().classify("ACME CORP PAYROLL") is None
    assert PiiDetector(["", "  "]).classify("anything") is None


def test_mask_text_replaces_pii_and_keeps_dates(detector):
    masked = detector.mask_text(
        "2024-04-16 Transfer to 12345678 card 4111 1111 1111 1111\n"
        "Mail jane@example.com or call (416) 555-0199 today\n"
        "Name: Jane Doe\n"
        "Acme payroll 1,250.00"
    )
    assert "2024-04-16" in masked
    assert "[NUM]" in masked and "12345678" not in masked
    assert "[CARD]" in masked and "4111" not in masked
    assert "[EMAIL]" in masked
    assert "[PHONE]" in masked
    assert "Name: [REDACTED]" in masked and "Jane" not in masked
    assert "[REDACTED] payroll 1,250.00" in masked


@pytest.mark.parametrize(
    "text",
    [
        "2024-04-16 2024-04-17 AMAZON MKTPLACE 23.99",
        "16/04/2024 17/04/2024 Coffee Shop 4.50",
        "2024-04-16 2024-04-17",
    ],
)
def test_adjacent_dates_are_not_read_as_account_numbers(detector, text):
    assert detector.classify(text) is None


def test_account_number_next_to_dates_is_still_flagged(detector):
    assert detector.classify("2024-04-16 2024-04-17 Transfer 12345678") == PiiReason.ACCOUNT_NUMBER


def test_mask_text_keeps_adjacent_dates(detector):
    masked = detector.mask_text("2024-04-16 2024-04-17 AMAZON MKTPLACE 23.99 ref 12345678")
    assert masked == "2024-04-16 2024-04-17 AMAZON MKTPLACE 23.99 ref [NUM]"
