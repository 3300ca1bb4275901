from __future__ import annotations

import re
from typing import Callable, Iterable, List, Optional, Sequence

from pdf.models import PiiMatch, PiiReason, PositionedFragment


EMAIL_RE = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
# 16 digits in groups of four, optional space/dash between groups
CARD_RE = re.compile(r"(?<!\d)(?:\d{4}[ \-]?){3}\d{4}(?!\d)")
# 8+ digits, optionally split by single spaces or dashes
ACCOUNT_RE = re.compile(r"(?<![\w.,])\d(?:[ \-]?\d){7,}(?![\w.,])")
PHONE_RE = re.compile(r"(?<![\w.,])\+?\(?\d[\d \-()]{5,}\d(?![\w.,])")
NAME_LABEL_RE = re.compile(r"^\s*(?:name|customer|holder|owner)\s*:", re.IGNORECASE)
NAME_VALUE_RE = re.compile(r"\b(Name|Customer|Holder|Owner)\s*:\s*[^\n]+", re.IGNORECASE)
DATE_LIKE_RE = re.compile(r"\d{4}[-/. ]\d{1,2}[-/. ]\d{1,2}|\d{1,2}[-/. ]\d{1,2}[-/. ]\d{2,4}")
# same shapes, as standalone tokens inside a longer run
DATE_TOKEN_RE = re.compile(r"(?<!\d)(?:\d{4}[-/. ]\d{1,2}[-/. ]\d{1,2}|\d{1,2}[-/. ]\d{1,2}[-/. ]\d{2,4})(?!\d)")
DATE_MASK = "#"

PHONE_MIN_DIGITS = 7


def _digit_count(s: str) -> int:
    return sum(ch.isdigit() for ch in s)


def _is_date_like(s: str) -> bool:
    return DATE_LIKE_RE.fullmatch(s.strip()) is not None


def _is_phone(s: str) -> bool:
    if _is_date_like(s) or _digit_count(s) < PHONE_MIN_DIGITS:
        return False
    return s.startswith("+") or any(ch in s for ch in " -()")


def _blank_dates(text: str) -> str:
    """Overwrite date tokens in place so numeric patterns cannot run across them."""
    return DATE_TOKEN_RE.sub(lambda m: DATE_MASK * len(m.group(0)), text)


def _numeric_spans(pattern: re.Pattern, text: str) -> List[re.Match]:
    return list(pattern.finditer(_blank_dates(text)))


def _sub_outside_dates(pattern: re.Pattern, repl: Callable[[str], str], text: str) -> str:
    # blanking keeps offsets, so spans found on the blanked copy index the original
    parts: List[str] = []
    last = 0
    for m in _numeric_spans(pattern, text):
        parts.append(text[last:m.start()])
        parts.append(repl(text[m.start():m.end()]))
        last = m.end()
    parts.append(text[last:])
    return "".join(parts)


class PiiDetector:
    """
    Flags fragments that carry personally identifying content.

    Recall is preferred over precision: incidental numeric codes that look like
    account numbers are redacted too. Date-shaped tokens are left alone.
    """

    def __init__(self, extra_words: Optional[Iterable[str]] = None) -> None:
        self.extra_words: List[str] = [w.strip() for w in (extra_words or []) if w and w.strip()]

    def classify(self, text: str) -> Optional[PiiReason]:
        if not text or not text.strip():
            return None
        if NAME_LABEL_RE.match(text):
            return PiiReason.NAME_LABEL
        if EMAIL_RE.search(text):
            return PiiReason.EMAIL
        if _numeric_spans(CARD_RE, text):
            return PiiReason.CARD_NUMBER
        if _numeric_spans(ACCOUNT_RE, text):
            return PiiReason.ACCOUNT_NUMBER
        if any(_is_phone(m.group(0)) for m in _numeric_spans(PHONE_RE, text)):
            return PiiReason.PHONE
        lowered = text.lower()
        if any(w.lower() in lowered for w in self.extra_words):
            return PiiReason.CUSTOM_WORD
        return None

    def detect(self, fragments: Sequence[PositionedFragment]) -> List[PiiMatch]:
        matches: List[PiiMatch] = []
        for fragment in fragments:
            reason = self.classify(fragment.text)
            if reason is not None:
                matches.append(PiiMatch(fragment=fragment, reason=reason))
        return matches

    def mask_text(self, text: str) -> str:
        """Mask PII inside free text, for inputs that arrive without a layout."""
        out = EMAIL_RE.sub("[EMAIL]", text)
        out = _sub_outside_dates(CARD_RE, lambda s: "[CARD]", out)
        out = _sub_outside_dates(ACCOUNT_RE, lambda s: "[NUM]", out)
        out = _sub_outside_dates(PHONE_RE, lambda s: "[PHONE]" if _is_phone(s) else s, out)
        out = NAME_VALUE_RE.sub(lambda m: f"{m.group(1)}: [REDACTED]", out)
        for word in self.extra_words:
            out = re.sub(re.escape(word), "[REDACTED]", out, flags=re.IGNORECASE)
        return out
