from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from pdf.json_logger import get_json_logger
from schemas.transaction import Transaction


logger = get_json_logger("pdf_pipeline.normalizer")

UNICODE_MINUS_RE = re.compile("[−‒–—﹣－]")
PAREN_NEGATIVE_RE = re.compile(r"^\(.*\)$")
CREDIT_SUFFIX_RE = re.compile(r"\bCR\.?$", re.IGNORECASE)
DEBIT_SUFFIX_RE = re.compile(r"\bDR\.?$", re.IGNORECASE)
CURRENCY_CODE_RE = re.compile(r"\b[A-Z]{3}\b")
CURRENCY_SYMBOLS_RE = re.compile(r"[$€£¥₹₦₩₽₺₪]|\b(?:[ACNU]S?\$|C\$|US\$|A\$)")

INVESTMENT_RE = re.compile(
    r"\b(investments?|invest(?:ing)?|savings?|special deposit|rrsp|tfsa|resp|401k|ira|"
    r"mutual funds?|stocks?|bonds?|etfs?|brokerage)\b|transfer.*deposit",
    re.IGNORECASE,
)
REFUND_RE = re.compile(
    r"\b(refund(?:ed)?|credit|cr|reversal|reversed|chargeback|payment received|cash ?back|"
    r"returns?|deposit|adjustment credit|credit interest|rebate|reimbursement)\b|payment\W+thank you",
    re.IGNORECASE,
)

DIRECTIONS = {"debit", "credit"}


def parse_amount(value: Any) -> Optional[float]:
    """
    Parse a model-supplied amount into a signed float.

    Accepts numbers, or strings such as "$1,234.56", "(12.34)", "−45.00"
    and "12.34 CR". Strings that still contain letters once currency markers
    are removed (reference codes like "TQ242986") are rejected.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if not isinstance(value, str):
        return None
    raw = value.strip()
    if not raw:
        return None

    negative = PAREN_NEGATIVE_RE.match(raw) is not None
    if CREDIT_SUFFIX_RE.search(raw):
        negative = True
        raw = CREDIT_SUFFIX_RE.sub("", raw)
    raw = DEBIT_SUFFIX_RE.sub("", raw)

    s = UNICODE_MINUS_RE.sub("-", raw)
    s = CURRENCY_SYMBOLS_RE.sub("", s)
    s = CURRENCY_CODE_RE.sub("", s)
    if re.search(r"[A-Za-z]", s):
        return None
    cleaned = re.sub(r"[^0-9.\-]", "", s)
    if not re.search(r"\d", cleaned):
        return None
    try:
        num = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(num):
        return None
    if negative and num > 0:
        num = -num
    return num


def is_investment_like(text: str) -> bool:
    return bool(INVESTMENT_RE.search(text or ""))


def is_refund_like(text: str) -> bool:
    """Refund/credit wording, with investment and savings transfers exempted."""
    if not text or is_investment_like(text):
        return False
    return bool(REFUND_RE.search(text))


@dataclass
class Candidate:
    """A normalized transaction plus the provenance the deduplicator needs."""

    transaction: Transaction
    direction: Optional[str] = None
    chunk_index: int = 0

    @property
    def descriptive_text(self) -> str:
        t = self.transaction
        return f"{t.merchant or ''} {t.note or ''}".strip()


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _line_index(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(num) or num < 1:
        return None
    return int(num)


def apply_sign(amount: float, direction: Optional[str], text: str) -> float:
    if direction == "credit":
        return -abs(amount)
    if direction == "debit":
        return abs(amount)
    if amount > 0 and is_refund_like(text):
        return -amount
    return amount


def normalize_candidate(raw: Mapping[str, Any], chunk_index: int = 0) -> Optional[Candidate]:
    amount = parse_amount(raw.get("amount"))
    occurred_on = raw.get("occurred_on")
    if amount is None or not isinstance(occurred_on, str) or not occurred_on.strip():
        return None

    direction = str(raw.get("direction") or "").strip().lower() or None
    if direction not in DIRECTIONS:
        direction = None
    merchant = _optional_str(raw.get("merchant"))
    note = _optional_str(raw.get("note"))
    signed = apply_sign(amount, direction, f"{note or ''} {merchant or ''}")

    try:
        txn = Transaction(
            amount=signed,
            currency=str(raw.get("currency") or "USD"),
            merchant=merchant,
            payment_method=_optional_str(raw.get("payment_method")),
            note=note,
            occurred_on=occurred_on.strip(),
            category=_optional_str(raw.get("category")),
            line_index=_line_index(raw.get("line_index")),
        )
    except ValidationError:
        return None
    return Candidate(transaction=txn, direction=direction, chunk_index=chunk_index)


def normalize_candidates(raws: Iterable[Any], chunk_index: int = 0) -> List[Candidate]:
    out: List[Candidate] = []
    dropped = 0
    for raw in raws:
        candidate = normalize_candidate(raw, chunk_index) if isinstance(raw, Mapping) else None
        if candidate is None:
            dropped += 1
            continue
        out.append(candidate)
    if dropped:
        logger.debug("candidates_dropped", extra={"extra": {"chunk": chunk_index, "dropped": dropped, "kept": len(out)}})
    return out
