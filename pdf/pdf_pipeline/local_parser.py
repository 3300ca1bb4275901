from __future__ import annotations

import re
from datetime import date
from typing import Dict, List, Optional

from pdf.pdf_pipeline.chunking import parse_numbered_lines
from pdf.pdf_pipeline.normalizer import is_refund_like
from schemas.transaction import Transaction


MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

ISO_DATE_RE = re.compile(r"\b(20\d{2})[-/](\d{1,2})[-/](\d{1,2})\b")
DAY_MONTH_RE = re.compile(r"\b(\d{1,2})\s+([A-Za-z]{3,9})(?:[,\s]+(20\d{2}))?\b")
MONTH_DAY_RE = re.compile(r"\b([A-Za-z]{3,9})\s+(\d{1,2})(?:[,\s]+(20\d{2}))?\b")
SLASH_DATE_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(20\d{2})\b")
YEAR_RE = re.compile(r"\b(20\d{2})\b")

AMOUNT_RE = re.compile(r"(?<![\w.])-?\$?\(?\d{1,3}(?:,\d{3})*\.\d{2}\)?(?![\d])|(?<![\w.])-?\$?\(?\d+\.\d{2}\)?(?![\d])")
DATE_STRIP_RE = re.compile(
    r"\b(\d{1,2}\s+[A-Za-z]{3,9}|[A-Za-z]{3,9}\s+\d{1,2}|\d{4}-\d{2}-\d{2}|\d{1,2}/\d{1,2}/20\d{2})\b"
)
REFERENCE_CODE_RE = re.compile(r"\b[A-Z]{0,4}\d{5,}\b", re.IGNORECASE)
NOISE_RE = re.compile(
    r"\b(TRANSACTION DATE|POSTING DATE|ACTIVITY DESCRIPTION|WITHDRAWALS?|DEPOSITS?|BALANCE|FOREIGN CURRENCY|"
    r"EXCHANGE RATE|VISA DEBIT PURCHASE|INTERAC|CONTACTLESS|MISC PAYMENT)\b",
    re.IGNORECASE,
)
EXCHANGE_RATE_RE = re.compile(r"exchange rate|@\s*\d", re.IGNORECASE)

CURRENCY_MARKERS = (
    ("CAD", re.compile(r"(^|\s)CAD(\s|$)|C\$")),
    ("USD", re.compile(r"(^|\s)USD(\s|$)|US\$")),
    ("EUR", re.compile(r"(^|\s)EUR(\s|$)|€")),
    ("GBP", re.compile(r"(^|\s)GBP(\s|$)|£")),
    ("INR", re.compile(r"(^|\s)INR(\s|$)|₹")),
    ("AUD", re.compile(r"(^|\s)AUD(\s|$)|A\$")),
)

MERCHANT_MAX_LEN = 64


def detect_global_currency(text: str) -> str:
    lc = text.lower()
    score: Dict[str, int] = {"USD": 0, "CAD": 0, "EUR": 0, "GBP": 0, "INR": 0, "AUD": 0}
    if "$" in text:
        for k in ("USD", "CAD", "AUD"):
            score[k] += 1
    score["EUR"] += 3 if "€" in text else 0
    score["GBP"] += 3 if "£" in text else 0
    score["INR"] += 5 if "₹" in text else 0
    weighted = (
        (r"\bcad\b", "CAD", 4), (r"\busd\b", "USD", 4), (r"\beur\b", "EUR", 4),
        (r"\bgbp\b", "GBP", 4), (r"\binr\b", "INR", 4), (r"\baud\b", "AUD", 4),
        (r"\bcanadian\b", "CAD", 2), (r"\bamerican\b|\bus\b", "USD", 1),
        (r"toronto|ontario|canada", "CAD", 2), (r"usa|united states", "USD", 2),
    )
    for pattern, code, weight in weighted:
        score[code] += len(re.findall(pattern, lc)) * weight
    best = "USD"
    for code, value in score.items():
        if value > score[best]:
            best = code
    return best


def detect_line_currency(line: str, fallback: str) -> str:
    upper = line.upper()
    for code, pattern in CURRENCY_MARKERS:
        if pattern.search(upper):
            return code
    return fallback


def _iso(y: int, m: int, d: int) -> Optional[str]:
    try:
        return date(y, m, d).isoformat()
    except ValueError:
        return None


def parse_date(s: str, year: int) -> Optional[str]:
    m = ISO_DATE_RE.search(s)
    if m:
        found = _iso(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        if found:
            return found
    m = DAY_MONTH_RE.search(s)
    if m and m.group(2)[:3].lower() in MONTHS:
        found = _iso(int(m.group(3) or year), MONTHS[m.group(2)[:3].lower()], int(m.group(1)))
        if found:
            return found
    m = MONTH_DAY_RE.search(s)
    if m and m.group(1)[:3].lower() in MONTHS:
        found = _iso(int(m.group(3) or year), MONTHS[m.group(1)[:3].lower()], int(m.group(2)))
        if found:
            return found
    m = SLASH_DATE_RE.search(s)
    if m:
        a, b, y = int(m.group(1)), int(m.group(2)), int(m.group(3))
        # ambiguous day/month: treat the first as the day unless only the second can be one
        day, month = (b, a) if b > 12 and a <= 12 else (a, b)
        return _iso(y, month, day)
    return None


def extract_amount(s: str) -> Optional[float]:
    """
    Pick the transaction amount from a statement line.
    With two or more two-decimal figures the last one is the running balance,
    so the one before it is taken.
    """
    if EXCHANGE_RATE_RE.search(s):
        tokens = [m.group(0) for m in AMOUNT_RE.finditer(s)]
        tokens = tokens[-2:-1] if len(tokens) >= 3 else tokens[-1:]
    else:
        tokens = [m.group(0) for m in AMOUNT_RE.finditer(s)]
        if len(tokens) >= 2:
            tokens = tokens[-2:-1]
    if not tokens:
        return None
    token = tokens[0]
    negative = token.startswith("-") or "(" in token
    cleaned = re.sub(r"[^0-9.]", "", token)
    try:
        value = float(cleaned)
    except ValueError:
        return None
    return -value if negative else value


def cleanup_merchant(s: str) -> Optional[str]:
    out = REFERENCE_CODE_RE.sub(" ", s)
    out = NOISE_RE.sub(" ", out)
    out = re.sub(r"[|]+", " ", out)
    out = re.sub(r"(^|\s)[-–]+(?=\s|$)", " ", out)
    out = re.sub(r"\s{2,}", " ", out).strip(" -|")
    if len(out) > MERCHANT_MAX_LEN:
        out = out[:MERCHANT_MAX_LEN].rstrip()
    return out or None


def statement_year(text: str, default: Optional[int] = None) -> int:
    m = YEAR_RE.search(text)
    if m:
        return int(m.group(1))
    return default or date.today().year


def parse_local_expenses(prepared_text: str, year: Optional[int] = None) -> List[Transaction]:
    """Heuristic, offline extraction from numbered statement lines; unnumbered lines are skipped."""
    global_currency = detect_global_currency(prepared_text)
    year = year or statement_year(prepared_text)
    results: List[Transaction] = []
    for line_index, body in parse_numbered_lines(prepared_text):
        occurred_on = parse_date(body, year)
        amount = extract_amount(body)
        if amount is None or occurred_on is None:
            continue
        if amount > 0 and is_refund_like(body):
            amount = -amount

        merchant_raw = DATE_STRIP_RE.sub(" ", body)
        merchant_raw = AMOUNT_RE.sub(" ", merchant_raw)
        results.append(Transaction(
            amount=amount,
            currency=detect_line_currency(body, global_currency),
            merchant=cleanup_merchant(merchant_raw),
            occurred_on=occurred_on,
            line_index=line_index,
        ))
    return results
