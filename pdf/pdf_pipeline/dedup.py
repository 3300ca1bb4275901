from __future__ import annotations

import math
import re
from typing import Dict, List, Sequence

from pdf.pdf_pipeline.normalizer import Candidate, is_refund_like


IDENTIFIER_MAX_LEN = 24


def normalize_identifier(text: str) -> str:
    s = re.sub(r"\d+", "", (text or "").upper())
    s = re.sub(r"[^A-Z]+", " ", s)
    return re.sub(r"\s+", " ", s).strip()[:IDENTIFIER_MAX_LEN]


def amount_cents(amount: float) -> int:
    return int(math.floor(abs(amount) * 100 + 0.5))


def dedup_key(candidate: Candidate) -> str:
    t = candidate.transaction
    ident = ""
    if t.merchant:
        ident = normalize_identifier(t.merchant)
    if not ident and t.note:
        ident = normalize_identifier(t.note)
    line = str(t.line_index) if t.line_index is not None else "N"
    return f"{line}|{t.occurred_on[:10]}|{t.currency.upper()}|{amount_cents(t.amount)}|{ident}"


def _as_negative(c: Candidate) -> Candidate:
    if c.transaction.amount < 0:
        return c
    txn = c.transaction.model_copy(update={"amount": -abs(c.transaction.amount)})
    return Candidate(transaction=txn, direction=c.direction, chunk_index=c.chunk_index)


def pick_preferred(a: Candidate, b: Candidate) -> Candidate:
    """
    Resolve a collision between the current survivor `a` and a newcomer `b`.
    """
    a_refund = is_refund_like(a.descriptive_text)
    b_refund = is_refund_like(b.descriptive_text)
    if a_refund != b_refund:
        return _as_negative(a if a_refund else b)

    if bool(a.direction) != bool(b.direction):
        return a if a.direction else b

    a_neg = a.transaction.amount < 0
    b_neg = b.transaction.amount < 0
    if a_neg != b_neg:
        if a_refund or b_refund:
            return a if a_neg else b
        return b if a_neg else a

    for attr in ("merchant", "note", "category"):
        a_has = bool(getattr(a.transaction, attr))
        b_has = bool(getattr(b.transaction, attr))
        if a_has != b_has:
            return a if a_has else b

    if a.chunk_index != b.chunk_index:
        return a if a.chunk_index > b.chunk_index else b
    return a


def dedupe_candidates(candidates: Sequence[Candidate]) -> List[Candidate]:
    """One survivor per (line, date, currency, cents, identifier) group, in first-seen order."""
    groups: Dict[str, Candidate] = {}
    for c in candidates:
        key = dedup_key(c)
        existing = groups.get(key)
        groups[key] = c if existing is None else pick_preferred(existing, c)
    return list(groups.values())
