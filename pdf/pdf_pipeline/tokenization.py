from __future__ import annotations

import re
from collections import defaultdict
from typing import Dict, List, Sequence

from pdf.models import PiiMatch, PositionedFragment, PreparedDocument


ROW_Y_TOLERANCE = 3.0
COLUMN_GAP = 30.0
WIDE_GAP = 10.0
WORD_GAP = 2.0
COLUMN_SEPARATOR = "  |  "
REDACTED_TOKEN = "[REDACTED]"
MATCH_TOLERANCE = 0.5

_WS_RE = re.compile(r"\s+")


def fragments_to_rows(fragments: Sequence[PositionedFragment], y_tolerance: float = ROW_Y_TOLERANCE) -> List[List[PositionedFragment]]:
    """
    Group fragments into visual rows by vertical proximity.
    A new row starts on a page change or when the vertical delta from the
    previous fragment exceeds `y_tolerance`. Each row is returned in x order.
    """
    if not fragments:
        return []
    ordered = sorted(fragments, key=lambda f: (f.page_index, f.y, f.x))
    rows: List[List[PositionedFragment]] = []
    prev = None
    for f in ordered:
        if prev is None or f.page_index != prev.page_index or abs(f.y - prev.y) > y_tolerance:
            rows.append([f])
        else:
            rows[-1].append(f)
        prev = f
    return [sorted(row, key=lambda f: f.x) for row in rows]


class _RedactionIndex:
    def __init__(self, matches: Sequence[PiiMatch], tolerance: float = MATCH_TOLERANCE) -> None:
        self.tolerance = tolerance
        self._by_page: Dict[int, List[PositionedFragment]] = defaultdict(list)
        for m in matches:
            self._by_page[m.page_index].append(m.fragment)

    def __contains__(self, fragment: PositionedFragment) -> bool:
        tol = self.tolerance
        for candidate in self._by_page.get(fragment.page_index, ()):
            if abs(candidate.x - fragment.x) <= tol and abs(candidate.y - fragment.y) <= tol:
                return True
        return False


def join_row(row: Sequence[PositionedFragment], redacted=()) -> str:
    line = ""
    last_right = None
    for f in row:
        if last_right is not None:
            gap = f.x - last_right
            if gap > COLUMN_GAP:
                line += COLUMN_SEPARATOR
            elif gap > WIDE_GAP:
                line += "  "
            elif gap > WORD_GAP:
                line += " "
        line += REDACTED_TOKEN if f in redacted else f.text
        last_right = f.right
    return line


def reconstruct_text(fragments: Sequence[PositionedFragment], matches: Sequence[PiiMatch] = ()) -> str:
    redacted = _RedactionIndex(matches)
    rows = fragments_to_rows(fragments)
    return "\n".join(join_row(row, redacted) for row in rows)


def prepare_statement_text(text: str) -> PreparedDocument:
    """Collapse whitespace per row, drop blank rows and number the rest from 1."""
    cleaned = [_WS_RE.sub(" ", line).strip() for line in re.split(r"\r?\n", text)]
    lines = tuple((i, line) for i, line in enumerate((l for l in cleaned if l), start=1))
    return PreparedDocument(lines=lines)


def build_prepared_document(fragments: Sequence[PositionedFragment], matches: Sequence[PiiMatch] = ()) -> PreparedDocument:
    return prepare_statement_text(reconstruct_text(fragments, matches))
