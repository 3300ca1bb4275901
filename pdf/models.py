from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple


@dataclass(frozen=True)
class PositionedFragment:
    """
    A run of text as laid out on one page.

    Coordinates are page-local with the origin at the top-left corner
    (pdfplumber's convention): `y` is the distance from the top of the page
    to the top of the run.
    """

    text: str
    x: float
    y: float
    width: float
    height: float
    page_index: int

    @property
    def right(self) -> float:
        return self.x + self.width


class PiiReason(str, Enum):
    ACCOUNT_NUMBER = "account_number"
    EMAIL = "email"
    PHONE = "phone"
    CARD_NUMBER = "card_number"
    CUSTOM_WORD = "custom_word"
    NAME_LABEL = "name_label"


@dataclass(frozen=True)
class PiiMatch:
    fragment: PositionedFragment
    reason: PiiReason

    @property
    def page_index(self) -> int:
        return self.fragment.page_index


@dataclass
class ExtractedLayout:
    fragments: List[PositionedFragment] = field(default_factory=list)
    page_count: int = 0
    page_heights: List[float] = field(default_factory=list)
    page_widths: List[float] = field(default_factory=list)


@dataclass(frozen=True)
class PreparedDocument:
    """
    Numbered, whitespace-normalized statement text ready for the model.

    Line numbers are dense and 1-based across the whole document; chunking
    never renumbers them.
    """

    lines: Tuple[Tuple[int, str], ...] = ()

    @property
    def text(self) -> str:
        return "\n".join(f"{number}. {line}" for number, line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def content_hash(self) -> str:
        return hashlib.sha256(self.text.encode("utf-8")).hexdigest()[:12]

    def __len__(self) -> int:
        return len(self.text)
