from __future__ import annotations

from io import BytesIO
from typing import Iterator, List, Optional

import pdfplumber
from pdfminer.pdfdocument import PDFPasswordIncorrect
from pdfminer.pdfparser import PDFSyntaxError
from pdfminer.psparser import PSEOF, PSSyntaxError

from pdf.errors import DocumentLoadError
from pdf.json_logger import get_json_logger
from pdf.models import ExtractedLayout, PositionedFragment


logger = get_json_logger("pdf_pipeline.extractor")

WORD_SETTINGS = {
    "keep_blank_chars": True,
    "use_text_flow": True,
    "x_tolerance": 2,
    "y_tolerance": 2,
}


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    # pdfplumber wraps pdfminer errors; look through causes and args as well
    seen = set()
    stack = [exc]
    while stack:
        current = stack.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        for nxt in (current.__cause__, current.__context__, *current.args):
            if isinstance(nxt, BaseException):
                stack.append(nxt)


def classify_load_error(exc: BaseException, password: Optional[str]) -> DocumentLoadError:
    chain = list(_exception_chain(exc))
    if any(isinstance(e, PDFPasswordIncorrect) or "password" in str(e).lower() for e in chain):
        return DocumentLoadError("incorrect_password" if password else "password_protected", detail=type(exc).__name__)
    if any(isinstance(e, (PDFSyntaxError, PSEOF, PSSyntaxError)) for e in chain):
        return DocumentLoadError("corrupted", detail=type(exc).__name__)
    return DocumentLoadError("unreadable", detail=type(exc).__name__)


def extract_layout(pdf_bytes: bytes, password: Optional[str] = None) -> ExtractedLayout:
    """
    Load a PDF with pdfplumber and return its positioned text runs.

    Encrypted documents are opened with the empty user password unless one is
    supplied; owner-password restrictions are ignored since only reading is needed.
    """
    if not pdf_bytes:
        raise DocumentLoadError("empty")

    fragments: List[PositionedFragment] = []
    page_heights: List[float] = []
    page_widths: List[float] = []

    try:
        with pdfplumber.open(BytesIO(pdf_bytes), password=password or "") as pdf:
            for page_index, page in enumerate(pdf.pages):
                page_heights.append(float(page.height))
                page_widths.append(float(page.width))
                words = page.extract_words(**WORD_SETTINGS) or []
                for w in words:
                    text = str(w.get("text") or "")
                    if not text.strip():
                        continue
                    x0 = float(w["x0"])
                    top = float(w["top"])
                    fragments.append(PositionedFragment(
                        text=text,
                        x=x0,
                        y=top,
                        width=float(w["x1"]) - x0,
                        height=float(w["bottom"]) - top,
                        page_index=page_index,
                    ))
    except DocumentLoadError:
        raise
    except Exception as exc:
        error = classify_load_error(exc, password)
        logger.warning("layout_extract_failed", extra={"extra": {"reason": error.reason, "error": type(exc).__name__}})
        raise error from exc

    logger.debug("layout_extracted", extra={"extra": {"pages": len(page_heights), "fragments": len(fragments)}})
    return ExtractedLayout(
        fragments=fragments,
        page_count=len(page_heights),
        page_heights=page_heights,
        page_widths=page_widths,
    )


def can_extract_text(pdf_bytes: bytes, password: Optional[str] = None) -> bool:
    try:
        layout = extract_layout(pdf_bytes, password=password)
    except DocumentLoadError:
        return False
    return bool(layout.fragments)
