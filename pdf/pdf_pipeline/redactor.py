from __future__ import annotations

import warnings
from collections import defaultdict
from dataclasses import dataclass
from io import BytesIO
from typing import Dict, List, Optional, Sequence, Tuple

from pypdf import PasswordType, PdfReader, PdfWriter
from pypdf.generic import ContentStream, FloatObject

from pdf.errors import RedactionDegradedWarning
from pdf.json_logger import get_json_logger
from pdf.models import ExtractedLayout, PiiMatch


logger = get_json_logger("pdf_pipeline.redactor")

REDACTION_PADDING = 2.0


@dataclass
class RedactionResult:
    pdf_bytes: Optional[bytes]
    applied: bool
    boxes_drawn: int = 0
    skipped_reason: Optional[str] = None


def _open_editable(pdf_bytes: bytes, password: Optional[str]) -> PdfReader:
    reader = PdfReader(BytesIO(pdf_bytes), strict=False)
    if reader.is_encrypted:
        if reader.decrypt(password or "") == PasswordType.NOT_DECRYPTED:
            raise PermissionError("document could not be decrypted for editing")
    # force the page tree to load so structural damage surfaces here
    _ = len(reader.pages)
    return reader


def can_edit_for_redaction(pdf_bytes: bytes, password: Optional[str] = None) -> bool:
    try:
        _open_editable(pdf_bytes, password)
    except Exception:
        return False
    return True


def redaction_boxes(matches: Sequence[PiiMatch], page_height: float, padding: float = REDACTION_PADDING) -> List[Tuple[float, float, float, float]]:
    """
    Convert top-down fragment boxes into bottom-up PDF rectangles (x, y, w, h).
    """
    boxes: List[Tuple[float, float, float, float]] = []
    for match in matches:
        f = match.fragment
        pdf_y = page_height - f.y - f.height
        boxes.append((f.x - padding, pdf_y - padding, f.width + 2 * padding, f.height + 2 * padding))
    return boxes


class VisualRedactor:
    """
    Paints opaque rectangles over PII fragments and re-serializes the PDF.

    Uses pypdf, independently of the layout parser, because some bank-issued
    documents read fine for text but cannot be rebuilt. In that case the
    redaction is skipped with a RedactionDegradedWarning instead of failing.
    """

    def __init__(self, padding: float = REDACTION_PADDING) -> None:
        self.padding = padding

    def redact(
        self,
        pdf_bytes: bytes,
        matches: Sequence[PiiMatch],
        layout: ExtractedLayout,
        password: Optional[str] = None,
    ) -> RedactionResult:
        try:
            reader = _open_editable(pdf_bytes, password)
        except Exception as exc:
            return self._degraded("load_failed", exc)

        by_page: Dict[int, List[PiiMatch]] = defaultdict(list)
        for m in matches:
            by_page[m.page_index].append(m)

        try:
            writer = PdfWriter(clone_from=reader)
            drawn = 0
            for page_index, page_matches in sorted(by_page.items()):
                if page_index >= len(writer.pages):
                    continue
                page = writer.pages[page_index]
                if page_index < len(layout.page_heights):
                    page_height = layout.page_heights[page_index]
                else:
                    page_height = float(page.mediabox.height)
                boxes = redaction_boxes(page_matches, page_height, self.padding)
                self._paint(writer, page, boxes)
                drawn += len(boxes)
            out = BytesIO()
            writer.write(out)
        except Exception as exc:
            return self._degraded("write_failed", exc)

        logger.info("redaction_applied", extra={"extra": {"boxes": drawn, "pages": len(by_page)}})
        return RedactionResult(pdf_bytes=out.getvalue(), applied=True, boxes_drawn=drawn)

    def _paint(self, writer: PdfWriter, page, boxes: List[Tuple[float, float, float, float]]) -> None:
        origin_x = float(page.mediabox.left)
        origin_y = float(page.mediabox.bottom)
        content = page.get_contents()
        if content is None:
            content = ContentStream(None, writer)
        operations = list(content.operations)
        # isolate the original graphics state so our fill uses the default CTM
        operations.insert(0, ([], b"q"))
        operations.append(([], b"Q"))
        operations.append(([], b"q"))
        operations.append(([FloatObject(0), FloatObject(0), FloatObject(0)], b"rg"))
        for x, y, w, h in boxes:
            operations.append((
                [FloatObject(round(x + origin_x, 2)), FloatObject(round(y + origin_y, 2)),
                 FloatObject(round(w, 2)), FloatObject(round(h, 2))],
                b"re",
            ))
        operations.append(([], b"f"))
        operations.append(([], b"Q"))
        content.operations = operations
        page.replace_contents(content)

    def _degraded(self, reason: str, exc: Exception) -> RedactionResult:
        message = f"visual redaction skipped ({reason}): {type(exc).__name__}"
        warnings.warn(message, RedactionDegradedWarning, stacklevel=3)
        logger.warning("redaction_degraded", extra={"extra": {"reason": reason, "error": type(exc).__name__}})
        return RedactionResult(pdf_bytes=None, applied=False, skipped_reason=reason)
