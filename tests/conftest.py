import os
import sys

def pytest_sessionstart(session):
    # Ensure project root is on sys.path so `pdf` and `settings` resolve
    project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


# --- Test utilities: tiny PDF writer and fake extraction client ---
from io import BytesIO
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pytest

PAGE_WIDTH = 612
PAGE_HEIGHT = 792
FONT_SIZE = 10

# (x, top, text); `top` is measured from the top edge like pdfplumber reports it
TextRun = Tuple[float, float, str]


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def build_pdf(pages: Sequence[Sequence[TextRun]]) -> bytes:
    """Write a minimal uncompressed PDF with Helvetica text runs at fixed positions."""
    objects: List[bytes] = []
    n_pages = len(pages)
    font_id = 3 + 2 * n_pages
    page_ids = [3 + 2 * i for i in range(n_pages)]

    objects.append(b"<< /Type /Catalog /Pages 2 0 R >>")
    kids = " ".join(f"{pid} 0 R" for pid in page_ids)
    objects.append(f"<< /Type /Pages /Kids [{kids}] /Count {n_pages} >>".encode())
    for i, runs in enumerate(pages):
        ops = []
        for x, top, text in runs:
            baseline = PAGE_HEIGHT - top - FONT_SIZE
            ops.append(f"BT /F1 {FONT_SIZE} Tf 1 0 0 1 {x} {baseline} Tm ({_escape(text)}) Tj ET")
        stream = "\n".join(ops).encode("latin-1")
        objects.append(
            f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 {PAGE_WIDTH} {PAGE_HEIGHT}] "
            f"/Resources << /Font << /F1 {font_id} 0 R >> >> /Contents {page_ids[i] + 1} 0 R >>".encode()
        )
        objects.append(b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream")
    objects.append(b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /WinAnsiEncoding >>")

    out = BytesIO()
    out.write(b"%PDF-1.4\n")
    offsets = []
    for num, body in enumerate(objects, start=1):
        offsets.append(out.tell())
        out.write(f"{num} 0 obj\n".encode() + body + b"\nendobj\n")
    xref_at = out.tell()
    out.write(f"xref\n0 {len(objects) + 1}\n".encode())
    out.write(b"0000000000 65535 f \n")
    for off in offsets:
        out.write(f"{off:010d} 00000 n \n".encode())
    out.write(f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_at}\n%%EOF\n".encode())
    return out.getvalue()


def encrypt_pdf(pdf_bytes: bytes, user_password: str) -> bytes:
    from pypdf import PdfReader, PdfWriter

    writer = PdfWriter(clone_from=PdfReader(BytesIO(pdf_bytes)))
    writer.encrypt(user_password=user_password, owner_password=user_password + "-owner", algorithm="RC4-128")
    out = BytesIO()
    writer.write(out)
    return out.getvalue()


STATEMENT_PAGES: List[List[TextRun]] = [
    [
        (50, 40, "First Bank Statement April 2024"),
        (50, 60, "Name: Jane Doe"),
        (50, 80, "Account 12345678"),
        (50, 120, "16 Apr"),
        (130, 120, "Coffee Shop"),
        (400, 120, "4.50"),
        (480, 120, "1,103.38"),
        (50, 140, "17 Apr"),
        (130, 140, "Grocery Mart"),
        (400, 140, "52.10"),
        (480, 140, "1,051.28"),
    ],
    [
        (50, 40, "18 Apr"),
        (130, 40, "Refund Bookstore"),
        (400, 40, "12.00"),
        (480, 40, "1,063.28"),
    ],
]


@pytest.fixture
def statement_pdf() -> bytes:
    return build_pdf(STATEMENT_PAGES)


@pytest.fixture
def pdf_builder() -> Callable[[Sequence[Sequence[TextRun]]], bytes]:
    return build_pdf


@pytest.fixture
def make_settings():
    from settings.config import Settings

    def _make(**overrides: Any) -> Settings:
        values: Dict[str, Any] = {"OPENAI_API_KEY": "test-key"}
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


class FakeExtractionClient:
    """Stands in for ExtractionClient; records every chunk it is asked about."""

    def __init__(self, responder: Optional[Callable[[str, int], List[Dict[str, Any]]]] = None, error: Optional[Exception] = None) -> None:
        self.responder = responder or (lambda text, chunk_index: [])
        self.error = error
        self.calls: List[Tuple[int, str]] = []

    async def extract(self, numbered_text: str, chunk_index: int = 0) -> List[Dict[str, Any]]:
        self.calls.append((chunk_index, numbered_text))
        if self.error is not None:
            raise self.error
        return self.responder(numbered_text, chunk_index)


@pytest.fixture
def fake_extraction_client():
    return FakeExtractionClient


@pytest.fixture
def pdf_encryptor() -> Callable[[bytes, str], bytes]:
    return encrypt_pdf
