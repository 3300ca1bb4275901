from __future__ import annotations

import asyncio
import hashlib
from dataclasses import dataclass, field
from typing import List, Literal, Optional, Sequence

from pdf.errors import DocumentLoadError, DocumentTooLargeError, PolicyDisabledError, RedactionRequiredError
from pdf.json_logger import get_json_logger, set_debug
from pdf.models import PreparedDocument
from pdf.pdf_pipeline.chunking import chunk_text
from pdf.pdf_pipeline.dedup import dedupe_candidates
from pdf.pdf_pipeline.extractor import extract_layout
from pdf.pdf_pipeline.local_parser import parse_local_expenses
from pdf.pdf_pipeline.normalizer import Candidate, normalize_candidates
from pdf.pdf_pipeline.pii import PiiDetector
from pdf.pdf_pipeline.redactor import VisualRedactor
from pdf.pdf_pipeline.tokenization import build_prepared_document, prepare_statement_text
from schemas.transaction import PreviewUsage, Transaction
from services.llm_extraction import ExtractionClient
from settings.config import Settings


logger = get_json_logger("pdf_pipeline")

PREVIEW_SAMPLE_CHARS = 400

Engine = Literal["model", "local"]


@dataclass
class PipelineOptions:
    extra_redact_words: Sequence[str] = ()
    preview: bool = False
    password: Optional[str] = None
    engine: Engine = "model"
    statement_year: Optional[int] = None


@dataclass
class PipelineResult:
    document_id: str
    transactions: List[Transaction] = field(default_factory=list)
    mode: str = "single"
    chunk_count: int = 0
    redaction_skipped: bool = False
    redacted_pdf: Optional[bytes] = None
    preview: Optional[PreviewUsage] = None


def build_preview(prepared: PreparedDocument) -> PreviewUsage:
    text = prepared.text
    return PreviewUsage(
        prompt_hash=prepared.content_hash(),
        length=len(text),
        head=text[:PREVIEW_SAMPLE_CHARS],
        tail=text[-PREVIEW_SAMPLE_CHARS:] if len(text) > 2 * PREVIEW_SAMPLE_CHARS else None,
    )


class StatementPipeline:
    """
    Turns an uploaded statement into normalized, deduplicated transactions.

    Stages: layout extraction, PII detection, visual redaction, text
    reconstruction, then either one extraction call or sequential per-chunk
    calls followed by cross-chunk deduplication. Request-scoped: nothing
    carries over between calls to `process_pdf`.
    """

    def __init__(
        self,
        settings: Settings,
        extraction_client: Optional[ExtractionClient] = None,
        redactor: Optional[VisualRedactor] = None,
    ) -> None:
        self.settings = settings
        self.extraction_client = extraction_client or ExtractionClient(settings)
        self.redactor = redactor or VisualRedactor()
        set_debug(logger, settings.DEBUG_AI_PARSE)

    def _detector(self, options: PipelineOptions) -> PiiDetector:
        return PiiDetector([*self.settings.extra_redact_words, *options.extra_redact_words])

    async def process_pdf(self, pdf_bytes: bytes, options: Optional[PipelineOptions] = None) -> PipelineResult:
        options = options or PipelineOptions()
        if len(pdf_bytes) > self.settings.max_upload_bytes:
            raise DocumentTooLargeError(len(pdf_bytes), self.settings.max_upload_bytes)
        if not pdf_bytes:
            raise DocumentLoadError("empty")

        document_id = hashlib.sha256(pdf_bytes).hexdigest()
        layout = await asyncio.to_thread(extract_layout, pdf_bytes, options.password)
        matches = self._detector(options).detect(layout.fragments)
        redaction = await asyncio.to_thread(self.redactor.redact, pdf_bytes, matches, layout, options.password)

        text_matches = matches
        if not redaction.applied:
            policy = self.settings.REDACTION_FALLBACK
            logger.warning("redaction_skipped", extra={"extra": {"document_id": document_id[:12], "policy": policy, "reason": redaction.skipped_reason}})
            if policy == "refuse":
                raise RedactionRequiredError(redaction.skipped_reason or "unknown")
            if policy == "unredacted":
                text_matches = []

        prepared = build_prepared_document(layout.fragments, text_matches)
        logger.info("document_prepared", extra={"extra": {
            "document_id": document_id[:12],
            "pages": layout.page_count,
            "pii_matches": len(matches),
            "lines": len(prepared.lines),
            "chars": len(prepared),
        }})
        if prepared.is_empty:
            raise DocumentLoadError("no_text")

        result = await self._run(prepared, options, document_id)
        result.redaction_skipped = not redaction.applied
        result.redacted_pdf = redaction.pdf_bytes
        return result

    async def process_text(self, text: str, options: Optional[PipelineOptions] = None) -> PipelineResult:
        """Same flow for text that was extracted on the client; PII is masked in the text itself."""
        options = options or PipelineOptions()
        masked = self._detector(options).mask_text(text)
        prepared = prepare_statement_text(masked)
        if prepared.is_empty:
            raise DocumentLoadError("no_text")
        document_id = hashlib.sha256(text.encode("utf-8")).hexdigest()
        return await self._run(prepared, options, document_id)

    async def _run(self, prepared: PreparedDocument, options: PipelineOptions, document_id: str) -> PipelineResult:
        if options.preview:
            logger.debug("preview_requested", extra={"extra": {"prompt_hash": prepared.content_hash()}})
            return PipelineResult(document_id=document_id, mode="preview", preview=build_preview(prepared))

        use_local = options.engine == "local"
        if not use_local and self.settings.AI_DISABLE_EXTERNAL:
            if not self.settings.LOCAL_PARSER_FALLBACK:
                raise PolicyDisabledError()
            use_local = True
        if use_local:
            txns = parse_local_expenses(prepared.text, year=options.statement_year)
            return PipelineResult(document_id=document_id, transactions=txns, mode="local")

        return await self._extract(prepared, document_id)

    async def _extract(self, prepared: PreparedDocument, document_id: str) -> PipelineResult:
        text = prepared.text
        if len(text) <= self.settings.SINGLE_CALL_MAX_CHARS:
            raw = await self.extraction_client.extract(text, chunk_index=0)
            candidates = normalize_candidates(raw, chunk_index=0)
            logger.info("extraction_complete", extra={"extra": {"document_id": document_id[:12], "mode": "single", "transactions": len(candidates)}})
            return PipelineResult(
                document_id=document_id,
                transactions=[c.transaction for c in candidates],
                mode="single",
                chunk_count=1,
            )

        chunks = chunk_text(text, self.settings.MAX_CHUNK_CHARS)
        all_candidates: List[Candidate] = []
        # sequential on purpose: the deduplicator prefers later chunks on ties
        for idx, chunk in enumerate(chunks, start=1):
            raw = await self.extraction_client.extract(chunk, chunk_index=idx)
            all_candidates.extend(normalize_candidates(raw, chunk_index=idx))
        merged = dedupe_candidates(all_candidates)
        logger.info("extraction_complete", extra={"extra": {
            "document_id": document_id[:12],
            "mode": "chunked",
            "chunks": len(chunks),
            "candidates": len(all_candidates),
            "transactions": len(merged),
        }})
        return PipelineResult(
            document_id=document_id,
            transactions=[c.transaction for c in merged],
            mode="chunked",
            chunk_count=len(chunks),
        )
