from __future__ import annotations

import argparse
import asyncio
import json
import os
from typing import Any, Dict, List, Optional

from pdf.errors import StatementPipelineError
from pdf.pdf_pipeline.extractor import can_extract_text
from pdf.pdf_pipeline.orchestrator import PipelineOptions, StatementPipeline
from pdf.pdf_pipeline.redactor import can_edit_for_redaction
from settings.config import settings
from settings.logging_config import configure_logging


async def _run(paths: List[str], options: PipelineOptions, pipeline: StatementPipeline) -> None:
    for path in paths:
        if not os.path.exists(path):
            print(json.dumps({"file": path, "error": "not_found"}))
            continue
        with open(path, "rb") as f:
            content = f.read()
        try:
            result = await pipeline.process_pdf(content, options)
        except StatementPipelineError as e:
            print(json.dumps({"file": path, "error": str(e), "error_type": type(e).__name__}))
            continue
        summary: Dict[str, Any] = {
            "file": path,
            "document_id": result.document_id,
            "mode": result.mode,
            "chunks": result.chunk_count,
            "redaction_skipped": result.redaction_skipped,
        }
        if result.preview is not None:
            summary["preview"] = result.preview.model_dump()
        else:
            summary["transactions"] = [t.model_dump(exclude_none=True) for t in result.transactions]
        print(json.dumps(summary, ensure_ascii=False))


def _check(paths: List[str], password: Optional[str]) -> None:
    # both loading paths the pipeline relies on, without calling the model
    for path in paths:
        if not os.path.exists(path):
            print(json.dumps({"file": path, "error": "not_found"}))
            continue
        with open(path, "rb") as f:
            content = f.read()
        print(json.dumps({
            "file": path,
            "text_extractable": can_extract_text(content, password),
            "editable_for_redaction": can_edit_for_redaction(content, password),
        }))


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Extract transactions from PDF bank statements")
    parser.add_argument("paths", nargs="+", help="PDF file paths")
    parser.add_argument("--preview", action="store_true", help="Print the prepared text summary instead of calling the model")
    parser.add_argument("--local", action="store_true", help="Use the offline heuristic parser")
    parser.add_argument("--year", type=int, default=None, help="Statement year for dates printed without one")
    parser.add_argument("--redact-word", action="append", default=[], help="Extra word to redact (repeatable)")
    parser.add_argument("--password", default=None, help="Password for encrypted PDFs")
    parser.add_argument("--check", action="store_true", help="Only report whether each file can be read and redacted")
    args = parser.parse_args(argv)
    configure_logging(debug_pipeline=settings.DEBUG_AI_PARSE)

    if args.check:
        _check(args.paths, args.password)
        return

    options = PipelineOptions(
        extra_redact_words=args.redact_word,
        preview=args.preview,
        password=args.password,
        engine="local" if args.local else "model",
        statement_year=args.year,
    )
    asyncio.run(_run(args.paths, options, StatementPipeline(settings)))


if __name__ == "__main__":
    main()
