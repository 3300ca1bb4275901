from __future__ import annotations

from typing import Dict, List, Literal, Optional, Type

from fastapi import APIRouter, Depends, File, Form, Header, Query, Request, UploadFile, status
from fastapi.responses import JSONResponse

from pdf.errors import (
    DocumentLoadError,
    DocumentTooLargeError,
    ExternalCallError,
    ExtractionParseError,
    PolicyDisabledError,
    RateLimitExceededError,
    RedactionRequiredError,
    StatementPipelineError,
)
from pdf.json_logger import get_json_logger
from pdf.pdf_pipeline.orchestrator import PipelineOptions, PipelineResult, StatementPipeline
from schemas.transaction import ParseStatementResponse
from settings.deps import enforce_rate_limit, get_pipeline

logger = get_json_logger("statement_routes")

router = APIRouter(prefix="/statements", tags=["statements"])

STATUS_BY_ERROR: Dict[Type[StatementPipelineError], int] = {
    DocumentTooLargeError: status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    DocumentLoadError: status.HTTP_400_BAD_REQUEST,
    RedactionRequiredError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    PolicyDisabledError: status.HTTP_503_SERVICE_UNAVAILABLE,
    ExternalCallError: status.HTTP_502_BAD_GATEWAY,
    ExtractionParseError: status.HTTP_502_BAD_GATEWAY,
    RateLimitExceededError: status.HTTP_429_TOO_MANY_REQUESTS,
}


def status_for(exc: StatementPipelineError) -> int:
    for err_type, code in STATUS_BY_ERROR.items():
        if isinstance(exc, err_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def statement_error_handler(request: Request, exc: StatementPipelineError) -> JSONResponse:
    code = status_for(exc)
    logger.warning("statement_request_failed", extra={"extra": {
        "path": request.url.path,
        "status": code,
        "error_type": type(exc).__name__,
    }})
    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(exc.window_seconds)}
    return JSONResponse(status_code=code, content={"success": False, "error": str(exc)}, headers=headers)


def _usage(result: PipelineResult) -> Dict[str, object]:
    if result.preview is not None:
        return result.preview.model_dump()
    return {
        "document_id": result.document_id,
        "mode": result.mode,
        "chunks": result.chunk_count,
        "redaction_skipped": result.redaction_skipped,
    }


def _split_words(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [w.strip() for w in raw.split(",") if w.strip()]


@router.post("/parse", response_model=ParseStatementResponse)
async def parse_statement(
    file: Optional[UploadFile] = File(None),
    text: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    redact_words: Optional[str] = Form(None, description="Comma-separated words to redact for this request"),
    x_pdf_password: Optional[str] = Header(default=None),
    preview: bool = Query(False),
    engine: Literal["model", "local"] = Query("model"),
    year: Optional[int] = Query(None, ge=1990, le=2100),
    pipeline: StatementPipeline = Depends(get_pipeline),
    caller: str = Depends(enforce_rate_limit),
):
    options = PipelineOptions(
        extra_redact_words=_split_words(redact_words),
        preview=preview,
        password=password or x_pdf_password,
        engine=engine,
        statement_year=year,
    )

    if file is not None and file.filename:
        content = await file.read()
        logger.info("statement_upload", extra={"extra": {"caller": caller, "size": len(content), "preview": preview, "engine": engine}})
        result = await pipeline.process_pdf(content, options)
    elif text and text.strip():
        logger.info("statement_text", extra={"extra": {"caller": caller, "chars": len(text), "preview": preview, "engine": engine}})
        result = await pipeline.process_text(text, options)
    else:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": "No file or text provided"},
        )

    return ParseStatementResponse(success=True, expenses=result.transactions, usage=_usage(result))
