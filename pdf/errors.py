from __future__ import annotations

from typing import Optional


class StatementPipelineError(Exception):
    """Base class for failures surfaced to callers of the statement pipeline."""


class DocumentLoadError(StatementPipelineError):
    MESSAGES = {
        "password_protected": "This PDF is password-protected. Please provide the correct password and try again.",
        "incorrect_password": "Incorrect password for this PDF.",
        "corrupted": "Could not read this PDF. The file appears to be corrupted or is not a PDF.",
        "unreadable": "Could not extract text from PDF. The file may use an unsupported format.",
        "no_text": "Could not extract text from PDF. Scanned statements without a text layer are not supported.",
        "empty": "Uploaded file is empty.",
    }

    def __init__(self, reason: str, detail: Optional[str] = None) -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(self.MESSAGES.get(reason, self.MESSAGES["unreadable"]))


class DocumentTooLargeError(StatementPipelineError):
    def __init__(self, size_bytes: int, max_bytes: int) -> None:
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes
        max_mb = max_bytes // (1024 * 1024)
        super().__init__(f"File too large: {size_bytes} bytes exceeds the {max_mb} MB limit")


class RedactionDegradedWarning(UserWarning):
    """Visual redaction was skipped; text extraction continued without it."""


class RedactionRequiredError(StatementPipelineError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"PII redaction could not be applied ({reason}) and is required by policy")


class ExtractionParseError(StatementPipelineError):
    def __init__(self, message: str, chunk_index: int = 0) -> None:
        self.chunk_index = chunk_index
        super().__init__(f"{message} (chunk {chunk_index})")


class ExternalCallError(StatementPipelineError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class PolicyDisabledError(StatementPipelineError):
    def __init__(self, message: str = "External AI calls are disabled by policy") -> None:
        super().__init__(message)


class RateLimitExceededError(StatementPipelineError):
    def __init__(self, key: str, limit: int, window_seconds: int) -> None:
        self.key = key
        self.limit = limit
        self.window_seconds = window_seconds
        super().__init__(f"Rate limit exceeded: {limit} requests per {window_seconds}s")
