from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from pdf.errors import ExternalCallError, ExtractionParseError
from pdf.json_logger import get_json_logger
from schemas.transaction import ExtractionPayload
from services.extraction_prompts import SYSTEM_PROMPT, build_user_prompt, response_format
from settings.config import Settings


logger = get_json_logger("extraction_client")


def _client(settings: Settings) -> AsyncOpenAI:
    if not settings.OPENAI_API_KEY:
        raise ExternalCallError("OPENAI_API_KEY not configured")
    return AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_BASE_URL or None,
        timeout=settings.EXTRACTION_TIMEOUT_SECONDS,
        max_retries=0,
    )


def parse_model_content(content: Any, chunk_index: int = 0) -> List[Dict[str, Any]]:
    if isinstance(content, str):
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ExtractionParseError("Model returned non-JSON output", chunk_index) from exc
    else:
        data = content
    try:
        payload = ExtractionPayload.model_validate(data)
    except ValidationError as exc:
        raise ExtractionParseError("Model output does not match the expenses schema", chunk_index) from exc
    return payload.expenses


class ExtractionClient:
    """
    Sends numbered statement text to a hosted structured-extraction model.

    Any OpenAI-compatible chat-completions endpoint works (set OPENAI_BASE_URL).
    Calls are not retried here; failures propagate so the caller can tell
    "no transactions" apart from "extraction failed".
    """

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None) -> None:
        self.settings = settings
        self.model = settings.EXTRACTION_MODEL
        self.timeout = settings.EXTRACTION_TIMEOUT_SECONDS
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = _client(self.settings)
        return self._client

    async def extract(self, numbered_text: str, chunk_index: int = 0) -> List[Dict[str, Any]]:
        prompt_hash = hashlib.sha256(numbered_text.encode("utf-8")).hexdigest()[:12]
        logger.debug("extraction_call", extra={"extra": {"chunk": chunk_index, "prompt_hash": prompt_hash, "chars": len(numbered_text)}})
        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_prompt(numbered_text)},
                ],
                temperature=0,
                response_format=response_format(),
                timeout=self.timeout,
            )
        except openai.APIStatusError as exc:
            raise ExternalCallError(f"Extraction API error: {exc.status_code}", status_code=exc.status_code) from exc
        except openai.APITimeoutError as exc:
            raise ExternalCallError("Extraction API call timed out") from exc
        except openai.APIError as exc:
            raise ExternalCallError(f"Extraction API call failed: {exc.__class__.__name__}") from exc

        content = resp.choices[0].message.content if resp.choices else None
        if content is None:
            raise ExtractionParseError("Model returned an empty response", chunk_index)
        expenses = parse_model_content(content, chunk_index)
        logger.debug("extraction_result", extra={"extra": {"chunk": chunk_index, "expenses": len(expenses)}})
        return expenses
