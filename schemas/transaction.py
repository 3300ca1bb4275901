from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class Transaction(BaseModel):
    amount: float
    currency: str = Field(default="USD", min_length=1, max_length=8)
    merchant: Optional[str] = None
    payment_method: Optional[str] = None
    note: Optional[str] = None
    occurred_on: str
    category: Optional[str] = None
    line_index: Optional[int] = Field(default=None, ge=1)

    @field_validator("amount")
    @classmethod
    def finite_amount(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("amount must be finite")
        return v

    @field_validator("currency")
    @classmethod
    def uppercase_currency(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("merchant", "payment_method", "note", "category")
    @classmethod
    def empty_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v2 = v.strip()
        return v2 if v2 else None


class ExtractionPayload(BaseModel):
    """Top-level object the extraction model must return."""

    expenses: List[Dict[str, Any]]


class PreviewUsage(BaseModel):
    prompt_hash: str
    length: int
    head: str
    tail: Optional[str] = None


class ParseStatementResponse(BaseModel):
    success: bool = True
    expenses: List[Transaction] = Field(default_factory=list)
    usage: Dict[str, Any] = Field(default_factory=dict)
