from __future__ import annotations

from fastapi import Depends, Header, Request

from pdf.errors import RateLimitExceededError
from pdf.pdf_pipeline.orchestrator import StatementPipeline
from settings.config import Settings
from settings.rate_limit import RateLimitStore


def get_settings(request: Request) -> Settings:
	return request.app.state.settings


def get_pipeline(request: Request) -> StatementPipeline:
	return request.app.state.pipeline


def get_rate_limit_store(request: Request) -> RateLimitStore:
	return request.app.state.rate_limit_store


async def get_caller_key(request: Request, x_user_id: str | None = Header(default=None)) -> str:
	"""
	Resolve the key requests are counted against.
	Prefer `X-User-ID` from the upstream gateway, fall back to the client address.
	"""
	if x_user_id:
		return f"user:{x_user_id}"
	host = request.client.host if request.client else "unknown"
	return f"ip:{host}"


async def enforce_rate_limit(
	caller: str = Depends(get_caller_key),
	store: RateLimitStore = Depends(get_rate_limit_store),
	settings: Settings = Depends(get_settings),
) -> str:
	limit = settings.RATE_LIMIT_MAX_REQUESTS
	window = settings.RATE_LIMIT_WINDOW_SECONDS
	if await store.hit(caller, limit, window):
		raise RateLimitExceededError(caller, limit, window)
	return caller
