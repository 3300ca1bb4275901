from typing import Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from upload_service.upload_route import router as statements_router, statement_error_handler
import logging
from pdf.errors import StatementPipelineError
from pdf.pdf_pipeline.orchestrator import StatementPipeline
from settings.config import Settings, settings as default_settings
from settings.logging_config import configure_logging
from settings.rate_limit import RateLimitStore, build_rate_limit_store

logger = logging.getLogger(__name__)


def get_app(
    settings: Optional[Settings] = None,
    pipeline: Optional[StatementPipeline] = None,
    rate_limit_store: Optional[RateLimitStore] = None,
) -> FastAPI:
    settings = settings or default_settings
    configure_logging(debug_pipeline=settings.DEBUG_AI_PARSE)
    logger.info("Starting statement ingest API")
    app = FastAPI(title="Statement Ingest API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.pipeline = pipeline or StatementPipeline(settings)
    app.state.rate_limit_store = rate_limit_store or build_rate_limit_store(settings)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Closing rate limit store")
        await app.state.rate_limit_store.close()

    app.add_exception_handler(StatementPipelineError, statement_error_handler)
    app.include_router(statements_router)
    logger.info("Routers initialized successfully")

    # Health
    @app.get("/health")
    async def health_check() -> Dict[str, str]:
        return {"status": "ok"}

    logger.info("API started")
    return app


# ASGI app instance
app = get_app()
