from __future__ import annotations

import logging
from logging.config import dictConfig

PIPELINE_LOGGERS = (
	"pdf_pipeline",
	"pdf_pipeline.extractor",
	"pdf_pipeline.redactor",
	"pdf_pipeline.normalizer",
	"extraction_client",
	"statement_routes",
)


def configure_logging(level: int = logging.INFO, debug_pipeline: bool = False) -> None:
	"""
	App-wide logging: JSON lines for our own loggers, plain text for uvicorn.
	`debug_pipeline` (DEBUG_AI_PARSE) lowers only the pipeline loggers to DEBUG.
	"""
	pipeline_level = logging.DEBUG if debug_pipeline else level
	dictConfig(
		{
			"version": 1,
			"disable_existing_loggers": False,
			"formatters": {
				"standard": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
				"json": {"()": "pdf.json_logger.JsonFormatter"},
			},
			"handlers": {
				"console": {
					"class": "logging.StreamHandler",
					"formatter": "standard",
					"level": level,
				},
				"json_stdout": {
					"class": "logging.StreamHandler",
					"formatter": "json",
					"stream": "ext://sys.stdout",
					"level": logging.DEBUG,
				},
			},
			"loggers": {
				"": {"handlers": ["console"], "level": level},
				"uvicorn": {"handlers": ["console"], "level": level, "propagate": False},
				"httpx": {"handlers": ["console"], "level": logging.WARNING, "propagate": False},
				**{
					name: {"handlers": ["json_stdout"], "level": pipeline_level, "propagate": False}
					for name in PIPELINE_LOGGERS
				},
			},
		}
	)
