from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Extraction model (any OpenAI-compatible chat completions endpoint)
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    EXTRACTION_MODEL: str = "gpt-4o-mini"
    EXTRACTION_TIMEOUT_SECONDS: float = 45.0

    # Upload and chunking limits
    MAX_UPLOAD_MB: int = 15
    MAX_CHUNK_CHARS: int = 9000
    SINGLE_CALL_MAX_CHARS: int = 20000

    # Redaction
    AI_EXTRA_REDACT_WORDS: str = ""
    # What to send when the document cannot be edited for visual redaction:
    # "unredacted" keeps the original behaviour, "text_only" still substitutes
    # [REDACTED] in the text, "refuse" stops before any external call.
    REDACTION_FALLBACK: Literal["unredacted", "text_only", "refuse"] = "unredacted"

    # Feature flags
    AI_DISABLE_EXTERNAL: bool = False
    LOCAL_PARSER_FALLBACK: bool = False
    DEBUG_AI_PARSE: bool = False

    # Rate limiting
    RATE_LIMIT_MAX_REQUESTS: int = 30
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    REDIS_URL: str | None = None

    CORS_ORIGINS: str = "*"

    @property
    def extra_redact_words(self) -> List[str]:
        return [w.strip() for w in self.AI_EXTRA_REDACT_WORDS.split(",") if w.strip()]

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_MB * 1024 * 1024

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()
