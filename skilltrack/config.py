import sys
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    api_key: str = "your-openai-api-key-here"
    # Optional OpenAI-compatible endpoint (e.g. https://openrouter.ai/api/v1)
    ai_base_url: str = ""
    model_name: str = "gpt-4o-mini"
    # AI provider: "openai" or "anthropic"
    ai_provider: str = "openai"
    # Anthropic API key (optional, only needed if ai_provider=anthropic)
    anthropic_api_key: str = ""
    # Model overrides per use case (empty = use default model_name)
    recommendation_model: str = ""
    assessment_model: str = ""
    cheap_model: str = ""
    # 1 = a single best-effort call; raise to let tenacity retry transient failures
    ai_max_attempts: int = 1
    ai_temperature: float = 0.7
    ai_max_tokens: int = 2000
    # Database path - can be overridden via DATABASE_PATH env var for Docker
    database_path: str = "skilltrack.db"
    # PostgreSQL connection URL (when set, overrides database_path)
    database_url: str = ""
    # JWT_SECRET must be set via environment variable - no default
    jwt_secret: str = ""
    jwt_expiry_hours: int = 72
    # Environment: "dev" (default) or "prod"
    env: str = "dev"
    # CORS origins for prod (comma-separated)
    cors_origins: str = ""
    # IANA zone used for calendar-day boundaries in streak computation
    timezone: str = "UTC"
    # Recommendation refresh behaviour
    replace_recommendations_on_refresh: bool = True
    dedupe_recommendations: bool = False
    recommendation_limit: int = 10

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def _load_settings() -> Settings:
    """Load settings and validate critical requirements."""
    s = Settings()

    # JWT_SECRET is required - no hardcoded fallback
    if not s.jwt_secret:
        print("ERROR: JWT_SECRET environment variable is required but not set.", file=sys.stderr)
        print("Set JWT_SECRET to a secure random string (at least 32 characters).", file=sys.stderr)
        sys.exit(1)

    if len(s.jwt_secret) < 32:
        print("ERROR: JWT_SECRET must be at least 32 characters.", file=sys.stderr)
        sys.exit(1)

    # API_KEY is required: reject placeholder or empty value
    if not s.api_key or s.api_key == "your-openai-api-key-here":
        print("ERROR: API_KEY environment variable is required but not set.", file=sys.stderr)
        print("Set API_KEY to a valid OpenAI-compatible API key in your .env file.", file=sys.stderr)
        sys.exit(1)

    if s.ai_max_attempts < 1:
        print("ERROR: AI_MAX_ATTEMPTS must be at least 1.", file=sys.stderr)
        sys.exit(1)

    try:
        ZoneInfo(s.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        print(f"ERROR: TIMEZONE \"{s.timezone}\" is not a known IANA time zone.", file=sys.stderr)
        sys.exit(1)

    return s


settings = _load_settings()
