from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from dotenv import load_dotenv

# Load .env file into os.environ BEFORE pydantic reads it
# This ensures ALL environment variables are available to both:
# - pydantic-settings (reads from os.environ)
# - Langfuse SDK (reads from os.environ)
load_dotenv()


class Settings(BaseSettings):
    # LLM Configuration
    LLM_PROVIDER: str = "openrouter"
    LLM_MODEL: str = "openai/gpt-4.1-nano"

    # Model used for intake artifacts (job descriptions, interview templates, template drafts)
    INTAKE_GENERATION_MODEL: str = "openai/gpt-4.1-mini"

    # OpenRouter
    OPENROUTER_API_KEY: Optional[str] = None

    # Gemini
    GEMINI_API_KEY: Optional[str] = None

    # Generation budgets
    JOB_DESCRIPTION_MAX_TOKENS: int = 3500
    INTERVIEW_TEMPLATE_MAX_TOKENS: int = 3000
    TEMPLATE_DRAFT_MAX_TOKENS: int = 3000
    GENERATION_TEMPERATURE: float = 0.7
    GENERATION_TIMEOUT_SECONDS: float = 60.0  # per attempt; a timed-out attempt still counts
    GENERATION_BACKOFF_SECONDS: float = 1.0   # doubled after every failed attempt
    GENERATION_LOCK_TTL_SECONDS: int = 600    # in-flight guard older than this is taken over

    # Optional app/server/database fields (in .env)
    DATABASE_URL: Optional[str] = None
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 8000
    ALLOWED_ORIGINS: str = "*"

    # API Security
    API_SECRET_KEY: Optional[str] = None

    # Mail (calendar invitations). Without MAIL_SERVER invitations are logged, not sent.
    MAIL_SERVER: Optional[str] = None
    MAIL_PORT: int = 587
    MAIL_USE_TLS: bool = True
    MAIL_USERNAME: Optional[str] = None
    MAIL_PASSWORD: Optional[str] = None
    MAIL_DEFAULT_SENDER: str = "intake@localhost"
    MAIL_TIMEOUT_SECONDS: float = 20.0

    # Langfuse Observability
    LANGFUSE_PUBLIC_KEY: Optional[str] = None
    LANGFUSE_SECRET_KEY: Optional[str] = None
    LANGFUSE_HOST: str = "https://cloud.langfuse.com"
    LANGFUSE_ENABLED: bool = False

    LOG_LEVEL: str = "INFO"

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",  # ignore unknown env vars instead of raising errors
    )


settings = Settings()
