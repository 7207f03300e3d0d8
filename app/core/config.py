"""Configuration management for the Chat Export Engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # Oracle providers
    OPENAI_API_KEY: str = Field(default="", description="OpenAI API key")
    ANTHROPIC_API_KEY: str = Field(default="", description="Anthropic API key")
    ORACLE_PROVIDER: str = Field(
        default="openai", description="Text-generation provider: openai or anthropic"
    )
    ORACLE_FAST_MODEL: str = Field(
        default="gpt-4o-mini", description="Model for classification and titles"
    )
    ORACLE_STANDARD_MODEL: str = Field(
        default="gpt-4o", description="Model for planning and rewriting"
    )
    ORACLE_TIMEOUT_SECONDS: float = Field(
        default=60.0, description="Per-call deadline for the text-generation oracle"
    )

    # Environment
    EXPORT_ENGINE_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Artifact storage
    UPLOADS_DIR: str = Field(default="uploads", description="Directory for generated artifacts")
    PUBLIC_BASE_URL: str = Field(
        default="", description="Public origin prefixed to download links (empty = relative)"
    )
    MAX_UPLOAD_BYTES: int = Field(
        default=20_000_000, description="Max size of a document submitted for modification"
    )

    # Extraction and planning limits
    MAX_EXTRACT_CHARS: int = Field(default=200_000, description="Max extracted text characters")
    MAX_PLAN_INPUT_CHARS: int = Field(
        default=12_000, description="Max document characters sent to the planner"
    )
    SESSION_CONTEXT_WINDOW: int = Field(
        default=10, description="Recent conversation messages kept as planner context"
    )

    # Rendering
    PDF_ENGINE: str = Field(default="xelatex", description="pandoc --pdf-engine value")
    IMAGE_RENDER_WIDTH: int = Field(default=1200, description="Viewport width for image exports")
    OCR_LANGUAGE: str = Field(default="eng", description="Tesseract language for image OCR")
    DEFAULT_EXPORT_TITLE: str = Field(
        default="Document", description="Title used when none can be derived"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance loaded from environment

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
