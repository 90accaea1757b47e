"""Interview orchestrator configuration via pydantic-settings."""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # FastAPI server
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # Provider selection
    llm_provider: Literal["openai", "local", "bedrock"] = "openai"
    llm_timeout_secs: float = 60.0

    # Hosted API (OpenAI)
    openai_api_key: str = ""
    openai_model: str = "gpt-4"

    # Self-hosted OpenAI-compatible endpoint
    local_llm_base_url: str = ""
    local_llm_api_key: str = ""
    local_llm_model: str = "gpt-oss20B"

    # AWS Bedrock
    aws_region: str = ""
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_bearer_token_bedrock: str = ""
    bedrock_model_id: str = ""

    # Language templates are authored in
    source_language: str = "en"

    # Report aggregation sampling caps
    report_max_sessions: int = 10
    report_max_messages: int = 30
    report_max_chars: int = 2000
    report_translate_concurrency: int = 3

    # Storage
    db_path: Path = Path("data") / "interviews.db"

    @property
    def model_name(self) -> str:
        """Model identifier for the selected provider."""
        if self.llm_provider == "bedrock":
            if self.bedrock_model_id:
                return self.bedrock_model_id
            if self.aws_bearer_token_bedrock:
                return "eu.anthropic.claude-sonnet-4-5-20250929-v1:0"
            return "anthropic.claude-3-5-sonnet-20241022-v2:0"
        if self.llm_provider == "local":
            return self.local_llm_model or "gpt-oss20B"
        return self.openai_model or "gpt-4"


settings = Settings()
