from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }

    # Anthropic model access
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_BASE_URL: str | None = Field(default=None, description="Override for the Messages API base URL")
    MODEL_NAME: str = Field(default="claude-sonnet-4-5-20250929")
    MODEL_TIMEOUT_SECONDS: float = Field(default=120.0, description="Per-request timeout for model calls")

    # Token ceilings per agent
    PLANNER_MAX_TOKENS: int = Field(default=2000)
    CODEGEN_MAX_TOKENS: int = Field(default=4000)
    EXPLAIN_MAX_TOKENS: int = Field(default=8000, description="Answer tokens on top of the deliberation budget")
    LINE_EXPLAIN_MAX_TOKENS: int = Field(default=4000)

    # Extended thinking
    DELIBERATION_BUDGET: int = Field(default=10000, description="Thinking budget for full explanations")
    LINE_EXPLAIN_DELIBERATION_BUDGET: int = Field(default=0, description="0 disables thinking for line explanations")

    # Tool use
    EXPLAIN_USE_TOOLS: bool = Field(default=True)
    TOOL_MAX_ROUNDS: int = Field(default=1, ge=1, le=5, description="Tool round trips allowed per explanation")
    TOOL_TIMEOUT_SECONDS: float = Field(default=5.0, description="Per-call timeout for network-backed tools")
    DOCS_CACHE_TTL_SECONDS: int = Field(default=3600)
    ERROR_ANALYSIS_CACHE_TTL_SECONDS: int = Field(default=1800)
    DEVDOCS_BASE_URL: str = Field(default="https://devdocs.io")
    GITHUB_API_URL: str = Field(default="https://api.github.com")
    GITHUB_TOKEN: str | None = Field(default=None, description="Optional token for GitHub code search")
    STACKOVERFLOW_API_URL: str = Field(default="https://api.stackexchange.com/2.3")

    # Sandbox
    SANDBOX_TIMEOUT_MS: int = Field(default=5000, le=5000)
    SANDBOX_MAX_ITERATIONS: int = Field(default=1000)
    NODE_BINARY: str = Field(default="node")

    # Notion workspace notes
    NOTION_TOKEN: str | None = None
    NOTION_DATABASE_ID: str | None = None
    NOTION_API_URL: str = Field(default="https://api.notion.com/v1")
    NOTION_API_VERSION: str = Field(default="2022-06-28")

    # CORS / frontend integration
    CORS_ALLOW_ORIGINS: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    # Runtime
    APP_ENV: str = Field(default="dev")
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")

    # Rate Limiting
    RATE_LIMIT_RPM: int = Field(default=100, description="Rate limit: requests per minute")

    # Cache Settings
    REDIS_URL: str | None = Field(default=None, description="Redis connection URL for the tool result cache")

    def validate_production_config(self) -> None:
        """Validate configuration for production environments.

        Raises:
            RuntimeError: If required configuration is missing
        """
        if self.APP_ENV != "production":
            return

        if not self.ANTHROPIC_API_KEY:
            raise RuntimeError("CRITICAL: ANTHROPIC_API_KEY must be set in production.")

        if "*" in self.CORS_ALLOW_ORIGINS:
            raise RuntimeError(
                "CRITICAL: CORS_ALLOW_ORIGINS cannot be '*' in production. "
                "Specify exact origins."
            )

        if any("localhost" in origin for origin in self.CORS_ALLOW_ORIGINS):
            import logging
            logging.getLogger(__name__).warning(
                "WARNING: CORS_ALLOW_ORIGINS contains localhost - update for production"
            )


settings = Settings()
