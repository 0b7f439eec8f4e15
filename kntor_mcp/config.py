"""Configuration settings for the Kntor MCP Server."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Server
    server_name: str = "kntor-mcp-server"
    host: str = "0.0.0.0"
    port: int = 8787
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    # Supabase REST backend (service role bypasses RLS; tenant scoping is explicit)
    supabase_url: str = "http://localhost:54321"
    supabase_service_role_key: str = ""
    rest_timeout_seconds: float = 10.0

    # Authentication
    api_key_prefix: str = "kntor_"

    # MCP protocol
    protocol_version: str = "2024-11-05"

    # Streaming transports
    sse_keepalive_seconds: float = 30.0
    sse_max_duration_seconds: float = 300.0

    # User-facing pointers in error payloads
    docs_url: str = "https://kntor.io/docs/mcp"
    upgrade_url: str = "https://kntor.io/settings/billing"

    # CORS (MCP clients connect from arbitrary origins)
    cors_allowed_origins: str = "*"

    # Error tracking
    sentry_dsn: str | None = None

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        if self.cors_allowed_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]

    @property
    def rest_base_url(self) -> str:
        return f"{self.supabase_url.rstrip('/')}/rest/v1"


settings = Settings()
