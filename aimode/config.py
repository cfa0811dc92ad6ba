"""Application configuration loaded from environment variables."""

import re

from pydantic_settings import BaseSettings

# Origins the extension and its dashboards are served from
DEFAULT_ORIGIN_PATTERNS = [
    r"chrome-extension://.*",
    r"http://localhost(:\d+)?",
    r"https://.*\.vercel\.app",
]


class Settings(BaseSettings):
    """Central configuration — reads from environment / .env file."""

    # Database (required, the service is useless without it)
    database_url: str
    create_tables: bool = True

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    environment: str = "development"
    log_level: str = "INFO"
    allowed_origins: str = ""
    trust_proxy: bool = False

    # Pagination
    default_user_limit: int = 100
    default_list_limit: int = 50
    max_page_limit: int = 500

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def cors_origin_regex(self) -> str:
        patterns = DEFAULT_ORIGIN_PATTERNS + [re.escape(o) for o in self.cors_origins]
        return "^(" + "|".join(patterns) + ")$"


settings = Settings()
