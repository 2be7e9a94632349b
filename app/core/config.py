from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Privileged connection used only by the SQL tool. Falls back to DATABASE_URL
    EXECUTION_DATABASE_URL: Optional[str] = None

    # Model provider (OpenAI-compatible chat completions endpoint)
    XAI_API_KEY: str = ""
    XAI_BASE_URL: str = "https://api.x.ai/v1"
    LLM_MODEL: str = "grok-4-1-fast-reasoning"

    # Chat limits
    MAX_MESSAGE_LENGTH: int = 10000
    HISTORY_LIMIT: int = 20
    MAX_TOOL_ITERATIONS: int = 5

    # JSON list narrowing the tables the SQL tool may touch; unset means the built-in set
    SQL_ALLOWED_TABLES: Optional[List[str]] = None

    LOG_LEVEL: str = "INFO"

    # This tells Pydantic to read from the .env file
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def execution_database_url(self) -> str:
        return self.EXECUTION_DATABASE_URL or self.DATABASE_URL


# Create a single instance of the settings to use everywhere
settings = Settings()
