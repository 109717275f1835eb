from pydantic_settings import BaseSettings
from pydantic import AnyUrl, Field
from typing import List, Literal


class Settings(BaseSettings):
    app_name: str = "PDF Query API"
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Mongo (database name is extracted from the URI path)
    mongo_uri: AnyUrl | str = Field(default="")

    # JWT
    jwt_secret_key: str = Field(default="change-this-secret")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=21600)
    refresh_token_expire_days: int = Field(default=15)

    # CORS
    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"])

    # File Upload Settings
    MAX_FILE_SIZE_MB: int = 20
    PDF_CONTENT_TYPE: str = "application/pdf"

    # Answer generation
    LLM_PROVIDER: Literal["groq", "openai"] = "groq"
    GROQ_API_KEY: str = ""
    GROQ_MODEL: str = "llama-3.1-8b-instant"
    OPENAI_API_KEY: str = ""
    CHAT_MODEL: str = "gpt-4o-mini"
    TEMPERATURE: float = 0.1
    MAX_TOKENS: int = 500
    ANSWER_TIMEOUT_SECONDS: float = 60.0

    # Sessions kept in memory before the least recently used is evicted
    MAX_OPEN_WORKSPACES: int = 500

    # Transcript texts
    GREETING_TEMPLATE: str = "Hello! I've finished reading \"{name}\". What would you like to know?"
    APOLOGY_TEXT: str = "Sorry, I encountered an error and could not process your request."

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @property
    def max_file_size_bytes(self) -> int:
        return self.MAX_FILE_SIZE_MB * 1024 * 1024


settings = Settings()
