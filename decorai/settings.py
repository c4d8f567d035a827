# settings.py
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Project
    PROJECT_NAME: str = "DecorAI Backend"
    API_PREFIX: str = "/api"

    # Security
    JWT_SECRET: str = "super-secret-key"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_MINUTES: int = 60 * 24  # 24h

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./dev.db"  # default local SQLite

    # AI provider: "openai" or "gemini"
    AI_PROVIDER: str = "openai"
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o"
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    AI_MAX_TOKENS: int = 2000
    AI_VARIATION_MAX_TOKENS: int = 1500
    DEFAULT_ANALYSIS_REQUEST: str = "General decoration suggestions"

    # Object storage (Vercel Blob reads the token from the environment itself)
    BLOB_READ_WRITE_TOKEN: str = ""
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024  # 10MB

    # Frontend origins (CORS), comma separated
    CORS_ORIGINS: str = "*"

    class Config:
        env_file = ".env"
        case_sensitive = True


# ✅ Instantiate settings globally
settings = Settings()
