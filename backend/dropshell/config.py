"""Application configuration from environment variables."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All config comes from env vars or .env.backend file."""

    DATABASE_URL: str = "sqlite+aiosqlite:///./dropshell.db"
    METADATA_STORE: str = "database"  # "database" (durable) or "memory" (lost on restart)
    FILE_STORAGE_TYPE: str = "local"
    FILE_STORAGE_PATH: str = "./backend/uploads"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3000
    CORS_ORIGINS: str = "http://localhost:3000"
    PUBLIC_BASE_URL: str = ""  # falls back to the request's base URL

    # Upload limits
    MAX_UPLOAD_BYTES: int = 20 * 1024 * 1024 * 1024  # 20 GiB
    DEFAULT_EXPIRATION_HOURS: int = 24
    MAX_EXPIRATION_HOURS: int = 720

    # Credentials and download tokens
    TOKEN_SECRET: str = ""  # random per process when empty
    DOWNLOAD_TOKEN_TTL_SECONDS: int = 900
    BCRYPT_ROUNDS: int = 12

    # Storage reclamation; 0 disables the background sweep
    SWEEP_INTERVAL_SECONDS: float = 600

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env.backend"
        env_file_encoding = "utf-8"


settings = Settings()
