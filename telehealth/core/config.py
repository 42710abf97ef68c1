from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import os


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Telehealth Signaling Service"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    TESTING: bool = os.getenv("TESTING", "0").lower() in ("1", "true", "t", "yes", "y")
    LOG_LEVEL: str = "INFO"

    # Security (tokens are issued by the auth service, we only verify them)
    SECRET_KEY: str = "your-secret-key-change-this-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Redis (rate limit counters)
    REDIS_URL: str = "redis://localhost:6379"

    # Video sessions
    SESSION_CREATE_RATE_LIMIT: int = 30  # per user per window, 0 disables
    SESSION_CREATE_RATE_WINDOW_SECONDS: int = 3600
    SESSION_IDLE_TTL_SECONDS: int = 3600  # 0 keeps sessions for the process lifetime
    SESSION_SWEEP_INTERVAL_SECONDS: int = 60

    # Signaling relay
    SEND_TIMEOUT_SECONDS: float = 10.0  # 0 disables

    # CORS / hosts
    ALLOWED_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000", "http://testserver"]
    ALLOWED_HOSTS: List[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


# Create settings instance
settings = Settings()
