import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """
    Settings read straight from environment variables (a .env file is honoured).
    """
    # JWT
    SECRET_KEY: str = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    ALGORITHM: str = os.environ.get("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 12))

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = _env_flag("RATE_LIMIT_ENABLED", "true")
    RATE_LIMITER_STORAGE_URI: str = os.environ.get("RATE_LIMITER_STORAGE_URI", "memory://")

    # Store
    SEED_DEMO_DATA: bool = _env_flag("SEED_DEMO_DATA", "true")
    FEE_SWEEP_INTERVAL_MINUTES: int = int(os.environ.get("FEE_SWEEP_INTERVAL_MINUTES", 60))

    # Logging
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO").upper()
    LOG_DIR: str = os.environ.get("LOG_DIR", "logs")
    LOG_TO_FILE: bool = _env_flag("LOG_TO_FILE", "true")

# Single importable settings instance
settings = Config()
