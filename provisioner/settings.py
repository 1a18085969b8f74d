from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# .env at the project root (one level up from this package)
_env_file = Path(__file__).parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_env_file), env_file_encoding="utf-8", extra="ignore"
    )

    LOG_LEVEL: str = "INFO"

    USE_DRY_RUN_EXECUTION: bool = False

    META_API_VERSION: str = "v19.0"
    META_APP_SECRET: str = ""
    META_ACCESS_TOKEN: str = ""  # fallback when the caller sends no bearer token
    META_HTTP_TIMEOUT_SECONDS: float = 8.0

    # Resolver
    VERIFY_POST_EXISTENCE: bool = True

    # Targeting fallback: São Paulo, 10 km
    DEFAULT_LATITUDE: float = -23.5505
    DEFAULT_LONGITUDE: float = -46.6333
    DEFAULT_RADIUS_KM: float = 10.0

    # Creative
    DEFAULT_LINK_URL: str = "https://facebook.com"
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024  # 5 MB


settings = Settings()
