from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    UPLOAD_LIMIT: float = 16  # megabytes
    CLEANUP_INTERVAL: int = 300  # seconds
    STALE_THRESHOLD: int = 300  # seconds (5 minutes)
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    model_config = SettingsConfigDict(env_file=".env")

settings = Settings()
