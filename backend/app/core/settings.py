from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "DrivePlayer"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "127.0.0.1"
    PORT: int = 3003
    OPEN_BROWSER: bool = False

    # Google Drive relay
    DRIVE_DOWNLOAD_URL: str = "https://drive.google.com/uc"
    DRIVE_TIMEOUT: float = 60.0
    TEMP_DIR: Path | None = None
    STREAM_CHUNK_SIZE: int = 64 * 1024

    # Player
    MEDIA_URL_PREFIX: str = "/api/v1/media"
    UNKNOWN_ALBUM: str = "Unknown Album"
    UNKNOWN_YEAR: str = "Unknown Year"

    # Cors
    CORS_ORIGINS: list[str] = ["*"]

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

settings = Settings()
