from enum import Enum
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class BaseConfig(BaseSettings):
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CompressionType(str, Enum):
    GZIP = "gz"
    BZIP2 = "bz2"
    ZIP = "zip"


class AppSettings(BaseConfig):
    app_name: str = Field(default="Video Hosting Backend", min_length=1, max_length=100, alias="APP_NAME")
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8000, ge=1, le=65535, alias="PORT")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")
    temp_dir: str = Field(default="public/temp", alias="TEMP_DIR")

    log_level: LogLevel = Field(default=LogLevel.INFO, alias="LOG_LEVEL")
    log_format: str = Field(default="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function} | {message}", alias="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, alias="LOG_FILE")
    log_rotation: str = Field(default="1 day", alias="LOG_ROTATION")
    log_compression: CompressionType = Field(default=CompressionType.GZIP, alias="LOG_COMPRESSION")


class DatabaseSettings(BaseConfig):
    database_url: str = Field(default="mongodb://localhost:27017", alias="DATABASE_URL")
    database_name: str = Field(default="videotube", min_length=1, alias="DATABASE_NAME")
    search_index: str = Field(default="search-videos", alias="SEARCH_INDEX")


class StorageSettings(BaseConfig):
    endpoint_url: Optional[str] = Field(default=None, alias="S3_ENDPOINT_URL")
    access_key: Optional[str] = Field(default=None, alias="S3_ACCESS_KEY")
    secret_key: Optional[str] = Field(default=None, alias="S3_SECRET_KEY")
    region: str = Field(default="us-east-1", alias="S3_REGION")
    bucket: str = Field(default="videotube", min_length=1, alias="S3_BUCKET")
    public_url: Optional[str] = Field(default=None, alias="S3_PUBLIC_URL")
    ffprobe_path: str = Field(default="ffprobe", alias="FFPROBE_PATH")

    @property
    def base_url(self) -> str:
        """Prefix for public asset URLs, without trailing slash."""
        if self.public_url:
            return self.public_url.rstrip("/")
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com"


@lru_cache
def get_app_settings() -> AppSettings:
    return AppSettings()


@lru_cache
def get_database_settings() -> DatabaseSettings:
    return DatabaseSettings()


@lru_cache
def get_storage_settings() -> StorageSettings:
    return StorageSettings()
