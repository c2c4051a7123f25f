from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageConfig(BaseSettings):
    """S3 staging configuration"""

    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: str = "us-east-1"
    bucket_name: str = "wikatalk-audio-staging"
    prefix: str = "audio-processing"
    staged_format: str = "webm"
    object_ttl_seconds: int = Field(
        default=3600,
        ge=1,
        description=(
            "Sets the HTTP Expires header only. S3 does not delete on it; removal "
            "after a crash relies on a bucket lifecycle rule matching the "
            "lifecycle=transient tag."
        ),
    )
    delivery_base_url: Optional[str] = Field(
        default=None,
        description="Transformation-capable delivery host fronting the bucket.",
    )
    processed_transformation: str = "e_volume:150"
    download_timeout_seconds: float = Field(default=30.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="S3_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class TranslationConfig(BaseSettings):
    """External speech-translation (NLP) service configuration."""

    api_url: Optional[str] = None
    timeout_seconds: float = Field(default=60.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="NLP_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class AnalyzerConfig(BaseSettings):
    """Silence detection parameters for the speech decision."""

    ffmpeg_binary: str = "ffmpeg"
    noise_floor_db: float = -30.0
    min_silence_seconds: float = Field(default=0.5, gt=0)
    speech_threshold_percent: float = Field(default=15.0, ge=0.0, le=100.0)

    model_config = SettingsConfigDict(
        env_prefix="ANALYZER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Application settings"""

    app_name: str = "WikaTalk Audio Service"
    app_version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_file: str = "logs/app.log"
    pipeline_log_file: str = "logs/audio_pipeline.log"
    translation_log_file: str = "logs/translations.log"
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, ge=1)

    # S3 staging
    storage: StorageConfig = Field(default_factory=StorageConfig)

    # NLP service
    translation: TranslationConfig = Field(default_factory=TranslationConfig)

    # Silence analysis
    analyzer: AnalyzerConfig = Field(default_factory=AnalyzerConfig)

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
