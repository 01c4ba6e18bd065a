import json
import logging
import os
from typing import List

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_PATH = os.getenv("CONFIG_PATH", "config.json")


class BinariesConfig(BaseModel):
    ytdlp: str = Field(default="yt-dlp", description="yt-dlp executable name or path")
    ffmpeg: str = Field(default="ffmpeg", description="ffmpeg executable name or path")


class ExtractorConfig(BaseModel):
    timeout_seconds: float = Field(default=30.0, gt=0, description="Metadata lookup timeout in seconds")
    socket_timeout: int = Field(default=10, ge=1, description="Socket timeout passed to yt-dlp")
    extra_args: List[str] = Field(default_factory=list, description="Extra arguments appended to yt-dlp")


class TranscodeConfig(BaseModel):
    chunk_size: int = Field(default=64 * 1024, ge=1024, description="Bytes read from ffmpeg stdout per chunk")
    loglevel: str = Field(default="error", description="ffmpeg -loglevel value")
    kill_grace_seconds: float = Field(default=5.0, gt=0, description="Wait for ffmpeg to exit after kill")
    mp3_quality: int = Field(default=2, ge=0, le=9, description="libmp3lame VBR quality (-q:a)")


class SecurityConfig(BaseModel):
    enable_ssrf_protection: bool = Field(default=True, description="Enable SSRF protection")
    allow_private_ips: bool = Field(default=False, description="Allow private IP ranges")
    allow_localhost: bool = Field(default=False, description="Allow localhost access")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="Log level")
    enable_rich: bool = Field(default=True, description="Enable rich console logging")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()


class I18nConfig(BaseModel):
    default_locale: str = Field(default="en", description="Default locale")
    supported_locales: list = Field(default=["en", "ja"], description="Supported locales")


class ApiConfig(BaseModel):
    title: str = Field(default="Media Relay", description="API title")
    version: str = Field(default="1.0.0", description="API version")
    cors_origins: list = Field(default=["*"], description="CORS allowed origins")
    debug: bool = Field(default=False, description="Enable debug mode")
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port")


class Config(BaseSettings):
    """Main configuration model"""
    model_config = SettingsConfigDict(env_prefix="MEDIARELAY_", env_nested_delimiter="__")

    binaries: BinariesConfig = Field(default_factory=BinariesConfig)
    extractor: ExtractorConfig = Field(default_factory=ExtractorConfig)
    transcode: TranscodeConfig = Field(default_factory=TranscodeConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    i18n: I18nConfig = Field(default_factory=I18nConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    @classmethod
    def load_from_file(cls, config_path: str) -> "Config":
        """Load configuration from JSON file; environment fills the gaps"""
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = json.load(f)
            logger.info(f"Configuration loaded from {config_path}")
            return cls(**config_data)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load config from {config_path}: {str(e)}")
            logger.info("Using environment/default configuration")
            return cls()


def load_config() -> Config:
    """Load configuration with priority: config file > env vars > defaults"""
    if os.path.exists(CONFIG_PATH):
        return Config.load_from_file(CONFIG_PATH)
    logger.info(f"Config file not found at {CONFIG_PATH}, checking environment variables")
    return Config()


config = load_config()
