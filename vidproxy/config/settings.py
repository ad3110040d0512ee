import json
import os
import logging
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

CONFIG_PATH = os.getenv("CONFIG_PATH", "config.json")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)


class RedisConfig(BaseModel):
    url: str = Field(default="redis://redis:6379", description="Redis connection URL")
    socket_timeout: int = Field(default=5, description="Redis socket timeout in seconds")


class RateLimitConfig(BaseModel):
    enabled: bool = Field(default=True, description="Enable rate limiting")
    max_requests: int = Field(default=10, ge=1, description="Max download requests per window")
    window_seconds: int = Field(default=900, ge=1, description="Rate limit window in seconds")
    whitelist: List[str] = Field(default_factory=list, description="Client IPs exempt from rate limiting")


class DownloadConfig(BaseModel):
    output_dir: str = Field(default="downloads", description="Directory downloaded files are written to")
    info_timeout: float = Field(default=30.0, gt=0, description="Metadata query timeout in seconds")
    attempt_timeout: float = Field(default=300.0, gt=0, description="Per-strategy download timeout in seconds")
    retry_delay: float = Field(default=2.0, ge=0, description="Pause between strategy attempts in seconds")
    max_height: int = Field(default=720, ge=144, le=4320, description="Resolution ceiling for format selection")
    socket_timeout: int = Field(default=10, ge=1, description="Socket timeout for yt-dlp")
    max_filename_bytes: int = Field(default=180, ge=16, le=240, description="Byte cap for sanitized titles")
    unique_filenames: bool = Field(default=True, description="Embed a per-request token in output filenames")


class YtDlpConfig(BaseModel):
    candidates: List[List[str]] = Field(
        default_factory=lambda: [
            ["yt-dlp"],
            ["python3", "-m", "yt_dlp"],
            ["/opt/venv/bin/yt-dlp"],
        ],
        description="Invocation forms probed in order in production",
    )
    local_path: str = Field(default="./yt-dlp", description="Fixed invocation used outside production")
    probe_timeout: float = Field(default=5.0, gt=0, description="Version probe timeout in seconds")
    reprobe: bool = Field(default=False, description="Probe candidates on every request instead of caching")
    user_agent: Optional[str] = Field(default=DEFAULT_USER_AGENT, description="User-Agent passed to yt-dlp")
    accept: Optional[str] = Field(
        default="text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        description="Accept header passed to yt-dlp",
    )


class FallbackConfig(BaseModel):
    enabled: bool = Field(default=True, description="Use mirror APIs on bot-detection failures")
    instances: List[str] = Field(
        default_factory=lambda: [
            "https://inv.nadeko.net",
            "https://yewtu.be",
            "https://invidious.nerdvpn.de",
        ],
        description="Mirror API base URLs, tried in order",
    )
    container: str = Field(default="mp4", description="Preferred stream container")
    api_timeout: float = Field(default=30.0, gt=0, description="Mirror metadata request timeout")
    download_timeout: float = Field(default=300.0, gt=0, description="Mirror stream transfer timeout")


class CleanupConfig(BaseModel):
    enabled: bool = Field(default=True, description="Schedule the retention sweep")
    max_age_hours: float = Field(default=24, gt=0, description="Delete files older than this")
    schedule: str = Field(default="0 */6 * * *", description="Crontab expression for the sweep")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field(default="%(message)s", description="Log format")
    enable_rich: bool = Field(default=True, description="Enable rich console logging")
    dir: Optional[str] = Field(default=None, description="Directory for rotated log files")

    @field_validator('level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()


class I18nConfig(BaseModel):
    default_locale: str = Field(default="en", description="Default locale")
    supported_locales: list = Field(default=["en", "pt"], description="Supported locales")


class ApiConfig(BaseModel):
    title: str = Field(default="vidproxy", description="API title")
    description: str = Field(default="Video download proxy backed by yt-dlp", description="API description")
    version: str = Field(default="1.0.0", description="API version")
    environment: str = Field(default="development", description="Deployment environment")
    cors_origins: list = Field(default=["*"], description="CORS allowed origins")
    debug: bool = Field(default=False, description="Enable debug mode")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


class Config(BaseModel):
    """Main configuration model"""
    api: ApiConfig = Field(default_factory=ApiConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    download: DownloadConfig = Field(default_factory=DownloadConfig)
    ytdlp: YtDlpConfig = Field(default_factory=YtDlpConfig)
    fallback: FallbackConfig = Field(default_factory=FallbackConfig)
    cleanup: CleanupConfig = Field(default_factory=CleanupConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    i18n: I18nConfig = Field(default_factory=I18nConfig)

    @classmethod
    def load_from_file(cls, config_path: str = "config.json") -> "Config":
        """Load configuration from JSON file"""
        if os.path.exists(config_path):
            try:
                with open(config_path, 'r', encoding='utf-8') as f:
                    config_data = json.load(f)
                logger.info(f"Configuration loaded from {config_path}")
                return cls(**config_data)
            except Exception as e:
                logger.error(f"Failed to load config from {config_path}: {str(e)}")
                logger.info("Using default configuration")
        else:
            logger.warning(f"Config file {config_path} not found, using defaults")

        return cls()

    @classmethod
    def load_from_env(cls) -> "Config":
        """Load configuration from environment variables (fallback)"""
        config_data: Dict[str, Any] = {}

        if os.getenv("ENVIRONMENT"):
            config_data["api"] = {"environment": os.getenv("ENVIRONMENT")}

        if os.getenv("REDIS_URL"):
            config_data["redis"] = {"url": os.getenv("REDIS_URL")}

        rate_limit: Dict[str, Any] = {}
        if os.getenv("RATE_LIMIT_REQUESTS"):
            rate_limit["max_requests"] = int(os.getenv("RATE_LIMIT_REQUESTS"))
        if os.getenv("RATE_LIMIT_WINDOW"):
            rate_limit["window_seconds"] = int(os.getenv("RATE_LIMIT_WINDOW"))
        if os.getenv("RATE_LIMIT_WHITELIST"):
            rate_limit["whitelist"] = [
                ip.strip() for ip in os.getenv("RATE_LIMIT_WHITELIST").split(",") if ip.strip()
            ]
        if rate_limit:
            config_data["rate_limit"] = rate_limit

        if os.getenv("DOWNLOAD_DIR"):
            config_data["download"] = {"output_dir": os.getenv("DOWNLOAD_DIR")}

        if os.getenv("YT_DLP_PATH"):
            config_data["ytdlp"] = {"local_path": os.getenv("YT_DLP_PATH")}

        if os.getenv("FALLBACK_INSTANCES"):
            config_data["fallback"] = {
                "instances": [u.strip() for u in os.getenv("FALLBACK_INSTANCES").split(",") if u.strip()]
            }

        if os.getenv("FILE_CLEANUP_MAX_AGE_HOURS"):
            config_data["cleanup"] = {"max_age_hours": float(os.getenv("FILE_CLEANUP_MAX_AGE_HOURS"))}

        logging_config: Dict[str, Any] = {}
        if os.getenv("LOG_LEVEL"):
            logging_config["level"] = os.getenv("LOG_LEVEL")
        if os.getenv("LOG_DIR"):
            logging_config["dir"] = os.getenv("LOG_DIR")
        if logging_config:
            config_data["logging"] = logging_config

        if os.getenv("DEFAULT_LOCALE"):
            config_data["i18n"] = {"default_locale": os.getenv("DEFAULT_LOCALE")}

        return cls(**config_data) if config_data else cls()

    def save_to_file(self, config_path: str = "config.json"):
        """Save configuration to JSON file"""
        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                json.dump(self.model_dump(exclude_none=True), f, indent=2, ensure_ascii=False)
            logger.info(f"Configuration saved to {config_path}")
        except OSError as e:
            logger.error(f"Failed to save config to {config_path}: {str(e)}")


def load_config() -> Config:
    """Load configuration with priority: config.json > env vars > defaults"""
    if os.path.exists(CONFIG_PATH):
        return Config.load_from_file(CONFIG_PATH)
    logger.info(f"Config file not found at {CONFIG_PATH}, checking environment variables")
    return Config.load_from_env()


config = load_config()
