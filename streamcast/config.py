from pathlib import Path
import logging

from croniter import croniter
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


class CustomSettings(BaseSettings):
    """Application settings loaded from environment variables.

    Validates configuration at startup to catch misconfiguration early.
    """

    database_path: str = "./data/streamcast.db"
    log_level: str = "INFO"

    guide_freshness_hours: float = 4.0
    guide_sweep_cron: str = "*/30 * * * *"  # Every 30 minutes
    guide_sweep_misfire_grace_sec: int = 600
    epg_entries_per_channel: int = 50
    epg_fetch_concurrency: int = 10

    provider_max_retries: int = 3
    provider_backoff_factor: float = 2.0
    request_timeout_sec: float = 10.0
    availability_timeout_sec: float = 2.0

    mediamtx_api_url: str = "http://localhost:9997"
    mediamtx_host: str = "localhost"
    mediamtx_webrtc_port: int = 8889
    mediamtx_hls_port: int = 8888
    mediamtx_source_protocol: str = "tcp"
    mediamtx_on_demand_start_timeout: str = "10s"
    mediamtx_on_demand_close_after: str = "10s"

    kiosk_command_ttl_sec: int = 60
    kiosk_purge_interval_sec: int = 300
    play_media_content_type: str = "video/mp4"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, value: str) -> str:
        """Validate database path is accessible."""
        if value == ":memory:":
            return value
        path = Path(value)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            return value
        except (OSError, PermissionError) as exc:
            raise ValueError(f"Cannot access database path '{value}': {exc}") from exc

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        normalized = value.upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if normalized not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return normalized

    @field_validator("mediamtx_api_url")
    @classmethod
    def validate_gateway_url(cls, value: str) -> str:
        """Validate the gateway API URL is HTTP/HTTPS."""
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError(f"mediamtx_api_url must be HTTP/HTTPS: {value}")
        return value.rstrip("/")

    @field_validator("mediamtx_source_protocol")
    @classmethod
    def validate_source_protocol(cls, value: str) -> str:
        normalized = value.lower()
        allowed = {"automatic", "tcp", "udp", "multicast"}
        if normalized not in allowed:
            raise ValueError(f"mediamtx_source_protocol must be one of {sorted(allowed)}")
        return normalized

    @field_validator(
        "guide_freshness_hours",
        "provider_backoff_factor",
        "request_timeout_sec",
        "availability_timeout_sec",
    )
    @classmethod
    def validate_positive_floats(cls, value: float, info) -> float:
        """Ensure floating-point settings are positive."""
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value

    @field_validator(
        "epg_entries_per_channel",
        "epg_fetch_concurrency",
        "provider_max_retries",
        "kiosk_command_ttl_sec",
        "kiosk_purge_interval_sec",
    )
    @classmethod
    def validate_positive_ints(cls, value: int, info) -> int:
        """Ensure integer settings are positive."""
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value

    @field_validator("mediamtx_webrtc_port", "mediamtx_hls_port")
    @classmethod
    def validate_ports(cls, value: int, info) -> int:
        if not 0 < value < 65536:
            raise ValueError(f"{info.field_name} must be a valid TCP port")
        return value

    @field_validator("guide_sweep_misfire_grace_sec")
    @classmethod
    def validate_misfire_grace(cls, value: int) -> int:
        """Validate scheduler misfire grace period (seconds)."""
        if value < 0:
            raise ValueError("guide_sweep_misfire_grace_sec must be >= 0")
        return value

    @field_validator("guide_sweep_cron")
    @classmethod
    def validate_cron_expression(cls, value: str) -> str:
        """Validate cron expression is valid."""
        try:
            croniter(value)
            return value
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Invalid cron expression '{value}': {exc}") from exc

    @model_validator(mode="after")
    def validate_timeouts(self):
        """Availability checks must not outlast regular requests."""
        if self.availability_timeout_sec > self.request_timeout_sec:
            raise ValueError(
                "availability_timeout_sec must be <= request_timeout_sec"
            )
        return self

    def __init__(self, **data):
        """Initialize settings and log configuration."""
        super().__init__(**data)

        logger.info("Configuration loaded:")
        logger.info("  Database: %s", self.database_path)
        logger.info("  Guide Freshness: %s hours", self.guide_freshness_hours)
        logger.info("  Guide Sweep Schedule: %s", self.guide_sweep_cron)
        logger.info(
            "  EPG: %s entries per channel, %s concurrent fetches",
            self.epg_entries_per_channel,
            self.epg_fetch_concurrency,
        )
        logger.info(
            "  Provider Retries: %s (backoff factor %.1f)",
            self.provider_max_retries,
            self.provider_backoff_factor,
        )
        logger.info(
            "  Timeouts: request=%.1fs availability=%.1fs",
            self.request_timeout_sec,
            self.availability_timeout_sec,
        )
        logger.info("  MediaMTX API: %s", self.mediamtx_api_url)
        logger.info(
            "  MediaMTX Playback: host=%s webrtc=%s hls=%s",
            self.mediamtx_host,
            self.mediamtx_webrtc_port,
            self.mediamtx_hls_port,
        )
        logger.info("  Kiosk Command TTL: %ss", self.kiosk_command_ttl_sec)


settings = CustomSettings()


def setup_logging() -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
