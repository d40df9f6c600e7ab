import json
import logging
import os
import sys
from typing import Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TrackingSource(BaseModel):
    name: str
    url: str


DEFAULT_TRACKING_SOURCES = [
    TrackingSource(
        name="牛经沧海",
        url="https://bbs.wenxuecity.com/bbs/archive.php?SubID=cfzh&keyword=%E7%89%9B%E7%BB%8F%E6%B2%A7%E6%B5%B7&username=on",
    ),
    TrackingSource(
        name="长须老榕",
        url="https://bbs.wenxuecity.com/bbs/archive.php?SubID=finance&keyword=%E9%95%BF%E9%A1%BB%E8%80%81%E6%A6%95&username=on",
    ),
    TrackingSource(
        name="捣乱者",
        url="https://bbs.wenxuecity.com/bbs/archive.php?SubID=finance&pos=bbs&keyword=%E6%8D%A3%E4%B9%B1%E8%80%85&username=on",
    ),
    TrackingSource(
        name="方圆9888",
        url="https://bbs.wenxuecity.com/bbs/archive.php?keyword=%E6%96%B9%E5%9C%869888&username=on&submit1=%E6%9F%A5%E8%AF%A2&act=index&SubID=finance&year=current",
    ),
    TrackingSource(
        name="低手只会用均线",
        url="https://bbs.wenxuecity.com/bbs/archive.php?SubID=cfzh&keyword=%E4%BD%8E%E6%89%8B%E5%8F%AA%E4%BC%9A%E7%94%A8%E5%9D%87%E7%BA%BF&username=on",
    ),
    TrackingSource(
        name="ybdddnlyglny",
        url="https://bbs.wenxuecity.com/bbs/archive.php?keyword=ybdddnlyglny&username=on&submit1=%E6%9F%A5%E8%AF%A2&act=index&SubID=cfzh&year=current",
    ),
]


def normalize_base_url(base_url: str | None) -> str | None:
    """
    Validate and normalize the public base URL continuations are sent to.

    Rules:
    - Must be http(s) with a hostname
    - No query or fragment
    - Trailing slash is stripped

    Examples:
        >>> normalize_base_url("https://Tracker.example.com/")
        "https://tracker.example.com"
    """
    if base_url is None:
        return None

    base_url = base_url.strip()
    if not base_url:
        raise ValueError("base_url cannot be an empty string")

    parsed = urlparse(base_url)
    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"base_url must use http:// or https://, got: {base_url}")

    if not parsed.hostname:
        raise ValueError(f"base_url missing hostname: {base_url}")

    if parsed.query or parsed.fragment:
        raise ValueError(f"base_url must not include query or fragment: {base_url}")

    port = f":{parsed.port}" if parsed.port else ""
    path = parsed.path.rstrip("/")
    return f"{parsed.scheme}://{parsed.hostname.lower()}{port}{path}"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="allow")

    app_version: str = os.environ.get("APP_VERSION", "DEV")

    # Infrastructure dependencies
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: Optional[int] = None
    redis_conn_timeout: int = 5
    redis_conn_retries: int = 5
    redis_conn_retry_delay: int = 1
    redis_retry_on_timeout: bool = True
    redis_socket_keepalive: bool = True
    redis_health_check_interval: int = 30
    redis_max_connections: Optional[int] = None

    # Backends
    kv_backend: Literal["redis", "memory"] = "redis"
    dispatcher_backend: Literal["qstash", "arq", "local"] = "qstash"

    # Continuations
    base_url: Optional[str] = None  # Public origin the dispatcher delivers to
    dispatch_retries: int = 3
    qstash_url: str = "https://qstash.upstash.io"
    qstash_token: Optional[str] = None
    qstash_current_signing_key: Optional[str] = None
    qstash_next_signing_key: Optional[str] = None

    # Security
    cron_secret: Optional[str] = None

    # Tracking
    tracking_sources: list[TrackingSource] = DEFAULT_TRACKING_SOURCES

    # Job processing (batch sizes are per invocation)
    discover_batch_size: int = 3
    fetch_batch_size: int = 5
    rate_limit_seconds: float = 3.0  # Between remote requests within a batch
    job_timeout_seconds: int = 30 * 60  # Stuck detection
    job_ttl_seconds: int = 24 * 60 * 60
    min_size_for_content: int = 1  # Fetch content if size_hint >= this
    max_age_days: int = 7

    # Email
    resend_api_key: Optional[str] = None
    resend_api_url: str = "https://api.resend.com/emails"
    email_from: str = "Webpage Tracker <onboarding@resend.dev>"
    notification_email: str = ""  # Comma separated recipients
    email_subject: str = "文学城论坛更新"

    # Scraper
    scraper_user_agent: str = (
        "Mozilla/5.0 (compatible; WebpageTracker/1.0; +https://github.com)"
    )
    scraper_timeout_seconds: float = 20.0

    # Dev
    testing: bool = False
    dev: bool = False

    @field_validator("tracking_sources", mode="before")
    @classmethod
    def parse_tracking_sources(cls, value):
        if isinstance(value, str):
            return json.loads(value)
        return value

    @model_validator(mode="after")
    def validate_job_settings(self):
        """Ensure batch and timing configuration values are sane."""
        if self.discover_batch_size <= 0:
            logging.error(
                "DISCOVER_BATCH_SIZE must be greater than zero. Current value: %s",
                self.discover_batch_size,
            )
            sys.exit(1)

        if self.fetch_batch_size <= 0:
            logging.error(
                "FETCH_BATCH_SIZE must be greater than zero. Current value: %s",
                self.fetch_batch_size,
            )
            sys.exit(1)

        if self.rate_limit_seconds < 0:
            logging.error(
                "RATE_LIMIT_SECONDS cannot be negative. Current value: %s",
                self.rate_limit_seconds,
            )
            sys.exit(1)

        if self.max_age_days < 0:
            logging.error(
                "MAX_AGE_DAYS cannot be negative. Current value: %s",
                self.max_age_days,
            )
            sys.exit(1)

        if self.job_timeout_seconds <= 0:
            logging.error(
                "JOB_TIMEOUT_SECONDS must be greater than zero. Current value: %s",
                self.job_timeout_seconds,
            )
            sys.exit(1)

        if self.job_ttl_seconds < self.job_timeout_seconds:
            logging.error(
                "JOB_TTL_SECONDS (%s) is shorter than JOB_TIMEOUT_SECONDS (%s)."
                " A running job would expire before it can be detected as stuck.",
                self.job_ttl_seconds,
                self.job_timeout_seconds,
            )
            sys.exit(1)

        if self.dispatch_retries < 0:
            logging.error(
                "DISPATCH_RETRIES cannot be negative. Current value: %s",
                self.dispatch_retries,
            )
            sys.exit(1)

        return self

    @model_validator(mode="after")
    def validate_dispatcher_settings(self):
        """Validate that remote dispatchers know where to deliver."""
        if self.base_url:
            try:
                self.base_url = normalize_base_url(self.base_url)
            except ValueError as e:
                logging.error(
                    f"Invalid BASE_URL configuration: {e}\n"
                    f"Example: BASE_URL=https://tracker.example.com"
                )
                sys.exit(1)

        if self.dispatcher_backend == "qstash" and not self.testing:
            if not self.qstash_token:
                logging.warning(
                    "QSTASH_TOKEN not set. Continuations cannot be published "
                    "until it is configured."
                )
            if not self.qstash_current_signing_key:
                logging.warning(
                    "QSTASH_CURRENT_SIGNING_KEY not set. Signed deliveries will be rejected."
                )

        if not self.cron_secret and not self.dev:
            logging.warning(
                "CRON_SECRET not set. The trigger and reset endpoints will reject all requests."
            )

        return self

    @property
    def notification_recipients(self) -> list[str]:
        return [
            address.strip()
            for address in self.notification_email.split(",")
            if address.strip()
        ]

    @property
    def resolved_base_url(self) -> str:
        return self.base_url or "http://localhost:8123"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get settings singleton, creating it if needed.

    Returns:
        Settings: The application settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Override settings (primarily for testing).

    Args:
        settings: The Settings instance to use.
    """
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Reset settings to None (for test cleanup)."""
    global _settings
    _settings = None


def get_loglevel():
    loglevel = os.getenv("LOGLEVEL", "INFO")

    match loglevel:
        case "INFO":
            return logging.INFO
        case "WARNING":
            return logging.WARNING
        case "ERROR":
            return logging.ERROR
        case "CRITICAL":
            return logging.CRITICAL
        case "DEBUG":
            return logging.DEBUG
        case _:
            return logging.INFO
