from dataclasses import dataclass
import os

from dotenv import load_dotenv
from sqlalchemy.engine import URL


load_dotenv()


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class Settings:
    app_name: str
    database_url: str
    log_level: str
    github_token: str
    snyk_token: str
    snyk_api_url: str
    request_timeout_seconds: float
    rate_interval_seconds: float
    rate_burst: int
    handoff_capacity: int
    schedule_hour_utc: int
    schedule_minute_utc: int

    def require_credentials(self) -> None:
        # The GitHub token is not used by the import path but a run without it is refused.
        missing = [
            name
            for name, value in (("GITHUB_TOKEN", self.github_token), ("SNYK_TOKEN", self.snyk_token))
            if not value
        ]
        if missing:
            raise ConfigError(f"missing required environment variables: {', '.join(missing)}")


def _database_url() -> str:
    explicit = os.getenv("DATABASE_URL")
    if explicit:
        return explicit

    url = URL.create(
        "postgresql+psycopg",
        username=os.getenv("POSTGRES_USER") or None,
        password=os.getenv("POSTGRES_PASSWORD") or None,
        host=os.getenv("POSTGRES_HOST", "localhost"),
        port=int(os.getenv("POSTGRES_PORT", "5432")),
        database=os.getenv("POSTGRES_DB", "github_scan"),
    )
    return url.render_as_string(hide_password=False)


def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "snyk-import"),
        database_url=_database_url(),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        github_token=os.getenv("GITHUB_TOKEN", ""),
        snyk_token=os.getenv("SNYK_TOKEN", ""),
        snyk_api_url=os.getenv("SNYK_API_URL", "https://snyk.io/api/v1"),
        request_timeout_seconds=float(os.getenv("SNYK_REQUEST_TIMEOUT_SECONDS", "30")),
        rate_interval_seconds=float(os.getenv("SNYK_RATE_INTERVAL_SECONDS", "1")),
        rate_burst=int(os.getenv("SNYK_RATE_BURST", "5")),
        handoff_capacity=int(os.getenv("RESULT_QUEUE_SIZE", "100")),
        schedule_hour_utc=int(os.getenv("SCHEDULE_HOUR_UTC", "3")),
        schedule_minute_utc=int(os.getenv("SCHEDULE_MINUTE_UTC", "0")),
    )
