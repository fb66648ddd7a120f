from collections.abc import Generator
from dataclasses import dataclass
from pathlib import Path
import threading
import time

import pytest
from sqlalchemy.orm import Session, sessionmaker

from snyk_import.config import Settings
from snyk_import.database import build_session_factory
from snyk_import.db_models import collaborator_metadata, repositories, scan_results
from snyk_import.pipeline import ImportPipeline
from snyk_import.rate_gate import RateGate
from snyk_import.snyk_client import SnykClient


@dataclass
class FakeResponse:
    status_code: int


class FakeSnykSession:
    """Stands in for requests.Session; answers per file path and records every call."""

    def __init__(
        self,
        *,
        statuses: dict[str, int] | None = None,
        errors: dict[str, Exception] | None = None,
        default_status: int = 201,
        delay_seconds: float = 0.0,
    ) -> None:
        self.statuses = statuses or {}
        self.errors = errors or {}
        self.default_status = default_status
        self.delay_seconds = delay_seconds
        self.calls: list[dict[str, object]] = []
        self.max_in_flight_per_repo: dict[tuple[str, str], int] = {}
        self._in_flight: dict[tuple[str, str], int] = {}
        self._lock = threading.Lock()

    def post(self, url, *, json, headers, timeout):
        repo = (json["target"]["owner"], json["target"]["name"])
        path = json["files"][0]["path"]
        with self._lock:
            self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
            self._in_flight[repo] = self._in_flight.get(repo, 0) + 1
            self.max_in_flight_per_repo[repo] = max(self.max_in_flight_per_repo.get(repo, 0), self._in_flight[repo])
        try:
            if self.delay_seconds:
                time.sleep(self.delay_seconds)
            if path in self.errors:
                raise self.errors[path]
            return FakeResponse(self.statuses.get(path, self.default_status))
        finally:
            with self._lock:
                self._in_flight[repo] -= 1

    def submitted_paths(self) -> list[str]:
        return [call["json"]["files"][0]["path"] for call in self.calls]


def seed_inventory(
    session_factory: sessionmaker[Session],
    repository_rows: list[dict[str, object]],
    files: dict[tuple[str, str], list[str]],
) -> None:
    with session_factory() as db:
        for repo in repository_rows:
            db.execute(repositories.insert().values(**{"active": True, **repo}))
        for (owner, name), paths in files.items():
            for path in paths:
                file_type = path.rsplit("/", 1)[-1]
                db.execute(scan_results.insert().values(repo_owner=owner, repo_name=name, file_path=path, file_type=file_type))
        db.commit()


@pytest.fixture()
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        app_name="snyk-import",
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        log_level="INFO",
        github_token="gh-test-token",
        snyk_token="snyk-test-token",
        snyk_api_url="https://snyk.test/api/v1",
        request_timeout_seconds=30,
        rate_interval_seconds=0.001,
        rate_burst=50,
        handoff_capacity=4,
        schedule_hour_utc=3,
        schedule_minute_utc=0,
    )


@pytest.fixture()
def session_factory(test_settings: Settings) -> sessionmaker[Session]:
    factory = build_session_factory(test_settings.database_url)
    # The inventory and scan tables belong to other jobs; tests create them here.
    collaborator_metadata.create_all(factory.kw["bind"])
    return factory


@pytest.fixture()
def seed(session_factory: sessionmaker[Session]):
    def _seed(repository_rows: list[dict[str, object]], files: dict[tuple[str, str], list[str]]) -> None:
        seed_inventory(session_factory, repository_rows, files)

    return _seed


@pytest.fixture()
def fake_http() -> FakeSnykSession:
    return FakeSnykSession()


@pytest.fixture()
def pipeline(
    test_settings: Settings,
    session_factory: sessionmaker[Session],
    fake_http: FakeSnykSession,
) -> Generator[ImportPipeline, None, None]:
    client = SnykClient(
        api_url=test_settings.snyk_api_url,
        token=test_settings.snyk_token,
        timeout_seconds=test_settings.request_timeout_seconds,
        session=fake_http,
    )
    rate_gate = RateGate(interval_seconds=test_settings.rate_interval_seconds, burst=test_settings.rate_burst)
    yield ImportPipeline(test_settings, session_factory, client=client, rate_gate=rate_gate)
