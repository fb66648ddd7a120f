from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Repository:
    id: int
    owner: str
    name: str
    branch: str


@dataclass(frozen=True)
class CandidateFile:
    path: str
    type: str


@dataclass(frozen=True)
class ImportOutcome:
    repo_id: int
    owner: str
    name: str
    file_path: str
    succeeded: bool
    error: str | None
    completed_at: datetime


@dataclass(frozen=True)
class ImportRunSummary:
    repositories: int
    failed_repositories: int
    outcomes: int
    imports_succeeded: int
    imports_failed: int
    records_written: int
    write_errors: int
    cancelled: bool
