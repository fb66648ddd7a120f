from sqlalchemy import select
from sqlalchemy.orm import Session

from snyk_import.db_models import repositories, scan_results
from snyk_import.schemas import CandidateFile, Repository


def load_active_repositories(db: Session) -> list[Repository]:
    stmt = (
        select(repositories.c.id, repositories.c.owner, repositories.c.name, repositories.c.default_branch)
        .where(repositories.c.active.is_(True))
        .order_by(repositories.c.id)
    )
    return [Repository(id=row.id, owner=row.owner, name=row.name, branch=row.default_branch) for row in db.execute(stmt)]


def list_candidate_files(db: Session, *, owner: str, name: str) -> list[CandidateFile]:
    # Only the columns the scanner guarantees are referenced.
    stmt = (
        select(scan_results.c.file_path, scan_results.c.file_type)
        .where(scan_results.c.repo_owner == owner, scan_results.c.repo_name == name)
        .order_by(scan_results.c.file_path)
    )
    return [CandidateFile(path=row.file_path, type=row.file_type) for row in db.execute(stmt)]
