from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from snyk_import.db_models import SnykImport
from snyk_import.schemas import ImportOutcome


NATURAL_KEY = ("repo_owner", "repo_name", "file_path")
_NATIVE_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


def get_import_record(db: Session, *, owner: str, name: str, file_path: str) -> SnykImport | None:
    stmt = select(SnykImport).where(
        SnykImport.repo_owner == owner,
        SnykImport.repo_name == name,
        SnykImport.file_path == file_path,
    )
    return db.execute(stmt).scalar_one_or_none()


def list_import_records(db: Session) -> list[SnykImport]:
    stmt = select(SnykImport).order_by(SnykImport.repo_owner, SnykImport.repo_name, SnykImport.file_path)
    return list(db.execute(stmt).scalars().all())


def upsert_import_result(db: Session, outcome: ImportOutcome) -> None:
    """Insert the outcome, or overwrite the status of the existing row for its file.

    The row is keyed by (repo_owner, repo_name, file_path); only success,
    error_message and imported_at change on conflict.
    """
    try:
        native_insert = _NATIVE_INSERTS.get(db.get_bind().dialect.name)
        if native_insert is None:
            _select_then_update(db, outcome)
        else:
            stmt = native_insert(SnykImport).values(**_row_values(outcome))
            stmt = stmt.on_conflict_do_update(
                index_elements=list(NATURAL_KEY),
                set_={
                    "success": stmt.excluded.success,
                    "error_message": stmt.excluded.error_message,
                    "imported_at": stmt.excluded.imported_at,
                },
            )
            db.execute(stmt)
        db.commit()
    except Exception:
        db.rollback()
        raise


def _row_values(outcome: ImportOutcome) -> dict[str, object]:
    return {
        "repo_id": outcome.repo_id,
        "repo_owner": outcome.owner,
        "repo_name": outcome.name,
        "file_path": outcome.file_path,
        "success": outcome.succeeded,
        "error_message": outcome.error,
        "imported_at": outcome.completed_at,
    }


def _select_then_update(db: Session, outcome: ImportOutcome) -> None:
    existing = get_import_record(db, owner=outcome.owner, name=outcome.name, file_path=outcome.file_path)
    if existing is None:
        db.add(SnykImport(**_row_values(outcome)))
        return

    existing.success = outcome.succeeded
    existing.error_message = outcome.error
    existing.imported_at = outcome.completed_at
