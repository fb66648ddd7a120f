from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, MetaData, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def utc_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


# Tables owned by the discovery and scanning jobs. Read-only here and never provisioned.
collaborator_metadata = MetaData()

repositories = Table(
    "repositories",
    collaborator_metadata,
    Column("id", Integer, primary_key=True),
    Column("owner", String(255), nullable=False),
    Column("name", String(255), nullable=False),
    Column("default_branch", String(255), nullable=False),
    Column("active", Boolean, nullable=False),
)

scan_results = Table(
    "scan_results",
    collaborator_metadata,
    Column("repo_owner", String(255), nullable=False),
    Column("repo_name", String(255), nullable=False),
    Column("file_path", Text, nullable=False),
    Column("file_type", String(64), nullable=False),
)


class SnykImport(Base):
    __tablename__ = "snyk_imports"
    __table_args__ = (UniqueConstraint("repo_owner", "repo_name", "file_path", name="uq_snyk_import_file"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    repo_id: Mapped[int] = mapped_column(Integer)
    repo_owner: Mapped[str] = mapped_column(String(255))
    repo_name: Mapped[str] = mapped_column(String(255))
    file_path: Mapped[str] = mapped_column(Text)
    success: Mapped[bool] = mapped_column(Boolean)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    imported_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
