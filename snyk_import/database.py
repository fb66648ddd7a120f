from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from snyk_import.db_models import Base, SnykImport


def build_session_factory(database_url: str) -> sessionmaker[Session]:
    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    engine = create_engine(database_url, future=True, pool_pre_ping=True, connect_args=connect_args)
    # Only the results table is ours to provision; this also fails fast when the store is unreachable.
    Base.metadata.create_all(engine, tables=[SnykImport.__table__])
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
