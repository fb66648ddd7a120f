from dataclasses import dataclass, field
import logging
import queue
import threading

from sqlalchemy.orm import Session, sessionmaker

from snyk_import.config import Settings
from snyk_import.db_models import utc_now
from snyk_import.import_store import upsert_import_result
from snyk_import.inventory import list_candidate_files, load_active_repositories
from snyk_import.rate_gate import RateGate, RateGateCancelled
from snyk_import.schemas import ImportOutcome, ImportRunSummary, Repository
from snyk_import.snyk_client import SnykClient, SnykImportError


logger = logging.getLogger(__name__)

# Put on the handoff once every worker has finished.
_HANDOFF_CLOSED = object()


@dataclass
class _RunCounters:
    lock: threading.Lock = field(default_factory=threading.Lock)
    failed_repositories: int = 0
    outcomes: int = 0
    imports_succeeded: int = 0
    imports_failed: int = 0
    records_written: int = 0
    write_errors: int = 0


class ImportPipeline:
    def __init__(
        self,
        settings: Settings,
        session_factory: sessionmaker[Session],
        *,
        client: SnykClient | None = None,
        rate_gate: RateGate | None = None,
    ) -> None:
        self.settings = settings
        self.session_factory = session_factory
        self.client = client or SnykClient(
            api_url=settings.snyk_api_url,
            token=settings.snyk_token,
            timeout_seconds=settings.request_timeout_seconds,
        )
        self.rate_gate = rate_gate or RateGate(
            interval_seconds=settings.rate_interval_seconds,
            burst=settings.rate_burst,
        )

    def run(self, *, cancel_event: threading.Event | None = None) -> ImportRunSummary:
        if cancel_event is None:
            cancel_event = threading.Event()

        # Inventory failures propagate: nothing has been submitted yet.
        with self.session_factory() as db:
            repositories = load_active_repositories(db)
        logger.info("import run started", extra={"repositories": len(repositories)})

        handoff: queue.Queue = queue.Queue(maxsize=max(0, self.settings.handoff_capacity))
        counters = _RunCounters()

        workers = [
            threading.Thread(
                target=self._process_repository,
                args=(repository, handoff, cancel_event, counters),
                name=f"import-{repository.owner}/{repository.name}",
            )
            for repository in repositories
        ]
        writer = threading.Thread(target=self._write_results, args=(handoff, counters), name="import-writer")

        started: list[threading.Thread] = []
        writer.start()
        try:
            for worker in workers:
                worker.start()
                started.append(worker)
        finally:
            # The writer must always be released, even if a worker failed to start.
            for worker in started:
                worker.join()
            handoff.put(_HANDOFF_CLOSED)
            writer.join()

        summary = ImportRunSummary(
            repositories=len(repositories),
            failed_repositories=counters.failed_repositories,
            outcomes=counters.outcomes,
            imports_succeeded=counters.imports_succeeded,
            imports_failed=counters.imports_failed,
            records_written=counters.records_written,
            write_errors=counters.write_errors,
            cancelled=cancel_event.is_set(),
        )
        logger.info(
            "import run finished",
            extra={
                "repositories": summary.repositories,
                "outcomes": summary.outcomes,
                "imports_failed": summary.imports_failed,
                "write_errors": summary.write_errors,
                "cancelled": summary.cancelled,
            },
        )
        return summary

    def _process_repository(
        self,
        repository: Repository,
        handoff: queue.Queue,
        cancel_event: threading.Event,
        counters: _RunCounters,
    ) -> None:
        log_context = {"repo_owner": repository.owner, "repo_name": repository.name}
        try:
            with self.session_factory() as db:
                files = list_candidate_files(db, owner=repository.owner, name=repository.name)
        except Exception:
            # Only this repository is abandoned; sibling workers carry on.
            logger.exception("scan results query failed", extra=log_context)
            with counters.lock:
                counters.failed_repositories += 1
            return

        for candidate in files:
            try:
                self.rate_gate.acquire(cancel_event)
            except RateGateCancelled:
                logger.warning("repository import cancelled", extra={**log_context, "file_path": candidate.path})
                return

            error: str | None = None
            try:
                self.client.import_file(repository, candidate.path)
            except SnykImportError as exc:
                error = str(exc)
                logger.warning("snyk import failed", extra={**log_context, "file_path": candidate.path, "error": error})
            except Exception as exc:
                error = f"unexpected import error: {exc!r}"
                logger.exception("snyk import crashed", extra={**log_context, "file_path": candidate.path})

            outcome = ImportOutcome(
                repo_id=repository.id,
                owner=repository.owner,
                name=repository.name,
                file_path=candidate.path,
                succeeded=error is None,
                error=error,
                completed_at=utc_now(),
            )
            with counters.lock:
                counters.outcomes += 1
            handoff.put(outcome)

    def _write_results(self, handoff: queue.Queue, counters: _RunCounters) -> None:
        with self.session_factory() as db:
            while True:
                outcome = handoff.get()
                if outcome is _HANDOFF_CLOSED:
                    return

                with counters.lock:
                    if outcome.succeeded:
                        counters.imports_succeeded += 1
                    else:
                        counters.imports_failed += 1

                try:
                    upsert_import_result(db, outcome)
                except Exception:
                    logger.exception(
                        "failed to write import result",
                        extra={"repo_owner": outcome.owner, "repo_name": outcome.name, "file_path": outcome.file_path},
                    )
                    with counters.lock:
                        counters.write_errors += 1
                    continue

                with counters.lock:
                    counters.records_written += 1
