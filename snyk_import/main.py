import argparse
import logging
import signal
import threading

from sqlalchemy.exc import SQLAlchemyError

from snyk_import.config import ConfigError, get_settings
from snyk_import.database import build_session_factory
from snyk_import.pipeline import ImportPipeline
from snyk_import.scheduler import start_scheduler


logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import discovered dependency files into Snyk")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run", help="import every active repository once")

    schedule_parser = subparsers.add_parser("schedule", help="start daily scheduler")
    schedule_parser.add_argument("--run-now", action="store_true", help="also run once immediately")

    return parser.parse_args()


def _cancel_on_signals(cancel_event: threading.Event) -> None:
    def handle(signum, _frame) -> None:
        logger.warning("shutdown requested, cancelling pending imports", extra={"signal": signum})
        cancel_event.set()

    signal.signal(signal.SIGINT, handle)
    signal.signal(signal.SIGTERM, handle)


def main() -> None:
    args = parse_args()
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    try:
        settings.require_credentials()
        session_factory = build_session_factory(settings.database_url)
    except ConfigError as exc:
        logger.error("startup aborted: %s", exc)
        raise SystemExit(1) from exc
    except SQLAlchemyError as exc:
        logger.error("startup aborted: result store unavailable: %s", exc)
        raise SystemExit(1) from exc

    if args.command == "schedule":
        start_scheduler(settings, session_factory, run_now=args.run_now)
        return

    cancel_event = threading.Event()
    _cancel_on_signals(cancel_event)

    try:
        summary = ImportPipeline(settings, session_factory).run(cancel_event=cancel_event)
    except SQLAlchemyError as exc:
        logger.exception("failed to load repository inventory")
        raise SystemExit(1) from exc

    print(
        "repositories={repositories} failed_repositories={failed_repositories} outcomes={outcomes} succeeded={succeeded} failed={failed} written={written} write_errors={write_errors} cancelled={cancelled}".format(
            repositories=summary.repositories,
            failed_repositories=summary.failed_repositories,
            outcomes=summary.outcomes,
            succeeded=summary.imports_succeeded,
            failed=summary.imports_failed,
            written=summary.records_written,
            write_errors=summary.write_errors,
            cancelled=summary.cancelled,
        )
    )


if __name__ == "__main__":
    main()
