# WORKFLOW: Command-line refresh for cron-style schedulers that do not call the HTTP trigger.
# Used by: External scheduler, operators running a one-off refresh
# Functions:
# 1. parse_args() - --source (repeatable), --init-db, --workers, --deadline
# 2. main() - Build orchestrator, run, print JSON summary, exit non-zero on any failure
#
# CLI flow: Args -> (init_db) -> RefreshOrchestrator.run() -> RefreshResponse JSON -> exit code

"""
Run one sanctions source refresh from the command line.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from api.schemas.response import RefreshResponse  # noqa: E402
from core.config import settings  # noqa: E402
from db.session import get_session_factory, init_db  # noqa: E402
from etl.errors import StoreUnavailableError  # noqa: E402
from etl.fetchers import SourceFetcher  # noqa: E402
from etl.orchestrator import RefreshOrchestrator  # noqa: E402
from etl.sources import SourceName  # noqa: E402

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_UNAVAILABLE = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Refresh sanctions sources")
    parser.add_argument(
        "--source",
        action="append",
        choices=[s.value for s in SourceName],
        help="Source to refresh (repeatable); defaults to all",
    )
    parser.add_argument("--init-db", action="store_true", help="Create tables before running")
    parser.add_argument("--workers", type=int, default=None, help="Parallel source workers")
    parser.add_argument("--deadline", type=float, default=None, help="Invocation deadline in seconds")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    if args.init_db:
        init_db()

    names = [SourceName(s) for s in args.source] if args.source else None
    with SourceFetcher() as fetcher:
        orchestrator = RefreshOrchestrator(
            get_session_factory(),
            fetcher,
            max_workers=args.workers,
            deadline_seconds=args.deadline,
        )
        try:
            summary = orchestrator.run(names)
        except StoreUnavailableError as e:
            logger.error(f"Refresh could not start: {e}")
            return EXIT_UNAVAILABLE

    print(RefreshResponse.from_summary(summary).model_dump_json(indent=2))
    return EXIT_OK if summary.ok else EXIT_PARTIAL


if __name__ == "__main__":
    sys.exit(main())
