import logging
from datetime import date
from typing import Callable, ContextManager, Optional, Protocol, Sequence

from sqlalchemy.orm import Session

from models import Transaction
from periods import Scope, resolve_scope, today_local
from services import TransactionService, maintenance_lock

logger = logging.getLogger(__name__)


class Archiver(Protocol):
    def archive(self, scope: Scope, records: Sequence[Transaction]) -> int: ...


class CountingArchiver:
    """Reports what would be archived without moving anything."""

    def archive(self, scope: Scope, records: Sequence[Transaction]) -> int:
        logger.info(
            f"archive_pending: scope={scope.year}-{scope.month:02d} "
            f"transactions={len(records)}"
        )
        return len(records)


class ArchiveSweep:
    def __init__(
        self,
        session_factory: Callable[[], ContextManager[Session]],
        archiver: Optional[Archiver] = None,
        clock: Optional[Callable[[], date]] = None,
    ) -> None:
        self.session_factory = session_factory
        self.archiver = archiver or CountingArchiver()
        self.clock = clock or today_local

    def run(self, source: str = "manual") -> Optional[int]:
        scope = resolve_scope(self.clock()).previous()
        logger.info(f"archive_run: source={source} scope={scope.year}-{scope.month:02d}")
        try:
            with maintenance_lock:
                with self.session_factory() as session:
                    records = TransactionService(session, clock=self.clock).for_scope(
                        scope
                    )
                    count = self.archiver.archive(scope, records)
        except Exception:
            # The next scheduled run is the retry.
            logger.exception(f"archive_run_failed: source={source}")
            return None
        logger.info(f"archive_run: source={source} archived={count}")
        return count
