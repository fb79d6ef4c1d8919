"""
core/db.py -- Engine construction and transient-failure policy shared by stores.

Both auth/store.py and tasks/store.py go through make_engine() so SQLite
connection quirks are handled in one place, and wrap every public method in
retry_transient so a single OperationalError (e.g. "database is locked") is
retried once before it surfaces as a 500.

Only OperationalError is retried. IntegrityError and friends are logic
errors -- retrying a duplicate-username insert would just fail again.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or tasks/.
"""

import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from tenacity import before_sleep_log, retry, retry_if_exception_type, stop_after_attempt, wait_fixed

logger = logging.getLogger("taskguard.db")

retry_transient = retry(
    retry=retry_if_exception_type(OperationalError),
    stop=stop_after_attempt(2),
    wait=wait_fixed(0.05),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. In-memory databases report "memory" and
    ignore the request.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an Engine for db_url with SQLite-specific connection settings.

    check_same_thread=False is required because FastAPI runs sync route
    handlers in a thread pool.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine
