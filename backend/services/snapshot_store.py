"""Relational store of daily issue snapshots.

Writes replace a whole day at once. Reads go through a ``ReadView``, which
pins every query issued for one request to a single point in time.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import create_engine, delete, event, func, insert, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from services.dates import ZERO_DATE, format_day, to_day
from services.errors import ConfigError, NotFound, StoreFailure
from services.filters import (
    IssueFilter,
    breakdown_series_statements,
    breakdown_statements,
    filter_clause,
)
from services.models import Breakdown, Issue, has_customer_case
from services.schema import issue_keywords, issues, metadata

logger = logging.getLogger(__name__)

DEFAULT_POOL_SIZE = 4


def make_engine(url: str, pool_size: int = DEFAULT_POOL_SIZE) -> Engine:
    """Create an engine for the snapshot database."""
    if url.startswith("sqlite"):
        # Connections are handed between request and worker threads.
        engine = create_engine(url, connect_args={"check_same_thread": False})
        _use_sqlite_transactions(engine)
        return engine
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=pool_size + 1,
        max_overflow=pool_size,
    )


def _use_sqlite_transactions(engine: Engine):
    """Make pysqlite honour transactions for reads as well as writes.

    pysqlite only emits BEGIN before DML, so a reading connection would see
    every commit made in the meantime. BEGIN is emitted by hand instead, and
    WAL journaling keeps an open read transaction from blocking ingestion.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL")
        finally:
            cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class SnapshotStore:
    """Read/write access to the issue snapshot tables."""

    def __init__(self, engine: Engine, pool_size: int = DEFAULT_POOL_SIZE):
        self.engine = engine
        self.pool_size = max(1, pool_size)

    @classmethod
    def from_url(cls, url: str, pool_size: int = DEFAULT_POOL_SIZE) -> SnapshotStore:
        return cls(make_engine(url, pool_size), pool_size)

    def create_schema(self):
        metadata.create_all(self.engine)

    def close(self):
        self.engine.dispose()

    def begin(self) -> ReadView:
        """Open a read-only view of the store at the current point in time."""
        try:
            return ReadView(self.engine, self.pool_size)
        except SQLAlchemyError as e:
            logger.error(f"Unable to open read transaction: {e}")
            raise StoreFailure("Unable to read from the snapshot database") from e

    def replace_day(self, day, snapshot: Iterable[Issue]) -> int:
        """Replace every stored row for ``day`` with the given issues.

        The delete and the bulk insert share one transaction, so readers see
        either the old snapshot or the new one, never a mix.

        Returns:
            Number of issues stored
        """
        day = to_day(day)
        by_id = {}
        for issue in snapshot:
            if issue.id in by_id:
                logger.warning(f"Duplicate issue {issue.id} in snapshot for {format_day(day)}, keeping first")
                continue
            by_id[issue.id] = issue

        issue_rows = []
        keyword_rows = []
        for issue in by_id.values():
            issue_rows.append({
                "id": issue.id,
                "datestamp": day,
                "component": issue.component or "",
                "target_release": issue.target_release or "",
                "assigned_to": issue.assignee or "",
                "status": issue.status or "",
                "summary": issue.summary or "",
                "cf_pm_score": int(issue.priority_score or 0),
                "externals": json.dumps(issue.externals or []),
                "customer_case": has_customer_case(issue.externals),
            })
            for keyword in sorted(set(issue.keywords)):
                keyword_rows.append({"issue_id": issue.id, "datestamp": day, "keyword": keyword})

        try:
            with self.engine.begin() as conn:
                conn.execute(delete(issue_keywords).where(issue_keywords.c.datestamp == day))
                removed = conn.execute(delete(issues).where(issues.c.datestamp == day)).rowcount
                logger.info(f"Removed {removed} issues for date: {format_day(day)}")
                if issue_rows:
                    conn.execute(insert(issues), issue_rows)
                if keyword_rows:
                    conn.execute(insert(issue_keywords), keyword_rows)
        except SQLAlchemyError as e:
            logger.error(f"Error storing snapshot for {format_day(day)}, rolled back: {e}")
            raise StoreFailure(f"Unable to store snapshot for {format_day(day)}") from e

        logger.info(f"Stored {len(issue_rows)} issues for date: {format_day(day)}")
        return len(issue_rows)


class ReadView:
    """A read-only, fixed point-in-time view used for one request.

    On PostgreSQL a leader transaction exports its snapshot and every worker
    connection imports it, so queries can run in parallel and still agree.
    Other databases get a single connection shared under a lock, whose
    transaction is pinned by a first read when the view opens.
    """

    def __init__(self, engine: Engine, pool_size: int = DEFAULT_POOL_SIZE):
        self._engine = engine
        self._lock = threading.Lock()
        self._idle = queue.LifoQueue()
        self._workers = {}
        self._closed = False
        self.shared = engine.dialect.name != "postgresql"
        self.pool_size = 1 if self.shared else pool_size

        self._leader = self._readonly_connection()
        self._snapshot_id = None
        try:
            self._leader_tx = self._leader.begin()
            if self.shared:
                # SQLite takes the read snapshot at the first read, not at BEGIN.
                self._leader.execute(select(issues.c.id).limit(1)).all()
            else:
                self._snapshot_id = self._leader.execute(text("SELECT pg_export_snapshot()")).scalar_one()
        except SQLAlchemyError:
            self._leader.close()
            raise
        self._slots = threading.BoundedSemaphore(self.pool_size)

    def _readonly_connection(self):
        conn = self._engine.connect()
        if not self.shared:
            conn.execution_options(isolation_level="REPEATABLE READ", postgresql_readonly=True)
        return conn

    def _new_worker(self):
        conn = self._readonly_connection()
        try:
            tx = conn.begin()
            conn.exec_driver_sql(f"SET TRANSACTION SNAPSHOT '{self._snapshot_id}'")
        except SQLAlchemyError:
            conn.close()
            raise
        with self._lock:
            self._workers[conn] = tx
        return conn

    def _discard(self, conn):
        # A failed statement aborts the worker's transaction for good.
        with self._lock:
            tx = self._workers.pop(conn, None)
        try:
            if tx is not None:
                tx.rollback()
        finally:
            conn.close()

    @contextmanager
    def connection(self):
        """Borrow a connection bound to this view's snapshot.

        A worker whose statement failed is closed instead of being returned
        to the idle pool; the next borrower gets a fresh worker.
        """
        if self._closed:
            raise StoreFailure("Read transaction is already closed")
        if self.shared:
            with self._lock:
                yield self._leader
            return

        with self._slots:
            try:
                conn = self._idle.get_nowait()
            except queue.Empty:
                conn = self._new_worker()
            try:
                yield conn
            except Exception:
                self._discard(conn)
                raise
            self._idle.put(conn)

    def close(self):
        """End every transaction of the view. Nothing was written."""
        if self._closed:
            return
        self._closed = True
        with self._lock:
            workers = list(self._workers.items())
            self._workers.clear()
        for conn, tx in workers:
            try:
                tx.rollback()
            finally:
                conn.close()
        try:
            self._leader_tx.rollback()
        finally:
            self._leader.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _execute(self, statement, what: str):
        try:
            with self.connection() as conn:
                return conn.execute(statement).all()
        except SQLAlchemyError as e:
            logger.error(f"Error querying for {what}: {e}")
            raise StoreFailure(f"Error querying for {what}") from e

    def _scalar(self, statement, what: str):
        rows = self._execute(statement, what)
        return rows[0][0] if rows else None

    # Dates

    def get_latest_date(self) -> date:
        latest = self._scalar(select(func.max(issues.c.datestamp)), "latest date")
        if latest is None:
            raise NotFound("No snapshots have been recorded")
        return to_day(latest)

    def get_earliest_date(self) -> date:
        earliest = self._scalar(select(func.min(issues.c.datestamp)), "earliest date")
        if earliest is None:
            raise NotFound("No snapshots have been recorded")
        return to_day(earliest)

    def get_earliest_date_for_targets(self, targets) -> date:
        targets = [t for t in (targets or []) if t]
        if not targets:
            raise ConfigError(f"Unable to get earliest date: invalid targets {targets!r}")
        earliest = self._scalar(
            select(func.min(issues.c.datestamp)).where(issues.c.target_release.in_(targets)),
            f"earliest date for targets {targets!r}",
        )
        if earliest is None:
            raise NotFound(f"No snapshot carries targets {', '.join(targets)}")
        return to_day(earliest)

    def has_snapshot(self, day) -> bool:
        day = to_day(day)
        count = self._scalar(
            select(func.count(issues.c.id)).where(issues.c.datestamp == day),
            f"snapshot on {format_day(day)}",
        )
        return bool(count)

    def get_previous_date(self, day) -> date:
        """Latest snapshot date before ``day``, or ZERO_DATE if there is none.

        Raises:
            NotFound: ``day`` itself has no snapshot
        """
        day = to_day(day)
        if not self.has_snapshot(day):
            raise NotFound(f"No snapshot exists for {format_day(day)}")
        previous = self._scalar(
            select(func.max(issues.c.datestamp)).where(issues.c.datestamp < day),
            f"date before {format_day(day)}",
        )
        if previous is None:
            return ZERO_DATE
        return to_day(previous)

    def get_snapshot_dates(self, start=None, end=None) -> list:
        statement = select(issues.c.datestamp).distinct().order_by(issues.c.datestamp)
        if start is not None:
            statement = statement.where(issues.c.datestamp >= to_day(start))
        if end is not None:
            statement = statement.where(issues.c.datestamp <= to_day(end))
        return [to_day(row[0]) for row in self._execute(statement, "snapshot dates")]

    # Issues and counts

    def get_issues(self, day, issue_filter: Optional[IssueFilter] = None) -> list:
        """Issues in the ``day`` snapshot, highest priority score first."""
        day = to_day(day)
        issue_filter = issue_filter or IssueFilter()
        first_seen = (
            select(issues.c.id, func.min(issues.c.datestamp).label("first_seen"))
            .group_by(issues.c.id)
            .subquery("first_seen")
        )
        statement = (
            select(issues, first_seen.c.first_seen)
            .join(first_seen, first_seen.c.id == issues.c.id)
            .where(issues.c.datestamp == day, filter_clause(issues, issue_filter))
            .order_by(issues.c.cf_pm_score.desc(), issues.c.id)
        )
        rows = self._execute(statement, f"issues on {format_day(day)}")

        keywords = defaultdict(list)
        keyword_rows = self._execute(
            select(issue_keywords.c.issue_id, issue_keywords.c.keyword)
            .where(issue_keywords.c.datestamp == day)
            .order_by(issue_keywords.c.keyword),
            f"keywords on {format_day(day)}",
        )
        for issue_id, keyword in keyword_rows:
            keywords[issue_id].append(keyword)

        result = []
        for row in rows:
            try:
                externals = json.loads(row.externals or "[]")
            except ValueError as e:
                logger.warning(f"Unable to parse externals of issue {row.id}: {e}")
                externals = []
            result.append(Issue(
                id=row.id,
                component=row.component,
                target_release=row.target_release,
                assignee=row.assigned_to,
                status=row.status,
                summary=row.summary,
                keywords=tuple(keywords.get(row.id, ())),
                priority_score=row.cf_pm_score,
                externals=externals,
                datestamp=day,
                age=(day - to_day(row.first_seen)).days,
            ))
        return result

    def get_breakdown(self, start, end, issue_filter: Optional[IssueFilter] = None) -> Breakdown:
        """Total/new/closed counts for ``end`` compared with ``start``."""
        start, end = to_day(start), to_day(end)
        issue_filter = issue_filter or IssueFilter()
        if not self.has_snapshot(end):
            return Breakdown()

        counts = {}
        for name, statement in breakdown_statements(start, end, issue_filter).items():
            counts[name] = self._scalar(
                statement, f"{name.upper()} issue count on {format_day(end)}"
            ) or 0
        return Breakdown(**counts)

    def get_breakdowns(self, issue_filter: Optional[IssueFilter] = None) -> dict:
        """Breakdowns for every snapshot date, keyed by date.

        Each date is compared with the previous snapshot date, exactly as
        ``get_breakdown(get_previous_date(d), d)`` would.
        """
        issue_filter = issue_filter or IssueFilter()
        counts = {}
        for name, statement in breakdown_series_statements(issue_filter).items():
            counts[name] = {
                to_day(day): count
                for day, count in self._execute(statement, f"{name.upper()} issue counts")
            }

        if not counts["total"].keys() == counts["new"].keys() == counts["closed"].keys():
            logger.error(
                f"Breakdown key lengths do not match (total|new|closed): "
                f"{len(counts['total'])}|{len(counts['new'])}|{len(counts['closed'])}"
            )
            raise StoreFailure("Inconsistent breakdown results")

        return {
            day: Breakdown(
                total=total,
                new=counts["new"][day],
                closed=counts["closed"][day],
            )
            for day, total in counts["total"].items()
        }
