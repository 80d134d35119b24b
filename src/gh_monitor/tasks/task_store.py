# src/gh_monitor/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterable, Iterator, Sequence
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

from ..core.errors import NotFoundError, PersistenceError
from .stats import local_now
from .task_models import Assignment, DailyStatistic, Snapshot, Task, TaskKind, TaskState

logger = logging.getLogger(__name__)


def _ts(dt: datetime | None) -> float | None:
    return dt.timestamp() if dt is not None else None


def _dt(ts: Any) -> datetime | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(float(ts)).astimezone()


def _iso(d: date | None) -> str | None:
    return d.isoformat() if d is not None else None


def _date(raw: Any) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(str(raw))
    except ValueError:
        return None


class TaskStore:
    """
    SQLite store for tasks, assignments, snapshots and daily statistics.

    This is the only writer of those tables. Every write operation runs as one
    transaction: on failure it is rolled back and PersistenceError is raised.

    The schema is migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing task columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "monitor.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except PersistenceError:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    @contextlib.contextmanager
    def _write(self, what: str) -> Iterator[sqlite3.Connection]:
        """One all-or-nothing write unit."""
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise PersistenceError(f"{what}: cannot open database: {e}") from e
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(f"{what} failed: {e}") from e
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextlib.contextmanager
    def _read(self, what: str) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise PersistenceError(f"{what}: cannot open database: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            raise PersistenceError(f"{what} failed: {e}") from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._write("schema migration") as conn:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    external_key TEXT NOT NULL UNIQUE,
                    project_item_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    number INTEGER NOT NULL,
                    kind TEXT NOT NULL CHECK (kind IN ('issue', 'pull_request')),
                    state TEXT NOT NULL CHECK (state IN ('open', 'closed', 'merged')),
                    status TEXT,
                    repository TEXT,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    due_date TEXT,
                    added_to_project_at REAL,
                    last_synced_at REAL NOT NULL,
                    CHECK (state != 'merged' OR kind = 'pull_request')
                )
                """
            )

            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("status", "TEXT")
            add_col("repository", "TEXT")
            add_col("due_date", "TEXT")
            add_col("added_to_project_at", "REAL")
            add_col("last_synced_at", "REAL NOT NULL DEFAULT 0")

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_assignments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    assignee TEXT NOT NULL,
                    assigned_at REAL NOT NULL,
                    unassigned_at REAL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_snapshots (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    snapshot_date TEXT NOT NULL,
                    task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    state TEXT NOT NULL,
                    status TEXT,
                    is_overdue INTEGER NOT NULL DEFAULT 0,
                    UNIQUE (task_id, snapshot_date)
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS daily_statistics (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    snapshot_date TEXT NOT NULL UNIQUE,
                    total_tasks INTEGER NOT NULL,
                    open_tasks INTEGER NOT NULL,
                    closed_tasks INTEGER NOT NULL,
                    overdue_tasks INTEGER NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_state ON tasks(state)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_due_date ON tasks(due_date)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_repository ON tasks(repository)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_assignments_assignee ON task_assignments(assignee)")
            # At most one open assignment per (task, assignee).
            cur.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_assignments_open "
                "ON task_assignments(task_id, assignee) WHERE unassigned_at IS NULL"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_snapshots_date ON task_snapshots(snapshot_date)")

    @staticmethod
    def _row_to_task(row: sqlite3.Row, assignees: list[str] | None = None) -> Task:
        return Task(
            key=str(row["external_key"]),
            project_item_id=str(row["project_item_id"]),
            title=str(row["title"] or ""),
            number=int(row["number"]),
            kind=TaskKind.from_db(row["kind"]),
            state=TaskState.from_db(row["state"]),
            status=row["status"],
            repository=row["repository"],
            created_at=_dt(row["created_at"]) or datetime.fromtimestamp(0).astimezone(),
            updated_at=_dt(row["updated_at"]) or datetime.fromtimestamp(0).astimezone(),
            assignees=list(assignees or []),
            due_date=_date(row["due_date"]),
            added_to_project_at=_dt(row["added_to_project_at"]),
        )

    @staticmethod
    def _row_to_daily(row: sqlite3.Row) -> DailyStatistic:
        return DailyStatistic(
            snapshot_date=date.fromisoformat(row["snapshot_date"]),
            total=int(row["total_tasks"]),
            open=int(row["open_tasks"]),
            closed=int(row["closed_tasks"]),
            overdue=int(row["overdue_tasks"]),
        )

    # ---- writes ----

    def reconcile(self, tasks: Sequence[Task], *, now: datetime | None = None) -> None:
        """
        Insert-or-update every task by external key, in one transaction.

        Identity, kind, creation time and project membership time are fixed on first
        insert; later runs only touch the mutable fields and last_synced_at.
        """
        synced_at = _ts(now or local_now())

        with self._write("reconcile") as conn:
            for task in tasks:
                conn.execute(
                    """
                    INSERT INTO tasks (
                        external_key, project_item_id, title, number, kind, state, status,
                        repository, created_at, updated_at, due_date, added_to_project_at, last_synced_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT (external_key) DO UPDATE SET
                        title = excluded.title,
                        state = excluded.state,
                        status = excluded.status,
                        updated_at = excluded.updated_at,
                        due_date = excluded.due_date,
                        last_synced_at = excluded.last_synced_at
                    """,
                    (
                        task.key,
                        task.project_item_id,
                        task.title,
                        task.number,
                        task.kind.value,
                        task.state.value,
                        task.status,
                        task.repository,
                        _ts(task.created_at),
                        _ts(task.updated_at),
                        _iso(task.due_date),
                        _ts(task.added_to_project_at),
                        synced_at,
                    ),
                )

        logger.info("Upserted %d tasks", len(tasks))

    def sync_assignments(self, task_key: str, assignees: Iterable[str], *, now: datetime | None = None) -> None:
        """
        Make the open assignments of a task match `assignees`.

        - assignee no longer reported -> stamp unassigned_at on its open row
        - newly reported assignee     -> new open row
        - unchanged                   -> untouched
        Closed rows are never modified.
        """
        ts = _ts(now or local_now())
        reported = set(assignees)

        with self._write("sync_assignments") as conn:
            row = conn.execute("SELECT id FROM tasks WHERE external_key = ?", (task_key,)).fetchone()
            if row is None:
                raise NotFoundError(task_key)
            task_id = int(row["id"])

            current = {
                r["assignee"]
                for r in conn.execute(
                    "SELECT assignee FROM task_assignments WHERE task_id = ? AND unassigned_at IS NULL",
                    (task_id,),
                )
            }

            removed = current - reported
            added = reported - current

            for assignee in sorted(removed):
                conn.execute(
                    """
                    UPDATE task_assignments
                    SET unassigned_at = ?
                    WHERE task_id = ? AND assignee = ? AND unassigned_at IS NULL
                    """,
                    (ts, task_id, assignee),
                )
            for assignee in sorted(added):
                conn.execute(
                    "INSERT INTO task_assignments (task_id, assignee, assigned_at) VALUES (?, ?, ?)",
                    (task_id, assignee, ts),
                )

        if removed or added:
            logger.debug("Assignments %s: +%s -%s", task_key, sorted(added), sorted(removed))

    def snapshot(self, *, now: datetime | None = None) -> int:
        """
        Record today's (state, status, overdue) for every task that has no snapshot for today.

        Idempotent per day. Returns the number of rows written.
        """
        today = (now or local_now()).date().isoformat()

        with self._write("snapshot") as conn:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO task_snapshots (snapshot_date, task_id, state, status, is_overdue)
                SELECT
                    ?,
                    id,
                    state,
                    status,
                    (due_date IS NOT NULL AND due_date <= ? AND state = 'open')
                FROM tasks
                """,
                (today, today),
            )
            written = cur.rowcount

        logger.info("Task snapshot for %s: %d new rows", today, written)
        return int(written)

    def record_daily_stats(
        self,
        total: int,
        open: int,
        closed: int,
        overdue: int,
        *,
        snapshot_date: date | None = None,
        now: datetime | None = None,
    ) -> None:
        """Upsert the aggregate row for a date (today by default); a later write overwrites the counts."""
        now = now or local_now()
        day = snapshot_date or now.date()

        with self._write("record_daily_stats") as conn:
            conn.execute(
                """
                INSERT INTO daily_statistics
                    (snapshot_date, total_tasks, open_tasks, closed_tasks, overdue_tasks, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (snapshot_date) DO UPDATE SET
                    total_tasks = excluded.total_tasks,
                    open_tasks = excluded.open_tasks,
                    closed_tasks = excluded.closed_tasks,
                    overdue_tasks = excluded.overdue_tasks,
                    created_at = excluded.created_at
                """,
                (day.isoformat(), int(total), int(open), int(closed), int(overdue), _ts(now)),
            )

        logger.debug(
            "Daily statistics %s: total=%s open=%s closed=%s overdue=%s", day, total, open, closed, overdue
        )

    # ---- reads ----

    def count_tasks(self) -> int:
        with self._read("count_tasks") as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def count_daily_statistics(self) -> int:
        with self._read("count_daily_statistics") as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM daily_statistics").fetchone()
            return int(n)

    def list_tasks(self) -> list[Task]:
        """All tasks, newest first, with their currently open assignees."""
        with self._read("list_tasks") as conn:
            assignees: dict[int, list[str]] = {}
            for r in conn.execute(
                "SELECT task_id, assignee FROM task_assignments WHERE unassigned_at IS NULL ORDER BY id ASC"
            ):
                assignees.setdefault(int(r["task_id"]), []).append(r["assignee"])

            rows = conn.execute("SELECT * FROM tasks ORDER BY created_at DESC, id DESC").fetchall()
            return [self._row_to_task(r, assignees.get(int(r["id"]))) for r in rows]

    def get_task(self, task_key: str) -> Task | None:
        with self._read("get_task") as conn:
            row = conn.execute("SELECT * FROM tasks WHERE external_key = ?", (task_key,)).fetchone()
            if row is None:
                return None
            names = [
                r["assignee"]
                for r in conn.execute(
                    "SELECT assignee FROM task_assignments WHERE task_id = ? AND unassigned_at IS NULL ORDER BY id",
                    (int(row["id"]),),
                )
            ]
            return self._row_to_task(row, names)

    def list_assignments(self, task_key: str) -> list[Assignment]:
        """Full assignment history of a task (open and closed), oldest first."""
        with self._read("list_assignments") as conn:
            rows = conn.execute(
                """
                SELECT a.assignee, a.assigned_at, a.unassigned_at
                FROM task_assignments a
                JOIN tasks t ON t.id = a.task_id
                WHERE t.external_key = ?
                ORDER BY a.id ASC
                """,
                (task_key,),
            ).fetchall()
            return [
                Assignment(
                    task_key=task_key,
                    assignee=r["assignee"],
                    assigned_at=_dt(r["assigned_at"]) or datetime.fromtimestamp(0).astimezone(),
                    unassigned_at=_dt(r["unassigned_at"]),
                )
                for r in rows
            ]

    def list_snapshots(self, snapshot_date: date) -> list[Snapshot]:
        with self._read("list_snapshots") as conn:
            rows = conn.execute(
                """
                SELECT t.external_key, s.snapshot_date, s.state, s.status, s.is_overdue
                FROM task_snapshots s
                JOIN tasks t ON t.id = s.task_id
                WHERE s.snapshot_date = ?
                ORDER BY s.id ASC
                """,
                (snapshot_date.isoformat(),),
            ).fetchall()
            return [
                Snapshot(
                    task_key=r["external_key"],
                    snapshot_date=date.fromisoformat(r["snapshot_date"]),
                    state=TaskState.from_db(r["state"]),
                    status=r["status"],
                    is_overdue=bool(r["is_overdue"]),
                )
                for r in rows
            ]

    def get_history(self, days: int = 30, *, today: date | None = None) -> list[DailyStatistic]:
        """Daily rows from `days` days ago through today, oldest first."""
        today = today or local_now().date()
        since = today - timedelta(days=max(0, int(days)))
        with self._read("get_history") as conn:
            rows = conn.execute(
                """
                SELECT snapshot_date, total_tasks, open_tasks, closed_tasks, overdue_tasks
                FROM daily_statistics
                WHERE snapshot_date >= ?
                ORDER BY snapshot_date ASC
                """,
                (since.isoformat(),),
            ).fetchall()
            return [self._row_to_daily(r) for r in rows]

    def database_status(self) -> dict[str, Any]:
        """Row counts and date ranges of the history tables (diagnostics)."""
        with self._read("database_status") as conn:
            snaps = conn.execute(
                """
                SELECT
                    COUNT(*) AS total_snapshots,
                    MIN(snapshot_date) AS earliest_date,
                    MAX(snapshot_date) AS latest_date,
                    COUNT(DISTINCT snapshot_date) AS distinct_dates
                FROM task_snapshots
                """
            ).fetchone()
            daily = conn.execute(
                """
                SELECT
                    COUNT(*) AS total_records,
                    MIN(snapshot_date) AS earliest_date,
                    MAX(snapshot_date) AS latest_date
                FROM daily_statistics
                """
            ).fetchone()
            recent = conn.execute(
                """
                SELECT snapshot_date, total_tasks, open_tasks, closed_tasks, overdue_tasks
                FROM daily_statistics
                ORDER BY snapshot_date DESC
                LIMIT 10
                """
            ).fetchall()

            return {
                "task_snapshots": dict(snaps),
                "daily_statistics": dict(daily),
                "recent_statistics": [self._row_to_daily(r) for r in recent],
            }
