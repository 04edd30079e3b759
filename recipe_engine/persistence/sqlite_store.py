"""SQLite-backed execution store."""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

import structlog

from ..errors import ConcurrencyConflictError, PersistenceError
from ..state.models import (
    Execution,
    ExecutionStatus,
    PreparationQuestionStatus,
    StepExecution,
    StepStatus,
    phase_from_columns,
)
from ..utils.time import format_timestamp, parse_timestamp

SCHEMA = """
    CREATE TABLE IF NOT EXISTS executions (
        id TEXT PRIMARY KEY,
        task_id TEXT NOT NULL UNIQUE,
        recipe_id TEXT NOT NULL,
        status TEXT NOT NULL,
        current_step_id TEXT,
        current_step_order INTEGER,
        current_step_progress REAL NOT NULL DEFAULT 0,
        total_elapsed_time REAL NOT NULL DEFAULT 0,
        pause_reason TEXT,
        remaining_time_at_pause REAL,
        started_at TEXT,
        paused_at TEXT,
        resumed_at TEXT,
        completed_at TEXT,
        created_at TEXT,
        version INTEGER NOT NULL DEFAULT 1
    );

    CREATE TABLE IF NOT EXISTS step_executions (
        id TEXT PRIMARY KEY,
        execution_id TEXT NOT NULL REFERENCES executions(id),
        recipe_step_id TEXT NOT NULL,
        step_order INTEGER NOT NULL,
        status TEXT NOT NULL,
        progress REAL NOT NULL DEFAULT 0,
        actual_temperature REAL,
        actual_duration REAL,
        step_elapsed_time REAL NOT NULL DEFAULT 0,
        started_at TEXT,
        resumed_at TEXT,
        paused_at TEXT,
        completed_at TEXT,
        notes TEXT,
        UNIQUE(execution_id, step_order)
    );

    CREATE TABLE IF NOT EXISTS preparation_question_statuses (
        id TEXT PRIMARY KEY,
        execution_id TEXT NOT NULL REFERENCES executions(id),
        preparation_step_id TEXT NOT NULL,
        question_id TEXT NOT NULL,
        checked INTEGER NOT NULL DEFAULT 0,
        created_at TEXT,
        updated_at TEXT,
        UNIQUE(execution_id, preparation_step_id, question_id)
    );

    CREATE INDEX IF NOT EXISTS idx_step_executions_execution_id
        ON step_executions(execution_id);

    CREATE INDEX IF NOT EXISTS idx_question_statuses_execution_id
        ON preparation_question_statuses(execution_id);
"""

EXECUTION_COLUMNS = (
    "id", "task_id", "recipe_id", "status", "current_step_id", "current_step_order",
    "current_step_progress", "total_elapsed_time", "pause_reason",
    "remaining_time_at_pause", "started_at", "paused_at", "resumed_at",
    "completed_at", "created_at", "version",
)

STEP_COLUMNS = (
    "id", "execution_id", "recipe_step_id", "step_order", "status", "progress",
    "actual_temperature", "actual_duration", "step_elapsed_time", "started_at",
    "resumed_at", "paused_at", "completed_at", "notes",
)


def _execution_row(execution: Execution) -> dict[str, Any]:
    return {
        "id": execution.id,
        "task_id": execution.task_id,
        "recipe_id": execution.recipe_id,
        "status": execution.status.value,
        "current_step_id": execution.current_step_id,
        "current_step_order": execution.current_step_order,
        "current_step_progress": execution.current_step_progress,
        "total_elapsed_time": execution.total_elapsed_time,
        "pause_reason": execution.pause_reason,
        "remaining_time_at_pause": execution.remaining_time_at_pause,
        "started_at": format_timestamp(execution.started_at),
        "paused_at": format_timestamp(execution.paused_at),
        "resumed_at": format_timestamp(execution.resumed_at),
        "completed_at": format_timestamp(execution.completed_at),
        "created_at": format_timestamp(execution.created_at),
        "version": execution.version,
    }


def _execution_from_row(row: sqlite3.Row) -> Execution:
    phase = phase_from_columns(
        ExecutionStatus(row["status"]),
        step_id=row["current_step_id"],
        step_order=row["current_step_order"],
        step_progress=row["current_step_progress"],
        remaining_time_at_pause=row["remaining_time_at_pause"],
        pause_reason=row["pause_reason"],
    )
    return Execution(
        id=row["id"],
        task_id=row["task_id"],
        recipe_id=row["recipe_id"],
        phase=phase,
        total_elapsed_time=row["total_elapsed_time"],
        started_at=parse_timestamp(row["started_at"]),
        paused_at=parse_timestamp(row["paused_at"]),
        resumed_at=parse_timestamp(row["resumed_at"]),
        completed_at=parse_timestamp(row["completed_at"]),
        created_at=parse_timestamp(row["created_at"]),
        version=row["version"],
    )


def _step_row(step: StepExecution) -> dict[str, Any]:
    return {
        "id": step.id,
        "execution_id": step.execution_id,
        "recipe_step_id": step.recipe_step_id,
        "step_order": step.step_order,
        "status": step.status.value,
        "progress": step.progress,
        "actual_temperature": step.actual_temperature,
        "actual_duration": step.actual_duration,
        "step_elapsed_time": step.step_elapsed_time,
        "started_at": format_timestamp(step.started_at),
        "resumed_at": format_timestamp(step.resumed_at),
        "paused_at": format_timestamp(step.paused_at),
        "completed_at": format_timestamp(step.completed_at),
        "notes": step.notes,
    }


def _step_from_row(row: sqlite3.Row) -> StepExecution:
    return StepExecution(
        id=row["id"],
        execution_id=row["execution_id"],
        recipe_step_id=row["recipe_step_id"],
        step_order=row["step_order"],
        status=StepStatus(row["status"]),
        progress=row["progress"],
        actual_temperature=row["actual_temperature"],
        actual_duration=row["actual_duration"],
        step_elapsed_time=row["step_elapsed_time"],
        started_at=parse_timestamp(row["started_at"]),
        resumed_at=parse_timestamp(row["resumed_at"]),
        paused_at=parse_timestamp(row["paused_at"]),
        completed_at=parse_timestamp(row["completed_at"]),
        notes=row["notes"],
    )


def _question_from_row(row: sqlite3.Row) -> PreparationQuestionStatus:
    return PreparationQuestionStatus(
        id=row["id"],
        execution_id=row["execution_id"],
        preparation_step_id=row["preparation_step_id"],
        question_id=row["question_id"],
        checked=bool(row["checked"]),
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


def _insert_sql(table: str, columns: Sequence[str]) -> str:
    names = ", ".join(columns)
    params = ", ".join(f":{c}" for c in columns)
    return f"INSERT INTO {table} ({names}) VALUES ({params})"


class SqliteExecutionStore:
    """
    SQLite-based execution persistence layer.

    Every call opens its own connection, so ``:memory:`` databases do not
    persist between calls; use a file path.
    """

    def __init__(self, db_path: str = "executions.db", timeout: float = 30.0):
        self.db_path = Path(db_path)
        self.timeout = timeout
        self.logger = structlog.get_logger("execution.store")
        self._lock = threading.RLock()
        self._local = threading.local()

        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.executescript(SCHEMA)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the block on one connection inside BEGIN IMMEDIATE / COMMIT."""
        if getattr(self._local, "conn", None) is not None:
            # Nested: join the outer transaction
            yield
            return

        with self._lock:
            conn = self._connect()
            self._local.conn = conn
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                self._local.conn = None
                conn.close()
                raise PersistenceError(f"Could not open transaction: {e}", target=str(self.db_path)) from e

            try:
                yield
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                self._rollback(conn)
                raise PersistenceError(
                    f"Transaction failed: {e}", operation="commit", target=str(self.db_path)
                ) from e
            except BaseException:
                self._rollback(conn)
                raise
            finally:
                self._local.conn = None
                conn.close()

    def _rollback(self, conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        self.logger.debug("Transaction rolled back", db_path=str(self.db_path))

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Connection of the active transaction, or a short-lived autocommit one."""
        active: Optional[sqlite3.Connection] = getattr(self._local, "conn", None)
        if active is not None:
            try:
                yield active
            except sqlite3.Error as e:
                raise PersistenceError(f"Database error: {e}", target=str(self.db_path)) from e
            return

        conn = None
        try:
            conn = self._connect()
            yield conn
        except sqlite3.Error as e:
            self.logger.error("Database error", error=str(e), db_path=str(self.db_path))
            raise PersistenceError(f"Database error: {e}", target=str(self.db_path)) from e
        finally:
            if conn:
                conn.close()

    def get_execution_for_task(self, task_id: str) -> Optional[Execution]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM executions WHERE task_id = ?", (task_id,)
            ).fetchone()
        return _execution_from_row(row) if row else None

    def insert_execution(self, execution: Execution, steps: Sequence[StepExecution]) -> Execution:
        stored = execution.with_version(1)
        with self._get_connection() as conn:
            try:
                conn.execute(_insert_sql("executions", EXECUTION_COLUMNS), _execution_row(stored))
            except sqlite3.IntegrityError as e:
                raise PersistenceError(
                    f"Execution already exists for task {execution.task_id}",
                    operation="insert_execution",
                    target="executions",
                ) from e
            conn.executemany(
                _insert_sql("step_executions", STEP_COLUMNS),
                [_step_row(step) for step in steps],
            )

        self.logger.info(
            "Execution stored",
            execution_id=stored.id,
            task_id=stored.task_id,
            step_count=len(steps),
        )
        return stored

    def save_execution(self, execution: Execution) -> Execution:
        stored = execution.with_version(execution.version + 1)
        row = _execution_row(stored)
        assignments = ", ".join(f"{c} = :{c}" for c in EXECUTION_COLUMNS if c != "id")

        with self._get_connection() as conn:
            cursor = conn.execute(
                f"UPDATE executions SET {assignments} WHERE id = :id AND version = :expected_version",
                {**row, "expected_version": execution.version},
            )
            if cursor.rowcount == 0:
                current = conn.execute(
                    "SELECT version FROM executions WHERE id = ?", (execution.id,)
                ).fetchone()
                if current is None:
                    raise PersistenceError(
                        f"Execution {execution.id} does not exist",
                        operation="save_execution",
                        target="executions",
                    )
                raise ConcurrencyConflictError(
                    f"Execution {execution.id} was modified concurrently",
                    execution_id=execution.id,
                    expected_version=execution.version,
                    actual_version=current["version"],
                )
        return stored

    def list_steps(self, execution_id: str) -> list[StepExecution]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM step_executions WHERE execution_id = ? ORDER BY step_order ASC",
                (execution_id,),
            ).fetchall()
        return [_step_from_row(row) for row in rows]

    def save_steps(self, steps: Sequence[StepExecution]) -> None:
        assignments = ", ".join(f"{c} = :{c}" for c in STEP_COLUMNS if c != "id")
        with self._get_connection() as conn:
            conn.executemany(
                f"UPDATE step_executions SET {assignments} WHERE id = :id",
                [_step_row(step) for step in steps],
            )

    def get_question_status(
        self, execution_id: str, preparation_step_id: str, question_id: str
    ) -> Optional[PreparationQuestionStatus]:
        with self._get_connection() as conn:
            row = conn.execute(
                """
                SELECT * FROM preparation_question_statuses
                WHERE execution_id = ? AND preparation_step_id = ? AND question_id = ?
                """,
                (execution_id, preparation_step_id, question_id),
            ).fetchone()
        return _question_from_row(row) if row else None

    def save_question_status(self, status: PreparationQuestionStatus) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO preparation_question_statuses (
                    id, execution_id, preparation_step_id, question_id,
                    checked, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(execution_id, preparation_step_id, question_id)
                DO UPDATE SET checked = excluded.checked, updated_at = excluded.updated_at
                """,
                (
                    status.id,
                    status.execution_id,
                    status.preparation_step_id,
                    status.question_id,
                    int(status.checked),
                    format_timestamp(status.created_at),
                    format_timestamp(status.updated_at),
                ),
            )

    def list_question_statuses(self, execution_id: str) -> list[PreparationQuestionStatus]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM preparation_question_statuses WHERE execution_id = ?",
                (execution_id,),
            ).fetchall()
        return [_question_from_row(row) for row in rows]

    def delete_execution_for_task(self, task_id: str) -> bool:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT id FROM executions WHERE task_id = ?", (task_id,)
            ).fetchone()
            if row is None:
                return False

            execution_id = row["id"]
            conn.execute(
                "DELETE FROM preparation_question_statuses WHERE execution_id = ?", (execution_id,)
            )
            conn.execute("DELETE FROM step_executions WHERE execution_id = ?", (execution_id,))
            conn.execute("DELETE FROM executions WHERE id = ?", (execution_id,))

        self.logger.info("Execution deleted", execution_id=execution_id, task_id=task_id)
        return True

    def get_stats(self) -> dict[str, Any]:
        """Row counts per table."""
        with self._get_connection() as conn:
            executions = conn.execute("SELECT COUNT(*) FROM executions").fetchone()[0]
            steps = conn.execute("SELECT COUNT(*) FROM step_executions").fetchone()[0]
            questions = conn.execute(
                "SELECT COUNT(*) FROM preparation_question_statuses"
            ).fetchone()[0]
            by_status = conn.execute(
                "SELECT status, COUNT(*) AS count FROM executions GROUP BY status"
            ).fetchall()

        return {
            "total_executions": executions,
            "total_step_executions": steps,
            "total_question_statuses": questions,
            "executions_by_status": {row["status"]: row["count"] for row in by_status},
        }
