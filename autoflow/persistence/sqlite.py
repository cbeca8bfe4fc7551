"""SQLite implementation of the workflow repository."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from pathlib import Path
from typing import Any, Optional

from ..contracts import Execution, Workflow
from .repository import WorkflowRepository


class SQLiteWorkflowRepository(WorkflowRepository):
    """Persist workflows and executions using SQLite.

    Records are stored as camelCase JSON documents, the same shape as the
    workflow file format.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS executions (
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                status TEXT NOT NULL,
                data TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        with self._lock:
            self._conn.execute(query, params)
            self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            return self._conn.execute(query, params).fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(query, params).fetchall()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Repository API
    async def save_workflow(self, workflow: Workflow) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO workflows (id, data) VALUES (?, ?)
            ON CONFLICT(id) DO UPDATE SET data = excluded.data
            """,
            workflow.id,
            workflow.model_dump_json(by_alias=True),
        )

    async def delete_workflow(self, workflow_id: str) -> None:
        await asyncio.to_thread(
            self._execute, "DELETE FROM workflows WHERE id = ?", workflow_id
        )

    async def list_workflows(self) -> list[Workflow]:
        rows = await asyncio.to_thread(
            self._fetchall, "SELECT data FROM workflows ORDER BY rowid"
        )
        return [Workflow.model_validate_json(r["data"]) for r in rows]

    async def save_execution(self, execution: Execution) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO executions (id, workflow_id, status, data) VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET status = excluded.status, data = excluded.data
            """,
            execution.id,
            execution.workflow_id,
            execution.status.value,
            execution.model_dump_json(by_alias=True),
        )

    async def get_execution(self, execution_id: str) -> Optional[Execution]:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT data FROM executions WHERE id = ?", execution_id
        )
        if not row:
            return None
        return Execution.model_validate_json(row["data"])

    async def list_executions(self, workflow_id: Optional[str] = None) -> list[Execution]:
        if workflow_id is None:
            rows = await asyncio.to_thread(
                self._fetchall, "SELECT data FROM executions ORDER BY rowid"
            )
        else:
            rows = await asyncio.to_thread(
                self._fetchall,
                "SELECT data FROM executions WHERE workflow_id = ? ORDER BY rowid",
                workflow_id,
            )
        return [Execution.model_validate_json(r["data"]) for r in rows]
