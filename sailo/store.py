"""SQLite persistence for workspace metadata."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sailo.state import State, Workspace

_CREATE_TABLE = """CREATE TABLE IF NOT EXISTS workspaces (
    id           TEXT PRIMARY KEY,
    task         TEXT NOT NULL,
    state        TEXT NOT NULL DEFAULT 'creating',
    branch       TEXT NOT NULL DEFAULT '',
    container_id TEXT NOT NULL DEFAULT '',
    ports        TEXT NOT NULL DEFAULT '{}',
    from_branch  TEXT NOT NULL DEFAULT 'main',
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
)"""

_COLUMNS = "id, task, state, branch, container_id, ports, from_branch, created_at, updated_at"


class StoreError(Exception):
    """Raised when the workspace database cannot be read or written."""


class WorkspaceNotFoundError(StoreError):
    """Raised when no workspace has the requested ID."""


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _encode_ports(ports: dict[int, int] | None) -> str:
    return json.dumps({str(cp): hp for cp, hp in sorted((ports or {}).items())})


def _decode_ports(text: str) -> dict[int, int]:
    data: Any = json.loads(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"expected an object, got {text!r}")
    return {int(cp): int(hp) for cp, hp in data.items()}


def _workspace_from_row(row: tuple) -> Workspace:
    ws_id, task, state, branch, container_id, ports, from_branch, created_at, updated_at = row
    try:
        parsed_ports = _decode_ports(ports)
    except (ValueError, TypeError) as exc:
        raise StoreError(f"unmarshal ports: {exc}") from exc
    try:
        parsed_state = State(state)
    except ValueError as exc:
        raise StoreError(f"unknown state {state!r}") from exc
    return Workspace(
        id=ws_id,
        task=task,
        state=parsed_state,
        branch=branch,
        container_id=container_id,
        ports=parsed_ports,
        from_branch=from_branch,
        created_at=created_at,
        updated_at=updated_at,
    )


class Store:
    """Workspace records kept in an SQLite database."""

    def __init__(self, db_path, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self.db_path = Path(db_path)
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"create store directory: {exc}") from exc
        try:
            self._conn = sqlite3.connect(self.db_path, isolation_level=None)
        except sqlite3.Error as exc:
            raise StoreError(f"open database: {exc}") from exc
        for statement, what in (
            ("PRAGMA journal_mode=WAL", "set journal mode"),
            (_CREATE_TABLE, "create workspaces table"),
        ):
            try:
                self._conn.execute(statement)
            except sqlite3.Error as exc:
                self._conn.close()
                raise StoreError(f"{what}: {exc}") from exc
        self._logger.debug("workspace store opened: %s", self.db_path)

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def save(self, workspace: Workspace) -> None:
        """Insert or replace workspace, updating its timestamps."""
        now = _now()
        workspace.updated_at = now
        if not workspace.created_at:
            workspace.created_at = now
        try:
            self._conn.execute(
                f"INSERT OR REPLACE INTO workspaces ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    workspace.id,
                    workspace.task,
                    str(workspace.state),
                    workspace.branch,
                    workspace.container_id,
                    _encode_ports(workspace.ports),
                    workspace.from_branch,
                    workspace.created_at,
                    workspace.updated_at,
                ),
            )
        except sqlite3.Error as exc:
            raise StoreError(f"save workspace {workspace.id}: {exc}") from exc
        self._logger.debug("workspace saved: id=%s state=%s", workspace.id, workspace.state)

    def get(self, workspace_id: str) -> Workspace:
        """Return the workspace with workspace_id."""
        try:
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM workspaces WHERE id = ?", (workspace_id,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"get workspace {workspace_id}: {exc}") from exc
        if row is None:
            raise WorkspaceNotFoundError(f"workspace not found: {workspace_id}")
        try:
            return _workspace_from_row(row)
        except StoreError as exc:
            raise StoreError(f"get workspace {workspace_id}: {exc}") from exc

    def list(self, include_archived: bool = False) -> list[Workspace]:
        """Return workspaces, newest first; removed ones never, archived ones on request."""
        query = f"SELECT {_COLUMNS} FROM workspaces WHERE state != ?"
        params = [str(State.REMOVED)]
        if not include_archived:
            query += " AND state != ?"
            params.append(str(State.ARCHIVED))
        query += " ORDER BY created_at DESC"
        try:
            rows = self._conn.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"list workspaces: {exc}") from exc
        try:
            return [_workspace_from_row(row) for row in rows]
        except StoreError as exc:
            raise StoreError(f"scan workspace: {exc}") from exc

    def delete(self, workspace_id: str) -> None:
        """Delete the workspace record with workspace_id."""
        try:
            cursor = self._conn.execute("DELETE FROM workspaces WHERE id = ?", (workspace_id,))
        except sqlite3.Error as exc:
            raise StoreError(f"delete workspace {workspace_id}: {exc}") from exc
        if cursor.rowcount == 0:
            raise WorkspaceNotFoundError(f"workspace not found: {workspace_id}")
        self._logger.debug("workspace deleted: %s", workspace_id)

    def used_host_ports(self) -> list[int]:
        """Return host ports held by workspaces that are not removed."""
        try:
            rows = self._conn.execute(
                "SELECT ports FROM workspaces WHERE state != ?", (str(State.REMOVED),)
            ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"query used ports: {exc}") from exc
        ports: list[int] = []
        for (text,) in rows:
            try:
                ports.extend(_decode_ports(text).values())
            except (ValueError, TypeError):
                continue
        return ports

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()