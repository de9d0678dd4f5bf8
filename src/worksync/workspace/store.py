# src/worksync/workspace/store.py

from __future__ import annotations

import base64
import binascii
import contextlib
import json
import logging
import sqlite3
import threading
from dataclasses import asdict
from pathlib import Path
from typing import Any

from ..errors import Conflict, StorageUnavailable, ValidationError
from .models import Account, Workspace, default_workspace

logger = logging.getLogger(__name__)


def _encode_workspace(workspace: Workspace) -> str:
    return json.dumps(workspace.to_dict(), ensure_ascii=False, separators=(",", ":"))


def _decode_workspace(blob: str | None, default_team: list[str]) -> Workspace:
    if not blob:
        return default_workspace(default_team)
    try:
        data = json.loads(blob)
    except ValueError:
        logger.exception("Stored workspace blob is not valid JSON; using defaults.")
        return default_workspace(default_team)
    return Workspace.from_dict(data)


def _account_to_row(account: Account, secret_hash: str) -> dict[str, Any]:
    row = asdict(account)
    row["secret_hash"] = secret_hash
    return row


def _account_from_row(row: Any) -> Account:
    return Account(
        id=str(row["id"]),
        display_name=str(row["display_name"] or ""),
        contact=str(row["contact"]),
        is_ephemeral=False,
        style=str(row["style"] or ""),
        verified=bool(row["verified"]),
    )


def encode_snapshot(accounts: list[dict[str, Any]], workspaces: dict[str, Any]) -> str:
    """Whole-database snapshot as a transportable base64 string."""
    payload = {"accounts": accounts, "workspaces": workspaces}
    raw = json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_snapshot(blob: str) -> tuple[list[dict[str, Any]], dict[str, Workspace]]:
    """
    Decode and fully validate a snapshot.

    Raises ValidationError on any defect, so callers can apply the result
    all-or-nothing.
    """
    if not isinstance(blob, str) or not blob.strip():
        raise ValidationError("snapshot is empty")
    try:
        raw = base64.b64decode(blob.strip().encode("ascii"), validate=True)
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise ValidationError("snapshot is not a valid encoded database") from e

    if not isinstance(payload, dict):
        raise ValidationError("snapshot root must be an object")
    accounts = payload.get("accounts")
    workspaces = payload.get("workspaces")
    if not isinstance(accounts, list) or not isinstance(workspaces, dict):
        raise ValidationError("snapshot must contain 'accounts' list and 'workspaces' object")

    seen_ids: set[str] = set()
    seen_contacts: set[str] = set()
    clean_accounts: list[dict[str, Any]] = []
    for acc in accounts:
        if not isinstance(acc, dict):
            raise ValidationError("account entry must be an object")
        for key in ("id", "contact", "secret_hash"):
            if not isinstance(acc.get(key), str) or not acc[key]:
                raise ValidationError(f"account entry is missing {key!r}")
        contact = acc["contact"].lower()
        if acc["id"] in seen_ids or contact in seen_contacts:
            raise ValidationError(f"duplicate account in snapshot: {acc['id']}")
        seen_ids.add(acc["id"])
        seen_contacts.add(contact)
        clean_accounts.append(
            {
                "id": acc["id"],
                "display_name": str(acc.get("display_name") or ""),
                "contact": contact,
                "style": str(acc.get("style") or ""),
                "verified": bool(acc.get("verified", True)),
                "secret_hash": acc["secret_hash"],
            }
        )

    clean_workspaces: dict[str, Workspace] = {}
    for account_id, ws in workspaces.items():
        clean_workspaces[str(account_id)] = Workspace.from_dict(ws, strict=True)

    return clean_accounts, clean_workspaces


class SQLiteWorkspaceStore:
    """
    SQLite-backed persistence store.

    One JSON blob per account in `workspaces`, credentials in `accounts`.
    Every write is a single-row replace inside its own transaction, so a
    failure leaves the previous durable value untouched.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(
        self,
        db_path: str | Path = "worksync.sqlite3",
        *,
        default_team: list[str] | None = None,
    ) -> None:
        self._db_path = Path(db_path)
        self._default_team = list(default_team or ["Self"])
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._ensure_schema()
        except (OSError, sqlite3.Error) as e:
            raise StorageUnavailable(f"cannot open store at {self._db_path}: {e}") from e
        logger.info("WorkspaceStore ready db=%s", self._db_path)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    id TEXT PRIMARY KEY,
                    display_name TEXT NOT NULL DEFAULT '',
                    contact TEXT NOT NULL UNIQUE,
                    style TEXT NOT NULL DEFAULT '',
                    verified INTEGER NOT NULL DEFAULT 1,
                    secret_hash TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS workspaces (
                    account_id TEXT PRIMARY KEY,
                    blob TEXT NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def _run(self, op: str, fn: Any) -> Any:
        """Run fn(conn) and translate medium failures into StorageUnavailable."""
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise StorageUnavailable(f"{op}: cannot connect: {e}") from e
        try:
            return fn(conn)
        except sqlite3.IntegrityError:
            conn.rollback()
            raise
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("Store %s failed: %s", op, e)
            raise StorageUnavailable(f"{op}: {e}") from e
        finally:
            conn.close()

    # ---- workspace API ----

    def read(self, account_id: str) -> Workspace:
        def _q(conn: sqlite3.Connection) -> str | None:
            row = conn.execute(
                "SELECT blob FROM workspaces WHERE account_id = ?", (account_id,)
            ).fetchone()
            return row["blob"] if row else None

        blob = self._run("read", _q)
        return _decode_workspace(blob, self._default_team)

    def write(self, account_id: str, workspace: Workspace) -> None:
        # Serialize fully before touching the database.
        blob = _encode_workspace(workspace)

        def _q(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT OR REPLACE INTO workspaces(account_id, blob) VALUES (?, ?)",
                (account_id, blob),
            )
            conn.commit()

        self._run("write", _q)
        logger.debug(
            "Workspace written account=%s tasks=%d team=%d",
            account_id,
            len(workspace.tasks),
            len(workspace.team),
        )

    def delete_task(self, account_id: str, task_id: str) -> None:
        def _q(conn: sqlite3.Connection) -> bool:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT blob FROM workspaces WHERE account_id = ?", (account_id,)
            ).fetchone()
            if not row:
                conn.rollback()
                return False
            ws = _decode_workspace(row["blob"], self._default_team)
            kept = [t for t in ws.tasks if t.id != task_id]
            if len(kept) == len(ws.tasks):
                conn.rollback()
                return False
            ws.tasks = kept
            conn.execute(
                "UPDATE workspaces SET blob = ? WHERE account_id = ?",
                (_encode_workspace(ws), account_id),
            )
            conn.commit()
            return True

        removed = self._run("delete_task", _q)
        logger.debug("delete_task account=%s task=%s removed=%s", account_id, task_id, removed)

    # ---- account API ----

    def create_account(self, account: Account, secret_hash: str, workspace: Workspace) -> None:
        row = _account_to_row(account, secret_hash)
        blob = _encode_workspace(workspace)

        def _q(conn: sqlite3.Connection) -> None:
            conn.execute(
                """
                INSERT INTO accounts(id, display_name, contact, style, verified, secret_hash)
                VALUES (:id, :display_name, :contact, :style, :verified, :secret_hash)
                """,
                {**row, "contact": account.contact.lower(), "verified": int(account.verified)},
            )
            conn.execute(
                "INSERT OR REPLACE INTO workspaces(account_id, blob) VALUES (?, ?)",
                (account.id, blob),
            )
            conn.commit()

        try:
            self._run("create_account", _q)
        except sqlite3.IntegrityError as e:
            raise Conflict(f"an account with contact {account.contact!r} already exists") from e
        logger.info("Account created id=%s", account.id)

    def find_account(self, contact: str) -> tuple[Account, str] | None:
        def _q(conn: sqlite3.Connection) -> Any:
            return conn.execute(
                "SELECT * FROM accounts WHERE contact = ?", (contact.strip().lower(),)
            ).fetchone()

        row = self._run("find_account", _q)
        if row is None:
            return None
        return _account_from_row(row), str(row["secret_hash"])

    def get_account(self, account_id: str) -> Account | None:
        def _q(conn: sqlite3.Connection) -> Any:
            return conn.execute("SELECT * FROM accounts WHERE id = ?", (account_id,)).fetchone()

        row = self._run("get_account", _q)
        return _account_from_row(row) if row else None

    def mark_verified(self, contact: str) -> bool:
        def _q(conn: sqlite3.Connection) -> bool:
            cur = conn.execute(
                "UPDATE accounts SET verified = 1 WHERE contact = ?", (contact.strip().lower(),)
            )
            conn.commit()
            return cur.rowcount == 1

        return bool(self._run("mark_verified", _q))

    # ---- admin snapshot ----

    def export_snapshot(self) -> str:
        def _q(conn: sqlite3.Connection) -> tuple[list[dict[str, Any]], dict[str, Any]]:
            accounts = [dict(r) for r in conn.execute("SELECT * FROM accounts ORDER BY id")]
            workspaces = {
                r["account_id"]: _decode_workspace(r["blob"], self._default_team).to_dict()
                for r in conn.execute("SELECT account_id, blob FROM workspaces")
            }
            return accounts, workspaces

        accounts, workspaces = self._run("export_snapshot", _q)
        for acc in accounts:
            acc["verified"] = bool(acc["verified"])
        return encode_snapshot(accounts, workspaces)

    def import_snapshot(self, blob: str) -> None:
        accounts, workspaces = decode_snapshot(blob)
        blobs = {aid: _encode_workspace(ws) for aid, ws in workspaces.items()}

        def _q(conn: sqlite3.Connection) -> None:
            conn.execute("BEGIN IMMEDIATE")
            conn.execute("DELETE FROM accounts")
            conn.execute("DELETE FROM workspaces")
            conn.executemany(
                """
                INSERT INTO accounts(id, display_name, contact, style, verified, secret_hash)
                VALUES (:id, :display_name, :contact, :style, :verified, :secret_hash)
                """,
                [{**a, "verified": int(a["verified"])} for a in accounts],
            )
            conn.executemany(
                "INSERT INTO workspaces(account_id, blob) VALUES (?, ?)",
                list(blobs.items()),
            )
            conn.commit()

        try:
            self._run("import_snapshot", _q)
        except sqlite3.IntegrityError as e:
            raise ValidationError(f"snapshot violates store constraints: {e}") from e
        logger.info(
            "Snapshot imported accounts=%d workspaces=%d", len(accounts), len(workspaces)
        )


class InMemoryWorkspaceStore:
    """
    Dict-backed store with the same contract as SQLiteWorkspaceStore.

    Values are kept serialized so a caller mutating its Workspace after write()
    can never change what is stored.
    """

    def __init__(self, *, default_team: list[str] | None = None) -> None:
        self._default_team = list(default_team or ["Self"])
        self._workspaces: dict[str, str] = {}
        self._accounts: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def read(self, account_id: str) -> Workspace:
        with self._lock:
            blob = self._workspaces.get(account_id)
        return _decode_workspace(blob, self._default_team)

    def write(self, account_id: str, workspace: Workspace) -> None:
        blob = _encode_workspace(workspace)
        with self._lock:
            self._workspaces[account_id] = blob

    def delete_task(self, account_id: str, task_id: str) -> None:
        with self._lock:
            blob = self._workspaces.get(account_id)
            if blob is None:
                return
            ws = _decode_workspace(blob, self._default_team)
            ws.tasks = [t for t in ws.tasks if t.id != task_id]
            self._workspaces[account_id] = _encode_workspace(ws)

    def create_account(self, account: Account, secret_hash: str, workspace: Workspace) -> None:
        contact = account.contact.lower()
        blob = _encode_workspace(workspace)
        with self._lock:
            if contact in self._accounts:
                raise Conflict(f"an account with contact {account.contact!r} already exists")
            row = _account_to_row(account, secret_hash)
            row["contact"] = contact
            self._accounts[contact] = row
            self._workspaces[account.id] = blob

    def find_account(self, contact: str) -> tuple[Account, str] | None:
        with self._lock:
            row = self._accounts.get(contact.strip().lower())
        if row is None:
            return None
        return _account_from_row(row), str(row["secret_hash"])

    def get_account(self, account_id: str) -> Account | None:
        with self._lock:
            for row in self._accounts.values():
                if row["id"] == account_id:
                    return _account_from_row(row)
        return None

    def mark_verified(self, contact: str) -> bool:
        with self._lock:
            row = self._accounts.get(contact.strip().lower())
            if row is None:
                return False
            row["verified"] = True
            return True

    def export_snapshot(self) -> str:
        with self._lock:
            accounts = [
                {k: v for k, v in row.items() if k != "is_ephemeral"}
                for row in sorted(self._accounts.values(), key=lambda r: r["id"])
            ]
            workspaces = {aid: json.loads(blob) for aid, blob in self._workspaces.items()}
        return encode_snapshot(accounts, workspaces)

    def import_snapshot(self, blob: str) -> None:
        accounts, workspaces = decode_snapshot(blob)
        new_accounts = {a["contact"]: dict(a) for a in accounts}
        new_workspaces = {aid: _encode_workspace(ws) for aid, ws in workspaces.items()}
        with self._lock:
            self._accounts = new_accounts
            self._workspaces = new_workspaces
