# src/worksync/accounts/service.py

"""
Authentication collaborator.

Registration creates the account and its server-side workspace in one store call;
login returns the workspace alongside the account so the engine can skip its
hydration read. Guests never touch the store.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
import secrets
import uuid
from pathlib import Path
from typing import Any

from ..core.ports import AccountRepo, Sleep, WorkspaceRepo
from ..errors import AuthError, NotFound, ValidationError
from ..workspace.models import Account, Workspace, default_workspace

logger = logging.getLogger(__name__)

GUEST_ID = "guest"

_PBKDF2_ROUNDS = 120_000


def hash_secret(secret: str, salt: str | None = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", secret.encode("utf-8"), bytes.fromhex(salt), _PBKDF2_ROUNDS
    )
    return f"{salt}${digest.hex()}"


def check_secret(secret: str, stored: str) -> bool:
    salt, _, _digest = stored.partition("$")
    if not salt:
        return False
    try:
        candidate = hash_secret(secret, salt)
    except ValueError:
        return False
    return hmac.compare_digest(candidate, stored)


class AccountService:
    def __init__(
        self,
        store: Any,
        *,
        default_team: list[str] | None = None,
        require_verification: bool = False,
        latency_seconds: float = 0.0,
        session_file: str | Path | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        # One object backs both ports in practice (SQLite or in-memory store).
        self._accounts: AccountRepo = store
        self._workspaces: WorkspaceRepo = store
        self._default_team = list(default_team or ["Self"])
        self._require_verification = require_verification
        self._latency = max(0.0, float(latency_seconds))
        self._sleep = sleep
        self._session_file = Path(session_file) if session_file is not None else None
        self._current: Account | None = None

    async def _delay(self) -> None:
        if self._latency > 0:
            await self._sleep(self._latency)

    async def register(self, name: str, contact: str, secret: str, style: str = "") -> Account:
        name = (name or "").strip()
        contact = (contact or "").strip().lower()
        if not name:
            raise ValidationError("please enter your full name")
        if not contact or not secret:
            raise ValidationError("please enter both contact and secret")

        await self._delay()
        account = Account(
            id=str(uuid.uuid4()),
            display_name=name,
            contact=contact,
            is_ephemeral=False,
            style=style,
            verified=not self._require_verification,
        )
        # Raises Conflict on a duplicate contact before anything is written.
        self._accounts.create_account(
            account, hash_secret(secret), default_workspace(self._default_team)
        )
        logger.info("Registered account id=%s verified=%s", account.id, account.verified)
        return account

    async def verify(self, contact: str) -> None:
        await self._delay()
        if not self._accounts.mark_verified(contact):
            raise NotFound(f"verification failed: no account for {contact!r}")
        logger.info("Verified contact=%s", contact.strip().lower())

    async def login(self, contact: str, secret: str) -> tuple[Account, Workspace]:
        await self._delay()
        found = self._accounts.find_account(contact or "")
        if found is None or not check_secret(secret or "", found[1]):
            raise AuthError("invalid contact or secret")
        account = found[0]
        if self._require_verification and not account.verified:
            raise AuthError("account is not verified yet; verify it before logging in")

        workspace = self._workspaces.read(account.id)
        self._current = account
        self._remember(account)
        logger.info("Login account=%s tasks=%d", account.id, len(workspace.tasks))
        return account, workspace

    def guest(self) -> Account:
        account = Account(
            id=GUEST_ID,
            display_name="Guest User",
            contact="guest@worksync.local",
            is_ephemeral=True,
        )
        self._current = account
        # Guests are session-only; a stale durable session must not come back.
        self._forget()
        return account

    def current_session(self) -> Account | None:
        return self._current

    def sign_out(self, *, forget: bool = True) -> None:
        if self._current is not None:
            logger.info("Signed out account=%s", self._current.id)
        self._current = None
        if forget:
            self._forget()

    async def resume(self) -> Account | None:
        """
        Restore the account remembered by the last login, if it still exists.

        Unreadable or stale session files are discarded. Store failures propagate.
        """
        if self._session_file is None:
            return None
        try:
            data = json.loads(self._session_file.read_text("utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self._session_file, e)
            self._forget()
            return None

        account_id = data.get("account_id") if isinstance(data, dict) else None
        account = self._accounts.get_account(account_id) if isinstance(account_id, str) else None
        if account is None or (self._require_verification and not account.verified):
            logger.info("Stored session is no longer valid; discarding it.")
            self._forget()
            return None

        self._current = account
        logger.info("Resumed session account=%s", account.id)
        return account

    def _remember(self, account: Account) -> None:
        if self._session_file is None:
            return
        try:
            self._session_file.parent.mkdir(parents=True, exist_ok=True)
            self._session_file.write_text(json.dumps({"account_id": account.id}), "utf-8")
        except OSError as e:
            logger.warning("Could not remember session in %s: %s", self._session_file, e)

    def _forget(self) -> None:
        if self._session_file is None:
            return
        try:
            self._session_file.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not clear session file %s: %s", self._session_file, e)
