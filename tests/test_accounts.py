# tests/test_accounts.py

from __future__ import annotations

import asyncio

import pytest

from worksync.accounts.service import AccountService, check_secret, hash_secret
from worksync.errors import AuthError, Conflict, NotFound, ValidationError

from .fakes import FakeClock, RecordingStore


def test_secret_hashing() -> None:
    stored = hash_secret("pw")
    assert check_secret("pw", stored)
    assert not check_secret("PW", stored)
    assert not check_secret("pw", "garbage")
    assert hash_secret("pw") != stored  # fresh salt each time


@pytest.mark.asyncio
async def test_register_and_login(store: RecordingStore) -> None:
    accounts = AccountService(store, default_team=["Self", "Rahul"])
    account = await accounts.register("  Eve  ", "E@X.com", "pw", style="concise")
    assert account.display_name == "Eve"
    assert account.contact == "e@x.com"
    assert account.verified is True
    assert accounts.current_session() is None

    logged_in, workspace = await accounts.login("e@x.com", "pw")
    assert logged_in == account
    assert workspace.tasks == []
    assert workspace.team == ["Self", "Rahul"]
    assert accounts.current_session() == account

    accounts.sign_out()
    assert accounts.current_session() is None


@pytest.mark.asyncio
async def test_register_rejects_blanks_and_duplicates(store: RecordingStore) -> None:
    accounts = AccountService(store)
    with pytest.raises(ValidationError):
        await accounts.register("", "e@x.com", "pw")
    with pytest.raises(ValidationError):
        await accounts.register("Eve", "  ", "pw")

    await accounts.register("Eve", "e@x.com", "pw")
    with pytest.raises(Conflict):
        await accounts.register("Other Eve", "e@X.com", "pw2")
    _, workspace = await accounts.login("e@x.com", "pw")
    assert workspace.team == ["Self"]


@pytest.mark.asyncio
async def test_login_rejects_bad_credentials(store: RecordingStore) -> None:
    accounts = AccountService(store)
    await accounts.register("Eve", "e@x.com", "pw")
    with pytest.raises(AuthError):
        await accounts.login("e@x.com", "nope")
    with pytest.raises(AuthError):
        await accounts.login("nobody@x.com", "pw")
    assert accounts.current_session() is None


@pytest.mark.asyncio
async def test_verification_gate(store: RecordingStore) -> None:
    accounts = AccountService(store, require_verification=True)
    account = await accounts.register("Eve", "e@x.com", "pw")
    assert account.verified is False

    with pytest.raises(AuthError):
        await accounts.login("e@x.com", "pw")
    with pytest.raises(NotFound):
        await accounts.verify("nobody@x.com")

    await accounts.verify("e@x.com")
    logged_in, _ = await accounts.login("e@x.com", "pw")
    assert logged_in.verified is True


@pytest.mark.asyncio
async def test_guest_is_ephemeral_and_storeless(store: RecordingStore) -> None:
    accounts = AccountService(store)
    guest = accounts.guest()
    assert guest.is_ephemeral
    assert accounts.current_session() is guest
    assert store.calls == []


@pytest.mark.asyncio
async def test_auth_latency_is_simulated(store: RecordingStore, clock: FakeClock) -> None:
    accounts = AccountService(store, latency_seconds=0.8, sleep=clock.sleep)
    pending = asyncio.create_task(accounts.register("Eve", "e@x.com", "pw"))
    await clock.advance(0.5)
    assert not pending.done()
    assert store.find_account("e@x.com") is None

    await clock.advance(0.5)
    assert pending.done()
    assert (await pending).contact == "e@x.com"


@pytest.mark.asyncio
async def test_login_is_remembered_until_sign_out(store: RecordingStore, tmp_path) -> None:
    session_file = tmp_path / "state" / "session.json"
    accounts = AccountService(store, session_file=session_file)
    account = await accounts.register("Eve", "e@x.com", "pw")
    assert await accounts.resume() is None

    await accounts.login("e@x.com", "pw")
    assert session_file.exists()

    later = AccountService(store, session_file=session_file)
    assert await later.resume() == account
    assert later.current_session() == account

    later.sign_out(forget=False)
    assert session_file.exists()
    later.sign_out()
    assert not session_file.exists()


@pytest.mark.asyncio
async def test_resume_drops_an_unverified_account(store: RecordingStore, tmp_path) -> None:
    session_file = tmp_path / "session.json"
    accounts = AccountService(store, require_verification=True, session_file=session_file)
    account = await accounts.register("Eve", "e@x.com", "pw")
    session_file.write_text(f'{{"account_id": "{account.id}"}}', "utf-8")

    assert await accounts.resume() is None
    assert accounts.current_session() is None
    assert not session_file.exists()
