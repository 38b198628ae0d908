"""Authentication service tests — register, login, uniform failures."""

import threading
from datetime import timedelta

import pytest

from tasktrack.auth.service import (
    INVALID_CREDENTIALS,
    AuthenticationFailure,
    AuthService,
)
from tasktrack.auth.users import CredentialStore, DuplicateIdentity, IdentityResolver


@pytest.fixture
def svc(db_session, hasher, codec):
    return AuthService(
        store=CredentialStore(db_session),
        resolver=IdentityResolver(db_session),
        hasher=hasher,
        codec=codec,
        token_ttl=timedelta(hours=3),
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "username,password",
    [("alice", "pw1"), ("Bob", "correct horse battery staple"), ("ü-user", "pässwörd")],
)
async def test_register_then_authenticate(svc, codec, username, password):
    await svc.register(username, password)
    token = await svc.authenticate(username, password)
    assert codec.verify(token) == username


@pytest.mark.asyncio
async def test_register_stores_hash_not_plaintext(svc, hasher):
    user = await svc.register("alice", "pw1")
    assert user.password_hash != "pw1"
    assert hasher.verify("pw1", user.password_hash)


@pytest.mark.asyncio
async def test_register_duplicate(svc):
    await svc.register("alice", "pw1")
    with pytest.raises(DuplicateIdentity):
        await svc.register("alice", "pw2")


@pytest.mark.asyncio
async def test_duplicate_register_keeps_original_password(svc, codec):
    await svc.register("alice", "pw1")
    with pytest.raises(DuplicateIdentity):
        await svc.register("alice", "pw2")
    assert codec.verify(await svc.authenticate("alice", "pw1")) == "alice"
    with pytest.raises(AuthenticationFailure):
        await svc.authenticate("alice", "pw2")


@pytest.mark.asyncio
async def test_wrong_password_and_unknown_user_fail_identically(svc):
    await svc.register("alice", "pw1")

    with pytest.raises(AuthenticationFailure) as wrong_pw:
        await svc.authenticate("alice", "wrong")
    with pytest.raises(AuthenticationFailure) as no_user:
        await svc.authenticate("mallory", "pw1")

    assert str(wrong_pw.value) == str(no_user.value) == INVALID_CREDENTIALS


@pytest.mark.asyncio
async def test_unknown_user_still_runs_a_verification(svc, hasher, monkeypatch):
    calls = []
    original = hasher.verify

    def spy(password, password_hash):
        calls.append(password_hash)
        return original(password, password_hash)

    monkeypatch.setattr(hasher, "verify", spy)
    with pytest.raises(AuthenticationFailure):
        await svc.authenticate("mallory", "pw")
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_username_lookup_is_case_sensitive(svc):
    await svc.register("alice", "pw1")
    with pytest.raises(AuthenticationFailure):
        await svc.authenticate("ALICE", "pw1")


@pytest.mark.asyncio
async def test_bcrypt_runs_off_the_event_loop(svc, hasher, monkeypatch):
    loop_thread = threading.get_ident()
    threads = []
    original_hash, original_verify = hasher.hash, hasher.verify

    def hash_spy(password):
        threads.append(threading.get_ident())
        return original_hash(password)

    def verify_spy(password, password_hash):
        threads.append(threading.get_ident())
        return original_verify(password, password_hash)

    monkeypatch.setattr(hasher, "hash", hash_spy)
    monkeypatch.setattr(hasher, "verify", verify_spy)

    await svc.register("alice", "pw1")
    await svc.authenticate("alice", "pw1")
    with pytest.raises(AuthenticationFailure):
        await svc.authenticate("mallory", "pw1")

    assert len(threads) == 3
    assert loop_thread not in threads
