from __future__ import annotations

import pytest

from ffmclub.services import identity_service
from ffmclub.services.identity_service import IdentityError, RateLimiter, error_message


@pytest.mark.asyncio
async def test_register_then_login(services) -> None:
    identity = services.identity

    user_id = await identity.register("Alice@Example.com", "Passw0rd!")
    logged_in_as, token = await identity.login("alice@example.com", "Passw0rd!")

    assert logged_in_as == user_id
    assert await identity.verify_token(token) == user_id


@pytest.mark.asyncio
async def test_register_duplicate_email(services) -> None:
    await services.identity.register("bob@example.com", "Passw0rd!")
    with pytest.raises(IdentityError) as excinfo:
        await services.identity.register("BOB@example.com", "An0therPass")

    err = excinfo.value
    assert err.code == "auth/email-already-in-use"
    assert err.kind == "AlreadyExists"
    assert err.status_code == 409
    assert err.to_dict()["code"] == "auth/email-already-in-use"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "email,password,code",
    [
        ("not-an-email", "Passw0rd!", "auth/invalid-email"),
        ("carol@example.com", "short1", "auth/weak-password"),
        ("carol@example.com", "lettersonly", "auth/weak-password"),
    ],
)
async def test_register_rejects_bad_input(services, email, password, code) -> None:
    with pytest.raises(IdentityError) as excinfo:
        await services.identity.register(email, password)
    assert excinfo.value.code == code
    assert excinfo.value.kind == "InvalidOperation"


@pytest.mark.asyncio
async def test_login_failures(services) -> None:
    await services.identity.register("dave@example.com", "Passw0rd!")

    with pytest.raises(IdentityError) as wrong:
        await services.identity.login("dave@example.com", "nope12345")
    assert wrong.value.code == "auth/wrong-password"
    assert wrong.value.kind == "Unauthenticated"

    with pytest.raises(IdentityError) as missing:
        await services.identity.login("nobody@example.com", "Passw0rd!")
    assert missing.value.code == "auth/user-not-found"
    assert missing.value.kind == "NotFound"


def test_error_message_lookup_and_fallback() -> None:
    assert error_message("auth/wrong-password") == "Wrong password."
    fallback = error_message("auth/quota-exceeded")
    assert "auth/quota-exceeded" in fallback


@pytest.mark.asyncio
async def test_logout_revokes_token_and_emits_state(services) -> None:
    identity = services.identity
    events = []
    subscription = identity.on_auth_state_change(lambda event: events.append((event.user_id, event.signed_in)))

    user_id = await identity.register("erin@example.com", "Passw0rd!")
    _, token = await identity.login("erin@example.com", "Passw0rd!")
    await identity.logout(token)

    with pytest.raises(IdentityError) as excinfo:
        await identity.verify_token(token)
    assert excinfo.value.code == "auth/invalid-token"
    assert events == [(user_id, True), (user_id, False)]

    subscription.cancel()
    await identity.login("erin@example.com", "Passw0rd!")
    assert len(events) == 2


@pytest.mark.asyncio
async def test_verify_token_rejects_garbage_and_reset_tokens(services, monkeypatch) -> None:
    identity = services.identity
    with pytest.raises(IdentityError):
        await identity.verify_token("not-a-jwt")

    await identity.register("frank@example.com", "Passw0rd!")
    captured = {}

    async def _capture(email: str, token: str) -> None:
        captured[email] = token

    monkeypatch.setattr(identity, "_deliver_reset", _capture)
    await identity.send_password_reset("frank@example.com")

    with pytest.raises(IdentityError) as excinfo:
        await identity.verify_token(captured["frank@example.com"])
    assert excinfo.value.code == "auth/invalid-token"


@pytest.mark.asyncio
async def test_password_reset_flow(services, monkeypatch) -> None:
    identity = services.identity
    user_id = await identity.register("gina@example.com", "Passw0rd!")
    captured = []

    async def _capture(email: str, token: str) -> None:
        captured.append((email, token))

    monkeypatch.setattr(identity, "_deliver_reset", _capture)

    # unknown addresses succeed without delivering anything
    await identity.send_password_reset("ghost@example.com")
    assert captured == []

    await identity.send_password_reset("gina@example.com")
    assert len(captured) == 1
    _, reset_token = captured[0]

    assert await identity.confirm_password_reset(reset_token, "N3wPassword") == user_id
    with pytest.raises(IdentityError) as reused:
        await identity.confirm_password_reset(reset_token, "Other1234")
    assert reused.value.code == "auth/invalid-action-code"

    with pytest.raises(IdentityError):
        await identity.login("gina@example.com", "Passw0rd!")
    logged_in_as, _ = await identity.login("gina@example.com", "N3wPassword")
    assert logged_in_as == user_id


def test_rate_limiter_blocks_then_forgets_expired_windows(monkeypatch) -> None:
    now = {"t": 1000.0}
    monkeypatch.setattr(identity_service.time, "time", lambda: now["t"])
    limiter = RateLimiter(window_seconds=60, max_attempts=2)

    assert limiter.increment("login:1.1.1.1") is True
    assert limiter.increment("login:1.1.1.1") is True
    assert limiter.increment("login:1.1.1.1") is False
    for index in range(5):
        limiter.increment(f"login:10.0.0.{index}")
    assert len(limiter) == 6

    now["t"] += 61
    assert limiter.increment("login:1.1.1.1") is True
    assert len(limiter) == 1
