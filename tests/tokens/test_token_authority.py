from __future__ import annotations

import threading

import pytest

from src.presence_system.presence_system.core.enums import TokenCheckReason
from src.presence_system.presence_system.core.exceptions import NotFoundError, ValidationError
from src.presence_system.presence_system.tokens.authority import TokenAuthority
from tests.fakes import FakeClock, InMemorySessions, make_session


def _authority(window: int = 60):
    clock = FakeClock()
    sessions = InMemorySessions()
    make_session(sessions)
    return TokenAuthority(sessions, clock=clock, window_seconds=window), sessions, clock


def test_issue_sets_expiry_one_window_ahead():
    authority, _, clock = _authority()
    token = authority.issue("s-1")
    assert token.expires_at == clock.now + authority.window
    assert len(token.value) >= 32


def test_new_token_invalidates_previous():
    authority, _, _ = _authority()
    first = authority.issue("s-1")
    second = authority.refresh("s-1")

    assert first.value != second.value
    assert authority.validate("s-1", first.value).reason == TokenCheckReason.MISMATCH
    assert authority.validate("s-1", second.value).valid is True


def test_validation_does_not_consume_token():
    authority, _, _ = _authority()
    token = authority.issue("s-1")
    for _ in range(5):
        assert authority.validate("s-1", token.value).valid


def test_token_at_exact_expiry_is_expired():
    authority, _, clock = _authority()
    token = authority.issue("s-1")

    clock.now = token.expires_at
    check = authority.validate("s-1", token.value)
    assert check.valid is False
    assert check.reason == TokenCheckReason.EXPIRED


def test_token_one_tick_before_expiry_is_valid():
    authority, _, clock = _authority()
    token = authority.issue("s-1")
    clock.advance(59.999)
    assert authority.validate("s-1", token.value).valid is True


def test_no_token_means_no_active_session():
    authority, _, _ = _authority()
    assert authority.validate("s-1", "anything").reason == TokenCheckReason.NO_ACTIVE_SESSION
    assert authority.validate("missing", "anything").reason == TokenCheckReason.NO_ACTIVE_SESSION


def test_current_rotates_lazily_after_expiry():
    authority, _, clock = _authority()
    first = authority.issue("s-1")
    assert authority.current("s-1") == first

    clock.advance(60)
    rotated = authority.current("s-1")
    assert rotated.value != first.value
    assert rotated.expires_at == clock.now + authority.window


def test_issue_for_closed_or_unknown_session_fails():
    authority, sessions, clock = _authority()
    with pytest.raises(NotFoundError):
        authority.issue("missing")

    sessions.close("s-1", ended_at=clock.now)
    with pytest.raises(ValidationError):
        authority.issue("s-1")


def test_revoke_clears_token():
    authority, _, _ = _authority()
    token = authority.issue("s-1")
    authority.revoke("s-1")
    assert authority.validate("s-1", token.value).reason == TokenCheckReason.NO_ACTIVE_SESSION


def test_concurrent_rotation_leaves_one_live_token():
    authority, sessions, clock = _authority()
    authority.issue("s-1")
    clock.advance(61)

    results = []
    barrier = threading.Barrier(8)

    def rotate():
        barrier.wait()
        results.append(authority.current("s-1"))

    threads = [threading.Thread(target=rotate) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    live = sessions.get_token("s-1")
    assert live is not None
    assert authority.validate("s-1", live.value).valid
    assert len(results) == 8
    assert all(r.value == live.value for r in results)


def test_window_must_be_positive():
    with pytest.raises(ValidationError):
        TokenAuthority(InMemorySessions(), window_seconds=0)
