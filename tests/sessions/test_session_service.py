from __future__ import annotations

from datetime import timedelta

import pytest

from src.presence_system.presence_system.core.enums import PresenceMethod, RejectionReason, SessionMode
from src.presence_system.presence_system.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from src.presence_system.presence_system.geofence.model import Coordinates
from src.presence_system.presence_system.presence.ledger import PresenceLedger
from src.presence_system.presence_system.presence.model import PresenceClaim
from src.presence_system.presence_system.sessions.service import SessionService
from src.presence_system.presence_system.tokens.authority import TokenAuthority
from tests.fakes import FakeClock, InMemoryIdentities, InMemoryPresence, InMemorySessions, profile

ROOM = Coordinates(latitude=10.7626, longitude=106.6601)


@pytest.fixture()
def env():
    clock = FakeClock()
    sessions = InMemorySessions()
    presence = InMemoryPresence()
    tokens = TokenAuthority(sessions, clock=clock)
    identities = InMemoryIdentities(
        [profile("u-1", "Tran Thi B", "SV002"), profile("u-2", "Le Van C", "SV003")],
        {"c-1": ["u-1", "u-2"]},
    )
    service = SessionService(sessions, tokens, presence, identities, clock=clock, default_radius_meters=100)
    ledger = PresenceLedger(presence, sessions, tokens, clock=clock)
    return service, ledger, clock


def test_start_issues_token_and_applies_default_radius(env):
    service, _, clock = env
    started = service.start_session(class_id="c-1", instructor_id="prof-1", require_geolocation=True, anchor=ROOM)

    assert started.session.is_active
    assert started.session.radius_meters == 100
    assert started.session.mode == SessionMode.PROFESSOR_GENERATES
    assert started.token.session_id == started.session.session_id
    assert started.token.expires_at == clock.now + timedelta(seconds=60)


def test_geolocated_session_requires_anchor(env):
    service, _, _ = env
    with pytest.raises(ValidationError):
        service.start_session(class_id="c-1", instructor_id="prof-1", require_geolocation=True)


def test_radius_must_be_positive(env):
    service, _, _ = env
    with pytest.raises(ValidationError):
        service.start_session(class_id="c-1", instructor_id="prof-1", radius_meters=0)


def test_end_session_closes_and_revokes(env):
    service, ledger, _ = env
    started = service.start_session(class_id="c-1", instructor_id="prof-1")
    sid = started.session.session_id
    ledger.admit(PresenceClaim(sid, "u-1", PresenceMethod.TOKEN_SCAN, started.session.started_at, token=started.token.value))

    ended = service.end_session(sid, instructor_id="prof-1")

    assert not ended.is_active
    assert [e.subject_id for e in ledger.get_for_session(sid)] == ["u-1"]
    late = ledger.admit(PresenceClaim(sid, "u-2", PresenceMethod.TOKEN_SCAN, ended.ended_at, token=started.token.value))
    assert late.reason == RejectionReason.SESSION_CLOSED


def test_only_owner_can_end(env):
    service, _, _ = env
    sid = service.start_session(class_id="c-1", instructor_id="prof-1").session.session_id
    with pytest.raises(AuthorizationError):
        service.end_session(sid, instructor_id="someone-else")


def test_ending_twice_keeps_first_end_time(env):
    service, _, clock = env
    sid = service.start_session(class_id="c-1", instructor_id="prof-1").session.session_id
    first = service.end_session(sid)
    clock.advance(30)
    assert service.end_session(sid).ended_at == first.ended_at


def test_unknown_session(env):
    service, _, _ = env
    with pytest.raises(NotFoundError):
        service.get_session("missing")


def test_manual_candidates_flag_marked_and_filter(env):
    service, ledger, _ = env
    sid = service.start_session(class_id="c-1", instructor_id="prof-1").session.session_id
    ledger.admit(PresenceClaim(sid, "u-1", PresenceMethod.MANUAL, service.get_session(sid).started_at))

    rows = service.manual_candidates(sid)
    assert [(c.full_name, c.marked) for c in rows] == [("Le Van C", False), ("Tran Thi B", True)]
    assert [c.subject_id for c in service.manual_candidates(sid, search="sv003")] == ["u-2"]
