from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from .core.constants import DEFAULT_GEOFENCE_RADIUS_METERS, DEFAULT_TOKEN_WINDOW_SECONDS
from .database.connection import DatabaseConnection, DBConfig
from .identity.mysql_identity_lookup import MySQLIdentityLookup
from .presence.ledger import PresenceLedger
from .presence.mysql_presence_repository import MySQLPresenceRepository
from .realtime.feed import InMemoryChangeFeed, PollingChangeFeed
from .roster.live_roster import LiveRoster
from .sessions.mysql_session_repository import MySQLSessionRepository
from .sessions.service import SessionService
from .tokens.authority import TokenAuthority


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    sessions_repo: MySQLSessionRepository
    presence_repo: MySQLPresenceRepository
    identities: MySQLIdentityLookup
    feed: Union[InMemoryChangeFeed, PollingChangeFeed]

    token_authority: TokenAuthority
    ledger: PresenceLedger
    session_service: SessionService
    live_roster: LiveRoster


def build_container(
    *,
    db_config: dict,
    token_window_seconds: int = DEFAULT_TOKEN_WINDOW_SECONDS,
    default_radius_meters: float = DEFAULT_GEOFENCE_RADIUS_METERS,
    feed_poll_seconds: Optional[float] = None,
    geofence_manual_marks: bool = False,
) -> Container:
    """Wire MySQL repositories into services.

    With ``feed_poll_seconds`` set, observers learn about admissions made by
    other processes through a polling feed; otherwise fan-out is in-process.
    """
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    sessions_repo = MySQLSessionRepository(conn)
    presence_repo = MySQLPresenceRepository(conn)
    identities = MySQLIdentityLookup(conn)
    if feed_poll_seconds:
        feed = PollingChangeFeed(presence_repo, interval_seconds=feed_poll_seconds)
    else:
        feed = InMemoryChangeFeed()

    token_authority = TokenAuthority(sessions_repo, window_seconds=token_window_seconds)
    ledger = PresenceLedger(
        presence_repo,
        sessions_repo,
        token_authority,
        feed,
        geofence_manual_marks=geofence_manual_marks,
    )
    session_service = SessionService(
        sessions_repo,
        token_authority,
        presence_repo,
        identities,
        default_radius_meters=default_radius_meters,
    )
    live_roster = LiveRoster(ledger, feed, identities)

    return Container(
        conn=conn,
        sessions_repo=sessions_repo,
        presence_repo=presence_repo,
        identities=identities,
        feed=feed,
        token_authority=token_authority,
        ledger=ledger,
        session_service=session_service,
        live_roster=live_roster,
    )
