from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from ..common.datetime_utils import as_utc, to_naive_utc
from ..core.enums import SessionMode
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone, row_coordinates
from ..geofence.model import Coordinates
from .model import RotatingToken, Session
from .repository import SessionRepository

_SESSION_COLUMNS = """
    id, class_id, professor_id, started_at, ended_at, mode, require_geolocation,
    latitude, longitude, geofence_radius, qr_token, qr_expires_at
"""


class MySQLSessionRepository(SessionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, session_id: str) -> Optional[Session]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_SESSION_COLUMNS} FROM attendance_sessions WHERE id=%s", (session_id,))
            r = fetchone(cur)
            return self._to_session(r) if r else None

    def create(
        self,
        *,
        session_id: str,
        class_id: str,
        instructor_id: str,
        started_at: datetime,
        mode: SessionMode,
        require_geolocation: bool,
        anchor: Optional[Coordinates],
        radius_meters: float,
    ) -> Session:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_sessions(
                    id, class_id, professor_id, started_at, mode, require_geolocation,
                    latitude, longitude, geofence_radius
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    session_id,
                    class_id,
                    instructor_id,
                    to_naive_utc(started_at),
                    mode.value,
                    1 if require_geolocation else 0,
                    anchor.latitude if anchor else None,
                    anchor.longitude if anchor else None,
                    float(radius_meters),
                ),
            )
        return Session(
            session_id=session_id,
            class_id=class_id,
            instructor_id=instructor_id,
            started_at=started_at,
            mode=mode,
            require_geolocation=require_geolocation,
            anchor=anchor,
            radius_meters=float(radius_meters),
        )

    def close(self, session_id: str, *, ended_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE attendance_sessions SET ended_at=%s WHERE id=%s AND ended_at IS NULL",
                (to_naive_utc(ended_at), session_id),
            )
            return cur.rowcount > 0

    def get_token(self, session_id: str) -> Optional[RotatingToken]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT id, qr_token, qr_expires_at FROM attendance_sessions WHERE id=%s",
                (session_id,),
            )
            r = fetchone(cur)
            return self._to_token(r) if r else None

    def replace_token(self, token: RotatingToken, *, expected_value: Optional[str]) -> bool:
        # NULL-safe equality (<=>) so "no token yet" is also a valid expectation.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_sessions
                SET qr_token=%s, qr_expires_at=%s
                WHERE id=%s AND ended_at IS NULL AND qr_token <=> %s
                """,
                (token.value, to_naive_utc(token.expires_at), token.session_id, expected_value),
            )
            return cur.rowcount > 0

    def clear_token(self, session_id: str) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE attendance_sessions SET qr_token=NULL, qr_expires_at=NULL WHERE id=%s",
                (session_id,),
            )

    @staticmethod
    def _to_token(r: Dict[str, Any]) -> Optional[RotatingToken]:
        if not r.get("qr_token") or r.get("qr_expires_at") is None:
            return None
        return RotatingToken(session_id=str(r["id"]), value=r["qr_token"], expires_at=as_utc(r["qr_expires_at"]))

    def _to_session(self, r: Dict[str, Any]) -> Session:
        return Session(
            session_id=str(r["id"]),
            class_id=str(r["class_id"]),
            instructor_id=str(r["professor_id"]),
            started_at=as_utc(r["started_at"]),
            ended_at=as_utc(r.get("ended_at")),
            mode=SessionMode(r["mode"]),
            require_geolocation=bool(r["require_geolocation"]),
            anchor=row_coordinates(r),
            radius_meters=float(r.get("geofence_radius") or 0),
            token=self._to_token(r),
        )
