from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..common.datetime_utils import as_utc, to_naive_utc
from ..core.enums import PresenceMethod
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, row_coordinates
from ..geofence.model import Coordinates
from .model import PresenceEvent
from .repository import PresenceRepository

_EVENT_COLUMNS = """
    ar.id, ar.session_id, ar.student_id, ar.method, ar.latitude, ar.longitude,
    ar.marked_at, ar.admitted_at, ar.synced, ar.synced_at, s.class_id
"""


class MySQLPresenceRepository(PresenceRepository):
    """attendance_records table; UNIQUE(session_id, student_id) is the admission arbiter."""

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_for_session_and_subject(self, session_id: str, subject_id: str) -> Optional[PresenceEvent]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_EVENT_COLUMNS}
                FROM attendance_records ar
                JOIN attendance_sessions s ON s.id = ar.session_id
                WHERE ar.session_id=%s AND ar.student_id=%s
                """,
                (session_id, subject_id),
            )
            r = fetchone(cur)
            return self._to_event(r) if r else None

    def insert_admitted(
        self,
        *,
        session_id: str,
        subject_id: str,
        method: PresenceMethod,
        client_marked_at: datetime,
        admitted_at: datetime,
        coordinates: Optional[Coordinates] = None,
        synced_at: Optional[datetime] = None,
    ) -> PresenceEvent:
        # DuplicatePresenceError comes out of db_cursor on ER_DUP_ENTRY.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_records(
                    session_id, student_id, method, latitude, longitude,
                    marked_at, admitted_at, synced, synced_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    session_id,
                    subject_id,
                    method.value,
                    coordinates.latitude if coordinates else None,
                    coordinates.longitude if coordinates else None,
                    to_naive_utc(client_marked_at),
                    to_naive_utc(admitted_at),
                    1 if synced_at else 0,
                    to_naive_utc(synced_at),
                ),
            )
            event_id = int(cur.lastrowid)
            cur.execute("SELECT class_id FROM attendance_sessions WHERE id=%s", (session_id,))
            s = fetchone(cur)

        return PresenceEvent(
            event_id=event_id,
            session_id=session_id,
            subject_id=subject_id,
            class_id=str(s["class_id"]) if s else None,
            method=method,
            client_marked_at=client_marked_at,
            admitted_at=admitted_at,
            coordinates=coordinates,
            synced=synced_at is not None,
            synced_at=synced_at,
        )

    def list_for_session(self, session_id: str) -> Sequence[PresenceEvent]:
        return self.list_for_session_after(session_id, 0)

    def list_for_session_after(self, session_id: str, after_event_id: int) -> Sequence[PresenceEvent]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_EVENT_COLUMNS}
                FROM attendance_records ar
                JOIN attendance_sessions s ON s.id = ar.session_id
                WHERE ar.session_id=%s AND ar.id > %s
                ORDER BY ar.id ASC
                """,
                (session_id, int(after_event_id)),
            )
            return [self._to_event(r) for r in fetchall(cur)]

    def list_for_subject(self, subject_id: str, *, class_id: Optional[str] = None) -> Sequence[PresenceEvent]:
        clauses = ["ar.student_id=%s"]
        params: list[object] = [subject_id]
        if class_id is not None:
            clauses.append("s.class_id=%s")
            params.append(class_id)
        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_EVENT_COLUMNS}
                FROM attendance_records ar
                JOIN attendance_sessions s ON s.id = ar.session_id
                WHERE {where}
                ORDER BY ar.admitted_at DESC, ar.id DESC
                """,
                tuple(params),
            )
            return [self._to_event(r) for r in fetchall(cur)]

    @staticmethod
    def _to_event(r: Dict[str, Any]) -> PresenceEvent:
        return PresenceEvent(
            event_id=int(r["id"]),
            session_id=str(r["session_id"]),
            subject_id=str(r["student_id"]),
            class_id=str(r["class_id"]) if r.get("class_id") else None,
            method=PresenceMethod(r["method"]),
            coordinates=row_coordinates(r),
            client_marked_at=as_utc(r["marked_at"]),
            admitted_at=as_utc(r["admitted_at"]),
            synced=bool(r.get("synced")),
            synced_at=as_utc(r.get("synced_at")),
        )
