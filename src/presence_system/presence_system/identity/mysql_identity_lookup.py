from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import SubjectProfile
from .repository import IdentityLookup


class MySQLIdentityLookup(IdentityLookup):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_profile(self, subject_id: str) -> Optional[SubjectProfile]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT id, full_name, registration_number FROM profiles WHERE id=%s",
                (subject_id,),
            )
            r = fetchone(cur)
            if not r:
                return None
            return SubjectProfile(
                subject_id=str(r["id"]),
                full_name=r["full_name"],
                registration_number=r.get("registration_number") or "",
            )

    def list_enrolled(self, class_id: str) -> Sequence[SubjectProfile]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT p.id, p.full_name, p.registration_number
                FROM profiles p
                JOIN class_enrollments ce ON ce.student_id = p.id
                WHERE ce.class_id=%s
                ORDER BY p.full_name ASC
                """,
                (class_id,),
            )
            return [
                SubjectProfile(
                    subject_id=str(r["id"]),
                    full_name=r["full_name"],
                    registration_number=r.get("registration_number") or "",
                )
                for r in fetchall(cur)
            ]
