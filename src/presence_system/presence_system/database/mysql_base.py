from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import DuplicatePresenceError, PersistenceUnavailableError
from ..geofence.model import Coordinates
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    """Connection + cursor for one unit of work; commits on success.

    Connector errors are translated: lost/refused connections become
    PersistenceUnavailableError, duplicate keys become DuplicatePresenceError.
    """
    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except mysql.connector.errors.IntegrityError as e:
        _rollback(conn)
        if e.errno == errorcode.ER_DUP_ENTRY:
            raise DuplicatePresenceError(str(e)) from e
        raise
    except (mysql.connector.errors.InterfaceError, mysql.connector.errors.OperationalError) as e:
        _rollback(conn)
        raise PersistenceUnavailableError(str(e)) from e
    except Exception:
        _rollback(conn)
        raise
    finally:
        conn.close()


def _rollback(conn) -> None:
    try:
        conn.rollback()
    except mysql.connector.Error as e:
        # Connection already gone; the server discards the transaction.
        logger.debug("Rollback skipped: %s", e)


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def row_coordinates(row: Dict[str, Any], lat_key: str = "latitude", lon_key: str = "longitude") -> Optional[Coordinates]:
    """Normalize nullable DECIMAL/DOUBLE lat/lon columns into Coordinates."""
    lat = row.get(lat_key)
    lon = row.get(lon_key)
    if lat is None or lon is None:
        return None
    return Coordinates(latitude=float(lat), longitude=float(lon))
