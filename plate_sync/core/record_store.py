"""
Local repair record store.

SQLite-backed; one row per repair with its photos kept as a JSON list of
base64 payloads.
"""

import json
import time
import sqlite3
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

logger = logging.getLogger(__name__)

MAX_PHOTOS_PER_RECORD = 12

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS repairs (
  id               INTEGER PRIMARY KEY AUTOINCREMENT,
  license_plate    TEXT NOT NULL,
  date             TEXT NOT NULL,
  photos           TEXT NOT NULL DEFAULT '[]',   -- JSON list of base64 strings
  notes            TEXT NOT NULL DEFAULT '',
  drive_folder_id  TEXT,
  created_at       INTEGER NOT NULL,             -- epoch millis
  updated_at       INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_repairs_plate   ON repairs(license_plate);
CREATE INDEX IF NOT EXISTS idx_repairs_updated ON repairs(updated_at);
"""


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class RepairRecord:
    license_plate: str
    date: str
    photos: List[str] = field(default_factory=list)
    notes: str = ""
    id: Optional[int] = None
    drive_folder_id: Optional[str] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None


class RepairStore:
    """SQLite repair record store.

    - ``save`` inserts when the record has no id, otherwise updates it.
    - ``list_all`` returns the most recently updated records first.
    """

    def __init__(self, db_path: str = "repairs.db") -> None:
        self.db_path = db_path
        # Keep one connection for in-memory databases, they vanish on close
        self._memory_conn: Optional[sqlite3.Connection] = None
        if db_path == ":memory:":
            self._memory_conn = sqlite3.connect(db_path, check_same_thread=False)
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)
        logger.info(f"Repair store ready at {db_path}")

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = self._memory_conn or sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if conn is not self._memory_conn:
                conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> RepairRecord:
        return RepairRecord(
            id=row["id"],
            license_plate=row["license_plate"],
            date=row["date"],
            photos=json.loads(row["photos"] or "[]"),
            notes=row["notes"] or "",
            drive_folder_id=row["drive_folder_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def save(self, record: RepairRecord) -> int:
        if not (record.license_plate or "").strip():
            raise ValueError("license_plate is required")
        if len(record.photos) > MAX_PHOTOS_PER_RECORD:
            raise ValueError(f"At most {MAX_PHOTOS_PER_RECORD} photos per record")

        now = _now_ms()
        photos_json = json.dumps(record.photos)

        with self._connect() as conn:
            if record.id is not None:
                cur = conn.execute(
                    """
                    UPDATE repairs
                       SET license_plate = ?, date = ?, photos = ?, notes = ?,
                           drive_folder_id = COALESCE(?, drive_folder_id), updated_at = ?
                     WHERE id = ?
                    """,
                    (record.license_plate, record.date, photos_json, record.notes,
                     record.drive_folder_id, now, record.id),
                )
                if cur.rowcount == 0:
                    raise KeyError(f"Repair {record.id} not found")
                record.updated_at = now
                logger.info(f"Updated repair {record.id} ({record.license_plate})")
                return record.id

            created_at = record.created_at or now
            cur = conn.execute(
                """
                INSERT INTO repairs (license_plate, date, photos, notes, drive_folder_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (record.license_plate, record.date, photos_json, record.notes,
                 record.drive_folder_id, created_at, now),
            )
            record.id = int(cur.lastrowid)
            record.created_at = created_at
            record.updated_at = now
            logger.info(f"Created repair {record.id} ({record.license_plate})")
            return record.id

    def get(self, record_id: int) -> Optional[RepairRecord]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM repairs WHERE id = ?", (record_id,)).fetchone()
        return self._row_to_record(row) if row else None

    def list_all(self) -> List[RepairRecord]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM repairs ORDER BY updated_at DESC, id DESC").fetchall()
        return [self._row_to_record(r) for r in rows]

    def delete(self, record_id: int) -> bool:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM repairs WHERE id = ?", (record_id,))
        return cur.rowcount > 0

    def set_drive_folder_id(self, record_id: int, folder_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE repairs SET drive_folder_id = ? WHERE id = ?",
                (folder_id, record_id),
            )
