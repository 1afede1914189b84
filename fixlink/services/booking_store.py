import json
import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from fixlink.models import Booking, BookingStatusChange, Location
from fixlink.services.availability import as_utc
from fixlink.services.errors import FixLinkConflictError


BOOKING_COLUMNS = (
    "id",
    "customer_id",
    "provider_id",
    "service_id",
    "status",
    "scheduled_date",
    "scheduled_time",
    "duration",
    "total_amount",
    "address",
    "coordinates_json",
    "description",
    "special_instructions",
    "payment_status",
    "payment_method",
    "cancelled_by",
    "cancellation_reason",
    "rating",
    "review",
    "review_date",
    "provider_response",
    "provider_response_date",
    "created_at",
    "updated_at",
    "version",
)


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return as_utc(value).isoformat(timespec="microseconds")


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return as_utc(datetime.fromisoformat(value))


@dataclass
class BookingStore:
    db_path: str

    def __post_init__(self) -> None:
        self._lock = Lock()
        path = Path(self.db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = str(path)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS bookings (
                        id TEXT PRIMARY KEY,
                        customer_id TEXT NOT NULL,
                        provider_id TEXT NOT NULL,
                        service_id TEXT NOT NULL,
                        status TEXT NOT NULL,
                        scheduled_date TEXT NOT NULL,
                        scheduled_time TEXT NOT NULL,
                        duration REAL NOT NULL,
                        total_amount REAL NOT NULL,
                        address TEXT NOT NULL,
                        coordinates_json TEXT NOT NULL,
                        description TEXT,
                        special_instructions TEXT,
                        payment_status TEXT NOT NULL DEFAULT 'pending',
                        payment_method TEXT NOT NULL DEFAULT 'card',
                        cancelled_by TEXT,
                        cancellation_reason TEXT,
                        rating INTEGER,
                        review TEXT,
                        review_date TEXT,
                        provider_response TEXT,
                        provider_response_date TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        version INTEGER NOT NULL DEFAULT 1
                    )
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS booking_status_history (
                        id TEXT PRIMARY KEY,
                        booking_id TEXT NOT NULL,
                        actor_user_id TEXT NOT NULL,
                        from_status TEXT NOT NULL,
                        to_status TEXT NOT NULL,
                        note TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    )
                    """
                )
                conn.execute("CREATE INDEX IF NOT EXISTS idx_bookings_customer ON bookings (customer_id, status)")
                conn.execute("CREATE INDEX IF NOT EXISTS idx_bookings_provider ON bookings (provider_id, status)")
                conn.execute("CREATE INDEX IF NOT EXISTS idx_bookings_schedule ON bookings (scheduled_date, status)")
                conn.commit()

    def _row_to_booking(self, row: sqlite3.Row) -> Booking:
        return Booking(
            id=row["id"],
            customer_id=row["customer_id"],
            provider_id=row["provider_id"],
            service_id=row["service_id"],
            status=row["status"],
            scheduled_date=_from_iso(row["scheduled_date"]),
            scheduled_time=row["scheduled_time"],
            duration=row["duration"],
            total_amount=row["total_amount"],
            location=Location(address=row["address"], coordinates=json.loads(row["coordinates_json"])),
            description=row["description"],
            special_instructions=row["special_instructions"],
            payment_status=row["payment_status"],
            payment_method=row["payment_method"],
            cancelled_by=row["cancelled_by"],
            cancellation_reason=row["cancellation_reason"],
            rating=row["rating"],
            review=row["review"],
            review_date=_from_iso(row["review_date"]),
            provider_response=row["provider_response"],
            provider_response_date=_from_iso(row["provider_response_date"]),
            created_at=_from_iso(row["created_at"]),
            updated_at=_from_iso(row["updated_at"]),
            version=row["version"],
        )

    def _booking_to_row(self, booking: Booking) -> Dict[str, Any]:
        return {
            "id": booking.id,
            "customer_id": booking.customer_id,
            "provider_id": booking.provider_id,
            "service_id": booking.service_id,
            "status": booking.status,
            "scheduled_date": _to_iso(booking.scheduled_date),
            "scheduled_time": booking.scheduled_time,
            "duration": booking.duration,
            "total_amount": booking.total_amount,
            "address": booking.location.address,
            "coordinates_json": json.dumps(list(booking.location.coordinates)),
            "description": booking.description,
            "special_instructions": booking.special_instructions,
            "payment_status": booking.payment_status,
            "payment_method": booking.payment_method,
            "cancelled_by": booking.cancelled_by,
            "cancellation_reason": booking.cancellation_reason,
            "rating": booking.rating,
            "review": booking.review,
            "review_date": _to_iso(booking.review_date),
            "provider_response": booking.provider_response,
            "provider_response_date": _to_iso(booking.provider_response_date),
            "created_at": _to_iso(booking.created_at),
            "updated_at": _to_iso(booking.updated_at),
            "version": booking.version,
        }

    def _insert_history(
        self,
        conn: sqlite3.Connection,
        *,
        booking_id: str,
        actor_user_id: str,
        from_status: str,
        to_status: str,
        note: str,
        created_at: datetime,
    ) -> None:
        conn.execute(
            """
            INSERT INTO booking_status_history (id, booking_id, actor_user_id, from_status, to_status, note, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                f"bsh_{uuid4().hex[:10]}",
                booking_id,
                actor_user_id,
                from_status,
                to_status,
                note,
                _to_iso(created_at),
            ),
        )

    def insert(self, booking: Booking, *, actor_user_id: str) -> Booking:
        row = self._booking_to_row(booking)
        placeholders = ", ".join("?" for _ in BOOKING_COLUMNS)
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    f"INSERT INTO bookings ({', '.join(BOOKING_COLUMNS)}) VALUES ({placeholders})",
                    tuple(row[column] for column in BOOKING_COLUMNS),
                )
                self._insert_history(
                    conn,
                    booking_id=booking.id,
                    actor_user_id=actor_user_id,
                    from_status="none",
                    to_status=booking.status,
                    note="booking requested",
                    created_at=booking.created_at,
                )
                conn.commit()
        return booking

    def get(self, booking_id: str) -> Optional[Booking]:
        with self._lock:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM bookings WHERE id = ?", (booking_id,)).fetchone()
        return self._row_to_booking(row) if row else None

    def save(
        self,
        booking: Booking,
        *,
        expected_version: int,
        actor_user_id: str,
        from_status: str,
        note: str = "",
    ) -> Booking:
        """Write the booking back if nobody else has written it since it was read.

        The stored version must still equal ``expected_version``; it is bumped
        by one on success. A status change is appended to the history table in
        the same transaction.
        """
        row = self._booking_to_row(booking)
        mutable = [column for column in BOOKING_COLUMNS if column not in {"id", "version"}]
        assignments = ", ".join(f"{column} = ?" for column in mutable)
        with self._lock:
            with self._connect() as conn:
                cursor = conn.execute(
                    f"UPDATE bookings SET {assignments}, version = version + 1 WHERE id = ? AND version = ?",
                    tuple(row[column] for column in mutable) + (booking.id, expected_version),
                )
                if cursor.rowcount == 0:
                    raise FixLinkConflictError("Booking was modified by another request; reload and retry")
                if from_status != booking.status:
                    self._insert_history(
                        conn,
                        booking_id=booking.id,
                        actor_user_id=actor_user_id,
                        from_status=from_status,
                        to_status=booking.status,
                        note=note,
                        created_at=booking.updated_at,
                    )
                conn.commit()
                updated = conn.execute("SELECT * FROM bookings WHERE id = ?", (booking.id,)).fetchone()
        return self._row_to_booking(updated)

    def _scope_clause(
        self,
        customer_id: Optional[str],
        provider_id: Optional[str],
        status: Optional[str],
    ) -> Tuple[str, List[Any]]:
        clauses: List[str] = []
        params: List[Any] = []
        if customer_id is not None:
            clauses.append("customer_id = ?")
            params.append(customer_id)
        if provider_id is not None:
            clauses.append("provider_id = ?")
            params.append(provider_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(status)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    def query(
        self,
        *,
        customer_id: Optional[str] = None,
        provider_id: Optional[str] = None,
        status: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Booking], int]:
        where, params = self._scope_clause(customer_id, provider_id, status)
        with self._lock:
            with self._connect() as conn:
                total = conn.execute(f"SELECT COUNT(*) AS total FROM bookings{where}", tuple(params)).fetchone()["total"]
                rows = conn.execute(
                    f"SELECT * FROM bookings{where} ORDER BY scheduled_date DESC, created_at DESC LIMIT ? OFFSET ?",
                    tuple(params) + (limit, offset),
                ).fetchall()
        return [self._row_to_booking(row) for row in rows], int(total)

    def count_by_status(
        self,
        *,
        customer_id: Optional[str] = None,
        provider_id: Optional[str] = None,
    ) -> Dict[str, int]:
        where, params = self._scope_clause(customer_id, provider_id, None)
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    f"SELECT status, COUNT(*) AS count FROM bookings{where} GROUP BY status",
                    tuple(params),
                ).fetchall()
        return {row["status"]: int(row["count"]) for row in rows}

    def ratings_for(self, field: str, entity_id: str) -> List[int]:
        """Snapshot of every present rating on bookings referencing a provider or service."""
        if field not in {"provider_id", "service_id"}:
            raise ValueError(f"Unsupported rating field: {field}")
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    f"SELECT rating FROM bookings WHERE {field} = ? AND rating IS NOT NULL",
                    (entity_id,),
                ).fetchall()
        return [int(row["rating"]) for row in rows]

    def history(self, booking_id: str) -> List[BookingStatusChange]:
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM booking_status_history WHERE booking_id = ? ORDER BY created_at, rowid",
                    (booking_id,),
                ).fetchall()
        return [
            BookingStatusChange(
                id=row["id"],
                booking_id=row["booking_id"],
                actor_user_id=row["actor_user_id"],
                from_status=row["from_status"],
                to_status=row["to_status"],
                note=row["note"],
                created_at=_from_iso(row["created_at"]),
            )
            for row in rows
        ]

    def totals(self) -> Tuple[int, float]:
        with self._lock:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT COUNT(*) AS total, COALESCE(SUM(total_amount), 0) AS revenue FROM bookings"
                ).fetchone()
        return int(row["total"]), float(row["revenue"])


default_db = str(Path(__file__).resolve().parents[2] / "data" / "fixlink.sqlite3")
booking_store = BookingStore(db_path=os.getenv("FIXLINK_DB_PATH", default_db))
