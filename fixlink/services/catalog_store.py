import json
import logging
import os
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from fixlink.models import ServiceListing, UserProfile, WeeklySlot
from fixlink.services.errors import FixLinkNotFoundError
from fixlink.services.rating import RatingSummary

logger = logging.getLogger(__name__)


WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

BUSINESS_BAY = [25.276987, 55.296233]


def _week(start: str, end: str, closed: tuple = ()) -> Dict[str, Dict[str, Any]]:
    return {day: {"start": start, "end": end, "available": day not in closed} for day in WEEKDAYS}


SEED_USERS: List[Dict[str, Any]] = [
    {"id": "admin_1", "first_name": "Amina", "last_name": "Al Farsi", "email": "admin@fixlink.com", "phone": "+971501234567", "role": "admin"},
    {"id": "customer_1", "first_name": "Omar", "last_name": "Al Mansoori", "email": "omar@example.com", "phone": "+971502345678", "role": "customer"},
    {"id": "customer_2", "first_name": "Fatima", "last_name": "Al Suwaidi", "email": "fatima@example.com", "phone": "+971503456789", "role": "customer"},
    {"id": "customer_3", "first_name": "Yousef", "last_name": "Al Nuaimi", "email": "yousef@example.com", "phone": "+971504567890", "role": "customer"},
    {"id": "provider_1", "first_name": "Khalid", "last_name": "Al Habtoor", "email": "khalid@example.com", "phone": "+971505678901", "role": "provider"},
    {"id": "provider_2", "first_name": "Layla", "last_name": "Al Mazrouei", "email": "layla@example.com", "phone": "+971506789012", "role": "provider"},
    {"id": "provider_3", "first_name": "Saeed", "last_name": "Al Falasi", "email": "saeed@example.com", "phone": "+971507890123", "role": "provider"},
    {"id": "provider_4", "first_name": "Maha", "last_name": "Al Qassimi", "email": "maha@example.com", "phone": "+971508901234", "role": "provider"},
    {"id": "provider_5", "first_name": "Faisal", "last_name": "Al Shamsi", "email": "faisal@example.com", "phone": "+971509012345", "role": "provider"},
    {"id": "provider_6", "first_name": "Noor", "last_name": "Al Marri", "email": "noor@example.com", "phone": "+971510123456", "role": "provider"},
]

SEED_SERVICES: List[Dict[str, Any]] = [
    {
        "id": "svc_1",
        "name": "Emergency Plumbing Repair",
        "category": "plumbing",
        "description": "24/7 emergency plumbing services including leak repairs, pipe fixes, and drain cleaning.",
        "price": 85,
        "price_type": "hourly",
        "provider_id": "provider_1",
        "service_area_km": 25,
        "availability": _week("08:00", "20:00"),
    },
    {
        "id": "svc_2",
        "name": "Deep House Cleaning",
        "category": "cleaning",
        "description": "Kitchen, bathrooms, living areas and bedrooms with eco-friendly products.",
        "price": 120,
        "price_type": "fixed",
        "provider_id": "provider_2",
        "service_area_km": 20,
        "availability": _week("09:00", "17:00", closed=("saturday", "sunday")),
    },
    {
        "id": "svc_3",
        "name": "Electrical Installation",
        "category": "electrical",
        "description": "Outlets, switches, lighting fixtures and electrical panels. Licensed and insured.",
        "price": 95,
        "price_type": "hourly",
        "provider_id": "provider_3",
        "service_area_km": 30,
        "availability": _week("08:00", "18:00", closed=("saturday", "sunday")),
    },
    {
        "id": "svc_4",
        "name": "Garden Design & Maintenance",
        "category": "gardening",
        "description": "Landscape design, planting and regular garden upkeep.",
        "price": 75,
        "price_type": "hourly",
        "provider_id": "provider_4",
        "service_area_km": 15,
        "availability": _week("07:00", "16:00", closed=("friday",)),
    },
    {
        "id": "svc_5",
        "name": "Interior Painting Service",
        "category": "painting",
        "description": "Interior wall and ceiling painting with surface preparation.",
        "price": 65,
        "price_type": "hourly",
        "provider_id": "provider_5",
        "service_area_km": 25,
        "availability": _week("08:00", "18:00", closed=("sunday",)),
    },
    {
        "id": "svc_6",
        "name": "Custom Cabinet Installation",
        "category": "carpentry",
        "description": "Made-to-measure cabinets, shelving and woodwork repairs.",
        "price": 110,
        "price_type": "hourly",
        "provider_id": "provider_6",
        "service_area_km": 20,
        "availability": _week("09:00", "17:00", closed=("friday", "saturday")),
    },
]


@dataclass
class CatalogStore:
    """User directory and service catalog the booking core looks things up in.

    Aggregate ratings on providers and services are only ever written through
    ``set_provider_rating`` and ``set_service_rating``.
    """

    db_path: str

    def __post_init__(self) -> None:
        self._lock = Lock()
        path = Path(self.db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = str(path)
        self._init_db()
        self._seed_if_needed()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS users (
                        id TEXT PRIMARY KEY,
                        first_name TEXT NOT NULL,
                        last_name TEXT NOT NULL,
                        email TEXT NOT NULL UNIQUE,
                        phone TEXT NOT NULL DEFAULT '',
                        role TEXT NOT NULL,
                        is_active INTEGER NOT NULL DEFAULT 1,
                        rating REAL NOT NULL DEFAULT 0,
                        total_reviews INTEGER NOT NULL DEFAULT 0
                    )
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS services (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        category TEXT NOT NULL,
                        description TEXT NOT NULL,
                        price REAL NOT NULL,
                        price_type TEXT NOT NULL DEFAULT 'hourly',
                        provider_id TEXT NOT NULL,
                        is_active INTEGER NOT NULL DEFAULT 1,
                        rating REAL NOT NULL DEFAULT 0,
                        total_reviews INTEGER NOT NULL DEFAULT 0,
                        coordinates_json TEXT NOT NULL,
                        service_area_km REAL NOT NULL DEFAULT 10,
                        availability_json TEXT NOT NULL DEFAULT '{}'
                    )
                    """
                )
                conn.commit()

    def _seed_if_needed(self) -> None:
        with self._lock:
            with self._connect() as conn:
                existing = conn.execute("SELECT COUNT(*) AS total FROM users").fetchone()["total"]
                if existing:
                    return
                for user in SEED_USERS:
                    self._insert_user(conn, UserProfile(**user))
                for service in SEED_SERVICES:
                    self._insert_service(conn, ServiceListing(coordinates=BUSINESS_BAY, **service))
                conn.commit()
        logger.info("Seeded catalog with %d users and %d services", len(SEED_USERS), len(SEED_SERVICES))

    def _insert_user(self, conn: sqlite3.Connection, user: UserProfile) -> None:
        conn.execute(
            """
            INSERT INTO users (id, first_name, last_name, email, phone, role, is_active, rating, total_reviews)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                user.id,
                user.first_name,
                user.last_name,
                user.email,
                user.phone,
                user.role,
                int(user.is_active),
                user.rating,
                user.total_reviews,
            ),
        )

    def _insert_service(self, conn: sqlite3.Connection, service: ServiceListing) -> None:
        conn.execute(
            """
            INSERT INTO services (
                id, name, category, description, price, price_type, provider_id, is_active,
                rating, total_reviews, coordinates_json, service_area_km, availability_json
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                service.id,
                service.name,
                service.category,
                service.description,
                service.price,
                service.price_type,
                service.provider_id,
                int(service.is_active),
                service.rating,
                service.total_reviews,
                json.dumps(service.coordinates),
                service.service_area_km,
                json.dumps({day: slot.model_dump() for day, slot in service.availability.items()}),
            ),
        )

    def _row_to_user(self, row: sqlite3.Row) -> UserProfile:
        return UserProfile(
            id=row["id"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            email=row["email"],
            phone=row["phone"],
            role=row["role"],
            is_active=bool(row["is_active"]),
            rating=float(row["rating"]),
            total_reviews=int(row["total_reviews"]),
        )

    def _row_to_service(self, row: sqlite3.Row) -> ServiceListing:
        availability = json.loads(row["availability_json"] or "{}")
        return ServiceListing(
            id=row["id"],
            name=row["name"],
            category=row["category"],
            description=row["description"],
            price=float(row["price"]),
            price_type=row["price_type"],
            provider_id=row["provider_id"],
            is_active=bool(row["is_active"]),
            rating=float(row["rating"]),
            total_reviews=int(row["total_reviews"]),
            coordinates=json.loads(row["coordinates_json"]),
            service_area_km=float(row["service_area_km"]),
            availability={day: WeeklySlot(**slot) for day, slot in availability.items()},
        )

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        with self._lock:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._row_to_user(row) if row else None

    def get_service(self, service_id: str) -> Optional[ServiceListing]:
        with self._lock:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM services WHERE id = ?", (service_id,)).fetchone()
        return self._row_to_service(row) if row else None

    def set_user_active(self, user_id: str, is_active: bool) -> UserProfile:
        with self._lock:
            with self._connect() as conn:
                cursor = conn.execute("UPDATE users SET is_active = ? WHERE id = ?", (int(is_active), user_id))
                if cursor.rowcount == 0:
                    raise FixLinkNotFoundError("User not found")
                conn.commit()
                row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._row_to_user(row)

    def set_service_active(self, service_id: str, is_active: bool) -> ServiceListing:
        with self._lock:
            with self._connect() as conn:
                cursor = conn.execute("UPDATE services SET is_active = ? WHERE id = ?", (int(is_active), service_id))
                if cursor.rowcount == 0:
                    raise FixLinkNotFoundError("Service not found")
                conn.commit()
                row = conn.execute("SELECT * FROM services WHERE id = ?", (service_id,)).fetchone()
        return self._row_to_service(row)

    def set_provider_rating(self, summary: RatingSummary) -> None:
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    "UPDATE users SET rating = ?, total_reviews = ? WHERE id = ?",
                    (summary.mean, summary.count, summary.entity_id),
                )
                conn.commit()

    def set_service_rating(self, summary: RatingSummary) -> None:
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    "UPDATE services SET rating = ?, total_reviews = ? WHERE id = ?",
                    (summary.mean, summary.count, summary.entity_id),
                )
                conn.commit()

    def count_users(self) -> int:
        with self._lock:
            with self._connect() as conn:
                return int(conn.execute("SELECT COUNT(*) AS total FROM users").fetchone()["total"])

    def count_services(self) -> int:
        with self._lock:
            with self._connect() as conn:
                return int(conn.execute("SELECT COUNT(*) AS total FROM services").fetchone()["total"])


default_db = str(Path(__file__).resolve().parents[2] / "data" / "fixlink.sqlite3")
catalog_store = CatalogStore(db_path=os.getenv("FIXLINK_DB_PATH", default_db))
