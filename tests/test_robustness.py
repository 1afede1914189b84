import importlib
import os
import sqlite3
import sys


sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from fixlink.services.booking_store import BookingStore
from fixlink.services.catalog_store import CatalogStore


def test_auth_ttl_invalid_env_falls_back(monkeypatch):
    monkeypatch.setenv("AUTH_TOKEN_TTL_HOURS", "not-a-number")
    sys.modules.pop("fixlink.auth", None)
    auth = importlib.import_module("fixlink.auth")
    assert auth.TOKEN_TTL_HOURS == 24


def test_auth_ttl_non_positive_env_falls_back(monkeypatch):
    monkeypatch.setenv("AUTH_TOKEN_TTL_HOURS", "0")
    sys.modules.pop("fixlink.auth", None)
    auth = importlib.import_module("fixlink.auth")
    assert auth.TOKEN_TTL_HOURS == 24


def test_tampered_token_is_rejected():
    from fixlink.auth import create_access_token, verify_access_token

    token, _ = create_access_token("customer_1", "customer")
    caller = verify_access_token(token)
    assert caller is not None and caller.user_id == "customer_1"

    payload, signature = token.split(".", 1)
    assert verify_access_token(f"{payload}.{signature[::-1]}") is None
    assert verify_access_token("garbage") is None


def test_catalog_seeds_once(tmp_path):
    db_path = str(tmp_path / "fixlink.sqlite3")
    CatalogStore(db_path=db_path)
    store = CatalogStore(db_path=db_path)
    assert store.count_users() == 10
    assert store.count_services() == 6


def test_booking_store_reopens_existing_database(tmp_path):
    db_path = tmp_path / "fixlink.sqlite3"
    BookingStore(db_path=str(db_path))
    with sqlite3.connect(str(db_path)) as conn:
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    assert {"bookings", "booking_status_history"} <= tables

    store = BookingStore(db_path=str(db_path))
    assert store.get("bk_missing") is None
    assert store.totals() == (0, 0.0)
