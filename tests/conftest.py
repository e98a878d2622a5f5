"""
Pytest configuration for fleetboard.

Provides fixtures for:
- Small, hand-written record collections (vehicles, numbered rows)
- Stores pre-loaded with those collections
- A JSON document data source seeded in a temporary directory
- Settings override for integration tests
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List

import pytest

from fleetboard.config import Settings, get_settings
from fleetboard.infrastructure.sources import JsonFileRecordSource
from fleetboard.store import RecordStore

NUMBERED_ROWS = 25


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Drop the cached Settings so env changes made by a test are picked up."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def vehicles() -> List[Dict[str, Any]]:
    return [
        {
            "id": "v1",
            "make": "Toyota",
            "model": "Prius",
            "status": "available",
            "category": "electric",
            "partner_id": "p1",
            "weekly_rate": 250,
            "year": 2021,
            "created_at": "2024-03-01T09:00:00Z",
        },
        {
            "id": "v2",
            "make": "Kia",
            "model": "Niro",
            "status": "rented",
            "category": "suv",
            "partner_id": "p2",
            "weekly_rate": 300.5,
            "year": 2023,
            "created_at": "2024-01-15T09:00:00+00:00",
            "current_driver": {"id": "d1", "name": "Amara Okafor"},
        },
        {
            "id": "v3",
            "make": "Volkswagen",
            "model": "Golf",
            "status": "maintenance",
            "category": "saloon",
            "partner_id": "p1",
            "weekly_rate": "199.50",
            "created_at": "2024-02-10",
        },
    ]


@pytest.fixture
def numbered_records() -> List[Dict[str, Any]]:
    return [{"id": f"r{i:02d}", "rank": i, "group": "even" if i % 2 == 0 else "odd"} for i in range(1, NUMBERED_ROWS + 1)]


@pytest.fixture
def vehicle_store(vehicles) -> RecordStore:
    store = RecordStore(name="vehicles")
    store.load(vehicles)
    return store


@pytest.fixture
def data_file(tmp_path: Path, vehicles) -> Path:
    path = tmp_path / "tables.json"
    path.write_text(json.dumps({"vehicles": vehicles}), encoding="utf-8")
    return path


@pytest.fixture
def json_source(data_file: Path) -> JsonFileRecordSource:
    return JsonFileRecordSource(data_file)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "fleetboard"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for integration tests.
    """
    return test_settings.dsn
