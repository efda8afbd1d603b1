"""
Test configuration and fixtures for the inventory sync test suite.

Provides:
- Workbook factories writing real .xlsx files into tmp_path
- A FastAPI TestClient running the real lifespan against a temp data dir
- A polling helper for assertions on the background watcher
"""
import time
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook


SAMPLE_TABLE = [
    ["id", "name", "category", "quantity", "price", "supplier", "dateAdded"],
    ["PID-001", "Quantum Processor", "Electronics", 120, 250.00, "SynthCore", "2023-10-15"],
    ["PID-002", "Hydrogel Packs", "Medical", 45, 30.50, "BioGen", "2023-11-02"],
    ["PID-003", "Carbon Nanotubes", "Materials", 0, 1200.00, "NanoWorks", "2023-09-20"],
]


# ---------------------------------------------------------------------------
# Workbook factories
# ---------------------------------------------------------------------------

def write_workbook(path: Path, table: Sequence[Sequence[Any]], extra_sheets: Optional[dict] = None) -> Path:
    """Write `table` (header row first) as the first sheet of an xlsx file."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Inventory"
    for values in table:
        ws.append(list(values))
    for title, rows in (extra_sheets or {}).items():
        sheet = wb.create_sheet(title)
        for values in rows:
            sheet.append(list(values))
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    return path


def table_to_rows(table: Sequence[Sequence[Any]]) -> List[dict]:
    header, *data = table
    return [dict(zip(header, values)) for values in data]


@pytest.fixture()
def workbook_path(tmp_path) -> Path:
    return tmp_path / "data" / "inventory.xlsx"


@pytest.fixture()
def sample_workbook(workbook_path) -> Path:
    return write_workbook(workbook_path, SAMPLE_TABLE)


@pytest.fixture()
def wait_for() -> Callable[..., bool]:
    """Poll `predicate` until it returns truthy or `timeout` seconds pass."""

    def _wait(predicate: Callable[[], Any], timeout: float = 5.0, interval: float = 0.02) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return bool(predicate())

    return _wait


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def sync_settings(workbook_path):
    """Point the app at a temp inventory file with a fast poll interval."""
    from backend.core.config import settings

    with patch.object(settings, "INVENTORY_FILE", str(workbook_path)), \
         patch.object(settings, "POLL_INTERVAL_MS", 50), \
         patch.object(settings, "SEED_SAMPLE", True):
        yield settings


@pytest.fixture()
def client(sync_settings):
    """
    Provide a FastAPI TestClient with the real lifespan.

    The watcher starts against the temp inventory file and is stopped when
    the client closes.
    """
    from backend.api.main import app

    with TestClient(app) as c:
        yield c
