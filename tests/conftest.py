import os
import sys

# ensure the backend modules are importable for tests
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import asyncio

import pytest
from fastapi.testclient import TestClient

from csv_store import DonationStore, HEADER
from main import app, get_store
from security_middleware import limiter


@pytest.fixture
def csv_path(tmp_path):
    return tmp_path / "donations.csv"


@pytest.fixture
def store(csv_path):
    store = DonationStore(csv_path)
    asyncio.run(store.initialize())
    return store


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def write_lines(csv_path):
    """Replace the backing file with the header plus the given data lines."""
    def write(*lines):
        csv_path.write_text(HEADER + "".join(line + "\n" for line in lines), encoding="utf-8")
    return write


@pytest.fixture(autouse=True)
def no_rate_limit():
    # tests that exercise the limiter turn it back on themselves
    limiter.enabled = False
    yield
    limiter.enabled = False
