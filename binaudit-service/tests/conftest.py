import os
import sys
import itertools

import pytest
from fastapi.testclient import TestClient

# Ensure the app module is in path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from binaudit import AuditRegistry
from app.main import create_app


def counting_clock(start=1_700_000_000_000_000_000):
    counter = itertools.count(start)
    return lambda: next(counter)


@pytest.fixture
def registry():
    return AuditRegistry(clock=counting_clock())


@pytest.fixture
def app(registry):
    return create_app(registry=registry, max_payload_bytes=4 * 1024 * 1024)


@pytest.fixture
def client(app):
    return TestClient(app)
