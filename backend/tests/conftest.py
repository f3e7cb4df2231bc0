from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from tareas_api.core.db import ConnectionManager
from tests.utils.client import open_client
from tests.utils.fake_db import FakeDatabase, RecordingSleep, make_manager


@pytest.fixture()
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture()
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def manager(fake_db: FakeDatabase, sleep: RecordingSleep) -> ConnectionManager:
    return make_manager(fake_db, sleep=sleep)


@pytest.fixture()
def client(manager: ConnectionManager) -> Generator[TestClient, None, None]:
    with open_client(manager) as c:
        yield c


@pytest.fixture()
def disconnected_client(
    fake_db: FakeDatabase, sleep: RecordingSleep
) -> Generator[TestClient, None, None]:
    """App whose database never comes up (retries exhausted during startup)."""
    fake_db.fail_connect = 100
    with open_client(make_manager(fake_db, sleep=sleep, max_retries=2)) as c:
        yield c
