from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from monstermedia.accounts import AccountService
from monstermedia.database import Database
from monstermedia.storage import InMemoryStorage, Storage

# The bcrypt minimum keeps hashing fast in tests.
TEST_BCRYPT_ROUNDS = 4


@pytest.fixture(params=["memory", "sqlite"])
def storage(request: pytest.FixtureRequest, tmp_path: Path) -> Storage:
    if request.param == "memory":
        store: Storage = InMemoryStorage()
    else:
        store = Database(tmp_path / "monstermedia.sqlite3")
    store.initialize()
    return store


@pytest.fixture()
def accounts(storage: Storage) -> AccountService:
    return AccountService(storage, bcrypt_rounds=TEST_BCRYPT_ROUNDS)
