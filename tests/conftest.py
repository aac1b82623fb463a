# tests/conftest.py
import pytest

from storage.db import LocalDB


@pytest.fixture
def db():
    store = LocalDB(":memory:")
    yield store
    store.close()


@pytest.fixture
def patient_id(db):
    return db.insert_patient("Test Patient", 72, room_number="101")["id"]
