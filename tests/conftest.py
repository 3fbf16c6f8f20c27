import pytest

from safekeep.codec import create_empty
from safekeep.database import Database
from safekeep.keys import KeyDerivation
from safekeep.models import Entry
from safekeep.session import MasterSession


@pytest.fixture
def fast_kdf():
    """Argon2id with the smallest allowed costs so tests stay quick"""
    return KeyDerivation(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def sample_entries():
    return [
        Entry(site_name="GitHub", site_url="https://github.com", username="octocat",
              password="gh-secret", notes="work account"),
        Entry(site_name="Example", username="u", password="p1"),
        Entry(site_name="bank", site_url="https://bank.example", username="me@mail.test",
              password="b4nk!", notes="PIN in safe"),
    ]


@pytest.fixture
def document(sample_entries):
    doc = create_empty("Test")
    for index, entry in enumerate(sample_entries, start=1):
        doc.entries.append(entry.copy(id=index, created_at="2024-01-01T00:00:00.000Z",
                                      modified_at="2024-01-01T00:00:00.000Z"))
    return doc


@pytest.fixture
def database(tmp_path):
    return Database(str(tmp_path / "safekeep.db"))


@pytest.fixture
def db_session(database, fast_kdf):
    session = MasterSession(database=database, key_derivation=fast_kdf)
    session.initialize_master("master123")
    assert session.unlock_store("master123")
    yield session
    session.lock()
