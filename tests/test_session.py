import pytest

from safekeep.codec import create_empty, encode
from safekeep.exceptions import (
    InvalidCredentialError,
    InvalidVaultError,
    SafeKeepError,
    StorageError,
    VaultLockedError,
)
from safekeep.models import Entry
from safekeep.session import MasterSession, SessionState
from safekeep.storage import VaultStorage


@pytest.fixture
def vault_text(document):
    return encode(document, "master123")


class TestFileVault:

    def test_starts_locked(self):
        session = MasterSession()
        assert session.state is SessionState.LOCKED
        assert session.vault_name is None
        with pytest.raises(VaultLockedError):
            session.store

    def test_unlock_success(self, vault_text, document):
        session = MasterSession()
        assert session.unlock(vault_text, "master123")
        assert session.state is SessionState.UNLOCKED
        assert session.last_error is None
        assert session.store.list() == document.entries
        assert session.vault_name == "Test"

    def test_unlock_wrong_password_stays_locked(self, vault_text):
        session = MasterSession()
        assert session.unlock(vault_text, "wrong") is False
        assert session.state is SessionState.LOCKED
        assert isinstance(session.last_error, InvalidVaultError)
        assert str(session.last_error) == "Invalid vault file or incorrect password"

    def test_failed_unlock_drops_previous_vault(self, vault_text):
        session = MasterSession()
        session.unlock(vault_text, "master123")
        session.unlock(vault_text, "wrong")
        with pytest.raises(VaultLockedError):
            session.store

    def test_lock_clears_everything(self, vault_text):
        session = MasterSession()
        session.unlock(vault_text, "master123")
        session.lock()

        assert session.state is SessionState.LOCKED
        with pytest.raises(VaultLockedError):
            session.document
        with pytest.raises(VaultLockedError):
            session.export()

    def test_lock_is_unconditional(self):
        session = MasterSession()
        session.lock()
        session.lock()
        assert session.state is SessionState.LOCKED

    def test_edits_survive_export(self, vault_text):
        session = MasterSession()
        session.unlock(vault_text, "master123")
        new_id = session.store.create(Entry(site_name="Added", password="pw"))
        session.store.delete(1)
        before = session.document.metadata.updated_at
        token = session.export()

        other = MasterSession()
        assert other.unlock(token, "master123")
        assert [e.id for e in other.store.list()] == [2, 3, new_id]
        assert other.document.metadata.updated_at >= before

    def test_file_name_wins_over_metadata_name(self, vault_text):
        session = MasterSession()
        session.unlock(vault_text, "master123", file_name="work")
        assert session.vault_name == "work"

    def test_unnamed_vault(self):
        doc = create_empty()
        doc.metadata.name = None
        session = MasterSession()
        session.unlock(encode(doc, "pw"), "pw")
        assert session.vault_name == "Unnamed Vault"

    def test_create_vault(self):
        session = MasterSession()
        document = session.create_vault("pw", "Fresh")
        assert session.is_unlocked
        assert document.metadata.name == "Fresh"
        assert session.store.list() == []

    def test_change_master_password(self, vault_text):
        session = MasterSession()
        session.unlock(vault_text, "master123")

        assert session.change_master_password("nope", "new-master") is False
        assert session.change_master_password("master123", "new-master") is True

        token = session.export()
        assert MasterSession().unlock(token, "new-master")
        assert not MasterSession().unlock(token, "master123")

    def test_save_and_unlock_file(self, tmp_path):
        storage = VaultStorage(str(tmp_path / "personal.vault"))
        session = MasterSession()
        session.create_vault("pw", "Personal")
        session.store.create(Entry(site_name="Example", password="p1"))
        session.save(storage)

        reopened = MasterSession()
        assert reopened.unlock_file(storage, "pw")
        assert reopened.vault_name == "personal"
        assert reopened.store.list()[0].site_name == "Example"

    def test_unlock_missing_file_reports_storage_error(self, tmp_path):
        session = MasterSession()
        assert not session.unlock_file(VaultStorage(str(tmp_path / "missing.vault")), "pw")
        assert isinstance(session.last_error, StorageError)

    def test_database_operations_need_a_database(self):
        with pytest.raises(SafeKeepError):
            MasterSession().unlock_store("pw")


class TestPersistentStore:

    def test_master_exists(self, database, fast_kdf):
        session = MasterSession(database=database, key_derivation=fast_kdf)
        assert not session.master_exists()
        session.initialize_master("master123")
        assert session.master_exists()

    def test_unlock_without_credential_fails(self, database, fast_kdf):
        session = MasterSession(database=database, key_derivation=fast_kdf)
        assert session.unlock_store("anything") is False
        assert isinstance(session.last_error, InvalidCredentialError)

    def test_wrong_password(self, db_session, database, fast_kdf):
        session = MasterSession(database=database, key_derivation=fast_kdf)
        assert session.unlock_store("wrong") is False
        assert session.state is SessionState.LOCKED
        assert isinstance(session.last_error, InvalidCredentialError)

    def test_entries_through_session(self, db_session, database, fast_kdf):
        entry_id = db_session.store.create(Entry(site_name="Example", username="u", password="p1"))
        db_session.lock()

        session = MasterSession(database=database, key_derivation=fast_kdf)
        assert session.unlock_store("master123")
        assert session.store.get(entry_id).password == "p1"
        assert session.vault_name == "Unnamed Vault"
        with pytest.raises(SafeKeepError):
            session.document

    def test_change_master_password_reencrypts(self, db_session, database, fast_kdf):
        entry_id = db_session.store.create(Entry(site_name="Example", password="p1"))

        assert db_session.change_master_password("master123", "rotated")
        assert db_session.store.get(entry_id).password == "p1"

        session = MasterSession(database=database, key_derivation=fast_kdf)
        assert not session.unlock_store("master123")
        assert session.unlock_store("rotated")
        assert session.store.get(entry_id).password == "p1"

    def test_storage_failure_is_reported(self, tmp_path, fast_kdf):
        from safekeep.database import Database

        session = MasterSession(database=Database(str(tmp_path)), key_derivation=fast_kdf)
        assert session.unlock_store("pw") is False
        assert isinstance(session.last_error, StorageError)
