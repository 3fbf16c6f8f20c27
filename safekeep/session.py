"""
session.py - Unlock/lock lifecycle of a vault

MasterSession is the only holder of the master password while a vault is
open. Everything that needs the key goes through it, and lock() drops the
key together with the decrypted entries.
"""
import hmac
import logging
from enum import Enum
from typing import Optional

from . import config
from .codec import VaultCodec, create_empty
from .crypto import SymmetricCipher
from .database import Database, EncryptedEntryStore
from .exceptions import (
    InvalidCredentialError,
    InvalidVaultError,
    SafeKeepError,
    StorageError,
    VaultLockedError,
)
from .keys import KeyDerivation
from .models import VaultDocument, utc_now
from .storage import VaultStorage
from .store import DocumentEntryStore, EntryStore

logger = logging.getLogger(__name__)


class SessionState(Enum):
    LOCKED = "locked"
    UNLOCKING = "unlocking"
    UNLOCKED = "unlocked"


class MasterSession:
    """
    One unlocked vault at a time.

    Works with either backend:
    - file vaults: unlock(file_content, password) decodes the whole document,
      export()/save() re-encrypt it
    - the SQLite store: unlock_store(password) checks the stored credential
      and hands out an EncryptedEntryStore
    """

    def __init__(
        self,
        codec: Optional[VaultCodec] = None,
        database: Optional[Database] = None,
        key_derivation: Optional[KeyDerivation] = None,
    ):
        self.codec = codec or VaultCodec()
        self.database = database
        self.key_derivation = key_derivation or KeyDerivation()

        self.state = SessionState.LOCKED
        self.last_error: Optional[SafeKeepError] = None
        self._password: Optional[str] = None
        self._document: Optional[VaultDocument] = None
        self._store: Optional[EntryStore] = None
        self._file_name: Optional[str] = None

    # State

    @property
    def is_unlocked(self) -> bool:
        return self.state is SessionState.UNLOCKED

    @property
    def store(self) -> EntryStore:
        """
        The live entry store.

        Raises:
            VaultLockedError: if the session is locked
        """
        self._require_unlocked()
        return self._store

    @property
    def document(self) -> VaultDocument:
        """The decrypted document (file vaults only)"""
        self._require_unlocked()
        if self._document is None:
            raise SafeKeepError("Session is backed by the database, not a vault document")
        return self._document

    @property
    def vault_name(self) -> Optional[str]:
        if not self.is_unlocked:
            return None
        if self._file_name:
            return self._file_name
        if self._document is not None and self._document.metadata.name:
            return self._document.metadata.name
        return config.UNNAMED_VAULT

    def _require_unlocked(self) -> None:
        if not self.is_unlocked:
            raise VaultLockedError()

    def _set_unlocked(self, password: str, store: EntryStore,
                      document: Optional[VaultDocument] = None, file_name: Optional[str] = None) -> None:
        self._password = password
        self._store = store
        self._document = document
        self._file_name = file_name
        self.last_error = None
        self.state = SessionState.UNLOCKED
        logger.debug("Session unlocked")

    def _fail(self, error: SafeKeepError) -> bool:
        self.lock()
        self.last_error = error
        return False

    # File vaults

    def unlock(self, file_content: str, password: str, file_name: Optional[str] = None) -> bool:
        """
        Open a vault file.

        Args:
            file_content: Entire contents of the .vault file
            password: Master password
            file_name: Optional display name (usually the file's base name)

        Returns:
            True if unlocked. False otherwise, with last_error set to the
            InvalidVaultError describing why.
        """
        self.lock()
        self.state = SessionState.UNLOCKING

        try:
            document = self.codec.decode(file_content, password)
        except InvalidVaultError as e:
            return self._fail(e)

        self._set_unlocked(password, DocumentEntryStore(document), document, file_name)
        return True

    def unlock_file(self, storage: VaultStorage, password: str) -> bool:
        """Read a vault from storage and unlock it; StorageError lands in last_error"""
        try:
            content = storage.load()
        except StorageError as e:
            return self._fail(e)
        return self.unlock(content, password, storage.display_name)

    def create_vault(self, password: str, name: Optional[str] = None) -> VaultDocument:
        """Start a new, empty vault and unlock it"""
        self.lock()
        document = create_empty(name)
        self._set_unlocked(password, DocumentEntryStore(document), document)
        return document

    def export(self) -> str:
        """
        Encrypt the current document with the session key.

        Returns:
            The vault file contents
        """
        document = self.document
        document.metadata.updated_at = utc_now()
        return self.codec.encode(document, self._password)

    def save(self, storage: VaultStorage) -> None:
        """
        Write the vault to storage.

        Raises:
            VaultLockedError: if locked
            StorageError: if the file cannot be written
        """
        storage.save(self.export())
        logger.debug("Vault saved to %s", storage.filename)

    # Persistent store

    def _require_database(self) -> Database:
        if self.database is None:
            raise SafeKeepError("No database configured for this session")
        return self.database

    def master_exists(self) -> bool:
        """True if a master credential has been stored"""
        return self._require_database().load_credential() is not None

    def initialize_master(self, password: str) -> None:
        """
        Store a new master credential.

        Raises:
            StorageError: if the database cannot be written
        """
        database = self._require_database()
        database.save_credential(self.key_derivation.derive_credential(password))
        logger.debug("Master credential initialized")

    def unlock_store(self, password: str) -> bool:
        """
        Verify password against the stored credential and open the store.

        Returns:
            True if unlocked. False with last_error set to an
            InvalidCredentialError (wrong password or no credential yet) or a
            StorageError.
        """
        database = self._require_database()
        self.lock()
        self.state = SessionState.UNLOCKING

        try:
            credential = database.load_credential()
        except StorageError as e:
            return self._fail(e)

        if credential is None or not self.key_derivation.verify_credential(password, credential):
            logger.warning("Master password verification failed")
            return self._fail(InvalidCredentialError())

        self._set_unlocked(password, EncryptedEntryStore(database, password, self._cipher()))
        return True

    def _cipher(self) -> SymmetricCipher:
        return self.codec.cipher

    # Both

    def change_master_password(self, current_password: str, new_password: str) -> bool:
        """
        Re-key the open vault.

        For file vaults the next export() uses the new password. For the
        database every stored password is re-encrypted and the credential
        replaced in one transaction.

        Returns:
            True if changed, False if current_password is wrong
        """
        self._require_unlocked()
        if not hmac.compare_digest(current_password.encode("utf-8"), self._password.encode("utf-8")):
            return False

        if self._document is None:
            cipher = self._cipher()
            credential = self.key_derivation.derive_credential(new_password)
            self.database.rekey(
                lambda token: cipher.encrypt(cipher.decrypt(token, current_password), new_password),
                credential,
            )
            self._store = EncryptedEntryStore(self.database, new_password, cipher)

        self._password = new_password
        logger.debug("Master password changed")
        return True

    def lock(self) -> None:
        """Forget the key and any decrypted data"""
        self._password = None
        self._document = None
        self._store = None
        self._file_name = None
        self.state = SessionState.LOCKED
