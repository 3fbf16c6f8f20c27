"""
SafeKeep - offline password vault.

Features:
- Vault files encrypted as a single AES token (OpenSSL "Salted__" format)
- Argon2id master credentials, with PBKDF2 kept for legacy records
- File-backed or SQLite-backed entry stores behind one interface
- Explicit lock/unlock session holding the master password in memory only
"""

__version__ = "1.0.0"
__license__ = "MIT"

from .codec import VaultCodec, create_empty
from .crypto import SymmetricCipher
from .database import Database, EncryptedEntryStore
from .keys import KeyDerivation, derive_credential, verify_credential
from .models import Entry, MasterCredential, VaultDocument, VaultMetadata
from .session import MasterSession, SessionState
from .store import DocumentEntryStore, EntryStore
from .cli import cli

__all__ = [
    "VaultCodec", "create_empty", "SymmetricCipher", "Database", "EncryptedEntryStore",
    "KeyDerivation", "derive_credential", "verify_credential",
    "Entry", "MasterCredential", "VaultDocument", "VaultMetadata",
    "MasterSession", "SessionState", "DocumentEntryStore", "EntryStore", "cli",
]


def get_version():
    """Get the current version string."""
    return __version__
