"""
exceptions.py - Error types raised by SafeKeep
"""


class SafeKeepError(Exception):
    """Base class for every SafeKeep error"""


class InvalidCredentialError(SafeKeepError):
    """Master password did not match the stored credential"""

    def __init__(self, message: str = "Incorrect master password"):
        super().__init__(message)


class InvalidVaultError(SafeKeepError):
    """
    Vault content could not be opened.

    Raised when the token does not decrypt, the plaintext is not JSON or the
    document is missing required fields. A wrong password and a corrupt file
    look the same from here, so they share one message.
    """

    GENERIC_MESSAGE = "Invalid vault file or incorrect password"

    def __init__(self, message: str = GENERIC_MESSAGE):
        super().__init__(message)


class UnsupportedVaultVersion(InvalidVaultError):
    """Vault decrypted fine but was written by a newer, incompatible format"""

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"Unsupported vault version: {version}")


class ValidationError(SafeKeepError):
    """An entry is missing a required field"""

    def __init__(self, field: str, message: str = None):
        self.field = field
        super().__init__(message or f"{field} is required")


class NotFoundError(SafeKeepError):
    """No entry exists with the given id"""

    def __init__(self, entry_id):
        self.entry_id = entry_id
        super().__init__(f"No entry with id {entry_id}")


class StorageError(SafeKeepError):
    """Reading or writing the underlying storage failed"""


class VaultLockedError(SafeKeepError):
    """Operation needs an unlocked session"""

    def __init__(self, message: str = "Vault is locked! Unlock it first."):
        super().__init__(message)
