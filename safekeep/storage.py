'''
storage.py - Reads and writes .vault files
The whole file is the cipher token; there is no header of our own.
'''
import logging
import os
import tempfile

from . import config
from .exceptions import StorageError

logger = logging.getLogger(__name__)


class VaultStorage:
    """Persistent storage of one encrypted vault file"""

    def __init__(self, filename: str):
        """
        Args:
            filename: Path of the .vault file
        """
        self.filename = filename

    @property
    def display_name(self) -> str:
        """File name without directory or .vault extension"""
        base = os.path.basename(self.filename)
        if base.endswith(config.VAULT_EXTENSION):
            base = base[:-len(config.VAULT_EXTENSION)]
        return base

    def save(self, token: str) -> None:
        """
        Write the token with owner-only permissions.

        The data goes to a uniquely named temporary sibling, created 0600
        by mkstemp, and is moved into place, so a failed write leaves the
        previous vault untouched.

        Raises:
            StorageError: if the file cannot be written
        """
        tmp_path = None
        try:
            config.ensure_parent_dir(self.filename)
            directory, base = os.path.split(os.path.abspath(self.filename))
            fd, tmp_path = tempfile.mkstemp(prefix=base + ".", suffix=".tmp", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(token)
            os.replace(tmp_path, self.filename)
        except OSError as e:
            logger.error("Failed to write vault %s: %s", self.filename, e)
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageError(f"Failed to write vault file: {e}") from e

    def load(self) -> str:
        """
        Raises:
            StorageError: if the file is missing or unreadable
        """
        try:
            with open(self.filename, "r", encoding="utf-8") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Failed to read vault %s: %s", self.filename, e)
            raise StorageError(f"Failed to read vault file: {e}") from e

    def exists(self) -> bool:
        return os.path.exists(self.filename)
