"""
codec.py - VaultDocument <-> encrypted vault text

Decoding is two-phase: the cipher returns best-effort text and the only
failure signal is whether that text parses into a well-formed document.
"""
import json
import logging
from typing import Any, Optional

from . import config
from .crypto import SymmetricCipher
from .exceptions import InvalidVaultError, UnsupportedVaultVersion
from .models import Entry, VaultDocument, VaultMetadata, utc_now

logger = logging.getLogger(__name__)


class VaultCodec:
    """Serializes, encrypts, decrypts and validates vault documents"""

    def __init__(self, cipher: Optional[SymmetricCipher] = None):
        self.cipher = cipher or SymmetricCipher()

    def decode(self, raw_text: str, password: str) -> VaultDocument:
        """
        Decrypt and parse a vault file.

        Args:
            raw_text: Entire contents of the .vault file
            password: Master password

        Returns:
            The decoded VaultDocument

        Raises:
            InvalidVaultError: wrong password, corrupt file or bad structure
            UnsupportedVaultVersion: written by a newer major format version
        """
        plaintext = self.cipher.decrypt(raw_text or "", password)
        if not plaintext:
            logger.warning("Failed to decrypt vault file")
            raise InvalidVaultError()

        try:
            data = json.loads(plaintext)
        except ValueError:
            logger.warning("Decrypted vault is not valid JSON")
            raise InvalidVaultError() from None

        if not isinstance(data, dict) or not isinstance(data.get("metadata"), dict) \
                or not isinstance(data.get("entries"), list):
            logger.warning("Invalid vault file structure")
            raise InvalidVaultError()

        self._check_version(data["metadata"].get("version"))

        try:
            return VaultDocument.from_dict(data)
        except (TypeError, ValueError) as e:
            logger.warning("Invalid vault entry: %s", e)
            raise InvalidVaultError() from None

    def encode(self, document: VaultDocument, password: str) -> str:
        """Serialize document to compact JSON and encrypt it"""
        payload = json.dumps(document.to_dict(), separators=(",", ":"), ensure_ascii=False)
        return self.cipher.encrypt(payload, password)

    @staticmethod
    def _check_version(version: Any) -> None:
        if version is None:
            return
        major = str(version).split(".", 1)[0]
        try:
            if int(major) > config.SUPPORTED_MAJOR_VERSION:
                raise UnsupportedVaultVersion(str(version))
        except ValueError:
            logger.warning("Unreadable vault version %r, trying anyway", version)


def create_empty(name: Optional[str] = None) -> VaultDocument:
    """New vault with no entries; name falls back to the default placeholder"""
    now = utc_now()
    return VaultDocument(
        metadata=VaultMetadata(
            version=config.VAULT_FORMAT_VERSION,
            created_at=now,
            updated_at=now,
            name=name or config.DEFAULT_VAULT_NAME,
        ),
        entries=[],
    )


def wrap_entries(data: Any) -> VaultDocument:
    """
    Turn loose JSON into a vault document.

    A bare list of entries is wrapped into a new document called
    "Generated Vault", numbering entries from 1 (skipping ids the input
    already uses) and filling in missing timestamps.
    An object is read as a document; missing metadata is filled
    in and entries without timestamps get the current time.

    Raises:
        InvalidVaultError: if data is neither shape
    """
    now = utc_now()

    if isinstance(data, list):
        # Positional ids never reuse an id the input already claims
        taken = {item.get("id") for item in data
                 if isinstance(item, dict) and isinstance(item.get("id"), int)}
        items = [
            dict({"id": index + 1}, **item)
            if isinstance(item, dict) and index + 1 not in taken else item
            for index, item in enumerate(data)
        ]
        metadata = VaultMetadata(
            version=config.VAULT_FORMAT_VERSION,
            created_at=now,
            updated_at=now,
            name=config.GENERATED_VAULT_NAME,
        )
    elif isinstance(data, dict) and isinstance(data.get("entries"), list):
        items = data["entries"]
        raw_meta = data.get("metadata")
        if isinstance(raw_meta, dict):
            metadata = VaultMetadata.from_dict(raw_meta)
        else:
            metadata = VaultMetadata(created_at=now, updated_at=now, name=config.GENERATED_VAULT_NAME)
    else:
        raise InvalidVaultError("Expected a list of entries or an object with an 'entries' list")

    try:
        entries = [Entry.from_dict(item) for item in items]
    except (TypeError, ValueError) as e:
        raise InvalidVaultError(f"Invalid entry: {e}") from None

    for entry in entries:
        entry.created_at = entry.created_at or now
        entry.modified_at = entry.modified_at or now

    if isinstance(data, list):
        next_id = max((e.id for e in entries if e.id is not None), default=0) + 1
        for entry in entries:
            if entry.id is None:
                entry.id = next_id
                next_id += 1

    return VaultDocument(metadata=metadata, entries=entries)


_default_codec = VaultCodec()


def decode(raw_text: str, password: str) -> VaultDocument:
    return _default_codec.decode(raw_text, password)


def encode(document: VaultDocument, password: str) -> str:
    return _default_codec.encode(document, password)
