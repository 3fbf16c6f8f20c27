"""
models.py - Fixed-shape records for vault documents, entries and credentials
"""
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .config import VAULT_FORMAT_VERSION, DEFAULT_VAULT_NAME
from .exceptions import ValidationError


def utc_now() -> str:
    """Current time as ISO-8601 UTC with milliseconds, e.g. 2024-01-31T09:15:00.123Z"""
    return format_timestamp(datetime.now(timezone.utc))


def format_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """
    Raises:
        TypeError: if value is not a string
        ValueError: if it is not an ISO-8601 timestamp
    """
    if not isinstance(value, str):
        raise TypeError(f"timestamp must be a string, got {type(value).__name__}")
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _text(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {type(value).__name__}")
    return value


def _optional_text(value: Any) -> Optional[str]:
    return None if value is None else _text(value)


@dataclass
class Entry:
    """One stored credential. The password is plaintext only while in memory."""

    site_name: str
    password: str
    site_url: str = ""
    username: str = ""
    notes: str = ""
    id: Optional[int] = None
    created_at: Optional[str] = None
    modified_at: Optional[str] = None

    def copy(self, **changes) -> "Entry":
        return replace(self, **changes)

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match over the searchable text fields"""
        needle = query.lower()
        return any(
            needle in (value or "").lower()
            for value in (self.site_name, self.site_url, self.username, self.notes)
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.id is None:
            del data["id"]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entry":
        """
        Build an entry from its JSON form.

        Raises:
            TypeError / ValueError: if a field has the wrong type
        """
        if not isinstance(data, dict):
            raise TypeError("entry must be an object")

        entry_id = data.get("id")
        if entry_id is not None and (isinstance(entry_id, bool) or not isinstance(entry_id, int)):
            raise ValueError(f"entry id must be an integer, got {entry_id!r}")

        return cls(
            id=entry_id,
            site_name=_text(data.get("site_name")),
            site_url=_text(data.get("site_url")),
            username=_text(data.get("username")),
            password=_text(data.get("password")),
            notes=_text(data.get("notes")),
            created_at=_optional_text(data.get("created_at")),
            modified_at=_optional_text(data.get("modified_at")),
        )


def validate_entry(entry: Entry) -> None:
    """
    Reject entries missing a site name or password.

    Raises:
        ValidationError: naming the first empty required field
    """
    if not entry.site_name or not entry.site_name.strip():
        raise ValidationError("site_name", "Site name is required")
    if not entry.password or not entry.password.strip():
        raise ValidationError("password", "Password is required")


@dataclass
class VaultMetadata:
    version: str = VAULT_FORMAT_VERSION
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)
    name: Optional[str] = DEFAULT_VAULT_NAME
    # Keys written by other versions, kept so re-saving does not drop them
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            "version": self.version,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        })
        if self.name is not None:
            data["name"] = self.name
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VaultMetadata":
        if not isinstance(data, dict):
            raise TypeError("metadata must be an object")
        known = {"version", "createdAt", "updatedAt", "name"}
        now = utc_now()
        return cls(
            version=str(data.get("version") or VAULT_FORMAT_VERSION),
            created_at=data.get("createdAt") or now,
            updated_at=data.get("updatedAt") or now,
            name=data.get("name"),
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class VaultDocument:
    """Decrypted vault: metadata plus the list of entries"""

    metadata: VaultMetadata = field(default_factory=VaultMetadata)
    entries: List[Entry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "entries": [entry.to_dict() for entry in self.entries],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VaultDocument":
        if not isinstance(data, dict):
            raise TypeError("vault document must be an object")
        if not isinstance(data.get("entries"), list):
            raise TypeError("entries must be an array")
        return cls(
            metadata=VaultMetadata.from_dict(data.get("metadata")),
            entries=[Entry.from_dict(item) for item in data["entries"]],
        )


@dataclass
class MasterCredential:
    """Salted, stretched hash of the master password. One-way only."""

    hash: str
    salt: str
    algorithm: str = "pbkdf2-sha256"
    params: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MasterCredential":
        return cls(
            hash=data["hash"],
            salt=data["salt"],
            algorithm=data.get("algorithm", "pbkdf2-sha256"),
            params=dict(data.get("params") or {}),
        )
