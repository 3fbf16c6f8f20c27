"""
store.py - Create, read, update, delete and search over vault entries

EntryStore is the capability the session hands out. DocumentEntryStore keeps
entries in plaintext inside an unlocked VaultDocument; the whole document is
encrypted when the session exports it. The SQLite-backed variant lives in
database.py.
"""
import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Iterable, List, Optional

from .models import Entry, VaultDocument, format_timestamp, parse_timestamp, utc_now, validate_entry

logger = logging.getLogger(__name__)


def search_entries(entries: Iterable[Entry], query: str) -> List[Entry]:
    """
    Filter entries by a case-insensitive substring.

    Matches site name, URL, username and notes. An empty or blank query
    returns every entry in its original order.
    """
    entries = list(entries)
    if not query or not query.strip():
        return entries
    return [entry for entry in entries if entry.matches(query)]


def next_timestamp(previous: Optional[str]) -> str:
    """Now, pushed forward if needed so it sorts strictly after previous"""
    now = utc_now()
    if not previous:
        return now
    try:
        if parse_timestamp(now) <= parse_timestamp(previous):
            return format_timestamp(parse_timestamp(previous) + timedelta(milliseconds=1))
    except (TypeError, ValueError):
        logger.debug("Ignoring unparseable timestamp %r", previous)
    return now


class EntryStore(ABC):
    """Storage-independent entry operations"""

    @abstractmethod
    def list(self) -> List[Entry]:
        """All entries as copies"""

    @abstractmethod
    def get(self, entry_id: int) -> Optional[Entry]:
        """Entry with entry_id, or None"""

    @abstractmethod
    def create(self, entry: Entry) -> int:
        """Store a new entry and return its id"""

    @abstractmethod
    def update(self, entry: Entry) -> bool:
        """Replace the entry with the same id; False if there is none"""

    @abstractmethod
    def delete(self, entry_id: int) -> bool:
        """Remove an entry; False if there was nothing to remove"""

    def search(self, query: str) -> List[Entry]:
        return search_entries(self.list(), query)


class DocumentEntryStore(EntryStore):
    """
    Entries held directly in a VaultDocument's list.

    Insertion order is kept. Ids come from a counter that starts after the
    highest id already in the document; entries loaded without an id, or
    with an id an earlier entry already uses, are numbered when the store
    is attached.
    """

    def __init__(self, document: VaultDocument):
        self.document = document
        self._next_id = max((e.id for e in document.entries if e.id is not None), default=0) + 1

        seen = set()
        for entry in document.entries:
            if entry.id in seen:
                logger.warning("Duplicate entry id %s renumbered", entry.id)
                entry.id = None
            if entry.id is None:
                entry.id = self._allocate_id()
            seen.add(entry.id)

    @property
    def entries(self) -> List[Entry]:
        return self.document.entries

    def _allocate_id(self) -> int:
        entry_id = self._next_id
        self._next_id += 1
        return entry_id

    def _find(self, entry_id) -> Optional[int]:
        for index, entry in enumerate(self.entries):
            if entry.id == entry_id:
                return index
        return None

    def list(self) -> List[Entry]:
        return [entry.copy() for entry in self.entries]

    def get(self, entry_id: int) -> Optional[Entry]:
        index = self._find(entry_id)
        return None if index is None else self.entries[index].copy()

    def create(self, entry: Entry) -> int:
        validate_entry(entry)

        now = utc_now()
        stored = entry.copy(id=self._allocate_id(), created_at=now, modified_at=now)
        self.entries.append(stored)
        logger.debug("Created entry %s", stored.id)
        return stored.id

    def update(self, entry: Entry) -> bool:
        index = None if entry.id is None else self._find(entry.id)
        if index is None:
            return False
        validate_entry(entry)

        existing = self.entries[index]
        self.entries[index] = entry.copy(
            created_at=existing.created_at,
            modified_at=next_timestamp(existing.modified_at),
        )
        logger.debug("Updated entry %s", entry.id)
        return True

    def delete(self, entry_id: int) -> bool:
        index = self._find(entry_id)
        if index is None:
            return False
        del self.entries[index]
        logger.debug("Deleted entry %s", entry_id)
        return True
