"""
database.py - SQLite-backed persistent store

Two tables: `settings` holds the master credential under a fixed key and
`passwords` holds entries with only the encrypted form of each password.
"""
import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional

from . import config
from .crypto import SymmetricCipher
from .exceptions import StorageError
from .models import Entry, MasterCredential, utc_now, validate_entry
from .store import EntryStore, next_timestamp

logger = logging.getLogger(__name__)

ENTRY_COLUMNS = (
    "id", "site_name", "site_url", "username", "password_encrypted",
    "created_at", "modified_at", "notes",
)


class Database:
    """
    Keyed storage for settings and password rows.

    A connection is opened for each operation and closed afterwards. Any
    sqlite3 failure is rolled back and re-raised as StorageError.
    """

    def __init__(self, path: Optional[str] = None):
        """
        Args:
            path: SQLite file (default: SAFEKEEP_DB or ~/.safekeep/safekeep.db)
        """
        self.path = path or config.get_default_database()

    @contextmanager
    def _connect(self):
        try:
            if self.path != ":memory:":
                config.ensure_parent_dir(self.path)
            conn = sqlite3.connect(self.path)
        except (sqlite3.Error, OSError) as e:
            logger.error("Failed to open database %s: %s", self.path, e)
            raise StorageError(f"Failed to open database: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            self._create_schema(conn)
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("Database operation failed: %s", e)
            raise StorageError(f"Database operation failed: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        if os.name == "posix" and self.path != ":memory:":
            os.chmod(self.path, 0o600)

    @staticmethod
    def _create_schema(conn: sqlite3.Connection) -> None:
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {config.SETTINGS_TABLE} (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {config.PASSWORDS_TABLE} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                site_name TEXT NOT NULL,
                site_url TEXT NOT NULL DEFAULT '',
                username TEXT NOT NULL DEFAULT '',
                password_encrypted TEXT NOT NULL,
                created_at TEXT NOT NULL,
                modified_at TEXT NOT NULL,
                notes TEXT NOT NULL DEFAULT ''
            )
        """)
        conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_passwords_site_name "
            f"ON {config.PASSWORDS_TABLE} (site_name)"
        )

    # Settings

    def get_setting(self, key: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT value FROM {config.SETTINGS_TABLE} WHERE key = ?", (key,)
            ).fetchone()
        return json.loads(row["value"]) if row else None

    def put_setting(self, key: str, value: Dict[str, Any]) -> None:
        with self._connect() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {config.SETTINGS_TABLE} (key, value) VALUES (?, ?)",
                (key, json.dumps(value)),
            )

    def load_credential(self) -> Optional[MasterCredential]:
        data = self.get_setting(config.MASTER_KEY_SETTING)
        return MasterCredential.from_dict(data) if data else None

    def save_credential(self, credential: MasterCredential) -> None:
        self.put_setting(config.MASTER_KEY_SETTING, credential.to_dict())

    # Passwords

    def add_row(self, row: Dict[str, Any]) -> int:
        columns = [c for c in ENTRY_COLUMNS if c != "id"]
        with self._connect() as conn:
            cursor = conn.execute(
                f"INSERT INTO {config.PASSWORDS_TABLE} ({', '.join(columns)}) "
                f"VALUES ({', '.join('?' for _ in columns)})",
                [row[c] for c in columns],
            )
            return cursor.lastrowid

    def get_row(self, row_id: int) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT * FROM {config.PASSWORDS_TABLE} WHERE id = ?", (row_id,)
            ).fetchone()
        return dict(row) if row else None

    def all_rows(self) -> List[Dict[str, Any]]:
        """Every password row, sorted by site name then id"""
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM {config.PASSWORDS_TABLE} "
                f"ORDER BY site_name COLLATE NOCASE, id"
            ).fetchall()
        return [dict(row) for row in rows]

    def put_row(self, row: Dict[str, Any]) -> bool:
        columns = [c for c in ENTRY_COLUMNS if c != "id"]
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE {config.PASSWORDS_TABLE} SET "
                f"{', '.join(c + ' = ?' for c in columns)} WHERE id = ?",
                [row[c] for c in columns] + [row["id"]],
            )
            return cursor.rowcount > 0

    def delete_row(self, row_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                f"DELETE FROM {config.PASSWORDS_TABLE} WHERE id = ?", (row_id,)
            )
            return cursor.rowcount > 0

    def rekey(self, transform: Callable[[str], str], credential: MasterCredential) -> None:
        """
        Rewrite every encrypted password and the credential in one transaction.

        Args:
            transform: maps an old password_encrypted value to the new one
            credential: replacement master credential
        """
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT id, password_encrypted FROM {config.PASSWORDS_TABLE}"
            ).fetchall()
            for row in rows:
                conn.execute(
                    f"UPDATE {config.PASSWORDS_TABLE} SET password_encrypted = ? WHERE id = ?",
                    (transform(row["password_encrypted"]), row["id"]),
                )
            conn.execute(
                f"INSERT OR REPLACE INTO {config.SETTINGS_TABLE} (key, value) VALUES (?, ?)",
                (config.MASTER_KEY_SETTING, json.dumps(credential.to_dict())),
            )


class EncryptedEntryStore(EntryStore):
    """
    Entries kept in a Database, passwords encrypted one by one.

    Listing order is site name (case-insensitive), then id.
    """

    def __init__(self, database: Database, password: str, cipher: Optional[SymmetricCipher] = None):
        self.database = database
        self.cipher = cipher or SymmetricCipher()
        self._password = password

    def _to_entry(self, row: Dict[str, Any]) -> Entry:
        return Entry(
            id=row["id"],
            site_name=row["site_name"],
            site_url=row["site_url"] or "",
            username=row["username"] or "",
            password=self.cipher.decrypt(row["password_encrypted"], self._password),
            notes=row["notes"] or "",
            created_at=row["created_at"],
            modified_at=row["modified_at"],
        )

    def _to_row(self, entry: Entry) -> Dict[str, Any]:
        return {
            "id": entry.id,
            "site_name": entry.site_name,
            "site_url": entry.site_url or "",
            "username": entry.username or "",
            "password_encrypted": self.cipher.encrypt(entry.password, self._password),
            "created_at": entry.created_at,
            "modified_at": entry.modified_at,
            "notes": entry.notes or "",
        }

    def list(self) -> List[Entry]:
        return [self._to_entry(row) for row in self.database.all_rows()]

    def get(self, entry_id: int) -> Optional[Entry]:
        row = self.database.get_row(entry_id)
        return self._to_entry(row) if row else None

    def create(self, entry: Entry) -> int:
        validate_entry(entry)
        now = utc_now()
        row = self._to_row(entry.copy(created_at=now, modified_at=now))
        entry_id = self.database.add_row(row)
        logger.debug("Created entry %s", entry_id)
        return entry_id

    def update(self, entry: Entry) -> bool:
        if entry.id is None:
            return False
        existing = self.database.get_row(entry.id)
        if not existing:
            return False
        validate_entry(entry)

        row = self._to_row(entry.copy(
            created_at=existing["created_at"],
            modified_at=next_timestamp(existing["modified_at"]),
        ))
        return self.database.put_row(row)

    def delete(self, entry_id: int) -> bool:
        return self.database.delete_row(entry_id)
