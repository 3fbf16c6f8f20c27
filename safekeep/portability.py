"""
portability.py - Import plain JSON/CSV password lists and export vault contents
Also builds .vault files from JSON, the job of the standalone generator tool
"""
import csv
import json
import os
from io import StringIO
from typing import List, Optional

from . import config
from .codec import VaultCodec, wrap_entries
from .exceptions import InvalidVaultError, StorageError
from .models import Entry, VaultDocument
from .storage import VaultStorage

CSV_FIELDS = ['site_name', 'site_url', 'username', 'password', 'notes', 'created_at', 'modified_at']


class VaultImporter:
    """Read unencrypted password lists into a VaultDocument"""

    SUPPORTED_FORMATS = {
        'json': 'List of entries, or an object with an "entries" list',
        'csv': 'CSV with a site_name,site_url,username,password,notes header',
    }

    def import_file(self, filepath: str, format_type: str = 'json') -> VaultDocument:
        """
        Import entries from a file.

        Args:
            filepath: Path to import file
            format_type: Format type (see SUPPORTED_FORMATS)

        Returns:
            A VaultDocument ready to be encrypted

        Raises:
            ValueError: unknown format
            InvalidVaultError: content has the wrong shape
            StorageError: file cannot be read
        """
        if format_type not in self.SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported format: {format_type}")

        try:
            with open(filepath, 'r', encoding='utf-8-sig', newline='') as f:
                if format_type == 'json':
                    return self._import_json(f.read())
                return self._import_csv(f)
        except OSError as e:
            raise StorageError(f"Failed to read {filepath}: {e}") from e

    def _import_json(self, text: str) -> VaultDocument:
        try:
            data = json.loads(text)
        except ValueError as e:
            raise InvalidVaultError(f"Not valid JSON: {e}") from None
        return wrap_entries(data)

    def _import_csv(self, f) -> VaultDocument:
        reader = csv.DictReader(f)
        rows = []
        for row in reader:
            # Skip blank lines and rows without the two required fields
            if not row.get('site_name') or not row.get('password'):
                continue
            rows.append({k: v for k, v in row.items() if k in CSV_FIELDS and v})
        return wrap_entries(rows)


class VaultExporter:
    """Write vault contents out as plain JSON or CSV"""

    def export_entries(self, document: VaultDocument, format_type: str = 'json',
                       include_passwords: bool = False, filepath: Optional[str] = None) -> str:
        """
        Export a document's entries.

        Passwords are masked unless include_passwords is set.

        Returns:
            The exported text, or a confirmation message if filepath is given
        """
        entries = [self._prepare(entry, include_passwords) for entry in document.entries]

        if format_type == 'json':
            data = self._export_json(document, entries)
        elif format_type == 'csv':
            data = self._export_csv(entries)
        else:
            raise ValueError(f"Unsupported export format: {format_type}")

        if filepath:
            try:
                with open(filepath, 'w', encoding='utf-8', newline='') as f:
                    f.write(data)
            except OSError as e:
                raise StorageError(f"Failed to write {filepath}: {e}") from e
            if os.name == 'posix':
                os.chmod(filepath, 0o600)
            return f"Exported to {filepath}"
        return data

    @staticmethod
    def _prepare(entry: Entry, include_passwords: bool) -> Entry:
        if include_passwords:
            return entry
        return entry.copy(password=config.HIDDEN_PASSWORD)

    def _export_json(self, document: VaultDocument, entries: List[Entry]) -> str:
        exported = VaultDocument(metadata=document.metadata, entries=entries)
        return json.dumps(exported.to_dict(), indent=2, ensure_ascii=False)

    def _export_csv(self, entries: List[Entry]) -> str:
        output = StringIO()
        writer = csv.DictWriter(output, fieldnames=CSV_FIELDS, extrasaction='ignore')
        writer.writeheader()
        for entry in entries:
            writer.writerow(entry.to_dict())
        return output.getvalue()


def vault_path_for(source_path: str) -> str:
    """Sibling .vault path: passwords.json -> passwords.vault"""
    base, _ = os.path.splitext(source_path)
    return base + config.VAULT_EXTENSION


def build_vault_file(source_path: str, password: str, output: Optional[str] = None,
                     codec: Optional[VaultCodec] = None, format_type: str = 'json') -> str:
    """
    Encrypt a plain list of entries into a .vault file.

    Args:
        source_path: Input file. JSON is an array of entries or
            {"entries": [...]}; CSV has a header row (see VaultImporter)
        password: Master password for the new vault
        output: Destination (default: next to the input with .vault extension)
        format_type: 'json' or 'csv'

    Returns:
        Path of the written vault
    """
    document = VaultImporter().import_file(source_path, format_type)
    token = (codec or VaultCodec()).encode(document, password)

    destination = output or vault_path_for(source_path)
    VaultStorage(destination).save(token)
    return destination
