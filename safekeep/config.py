"""
config.py - Default locations, format constants and logging setup

Every path can be overridden through an environment variable so tests and
scripts can point SafeKeep somewhere other than the user's home directory.
"""
import logging
import os

# Vault file format
VAULT_FORMAT_VERSION = "1.0.0"
SUPPORTED_MAJOR_VERSION = 1
VAULT_EXTENSION = ".vault"
DEFAULT_VAULT_NAME = "My Password Vault"
GENERATED_VAULT_NAME = "Generated Vault"
UNNAMED_VAULT = "Unnamed Vault"

# Key derivation
DEFAULT_KDF = "argon2id"
ARGON2_TIME_COST = 3        # iterations
ARGON2_MEMORY_COST = 65536  # 64MB
ARGON2_PARALLELISM = 4
ARGON2_HASH_LEN = 32
PBKDF2_ITERATIONS = 600_000
LEGACY_PBKDF2_ITERATIONS = 1000
PBKDF2_HASH_LEN = 64
SALT_BYTES = 16  # 128 bits

# Persistent store
SETTINGS_TABLE = "settings"
PASSWORDS_TABLE = "passwords"
MASTER_KEY_SETTING = "masterKey"

DEFAULT_PASSWORD_LENGTH = 16
HIDDEN_PASSWORD = "***HIDDEN***"


def get_home() -> str:
    """Directory holding the default vault and database"""
    return os.path.expanduser(os.environ.get("SAFEKEEP_HOME", "~/.safekeep"))


def get_default_vault() -> str:
    return os.environ.get(
        "SAFEKEEP_VAULT", os.path.join(get_home(), "passwords" + VAULT_EXTENSION)
    )


def get_default_database() -> str:
    return os.environ.get("SAFEKEEP_DB", os.path.join(get_home(), "safekeep.db"))


def get_clipboard_timeout() -> int:
    try:
        return int(os.environ.get("SAFEKEEP_CLIPBOARD_TIMEOUT", "30"))
    except ValueError:
        return 30


def ensure_parent_dir(path: str) -> None:
    """Create the parent directory of path with owner-only permissions"""
    parent = os.path.dirname(os.path.abspath(path))
    if not os.path.exists(parent):
        os.makedirs(parent, mode=0o700)


def configure_logging(verbose: bool = False) -> None:
    """Send SafeKeep log records to stderr (used by the CLI)"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
