"""
keys.py - Master password -> verifiable credential

The password is first digested with SHA-256, then stretched with a slow KDF
keyed by a random salt. Only the stretched hash and the salt are stored.
"""
import hashlib
import hmac
import logging
import os
from typing import Optional

from argon2.exceptions import HashingError
from argon2.low_level import hash_secret_raw, Type as Argon2Type
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from . import config
from .models import MasterCredential

logger = logging.getLogger(__name__)

ARGON2ID = "argon2id"
PBKDF2_SHA256 = "pbkdf2-sha256"
ALGORITHMS = (ARGON2ID, PBKDF2_SHA256)


def _prehash(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def _pbkdf2(digest: str, salt: str, iterations: int, length: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=length,
        salt=salt.encode("utf-8"),
        iterations=iterations,
    )
    return kdf.derive(digest.encode("utf-8"))


def _argon2(digest: str, salt: str, time_cost: int, memory_cost: int,
            parallelism: int, hash_len: int) -> bytes:
    return hash_secret_raw(
        secret=digest.encode("utf-8"),
        salt=bytes.fromhex(salt),
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
        hash_len=hash_len,
        type=Argon2Type.ID,
    )


class KeyDerivation:
    """
    Creates and checks master password credentials.

    Argon2id is the default. PBKDF2-SHA256 is kept for credentials written
    by the original app, which used 1000 iterations; records without an
    explicit iteration count are read with that legacy value.
    """

    def __init__(
        self,
        algorithm: str = config.DEFAULT_KDF,
        time_cost: int = config.ARGON2_TIME_COST,
        memory_cost: int = config.ARGON2_MEMORY_COST,
        parallelism: int = config.ARGON2_PARALLELISM,
        iterations: int = config.PBKDF2_ITERATIONS,
    ):
        if algorithm not in ALGORITHMS:
            raise ValueError(f"Unsupported key derivation algorithm: {algorithm}")
        self.algorithm = algorithm
        self.time_cost = time_cost
        self.memory_cost = memory_cost
        self.parallelism = parallelism
        self.iterations = iterations

    def derive_credential(self, password: str) -> MasterCredential:
        """
        Produce a fresh credential for password.

        Args:
            password: The master password

        Returns:
            MasterCredential with a new 128-bit salt
        """
        salt = os.urandom(config.SALT_BYTES).hex()

        if self.algorithm == ARGON2ID:
            params = {
                "time_cost": self.time_cost,
                "memory_cost": self.memory_cost,
                "parallelism": self.parallelism,
                "hash_len": config.ARGON2_HASH_LEN,
            }
        else:
            params = {"iterations": self.iterations, "hash_len": config.PBKDF2_HASH_LEN}

        digest = _compute(self.algorithm, password, salt, params)
        return MasterCredential(hash=digest.hex(), salt=salt, algorithm=self.algorithm, params=params)

    def verify_credential(self, password: str, credential: MasterCredential) -> bool:
        """
        Check password against a stored credential.

        Uses the algorithm and parameters recorded in the credential, not the
        ones this instance would use for new credentials.

        Returns:
            True if the password matches, False otherwise (never raises for a
            wrong password)
        """
        try:
            expected = bytes.fromhex(credential.hash)
            actual = _compute(credential.algorithm, password, credential.salt, credential.params)
        except (ValueError, TypeError, HashingError) as e:
            logger.warning("Could not verify master credential: %s", e)
            return False
        return hmac.compare_digest(actual, expected)


def _compute(algorithm: str, password: str, salt: str, params: Optional[dict]) -> bytes:
    params = params or {}
    digest = _prehash(password)

    if algorithm == ARGON2ID:
        return _argon2(
            digest,
            salt,
            time_cost=params.get("time_cost", config.ARGON2_TIME_COST),
            memory_cost=params.get("memory_cost", config.ARGON2_MEMORY_COST),
            parallelism=params.get("parallelism", config.ARGON2_PARALLELISM),
            hash_len=params.get("hash_len", config.ARGON2_HASH_LEN),
        )
    if algorithm == PBKDF2_SHA256:
        return _pbkdf2(
            digest,
            salt,
            iterations=params.get("iterations", config.LEGACY_PBKDF2_ITERATIONS),
            length=params.get("hash_len", config.PBKDF2_HASH_LEN),
        )
    raise ValueError(f"Unsupported key derivation algorithm: {algorithm}")


def derive_credential(password: str) -> MasterCredential:
    return KeyDerivation().derive_credential(password)


def verify_credential(password: str, credential: MasterCredential) -> bool:
    return KeyDerivation().verify_credential(password, credential)
