"""
crypto.py - Password-based encryption of vault content
This is the cipher layer of SafeKeep

Tokens use the OpenSSL "Salted__" layout so vaults written by the original
browser app (CryptoJS AES with a passphrase) open unchanged:

    base64( b"Salted__" + salt[8] + AES-256-CBC(PKCS#7(plaintext)) )

The key and IV come from EVP_BytesToKey(MD5, password, salt).
"""
import base64
import binascii
import logging
import os

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

logger = logging.getLogger(__name__)

SALT_HEADER = b"Salted__"
SALT_SIZE = 8
KEY_SIZE = 32  # AES-256
IV_SIZE = 16
BLOCK_BITS = 128


def evp_bytes_to_key(password: bytes, salt: bytes, key_len: int = KEY_SIZE, iv_len: int = IV_SIZE):
    """
    OpenSSL's EVP_BytesToKey with MD5 and a single round.

    Returns:
        Tuple of (key, iv)
    """
    derived = b""
    block = b""
    while len(derived) < key_len + iv_len:
        digest = hashes.Hash(hashes.MD5())
        digest.update(block + password + salt)
        block = digest.finalize()
        derived += block
    return derived[:key_len], derived[key_len:key_len + iv_len]


class SymmetricCipher:
    """
    Encrypts strings under a password. The password is the secret; each
    call salts and derives its own key.

    decrypt() never raises on a wrong password or a damaged token. It hands
    back whatever it could recover, usually "" and occasionally garbage, so
    the caller has to validate what comes out.
    """

    def encrypt(self, plaintext: str, password: str) -> str:
        salt = os.urandom(SALT_SIZE)
        key, iv = evp_bytes_to_key(password.encode("utf-8"), salt)

        padder = padding.PKCS7(BLOCK_BITS).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()

        return base64.b64encode(SALT_HEADER + salt + ciphertext).decode("ascii")

    def decrypt(self, token: str, password: str) -> str:
        try:
            raw = base64.b64decode(token.strip(), validate=True)
        except (binascii.Error, ValueError, AttributeError):
            logger.debug("Token is not valid base64")
            return ""

        if not raw.startswith(SALT_HEADER):
            logger.debug("Token has no salt header")
            return ""

        salt = raw[len(SALT_HEADER):len(SALT_HEADER) + SALT_SIZE]
        ciphertext = raw[len(SALT_HEADER) + SALT_SIZE:]
        if len(salt) != SALT_SIZE or not ciphertext or len(ciphertext) % IV_SIZE:
            logger.debug("Token is truncated")
            return ""

        key, iv = evp_bytes_to_key(password.encode("utf-8"), salt)
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()

        try:
            unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
            data = unpadder.update(padded) + unpadder.finalize()
            return data.decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            # Wrong key almost always lands here
            return ""


_default_cipher = SymmetricCipher()


def encrypt(plaintext: str, password: str) -> str:
    """Encrypt plaintext with password and return a base64 token"""
    return _default_cipher.encrypt(plaintext, password)


def decrypt(token: str, password: str) -> str:
    """Best-effort decryption; "" when nothing sensible comes out"""
    return _default_cipher.decrypt(token, password)
