# files/crypto.py

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken


class DecryptionFailed(Exception):
    """
    Raised when a payload cannot be decrypted. A wrong password and a corrupted
    payload are deliberately reported the same way.
    """


def derive_key(password: str) -> bytes:
    """
    Derives the symmetric key for a password.

    The password is hashed with SHA-256, so every password (including a very
    short or empty one) yields a full 32-byte key. The digest is returned in the
    url-safe base64 form Fernet expects. Same password, same key.
    """
    digest = hashlib.sha256(password.encode('utf-8')).digest()
    return base64.urlsafe_b64encode(digest)


# Fernet is AES-CBC with a random IV per token, PKCS7 padding and an
# HMAC-SHA256 tag, so any byte string (including b"") round-trips.
def encrypt(plaintext: bytes, key: bytes) -> bytes:
    return Fernet(key).encrypt(plaintext)


def decrypt(ciphertext: bytes, key: bytes) -> bytes:
    try:
        return Fernet(key).decrypt(ciphertext)
    except (InvalidToken, TypeError, ValueError) as e:
        raise DecryptionFailed("Incorrect password or corrupted file.") from e
