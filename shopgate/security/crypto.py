"""Symmetric encryption for secrets kept at rest (per-tenant Shopify tokens).

Format: "<iv hex>:<ciphertext hex>", AES-256-CBC with PKCS7 padding.
The key is derived from SESSION_SECRET with scrypt, independent of the
Shopify API secret used for webhook HMACs.
"""

from __future__ import annotations

import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

_SALT = b"salt"
_KEY_LENGTH = 32
_IV_LENGTH = 16


def derive_key(secret: str) -> bytes:
    """Derive a 256-bit key from a passphrase (scrypt, N=2**14, r=8, p=1)."""
    kdf = Scrypt(salt=_SALT, length=_KEY_LENGTH, n=2**14, r=8, p=1)
    return kdf.derive(secret.encode("utf-8"))


def encrypt_data(data: str, secret: str) -> str:
    """Encrypt a UTF-8 string. A fresh random IV is used for every call."""
    iv = os.urandom(_IV_LENGTH)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(data.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(derive_key(secret)), modes.CBC(iv)).encryptor()
    encrypted = encryptor.update(padded) + encryptor.finalize()
    return f"{iv.hex()}:{encrypted.hex()}"


def decrypt_data(encrypted_data: str, secret: str) -> str:
    """Decrypt a value produced by encrypt_data.

    Raises:
        ValueError: malformed input, wrong secret, or corrupted ciphertext.
    """
    iv_hex, sep, encrypted_hex = encrypted_data.partition(":")
    if not sep:
        raise ValueError("Encrypted value must be '<iv>:<ciphertext>'")

    iv = bytes.fromhex(iv_hex)
    encrypted = bytes.fromhex(encrypted_hex)
    if len(iv) != _IV_LENGTH:
        raise ValueError("Invalid IV length")

    decryptor = Cipher(algorithms.AES(derive_key(secret)), modes.CBC(iv)).decryptor()
    padded = decryptor.update(encrypted) + decryptor.finalize()

    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    data = unpadder.update(padded) + unpadder.finalize()
    return data.decode("utf-8")
