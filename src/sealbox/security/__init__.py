"""Security helpers: key derivation, DH negotiation and document encryption for SealBox.

This package provides:
- PBKDF2 / Argon2id key derivation from a password and a per-database salt
- optional Diffie-Hellman negotiation of the KDF input
- a ChaCha20-Poly1305 document codec bound to document ids
- an in-memory key session that can be scrubbed and switched off
- DocumentEncryption, which wires all of the above into a document store
"""

from .kdf import generate_salt, derive_key, derive_argon2_key
from .exchange import ExchangeParams, KeyExchange, negotiate
from .session import KeyBuffer, KeySession
from .codec import DocumentCodec
from .settings import CryptoSettings
from .encryption import DocumentEncryption

__all__ = [
    "generate_salt",
    "derive_key",
    "derive_argon2_key",
    "ExchangeParams",
    "KeyExchange",
    "negotiate",
    "KeyBuffer",
    "KeySession",
    "DocumentCodec",
    "CryptoSettings",
    "DocumentEncryption",
]
