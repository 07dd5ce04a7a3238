import os
from typing import Dict, Mapping, Optional

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..core.exceptions import KeyDerivationError

PBKDF2_SHA256 = "pbkdf2-sha256"
ARGON2ID = "argon2id"

# Fixed for every database created without an explicit "kdf" entry in its config record.
PBKDF2_ITERATIONS = 100_000
KEY_LENGTH = 32  # 256-bit ChaCha20-Poly1305 key
SALT_LENGTH = 16


def generate_salt(length: int = SALT_LENGTH) -> bytes:
    """Return a cryptographically secure random salt."""
    return os.urandom(length)


def _as_bytes(password) -> bytes:
    if isinstance(password, str):
        return password.encode("utf-8")
    return bytes(password)


def derive_key(
    password: bytes,
    salt: bytes,
    iterations: int = PBKDF2_ITERATIONS,
    key_len: int = KEY_LENGTH,
) -> bytes:
    """
    Derive a document key from a password using PBKDF2-HMAC-SHA256.
    Returns raw derived key bytes.
    """
    try:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=key_len,
            salt=salt,
            iterations=iterations,
        )
        return kdf.derive(_as_bytes(password))
    except (TypeError, ValueError) as e:
        raise KeyDerivationError(f"PBKDF2 derivation failed: {e}") from e


def derive_argon2_key(
    password: bytes,
    salt: bytes,
    time_cost: int = 3,
    memory_cost: int = 65536,
    parallelism: int = 1,
    key_len: int = KEY_LENGTH,
) -> bytes:
    """
    Derive a document key from a password using Argon2id.
    Returns raw derived key bytes.
    """
    try:
        return hash_secret_raw(
            secret=_as_bytes(password),
            salt=salt,
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=key_len,
            type=Type.ID,
        )
    except (HashingError, TypeError, ValueError) as e:
        raise KeyDerivationError(f"Argon2id derivation failed: {e}") from e


def derive_from_params(password: bytes, salt: bytes, params: Optional[Mapping] = None) -> bytes:
    """Derive a key using the parameters persisted in a crypto config record.

    A record without parameters predates algorithm selection and uses PBKDF2
    with the default iteration count.
    """
    if not params:
        return derive_key(password, salt)

    algo = params.get("algo")
    try:
        if algo == PBKDF2_SHA256:
            return derive_key(password, salt, iterations=int(params.get("iterations", PBKDF2_ITERATIONS)))
        if algo == ARGON2ID:
            return derive_argon2_key(
                password,
                salt,
                time_cost=int(params.get("time", 3)),
                memory_cost=int(params.get("memory", 65536)),
                parallelism=int(params.get("parallelism", 1)),
            )
    except (TypeError, ValueError) as e:
        raise KeyDerivationError(f"invalid KDF parameters: {e}") from e
    raise KeyDerivationError(f"unsupported KDF algorithm {algo!r}")


def kdf_params_to_dict(
    algo: str,
    iterations: Optional[int] = None,
    time_cost: Optional[int] = None,
    memory_cost: Optional[int] = None,
    parallelism: Optional[int] = None,
) -> Dict:
    if algo == ARGON2ID:
        return {
            "algo": ARGON2ID,
            "time": time_cost,
            "memory": memory_cost,
            "parallelism": parallelism,
        }
    return {
        "algo": PBKDF2_SHA256,
        "iterations": iterations if iterations is not None else PBKDF2_ITERATIONS,
    }
