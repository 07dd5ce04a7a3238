"""Settings for new encrypted databases.

Settings only decide the KDF parameters written into a freshly created crypto
config record. A database that already has a record keeps using whatever it
persisted, so changing the environment never locks anyone out.

Environment variables (all optional):

- ``SEALBOX_KDF``: ``pbkdf2-sha256`` (default) or ``argon2id``
- ``SEALBOX_PBKDF2_ITERATIONS``
- ``SEALBOX_ARGON2_TIME_COST`` / ``SEALBOX_ARGON2_MEMORY_COST`` / ``SEALBOX_ARGON2_PARALLELISM``
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional
import os

from ..core.exceptions import ConfigurationError
from .kdf import (
    ARGON2ID,
    PBKDF2_SHA256,
    PBKDF2_ITERATIONS,
    kdf_params_to_dict,
)

ENV_PREFIX = "SEALBOX_"


@dataclass(frozen=True)
class CryptoSettings:
    kdf: str = PBKDF2_SHA256
    pbkdf2_iterations: int = PBKDF2_ITERATIONS
    argon2_time_cost: int = 3
    argon2_memory_cost: int = 65536
    argon2_parallelism: int = 1

    def __post_init__(self):
        if self.kdf not in (PBKDF2_SHA256, ARGON2ID):
            raise ConfigurationError(f"unsupported KDF {self.kdf!r}")
        for name in (
            "pbkdf2_iterations",
            "argon2_time_cost",
            "argon2_memory_cost",
            "argon2_parallelism",
        ):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be positive")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CryptoSettings":
        """Build settings from ``SEALBOX_*`` variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        kwargs = {}

        kdf = env.get(ENV_PREFIX + "KDF")
        if kdf:
            kwargs["kdf"] = kdf.strip().lower()

        for name in (
            "pbkdf2_iterations",
            "argon2_time_cost",
            "argon2_memory_cost",
            "argon2_parallelism",
        ):
            value = env.get(ENV_PREFIX + name.upper())
            if value is None or value == "":
                continue
            try:
                kwargs[name] = int(value)
            except ValueError:
                raise ConfigurationError(
                    f"{ENV_PREFIX + name.upper()} must be an integer, got {value!r}"
                ) from None

        return cls(**kwargs)

    def kdf_params(self) -> Dict:
        """Parameters persisted in a new config record."""
        if self.kdf == ARGON2ID:
            return kdf_params_to_dict(
                ARGON2ID,
                time_cost=self.argon2_time_cost,
                memory_cost=self.argon2_memory_cost,
                parallelism=self.argon2_parallelism,
            )
        return kdf_params_to_dict(PBKDF2_SHA256, iterations=self.pbkdf2_iterations)
