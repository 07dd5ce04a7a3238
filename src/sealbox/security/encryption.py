"""
Transparent document encryption for a DocumentStore.

``DocumentEncryption`` is the integration point between the key machinery in
this package and a store. Opening an encrypted database runs, strictly in
order:

1. load the crypto config record (salt + KDF parameters), creating it on first use
2. optionally replace the password with a negotiated DH secret
3. derive the key
4. verify it against the password check record, creating that on first use
5. install a KeySession and register the codec as the store's transform

Nothing is registered on the store unless step 4 succeeds.
"""

from __future__ import annotations

import logging
from typing import Optional

from .codec import DocumentCodec
from .exchange import ExchangeParams, negotiate
from .kdf import SALT_LENGTH, derive_from_params, generate_salt
from .session import KeySession
from .settings import CryptoSettings
from ..core.exceptions import ConfigurationError, InvalidPasswordError
from ..core.models import (
    CHECK_FIELD,
    CHECK_ID,
    CHECK_VALUE,
    CONFIG_ID,
    ID_FIELD,
    Decoded,
    EncryptedDocument,
    Found,
    NotFound,
    PlainDocument,
    classify,
)

logger = logging.getLogger(__name__)


class DocumentEncryption:
    """
    Per-database encryption layer.

    Usage::

        crypto = DocumentEncryption(store)
        await crypto.initialize("correct-password")
        await store.put({"id": "doc1", "foo": "bar"})   # stored encrypted
        await store.get("doc1")                          # returned decrypted
        crypto.disable()                                 # key scrubbed, pass-through

    Concurrent ``initialize`` calls on one instance are not supported; callers
    must serialize them.
    """

    def __init__(self, store, settings: Optional[CryptoSettings] = None):
        self.store = store
        self.settings = settings or CryptoSettings()
        self._session: Optional[KeySession] = None
        self._codec: Optional[DocumentCodec] = None

    @property
    def active(self) -> bool:
        return self._session is not None and not self._session.disabled

    @property
    def codec(self) -> Optional[DocumentCodec]:
        return self._codec

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self, password, exchange=None) -> Optional[bytes]:
        """
        Derive and verify the database key from ``password``.

        ``exchange`` may be an :class:`ExchangeParams`, a MODP group name, or
        an explicit prime (int or big-endian bytes). In that case ``password``
        is the remote party's DH public key and our own public key is
        returned; otherwise the return value is ``None``.

        Calling this on an instance that is already active scrubs the current
        session first. If the new attempt fails, the store keeps the old codec
        registered as a pass-through: later writes are stored unencrypted
        until a successful ``initialize``.

        Raises:
            InvalidPasswordError: the check record does not open with the derived key
            KeyDerivationError: the KDF primitive failed
            KeyExchangeError: bad DH parameters or peer public key
        """
        was_active = self.active
        # re-opening replaces the current session
        self.disable()

        try:
            params = ExchangeParams.coerce(exchange)
            config = await self._load_or_create_config()
            salt = self._salt_from_config(config)

            public_key = None
            if params is not None:
                password, public_key = negotiate(password, params)

            key = derive_from_params(password, salt, config.get("kdf"))
            password = None
            session = KeySession(key)
            key = None

            codec = DocumentCodec(session)
            try:
                await self._verify_password(codec)
            except BaseException:
                session.disable()
                raise

            self._session = session
            self._codec = codec
            self.store.register_transform(on_write=codec.encrypt, on_read=codec.decrypt)
            logger.info(
                "Document encryption enabled (kdf=%s)",
                (config.get("kdf") or {}).get("algo", "pbkdf2-sha256"),
            )
            return public_key
        except BaseException:
            if was_active:
                logger.warning(
                    "Re-initialization failed; encryption stays disabled and new writes are stored unencrypted"
                )
            raise

    def disable(self) -> None:
        """Scrub the key; the registered codec becomes a pass-through."""
        if self._session is not None and not self._session.disabled:
            self._session.disable()
            logger.warning("Document encryption disabled; new writes are stored unencrypted")

    # ------------------------------------------------------------------
    # Config record
    # ------------------------------------------------------------------

    async def _load_or_create_config(self) -> dict:
        result = await self.store.get_local(CONFIG_ID)
        if isinstance(result, Found):
            return result.record

        config = {
            ID_FIELD: CONFIG_ID,
            "salt": generate_salt().hex(),
            "kdf": self.settings.kdf_params(),
        }
        await self.store.put_local(config)
        logger.info("Created crypto config record (kdf=%s)", config["kdf"]["algo"])
        return config

    @staticmethod
    def _salt_from_config(config: dict) -> bytes:
        try:
            salt = bytes.fromhex(config["salt"])
        except (KeyError, TypeError, ValueError):
            raise ConfigurationError("crypto config record has no valid salt") from None
        if len(salt) != SALT_LENGTH:
            raise ConfigurationError(f"crypto config salt must be {SALT_LENGTH} bytes")
        return salt

    # ------------------------------------------------------------------
    # Password check
    # ------------------------------------------------------------------

    async def _verify_password(self, codec: DocumentCodec) -> None:
        key = codec.session.current_key()
        result = await self.store.get_local(CHECK_ID)

        if isinstance(result, NotFound):
            # first time this database is encrypted; the record is sealed
            # directly since local records never pass through the transform
            check = PlainDocument(id=CHECK_ID, fields={CHECK_FIELD: CHECK_VALUE})
            sealed = codec.seal(check, key)
            await self.store.put_local(sealed.to_dict())
            logger.info("Created password check record")
        else:
            sealed = classify(result.record)
            if not isinstance(sealed, EncryptedDocument):
                logger.warning("Password check record is not encrypted")
                raise InvalidPasswordError("password check record is not in encrypted form")

        opened = codec.open(sealed, key)
        if not isinstance(opened, Decoded):
            logger.warning("Password verification failed: %s", opened.reason)
            raise InvalidPasswordError("invalid password")
        if opened.document.fields.get(CHECK_FIELD) != CHECK_VALUE:
            logger.warning("Password verification failed: check value mismatch")
            raise InvalidPasswordError("invalid password")
