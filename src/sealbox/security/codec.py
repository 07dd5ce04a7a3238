"""Per-document AEAD codec.

At-rest layout of an encrypted document (all binary values hex encoded)::

    {"id": ..., "rev": ... (optional), "nonce": 12 bytes, "data": ciphertext, "tag": 16 bytes}

- ChaCha20-Poly1305 keyed by the session key
- fresh random 96-bit nonce per call
- the document id is bound as associated data, so ciphertext moved under
  another id fails authentication
- id and rev stay in clear; everything else is canonical JSON inside ``data``

Decryption always verifies the tag before the plaintext is parsed.
"""
from __future__ import annotations

import json
import logging
import os
import uuid
from typing import Any, Mapping

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from ..core.exceptions import AuthenticationError, DocumentDecodeError, DocumentEncodeError
from ..core.models import (
    ID_FIELD,
    REV_FIELD,
    AuthFailed,
    DecodeFailed,
    DecodeResult,
    Decoded,
    EncryptedDocument,
    PlainDocument,
    Unrecognized,
    classify,
)
from .session import KeySession

logger = logging.getLogger(__name__)

NONCE_LENGTH = 12
TAG_LENGTH = 16


def canonical_json(fields: Mapping[str, Any]) -> bytes:
    return json.dumps(
        fields, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


class DocumentCodec:
    """Write/read transform pair backed by a KeySession."""

    def __init__(self, session: KeySession):
        self._session = session

    @property
    def session(self) -> KeySession:
        return self._session

    # ------------------------------------------------------------------
    # Store transforms
    # ------------------------------------------------------------------

    def encrypt(self, doc: Mapping[str, Any]):
        """Encrypt a caller document on its way to storage.

        Returns ``doc`` itself when the session has been disabled.
        """
        key = self._session.current_key()
        if key is None:
            return doc
        return self.seal(PlainDocument.from_dict(doc), key).to_dict()

    def decrypt(self, record):
        """Decrypt a stored record on its way back to the caller.

        Records that are not in encrypted form, and every record once the
        session is disabled, are returned unchanged.
        """
        key = self._session.current_key()
        if key is None:
            return record

        variant = classify(record)
        if isinstance(variant, Unrecognized):
            return record

        result = self.open(variant, key)
        if isinstance(result, Decoded):
            return result.document.to_dict()

        logger.warning("Rejected document %r: %s", result.id, result.reason)
        if isinstance(result, DecodeFailed):
            raise DocumentDecodeError(result.id)
        raise AuthenticationError(result.id)

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    @staticmethod
    def seal(doc: PlainDocument, key: bytes) -> EncryptedDocument:
        # an empty id counts as absent, as in classify() and DocumentStore.put()
        doc_id = doc.id if doc.id not in (None, "") else str(uuid.uuid4())
        if not isinstance(doc_id, str):
            raise DocumentEncodeError(f"document id must be a string, got {type(doc_id).__name__}")

        try:
            plaintext = canonical_json(doc.fields)
        except (TypeError, ValueError) as e:
            raise DocumentEncodeError(f"document {doc_id!r} is not JSON serializable: {e}") from e

        nonce = os.urandom(NONCE_LENGTH)
        sealed = ChaCha20Poly1305(key).encrypt(nonce, plaintext, doc_id.encode("utf-8"))
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

        return EncryptedDocument(
            id=doc_id,
            nonce=nonce.hex(),
            tag=tag.hex(),
            data=ciphertext.hex(),
            rev=doc.rev,
        )

    @staticmethod
    def open(doc: EncryptedDocument, key: bytes) -> DecodeResult:
        try:
            nonce = bytes.fromhex(doc.nonce)
            tag = bytes.fromhex(doc.tag)
            ciphertext = bytes.fromhex(doc.data)
        except ValueError:
            return AuthFailed(doc.id, "malformed hex encoding")
        if len(nonce) != NONCE_LENGTH or len(tag) != TAG_LENGTH:
            return AuthFailed(doc.id, "malformed nonce or tag")

        try:
            plaintext = ChaCha20Poly1305(key).decrypt(
                nonce, ciphertext + tag, doc.id.encode("utf-8")
            )
        except InvalidTag:
            return AuthFailed(doc.id)

        # authenticated from here on
        try:
            fields = json.loads(plaintext.decode("utf-8"))
        except ValueError:
            return DecodeFailed(doc.id)
        if not isinstance(fields, dict):
            return DecodeFailed(doc.id)

        fields.pop(ID_FIELD, None)
        fields.pop(REV_FIELD, None)
        return Decoded(PlainDocument(id=doc.id, fields=fields, rev=doc.rev))
