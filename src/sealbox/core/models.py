"""
Record shapes moving between callers, the codec and the document store.

Read path records are classified into explicit variants instead of probing for
fields at every call site:

- EncryptedDocument: carries id, nonce, tag and data (rev optional)
- Unrecognized: anything else; passed through untouched

Store lookups and codec opens return small result objects (Found / NotFound,
Decoded / AuthFailed / DecodeFailed) so that callers branch on values and not
on exception types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

# Wire field names
ID_FIELD = "id"
REV_FIELD = "rev"
NONCE_FIELD = "nonce"
TAG_FIELD = "tag"
DATA_FIELD = "data"

ENCRYPTED_FIELDS = (NONCE_FIELD, ID_FIELD, TAG_FIELD, DATA_FIELD)

# Reserved, non-replicated records (outside the normal document namespace)
LOCAL_PREFIX = "_local/"
CONFIG_ID = "_local/crypto"
CHECK_ID = "_local/cryptoCheck"
CHECK_FIELD = "val"
CHECK_VALUE = "cryptoCheck"


def is_local_id(doc_id) -> bool:
    return isinstance(doc_id, str) and doc_id.startswith(LOCAL_PREFIX)


@dataclass(frozen=True)
class PlainDocument:
    """Caller-side record: identifier and revision are metadata, the rest is payload."""

    id: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    rev: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "PlainDocument":
        fields = {k: v for k, v in raw.items() if k not in (ID_FIELD, REV_FIELD)}
        return cls(id=raw.get(ID_FIELD), fields=fields, rev=raw.get(REV_FIELD))

    def to_dict(self) -> Dict[str, Any]:
        out = dict(self.fields)
        out[ID_FIELD] = self.id
        if self.rev is not None:
            out[REV_FIELD] = self.rev
        return out


@dataclass(frozen=True)
class EncryptedDocument:
    """At-rest shape; nonce, tag and data are hex strings."""

    id: str
    nonce: str
    tag: str
    data: str
    rev: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {ID_FIELD: self.id, NONCE_FIELD: self.nonce}
        if self.rev is not None:
            out[REV_FIELD] = self.rev
        out[DATA_FIELD] = self.data
        out[TAG_FIELD] = self.tag
        return out


@dataclass(frozen=True)
class Unrecognized:
    # not an encrypted record: reserved, plain or partial
    raw: Any


Record = Union[PlainDocument, EncryptedDocument, Unrecognized]


def classify(raw: Any) -> Union[EncryptedDocument, Unrecognized]:
    """Classify a record coming back from storage."""
    if not isinstance(raw, Mapping):
        return Unrecognized(raw)
    # empty values count as missing
    if not all(raw.get(name) for name in ENCRYPTED_FIELDS):
        return Unrecognized(raw)
    values = [raw[name] for name in ENCRYPTED_FIELDS]
    if not all(isinstance(v, str) for v in values):
        return Unrecognized(raw)
    return EncryptedDocument(
        id=raw[ID_FIELD],
        nonce=raw[NONCE_FIELD],
        tag=raw[TAG_FIELD],
        data=raw[DATA_FIELD],
        rev=raw.get(REV_FIELD),
    )


# ----------------------------------------------------------------------
# Store lookup results
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class Found:
    record: Dict[str, Any]


@dataclass(frozen=True)
class NotFound:
    id: str


GetResult = Union[Found, NotFound]


# ----------------------------------------------------------------------
# Codec open results
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class Decoded:
    document: PlainDocument


@dataclass(frozen=True)
class AuthFailed:
    id: str
    reason: str = "authentication tag mismatch"


@dataclass(frozen=True)
class DecodeFailed:
    id: str
    reason: str = "payload is not a JSON object"


DecodeResult = Union[Decoded, AuthFailed, DecodeFailed]
