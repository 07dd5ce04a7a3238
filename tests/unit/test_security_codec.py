"""
Unit tests for the DocumentCodec.
"""

import os
import uuid

import pytest
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from sealbox.core.exceptions import AuthenticationError, DocumentDecodeError, DocumentEncodeError
from sealbox.core.models import (
    AuthFailed,
    DecodeFailed,
    Decoded,
    EncryptedDocument,
    PlainDocument,
)
from sealbox.security.codec import DocumentCodec, canonical_json
from sealbox.security.kdf import derive_key
from sealbox.security.session import KeySession


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def key():
    return os.urandom(32)


@pytest.fixture
def codec(key):
    return DocumentCodec(KeySession(key))


def _flip_bit(hex_value, index, bit=0):
    raw = bytearray(bytes.fromhex(hex_value))
    raw[index] ^= 1 << bit
    return raw.hex()


def _seal_raw(key, doc_id, payload):
    """Encrypt arbitrary bytes the way the codec would, bypassing JSON encoding."""
    nonce = os.urandom(12)
    sealed = ChaCha20Poly1305(key).encrypt(nonce, payload, doc_id.encode("utf-8"))
    return {
        "id": doc_id,
        "nonce": nonce.hex(),
        "data": sealed[:-16].hex(),
        "tag": sealed[-16:].hex(),
    }


# ==============================================================================
# Tests: encrypt
# ==============================================================================

def test_encrypt_output_shape(codec):
    out = codec.encrypt({"id": "doc1", "foo": "bar"})

    assert set(out) == {"id", "nonce", "data", "tag"}
    assert out["id"] == "doc1"
    assert len(bytes.fromhex(out["nonce"])) == 12
    assert len(bytes.fromhex(out["tag"])) == 16
    assert "bar" not in out["data"]


def test_encrypt_keeps_rev_in_clear(codec):
    out = codec.encrypt({"id": "doc1", "rev": "3-abc", "foo": "bar"})
    assert out["rev"] == "3-abc"


def test_encrypt_generates_id_when_missing(codec):
    out = codec.encrypt({"foo": "bar"})
    assert uuid.UUID(out["id"])


def test_encrypt_treats_empty_id_as_missing(codec):
    out = codec.encrypt({"id": "", "foo": "bar"})

    assert uuid.UUID(out["id"])
    assert codec.decrypt(out) == {"id": out["id"], "foo": "bar"}


def test_encrypt_does_not_mutate_input(codec):
    doc = {"id": "doc1", "rev": "1-a", "foo": "bar"}
    codec.encrypt(doc)
    assert doc == {"id": "doc1", "rev": "1-a", "foo": "bar"}


def test_encrypt_nonce_is_fresh_every_call(codec):
    doc = {"id": "doc1", "foo": "bar"}
    first = codec.encrypt(doc)
    second = codec.encrypt(doc)

    assert first["nonce"] != second["nonce"]
    assert first["data"] != second["data"]


def test_encrypt_rejects_non_string_id(codec):
    with pytest.raises(DocumentEncodeError, match="must be a string"):
        codec.encrypt({"id": 42, "foo": "bar"})


def test_encrypt_rejects_unserializable_fields(codec):
    with pytest.raises(DocumentEncodeError, match="not JSON serializable"):
        codec.encrypt({"id": "doc1", "foo": {1, 2, 3}})


def test_canonical_json_is_sorted_and_compact():
    assert canonical_json({"b": 1, "a": [1, 2]}) == b'{"a":[1,2],"b":1}'
    assert canonical_json({"lock": "🔒"}) == '{"lock":"🔒"}'.encode("utf-8")


# ==============================================================================
# Tests: decrypt
# ==============================================================================

def test_roundtrip_preserves_fields_id_and_rev(codec):
    doc = {
        "id": "doc1",
        "rev": "2-xyz",
        "string": "value",
        "int": 42,
        "nested": {"list": [1, 2, 3], "none": None},
        "unicode": "🔒",
    }
    assert codec.decrypt(codec.encrypt(doc)) == doc


def test_roundtrip_without_rev_has_no_rev_key(codec):
    out = codec.decrypt(codec.encrypt({"id": "doc1", "foo": "bar"}))
    assert out == {"id": "doc1", "foo": "bar"}


def test_known_password_scenario():
    """correct-password with a fixed salt encrypts and decrypts doc1."""
    key = derive_key("correct-password", bytes.fromhex("deadbeefdeadbeefdeadbeefdeadbeef"))
    codec = DocumentCodec(KeySession(key))

    enc = codec.encrypt({"id": "doc1", "foo": "bar"})
    assert enc["id"] == "doc1"
    assert codec.decrypt(enc) == {"id": "doc1", "foo": "bar"}


def test_relabelled_ciphertext_fails(codec):
    enc = codec.encrypt({"id": "A", "foo": "bar"})
    enc["id"] = "B"

    with pytest.raises(AuthenticationError) as exc_info:
        codec.decrypt(enc)
    assert exc_info.value.doc_id == "B"


@pytest.mark.parametrize("field", ["data", "tag"])
def test_any_flipped_bit_fails_authentication(codec, field):
    enc = codec.encrypt({"id": "doc1", "foo": "bar"})
    length = len(bytes.fromhex(enc[field]))

    for index in range(length):
        for bit in (0, 7):
            tampered = dict(enc, **{field: _flip_bit(enc[field], index, bit)})
            with pytest.raises(AuthenticationError):
                codec.decrypt(tampered)


def test_flipped_nonce_fails_authentication(codec):
    enc = codec.encrypt({"id": "doc1", "foo": "bar"})
    enc["nonce"] = _flip_bit(enc["nonce"], 0)
    with pytest.raises(AuthenticationError):
        codec.decrypt(enc)


def test_wrong_key_fails_authentication(codec):
    enc = codec.encrypt({"id": "doc1", "foo": "bar"})
    other = DocumentCodec(KeySession(os.urandom(32)))
    with pytest.raises(AuthenticationError):
        other.decrypt(enc)


def test_malformed_hex_fails_authentication(codec):
    enc = codec.encrypt({"id": "doc1", "foo": "bar"})
    enc["tag"] = "zz" + enc["tag"][2:]
    with pytest.raises(AuthenticationError):
        codec.decrypt(enc)


def test_short_nonce_fails_authentication(codec):
    enc = codec.encrypt({"id": "doc1", "foo": "bar"})
    enc["nonce"] = enc["nonce"][:16]
    with pytest.raises(AuthenticationError):
        codec.decrypt(enc)


@pytest.mark.parametrize("payload", [b"not json", b"[1, 2, 3]", b'"text"', b"\xff\xfe"])
def test_authenticated_garbage_is_a_decode_error(key, codec, payload):
    record = _seal_raw(key, "doc1", payload)

    with pytest.raises(DocumentDecodeError) as exc_info:
        codec.decrypt(record)
    # propagates like an authentication failure
    assert isinstance(exc_info.value, AuthenticationError)


def test_one_bad_document_does_not_affect_others(codec):
    good = codec.encrypt({"id": "good", "n": 1})
    bad = codec.encrypt({"id": "bad", "n": 2})
    bad["data"] = _flip_bit(bad["data"], 0)

    with pytest.raises(AuthenticationError):
        codec.decrypt(bad)
    assert codec.decrypt(good) == {"id": "good", "n": 1}


@pytest.mark.parametrize(
    "record",
    [
        {"id": "plain", "foo": "bar"},
        {"id": "x", "nonce": "00" * 12, "tag": "00" * 16},
        {"id": "x", "nonce": "00" * 12, "data": "00"},
        {"nonce": "00" * 12, "tag": "00" * 16, "data": "00"},
        {"id": "x", "nonce": "", "tag": "00" * 16, "data": "00"},
        {"id": "_local/crypto", "salt": "00" * 16},
    ],
)
def test_incomplete_records_pass_through(codec, record):
    assert codec.decrypt(record) is record


def test_non_mapping_passes_through(codec):
    assert codec.decrypt(None) is None


# ==============================================================================
# Tests: disabled session
# ==============================================================================

def test_disabled_codec_is_a_no_op(codec):
    enc = codec.encrypt({"id": "doc1", "foo": "bar"})
    codec.session.disable()

    doc = {"id": "doc2", "foo": "baz"}
    assert codec.encrypt(doc) is doc
    assert codec.decrypt(enc) is enc


# ==============================================================================
# Tests: seal / open primitives
# ==============================================================================

def test_seal_and_open_results(key):
    sealed = DocumentCodec.seal(PlainDocument(id="doc1", fields={"a": 1}, rev="1-x"), key)
    assert isinstance(sealed, EncryptedDocument)
    assert sealed.rev == "1-x"

    opened = DocumentCodec.open(sealed, key)
    assert opened == Decoded(PlainDocument(id="doc1", fields={"a": 1}, rev="1-x"))


def test_open_reports_auth_failure(key):
    sealed = DocumentCodec.seal(PlainDocument(id="doc1", fields={"a": 1}), key)
    result = DocumentCodec.open(sealed, os.urandom(32))
    assert isinstance(result, AuthFailed)
    assert result.id == "doc1"


def test_open_reports_decode_failure(key):
    raw = _seal_raw(key, "doc1", b"{broken")
    sealed = EncryptedDocument(id="doc1", nonce=raw["nonce"], tag=raw["tag"], data=raw["data"])
    assert isinstance(DocumentCodec.open(sealed, key), DecodeFailed)


def test_open_strips_smuggled_metadata(key):
    raw = _seal_raw(key, "doc1", b'{"id": "evil", "rev": "9-z", "a": 1}')
    sealed = EncryptedDocument(id="doc1", nonce=raw["nonce"], tag=raw["tag"], data=raw["data"])

    result = DocumentCodec.open(sealed, key)
    assert result.document.to_dict() == {"id": "doc1", "a": 1}
