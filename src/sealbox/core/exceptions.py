"""
Exceptions for SealBox
Everything raised by the package derives from SealBoxError so callers have a general catcher
"""


class SealBoxError(Exception):
    # general container for errors
    pass


class StorageError(SealBoxError):
    # raised when the underlying document store fails
    pass


class DocumentConflictError(StorageError):
    # raised when a put carries a stale or missing revision
    pass


class ConfigurationError(SealBoxError):
    # raised on invalid settings or a malformed crypto config record
    pass


class CryptoError(SealBoxError):
    # base for key handling and codec failures
    pass


class InvalidPasswordError(CryptoError):
    # raised when the check record cannot be opened with the derived key
    pass


class KeyDerivationError(CryptoError):
    # raised when the KDF primitive fails; never retried
    pass


class KeyExchangeError(CryptoError):
    # raised on unknown DH groups or an invalid peer public key
    pass


class DocumentEncodeError(CryptoError):
    # raised when a document cannot be serialized for encryption
    pass


class AuthenticationError(CryptoError):
    """Authentication tag of a single document did not verify."""

    def __init__(self, doc_id=None, message=None):
        self.doc_id = doc_id
        super().__init__(message or f"authentication failed for document {doc_id!r}")


class DocumentDecodeError(AuthenticationError):
    """Authenticated plaintext is not a JSON object; propagates like AuthenticationError."""

    def __init__(self, doc_id=None, message=None):
        super().__init__(doc_id, message or f"decrypted payload of {doc_id!r} is not a JSON object")
