"""Optional Diffie-Hellman step run before key derivation.

When a caller opens a database with exchange parameters, the "password" it
passes is the remote party's DH public key. A fresh ephemeral key pair is
generated, the shared secret replaces the password as KDF input, and our own
public key is handed back so the caller can send it to the remote side
out-of-band. The remote side computes the same secret and can open the
database with it as a plain password.

Named groups are the MODP groups from RFC 2409 (modp2) and RFC 3526.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from cryptography.hazmat.primitives.asymmetric import dh

from ..core.exceptions import KeyExchangeError

DEFAULT_GENERATOR = 2

MODP_GROUPS = {
    "modp2": int(
        "FFFFFFFFFFFFFFFFC90FDAA22168C234C4C6628B80DC1CD129024E088A67CC74"
        "020BBEA63B139B22514A08798E3404DDEF9519B3CD3A431B302B0A6DF25F1437"
        "4FE1356D6D51C245E485B576625E7EC6F44C42E9A637ED6B0BFF5CB6F406B7ED"
        "EE386BFB5A899FA5AE9F24117C4B1FE649286651ECE65381FFFFFFFFFFFFFFFF",
        16,
    ),
    "modp5": int(
        "FFFFFFFFFFFFFFFFC90FDAA22168C234C4C6628B80DC1CD129024E088A67CC74"
        "020BBEA63B139B22514A08798E3404DDEF9519B3CD3A431B302B0A6DF25F1437"
        "4FE1356D6D51C245E485B576625E7EC6F44C42E9A637ED6B0BFF5CB6F406B7ED"
        "EE386BFB5A899FA5AE9F24117C4B1FE649286651ECE45B3DC2007CB8A163BF05"
        "98DA48361C55D39A69163FA8FD24CF5F83655D23DCA3AD961C62F356208552BB"
        "9ED529077096966D670C354E4ABC9804F1746C08CA237327FFFFFFFFFFFFFFFF",
        16,
    ),
    "modp14": int(
        "FFFFFFFFFFFFFFFFC90FDAA22168C234C4C6628B80DC1CD129024E088A67CC74"
        "020BBEA63B139B22514A08798E3404DDEF9519B3CD3A431B302B0A6DF25F1437"
        "4FE1356D6D51C245E485B576625E7EC6F44C42E9A637ED6B0BFF5CB6F406B7ED"
        "EE386BFB5A899FA5AE9F24117C4B1FE649286651ECE45B3DC2007CB8A163BF05"
        "98DA48361C55D39A69163FA8FD24CF5F83655D23DCA3AD961C62F356208552BB"
        "9ED529077096966D670C354E4ABC9804F1746C08CA18217C32905E462E36CE3B"
        "E39E772C180E86039B2783A2EC07A28FB5C55DF06F4C52C9DE2BCBF695581718"
        "3995497CEA956AE515D2261898FA051015728E5A8AACAA68FFFFFFFFFFFFFFFF",
        16,
    ),
    "modp15": int(
        "FFFFFFFFFFFFFFFFC90FDAA22168C234C4C6628B80DC1CD129024E088A67CC74"
        "020BBEA63B139B22514A08798E3404DDEF9519B3CD3A431B302B0A6DF25F1437"
        "4FE1356D6D51C245E485B576625E7EC6F44C42E9A637ED6B0BFF5CB6F406B7ED"
        "EE386BFB5A899FA5AE9F24117C4B1FE649286651ECE45B3DC2007CB8A163BF05"
        "98DA48361C55D39A69163FA8FD24CF5F83655D23DCA3AD961C62F356208552BB"
        "9ED529077096966D670C354E4ABC9804F1746C08CA18217C32905E462E36CE3B"
        "E39E772C180E86039B2783A2EC07A28FB5C55DF06F4C52C9DE2BCBF695581718"
        "3995497CEA956AE515D2261898FA051015728E5A8AAAC42DAD33170D04507A33"
        "A85521ABDF1CBA64ECFB850458DBEF0A8AEA71575D060C7DB3970F85A6E1E4C7"
        "ABF5AE8CDB0933D71E8C94E04A25619DCEE3D2261AD2EE6BF12FFA06D98A0864"
        "D87602733EC86A64521F2B18177B200CBBE117577A615D6C770988C0BAD946E2"
        "08E24FA074E5AB3143DB5BFCE0FD108E4B82D120A93AD2CAFFFFFFFFFFFFFFFF",
        16,
    ),
    "modp16": int(
        "FFFFFFFFFFFFFFFFC90FDAA22168C234C4C6628B80DC1CD129024E088A67CC74"
        "020BBEA63B139B22514A08798E3404DDEF9519B3CD3A431B302B0A6DF25F1437"
        "4FE1356D6D51C245E485B576625E7EC6F44C42E9A637ED6B0BFF5CB6F406B7ED"
        "EE386BFB5A899FA5AE9F24117C4B1FE649286651ECE45B3DC2007CB8A163BF05"
        "98DA48361C55D39A69163FA8FD24CF5F83655D23DCA3AD961C62F356208552BB"
        "9ED529077096966D670C354E4ABC9804F1746C08CA18217C32905E462E36CE3B"
        "E39E772C180E86039B2783A2EC07A28FB5C55DF06F4C52C9DE2BCBF695581718"
        "3995497CEA956AE515D2261898FA051015728E5A8AAAC42DAD33170D04507A33"
        "A85521ABDF1CBA64ECFB850458DBEF0A8AEA71575D060C7DB3970F85A6E1E4C7"
        "ABF5AE8CDB0933D71E8C94E04A25619DCEE3D2261AD2EE6BF12FFA06D98A0864"
        "D87602733EC86A64521F2B18177B200CBBE117577A615D6C770988C0BAD946E2"
        "08E24FA074E5AB3143DB5BFCE0FD108E4B82D120A92108011A723C12A787E6D7"
        "88719A10BDBA5B2699C327186AF4E23C1A946834B6150BDA2583E9CA2AD44CE8"
        "DBBBC2DB04DE8EF92E8EFC141FBECAA6287C59474E6BC05D99B2964FA090C3A2"
        "233BA186515BE7ED1F612970CEE2D7AFB81BDD762170481CD0069127D5B05AA9"
        "93B4EA988D8FDDC186FFB7DC90A6C08F4DF435C934063199FFFFFFFFFFFFFFFF",
        16,
    ),
}


def _to_int(value: Union[int, bytes, bytearray]) -> int:
    if isinstance(value, int):
        return value
    return int.from_bytes(bytes(value), "big")


@dataclass(frozen=True)
class ExchangeParams:
    """Either a named MODP group or an explicit prime/generator pair."""

    group: Optional[str] = None
    prime: Optional[int] = None
    generator: int = DEFAULT_GENERATOR

    @classmethod
    def named(cls, name: str) -> "ExchangeParams":
        if name not in MODP_GROUPS:
            raise KeyExchangeError(f"unknown DH group {name!r}")
        return cls(group=name)

    @classmethod
    def explicit(
        cls,
        prime: Union[int, bytes, bytearray],
        generator: Union[int, bytes, bytearray] = DEFAULT_GENERATOR,
    ) -> "ExchangeParams":
        return cls(prime=_to_int(prime), generator=_to_int(generator))

    @classmethod
    def coerce(cls, value) -> Optional["ExchangeParams"]:
        """Accept the loose forms callers pass: a group name, a prime, or params."""
        if value is None or isinstance(value, ExchangeParams):
            return value
        if isinstance(value, str):
            return cls.named(value)
        if isinstance(value, (int, bytes, bytearray)) and not isinstance(value, bool):
            return cls.explicit(value)
        raise KeyExchangeError(f"unsupported exchange parameters: {type(value).__name__}")

    def parameter_numbers(self) -> dh.DHParameterNumbers:
        if self.group is not None:
            if self.group not in MODP_GROUPS:
                raise KeyExchangeError(f"unknown DH group {self.group!r}")
            return dh.DHParameterNumbers(MODP_GROUPS[self.group], DEFAULT_GENERATOR)
        if self.prime is None:
            raise KeyExchangeError("either a group name or a prime is required")
        try:
            return dh.DHParameterNumbers(self.prime, self.generator)
        except (TypeError, ValueError) as e:
            raise KeyExchangeError(f"invalid DH parameters: {e}") from e


class KeyExchange:
    """Ephemeral DH key pair for one negotiation."""

    def __init__(self, params: ExchangeParams):
        self._numbers = params.parameter_numbers()
        try:
            self._private_key = self._numbers.parameters().generate_private_key()
        except ValueError as e:
            raise KeyExchangeError(f"cannot generate DH key pair: {e}") from e
        self._size = (self._numbers.p.bit_length() + 7) // 8

    @property
    def public_key(self) -> bytes:
        """Our public value, big-endian and padded to the prime length."""
        y = self._private_key.public_key().public_numbers().y
        return y.to_bytes(self._size, "big")

    def compute_secret(self, peer_public: Union[bytes, bytearray, str]) -> bytes:
        if isinstance(peer_public, str):
            peer_public = peer_public.encode("utf-8")
        y = int.from_bytes(bytes(peer_public), "big")
        try:
            peer_key = dh.DHPublicNumbers(y, self._numbers).public_key()
            return self._private_key.exchange(peer_key)
        except ValueError as e:
            raise KeyExchangeError(f"invalid peer public key: {e}") from e


def negotiate(password, params: ExchangeParams) -> Tuple[bytes, bytes]:
    """Return ``(shared_secret, our_public_key)`` treating ``password`` as the peer key."""
    exchange = KeyExchange(params)
    secret = exchange.compute_secret(password)
    return secret, exchange.public_key
