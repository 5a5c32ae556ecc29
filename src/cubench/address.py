"""Opaque 32-byte identifiers and the keypairs that sign for them.

Addresses render in base58, the canonical text form used by ledger tooling,
so that unregistered identifiers still read the way operators expect.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from functools import total_ordering

import base58

ADDRESS_LENGTH = 32


@total_ordering
class Address:
    """Fixed-length identifier for accounts and programs.

    Equality, hashing and ordering are by raw bytes.
    """

    __slots__ = ("_raw",)

    def __init__(self, raw: bytes) -> None:
        raw = bytes(raw)
        if len(raw) != ADDRESS_LENGTH:
            raise ValueError(
                f"Address must be {ADDRESS_LENGTH} bytes, got {len(raw)}"
            )
        self._raw = raw

    @classmethod
    def from_string(cls, text: str) -> Address:
        """Parse the base58 text form."""
        try:
            raw = base58.b58decode(text)
        except ValueError as exc:
            raise ValueError(f"Invalid base58 address: {text!r}") from exc
        return cls(raw)

    @classmethod
    def unique(cls) -> Address:
        """Mint a fresh random address."""
        return cls(secrets.token_bytes(ADDRESS_LENGTH))

    def __bytes__(self) -> bytes:
        return self._raw

    def __str__(self) -> str:
        return base58.b58encode(self._raw).decode("ascii")

    def __repr__(self) -> str:
        return f"Address({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Address):
            return NotImplemented
        return self._raw == other._raw

    def __lt__(self, other: Address) -> bool:
        if not isinstance(other, Address):
            return NotImplemented
        return self._raw < other._raw

    def __hash__(self) -> int:
        return hash(self._raw)


class Keypair:
    """A signing secret and the address derived from it.

    Signatures are HMAC-SHA256 over the message; they are only meant to be
    checked for presence by an in-process engine, not verified.
    """

    __slots__ = ("_secret", "_address")

    def __init__(self, secret: bytes) -> None:
        if len(secret) != ADDRESS_LENGTH:
            raise ValueError(f"Keypair secret must be {ADDRESS_LENGTH} bytes")
        self._secret = bytes(secret)
        self._address = Address(hashlib.sha256(self._secret).digest())

    @classmethod
    def generate(cls) -> Keypair:
        return cls(secrets.token_bytes(ADDRESS_LENGTH))

    @classmethod
    def from_seed(cls, seed: str | bytes) -> Keypair:
        """Deterministic keypair, handy for reproducible benchmarks."""
        if isinstance(seed, str):
            seed = seed.encode("utf-8")
        return cls(hashlib.sha256(b"cubench-keypair:" + seed).digest())

    @property
    def address(self) -> Address:
        return self._address

    def sign(self, message: bytes) -> bytes:
        return hmac.new(self._secret, message, hashlib.sha256).digest()

    def __repr__(self) -> str:
        return f"Keypair(address={str(self._address)!r})"
