"""
Participant key material.

A participant is an ordinary Solana account: an Ed25519 keypair whose
32-byte seed never leaves the participant's process.  The public key
is derived exactly as RFC 8032 prescribes, so the key that shows up in
a group wallet is the same one the Solana CLI prints for the seed.

Secret layouts accepted everywhere a participant secret is expected:

- 32 bytes: the raw seed.
- 64 bytes: ``seed ‖ public_key`` (Solana CLI ``id.json`` layout).
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import List, Union

import base58
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from .curve import Point, Scalar
from .errors import InvalidKeyEncoding

KEY_BYTES = 32
SEED_BYTES = 32
SOLANA_SECRET_BYTES = 64


@dataclass(frozen=True)
class PublicKey:
    """32-byte Ed25519 public key; prints as base58 like Solana addresses."""

    data: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.data, (bytes, bytearray)) or len(self.data) != KEY_BYTES:
            raise InvalidKeyEncoding(f"expected {KEY_BYTES} bytes")
        object.__setattr__(self, "data", bytes(self.data))

    @classmethod
    def from_string(cls, text: str) -> PublicKey:
        try:
            raw = base58.b58decode(text)
        except ValueError as exc:
            raise InvalidKeyEncoding(f"{text!r} is not base58") from exc
        if len(raw) != KEY_BYTES:
            raise InvalidKeyEncoding(f"{text!r} decodes to {len(raw)} bytes")
        return cls(raw)

    @classmethod
    def coerce(cls, value: Union[PublicKey, bytes, str]) -> PublicKey:
        if isinstance(value, PublicKey):
            return value
        if isinstance(value, str):
            return cls.from_string(value)
        return cls(value)

    def to_bytes(self) -> bytes:
        return self.data

    def is_on_curve(self) -> bool:
        return Point.is_valid_encoding(self.data)

    def to_point(self) -> Point:
        try:
            return Point.from_bytes(self.data)
        except ValueError as exc:
            raise InvalidKeyEncoding(f"{self} is not a curve point") from exc

    def __str__(self) -> str:
        return base58.b58encode(self.data).decode("ascii")

    def __repr__(self) -> str:
        return f"PublicKey({self})"


class Keypair:
    """
    A participant's Ed25519 keypair.

    The seed is held privately and is never part of ``repr``.  Use
    :meth:`secret_bytes` or :meth:`to_solana_json` to export it
    deliberately.
    """

    __slots__ = ("_seed", "_public")

    def __init__(self, seed: bytes) -> None:
        if len(seed) != SEED_BYTES:
            raise InvalidKeyEncoding(f"seed must be {SEED_BYTES} bytes")
        self._seed = bytes(seed)
        pk = Ed25519PrivateKey.from_private_bytes(self._seed).public_key()
        self._public = PublicKey(pk.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        ))

    # constructors -----------------------------------------------------------
    @classmethod
    def generate(cls) -> Keypair:
        sk = Ed25519PrivateKey.generate()
        return cls(sk.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        ))

    @classmethod
    def from_secret(cls, secret: bytes) -> Keypair:
        """Accept a 32-byte seed or a 64-byte ``seed ‖ public`` secret."""
        secret = bytes(secret)
        if len(secret) == SEED_BYTES:
            return cls(secret)
        if len(secret) == SOLANA_SECRET_BYTES:
            kp = cls(secret[:SEED_BYTES])
            if kp.public_key.data != secret[SEED_BYTES:]:
                raise InvalidKeyEncoding("public half does not match seed")
            return kp
        raise InvalidKeyEncoding(
            f"secret must be {SEED_BYTES} or {SOLANA_SECRET_BYTES} bytes, "
            f"got {len(secret)}"
        )

    @classmethod
    def from_hex(cls, text: str) -> Keypair:
        try:
            raw = bytes.fromhex(text)
        except ValueError as exc:
            raise InvalidKeyEncoding("secret is not hex") from exc
        return cls.from_secret(raw)

    @classmethod
    def coerce(cls, secret: Union[Keypair, bytes]) -> Keypair:
        if isinstance(secret, Keypair):
            return secret
        return cls.from_secret(secret)

    # Solana CLI id.json ------------------------------------------------------
    @classmethod
    def from_solana_json(cls, data: Union[str, List[int]]) -> Keypair:
        """Load the Solana CLI keypair format: a JSON list of 64 ints."""
        if isinstance(data, str):
            data = json.loads(data)
        if len(data) != SOLANA_SECRET_BYTES:
            raise InvalidKeyEncoding("Solana keypair must hold 64 bytes")
        return cls.from_secret(bytes(data))

    def to_solana_json(self) -> List[int]:
        return list(self.secret_bytes())

    # accessors ---------------------------------------------------------------
    @property
    def public_key(self) -> PublicKey:
        return self._public

    def secret_bytes(self) -> bytes:
        """64-byte ``seed ‖ public`` secret in Solana layout."""
        return self._seed + self._public.data

    def signing_scalar(self) -> Scalar:
        """
        RFC 8032 secret scalar  a = clamp(SHA-512(seed)[:32]).

        ``a · B`` equals the public key, so partial signatures made
        with *a* combine into signatures that verify under it.
        """
        h = bytearray(hashlib.sha512(self._seed).digest()[:32])
        h[0] &= 248
        h[31] &= 127
        h[31] |= 64
        return Scalar(int.from_bytes(bytes(h), "little"))

    def sign(self, message: bytes) -> bytes:
        """Plain single-signer Ed25519 signature."""
        return Ed25519PrivateKey.from_private_bytes(self._seed).sign(message)

    def __repr__(self) -> str:
        return f"Keypair(public_key={self._public})"


def derive_public_key(secret: Union[Keypair, bytes]) -> PublicKey:
    return Keypair.coerce(secret).public_key
