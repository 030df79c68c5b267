"""
Domain-separated hash functions for solana-tss.

Protocol-internal hashes (key-aggregation coefficients, nonce
derivation, nonce coefficient) carry a unique domain tag so their
outputs are independent of each other and of any other protocol
using the same keys:

    H_tag(x) = SHA-512( SHA-512(tag) ‖ x )

SHA-512 is used throughout so that reduction modulo the 253-bit group
order is statistically uniform.

The signing challenge is the exception: it is the plain RFC 8032
Ed25519 challenge  k = SHA-512(R ‖ A ‖ M)  because the aggregated
signature must verify under any standard Ed25519 verifier.
"""

from __future__ import annotations

import hashlib
from typing import Any, Sequence

from .curve import Scalar, Point


# ── domain tags ─────────────────────────────────────────────────────────
_TAG_KEYAGG_LIST = b"solana-tss/v1/keyagg_list"
_TAG_KEYAGG_COEF = b"solana-tss/v1/keyagg_coef"
_TAG_NONCE       = b"solana-tss/v1/nonce"
_TAG_NONCE_COEF  = b"solana-tss/v1/noncecoef"


# ── internal helpers ────────────────────────────────────────────────────
def _tagged_hasher(tag: bytes) -> "hashlib._Hash":
    """Return a SHA-512 context pre-loaded with the tag prefix."""
    h = hashlib.sha512()
    h.update(hashlib.sha512(tag).digest())
    return h


def _encode_item(item: Any) -> bytes:
    """
    Canonical encoding of a protocol element for hashing.

    Length-prefixing is used for variable-length items (bytes, lists)
    to ensure unambiguous parsing.
    """
    if isinstance(item, (bytes, bytearray)):
        return len(item).to_bytes(4, "little") + bytes(item)
    if isinstance(item, Scalar):
        return item.to_bytes()
    if isinstance(item, Point):
        return item.to_bytes()
    if isinstance(item, (list, tuple)):
        parts = b"".join(_encode_item(x) for x in item)
        return len(item).to_bytes(4, "little") + parts
    raise TypeError(f"cannot hash {type(item).__name__}")


def _tagged_hash(tag: bytes, *args: Any) -> bytes:
    h = _tagged_hasher(tag)
    for a in args:
        h.update(_encode_item(a))
    return h.digest()


def _tagged_scalar(tag: bytes, *args: Any) -> Scalar:
    """Hash to scalar: H_tag(*args) → Z_L."""
    return Scalar.from_bytes_reduce(_tagged_hash(tag, *args))


# ── public hash functions ───────────────────────────────────────────────

def hash_key_list(keys: Sequence[bytes]) -> bytes:
    """Commitment  L = H(X_1 ‖ … ‖ X_n)  to the ordered participant list."""
    return _tagged_hash(_TAG_KEYAGG_LIST, list(keys))


def hash_key_coefficient(key_list_hash: bytes, key: bytes) -> Scalar:
    r"""
    Key-aggregation coefficient  μ_i = H(L, X_i).

    Weighting every key by a hash of the full list prevents a rogue
    participant from choosing its key as a function of the others'.
    """
    return _tagged_scalar(_TAG_KEYAGG_COEF, key_list_hash, key)


def hash_nonce(secret_nonce: bytes, participant_key: bytes, index: int) -> Scalar:
    """
    Nonce scalar  r_k = H(rand, X_i, k)  for  k = 0, 1.

    Binding the participant key keeps two signers that were handed the
    same randomness from producing related nonces.
    """
    return _tagged_scalar(
        _TAG_NONCE, secret_nonce, participant_key, index.to_bytes(1, "little"),
    )


def hash_nonce_coefficient(
    aggregate_nonce: bytes, public_key: bytes, message: bytes,
) -> Scalar:
    """
    Nonce coefficient  b = H(R_1 ‖ R_2, X, m).

    Ties the effective session nonce  R = R_1 + b·R_2  to every
    participant's nonces and to the message, so nonces chosen by a
    co-signer after seeing the others cannot steer the challenge.
    """
    return _tagged_scalar(_TAG_NONCE_COEF, aggregate_nonce, public_key, message)


def hash_challenge(R: bytes, public_key: bytes, message: bytes) -> Scalar:
    """Ed25519 challenge  k = SHA-512(R ‖ A ‖ M) mod L  (RFC 8032 §5.1.6)."""
    h = hashlib.sha512()
    h.update(R)
    h.update(public_key)
    h.update(message)
    return Scalar.from_bytes_reduce(h.digest())


def message_digest(message: bytes) -> bytes:
    """SHA-256 digest of the canonical message, carried in Round 2 output."""
    return hashlib.sha256(message).digest()
