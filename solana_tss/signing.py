"""
Two-round multi-party Ed25519 signing.

Every participant holds an ordinary Ed25519 key  a_i  with public key
X_i = a_i·B.  The group key  X = Σ μ_i·X_i  comes from
:func:`~solana_tss.keyagg.aggregate_keys`.

**Round 1 (commit):**  Each participant samples fresh randomness and
publishes two nonce points  R_i1 = r_i1·B,  R_i2 = r_i2·B.  Round 1
needs nobody else's output.

**Round 2 (partial sign):**  Given the message *m* and every
(R_j1, R_j2):

    R_1 = Σ R_j1,   R_2 = Σ R_j2      (aggregate nonce)
    b   = H_noncecoef(R_1 ‖ R_2, X, m)
    R   = R_1 + b·R_2                 (session nonce)
    c   = SHA-512(R ‖ X ‖ m)          (Ed25519 challenge)
    s_i = r_i1 + b·r_i2 + c·μ_i·a_i   (partial response)

**Aggregation:**  s = Σ s_i, and  (R, s)  is a standard RFC 8032
signature under *X*:

    s·B  =  R_1 + b·R_2 + c · Σ μ_i·a_i·B  =  R + c·X

so Solana validators accept it without knowing it was produced jointly.
Each partial response is checked on its own
(s_i·B == R_i1 + b·R_i2 + c·μ_i·X_i) before combination, which names
the participant whose contribution is bad.

Because *b* hashes every participant's nonces together with the
message, a co-signer cannot pick its nonces after seeing the others'
to steer the challenges of parallel sessions; signing sessions for the
same key may run concurrently.

All functions here are pure apart from nonce randomness and the
single-use flag on :class:`SecretNonce`.  The caller threads Round-1
output into Round 2; :class:`~solana_tss.session.SigningSession` adds
validation on top.

Security notes
--------------
- A secret nonce must never sign two different messages: with two
  responses under the same nonces the key  a_i  is recoverable.
  :class:`SecretNonce` hands its scalars out once, under a lock, and
  refuses serialisation.

References
----------
- RFC 8032  Edwards-Curve Digital Signature Algorithm (EdDSA)
- Nick, Ruffing, Seurin (2021). "MuSig2: Simple Two-Round Schnorr
  Multi-Signatures."  CRYPTO 2021.
- BIP-327  MuSig2 for BIP340-compatible Multi-Signatures.
- Benhamouda, Lepoint, Loss, Orrù, Raykova (2021). "On the
  (in)security of ROS."  EUROCRYPT 2021.
"""

from __future__ import annotations

import base64
import json
import logging
import secrets
import threading
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from .curve import G, POINT_BYTES, Point, Scalar
from .errors import (
    ContextMismatch,
    DuplicateParticipant,
    InsufficientSignatures,
    InvalidPartialSignature,
    MalformedNonce,
    MalformedSignature,
    MissingParticipants,
    NonceReuse,
    SignatureVerificationFailed,
    UnknownParticipant,
)
from .hash import hash_challenge, hash_nonce, hash_nonce_coefficient, message_digest
from .keyagg import GroupWallet
from .keys import Keypair, PublicKey
from .transaction import (
    DEFAULT_CODEC,
    SIGNATURE_BYTES,
    TransactionCodec,
    TransactionDetails,
)

logger = logging.getLogger(__name__)

SECRET_NONCE_BYTES = 32
PUBLIC_NONCE_BYTES = 2 * POINT_BYTES
Secret = Union[Keypair, bytes]


# ── data structures ─────────────────────────────────────────────────────

class SecretNonce:
    """
    Secret Round-1 randomness: MUST be used exactly once, then erased.

    Kept apart from the public commitment and deliberately not
    serialisable, so it cannot leak through a JSON payload or a pickle.
    """

    __slots__ = ("_value", "_key", "_used", "_lock")

    def __init__(self, value: bytes, participant_key: PublicKey) -> None:
        if len(value) != SECRET_NONCE_BYTES:
            raise MalformedNonce(f"secret nonce must be {SECRET_NONCE_BYTES} bytes")
        self._value = bytes(value)
        self._key = participant_key
        self._used = False
        self._lock = threading.Lock()

    @classmethod
    def generate(cls, participant_key: PublicKey) -> SecretNonce:
        return cls(secrets.token_bytes(SECRET_NONCE_BYTES), participant_key)

    @property
    def used(self) -> bool:
        return self._used

    def _scalars(self) -> Tuple[Scalar, Scalar]:
        return (
            hash_nonce(self._value, self._key.data, 0),
            hash_nonce(self._value, self._key.data, 1),
        )

    def public_nonce(self) -> bytes:
        """Public commitment  R_1 ‖ R_2."""
        with self._lock:
            if self._used:
                raise NonceReuse()
            r1, r2 = self._scalars()
        return (r1 * G).to_bytes() + (r2 * G).to_bytes()

    def consume(self) -> Tuple[Scalar, Scalar]:
        """
        Return  (r_1, r_2)  and erase the secret.

        Test and set happen under one lock, so of any number of
        concurrent callers exactly one gets the scalars; the rest see
        :class:`~solana_tss.errors.NonceReuse`.
        """
        with self._lock:
            if self._used:
                raise NonceReuse()
            self._used = True
            scalars = self._scalars()
            self._value = b"\x00" * SECRET_NONCE_BYTES
        return scalars

    def __reduce__(self):
        raise TypeError("secret nonces cannot be serialised")

    def __repr__(self) -> str:
        state = "used" if self._used else "fresh"
        return f"SecretNonce(<redacted>, {state})"


@dataclass(frozen=True)
class PublicCommitment:
    """Round-1 payload that is safe to send to the other participants."""

    public_nonce: bytes
    participant_key: PublicKey

    def to_dict(self) -> dict:
        return {
            "publicNonce": self.public_nonce.hex(),
            "participantKey": str(self.participant_key),
        }

    @classmethod
    def from_dict(cls, data: dict) -> PublicCommitment:
        return cls(
            public_nonce=_decode_nonce(_unhex(data["publicNonce"], MalformedNonce)),
            participant_key=PublicKey.from_string(data["participantKey"]),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_json(cls, text: str) -> PublicCommitment:
        return cls.from_dict(json.loads(text))


@dataclass(frozen=True)
class NonceCommitment:
    """
    Round-1 output held by the participant that produced it.

    ``public_nonce`` is the 64-byte pair  R_1 ‖ R_2.  Only
    :meth:`public` may leave the participant's process.
    """

    secret_nonce: SecretNonce = field(repr=False, compare=False)
    public_nonce: bytes
    participant_key: PublicKey

    def public(self) -> PublicCommitment:
        return PublicCommitment(self.public_nonce, self.participant_key)


@dataclass(frozen=True)
class PartialSignature:
    """
    Round-2 output.

    ``partial_signature`` is  R ‖ s_i : the session nonce the signer
    derived followed by its partial response.  ``public_nonce`` is the
    signer's own Round-1 pair.  ``message_digest`` is the SHA-256 of
    the message it signed.
    """

    partial_signature: bytes
    public_nonce: bytes
    participant_key: PublicKey
    message_digest: bytes

    @property
    def session_nonce(self) -> bytes:
        return self.partial_signature[:POINT_BYTES]

    @property
    def response(self) -> bytes:
        return self.partial_signature[POINT_BYTES:]

    def to_dict(self) -> dict:
        return {
            "partialSignature": self.partial_signature.hex(),
            "publicNonce": self.public_nonce.hex(),
            "participantKey": str(self.participant_key),
            "messageDigest": self.message_digest.hex(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> PartialSignature:
        sig = _unhex(data["partialSignature"], MalformedSignature)
        if len(sig) != SIGNATURE_BYTES:
            raise MalformedSignature(f"got {len(sig)} bytes")
        return cls(
            partial_signature=sig,
            public_nonce=_decode_nonce(_unhex(data["publicNonce"], MalformedNonce)),
            participant_key=PublicKey.from_string(data["participantKey"]),
            message_digest=_unhex(data["messageDigest"], ContextMismatch),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_json(cls, text: str) -> PartialSignature:
        return cls.from_dict(json.loads(text))


@dataclass(frozen=True)
class CompleteSignature:
    """Final signature, the key it verifies under, and the signed transaction."""

    signature: bytes
    public_key: PublicKey
    transaction_bytes: bytes

    @property
    def transaction_id(self) -> str:
        """Solana identifies a transaction by its first signature."""
        return base58.b58encode(self.signature).decode("ascii")

    def to_base64(self) -> str:
        return base64.b64encode(self.transaction_bytes).decode("ascii")


# ── round 1 ─────────────────────────────────────────────────────────────

def commit(
    secret: Secret,
    context: TransactionDetails,
    codec: Optional[TransactionCodec] = None,
) -> NonceCommitment:
    """
    Round 1: sample a fresh secret nonce and its public commitment.

    The context is only encoded, so details that cannot form a
    transaction are rejected before any nonce is handed out.
    """
    key = Keypair.coerce(secret).public_key
    (codec or DEFAULT_CODEC).encode(context)

    nonce = SecretNonce.generate(key)
    commitment = NonceCommitment(
        secret_nonce=nonce,
        public_nonce=nonce.public_nonce(),
        participant_key=key,
    )
    logger.debug("round 1 commitment from %s", key)
    return commitment


# ── round 2 ─────────────────────────────────────────────────────────────

def partial_sign(
    commitment: NonceCommitment,
    secret: Secret,
    context: TransactionDetails,
    all_public_nonces: Sequence[bytes],
    wallet: GroupWallet,
    codec: Optional[TransactionCodec] = None,
) -> PartialSignature:
    """
    Round 2: compute this participant's partial signature.

    Parameters
    ----------
    commitment : NonceCommitment
        This participant's own Round-1 output.  Its secret nonce is
        consumed.
    secret : Keypair or bytes
        The participant's key (32-byte seed or 64-byte Solana secret).
    context : TransactionDetails
        Transaction being signed; identical for all participants.
    all_public_nonces : sequence of bytes
        Every participant's 64-byte public nonce for this session, own
        included.
    wallet : GroupWallet
        Group the signature is produced for.
    """
    nonces = [_decode_nonce(n) for n in all_public_nonces]
    if len(set(nonces)) != len(nonces):
        raise ContextMismatch("public nonce set contains duplicates")
    if commitment.public_nonce not in nonces:
        raise ContextMismatch("own public nonce missing from nonce set")

    keypair = Keypair.coerce(secret)
    key = keypair.public_key
    if key != commitment.participant_key:
        raise ContextMismatch("secret does not belong to the commitment")
    if context.from_key != wallet.aggregated_key:
        raise ContextMismatch(
            f"sender {context.from_key} is not the group wallet "
            f"{wallet.aggregated_key}"
        )
    mu = wallet.coefficient(key)

    if commitment.secret_nonce.public_nonce() != commitment.public_nonce:
        raise ContextMismatch("public nonce does not match secret nonce")

    X = wallet.aggregated_key
    message = (codec or DEFAULT_CODEC).encode(context)
    R, b = _session_nonce(nonces, X, message)
    c = hash_challenge(R.to_bytes(), X.data, message)

    r1, r2 = commitment.secret_nonce.consume()
    s_i = r1 + b * r2 + c * mu * keypair.signing_scalar()

    logger.debug("round 2 partial signature from %s over %d nonces",
                 key, len(nonces))
    return PartialSignature(
        partial_signature=R.to_bytes() + s_i.to_bytes(),
        public_nonce=commitment.public_nonce,
        participant_key=key,
        message_digest=message_digest(message),
    )


# ── aggregation ─────────────────────────────────────────────────────────

def aggregate_signatures(
    partials: Iterable[PartialSignature],
    context: TransactionDetails,
    wallet: GroupWallet,
    codec: Optional[TransactionCodec] = None,
) -> CompleteSignature:
    """
    Combine partial signatures into one Ed25519 signature.

    The threshold is checked first, before any partial is looked at.
    The combined signature is verified against the aggregated key
    before it is attached to the transaction, so a returned
    :class:`CompleteSignature` is always valid.
    """
    partials = list(partials)
    if len(partials) < wallet.threshold:
        logger.warning("refusing aggregation: %d of %d partial signatures",
                       len(partials), wallet.threshold)
        raise InsufficientSignatures(len(partials), wallet.threshold)

    for ps in partials:
        if len(ps.partial_signature) != SIGNATURE_BYTES:
            raise MalformedSignature(
                f"{ps.participant_key}: got {len(ps.partial_signature)} bytes"
            )
        _decode_nonce(ps.public_nonce)

    signers = set()
    for ps in partials:
        if not wallet.is_member(ps.participant_key):
            raise UnknownParticipant(str(ps.participant_key))
        if ps.participant_key.data in signers:
            raise DuplicateParticipant(str(ps.participant_key))
        signers.add(ps.participant_key.data)
    missing = [str(k) for k in wallet.participants if k.data not in signers]
    if missing:
        raise MissingParticipants(missing)

    codec = codec or DEFAULT_CODEC
    X = wallet.aggregated_key
    if context.from_key != X:
        raise ContextMismatch(f"sender {context.from_key} is not the group wallet")
    message = codec.encode(context)
    digest = message_digest(message)
    R, b = _session_nonce([ps.public_nonce for ps in partials], X, message)
    for ps in partials:
        if ps.message_digest != digest:
            raise ContextMismatch(
                f"{ps.participant_key} signed different transaction details"
            )
        if ps.session_nonce != R.to_bytes():
            raise ContextMismatch(
                f"{ps.participant_key} signed with a different nonce set"
            )

    c = hash_challenge(R.to_bytes(), X.data, message)
    s = Scalar.zero()
    for ps in partials:
        try:
            s_i = Scalar.from_bytes(ps.response)
        except ValueError as exc:
            raise MalformedSignature(str(ps.participant_key)) from exc
        R_i1, R_i2 = _split_nonce(ps.public_nonce)
        X_i = ps.participant_key.to_point()
        expected = R_i1 + b * R_i2 + (c * wallet.coefficient(ps.participant_key)) * X_i
        if s_i * G != expected:
            raise InvalidPartialSignature(str(ps.participant_key))
        s = s + s_i

    signature = R.to_bytes() + s.to_bytes()
    if not verify_signature(X, message, signature):
        raise SignatureVerificationFailed(f"group key {X}")

    logger.debug("aggregated %d partial signatures for %s", len(partials), X)
    return CompleteSignature(
        signature=signature,
        public_key=X,
        transaction_bytes=codec.attach_signature(message, X, signature),
    )


# ── single signer ───────────────────────────────────────────────────────

def sign_single(
    secret: Secret,
    context: TransactionDetails,
    codec: Optional[TransactionCodec] = None,
) -> CompleteSignature:
    """Sign a transfer with one ordinary key, no protocol rounds."""
    keypair = Keypair.coerce(secret)
    if context.from_key != keypair.public_key:
        raise ContextMismatch(f"sender {context.from_key} is not {keypair.public_key}")
    codec = codec or DEFAULT_CODEC
    message = codec.encode(context)
    signature = keypair.sign(message)
    return CompleteSignature(
        signature=signature,
        public_key=keypair.public_key,
        transaction_bytes=codec.attach_signature(
            message, keypair.public_key, signature),
    )


# ── verification ────────────────────────────────────────────────────────

def verify_signature(
    public_key: PublicKey,
    message: bytes,
    signature: bytes,
) -> bool:
    """Standard Ed25519 verification; never raises."""
    try:
        Ed25519PublicKey.from_public_bytes(public_key.data).verify(
            signature, message)
        return True
    except (InvalidSignature, ValueError):
        return False


# ── helpers ─────────────────────────────────────────────────────────────

def _split_nonce(nonce: bytes) -> Tuple[Point, Point]:
    return (Point.from_bytes(nonce[:POINT_BYTES]),
            Point.from_bytes(nonce[POINT_BYTES:]))


def _session_nonce(
    nonces: List[bytes],
    public_key: PublicKey,
    message: bytes,
) -> Tuple[Point, Scalar]:
    """Aggregate public nonces into  (R = R_1 + b·R_2, b)."""
    pairs = [_split_nonce(n) for n in nonces]
    R1 = Point.sum_points([p[0] for p in pairs])
    R2 = Point.sum_points([p[1] for p in pairs])
    b = hash_nonce_coefficient(R1.to_bytes() + R2.to_bytes(), public_key.data, message)
    return R1 + b * R2, b


def _decode_nonce(nonce: bytes) -> bytes:
    """Check a public nonce is two 32-byte curve points; returns it as bytes."""
    if not isinstance(nonce, (bytes, bytearray)):
        raise MalformedNonce(f"got {type(nonce).__name__}")
    if len(nonce) != PUBLIC_NONCE_BYTES:
        raise MalformedNonce(f"got {len(nonce)} bytes")
    try:
        halves = _split_nonce(bytes(nonce))
    except ValueError as exc:
        raise MalformedNonce("not a curve point") from exc
    if any(p.is_inf() for p in halves):
        raise MalformedNonce("nonce point is the identity")
    return bytes(nonce)


def _unhex(text: str, error) -> bytes:
    try:
        return bytes.fromhex(text)
    except (TypeError, ValueError) as exc:
        raise error("field is not hex") from exc
