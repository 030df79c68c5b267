"""
Key aggregation: many participant keys → one group wallet.

Participants keep their own independent Solana keys.  The group key is
the MuSig aggregate

    L   = H(X_1 ‖ … ‖ X_n)           (commitment to the ordered list)
    μ_i = H(L, X_i)                   (per-key coefficient)
    X   = Σ μ_i · X_i                 (aggregated key)

so a signature produced jointly by all key holders verifies as a plain
Ed25519 signature under *X*.  The coefficients stop a participant from
picking its key as a function of the others' (rogue-key attack).

A single key is returned unchanged with coefficient 1, which makes a
one-member group indistinguishable from an ordinary account.

References
----------
- Maxwell, Poelstra, Seurin, Wuille (2019). "Simple Schnorr
  Multi-Signatures with Applications to Bitcoin."  DCC 27(9).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .curve import Point, Scalar
from .errors import (
    DuplicateParticipant,
    EmptyKeySet,
    InvalidKeyEncoding,
    InvalidThreshold,
    UnknownParticipant,
)
from .hash import hash_key_coefficient, hash_key_list
from .keys import PublicKey

logger = logging.getLogger(__name__)

KeyLike = Union[PublicKey, bytes, str]


@dataclass(frozen=True)
class GroupWallet:
    """
    Aggregated group key, its ordered participants and the threshold.

    Immutable once created; build it with :func:`aggregate_keys`.

    The aggregated key binds every participant, so a valid signature
    always needs all of them.  A threshold below the group size is only
    a count gate: aggregation with fewer partial signatures fails with
    ``InsufficientSignatures``, and a set that meets the threshold but
    leaves a member out still fails with ``MissingParticipants``.
    """

    aggregated_key: PublicKey
    participants: Tuple[PublicKey, ...]
    threshold: int

    _coefficients: Dict[bytes, Scalar] = field(
        default_factory=dict, repr=False, compare=False,
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "participants", tuple(self.participants))
        if not self._coefficients:
            object.__setattr__(
                self, "_coefficients", key_coefficients(self.participants),
            )

    @property
    def size(self) -> int:
        return len(self.participants)

    def is_member(self, key: PublicKey) -> bool:
        return key.data in self._coefficients

    def coefficient(self, key: PublicKey) -> Scalar:
        """Aggregation coefficient μ for *key*."""
        try:
            return self._coefficients[key.data]
        except KeyError:
            raise UnknownParticipant(str(key)) from None

    # boundary encoding ------------------------------------------------------
    def to_dict(self) -> dict:
        return {
            "aggregatedPublicKey": str(self.aggregated_key),
            "participantKeys": [str(k) for k in self.participants],
            "threshold": self.threshold,
        }

    @classmethod
    def from_dict(cls, data: dict) -> GroupWallet:
        """
        Rebuild a wallet received from another party.

        The aggregate is recomputed from the participant list and must
        match the claimed key.
        """
        wallet = aggregate_keys(data["participantKeys"], data.get("threshold"))
        claimed = PublicKey.from_string(data["aggregatedPublicKey"])
        if claimed != wallet.aggregated_key:
            raise InvalidKeyEncoding(
                f"aggregated key {claimed} does not match participants"
            )
        return wallet

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_json(cls, text: str) -> GroupWallet:
        return cls.from_dict(json.loads(text))


# ── aggregation ─────────────────────────────────────────────────────────

def key_coefficients(keys: Iterable[PublicKey]) -> Dict[bytes, Scalar]:
    """Compute μ_i for every key of an ordered, duplicate-free list."""
    keys = list(keys)
    if len(keys) == 1:
        return {keys[0].data: Scalar.one()}
    L = hash_key_list([k.data for k in keys])
    return {k.data: hash_key_coefficient(L, k.data) for k in keys}


def aggregate_keys(
    keys: Iterable[KeyLike],
    threshold: Optional[int] = None,
) -> GroupWallet:
    """
    Combine participant keys into a :class:`GroupWallet`.

    Parameters
    ----------
    keys : iterable of PublicKey, bytes or base58 str
        Ordered participant keys.  Order matters for the aggregate.
    threshold : int or None
        Minimum number of partial signatures the aggregator demands.
        Defaults to the number of keys (n-of-n).  Forced to 1 for a
        single key.
    """
    participants: List[PublicKey] = [PublicKey.coerce(k) for k in keys]
    n = len(participants)
    if n == 0:
        raise EmptyKeySet()

    seen = set()
    for k in participants:
        if k.data in seen:
            raise DuplicateParticipant(str(k))
        seen.add(k.data)
        if not k.is_on_curve():
            raise InvalidKeyEncoding(f"{k} is not a curve point")

    if n == 1:
        logger.debug("single-key wallet %s", participants[0])
        return GroupWallet(participants[0], tuple(participants), 1)

    if threshold is None:
        threshold = n
    if isinstance(threshold, bool) or not isinstance(threshold, int):
        raise InvalidThreshold(f"got {threshold!r}")
    if not 1 <= threshold <= n:
        raise InvalidThreshold(f"got {threshold} for {n} participants")
    if threshold < n:
        logger.warning(
            "threshold %d of %d is a count gate only; signing still needs "
            "all %d participants", threshold, n, n,
        )

    coefficients = key_coefficients(participants)
    X = Point.sum_points([
        coefficients[k.data] * k.to_point() for k in participants
    ])
    aggregated = PublicKey(X.to_bytes())
    logger.debug(
        "aggregated %d keys into %s (threshold %d)", n, aggregated, threshold,
    )
    return GroupWallet(aggregated, tuple(participants), threshold, coefficients)
