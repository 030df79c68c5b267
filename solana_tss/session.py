"""
Explicit signing sessions.

A :class:`SigningSession` names one transaction being signed by one
group: a session id, the :class:`GroupWallet` and the agreed
:class:`TransactionDetails`.  Participants exchange it out of band
before Round 1; every step run through it is checked against it, so a
participant working from a different blockhash or memo is reported as
:class:`~solana_tss.errors.ContextMismatch` instead of silently
producing a partial signature that cannot combine.

The session is a value, not a state holder.  Progress through

    Round1Pending → Round1Complete → Round2Pending → Round2Complete
    → Aggregated → Submitted

is tracked by the caller; abandoning a session means discarding the
secret nonces, which must then never be used again.

Usage
-----
::

    wallet = aggregate_keys([alice.public_key, bob.public_key])
    session = SigningSession.start(wallet, details)

    # each participant, locally
    c = session.commit(alice)                     # Round 1
    ps = session.partial_sign(c, alice, nonces)   # Round 2

    # anyone
    complete = session.aggregate([ps_alice, ps_bob])
"""

from __future__ import annotations

import json
import logging
import secrets
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Union

from .errors import ContextMismatch, UnknownParticipant
from .keyagg import GroupWallet
from .keys import Keypair
from .signing import (
    CompleteSignature,
    NonceCommitment,
    PartialSignature,
    PublicCommitment,
    Secret,
    aggregate_signatures,
    commit,
    partial_sign,
)
from .transaction import DEFAULT_CODEC, TransactionCodec, TransactionDetails

logger = logging.getLogger(__name__)

SESSION_ID_BYTES = 16

NonceLike = Union[bytes, PublicCommitment]


@dataclass(frozen=True)
class SigningSession:
    """One transaction, one group, one Round-1/Round-2 exchange."""

    wallet: GroupWallet
    context: TransactionDetails
    session_id: bytes = field(
        default_factory=lambda: secrets.token_bytes(SESSION_ID_BYTES),
    )
    codec: TransactionCodec = field(
        default=DEFAULT_CODEC, repr=False, compare=False,
    )

    # ── factories ──────────────────────────────────────────────────────

    @classmethod
    def start(
        cls,
        wallet: GroupWallet,
        context: TransactionDetails,
        codec: Optional[TransactionCodec] = None,
    ) -> SigningSession:
        """
        Open a session after checking the details can be signed by *wallet*.

        The transaction sender must be the group wallet itself.
        """
        if context.from_key != wallet.aggregated_key:
            raise ContextMismatch(
                f"sender {context.from_key} is not the group wallet "
                f"{wallet.aggregated_key}"
            )
        codec = codec or DEFAULT_CODEC
        codec.encode(context)
        session = cls(wallet=wallet, context=context, codec=codec)
        logger.debug("session %s opened for %s", session.session_id.hex(),
                     wallet.aggregated_key)
        return session

    # ── protocol steps ─────────────────────────────────────────────────

    def commit(self, secret: Secret) -> NonceCommitment:
        """Round 1 for one participant of this session's wallet."""
        key = Keypair.coerce(secret).public_key
        if not self.wallet.is_member(key):
            raise UnknownParticipant(str(key))
        return commit(secret, self.context, self.codec)

    def partial_sign(
        self,
        commitment: NonceCommitment,
        secret: Secret,
        all_public_nonces: Sequence[NonceLike],
        context: Optional[TransactionDetails] = None,
    ) -> PartialSignature:
        """
        Round 2 for one participant.

        Parameters
        ----------
        all_public_nonces : sequence of bytes or PublicCommitment
            Round-1 output of every participant.  Commitments are
            checked for wallet membership.
        context : TransactionDetails or None
            The details this participant believes it is signing; must
            equal the session's.
        """
        self._check_context(context)
        nonces = [self._nonce_bytes(n) for n in all_public_nonces]
        return partial_sign(
            commitment, secret, self.context, nonces, self.wallet, self.codec,
        )

    def aggregate(
        self,
        partials: Iterable[PartialSignature],
        context: Optional[TransactionDetails] = None,
    ) -> CompleteSignature:
        """Combine partial signatures (threshold checked first)."""
        self._check_context(context)
        complete = aggregate_signatures(
            partials, self.context, self.wallet, self.codec,
        )
        logger.debug("session %s aggregated: %s", self.session_id.hex(),
                     complete.transaction_id)
        return complete

    def run(self, keypairs: Sequence[Keypair]) -> CompleteSignature:
        """
        Execute both rounds for locally held keys and aggregate.

        Handy for tests and for a single process holding every key;
        real deployments run each participant separately.
        """
        commitments: List[NonceCommitment] = [self.commit(kp) for kp in keypairs]
        public = [c.public() for c in commitments]
        partials = [
            self.partial_sign(c, kp, public)
            for c, kp in zip(commitments, keypairs)
        ]
        return self.aggregate(partials)

    # ── boundary encoding ──────────────────────────────────────────────

    def to_dict(self) -> Dict[str, object]:
        return {
            "sessionId": self.session_id.hex(),
            "wallet": self.wallet.to_dict(),
            "transaction": self.context.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> SigningSession:
        session = cls.start(
            GroupWallet.from_dict(data["wallet"]),
            TransactionDetails.from_dict(data["transaction"]),
        )
        return cls(
            wallet=session.wallet,
            context=session.context,
            session_id=bytes.fromhex(data["sessionId"]),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_json(cls, text: str) -> SigningSession:
        return cls.from_dict(json.loads(text))

    # ── helpers ────────────────────────────────────────────────────────

    def _check_context(self, context: Optional[TransactionDetails]) -> None:
        if context is not None and context != self.context:
            raise ContextMismatch(
                f"details differ from session {self.session_id.hex()}"
            )

    def _nonce_bytes(self, nonce: NonceLike) -> bytes:
        if isinstance(nonce, PublicCommitment):
            if not self.wallet.is_member(nonce.participant_key):
                raise UnknownParticipant(str(nonce.participant_key))
            return nonce.public_nonce
        return nonce

    def __repr__(self) -> str:
        return (
            f"SigningSession({self.session_id.hex()}, "
            f"wallet={self.wallet.aggregated_key}, "
            f"threshold={self.wallet.threshold}/{self.wallet.size})"
        )
