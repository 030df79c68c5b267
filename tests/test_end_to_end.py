"""Two participants create a group wallet and sign a devnet transfer."""

import pytest

from solana_tss import (
    InsufficientSignatures,
    Keypair,
    PartialSignature,
    PublicCommitment,
    SigningSession,
    TransactionDetails,
    aggregate_keys,
    aggregate_signatures,
    commit,
    partial_sign,
    verify_signature,
)
from solana_tss.transaction import DEFAULT_CODEC

from conftest import BLOCKHASH


def test_two_party_wallet(recipient):
    P1, P2 = Keypair.generate(), Keypair.generate()
    W = aggregate_keys([P1.public_key, P2.public_key], 2)

    context = TransactionDetails(
        amount=250_000,
        from_key=W.aggregated_key,
        to_key=recipient,
        network="devnet",
        recent_block_reference=BLOCKHASH,
        memo="shared rent",
    )

    n1, n2 = commit(P1, context), commit(P2, context)
    all_nonces = [n1.public_nonce, n2.public_nonce]
    sig1 = partial_sign(n1, P1, context, all_nonces, W)
    sig2 = partial_sign(n2, P2, context, all_nonces, W)

    complete = aggregate_signatures([sig1, sig2], context, W)
    assert complete.signature
    assert verify_signature(
        W.aggregated_key, DEFAULT_CODEC.encode(context), complete.signature)

    with pytest.raises(InsufficientSignatures) as exc:
        aggregate_signatures([sig1], context, W)
    assert (exc.value.have, exc.value.need) == (1, 2)


def test_participants_exchange_json(recipient):
    P1, P2 = Keypair.generate(), Keypair.generate()
    W = aggregate_keys([str(P1.public_key), str(P2.public_key)])
    context = TransactionDetails(
        amount=1, from_key=W.aggregated_key, to_key=recipient,
        network="devnet", recent_block_reference=BLOCKHASH,
    )

    # coordinator publishes the session, each participant loads it
    wire = SigningSession.start(W, context).to_json()
    s1, s2 = SigningSession.from_json(wire), SigningSession.from_json(wire)
    assert s1 == s2

    c1, c2 = s1.commit(P1), s2.commit(P2)
    round1 = [PublicCommitment.from_json(c.public().to_json()) for c in (c1, c2)]
    round2 = [
        s1.partial_sign(c1, P1, round1).to_json(),
        s2.partial_sign(c2, P2, round1).to_json(),
    ]
    complete = s1.aggregate(PartialSignature.from_json(p) for p in round2)
    assert verify_signature(
        W.aggregated_key, DEFAULT_CODEC.encode(context), complete.signature)
