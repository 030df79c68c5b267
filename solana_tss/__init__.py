"""
solana-tss: multi-party Ed25519 signing for Solana group wallets.

Participants keep ordinary Solana keypairs.  Their public keys are
aggregated into one group address; a transfer from that address is
signed in two rounds (nonce commitment, partial signature) and the
partial signatures are combined into a single Ed25519 signature that
any Solana validator accepts.

Quick start
-----------
::

    from solana_tss import (
        Keypair, aggregate_keys, SigningSession, TransactionDetails,
        LedgerClient, LedgerConfig,
    )

    alice, bob = Keypair.generate(), Keypair.generate()
    wallet = aggregate_keys([alice.public_key, bob.public_key])

    ledger = LedgerClient(LedgerConfig(network="devnet"))
    details = TransactionDetails(
        amount=1_000_000,
        from_key=wallet.aggregated_key,
        to_key=recipient,
        network="devnet",
        recent_block_reference=ledger.get_recent_block_reference(),
    )

    session = SigningSession.start(wallet, details)
    complete = session.run([alice, bob])
    ledger.send_and_confirm(complete)
"""

__version__ = "0.1.0"

# ── core types ──────────────────────────────────────────────────────────
from .curve import Scalar, Point, G, ORDER
from .keys import PublicKey, Keypair, derive_public_key

# ── key aggregation ─────────────────────────────────────────────────────
from .keyagg import GroupWallet, aggregate_keys, key_coefficients

# ── signing ─────────────────────────────────────────────────────────────
from .signing import (
    SecretNonce,
    NonceCommitment,
    PublicCommitment,
    PartialSignature,
    CompleteSignature,
    commit,
    partial_sign,
    aggregate_signatures,
    sign_single,
    verify_signature,
)
from .session import SigningSession

# ── transactions & ledger ───────────────────────────────────────────────
from .transaction import Network, TransactionDetails, TransactionCodec
from .ledger import LedgerClient, LedgerConfig

# ── errors ──────────────────────────────────────────────────────────────
from .errors import (
    TSSError,
    EmptyKeySet,
    InvalidKeyEncoding,
    InvalidThreshold,
    DuplicateParticipant,
    UnknownParticipant,
    MalformedNonce,
    MalformedSignature,
    InsufficientSignatures,
    MissingParticipants,
    ContextMismatch,
    NonceReuse,
    InvalidPartialSignature,
    SignatureVerificationFailed,
    InvalidTransaction,
    FaucetUnavailable,
    LedgerError,
)

__all__ = [
    # version
    "__version__",
    # core
    "Scalar", "Point", "G", "ORDER",
    "PublicKey", "Keypair", "derive_public_key",
    # key aggregation
    "GroupWallet", "aggregate_keys", "key_coefficients",
    # signing
    "SecretNonce", "NonceCommitment", "PublicCommitment",
    "PartialSignature", "CompleteSignature",
    "commit", "partial_sign", "aggregate_signatures",
    "sign_single", "verify_signature",
    "SigningSession",
    # transactions & ledger
    "Network", "TransactionDetails", "TransactionCodec",
    "LedgerClient", "LedgerConfig",
    # errors
    "TSSError", "EmptyKeySet", "InvalidKeyEncoding", "InvalidThreshold",
    "DuplicateParticipant", "UnknownParticipant",
    "MalformedNonce", "MalformedSignature",
    "InsufficientSignatures", "MissingParticipants", "ContextMismatch",
    "NonceReuse", "InvalidPartialSignature", "SignatureVerificationFailed",
    "InvalidTransaction", "FaucetUnavailable", "LedgerError",
]
