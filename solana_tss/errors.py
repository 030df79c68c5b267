"""
Error taxonomy for solana-tss.

Every failure a protocol step can report has its own exception class
with a stable ``code``, so a surrounding CLI or service can map it to an
exit code or HTTP status without parsing messages.
"""

from typing import Iterable, Optional

__all__ = [
    "TSSError",
    "EmptyKeySet",
    "InvalidKeyEncoding",
    "InvalidThreshold",
    "DuplicateParticipant",
    "UnknownParticipant",
    "MalformedNonce",
    "MalformedSignature",
    "InsufficientSignatures",
    "MissingParticipants",
    "ContextMismatch",
    "NonceReuse",
    "InvalidPartialSignature",
    "SignatureVerificationFailed",
    "InvalidTransaction",
    "FaucetUnavailable",
    "LedgerError",
]


class TSSError(Exception):
    """Base class for all solana-tss errors."""

    code = "TSS_E000"
    summary = "Threshold signing error."

    def __init__(self, context: Optional[str] = None):
        self.context = context
        full_msg = f"[{self.code}] {self.summary}"
        if context:
            full_msg += f" {context}"
        super().__init__(full_msg)


# Key errors (E1xx)
class EmptyKeySet(TSSError):
    code = "TSS_E100"
    summary = "Key aggregation needs at least one participant key."


class InvalidKeyEncoding(TSSError):
    code = "TSS_E101"
    summary = "Value does not decode to a valid public key."


class InvalidThreshold(TSSError):
    code = "TSS_E102"
    summary = "Threshold must be an integer between 1 and the number of participants."


class DuplicateParticipant(TSSError):
    code = "TSS_E103"
    summary = "Participant key appears more than once."


class UnknownParticipant(TSSError):
    code = "TSS_E104"
    summary = "Participant key is not a member of the group wallet."


# Protocol input errors (E2xx)
class MalformedNonce(TSSError):
    code = "TSS_E200"
    summary = "Public nonce must be a 32-byte curve point."


class MalformedSignature(TSSError):
    code = "TSS_E201"
    summary = "Partial signature must be 64 bytes."


class ContextMismatch(TSSError):
    code = "TSS_E202"
    summary = "Signing inputs diverge between participants."


class NonceReuse(TSSError):
    code = "TSS_E203"
    summary = "Secret nonce has already been used."


# Aggregation errors (E3xx)
class InsufficientSignatures(TSSError):
    code = "TSS_E300"
    summary = "Not enough partial signatures to meet the threshold."

    def __init__(self, have: int, need: int):
        self.have = have
        self.need = need
        super().__init__(f"have {have}, need {need}")


class MissingParticipants(TSSError):
    code = "TSS_E301"
    summary = "The aggregated key requires a contribution from every participant."

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__("missing: " + ", ".join(self.missing))


class InvalidPartialSignature(TSSError):
    code = "TSS_E302"
    summary = "Partial signature does not verify."

    def __init__(self, participant: str):
        self.participant = participant
        super().__init__(f"signer: {participant}")


class SignatureVerificationFailed(TSSError):
    code = "TSS_E303"
    summary = "Ed25519 verification of the aggregated signature failed."


# Boundary errors (E4xx)
class InvalidTransaction(TSSError):
    code = "TSS_E400"
    summary = "Transaction details cannot be encoded."


class FaucetUnavailable(TSSError):
    code = "TSS_E401"
    summary = "Faucet requests are not available on mainnet."


class LedgerError(TSSError):
    code = "TSS_E402"
    summary = "Ledger RPC request failed."
