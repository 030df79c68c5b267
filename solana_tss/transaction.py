"""
Solana transaction encoding.

Turns :class:`TransactionDetails` into the exact message bytes every
participant signs, and re-attaches the final signature for submission.
Only what the signing flow needs is implemented: a legacy message with
one System Program transfer and an optional SPL Memo instruction.

Wire layout of a legacy message::

    header        u8 num_required_signatures
                  u8 num_readonly_signed_accounts
                  u8 num_readonly_unsigned_accounts
    account_keys  compact-u16 length, 32 bytes each
    blockhash     32 bytes
    instructions  compact-u16 length, each:
                  u8 program_id_index
                  compact-u16 length + u8 account indices
                  compact-u16 length + data

A transaction is ``compact-u16 n ‖ n × 64-byte signature ‖ message``.
"""

from __future__ import annotations

import enum
import json
import struct
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import base58

from .errors import ContextMismatch, InvalidTransaction
from .keys import KEY_BYTES, PublicKey

SIGNATURE_BYTES = 64
SYSTEM_PROGRAM_ID = PublicKey(b"\x00" * 32)
MEMO_PROGRAM_ID = PublicKey.from_string("MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr")
_SYSTEM_TRANSFER = 2
_MAX_LAMPORTS = 2**64 - 1


class Network(enum.Enum):
    """Solana clusters; values are the cluster names used in RPC URLs."""

    MAIN = "mainnet-beta"
    DEV = "devnet"
    TEST = "testnet"

    @classmethod
    def parse(cls, value) -> Network:
        if isinstance(value, Network):
            return value
        aliases = {"main": cls.MAIN, "mainnet": cls.MAIN,
                   "dev": cls.DEV, "test": cls.TEST}
        text = str(value).lower()
        if text in aliases:
            return aliases[text]
        return cls(text)

    @property
    def default_rpc_url(self) -> str:
        return f"https://api.{self.value}.solana.com"


@dataclass(frozen=True)
class TransactionDetails:
    """
    Everything that determines the signed message.

    Must be identical for every participant of a signing session; any
    difference produces different message bytes.
    """

    amount: int
    from_key: PublicKey
    to_key: PublicKey
    network: Network
    recent_block_reference: str
    memo: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "from_key", PublicKey.coerce(self.from_key))
        object.__setattr__(self, "to_key", PublicKey.coerce(self.to_key))
        object.__setattr__(self, "network", Network.parse(self.network))

    def to_dict(self) -> dict:
        return {
            "amount": self.amount,
            "from": str(self.from_key),
            "to": str(self.to_key),
            "network": self.network.value,
            "memo": self.memo,
            "recentBlockhash": self.recent_block_reference,
        }

    @classmethod
    def from_dict(cls, data: dict) -> TransactionDetails:
        try:
            return cls(
                amount=data["amount"],
                from_key=PublicKey.from_string(data["from"]),
                to_key=PublicKey.from_string(data["to"]),
                network=Network.parse(data["network"]),
                recent_block_reference=data["recentBlockhash"],
                memo=data.get("memo"),
            )
        except (KeyError, ValueError) as exc:
            raise InvalidTransaction(str(exc)) from exc

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_json(cls, text: str) -> TransactionDetails:
        return cls.from_dict(json.loads(text))


# ── compact-u16 ─────────────────────────────────────────────────────────

def encode_length(n: int) -> bytes:
    """Solana ``compact-u16``: 7 bits per byte, high bit = continue."""
    if not 0 <= n <= 0xFFFF:
        raise InvalidTransaction(f"length {n} out of range")
    out = bytearray()
    while True:
        b = n & 0x7F
        n >>= 7
        if n:
            out.append(b | 0x80)
        else:
            out.append(b)
            return bytes(out)


def decode_length(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """Return ``(value, new_offset)``."""
    value = 0
    for i in range(3):
        if offset + i >= len(data):
            raise InvalidTransaction("truncated length prefix")
        b = data[offset + i]
        value |= (b & 0x7F) << (7 * i)
        if not b & 0x80:
            return value, offset + i + 1
    raise InvalidTransaction("length prefix too long")


# ── codec ───────────────────────────────────────────────────────────────

@dataclass
class _AccountMeta:
    key: PublicKey
    is_signer: bool
    is_writable: bool


class TransactionCodec:
    """Encodes transfer details and attaches signatures (Solana legacy format)."""

    def encode(self, details: TransactionDetails) -> bytes:
        """
        Canonical message bytes for *details*.

        Deterministic: identical details always give identical bytes.
        """
        amount = details.amount
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidTransaction(f"amount must be an integer, got {amount!r}")
        if not 0 <= amount <= _MAX_LAMPORTS:
            raise InvalidTransaction(f"amount {amount} out of range")
        blockhash = _decode_blockhash(details.recent_block_reference)

        instructions: List[Tuple[PublicKey, List[_AccountMeta], bytes]] = [(
            SYSTEM_PROGRAM_ID,
            [_AccountMeta(details.from_key, True, True),
             _AccountMeta(details.to_key, False, True)],
            struct.pack("<IQ", _SYSTEM_TRANSFER, amount),
        )]
        if details.memo:
            instructions.append((MEMO_PROGRAM_ID, [], details.memo.encode("utf-8")))

        keys = _order_accounts(details.from_key, instructions)
        index = {m.key.data: i for i, m in enumerate(keys)}

        num_signed = sum(1 for m in keys if m.is_signer)
        readonly_signed = sum(1 for m in keys if m.is_signer and not m.is_writable)
        readonly_unsigned = sum(
            1 for m in keys if not m.is_signer and not m.is_writable
        )

        out = bytearray([num_signed, readonly_signed, readonly_unsigned])
        out += encode_length(len(keys))
        for m in keys:
            out += m.key.data
        out += blockhash
        out += encode_length(len(instructions))
        for program, metas, data in instructions:
            out.append(index[program.data])
            out += encode_length(len(metas))
            out += bytes(index[m.key.data] for m in metas)
            out += encode_length(len(data))
            out += data
        return bytes(out)

    def attach_signature(
        self,
        message: bytes,
        public_key: PublicKey,
        signature: bytes,
    ) -> bytes:
        """Wrap *message* into a wire transaction signed by *public_key*."""
        if len(signature) != SIGNATURE_BYTES:
            raise InvalidTransaction(f"signature must be {SIGNATURE_BYTES} bytes")
        signers = self.required_signers(message)
        try:
            slot = signers.index(public_key)
        except ValueError:
            raise ContextMismatch(
                f"{public_key} is not a required signer of this message"
            ) from None
        sigs = [b"\x00" * SIGNATURE_BYTES] * len(signers)
        sigs[slot] = bytes(signature)
        return encode_length(len(signers)) + b"".join(sigs) + message

    def required_signers(self, message: bytes) -> List[PublicKey]:
        if len(message) < 3:
            raise InvalidTransaction("message too short")
        num_signed = message[0]
        count, offset = decode_length(message, 3)
        if num_signed > count or len(message) < offset + count * KEY_BYTES:
            raise InvalidTransaction("malformed account list")
        return [
            PublicKey(message[offset + i * KEY_BYTES: offset + (i + 1) * KEY_BYTES])
            for i in range(num_signed)
        ]


def _decode_blockhash(text: str) -> bytes:
    try:
        raw = base58.b58decode(text)
    except ValueError as exc:
        raise InvalidTransaction(f"blockhash {text!r} is not base58") from exc
    if len(raw) != 32:
        raise InvalidTransaction(f"blockhash {text!r} is not 32 bytes")
    return raw


def _order_accounts(
    fee_payer: PublicKey,
    instructions: List[Tuple[PublicKey, List[_AccountMeta], bytes]],
) -> List[_AccountMeta]:
    """
    Merge and order account metas the way the runtime expects.

    Signer-writable first (fee payer leading), then signer-readonly,
    writable, and read-only; ties broken by base58 text.
    """
    merged: Dict[bytes, _AccountMeta] = {}

    def add(meta: _AccountMeta) -> None:
        prev = merged.get(meta.key.data)
        if prev is None:
            merged[meta.key.data] = _AccountMeta(
                meta.key, meta.is_signer, meta.is_writable)
        else:
            prev.is_signer |= meta.is_signer
            prev.is_writable |= meta.is_writable

    for program, metas, _ in instructions:
        for m in metas:
            add(m)
        add(_AccountMeta(program, False, False))

    payer = merged.pop(fee_payer.data)
    rest = sorted(
        merged.values(),
        key=lambda m: (not m.is_signer, not m.is_writable, str(m.key)),
    )
    return [payer] + rest


DEFAULT_CODEC = TransactionCodec()
