import struct

import pytest

from solana_tss import (
    ContextMismatch,
    InvalidKeyEncoding,
    InvalidTransaction,
    Network,
    PublicKey,
    TransactionCodec,
    TransactionDetails,
)
from solana_tss.transaction import (
    MEMO_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    decode_length,
    encode_length,
)

from conftest import BLOCKHASH

SENDER = PublicKey(b"\x11" * 32)
RECEIVER = PublicKey(b"\x22" * 32)


def details(**kw):
    base = dict(
        amount=5000,
        from_key=SENDER,
        to_key=RECEIVER,
        network=Network.DEV,
        recent_block_reference=BLOCKHASH,
    )
    base.update(kw)
    return TransactionDetails(**base)


@pytest.mark.parametrize("n, encoded", [
    (0, b"\x00"),
    (0x7F, b"\x7f"),
    (0x80, b"\x80\x01"),
    (0x3FFF, b"\xff\x7f"),
    (0x4000, b"\x80\x80\x01"),
    (0xFFFF, b"\xff\xff\x03"),
])
def test_compact_u16(n, encoded):
    assert encode_length(n) == encoded
    assert decode_length(encoded) == (n, len(encoded))


def test_compact_u16_limits():
    with pytest.raises(InvalidTransaction):
        encode_length(0x10000)
    with pytest.raises(InvalidTransaction):
        decode_length(b"\x80")


def test_encode_is_deterministic():
    codec = TransactionCodec()
    assert codec.encode(details()) == codec.encode(details())
    assert codec.encode(details()) != codec.encode(details(amount=5001))


def test_transfer_layout():
    message = TransactionCodec().encode(details())
    assert message[:3] == bytes([1, 0, 1])
    assert message[3] == 3
    keys = [message[4 + 32 * i: 4 + 32 * (i + 1)] for i in range(3)]
    assert keys == [SENDER.data, RECEIVER.data, SYSTEM_PROGRAM_ID.data]
    assert message[100:132] == b"\x07" * 32
    assert message.endswith(struct.pack("<IQ", 2, 5000))


def test_memo_adds_instruction():
    plain = TransactionCodec().encode(details())
    memo = TransactionCodec().encode(details(memo="thanks"))
    assert memo != plain
    assert MEMO_PROGRAM_ID.data in memo
    assert memo.endswith(b"\x06thanks")
    assert TransactionCodec().encode(details(memo="")) == plain


def test_required_signers_and_attach():
    codec = TransactionCodec()
    message = codec.encode(details())
    assert codec.required_signers(message) == [SENDER]
    tx = codec.attach_signature(message, SENDER, b"\xaa" * 64)
    assert tx == b"\x01" + b"\xaa" * 64 + message


def test_attach_rejects_foreign_signer():
    codec = TransactionCodec()
    message = codec.encode(details())
    with pytest.raises(ContextMismatch):
        codec.attach_signature(message, RECEIVER, b"\xaa" * 64)
    with pytest.raises(InvalidTransaction):
        codec.attach_signature(message, SENDER, b"\xaa" * 10)


@pytest.mark.parametrize("amount", [-1, 2**64, 1.5, "10", True])
def test_bad_amount(amount):
    with pytest.raises(InvalidTransaction):
        TransactionCodec().encode(details(amount=amount))


@pytest.mark.parametrize("blockhash", ["", "0OIl", "1111", "not-a-hash"])
def test_bad_blockhash(blockhash):
    with pytest.raises(InvalidTransaction):
        TransactionCodec().encode(details(recent_block_reference=blockhash))


def test_network_parse():
    assert Network.parse("main") is Network.MAIN
    assert Network.parse("mainnet-beta") is Network.MAIN
    assert Network.parse("DEV") is Network.DEV
    assert Network.TEST.default_rpc_url == "https://api.testnet.solana.com"
    with pytest.raises(ValueError):
        Network.parse("localnet")


def test_details_json_round_trip():
    d = details(memo="m")
    assert TransactionDetails.from_json(d.to_json()) == d
    assert d.to_dict()["recentBlockhash"] == BLOCKHASH


def test_details_from_dict_errors():
    data = details().to_dict()
    del data["to"]
    with pytest.raises(InvalidTransaction):
        TransactionDetails.from_dict(data)
    data = details().to_dict()
    data["network"] = "localnet"
    with pytest.raises(InvalidTransaction):
        TransactionDetails.from_dict(data)
    data = details().to_dict()
    data["from"] = "abc"
    with pytest.raises(InvalidKeyEncoding):
        TransactionDetails.from_dict(data)
