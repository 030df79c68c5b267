import base58
import pytest

from solana_tss import Keypair, PublicKey, TransactionDetails, aggregate_keys

BLOCKHASH = base58.b58encode(b"\x07" * 32).decode()
OTHER_BLOCKHASH = base58.b58encode(b"\x08" * 32).decode()


@pytest.fixture
def recipient():
    return PublicKey(bytes(range(32)))


@pytest.fixture
def p1():
    return Keypair.from_secret(b"\x01" * 32)


@pytest.fixture
def p2():
    return Keypair.from_secret(b"\x02" * 32)


@pytest.fixture
def p3():
    return Keypair.from_secret(b"\x03" * 32)


@pytest.fixture
def wallet_2of2(p1, p2):
    return aggregate_keys([p1.public_key, p2.public_key], 2)


@pytest.fixture
def wallet_2of3(p1, p2, p3):
    return aggregate_keys([p1.public_key, p2.public_key, p3.public_key], 2)


def make_details(wallet, to, amount=1_000_000, blockhash=BLOCKHASH, memo=None):
    return TransactionDetails(
        amount=amount,
        from_key=wallet.aggregated_key,
        to_key=to,
        network="devnet",
        recent_block_reference=blockhash,
        memo=memo,
    )


@pytest.fixture
def details(wallet_2of2, recipient):
    return make_details(wallet_2of2, recipient)
