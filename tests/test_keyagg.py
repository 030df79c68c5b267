import logging

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from solana_tss import (
    DuplicateParticipant,
    EmptyKeySet,
    GroupWallet,
    InvalidKeyEncoding,
    InvalidThreshold,
    Keypair,
    PublicKey,
    UnknownParticipant,
    aggregate_keys,
)
from solana_tss.curve import Scalar

KEYS = [Keypair.from_secret(bytes([i]) * 32).public_key for i in range(1, 7)]


@settings(max_examples=30, deadline=None)
@given(st.data())
def test_threshold_and_participants_preserved(data):
    n = data.draw(st.integers(min_value=1, max_value=len(KEYS)))
    keys = KEYS[:n]
    t = data.draw(st.integers(min_value=1, max_value=n))
    wallet = aggregate_keys(keys, t)
    assert wallet.threshold == t
    assert list(wallet.participants) == keys


def test_empty_key_set():
    with pytest.raises(EmptyKeySet):
        aggregate_keys([])


def test_single_key_is_returned_unchanged():
    wallet = aggregate_keys([KEYS[0]])
    assert wallet.aggregated_key == KEYS[0]
    assert wallet.threshold == 1
    assert wallet.coefficient(KEYS[0]) == Scalar.one()


def test_threshold_defaults_to_n():
    assert aggregate_keys(KEYS[:3]).threshold == 3


@pytest.mark.parametrize("t", [0, 4, -1, 2.0, True, "2"])
def test_invalid_threshold(t):
    with pytest.raises(InvalidThreshold):
        aggregate_keys(KEYS[:3], t)


def test_duplicate_keys_rejected():
    with pytest.raises(DuplicateParticipant):
        aggregate_keys([KEYS[0], KEYS[1], KEYS[0]])


def test_off_curve_key_rejected():
    with pytest.raises(InvalidKeyEncoding):
        aggregate_keys([KEYS[0], PublicKey(b"\xff" * 32)])


def test_aggregation_is_deterministic_and_order_sensitive():
    a = aggregate_keys(KEYS[:3])
    b = aggregate_keys([str(k) for k in KEYS[:3]])
    c = aggregate_keys([KEYS[2], KEYS[1], KEYS[0]])
    assert a.aggregated_key == b.aggregated_key
    assert a.aggregated_key != c.aggregated_key
    assert a.aggregated_key not in KEYS


def test_coefficient_unknown_participant():
    wallet = aggregate_keys(KEYS[:2])
    assert wallet.is_member(KEYS[0])
    with pytest.raises(UnknownParticipant):
        wallet.coefficient(KEYS[5])


def test_wallet_json_round_trip():
    wallet = aggregate_keys(KEYS[:3], 2)
    restored = GroupWallet.from_json(wallet.to_json())
    assert restored == wallet
    assert wallet.to_dict()["participantKeys"] == [str(k) for k in KEYS[:3]]


def test_wallet_from_dict_checks_aggregate():
    data = aggregate_keys(KEYS[:2]).to_dict()
    data["aggregatedPublicKey"] = str(KEYS[3])
    with pytest.raises(InvalidKeyEncoding):
        GroupWallet.from_dict(data)


def test_partial_threshold_logs_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="solana_tss.keyagg"):
        aggregate_keys(KEYS[:3], 2)
    assert "count gate" in caplog.text


def test_full_threshold_logs_no_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="solana_tss.keyagg"):
        aggregate_keys(KEYS[:3])
    assert not caplog.records
