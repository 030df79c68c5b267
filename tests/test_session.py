import pytest

from solana_tss import (
    ContextMismatch,
    InsufficientSignatures,
    SigningSession,
    UnknownParticipant,
    aggregate_keys,
    commit,
    verify_signature,
)
from solana_tss.transaction import DEFAULT_CODEC

from conftest import OTHER_BLOCKHASH, make_details


def test_run_produces_valid_signature(p1, p2, wallet_2of2, details):
    session = SigningSession.start(wallet_2of2, details)
    complete = session.run([p1, p2])
    assert verify_signature(
        wallet_2of2.aggregated_key, DEFAULT_CODEC.encode(details),
        complete.signature)


def test_start_requires_group_sender(p1, wallet_2of2, recipient):
    details = make_details(aggregate_keys([p1.public_key]), recipient)
    with pytest.raises(ContextMismatch):
        SigningSession.start(wallet_2of2, details)


def test_outsider_cannot_commit(p3, wallet_2of2, details):
    session = SigningSession.start(wallet_2of2, details)
    with pytest.raises(UnknownParticipant):
        session.commit(p3)


def test_steps_checked_against_session(p1, p2, wallet_2of2, details, recipient):
    session = SigningSession.start(wallet_2of2, details)
    c1, c2 = session.commit(p1), session.commit(p2)
    public = [c1.public(), c2.public()]

    stale = make_details(wallet_2of2, recipient, blockhash=OTHER_BLOCKHASH)
    with pytest.raises(ContextMismatch):
        session.partial_sign(c1, p1, public, context=stale)

    partials = [
        session.partial_sign(c1, p1, public, context=details),
        session.partial_sign(c2, p2, public),
    ]
    with pytest.raises(ContextMismatch):
        session.aggregate(partials, context=stale)
    with pytest.raises(InsufficientSignatures):
        session.aggregate(partials[:1])
    assert session.aggregate(partials).public_key == wallet_2of2.aggregated_key


def test_commitment_from_outsider_rejected(p1, p3, wallet_2of2, details):
    session = SigningSession.start(wallet_2of2, details)
    c1 = session.commit(p1)
    c3 = commit(p3, details)
    with pytest.raises(UnknownParticipant):
        session.partial_sign(c1, p1, [c1.public(), c3.public()])


def test_session_json_round_trip(wallet_2of2, details):
    session = SigningSession.start(wallet_2of2, details)
    restored = SigningSession.from_json(session.to_json())
    assert restored == session
    assert restored.session_id == session.session_id


def test_sessions_get_distinct_ids(wallet_2of2, details):
    a = SigningSession.start(wallet_2of2, details)
    b = SigningSession.start(wallet_2of2, details)
    assert a.session_id != b.session_id
    assert a != b


def test_repr_shows_threshold(wallet_2of2, details):
    session = SigningSession.start(wallet_2of2, details)
    assert "threshold=2/2" in repr(session)
