import pytest

from solana_tss.curve import G, ORDER, Point, Scalar


def test_scalar_reduces_mod_order():
    assert Scalar(ORDER + 5) == Scalar(5)
    assert Scalar(-1) + Scalar(1) == Scalar.zero()


def test_scalar_from_bytes_rejects_non_canonical():
    with pytest.raises(ValueError):
        Scalar.from_bytes(ORDER.to_bytes(32, "little"))
    with pytest.raises(ValueError):
        Scalar.from_bytes(b"\x01" * 31)


def test_scalar_repr_hides_value():
    assert "5" not in repr(Scalar(5))


def test_point_arithmetic():
    a, b = Scalar(2**200 + 17), Scalar(ORDER - 3)
    assert (a + b) * G == a * G + b * G
    assert (a * G) - (a * G) == Point.identity()
    assert Scalar.zero() * G == Point.identity()
    assert Point.from_scalar(a) == a * G


def test_point_encoding_round_trip():
    p = Scalar(12345) * G
    assert Point.from_bytes(p.to_bytes()) == p
    assert Point.from_bytes(Point.identity().to_bytes()).is_inf()


def test_point_from_bytes_rejects_garbage():
    with pytest.raises(ValueError):
        Point.from_bytes(b"\xff" * 32)
    with pytest.raises(ValueError):
        Point.from_bytes(b"\x00" * 31)
    assert not Point.is_valid_encoding(b"\xff" * 32)


def test_identity_is_neutral():
    p = Scalar(7) * G
    assert p + Point.identity() == p
    assert Point.sum_points([]) == Point.identity()
    assert Point.sum_points([p, p]) == Scalar(2) * G
