"""
Elliptic curve arithmetic on edwards25519 via libsodium.

Every group operation (scalar multiplication, point addition) is
delegated to libsodium through ``nacl.bindings``, the same curve and
encoding Solana uses for account keys and transaction signatures.
Scalar arithmetic stays in pure Python; it is cheap next to the group
operations.

Install
-------
    pip install pynacl>=1.5.0

Encoding conventions follow RFC 8032: scalars and points are 32 bytes,
little-endian, and a point is encoded as its y-coordinate with the sign
of x in the top bit.

References
----------
- RFC 8032  Edwards-Curve Digital Signature Algorithm (EdDSA)
- Bernstein, Duif, Lange, Schwabe, Yang (2012). "High-speed high-security
  signatures."  J. Cryptographic Engineering.
"""

from __future__ import annotations

from typing import List, Optional

from nacl import bindings as _sodium
from nacl.exceptions import RuntimeError as _SodiumError

# ── edwards25519 constants ──────────────────────────────────────────────
ORDER = 2**252 + 27742317777372353535851937790883648493
SCALAR_BYTES = 32
POINT_BYTES = 32

# (x, y) = (0, 1)
_IDENTITY_BYTES = b"\x01" + b"\x00" * 31


# ── Scalar  (Z_L arithmetic, pure Python) ───────────────────────────────
class Scalar:
    """Element of the scalar field  Z_L  where *L* = ``ORDER``."""

    __slots__ = ("_v",)

    def __init__(self, value: int) -> None:
        self._v = value % ORDER

    # constructors -----------------------------------------------------------
    @classmethod
    def zero(cls) -> Scalar:
        return cls(0)

    @classmethod
    def one(cls) -> Scalar:
        return cls(1)

    @classmethod
    def from_bytes(cls, data: bytes) -> Scalar:
        """Canonical 32-byte little-endian encoding; rejects values >= L."""
        if len(data) != SCALAR_BYTES:
            raise ValueError(f"need {SCALAR_BYTES} bytes, got {len(data)}")
        v = int.from_bytes(data, "little")
        if v >= ORDER:
            raise ValueError("scalar out of range")
        return cls(v)

    @classmethod
    def from_bytes_reduce(cls, data: bytes) -> Scalar:
        """Hash-output safe: reduce arbitrary length modulo *L*."""
        return cls(int.from_bytes(data, "little"))

    # serialisation ----------------------------------------------------------
    def to_bytes(self) -> bytes:
        return self._v.to_bytes(SCALAR_BYTES, "little")

    def is_zero(self) -> bool:
        return self._v == 0

    # arithmetic -------------------------------------------------------------
    def __add__(self, o: Scalar) -> Scalar:
        if not isinstance(o, Scalar):
            return NotImplemented
        return Scalar(self._v + o._v)

    def __sub__(self, o: Scalar) -> Scalar:
        if not isinstance(o, Scalar):
            return NotImplemented
        return Scalar(self._v - o._v)

    def __mul__(self, o):
        if isinstance(o, Scalar):
            return Scalar(self._v * o._v)
        if isinstance(o, Point):
            return o._smul(self)
        return NotImplemented

    def __rmul__(self, o):
        if isinstance(o, int):
            return Scalar(o * self._v)
        return NotImplemented

    def __neg__(self) -> Scalar:
        return Scalar(-self._v)

    # comparison / hashing ---------------------------------------------------
    def __eq__(self, o: object) -> bool:
        if isinstance(o, Scalar):
            return self._v == o._v
        if isinstance(o, int):
            return self._v == o % ORDER
        return False

    def __hash__(self) -> int:
        return hash(self._v)

    def __bool__(self) -> bool:
        return self._v != 0

    def __repr__(self) -> str:
        # scalars are usually secret material
        return "Scalar(…)"


# ── Point  (edwards25519 group element via libsodium) ───────────────────
class Point:
    """
    Point in the prime-order subgroup of edwards25519.

    The identity is represented by a flag rather than by its encoding;
    libsodium rejects small-order inputs (the identity among them) in
    scalar multiplication, so it never reaches the C layer.
    """

    __slots__ = ("_enc", "_inf")

    def __init__(self, *, enc: Optional[bytes] = None, infinity: bool = False):
        self._enc: Optional[bytes] = enc
        self._inf: bool = infinity

    # constructors -----------------------------------------------------------
    @classmethod
    def generator(cls) -> Point:
        """Standard base point *B*."""
        return cls(enc=_sodium.crypto_scalarmult_ed25519_base_noclamp(
            Scalar.one().to_bytes()))

    @classmethod
    def identity(cls) -> Point:
        """Neutral element (0, 1)."""
        return cls(infinity=True)

    @classmethod
    def from_scalar(cls, s: Scalar) -> Point:
        """Compute *s · B*."""
        if s.is_zero():
            return cls.identity()
        return cls(enc=_sodium.crypto_scalarmult_ed25519_base_noclamp(
            s.to_bytes()))

    @classmethod
    def from_bytes(cls, data: bytes) -> Point:
        """
        Deserialise a 32-byte RFC 8032 encoding.

        Raises ``ValueError`` for anything that is not the identity or a
        canonical point of the prime-order subgroup.
        """
        data = bytes(data)
        if len(data) != POINT_BYTES:
            raise ValueError(f"need {POINT_BYTES} bytes, got {len(data)}")
        if data == _IDENTITY_BYTES:
            return cls.identity()
        if not _sodium.crypto_core_ed25519_is_valid_point(data):
            raise ValueError("not a valid edwards25519 point")
        return cls(enc=data)

    @staticmethod
    def is_valid_encoding(data: bytes) -> bool:
        """True for canonical, non-small-order subgroup points."""
        if len(data) != POINT_BYTES:
            return False
        return bool(_sodium.crypto_core_ed25519_is_valid_point(bytes(data)))

    # serialisation ----------------------------------------------------------
    def to_bytes(self) -> bytes:
        if self._inf:
            return _IDENTITY_BYTES
        return self._enc  # type: ignore[return-value]

    def is_inf(self) -> bool:
        return self._inf

    # group operations -------------------------------------------------------
    def _smul(self, s: Scalar) -> Point:
        """Scalar multiplication  s · self  (C speed)."""
        if self._inf or s.is_zero():
            return Point.identity()
        try:
            enc = _sodium.crypto_scalarmult_ed25519_noclamp(
                s.to_bytes(), self._enc)
        except _SodiumError:
            # libsodium refuses to return the identity
            return Point.identity()
        return Point(enc=enc)

    def __neg__(self) -> Point:
        if self._inf:
            return self
        raw = bytearray(self._enc)  # type: ignore[arg-type]
        raw[31] ^= 0x80           # flip sign of x
        return Point(enc=bytes(raw))

    def __add__(self, o: Point) -> Point:
        if not isinstance(o, Point):
            return NotImplemented
        if self._inf:
            return o
        if o._inf:
            return self
        enc = _sodium.crypto_core_ed25519_add(self._enc, o._enc)
        if enc == _IDENTITY_BYTES:
            return Point.identity()
        return Point(enc=enc)

    def __sub__(self, o: Point) -> Point:
        return self + (-o)

    def __rmul__(self, s) -> Point:
        if isinstance(s, Scalar):
            return self._smul(s)
        if isinstance(s, int):
            return self._smul(Scalar(s))
        return NotImplemented

    def __eq__(self, o: object) -> bool:
        if not isinstance(o, Point):
            return False
        if self._inf and o._inf:
            return True
        if self._inf or o._inf:
            return False
        return self._enc == o._enc

    def __hash__(self) -> int:
        return hash(self.to_bytes())

    def __repr__(self) -> str:
        if self._inf:
            return "Point(O)"
        return f"Point({self.to_bytes().hex()[:16]}…)"

    # utility ----------------------------------------------------------------
    @staticmethod
    def sum_points(points: List[Point]) -> Point:
        """Left-to-right sum; identity for an empty list."""
        acc = Point.identity()
        for p in points:
            acc = acc + p
        return acc


# ── module-level generator ──────────────────────────────────────────────
G = Point.generator()
