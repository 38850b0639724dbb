"""
ristretto255 group encoding over edwards25519

Point arithmetic comes from ``ecdsa``'s twisted Edwards implementation;
this module only adds the ristretto255 encode, decode and hash-to-group
maps (RFC 9496) so that every group element has one 32-byte encoding.
"""

from ecdsa.eddsa import curve_ed25519, generator_ed25519
from ecdsa.ellipticcurve import INFINITY, PointEdwards

from .errors import DecodeError

P = curve_ed25519.p()
D = curve_ed25519.d() % P

SQRT_M1 = 19681161376707505956807079304988542015446066515923890162744021073123829784752
SQRT_AD_MINUS_ONE = (
    25063068953384623474111414158702152701244531502492656460079210482610430750235
)
INVSQRT_A_MINUS_D = (
    54469307008909316920995813868745141605393597292927456921205312896311721017578
)
ONE_MINUS_D_SQ = 1159843021668779879193775521855586647937357759715417654439879720876111806838
D_MINUS_ONE_SQ = (
    40440834346308536858101042469323190826248399146238708352240133220865137265952
)

ENCODING_LEN = 32
IDENTITY_ENCODING = bytes(ENCODING_LEN)

BASEPOINT = generator_ed25519

__all__ = ["BASEPOINT", "INFINITY", "decode", "encode", "from_uniform_bytes", "negate"]


def is_negative(x: int) -> bool:
    return (x % P) & 1 == 1


def _abs(x: int) -> int:
    x %= P
    return P - x if x & 1 else x


def sqrt_ratio_m1(u: int, v: int):
    """Return (was_square, sqrt(u/v)) with the non-negative root"""
    u %= P
    v %= P
    v3 = v * v * v % P
    v7 = v3 * v3 * v % P
    r = u * v3 * pow(u * v7, (P - 5) // 8, P) % P
    check = v * r * r % P

    correct_sign = check == u
    flipped_sign = check == (-u) % P
    flipped_sign_i = check == (-u * SQRT_M1) % P
    if flipped_sign or flipped_sign_i:
        r = r * SQRT_M1 % P
    return correct_sign or flipped_sign, _abs(r)


def _point(x: int, y: int, z: int, t: int):
    x, y, z, t = x % P, y % P, z % P, t % P
    if x == 0 or t == 0:
        return INFINITY
    return PointEdwards(curve_ed25519, x, y, z, t)


def negate(point):
    if point == INFINITY:
        return INFINITY
    x, y = int(point.x()), int(point.y())
    return _point(-x, y, 1, -x * y)


def decode(data: bytes):
    """
    Decode a canonical 32-byte encoding into a group element

    Raises:
        DecodeError: if the bytes are not a valid ristretto255 encoding
    """
    data = bytes(data)
    if len(data) != ENCODING_LEN:
        raise DecodeError("ristretto point must be 32 bytes", field="point")
    if data == IDENTITY_ENCODING:
        return INFINITY

    s = int.from_bytes(data, "little")
    if s >= P or is_negative(s):
        raise DecodeError("non-canonical ristretto point", field="point")

    ss = s * s % P
    u1 = (1 - ss) % P
    u2 = (1 + ss) % P
    u2_sqr = u2 * u2 % P
    v = (-(D * u1 * u1) - u2_sqr) % P

    was_square, invsqrt = sqrt_ratio_m1(1, v * u2_sqr)
    den_x = invsqrt * u2 % P
    den_y = invsqrt * den_x * v % P

    x = _abs(2 * s * den_x)
    y = u1 * den_y % P
    t = x * y % P
    if not was_square or is_negative(t) or y == 0:
        raise DecodeError("invalid ristretto point", field="point")
    return _point(x, y, 1, t)


def encode(point) -> bytes:
    """Canonical 32-byte encoding of a group element"""
    if point == INFINITY:
        return IDENTITY_ENCODING
    x0, y0 = int(point.x()), int(point.y())
    z0 = 1
    t0 = x0 * y0 % P

    u1 = (z0 + y0) * (z0 - y0) % P
    u2 = x0 * y0 % P
    _, invsqrt = sqrt_ratio_m1(1, u1 * u2 * u2)
    den1 = invsqrt * u1 % P
    den2 = invsqrt * u2 % P
    z_inv = den1 * den2 * t0 % P

    if is_negative(t0 * z_inv):
        x, y = y0 * SQRT_M1 % P, x0 * SQRT_M1 % P
        den_inv = den1 * INVSQRT_A_MINUS_D % P
    else:
        x, y = x0, y0
        den_inv = den2

    if is_negative(x * z_inv):
        y = -y % P

    s = _abs(den_inv * (z0 - y))
    return s.to_bytes(ENCODING_LEN, "little")


def _elligator(t: int):
    r = SQRT_M1 * t * t % P
    u = (r + 1) * ONE_MINUS_D_SQ % P
    v = (-1 - r * D) * (r + D) % P

    was_square, s = sqrt_ratio_m1(u, v)
    if was_square:
        c = P - 1
    else:
        s = -_abs(s * t) % P
        c = r

    n = (c * (r - 1) * D_MINUS_ONE_SQ - v) % P
    w0 = 2 * s * v % P
    w1 = n * SQRT_AD_MINUS_ONE % P
    w2 = (1 - s * s) % P
    w3 = (1 + s * s) % P
    return _point(w0 * w3, w2 * w1, w1 * w3, w0 * w2)


def _field_element(data: bytes) -> int:
    return (int.from_bytes(data, "little") & ((1 << 255) - 1)) % P


def from_uniform_bytes(data: bytes) -> bytes:
    """Map 64 uniformly random bytes to a group element encoding"""
    if len(data) != 64:
        raise ValueError("uniform bytes must be 64 bytes")
    first = _elligator(_field_element(data[:32]))
    second = _elligator(_field_element(data[32:]))
    return encode(first + second)
