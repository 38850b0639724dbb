"""
Encryption primitives for confidential balances

- Twisted ElGamal over ristretto255 for the encrypted pending and
  available balances
- AES-128-GCM-SIV ("AE") for the decryptable available balance that only
  the account owner can read

Points and scalars are carried as their canonical 32-byte encodings.
"""

import base64
import hashlib
import os
import struct
from functools import lru_cache
from typing import Optional

import nacl.utils
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCMSIV
from nacl.bindings import (
    crypto_core_ed25519_scalar_invert,
    crypto_core_ed25519_scalar_reduce,
)

from . import ristretto
from .errors import DecodeError, DecryptionError

GROUP_ORDER = 2**252 + 27742317777372353535851937790883648493

POINT_LEN = 32
SCALAR_LEN = 32
IDENTITY = ristretto.IDENTITY_ENCODING
ZERO_SCALAR = bytes(SCALAR_LEN)

ELGAMAL_PUBKEY_LEN = 32
ELGAMAL_CIPHERTEXT_LEN = 64
AE_KEY_LEN = 16
AE_NONCE_LEN = 12
AE_CIPHERTEXT_LEN = 36

# Discrete log search covers u32 in two 16-bit halves
_BABY_STEPS = 1 << 16
_GIANT_STEPS = 1 << 16


def scalar_from_int(value: int) -> bytes:
    """Encode an integer as a little-endian scalar reduced mod the group order"""
    return (value % GROUP_ORDER).to_bytes(SCALAR_LEN, "little")


def scalar_to_int(scalar: bytes) -> int:
    return int.from_bytes(scalar, "little")


def scalar_reduce(wide: bytes) -> bytes:
    """Reduce 64 bytes to a scalar mod the group order"""
    return crypto_core_ed25519_scalar_reduce(wide)


def scalar_invert(scalar: bytes) -> bytes:
    return crypto_core_ed25519_scalar_invert(scalar)


def random_scalar() -> bytes:
    return scalar_reduce(nacl.utils.random(64))


def point_add(p: bytes, q: bytes) -> bytes:
    if p == IDENTITY:
        return q
    if q == IDENTITY:
        return p
    return ristretto.encode(ristretto.decode(p) + ristretto.decode(q))


def point_sub(p: bytes, q: bytes) -> bytes:
    if q == IDENTITY:
        return p
    if p == q:
        return IDENTITY
    return ristretto.encode(ristretto.decode(p) + ristretto.negate(ristretto.decode(q)))


def point_mul(scalar: bytes, point: bytes) -> bytes:
    """Scalar multiplication that maps the identity result to its encoding"""
    k = scalar_to_int(scalar) % GROUP_ORDER
    if point == IDENTITY or k == 0:
        return IDENTITY
    return ristretto.encode(ristretto.decode(point) * k)


def base_mul(scalar: bytes) -> bytes:
    k = scalar_to_int(scalar) % GROUP_ORDER
    if k == 0:
        return IDENTITY
    return ristretto.encode(ristretto.BASEPOINT * k)


# Pedersen generators: G is the ristretto basepoint, H is hashed from G
G = ristretto.encode(ristretto.BASEPOINT)
H = ristretto.from_uniform_bytes(hashlib.sha3_512(G).digest())


def _check_point(data: bytes, field: str) -> bytes:
    data = bytes(data)
    if len(data) != POINT_LEN:
        raise DecodeError(f"{field} must be {POINT_LEN} bytes", field=field)
    return data


class PedersenOpening:
    """Randomness r of a Pedersen commitment amount*G + r*H"""

    def __init__(self, scalar: bytes):
        if len(scalar) != SCALAR_LEN:
            raise ValueError("Opening must be 32 bytes")
        self.scalar = bytes(scalar)

    @classmethod
    def new_rand(cls) -> "PedersenOpening":
        return cls(random_scalar())

    def __bytes__(self) -> bytes:
        return self.scalar


def pedersen_commit(amount: int, opening: PedersenOpening) -> bytes:
    """Commit to an amount under the given opening"""
    return point_add(base_mul(scalar_from_int(amount)), point_mul(opening.scalar, H))


class ElGamalCiphertext:
    """Twisted ElGamal ciphertext: a Pedersen commitment plus a decrypt handle"""

    def __init__(self, commitment: bytes, handle: bytes):
        self.commitment = _check_point(commitment, "commitment")
        self.handle = _check_point(handle, "handle")

    @classmethod
    def from_bytes(cls, data: bytes) -> "ElGamalCiphertext":
        data = bytes(data)
        if len(data) != ELGAMAL_CIPHERTEXT_LEN:
            raise DecodeError(
                f"ElGamal ciphertext must be {ELGAMAL_CIPHERTEXT_LEN} bytes",
                field="ciphertext",
            )
        return cls(data[:POINT_LEN], data[POINT_LEN:])

    @classmethod
    def zero(cls) -> "ElGamalCiphertext":
        return cls(IDENTITY, IDENTITY)

    def __bytes__(self) -> bytes:
        return self.commitment + self.handle

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ElGamalCiphertext) and bytes(self) == bytes(other)

    def __hash__(self) -> int:
        return hash(bytes(self))

    def __repr__(self) -> str:
        return f"ElGamalCiphertext({base64.b64encode(bytes(self)).decode()})"

    def __add__(self, other: "ElGamalCiphertext") -> "ElGamalCiphertext":
        return ElGamalCiphertext(
            point_add(self.commitment, other.commitment),
            point_add(self.handle, other.handle),
        )

    def __sub__(self, other: "ElGamalCiphertext") -> "ElGamalCiphertext":
        return ElGamalCiphertext(
            point_sub(self.commitment, other.commitment),
            point_sub(self.handle, other.handle),
        )

    def add_amount(self, amount: int) -> "ElGamalCiphertext":
        """Add a plaintext amount without changing the handle"""
        return ElGamalCiphertext(
            point_add(self.commitment, base_mul(scalar_from_int(amount))), self.handle
        )

    def subtract_amount(self, amount: int) -> "ElGamalCiphertext":
        return ElGamalCiphertext(
            point_sub(self.commitment, base_mul(scalar_from_int(amount))), self.handle
        )

    def scale(self, factor: int) -> "ElGamalCiphertext":
        scalar = scalar_from_int(factor)
        return ElGamalCiphertext(
            point_mul(scalar, self.commitment), point_mul(scalar, self.handle)
        )


class ElGamalPubkey:
    """ElGamal public key, displayed as base64"""

    def __init__(self, point: bytes):
        self.point = _check_point(point, "elgamal_pubkey")

    @classmethod
    def from_bytes(cls, data: bytes) -> "ElGamalPubkey":
        return cls(data)

    @classmethod
    def from_string(cls, value: str) -> "ElGamalPubkey":
        return cls(base64.b64decode(value))

    def __bytes__(self) -> bytes:
        return self.point

    def __str__(self) -> str:
        return base64.b64encode(self.point).decode()

    def __repr__(self) -> str:
        return f"ElGamalPubkey({self})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ElGamalPubkey) and self.point == other.point

    def __hash__(self) -> int:
        return hash(self.point)

    def decrypt_handle(self, opening: PedersenOpening) -> bytes:
        """Handle r*P binding an opening to this key"""
        return point_mul(opening.scalar, self.point)

    def encrypt_with(self, amount: int, opening: PedersenOpening) -> ElGamalCiphertext:
        return ElGamalCiphertext(
            pedersen_commit(amount, opening), self.decrypt_handle(opening)
        )

    def encrypt(self, amount: int) -> ElGamalCiphertext:
        return self.encrypt_with(amount, PedersenOpening.new_rand())


@lru_cache(maxsize=1)
def _baby_step_table() -> dict[bytes, int]:
    table = {IDENTITY: 0}
    point = ristretto.INFINITY
    for j in range(1, _BABY_STEPS):
        point = point + ristretto.BASEPOINT
        table[ristretto.encode(point)] = j
    return table


def discrete_log_u32(point: bytes) -> Optional[int]:
    """Solve amount*G == point for amount < 2^32, or return None"""
    table = _baby_step_table()
    giant = ristretto.negate(ristretto.BASEPOINT * _BABY_STEPS)
    current = ristretto.decode(point)
    for i in range(_GIANT_STEPS):
        j = table.get(ristretto.encode(current))
        if j is not None:
            return i * _BABY_STEPS + j
        current = current + giant
    return None


class ElGamalSecretKey:
    """ElGamal secret scalar s; the matching public key is s^-1 * H"""

    def __init__(self, scalar: bytes):
        if len(scalar) != SCALAR_LEN:
            raise ValueError("Secret key must be 32 bytes")
        self.scalar = bytes(scalar)

    def __bytes__(self) -> bytes:
        return self.scalar

    def __repr__(self) -> str:
        return "ElGamalSecretKey(<redacted>)"

    def pubkey(self) -> ElGamalPubkey:
        inverse = scalar_invert(self.scalar)
        return ElGamalPubkey(point_mul(inverse, H))

    def decrypt_point(self, ciphertext: ElGamalCiphertext) -> bytes:
        """Recover amount*G from a ciphertext"""
        return point_sub(
            ciphertext.commitment, point_mul(self.scalar, ciphertext.handle)
        )

    def decrypt_u32(self, ciphertext: ElGamalCiphertext) -> int:
        """
        Decrypt a ciphertext whose plaintext is known to fit in 32 bits

        Raises:
            DecryptionError: if the plaintext is outside the u32 range or the
                ciphertext was not produced for this key
        """
        amount = discrete_log_u32(self.decrypt_point(ciphertext))
        if amount is None:
            raise DecryptionError("failed to decrypt ciphertext")
        return amount


class ElGamalKeypair:
    """Secret key together with its public key"""

    def __init__(self, secret: ElGamalSecretKey):
        self.secret = secret
        self.pubkey = secret.pubkey()

    def __repr__(self) -> str:
        return f"ElGamalKeypair(pubkey={self.pubkey})"


class AeCiphertext:
    """Nonce followed by the AES-GCM-SIV ciphertext and tag"""

    def __init__(self, nonce: bytes, ciphertext: bytes):
        if len(nonce) != AE_NONCE_LEN:
            raise DecodeError("AE nonce must be 12 bytes", field="nonce")
        if len(nonce) + len(ciphertext) != AE_CIPHERTEXT_LEN:
            raise DecodeError("AE ciphertext must be 24 bytes", field="ciphertext")
        self.nonce = bytes(nonce)
        self.ciphertext = bytes(ciphertext)

    @classmethod
    def from_bytes(cls, data: bytes) -> "AeCiphertext":
        data = bytes(data)
        if len(data) != AE_CIPHERTEXT_LEN:
            raise DecodeError(
                f"AE ciphertext must be {AE_CIPHERTEXT_LEN} bytes",
                field="decryptable_available_balance",
            )
        return cls(data[:AE_NONCE_LEN], data[AE_NONCE_LEN:])

    def __bytes__(self) -> bytes:
        return self.nonce + self.ciphertext

    def __str__(self) -> str:
        return base64.b64encode(bytes(self)).decode()


class AeKey:
    """Symmetric key for the decryptable available balance"""

    def __init__(self, key: bytes):
        if len(key) != AE_KEY_LEN:
            raise ValueError("AE key must be 16 bytes")
        self._key = bytes(key)

    def __repr__(self) -> str:
        return "AeKey(<redacted>)"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, AeKey) and self._key == other._key

    def __hash__(self) -> int:
        return hash(self._key)

    def encrypt(self, amount: int) -> AeCiphertext:
        nonce = os.urandom(AE_NONCE_LEN)
        sealed = AESGCMSIV(self._key).encrypt(nonce, struct.pack("<Q", amount), None)
        return AeCiphertext(nonce, sealed)

    def decrypt(self, ciphertext: AeCiphertext) -> int:
        try:
            plaintext = AESGCMSIV(self._key).decrypt(
                ciphertext.nonce, ciphertext.ciphertext, None
            )
        except InvalidTag as e:
            raise DecryptionError("failed to decrypt available balance") from e
        return struct.unpack("<Q", plaintext)[0]
