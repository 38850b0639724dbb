"""
Unit tests for ElGamal and AE encryption
"""

import pytest

from privwrap.encryption import (
    AE_CIPHERTEXT_LEN,
    G,
    GROUP_ORDER,
    H,
    IDENTITY,
    AeCiphertext,
    AeKey,
    ElGamalCiphertext,
    ElGamalKeypair,
    ElGamalPubkey,
    ElGamalSecretKey,
    PedersenOpening,
    base_mul,
    discrete_log_u32,
    pedersen_commit,
    point_add,
    point_mul,
    point_sub,
    random_scalar,
    scalar_from_int,
    scalar_invert,
)
from privwrap.errors import DecodeError, DecryptionError


@pytest.fixture(scope="module")
def keypair():
    return ElGamalKeypair(ElGamalSecretKey(random_scalar()))


class TestScalars:
    """Test scalar helpers"""

    def test_scalar_from_int_reduces(self):
        """Integers are reduced mod the group order"""
        assert scalar_from_int(GROUP_ORDER + 5) == scalar_from_int(5)

    def test_invert(self):
        """s * s^-1 acts as the identity scalar"""
        scalar = scalar_from_int(12345)
        point = point_mul(scalar, H)
        assert point_mul(scalar_invert(scalar), point) == H

    def test_random_scalar_in_range(self):
        """Random scalars are canonical"""
        assert int.from_bytes(random_scalar(), "little") < GROUP_ORDER


class TestPoints:
    """Test group helpers over encodings"""

    def test_generators_distinct(self):
        """G and H are distinct non-identity points"""
        assert G != H
        assert IDENTITY not in (G, H)

    def test_base_mul_zero(self):
        """0*G is the identity encoding"""
        assert base_mul(scalar_from_int(0)) == IDENTITY

    def test_add_and_sub(self):
        """(a+b)G - bG == aG"""
        a = base_mul(scalar_from_int(11))
        b = base_mul(scalar_from_int(31))
        total = point_add(a, b)
        assert total == base_mul(scalar_from_int(42))
        assert point_sub(total, b) == a

    def test_sub_self(self):
        """P - P is the identity"""
        assert point_sub(G, G) == IDENTITY

    def test_pedersen_commitment_hiding(self):
        """Same amount under different openings gives different commitments"""
        first = pedersen_commit(10, PedersenOpening.new_rand())
        second = pedersen_commit(10, PedersenOpening.new_rand())
        assert first != second


class TestElGamal:
    """Test twisted ElGamal encryption"""

    def test_encrypt_decrypt(self, keypair):
        """Small amounts round trip"""
        ciphertext = keypair.pubkey.encrypt(1234)
        assert keypair.secret.decrypt_u32(ciphertext) == 1234

    def test_decrypt_zero(self, keypair):
        """The zero ciphertext decrypts to 0"""
        assert keypair.secret.decrypt_u32(ElGamalCiphertext.zero()) == 0

    def test_homomorphic_add(self, keypair):
        """Ciphertexts add under the same key"""
        total = keypair.pubkey.encrypt(300) + keypair.pubkey.encrypt(200)
        assert keypair.secret.decrypt_u32(total) == 500

    def test_add_and_subtract_amount(self, keypair):
        """Plaintext amounts can be folded into the commitment"""
        ciphertext = keypair.pubkey.encrypt(100).add_amount(50).subtract_amount(30)
        assert keypair.secret.decrypt_u32(ciphertext) == 120

    def test_scale(self, keypair):
        """Scaling multiplies the plaintext"""
        ciphertext = keypair.pubkey.encrypt(3).scale(1 << 16)
        assert keypair.secret.decrypt_point(ciphertext) == base_mul(
            scalar_from_int(3 << 16)
        )

    def test_giant_step(self, keypair):
        """Amounts above one baby-step table still decrypt"""
        ciphertext = keypair.pubkey.encrypt(70000)
        assert keypair.secret.decrypt_u32(ciphertext) == 70000

    def test_wrong_key(self, keypair):
        """Another key does not recover amount*G"""
        other = ElGamalKeypair(ElGamalSecretKey(random_scalar()))
        ciphertext = other.pubkey.encrypt(5)
        assert keypair.secret.decrypt_point(ciphertext) != base_mul(scalar_from_int(5))

    def test_discrete_log_identity(self):
        """The identity is 0*G"""
        assert discrete_log_u32(IDENTITY) == 0

    def test_ciphertext_bytes(self, keypair):
        """Ciphertexts serialize to commitment followed by handle"""
        ciphertext = keypair.pubkey.encrypt(1)
        assert ElGamalCiphertext.from_bytes(bytes(ciphertext)) == ciphertext

    def test_ciphertext_wrong_length(self):
        """Ciphertexts must be 64 bytes"""
        with pytest.raises(DecodeError, match="64 bytes"):
            ElGamalCiphertext.from_bytes(bytes(63))

    def test_pubkey_string(self, keypair):
        """Public keys display as base64"""
        assert ElGamalPubkey.from_string(str(keypair.pubkey)) == keypair.pubkey

    def test_secret_repr_redacted(self, keypair):
        """Secret keys never show their scalar"""
        assert "redacted" in repr(keypair.secret)


class TestAe:
    """Test the decryptable balance cipher"""

    def test_encrypt_decrypt(self):
        """Amounts round trip through AES-GCM-SIV"""
        key = AeKey(bytes(range(16)))
        ciphertext = key.encrypt(2**40 + 7)
        assert len(bytes(ciphertext)) == AE_CIPHERTEXT_LEN
        assert key.decrypt(ciphertext) == 2**40 + 7

    def test_nonce_is_random(self):
        """Two encryptions of the same amount differ"""
        key = AeKey(bytes(16))
        assert bytes(key.encrypt(1)) != bytes(key.encrypt(1))

    def test_wrong_key(self):
        """Another key fails authentication"""
        ciphertext = AeKey(bytes(16)).encrypt(9)
        with pytest.raises(DecryptionError):
            AeKey(bytes([1] * 16)).decrypt(ciphertext)

    def test_from_bytes(self):
        """Serialized ciphertexts parse back"""
        key = AeKey(bytes(16))
        ciphertext = AeCiphertext.from_bytes(bytes(key.encrypt(77)))
        assert key.decrypt(ciphertext) == 77

    def test_from_bytes_wrong_length(self):
        """Ciphertexts must be 36 bytes"""
        with pytest.raises(DecodeError):
            AeCiphertext.from_bytes(bytes(35))

    def test_key_length(self):
        """Keys must be 16 bytes"""
        with pytest.raises(ValueError, match="16 bytes"):
            AeKey(bytes(32))
