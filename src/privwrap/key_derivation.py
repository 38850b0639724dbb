"""Deterministic derivation of encryption keys from wallet signatures

A wallet signs ``separator || token_account`` once per key type. The
signature is the only secret the service ever sees, and the keys it seeds
live only for the duration of a request.
"""

import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from .encryption import (
    AE_KEY_LEN,
    ZERO_SCALAR,
    AeKey,
    ElGamalKeypair,
    ElGamalSecretKey,
    scalar_reduce,
)
from .errors import KeyDerivationError

SignatureLike = Union[Signature, bytes]


class KeypairType(Enum):
    """Key kinds a wallet signature can seed, valued by domain separator"""

    ELGAMAL = b"ElGamalSecretKey"
    AE = b"AEKey"

    @property
    def separator(self) -> bytes:
        return self.value

    def message_to_sign(self, token_account: Pubkey) -> bytes:
        """Message the wallet must sign to seed this key for one token account"""
        return self.value + bytes(token_account)


def _signature_bytes(signature: SignatureLike) -> bytes:
    raw = bytes(signature)
    if raw == bytes(Signature.default()):
        raise KeyDerivationError("rejecting default signature")
    return raw


def seed_from_signature(signature: SignatureLike) -> bytes:
    return hashlib.sha3_512(_signature_bytes(signature)).digest()


def derive_elgamal_keypair(signature: SignatureLike) -> ElGamalKeypair:
    """
    Derive the ElGamal keypair seeded by a signature

    Args:
        signature: Wallet signature over the ElGamal message

    Returns:
        The keypair; the same signature always yields the same keypair

    Raises:
        KeyDerivationError: if the signature cannot seed a non-zero scalar
    """
    seed = seed_from_signature(signature)
    scalar = scalar_reduce(hashlib.sha3_512(seed).digest())
    if scalar == ZERO_SCALAR:
        raise KeyDerivationError("derived ElGamal secret is zero")
    return ElGamalKeypair(ElGamalSecretKey(scalar))


def derive_ae_key(signature: SignatureLike) -> AeKey:
    """Derive the AE key seeded by a signature"""
    seed = seed_from_signature(signature)
    return AeKey(hashlib.sha3_512(seed).digest()[:AE_KEY_LEN])


@dataclass(repr=False)
class DerivedKeyMaterial:
    """Request-scoped keys; never persisted"""

    elgamal: ElGamalKeypair
    ae_key: AeKey

    def __repr__(self) -> str:
        return f"DerivedKeyMaterial(elgamal_pubkey={self.elgamal.pubkey})"


def derive_key_material(
    elgamal_signature: SignatureLike, ae_signature: SignatureLike
) -> DerivedKeyMaterial:
    return DerivedKeyMaterial(
        elgamal=derive_elgamal_keypair(elgamal_signature),
        ae_key=derive_ae_key(ae_signature),
    )


def sign_key_messages(
    keypair: Keypair, token_account: Pubkey
) -> Tuple[Signature, Signature]:
    """
    Produce the ElGamal and AE signatures a wallet hands to the service

    Args:
        keypair: Wallet keypair
        token_account: Token account the keys are scoped to

    Returns:
        (elgamal_signature, ae_signature)
    """
    return (
        keypair.sign_message(KeypairType.ELGAMAL.message_to_sign(token_account)),
        keypair.sign_message(KeypairType.AE.message_to_sign(token_account)),
    )
