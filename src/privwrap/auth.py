"""Signature binding between a wallet and one token account"""

import logging

from solders.pubkey import Pubkey
from solders.signature import Signature

from .errors import AuthenticationError
from .key_derivation import DerivedKeyMaterial, KeypairType, derive_key_material

logger = logging.getLogger(__name__)


def verify_signature(signature: Signature, authority: Pubkey, message: bytes) -> bool:
    return signature.verify(authority, message)


def authenticate(
    authority: Pubkey,
    token_account: Pubkey,
    elgamal_signature: Signature,
    ae_signature: Signature,
) -> DerivedKeyMaterial:
    """
    Verify both key signatures for a token account, then derive the keys

    The ElGamal signature is checked first and the request stops at the
    first failure.

    Raises:
        AuthenticationError: if either signature does not verify
        KeyDerivationError: if a verified signature cannot seed a key
    """
    if not verify_signature(
        elgamal_signature, authority, KeypairType.ELGAMAL.message_to_sign(token_account)
    ):
        logger.debug("ElGamal signature rejected for %s", token_account)
        raise AuthenticationError("failed to verify elgamal signature")

    if not verify_signature(
        ae_signature, authority, KeypairType.AE.message_to_sign(token_account)
    ):
        logger.debug("AE signature rejected for %s", token_account)
        raise AuthenticationError("failed to verify ae signature")

    return derive_key_material(elgamal_signature, ae_signature)
