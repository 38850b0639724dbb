"""
Confidential balance arithmetic

Pending balances are stored as two ElGamal ciphertexts: the low half
carries the bottom ``PENDING_BALANCE_LO_BIT_LENGTH`` bits of each credit and
the high half the rest. The available balance is also mirrored in an AE
ciphertext that the owner updates with every balance-mutating instruction.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from .accounts import ConfidentialAccountView
from .encryption import AeCiphertext, AeKey, ElGamalSecretKey
from .errors import DecodeError, ProofGenerationError
from .utils import U64_MAX, amount_to_ui_amount

logger = logging.getLogger(__name__)

# Token-2022 split-radix constants
PENDING_BALANCE_LO_BIT_LENGTH = 16
TRANSFER_AMOUNT_LO_BITS = 16
TRANSFER_AMOUNT_HI_BITS = 32
MAXIMUM_DEPOSIT_TRANSFER_AMOUNT = (
    1 << (TRANSFER_AMOUNT_LO_BITS + TRANSFER_AMOUNT_HI_BITS)
) - 1


def combine_balances(balance_lo: int, balance_hi: int) -> int:
    """Recombine decrypted pending halves into one amount"""
    combined = (balance_hi << PENDING_BALANCE_LO_BIT_LENGTH) + balance_lo
    if combined > U64_MAX:
        raise DecodeError("pending balance overflows u64", field="pending_balance")
    return combined


def split_amount(amount: int, lo_bits: int = TRANSFER_AMOUNT_LO_BITS) -> tuple[int, int]:
    """Split an amount into (lo, hi) halves at ``lo_bits``"""
    return amount & ((1 << lo_bits) - 1), amount >> lo_bits


def decrypt_pending_balance(
    view: ConfidentialAccountView, secret: ElGamalSecretKey
) -> int:
    """Decrypt both pending halves and combine them"""
    balance_lo = secret.decrypt_u32(view.pending_balance_lo)
    balance_hi = secret.decrypt_u32(view.pending_balance_hi)
    return combine_balances(balance_lo, balance_hi)


def decrypt_available_balance(view: ConfidentialAccountView, ae_key: AeKey) -> int:
    return ae_key.decrypt(view.decryptable_available_balance)


def apply_pending_decryptable_balance(
    view: ConfidentialAccountView, secret: ElGamalSecretKey, ae_key: AeKey
) -> AeCiphertext:
    """New decryptable balance once pending is folded into available"""
    new_balance = decrypt_available_balance(view, ae_key) + decrypt_pending_balance(
        view, secret
    )
    if new_balance > U64_MAX:
        raise ProofGenerationError("available balance would overflow")
    return ae_key.encrypt(new_balance)


def debit_decryptable_balance(
    view: ConfidentialAccountView, ae_key: AeKey, amount: int
) -> tuple[int, AeCiphertext]:
    """
    Remaining available balance after a debit, and its AE encryption

    Raises:
        ProofGenerationError: if the available balance is below ``amount``
    """
    current = decrypt_available_balance(view, ae_key)
    if amount > current:
        raise ProofGenerationError("insufficient available balance")
    remaining = current - amount
    return remaining, ae_key.encrypt(remaining)


@dataclass
class BalanceSnapshot:
    """UI-scaled balances of one token account"""

    pending: Decimal
    available: Decimal
    non_confidential: Decimal

    @classmethod
    def from_amounts(
        cls, pending: int, available: int, non_confidential: int, decimals: int
    ) -> "BalanceSnapshot":
        return cls(
            pending=amount_to_ui_amount(pending, decimals),
            available=amount_to_ui_amount(available, decimals),
            non_confidential=amount_to_ui_amount(non_confidential, decimals),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary"""
        return {
            "pending": str(self.pending),
            "available": str(self.available),
            "non_confidential": str(self.non_confidential),
        }
