"""
Unit tests for balance arithmetic and display
"""

from decimal import Decimal

import pytest

from privwrap.accounts import ConfidentialAccountView
from privwrap.balances import (
    BalanceSnapshot,
    apply_pending_decryptable_balance,
    combine_balances,
    debit_decryptable_balance,
    decrypt_pending_balance,
    split_amount,
)
from privwrap.encryption import AeKey, ElGamalKeypair, ElGamalSecretKey, random_scalar
from privwrap.errors import DecodeError, ProofGenerationError
from privwrap.utils import U64_MAX, amount_to_ui_amount

from support.ledger import ConfidentialRecord


@pytest.fixture(scope="module")
def keypair():
    return ElGamalKeypair(ElGamalSecretKey(random_scalar()))


@pytest.fixture(scope="module")
def ae_key():
    return AeKey(bytes(range(16)))


def _view(keypair, ae_key, available=0, pending=0) -> ConfidentialAccountView:
    lo, hi = split_amount(pending)
    record = ConfidentialRecord(
        elgamal_pubkey=bytes(keypair.pubkey),
        decryptable_available_balance=bytes(ae_key.encrypt(available)),
        maximum_pending_balance_credit_counter=65536,
        pending_balance_lo=keypair.pubkey.encrypt(lo),
        pending_balance_hi=keypair.pubkey.encrypt(hi),
        available_balance=keypair.pubkey.encrypt(available),
    )
    return ConfidentialAccountView.from_bytes(record.to_bytes())


class TestSplitRadix:
    """Test the 16-bit pending balance split"""

    def test_split_amount(self):
        """Amounts split at bit 16"""
        assert split_amount(0x123456) == (0x3456, 0x12)

    def test_combine_balances(self):
        """hi is shifted by 16 bits"""
        assert combine_balances(0x3456, 0x12) == 0x123456

    def test_combine_lo_overflowing_16_bits(self):
        """Summed lo halves may exceed 16 bits"""
        assert combine_balances(0x1FFFF, 1) == 0x2FFFF

    def test_combine_overflow(self):
        """Combined balances must fit in u64"""
        with pytest.raises(DecodeError, match="overflows"):
            combine_balances(0, 1 << 48)


class TestDecryptableBalance:
    """Test available balance bookkeeping"""

    def test_decrypt_pending(self, keypair, ae_key):
        """Pending halves are decrypted and recombined"""
        view = _view(keypair, ae_key, pending=100000)
        assert decrypt_pending_balance(view, keypair.secret) == 100000

    def test_apply_pending(self, keypair, ae_key):
        """Applying folds pending into the decryptable balance"""
        view = _view(keypair, ae_key, available=500, pending=70000)
        new_balance = apply_pending_decryptable_balance(view, keypair.secret, ae_key)
        assert ae_key.decrypt(new_balance) == 70500

    def test_debit(self, keypair, ae_key):
        """Debits return the remaining balance and its encryption"""
        view = _view(keypair, ae_key, available=1000)
        remaining, ciphertext = debit_decryptable_balance(view, ae_key, 400)
        assert remaining == 600
        assert ae_key.decrypt(ciphertext) == 600

    def test_debit_everything(self, keypair, ae_key):
        """The full balance may be debited"""
        view = _view(keypair, ae_key, available=1000)
        assert debit_decryptable_balance(view, ae_key, 1000)[0] == 0

    def test_insufficient_balance(self, keypair, ae_key):
        """Debits above the balance fail before any proof work"""
        view = _view(keypair, ae_key, available=10)
        with pytest.raises(ProofGenerationError, match="insufficient"):
            debit_decryptable_balance(view, ae_key, 11)


class TestBalanceSnapshot:
    """Test UI-scaled balances"""

    def test_from_amounts(self):
        """Amounts are scaled by the mint decimals"""
        snapshot = BalanceSnapshot.from_amounts(100000, 500000, 150000, 6)
        assert snapshot.pending == Decimal("0.1")
        assert snapshot.available == Decimal("0.5")
        assert snapshot.non_confidential == Decimal("0.15")

    def test_to_dict(self):
        """Balances serialize as decimal strings"""
        snapshot = BalanceSnapshot.from_amounts(1500000, 0, 7, 6)
        assert snapshot.to_dict() == {
            "pending": "1.500000",
            "available": "0.000000",
            "non_confidential": "0.000007",
        }


class TestUiAmounts:
    """Test UI amount conversion"""

    def test_scaled_by_decimals(self):
        """Base units scale down by the mint decimals"""
        assert amount_to_ui_amount(123456789, 6) == Decimal("123.456789")
        assert amount_to_ui_amount(7, 0) == 7

    def test_u64_max(self):
        """u64 max is representable"""
        assert amount_to_ui_amount(U64_MAX, 0) == Decimal(U64_MAX)
