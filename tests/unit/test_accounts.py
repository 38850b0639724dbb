"""
Unit tests for Token-2022 account decoding
"""

import pytest
from solders.pubkey import Pubkey

from privwrap.accounts import (
    ACCOUNT_BASE_LEN,
    MINT_BASE_LEN,
    AccountState,
    AccountType,
    ConfidentialAccountView,
    ExtensionType,
    already_configured,
    decode_mint,
    decode_token_account,
    is_valid_mint,
    parse_extensions,
)
from privwrap.encryption import AeKey, ElGamalCiphertext, ElGamalPubkey
from privwrap.errors import DecodeError
from privwrap.token_utils import TOKEN_2022_PROGRAM_ID, TOKEN_PROGRAM_ID

from support.ledger import (
    ConfidentialRecord,
    MintRecord,
    TokenAccountRecord,
    serialize_mint,
    serialize_token_account,
)


def _confidential_record(**overrides) -> ConfidentialRecord:
    fields = dict(
        elgamal_pubkey=bytes([7] * 32),
        decryptable_available_balance=bytes(AeKey(bytes(16)).encrypt(0)),
        maximum_pending_balance_credit_counter=65536,
    )
    fields.update(overrides)
    return ConfidentialRecord(**fields)


class TestMintDecoding:
    """Test mint layouts with and without extensions"""

    def test_base_mint(self):
        """A classic Token mint has no extensions"""
        data = serialize_mint(MintRecord(TOKEN_PROGRAM_ID, 6, supply=1000))
        assert len(data) == MINT_BASE_LEN
        mint = decode_mint(data)
        assert mint.decimals == 6
        assert mint.supply == 1000
        assert mint.mint_authority is None
        assert mint.extensions == {}
        assert mint.confidential_transfer is None

    def test_confidential_mint(self):
        """The confidential mint extension is exposed as a typed view"""
        auditor = bytes([9] * 32)
        data = serialize_mint(
            MintRecord(TOKEN_2022_PROGRAM_ID, 9, confidential=True, auditor=auditor)
        )
        assert data[ACCOUNT_BASE_LEN] == AccountType.MINT

        view = decode_mint(data).confidential_transfer
        assert view.authority is None
        assert view.auto_approve_new_accounts
        assert view.auditor_elgamal_pubkey == ElGamalPubkey(auditor)

    def test_confidential_mint_without_auditor(self):
        """An all-zero auditor key means no auditor"""
        data = serialize_mint(MintRecord(TOKEN_2022_PROGRAM_ID, 9, confidential=True))
        assert decode_mint(data).confidential_transfer.auditor_elgamal_pubkey is None

    def test_short_mint(self):
        """Truncated mints fail on the mint field"""
        with pytest.raises(DecodeError) as exc_info:
            decode_mint(bytes(10))
        assert exc_info.value.field == "mint"

    def test_uninitialized_mint(self):
        """A zeroed mint is not initialized"""
        with pytest.raises(DecodeError, match="not initialized"):
            decode_mint(bytes(MINT_BASE_LEN))

    def test_wrong_account_type(self):
        """A mint carrying the account type tag is rejected"""
        data = bytearray(
            serialize_mint(MintRecord(TOKEN_2022_PROGRAM_ID, 9, confidential=True))
        )
        data[ACCOUNT_BASE_LEN] = AccountType.ACCOUNT
        with pytest.raises(DecodeError) as exc_info:
            decode_mint(bytes(data))
        assert exc_info.value.field == "account_type"


class TestIsValidMint:
    """Test the mint eligibility check"""

    def test_confidential_mint(self):
        """Mints with the extension are valid"""
        data = serialize_mint(MintRecord(TOKEN_2022_PROGRAM_ID, 6, confidential=True))
        assert is_valid_mint(data)

    def test_plain_mint(self):
        """Mints without the extension are not"""
        assert not is_valid_mint(serialize_mint(MintRecord(TOKEN_PROGRAM_ID, 6)))

    def test_garbage(self):
        """Undecodable bytes are not a valid mint"""
        assert not is_valid_mint(b"not a mint")


class TestTokenAccountDecoding:
    """Test token account layouts"""

    def test_classic_account(self):
        """Classic Token accounts decode from the base layout"""
        mint, owner = Pubkey.new_unique(), Pubkey.new_unique()
        data = serialize_token_account(
            TokenAccountRecord(TOKEN_PROGRAM_ID, mint, owner, amount=55)
        )
        account = decode_token_account(data)
        assert account.mint == mint
        assert account.owner == owner
        assert account.amount == 55
        assert account.state == AccountState.INITIALIZED
        assert not already_configured(data)

    def test_reallocated_account(self):
        """Reserved but uninitialized extension space is not configured"""
        data = serialize_token_account(
            TokenAccountRecord(
                TOKEN_2022_PROGRAM_ID,
                Pubkey.new_unique(),
                Pubkey.new_unique(),
                reallocated=True,
            )
        )
        account = decode_token_account(data)
        assert account.has_extension(ExtensionType.IMMUTABLE_OWNER)
        assert not already_configured(data)

    def test_configured_account(self):
        """The confidential account extension decodes field by field"""
        record = _confidential_record(
            pending_balance_lo=ElGamalCiphertext(bytes([1] * 32), bytes([2] * 32)),
            pending_balance_credit_counter=3,
            expected_pending_balance_credit_counter=2,
            actual_pending_balance_credit_counter=1,
        )
        data = serialize_token_account(
            TokenAccountRecord(
                TOKEN_2022_PROGRAM_ID,
                Pubkey.new_unique(),
                Pubkey.new_unique(),
                confidential=record,
            )
        )
        assert already_configured(data)

        view = decode_token_account(data).confidential_transfer
        assert view.approved
        assert bytes(view.elgamal_pubkey) == record.elgamal_pubkey
        assert view.pending_balance_lo == record.pending_balance_lo
        assert view.pending_balance_hi == ElGamalCiphertext.zero()
        assert bytes(view.decryptable_available_balance) == (
            record.decryptable_available_balance
        )
        assert view.allow_confidential_credits
        assert view.pending_balance_credit_counter == 3
        assert view.maximum_pending_balance_credit_counter == 65536
        assert view.expected_pending_balance_credit_counter == 2
        assert view.actual_pending_balance_credit_counter == 1

    def test_extension_length(self):
        """The confidential account extension is 295 bytes"""
        assert ConfidentialAccountView.LEN == 295
        assert len(_confidential_record().to_bytes()) == 295

    def test_short_account(self):
        """Truncated token accounts fail"""
        with pytest.raises(DecodeError) as exc_info:
            decode_token_account(bytes(100))
        assert exc_info.value.field == "token_account"

    def test_uninitialized_account(self):
        """Zeroed token accounts are not initialized"""
        with pytest.raises(DecodeError) as exc_info:
            decode_token_account(bytes(ACCOUNT_BASE_LEN))
        assert exc_info.value.field == "state"


class TestParseExtensions:
    """Test the TLV walker"""

    def test_truncated_extension(self):
        """A TLV entry longer than the data is rejected"""
        data = (
            bytes(ACCOUNT_BASE_LEN)
            + bytes([AccountType.ACCOUNT])
            + ExtensionType.CONFIDENTIAL_TRANSFER_ACCOUNT.to_bytes(2, "little")
            + (295).to_bytes(2, "little")
            + bytes(10)
        )
        with pytest.raises(DecodeError, match="truncated"):
            parse_extensions(data, ACCOUNT_BASE_LEN, AccountType.ACCOUNT)

    def test_unknown_extension_skipped(self):
        """Unmodelled extension tags are skipped"""
        data = (
            bytes(ACCOUNT_BASE_LEN)
            + bytes([AccountType.ACCOUNT])
            + (999).to_bytes(2, "little")
            + (2).to_bytes(2, "little")
            + b"\x01\x02"
            + ExtensionType.IMMUTABLE_OWNER.to_bytes(2, "little")
            + bytes(2)
        )
        extensions = parse_extensions(data, ACCOUNT_BASE_LEN, AccountType.ACCOUNT)
        assert extensions == {ExtensionType.IMMUTABLE_OWNER: b""}

    def test_get_extension_without_view(self):
        """Only modelled extensions have typed views"""
        data = serialize_token_account(
            TokenAccountRecord(
                TOKEN_2022_PROGRAM_ID, Pubkey.new_unique(), Pubkey.new_unique()
            )
        )
        with pytest.raises(ValueError, match="No typed view"):
            decode_token_account(data).get_extension(ExtensionType.IMMUTABLE_OWNER)
