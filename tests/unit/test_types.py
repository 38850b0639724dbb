"""
Unit tests for request types, configuration and errors
"""

import base58
import pytest
from solana.rpc.commitment import Finalized
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from privwrap.balances import MAXIMUM_DEPOSIT_TRANSFER_AMOUNT
from privwrap.config import DEFAULT_RPC_URL, ClientConfig
from privwrap.errors import (
    ConfidentialError,
    DecodeError,
    NotFoundError,
    PreconditionError,
    QueryError,
    RequestError,
)
from privwrap.key_derivation import sign_key_messages
from privwrap.plan import PACKET_DATA_SIZE
from privwrap.types import Deposit, InitializeOrApply, Transfer, Withdraw, WrapTokens
from privwrap.utils import U64_MAX, validate_solana_address


@pytest.fixture
def request_fields():
    wallet = Keypair()
    mint = Pubkey.new_unique()
    elgamal_sig, ae_sig = sign_key_messages(wallet, Pubkey.new_unique())
    return {
        "authority": str(wallet.pubkey()),
        "token_mint": str(mint),
        "elgamal_signature": str(elgamal_sig),
        "ae_signature": str(ae_sig),
    }


class TestRequestParsing:
    """Test request construction from transport dictionaries"""

    def test_initialize_round_trip(self, request_fields):
        """Requests survive to_dict/from_dict"""
        request = InitializeOrApply.from_dict(request_fields)
        assert request.to_dict() == request_fields

    def test_missing_field(self, request_fields):
        """Missing fields are named"""
        del request_fields["token_mint"]
        with pytest.raises(RequestError, match="missing field token_mint"):
            InitializeOrApply.from_dict(request_fields)

    def test_bad_address(self, request_fields):
        """Malformed addresses are named"""
        request_fields["authority"] = "not-an-address"
        with pytest.raises(RequestError, match="invalid authority"):
            InitializeOrApply.from_dict(request_fields)

    def test_bad_signature(self, request_fields):
        """Signatures must be 64 bytes of base58"""
        request_fields["ae_signature"] = base58.b58encode(bytes(10)).decode()
        with pytest.raises(RequestError, match="invalid ae_signature"):
            InitializeOrApply.from_dict(request_fields)

    def test_withdraw_keypairs(self, request_fields):
        """Proof account keypairs parse from base58"""
        equality, range_proof = Keypair(), Keypair()
        request = Withdraw.from_dict(
            dict(
                request_fields,
                amount=10,
                equality_proof_keypair=base58.b58encode(bytes(equality)).decode(),
                range_proof_keypair=base58.b58encode(bytes(range_proof)).decode(),
            )
        )
        assert request.equality_proof_keypair.pubkey() == equality.pubkey()
        assert request.range_proof_keypair.pubkey() == range_proof.pubkey()
        assert Withdraw.from_dict(request.to_dict()).amount == 10

    def test_bad_keypair(self, request_fields):
        """Keypairs must be 64 bytes"""
        with pytest.raises(RequestError, match="invalid equality_proof_keypair"):
            Withdraw.from_dict(
                dict(
                    request_fields,
                    amount=10,
                    equality_proof_keypair="abc",
                    range_proof_keypair=base58.b58encode(bytes(Keypair())).decode(),
                )
            )

    def test_transfer_round_trip(self, request_fields):
        """Transfer requests carry the receiving account"""
        receiving = Pubkey.new_unique()
        request = Transfer(
            **InitializeOrApply.from_dict(request_fields).__dict__,
            receiving_token_account=receiving,
            amount=5,
        )
        parsed = Transfer.from_dict(request.to_dict())
        assert parsed.receiving_token_account == receiving
        assert parsed.ciphertext_validity_proof_keypair.pubkey() == (
            request.ciphertext_validity_proof_keypair.pubkey()
        )

    def test_wrap_from_dict(self):
        """Wrap requests parse every address"""
        fields = {
            "authority": str(Pubkey.new_unique()),
            "unwrapped_token_mint": str(Pubkey.new_unique()),
            "wrapped_token_mint": str(Pubkey.new_unique()),
            "unwrapped_token_program": str(Pubkey.new_unique()),
            "amount": 3,
        }
        assert WrapTokens.from_dict(fields).to_dict() == fields


class TestRequestValidation:
    """Test amount validation"""

    @pytest.mark.parametrize("amount", [0, -1, U64_MAX + 1, True, 1.5, "10"])
    def test_invalid_amounts(self, amount):
        """Amounts must be positive u64 integers"""
        request = Deposit(Pubkey.new_unique(), Pubkey.new_unique(), amount)
        with pytest.raises(RequestError):
            request.validate()

    def test_valid_amount(self):
        """u64 max is allowed outside confidential transfers"""
        WrapTokens(
            Pubkey.new_unique(),
            Pubkey.new_unique(),
            Pubkey.new_unique(),
            Pubkey.new_unique(),
            U64_MAX,
        ).validate()

    def test_deposit_limit(self):
        """Deposits are capped at 48 bits"""
        Deposit(
            Pubkey.new_unique(), Pubkey.new_unique(), MAXIMUM_DEPOSIT_TRANSFER_AMOUNT
        ).validate()
        request = Deposit(
            Pubkey.new_unique(), Pubkey.new_unique(), MAXIMUM_DEPOSIT_TRANSFER_AMOUNT + 1
        )
        with pytest.raises(ValueError, match="confidential transfer limit"):
            request.validate()

    def test_transfer_limit(self, request_fields):
        """Transfers are capped at 48 bits"""
        request = Transfer(
            **InitializeOrApply.from_dict(request_fields).__dict__,
            receiving_token_account=Pubkey.new_unique(),
            amount=1 << 48,
        )
        with pytest.raises(RequestError, match="confidential transfer limit"):
            request.validate()

    def test_withdraw_not_capped(self, request_fields):
        """Withdrawals only need to fit u64"""
        Withdraw(
            **InitializeOrApply.from_dict(request_fields).__dict__, amount=1 << 48
        ).validate()

    def test_transfer_requires_receiver(self, request_fields):
        """A transfer needs a receiving account"""
        request = Transfer(**InitializeOrApply.from_dict(request_fields).__dict__, amount=1)
        with pytest.raises(RequestError, match="receiving_token_account"):
            request.validate()


class TestConfig:
    """Test client configuration"""

    def test_defaults(self):
        """Defaults target devnet and the packet size"""
        config = ClientConfig()
        assert config.rpc_url == DEFAULT_RPC_URL
        assert config.max_transaction_size == PACKET_DATA_SIZE
        assert config.maximum_pending_balance_credit_counter == 65536

    def test_from_env(self):
        """PRIVWRAP_ variables override defaults"""
        config = ClientConfig.from_env(
            {
                "PRIVWRAP_RPC_URL": "http://localhost:8899",
                "PRIVWRAP_COMMITMENT": "finalized",
                "PRIVWRAP_MAX_PENDING_CREDITS": "16",
            }
        )
        assert config.rpc_url == "http://localhost:8899"
        assert config.commitment == Finalized
        assert config.maximum_pending_balance_credit_counter == 16
        assert config.max_transaction_size == PACKET_DATA_SIZE

    def test_from_empty_env(self):
        """An empty environment gives the defaults"""
        assert ClientConfig.from_env({}) == ClientConfig()


class TestErrors:
    """Test the error taxonomy"""

    def test_request_error_is_value_error(self):
        """Request errors are also ValueErrors"""
        assert issubclass(RequestError, ValueError)
        assert RequestError("bad").status_code == 400

    def test_not_found_is_precondition(self):
        """Missing accounts are a kind of precondition failure"""
        error = NotFoundError("token mint does not exist")
        assert isinstance(error, PreconditionError)
        assert error.to_dict() == {
            "category": "not_found",
            "msg": "token mint does not exist",
        }

    def test_decode_error_names_field(self):
        """Decode errors report the failing field"""
        assert DecodeError("bad", field="state").to_dict()["field"] == "state"
        assert "field" not in DecodeError("bad").to_dict()

    def test_only_queries_retry(self):
        """Only query failures are retryable"""
        assert QueryError("down").retryable
        assert not ConfidentialError("x").retryable
        assert not PreconditionError("x").retryable


class TestUtils:
    """Test utility functions"""

    def test_validate_solana_address(self):
        """Base58 32-byte addresses are valid"""
        assert validate_solana_address("TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb")
        assert not validate_solana_address("short")
        assert not validate_solana_address("0x1234567890123456789012345678901234567890")
