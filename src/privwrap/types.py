"""Request and response types for confidential operations"""

from dataclasses import dataclass, field
from typing import Any

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from .balances import MAXIMUM_DEPOSIT_TRANSFER_AMOUNT
from .errors import RequestError
from .plan import TransactionPlan, decode_transaction
from .utils import U64_MAX, parse_keypair, parse_pubkey


def _parse_signature(value: Any, name: str) -> Signature:
    if isinstance(value, Signature):
        return value
    if not isinstance(value, str):
        raise RequestError(f"invalid {name}")
    try:
        raw = base58.b58decode(value)
    except ValueError as e:
        raise RequestError(f"invalid {name}") from e
    if len(raw) != 64:
        raise RequestError(f"invalid {name}")
    return Signature.from_bytes(raw)


def _require(data: dict[str, Any], name: str) -> Any:
    try:
        return data[name]
    except KeyError:
        raise RequestError(f"missing field {name}") from None


def _validate_amount(amount: Any, maximum: int = U64_MAX) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise RequestError("Amount must be an integer")
    if amount <= 0:
        raise RequestError("Amount must be positive")
    if amount > U64_MAX:
        raise RequestError("Amount does not fit in u64")
    if amount > maximum:
        raise RequestError(f"Amount exceeds the confidential transfer limit of {maximum}")


def _keypair_string(keypair: Keypair) -> str:
    return base58.b58encode(bytes(keypair)).decode()


@dataclass
class InitializeOrApply:
    """Request to initialize a confidential account or apply its pending balance"""

    authority: Pubkey
    token_mint: Pubkey
    elgamal_signature: Signature
    ae_signature: Signature

    def validate(self) -> None:
        """Validate request"""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InitializeOrApply":
        return cls(
            authority=parse_pubkey(_require(data, "authority"), "authority"),
            token_mint=parse_pubkey(_require(data, "token_mint"), "token_mint"),
            elgamal_signature=_parse_signature(
                _require(data, "elgamal_signature"), "elgamal_signature"
            ),
            ae_signature=_parse_signature(_require(data, "ae_signature"), "ae_signature"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "authority": str(self.authority),
            "token_mint": str(self.token_mint),
            "elgamal_signature": str(self.elgamal_signature),
            "ae_signature": str(self.ae_signature),
        }


@dataclass
class Balances(InitializeOrApply):
    """Request to display the balances of a confidential account"""


@dataclass
class Deposit:
    """Request to move public balance into the pending confidential balance"""

    authority: Pubkey
    token_mint: Pubkey
    amount: int

    def validate(self) -> None:
        """Validate deposit request"""
        _validate_amount(self.amount, MAXIMUM_DEPOSIT_TRANSFER_AMOUNT)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Deposit":
        return cls(
            authority=parse_pubkey(_require(data, "authority"), "authority"),
            token_mint=parse_pubkey(_require(data, "token_mint"), "token_mint"),
            amount=_require(data, "amount"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "authority": str(self.authority),
            "token_mint": str(self.token_mint),
            "amount": self.amount,
        }


@dataclass
class Withdraw(InitializeOrApply):
    """Request to move available confidential balance back to public balance"""

    amount: int = 0
    equality_proof_keypair: Keypair = field(default_factory=Keypair)
    range_proof_keypair: Keypair = field(default_factory=Keypair)

    def validate(self) -> None:
        """Validate withdraw request"""
        _validate_amount(self.amount)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Withdraw":
        base = InitializeOrApply.from_dict(data)
        return cls(
            authority=base.authority,
            token_mint=base.token_mint,
            elgamal_signature=base.elgamal_signature,
            ae_signature=base.ae_signature,
            amount=_require(data, "amount"),
            equality_proof_keypair=parse_keypair(
                _require(data, "equality_proof_keypair"), "equality_proof_keypair"
            ),
            range_proof_keypair=parse_keypair(
                _require(data, "range_proof_keypair"), "range_proof_keypair"
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result.update(
            amount=self.amount,
            equality_proof_keypair=_keypair_string(self.equality_proof_keypair),
            range_proof_keypair=_keypair_string(self.range_proof_keypair),
        )
        return result


@dataclass
class Transfer(InitializeOrApply):
    """Request to transfer confidential balance to another token account"""

    receiving_token_account: Pubkey = field(default_factory=Pubkey.default)
    amount: int = 0
    equality_proof_keypair: Keypair = field(default_factory=Keypair)
    ciphertext_validity_proof_keypair: Keypair = field(default_factory=Keypair)
    range_proof_keypair: Keypair = field(default_factory=Keypair)

    def validate(self) -> None:
        """Validate transfer request"""
        _validate_amount(self.amount, MAXIMUM_DEPOSIT_TRANSFER_AMOUNT)
        if self.receiving_token_account == Pubkey.default():
            raise RequestError("receiving_token_account is required")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Transfer":
        base = InitializeOrApply.from_dict(data)
        return cls(
            authority=base.authority,
            token_mint=base.token_mint,
            elgamal_signature=base.elgamal_signature,
            ae_signature=base.ae_signature,
            receiving_token_account=parse_pubkey(
                _require(data, "receiving_token_account"), "receiving_token_account"
            ),
            amount=_require(data, "amount"),
            equality_proof_keypair=parse_keypair(
                _require(data, "equality_proof_keypair"), "equality_proof_keypair"
            ),
            ciphertext_validity_proof_keypair=parse_keypair(
                _require(data, "ciphertext_validity_proof_keypair"),
                "ciphertext_validity_proof_keypair",
            ),
            range_proof_keypair=parse_keypair(
                _require(data, "range_proof_keypair"), "range_proof_keypair"
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result.update(
            receiving_token_account=str(self.receiving_token_account),
            amount=self.amount,
            equality_proof_keypair=_keypair_string(self.equality_proof_keypair),
            ciphertext_validity_proof_keypair=_keypair_string(
                self.ciphertext_validity_proof_keypair
            ),
            range_proof_keypair=_keypair_string(self.range_proof_keypair),
        )
        return result


@dataclass
class WrapTokens:
    """Request to wrap or unwrap between a base mint and its wrapped mint"""

    authority: Pubkey
    unwrapped_token_mint: Pubkey
    wrapped_token_mint: Pubkey
    unwrapped_token_program: Pubkey
    amount: int

    def validate(self) -> None:
        """Validate wrap request"""
        _validate_amount(self.amount)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WrapTokens":
        return cls(
            authority=parse_pubkey(_require(data, "authority"), "authority"),
            unwrapped_token_mint=parse_pubkey(
                _require(data, "unwrapped_token_mint"), "unwrapped_token_mint"
            ),
            wrapped_token_mint=parse_pubkey(
                _require(data, "wrapped_token_mint"), "wrapped_token_mint"
            ),
            unwrapped_token_program=parse_pubkey(
                _require(data, "unwrapped_token_program"), "unwrapped_token_program"
            ),
            amount=_require(data, "amount"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "authority": str(self.authority),
            "unwrapped_token_mint": str(self.unwrapped_token_mint),
            "wrapped_token_mint": str(self.wrapped_token_mint),
            "unwrapped_token_program": str(self.unwrapped_token_program),
            "amount": self.amount,
        }


@dataclass
class ApiTransactionResponse:
    """Encoded transactions; multiple entries must be executed in sequence"""

    transactions: list[str]

    @classmethod
    def from_plan(cls, plan: TransactionPlan) -> "ApiTransactionResponse":
        return cls(transactions=plan.encode())

    def decode_transactions(self) -> list[Transaction]:
        """Decode every transaction, failing on the first malformed entry"""
        return [decode_transaction(encoded) for encoded in self.transactions]

    def to_dict(self) -> dict[str, Any]:
        return {"transactions": list(self.transactions)}
