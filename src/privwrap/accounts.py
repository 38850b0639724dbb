"""
Token-2022 account decoding

Mint and token account base layouts come from ``spl.token._layouts``.
Extensions follow the base layout as TLV entries and are exposed through a
closed registry of typed views keyed by ``ExtensionType``.
"""

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional, Union

from construct import ConstructError
from solders.pubkey import Pubkey
from spl.token._layouts import ACCOUNT_LAYOUT, MINT_LAYOUT

from .encryption import (
    AE_CIPHERTEXT_LEN,
    ELGAMAL_CIPHERTEXT_LEN,
    AeCiphertext,
    ElGamalCiphertext,
    ElGamalPubkey,
)
from .errors import DecodeError

MINT_BASE_LEN = MINT_LAYOUT.sizeof()
ACCOUNT_BASE_LEN = ACCOUNT_LAYOUT.sizeof()
ACCOUNT_TYPE_INDEX = ACCOUNT_BASE_LEN
TLV_START = ACCOUNT_TYPE_INDEX + 1
TLV_HEADER = struct.Struct("<HH")


class AccountType(IntEnum):
    UNINITIALIZED = 0
    MINT = 1
    ACCOUNT = 2


class AccountState(IntEnum):
    UNINITIALIZED = 0
    INITIALIZED = 1
    FROZEN = 2


class ExtensionType(IntEnum):
    """Token-2022 extension tags"""

    UNINITIALIZED = 0
    TRANSFER_FEE_CONFIG = 1
    TRANSFER_FEE_AMOUNT = 2
    MINT_CLOSE_AUTHORITY = 3
    CONFIDENTIAL_TRANSFER_MINT = 4
    CONFIDENTIAL_TRANSFER_ACCOUNT = 5
    DEFAULT_ACCOUNT_STATE = 6
    IMMUTABLE_OWNER = 7
    MEMO_TRANSFER = 8
    NON_TRANSFERABLE = 9
    INTEREST_BEARING_CONFIG = 10
    CPI_GUARD = 11
    PERMANENT_DELEGATE = 12
    NON_TRANSFERABLE_ACCOUNT = 13
    TRANSFER_HOOK = 14
    TRANSFER_HOOK_ACCOUNT = 15
    CONFIDENTIAL_TRANSFER_FEE_CONFIG = 16
    CONFIDENTIAL_TRANSFER_FEE_AMOUNT = 17
    METADATA_POINTER = 18
    TOKEN_METADATA = 19
    GROUP_POINTER = 20
    TOKEN_GROUP = 21
    GROUP_MEMBER_POINTER = 22
    TOKEN_GROUP_MEMBER = 23
    CONFIDENTIAL_MINT_BURN = 24
    SCALED_UI_AMOUNT = 25
    PAUSABLE = 26
    PAUSABLE_ACCOUNT = 27


def _optional_pubkey(data: bytes) -> Optional[Pubkey]:
    if data == bytes(32):
        return None
    return Pubkey.from_bytes(data)


@dataclass(frozen=True)
class ConfidentialMintView:
    """Confidential transfer configuration of a mint"""

    authority: Optional[Pubkey]
    auto_approve_new_accounts: bool
    auditor_elgamal_pubkey: Optional[ElGamalPubkey]

    LEN = 65

    @classmethod
    def from_bytes(cls, data: bytes) -> "ConfidentialMintView":
        if len(data) != cls.LEN:
            raise DecodeError(
                "invalid confidential transfer mint extension length",
                field="confidential_transfer_mint",
            )
        auditor = data[33:65]
        return cls(
            authority=_optional_pubkey(data[0:32]),
            auto_approve_new_accounts=bool(data[32]),
            auditor_elgamal_pubkey=None if auditor == bytes(32) else ElGamalPubkey(auditor),
        )


@dataclass(frozen=True)
class ConfidentialAccountView:
    """Confidential transfer state of one token account"""

    approved: bool
    elgamal_pubkey: ElGamalPubkey
    pending_balance_lo: ElGamalCiphertext
    pending_balance_hi: ElGamalCiphertext
    available_balance: ElGamalCiphertext
    decryptable_available_balance: AeCiphertext
    allow_confidential_credits: bool
    allow_non_confidential_credits: bool
    pending_balance_credit_counter: int
    maximum_pending_balance_credit_counter: int
    expected_pending_balance_credit_counter: int
    actual_pending_balance_credit_counter: int

    LEN = 1 + 32 + 3 * ELGAMAL_CIPHERTEXT_LEN + AE_CIPHERTEXT_LEN + 2 + 4 * 8

    @classmethod
    def from_bytes(cls, data: bytes) -> "ConfidentialAccountView":
        if len(data) != cls.LEN:
            raise DecodeError(
                "invalid confidential transfer account extension length",
                field="confidential_transfer_account",
            )
        offset = 33
        ciphertexts = []
        for _ in range(3):
            ciphertexts.append(
                ElGamalCiphertext.from_bytes(data[offset : offset + ELGAMAL_CIPHERTEXT_LEN])
            )
            offset += ELGAMAL_CIPHERTEXT_LEN
        decryptable = AeCiphertext.from_bytes(data[offset : offset + AE_CIPHERTEXT_LEN])
        offset += AE_CIPHERTEXT_LEN
        allow_confidential, allow_non_confidential = data[offset], data[offset + 1]
        counters = struct.unpack_from("<4Q", data, offset + 2)
        return cls(
            approved=bool(data[0]),
            elgamal_pubkey=ElGamalPubkey(data[1:33]),
            pending_balance_lo=ciphertexts[0],
            pending_balance_hi=ciphertexts[1],
            available_balance=ciphertexts[2],
            decryptable_available_balance=decryptable,
            allow_confidential_credits=bool(allow_confidential),
            allow_non_confidential_credits=bool(allow_non_confidential),
            pending_balance_credit_counter=counters[0],
            maximum_pending_balance_credit_counter=counters[1],
            expected_pending_balance_credit_counter=counters[2],
            actual_pending_balance_credit_counter=counters[3],
        )


ExtensionView = Union[ConfidentialMintView, ConfidentialAccountView]

EXTENSION_VIEWS = {
    ExtensionType.CONFIDENTIAL_TRANSFER_MINT: ConfidentialMintView,
    ExtensionType.CONFIDENTIAL_TRANSFER_ACCOUNT: ConfidentialAccountView,
}


def parse_extensions(
    data: bytes, base_len: int, account_type: AccountType
) -> dict[ExtensionType, bytes]:
    """Split the TLV region of an extended account into raw extension values"""
    if len(data) == base_len:
        return {}
    if len(data) <= ACCOUNT_TYPE_INDEX:
        raise DecodeError("invalid account data length", field="account_type")
    if data[ACCOUNT_TYPE_INDEX] != account_type:
        raise DecodeError(
            f"expected account type {account_type.name}", field="account_type"
        )

    extensions: dict[ExtensionType, bytes] = {}
    offset = TLV_START
    while offset + TLV_HEADER.size <= len(data):
        tag, length = TLV_HEADER.unpack_from(data, offset)
        if tag == ExtensionType.UNINITIALIZED:
            break
        start = offset + TLV_HEADER.size
        value = data[start : start + length]
        if len(value) != length:
            raise DecodeError(f"truncated extension {tag}", field="extensions")
        try:
            extensions[ExtensionType(tag)] = value
        except ValueError:
            # Newer extension this package does not model
            pass
        offset = start + length
    return extensions


class _Extended:
    extensions: dict[ExtensionType, bytes]

    def has_extension(self, extension_type: ExtensionType) -> bool:
        return extension_type in self.extensions

    def get_extension(self, extension_type: ExtensionType) -> Optional[ExtensionView]:
        """Typed view of an extension, or None when the account lacks it"""
        view = EXTENSION_VIEWS.get(extension_type)
        if view is None:
            raise ValueError(f"No typed view for {extension_type.name}")
        raw = self.extensions.get(extension_type)
        if raw is None:
            return None
        return view.from_bytes(raw)


@dataclass
class MintState(_Extended):
    mint_authority: Optional[Pubkey]
    supply: int
    decimals: int
    freeze_authority: Optional[Pubkey]
    extensions: dict[ExtensionType, bytes] = field(default_factory=dict)

    @property
    def confidential_transfer(self) -> Optional[ConfidentialMintView]:
        return self.get_extension(ExtensionType.CONFIDENTIAL_TRANSFER_MINT)


@dataclass
class TokenAccountState(_Extended):
    mint: Pubkey
    owner: Pubkey
    amount: int
    state: AccountState
    extensions: dict[ExtensionType, bytes] = field(default_factory=dict)

    @property
    def confidential_transfer(self) -> Optional[ConfidentialAccountView]:
        return self.get_extension(ExtensionType.CONFIDENTIAL_TRANSFER_ACCOUNT)


def decode_mint(data: bytes) -> MintState:
    """
    Decode a Token or Token-2022 mint

    Raises:
        DecodeError: naming the field that failed
    """
    data = bytes(data)
    if len(data) < MINT_BASE_LEN:
        raise DecodeError("mint data too short", field="mint")
    try:
        decoded = MINT_LAYOUT.parse(data)
    except ConstructError as e:
        raise DecodeError(f"failed to decode mint: {e}", field="mint") from e
    if not decoded.is_initialized:
        raise DecodeError("mint is not initialized", field="is_initialized")

    return MintState(
        mint_authority=Pubkey.from_bytes(decoded.mint_authority)
        if decoded.mint_authority_option
        else None,
        supply=decoded.supply,
        decimals=decoded.decimals,
        freeze_authority=Pubkey.from_bytes(decoded.freeze_authority)
        if decoded.freeze_authority_option
        else None,
        extensions=parse_extensions(data, MINT_BASE_LEN, AccountType.MINT),
    )


def decode_token_account(data: bytes) -> TokenAccountState:
    """Decode a Token or Token-2022 token account"""
    data = bytes(data)
    if len(data) < ACCOUNT_BASE_LEN:
        raise DecodeError("token account data too short", field="token_account")
    try:
        decoded = ACCOUNT_LAYOUT.parse(data)
    except ConstructError as e:
        raise DecodeError(
            f"failed to decode token account: {e}", field="token_account"
        ) from e
    try:
        state = AccountState(decoded.state)
    except ValueError as e:
        raise DecodeError("invalid account state", field="state") from e
    if state == AccountState.UNINITIALIZED:
        raise DecodeError("token account is not initialized", field="state")

    return TokenAccountState(
        mint=Pubkey.from_bytes(decoded.mint),
        owner=Pubkey.from_bytes(decoded.owner),
        amount=decoded.amount,
        state=state,
        extensions=parse_extensions(data, ACCOUNT_BASE_LEN, AccountType.ACCOUNT),
    )


def is_valid_mint(data: bytes) -> bool:
    """True when the bytes are a mint carrying the confidential transfer extension"""
    try:
        mint = decode_mint(data)
    except DecodeError:
        return False
    return mint.has_extension(ExtensionType.CONFIDENTIAL_TRANSFER_MINT)


def already_configured(data: bytes) -> bool:
    """True when the token account already has its confidential extension"""
    account = decode_token_account(data)
    return account.has_extension(ExtensionType.CONFIDENTIAL_TRANSFER_ACCOUNT)
