"""
Wrapped mint creation, wrap and unwrap through the token-wrap program

Wrapping escrows base tokens under a program-derived authority and mints the
same amount of a Token-2022 wrapped mint that supports confidential
transfers. Unwrapping reverses it. Neither direction involves encryption.
The wrapped mint itself is created once per base mint, with the
confidential transfer extension enabled.
"""

import logging
import struct
from enum import IntEnum
from typing import Optional, Tuple

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.system_program import TransferParams, transfer

from .accounts import ACCOUNT_BASE_LEN, TLV_HEADER, ConfidentialMintView
from .errors import PreconditionError, RequestError
from .plan import LifecycleStage, PlanBuilder, TransactionPlan
from .token_utils import (
    TOKEN_2022_PROGRAM_ID,
    create_ata,
    create_ata_idempotent,
    get_associated_token_address,
)

logger = logging.getLogger(__name__)

TOKEN_WRAP_PROGRAM_ID = Pubkey.from_string("TwRapQCDhWkZRrDaHfZGuHxkZ91gHDRkyuzNqeU5MgR")

AUTHORITY_SEED = b"authority"
BACKPOINTER_SEED = b"backpointer"

# Backpointer account holds the unwrapped mint address
BACKPOINTER_SIZE = 32
# Token-2022 mint padded to the account length, plus account type and one TLV entry
WRAPPED_MINT_SIZE = ACCOUNT_BASE_LEN + 1 + TLV_HEADER.size + ConfidentialMintView.LEN


class WrapInstruction(IntEnum):
    CREATE_MINT = 0
    WRAP = 1
    UNWRAP = 2


def find_wrapped_mint_pda(
    unwrapped_mint: Pubkey, wrapped_token_program: Pubkey = TOKEN_2022_PROGRAM_ID
) -> Tuple[Pubkey, int]:
    """Derive the wrapped mint PDA address"""
    return Pubkey.find_program_address(
        [bytes(unwrapped_mint), bytes(wrapped_token_program)], TOKEN_WRAP_PROGRAM_ID
    )


def find_wrapped_mint_authority_pda(wrapped_mint: Pubkey) -> Tuple[Pubkey, int]:
    """Derive the PDA that mints wrapped tokens and owns the escrow"""
    return Pubkey.find_program_address(
        [AUTHORITY_SEED, bytes(wrapped_mint)], TOKEN_WRAP_PROGRAM_ID
    )


def find_wrapped_mint_backpointer_pda(wrapped_mint: Pubkey) -> Tuple[Pubkey, int]:
    return Pubkey.find_program_address(
        [BACKPOINTER_SEED, bytes(wrapped_mint)], TOKEN_WRAP_PROGRAM_ID
    )


def get_wrapped_mint_address(
    unwrapped_mint: Pubkey, wrapped_token_program: Pubkey = TOKEN_2022_PROGRAM_ID
) -> Pubkey:
    return find_wrapped_mint_pda(unwrapped_mint, wrapped_token_program)[0]


def get_wrapped_mint_authority(wrapped_mint: Pubkey) -> Pubkey:
    return find_wrapped_mint_authority_pda(wrapped_mint)[0]


def get_wrapped_mint_backpointer_address(wrapped_mint: Pubkey) -> Pubkey:
    return find_wrapped_mint_backpointer_pda(wrapped_mint)[0]


def get_escrow_address(
    wrapped_mint: Pubkey, unwrapped_mint: Pubkey, unwrapped_token_program: Pubkey
) -> Pubkey:
    """Escrow: the wrapped mint authority's ATA for the unwrapped mint"""
    return get_associated_token_address(
        get_wrapped_mint_authority(wrapped_mint),
        unwrapped_mint,
        unwrapped_token_program,
    )


def check_wrapped_mint(unwrapped_mint: Pubkey, wrapped_mint: Pubkey) -> None:
    """
    Raises:
        PreconditionError: if ``wrapped_mint`` is not the Token-2022 wrapped
            mint of ``unwrapped_mint``
    """
    expected = get_wrapped_mint_address(unwrapped_mint, TOKEN_2022_PROGRAM_ID)
    if expected != wrapped_mint:
        raise PreconditionError(
            f"wrapped mint {wrapped_mint} does not match derived {expected}"
        )


class WrapInstructionBuilder:
    """Builds token-wrap program instructions"""

    def __init__(self, program_id: Pubkey = TOKEN_WRAP_PROGRAM_ID):
        self.program_id = program_id

    def create_confidential_mint(
        self,
        wrapped_mint: Pubkey,
        backpointer: Pubkey,
        unwrapped_mint: Pubkey,
        wrapped_token_program: Pubkey = TOKEN_2022_PROGRAM_ID,
        idempotent: bool = True,
        auto_approve: bool = True,
        confidential_authority: bytes = bytes(32),
        auditor_elgamal_pubkey: bytes = bytes(32),
    ) -> Instruction:
        """
        Build the instruction that initializes a wrapped mint with the
        confidential transfer extension

        Both the wrapped mint and backpointer must already hold enough
        lamports for rent; the program allocates and assigns them.

        Args:
            wrapped_mint: Wrapped mint PDA
            backpointer: Backpointer PDA of the wrapped mint
            unwrapped_mint: Base mint being wrapped
            wrapped_token_program: Program that will own the wrapped mint
            idempotent: Succeed without changes if the mint already exists
            auto_approve: Approve newly configured accounts automatically
            confidential_authority: Extension authority, all zero for none
            auditor_elgamal_pubkey: Auditor key, all zero for no auditor

        Raises:
            RequestError: if a key is not 32 bytes
        """
        for name, key in (
            ("confidential_authority", confidential_authority),
            ("auditor_elgamal_pubkey", auditor_elgamal_pubkey),
        ):
            if len(key) != 32:
                raise RequestError(f"{name} must be 32 bytes")

        accounts = [
            AccountMeta(wrapped_mint, is_signer=False, is_writable=True),
            AccountMeta(backpointer, is_signer=False, is_writable=True),
            AccountMeta(unwrapped_mint, is_signer=False, is_writable=False),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(wrapped_token_program, is_signer=False, is_writable=False),
        ]

        data = (
            bytes([WrapInstruction.CREATE_MINT, idempotent, auto_approve])
            + bytes(confidential_authority)
            + bytes(auditor_elgamal_pubkey)
        )

        return Instruction(self.program_id, data, accounts)

    def wrap(
        self,
        recipient_wrapped_token_account: Pubkey,
        wrapped_mint: Pubkey,
        wrapped_mint_authority: Pubkey,
        unwrapped_token_program: Pubkey,
        wrapped_token_program: Pubkey,
        unwrapped_token_account: Pubkey,
        unwrapped_mint: Pubkey,
        unwrapped_escrow: Pubkey,
        transfer_authority: Pubkey,
        amount: int,
    ) -> Instruction:
        """Build wrap instruction"""
        accounts = [
            AccountMeta(recipient_wrapped_token_account, is_signer=False, is_writable=True),
            AccountMeta(wrapped_mint, is_signer=False, is_writable=True),
            AccountMeta(wrapped_mint_authority, is_signer=False, is_writable=False),
            AccountMeta(unwrapped_token_program, is_signer=False, is_writable=False),
            AccountMeta(wrapped_token_program, is_signer=False, is_writable=False),
            AccountMeta(unwrapped_token_account, is_signer=False, is_writable=True),
            AccountMeta(unwrapped_mint, is_signer=False, is_writable=False),
            AccountMeta(unwrapped_escrow, is_signer=False, is_writable=True),
            AccountMeta(transfer_authority, is_signer=True, is_writable=False),
        ]

        data = bytes([WrapInstruction.WRAP]) + struct.pack("<Q", amount)

        return Instruction(self.program_id, data, accounts)

    def unwrap(
        self,
        unwrapped_escrow: Pubkey,
        recipient_unwrapped_token_account: Pubkey,
        wrapped_mint_authority: Pubkey,
        unwrapped_mint: Pubkey,
        wrapped_token_program: Pubkey,
        unwrapped_token_program: Pubkey,
        wrapped_token_account: Pubkey,
        wrapped_mint: Pubkey,
        transfer_authority: Pubkey,
        amount: int,
    ) -> Instruction:
        """Build unwrap instruction"""
        accounts = [
            AccountMeta(unwrapped_escrow, is_signer=False, is_writable=True),
            AccountMeta(recipient_unwrapped_token_account, is_signer=False, is_writable=True),
            AccountMeta(wrapped_mint_authority, is_signer=False, is_writable=False),
            AccountMeta(unwrapped_mint, is_signer=False, is_writable=False),
            AccountMeta(wrapped_token_program, is_signer=False, is_writable=False),
            AccountMeta(unwrapped_token_program, is_signer=False, is_writable=False),
            AccountMeta(wrapped_token_account, is_signer=False, is_writable=True),
            AccountMeta(wrapped_mint, is_signer=False, is_writable=True),
            AccountMeta(transfer_authority, is_signer=True, is_writable=False),
        ]

        data = bytes([WrapInstruction.UNWRAP]) + struct.pack("<Q", amount)

        return Instruction(self.program_id, data, accounts)


def build_wrap_plan(
    authority: Pubkey,
    unwrapped_mint: Pubkey,
    wrapped_mint: Pubkey,
    unwrapped_token_program: Pubkey,
    amount: int,
    builder: Optional[WrapInstructionBuilder] = None,
) -> TransactionPlan:
    """
    Single-transaction plan wrapping ``amount`` base units

    The wallet's wrapped token account is created first if missing.
    """
    check_wrapped_mint(unwrapped_mint, wrapped_mint)
    builder = builder or WrapInstructionBuilder()

    wrapped_mint_authority = get_wrapped_mint_authority(wrapped_mint)
    unwrapped_account = get_associated_token_address(
        authority, unwrapped_mint, unwrapped_token_program
    )
    wrapped_account = get_associated_token_address(
        authority, wrapped_mint, TOKEN_2022_PROGRAM_ID
    )

    plan = PlanBuilder(authority)
    plan.add_step(
        "wrap",
        [
            create_ata_idempotent(authority, authority, wrapped_mint, TOKEN_2022_PROGRAM_ID),
            builder.wrap(
                wrapped_account,
                wrapped_mint,
                wrapped_mint_authority,
                unwrapped_token_program,
                TOKEN_2022_PROGRAM_ID,
                unwrapped_account,
                unwrapped_mint,
                get_escrow_address(wrapped_mint, unwrapped_mint, unwrapped_token_program),
                authority,
                amount,
            ),
        ],
        LifecycleStage.OPERATION_EXECUTED,
    )
    logger.info("Built wrap plan for %s into %s", authority, wrapped_mint)
    return plan.build()


def build_unwrap_plan(
    authority: Pubkey,
    unwrapped_mint: Pubkey,
    wrapped_mint: Pubkey,
    unwrapped_token_program: Pubkey,
    amount: int,
    builder: Optional[WrapInstructionBuilder] = None,
) -> TransactionPlan:
    """Single-transaction plan unwrapping ``amount`` base units"""
    check_wrapped_mint(unwrapped_mint, wrapped_mint)
    builder = builder or WrapInstructionBuilder()

    wrapped_mint_authority = get_wrapped_mint_authority(wrapped_mint)
    unwrapped_account = get_associated_token_address(
        authority, unwrapped_mint, unwrapped_token_program
    )
    wrapped_account = get_associated_token_address(
        authority, wrapped_mint, TOKEN_2022_PROGRAM_ID
    )

    plan = PlanBuilder(authority)
    plan.add_step(
        "unwrap",
        [
            create_ata_idempotent(
                authority, authority, unwrapped_mint, unwrapped_token_program
            ),
            builder.unwrap(
                get_escrow_address(wrapped_mint, unwrapped_mint, unwrapped_token_program),
                unwrapped_account,
                wrapped_mint_authority,
                unwrapped_mint,
                TOKEN_2022_PROGRAM_ID,
                unwrapped_token_program,
                wrapped_account,
                wrapped_mint,
                authority,
                amount,
            ),
        ],
        LifecycleStage.OPERATION_EXECUTED,
    )
    logger.info("Built unwrap plan for %s from %s", authority, wrapped_mint)
    return plan.build()


def build_create_wrapped_mint_plan(
    payer: Pubkey,
    unwrapped_mint: Pubkey,
    unwrapped_token_program: Pubkey,
    backpointer_rent: int,
    mint_rent: int,
    auditor_elgamal_pubkey: bytes = bytes(32),
    builder: Optional[WrapInstructionBuilder] = None,
) -> TransactionPlan:
    """
    Single-transaction plan creating the confidential wrapped mint of
    ``unwrapped_mint``

    The payer funds the backpointer and wrapped mint rent, then creates the
    escrow account before the mint itself is initialized. The escrow
    creation is not idempotent, so the plan fails if the mint was already
    set up.

    Args:
        payer: Wallet paying rent and signing
        unwrapped_mint: Base mint to wrap
        unwrapped_token_program: Program owning the base mint
        backpointer_rent: Rent-exempt balance for BACKPOINTER_SIZE bytes
        mint_rent: Rent-exempt balance for WRAPPED_MINT_SIZE bytes
        auditor_elgamal_pubkey: Auditor key for transfers, all zero for none
    """
    builder = builder or WrapInstructionBuilder()
    wrapped_mint = get_wrapped_mint_address(unwrapped_mint, TOKEN_2022_PROGRAM_ID)
    backpointer = get_wrapped_mint_backpointer_address(wrapped_mint)

    plan = PlanBuilder(payer)
    plan.add_step(
        "create wrapped mint",
        [
            transfer(
                TransferParams(
                    from_pubkey=payer, to_pubkey=backpointer, lamports=backpointer_rent
                )
            ),
            transfer(
                TransferParams(from_pubkey=payer, to_pubkey=wrapped_mint, lamports=mint_rent)
            ),
            create_ata(
                payer,
                get_wrapped_mint_authority(wrapped_mint),
                unwrapped_mint,
                unwrapped_token_program,
            ),
            builder.create_confidential_mint(
                wrapped_mint,
                backpointer,
                unwrapped_mint,
                TOKEN_2022_PROGRAM_ID,
                auditor_elgamal_pubkey=auditor_elgamal_pubkey,
            ),
        ],
        LifecycleStage.OPERATION_EXECUTED,
    )
    logger.info("Built create wrapped mint plan for %s", unwrapped_mint)
    return plan.build()
