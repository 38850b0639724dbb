"""
Token account utilities for Token-2022 confidential accounts

This module provides helper functions for token account addressing:
- Associated Token Account (ATA) derivation for either token program
- ATA creation instructions, plain and idempotent
"""

from solders.instruction import Instruction
from solders.pubkey import Pubkey
from spl.token.constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    TOKEN_2022_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)
import spl.token.instructions as spl_token

__all__ = [
    "ASSOCIATED_TOKEN_PROGRAM_ID",
    "TOKEN_2022_PROGRAM_ID",
    "TOKEN_PROGRAM_ID",
    "create_ata",
    "create_ata_idempotent",
    "get_associated_token_address",
]


def get_associated_token_address(
    owner: Pubkey,
    mint: Pubkey,
    token_program_id: Pubkey = TOKEN_2022_PROGRAM_ID,
) -> Pubkey:
    """
    Derive the associated token account address for an owner and mint.

    Args:
        owner: The owner's public key
        mint: The token mint public key
        token_program_id: Program that owns the mint

    Returns:
        The derived ATA public key
    """
    # Find PDA: [owner, token_program, mint]
    seeds = [
        bytes(owner),
        bytes(token_program_id),
        bytes(mint),
    ]
    ata, _ = Pubkey.find_program_address(seeds, ASSOCIATED_TOKEN_PROGRAM_ID)
    return ata


def create_ata_idempotent(
    payer: Pubkey,
    owner: Pubkey,
    mint: Pubkey,
    token_program_id: Pubkey = TOKEN_2022_PROGRAM_ID,
) -> Instruction:
    """Instruction that creates the owner's ATA unless it already exists"""
    return spl_token.create_idempotent_associated_token_account(
        payer=payer,
        owner=owner,
        mint=mint,
        token_program_id=token_program_id,
    )


def create_ata(
    payer: Pubkey,
    owner: Pubkey,
    mint: Pubkey,
    token_program_id: Pubkey = TOKEN_2022_PROGRAM_ID,
) -> Instruction:
    """Instruction that creates the owner's ATA and fails if it exists"""
    return spl_token.create_associated_token_account(
        payer=payer,
        owner=owner,
        mint=mint,
        token_program_id=token_program_id,
    )
