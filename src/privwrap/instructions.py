"""Token-2022 confidential transfer instruction builders"""

import struct
from enum import IntEnum
from typing import Sequence

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.sysvar import INSTRUCTIONS as SYSVAR_INSTRUCTIONS_ID

from .accounts import ExtensionType
from .encryption import AE_CIPHERTEXT_LEN, ELGAMAL_CIPHERTEXT_LEN
from .token_utils import TOKEN_2022_PROGRAM_ID

DEFAULT_MAXIMUM_PENDING_BALANCE_CREDIT_COUNTER = 65536


class TokenInstruction(IntEnum):
    CONFIDENTIAL_TRANSFER_EXTENSION = 27
    REALLOCATE = 29


class ConfidentialTransferInstruction(IntEnum):
    INITIALIZE_MINT = 0
    UPDATE_MINT = 1
    CONFIGURE_ACCOUNT = 2
    APPROVE_ACCOUNT = 3
    EMPTY_ACCOUNT = 4
    DEPOSIT = 5
    WITHDRAW = 6
    TRANSFER = 7
    APPLY_PENDING_BALANCE = 8


def _check_len(value: bytes, expected: int, name: str) -> bytes:
    value = bytes(value)
    if len(value) != expected:
        raise ValueError(f"{name} must be {expected} bytes")
    return value


class ConfidentialInstructionBuilder:
    """Builds Token-2022 confidential transfer instructions"""

    def __init__(self, program_id: Pubkey = TOKEN_2022_PROGRAM_ID):
        """Initialize instruction builder.

        Args:
            program_id: The Token-2022 program public key
        """
        self.program_id = program_id

    def _data(self, instruction: ConfidentialTransferInstruction, payload: bytes) -> bytes:
        return (
            bytes([TokenInstruction.CONFIDENTIAL_TRANSFER_EXTENSION, instruction])
            + payload
        )

    def reallocate(
        self,
        token_account: Pubkey,
        payer: Pubkey,
        owner: Pubkey,
        extension_types: Sequence[ExtensionType],
    ) -> Instruction:
        """Build reallocate instruction making room for extensions"""
        accounts = [
            AccountMeta(token_account, is_signer=False, is_writable=True),
            AccountMeta(payer, is_signer=True, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(owner, is_signer=True, is_writable=False),
        ]

        data = bytes([TokenInstruction.REALLOCATE]) + b"".join(
            struct.pack("<H", extension) for extension in extension_types
        )

        return Instruction(self.program_id, data, accounts)

    def configure_account(
        self,
        token_account: Pubkey,
        mint: Pubkey,
        authority: Pubkey,
        decryptable_zero_balance: bytes,
        maximum_pending_balance_credit_counter: int = DEFAULT_MAXIMUM_PENDING_BALANCE_CREDIT_COUNTER,
        proof_instruction_offset: int = 1,
    ) -> Instruction:
        """Build configure account instruction

        The pubkey validity proof is read from the instruction at
        ``proof_instruction_offset`` relative to this one.
        """
        decryptable_zero_balance = _check_len(
            decryptable_zero_balance, AE_CIPHERTEXT_LEN, "Decryptable balance"
        )

        accounts = [
            AccountMeta(token_account, is_signer=False, is_writable=True),
            AccountMeta(mint, is_signer=False, is_writable=False),
            AccountMeta(SYSVAR_INSTRUCTIONS_ID, is_signer=False, is_writable=False),
            AccountMeta(authority, is_signer=True, is_writable=False),
        ]

        # Instruction data: decryptable zero (36) + max counter (u64) + offset (i8)
        data = self._data(
            ConfidentialTransferInstruction.CONFIGURE_ACCOUNT,
            decryptable_zero_balance
            + struct.pack("<Qb", maximum_pending_balance_credit_counter, proof_instruction_offset),
        )

        return Instruction(self.program_id, data, accounts)

    def deposit(
        self,
        token_account: Pubkey,
        mint: Pubkey,
        authority: Pubkey,
        amount: int,
        decimals: int,
    ) -> Instruction:
        """Build deposit instruction moving public balance into pending"""
        accounts = [
            AccountMeta(token_account, is_signer=False, is_writable=True),
            AccountMeta(mint, is_signer=False, is_writable=False),
            AccountMeta(authority, is_signer=True, is_writable=False),
        ]

        data = self._data(
            ConfidentialTransferInstruction.DEPOSIT, struct.pack("<QB", amount, decimals)
        )

        return Instruction(self.program_id, data, accounts)

    def apply_pending_balance(
        self,
        token_account: Pubkey,
        authority: Pubkey,
        expected_pending_balance_credit_counter: int,
        new_decryptable_available_balance: bytes,
    ) -> Instruction:
        """Build apply pending balance instruction"""
        new_decryptable_available_balance = _check_len(
            new_decryptable_available_balance, AE_CIPHERTEXT_LEN, "Decryptable balance"
        )

        accounts = [
            AccountMeta(token_account, is_signer=False, is_writable=True),
            AccountMeta(authority, is_signer=True, is_writable=False),
        ]

        data = self._data(
            ConfidentialTransferInstruction.APPLY_PENDING_BALANCE,
            struct.pack("<Q", expected_pending_balance_credit_counter)
            + new_decryptable_available_balance,
        )

        return Instruction(self.program_id, data, accounts)

    def withdraw(
        self,
        token_account: Pubkey,
        mint: Pubkey,
        authority: Pubkey,
        amount: int,
        decimals: int,
        new_decryptable_available_balance: bytes,
        equality_proof_context: Pubkey,
        range_proof_context: Pubkey,
    ) -> Instruction:
        """Build withdraw instruction reading proofs from context accounts"""
        new_decryptable_available_balance = _check_len(
            new_decryptable_available_balance, AE_CIPHERTEXT_LEN, "Decryptable balance"
        )

        accounts = [
            AccountMeta(token_account, is_signer=False, is_writable=True),
            AccountMeta(mint, is_signer=False, is_writable=False),
            AccountMeta(equality_proof_context, is_signer=False, is_writable=False),
            AccountMeta(range_proof_context, is_signer=False, is_writable=False),
            AccountMeta(authority, is_signer=True, is_writable=False),
        ]

        # Proof offsets are zero: proofs live in context accounts
        data = self._data(
            ConfidentialTransferInstruction.WITHDRAW,
            struct.pack("<QB", amount, decimals)
            + new_decryptable_available_balance
            + struct.pack("<bb", 0, 0),
        )

        return Instruction(self.program_id, data, accounts)

    def transfer(
        self,
        source: Pubkey,
        mint: Pubkey,
        destination: Pubkey,
        authority: Pubkey,
        new_source_decryptable_available_balance: bytes,
        auditor_ciphertext_lo: bytes,
        auditor_ciphertext_hi: bytes,
        equality_proof_context: Pubkey,
        ciphertext_validity_proof_context: Pubkey,
        range_proof_context: Pubkey,
    ) -> Instruction:
        """Build confidential transfer instruction"""
        new_source_decryptable_available_balance = _check_len(
            new_source_decryptable_available_balance,
            AE_CIPHERTEXT_LEN,
            "Decryptable balance",
        )
        auditor_ciphertext_lo = _check_len(
            auditor_ciphertext_lo, ELGAMAL_CIPHERTEXT_LEN, "Auditor ciphertext lo"
        )
        auditor_ciphertext_hi = _check_len(
            auditor_ciphertext_hi, ELGAMAL_CIPHERTEXT_LEN, "Auditor ciphertext hi"
        )

        accounts = [
            AccountMeta(source, is_signer=False, is_writable=True),
            AccountMeta(mint, is_signer=False, is_writable=False),
            AccountMeta(destination, is_signer=False, is_writable=True),
            AccountMeta(equality_proof_context, is_signer=False, is_writable=False),
            AccountMeta(
                ciphertext_validity_proof_context, is_signer=False, is_writable=False
            ),
            AccountMeta(range_proof_context, is_signer=False, is_writable=False),
            AccountMeta(authority, is_signer=True, is_writable=False),
        ]

        data = self._data(
            ConfidentialTransferInstruction.TRANSFER,
            new_source_decryptable_available_balance
            + auditor_ciphertext_lo
            + auditor_ciphertext_hi
            + struct.pack("<bbb", 0, 0, 0),
        )

        return Instruction(self.program_id, data, accounts)
