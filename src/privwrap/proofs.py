"""
Zero-knowledge proof packaging

Proof math is delegated to a ``ProofGenerator``. This module wraps each
generated proof with the ephemeral account that will hold its verified
context, and builds the create, verify and close instructions for it.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, Protocol

from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, create_account

from .encryption import (
    POINT_LEN,
    ElGamalCiphertext,
    ElGamalKeypair,
    ElGamalPubkey,
)
from .errors import ProofGenerationError
from .plan import SignerRole

ZK_ELGAMAL_PROOF_PROGRAM_ID = Pubkey.from_string(
    "ZkE1Gama1Proof11111111111111111111111111111"
)

# Context state header: authority (32) + proof type (1)
CONTEXT_STATE_HEADER_LEN = 33


class ProofInstruction(IntEnum):
    CLOSE_CONTEXT_STATE = 0
    VERIFY_ZERO_CIPHERTEXT = 1
    VERIFY_CIPHERTEXT_CIPHERTEXT_EQUALITY = 2
    VERIFY_CIPHERTEXT_COMMITMENT_EQUALITY = 3
    VERIFY_PUBKEY_VALIDITY = 4
    VERIFY_PERCENTAGE_WITH_CAP = 5
    VERIFY_BATCHED_RANGE_PROOF_U64 = 6
    VERIFY_BATCHED_RANGE_PROOF_U128 = 7
    VERIFY_BATCHED_RANGE_PROOF_U256 = 8
    VERIFY_GROUPED_CIPHERTEXT_2_HANDLES_VALIDITY = 9
    VERIFY_BATCHED_GROUPED_CIPHERTEXT_2_HANDLES_VALIDITY = 10
    VERIFY_GROUPED_CIPHERTEXT_3_HANDLES_VALIDITY = 11
    VERIFY_BATCHED_GROUPED_CIPHERTEXT_3_HANDLES_VALIDITY = 12


class ProofType(Enum):
    """Proofs used by confidential operations: (instruction, context len, proof len)"""

    PUBKEY_VALIDITY = (ProofInstruction.VERIFY_PUBKEY_VALIDITY, 32, 64)
    CIPHERTEXT_COMMITMENT_EQUALITY = (
        ProofInstruction.VERIFY_CIPHERTEXT_COMMITMENT_EQUALITY,
        128,
        192,
    )
    BATCHED_RANGE_PROOF_U64 = (ProofInstruction.VERIFY_BATCHED_RANGE_PROOF_U64, 264, 672)
    BATCHED_RANGE_PROOF_U128 = (ProofInstruction.VERIFY_BATCHED_RANGE_PROOF_U128, 264, 736)
    BATCHED_GROUPED_CIPHERTEXT_3_HANDLES_VALIDITY = (
        ProofInstruction.VERIFY_BATCHED_GROUPED_CIPHERTEXT_3_HANDLES_VALIDITY,
        352,
        192,
    )

    def __init__(self, instruction: ProofInstruction, context_len: int, proof_len: int):
        self.instruction = instruction
        self.context_len = context_len
        self.proof_len = proof_len

    @property
    def proof_data_len(self) -> int:
        """Length of context followed by proof, as passed to the verify instruction"""
        return self.context_len + self.proof_len

    @property
    def context_state_size(self) -> int:
        """Size of the account that stores a verified context"""
        return CONTEXT_STATE_HEADER_LEN + self.context_len


def verify_proof_instruction(
    proof_type: ProofType,
    proof_data: bytes,
    context_state: Optional[Pubkey] = None,
    context_state_authority: Optional[Pubkey] = None,
) -> Instruction:
    """Verify a proof, optionally recording its context in a context state account"""
    accounts = []
    if context_state is not None:
        if context_state_authority is None:
            raise ValueError("Context state authority required")
        accounts = [
            AccountMeta(context_state, is_signer=False, is_writable=True),
            AccountMeta(context_state_authority, is_signer=False, is_writable=False),
        ]
    data = bytes([proof_type.instruction]) + bytes(proof_data)
    return Instruction(ZK_ELGAMAL_PROOF_PROGRAM_ID, data, accounts)


def close_context_state_instruction(
    context_state: Pubkey, destination: Pubkey, authority: Pubkey
) -> Instruction:
    accounts = [
        AccountMeta(context_state, is_signer=False, is_writable=True),
        AccountMeta(destination, is_signer=False, is_writable=True),
        AccountMeta(authority, is_signer=True, is_writable=False),
    ]
    return Instruction(
        ZK_ELGAMAL_PROOF_PROGRAM_ID,
        bytes([ProofInstruction.CLOSE_CONTEXT_STATE]),
        accounts,
    )


@dataclass
class ProofArtifact:
    """One proof plus the ephemeral account that holds its verified context"""

    proof_type: ProofType
    role: SignerRole
    keypair: Keypair
    proof_data: bytes
    lamports: int

    def __post_init__(self):
        if len(self.proof_data) != self.proof_type.proof_data_len:
            raise ProofGenerationError(
                f"{self.proof_type.name} proof data must be "
                f"{self.proof_type.proof_data_len} bytes, got {len(self.proof_data)}"
            )

    @property
    def address(self) -> Pubkey:
        return self.keypair.pubkey()

    @property
    def context(self) -> bytes:
        return self.proof_data[: self.proof_type.context_len]

    def create_instruction(self, payer: Pubkey) -> Instruction:
        return create_account(
            CreateAccountParams(
                from_pubkey=payer,
                to_pubkey=self.address,
                lamports=self.lamports,
                space=self.proof_type.context_state_size,
                owner=ZK_ELGAMAL_PROOF_PROGRAM_ID,
            )
        )

    def verify_instruction(self, authority: Pubkey) -> Instruction:
        return verify_proof_instruction(
            self.proof_type, self.proof_data, self.address, authority
        )

    def close_instruction(self, authority: Pubkey) -> Instruction:
        return close_context_state_instruction(self.address, authority, authority)


@dataclass
class WithdrawProofData:
    equality_proof_data: bytes
    range_proof_data: bytes


@dataclass
class TransferProofData:
    equality_proof_data: bytes
    ciphertext_validity_proof_data: bytes
    range_proof_data: bytes

    # Validity context: three pubkeys, then grouped ciphertexts lo and hi, each
    # a commitment followed by source, destination and auditor handles
    _GROUPED_LEN = POINT_LEN * 4
    _AUDITOR_HANDLE_OFFSET = POINT_LEN * 3

    def _auditor_ciphertext(self, index: int) -> bytes:
        start = POINT_LEN * 3 + index * self._GROUPED_LEN
        grouped = self.ciphertext_validity_proof_data[start : start + self._GROUPED_LEN]
        if len(grouped) != self._GROUPED_LEN:
            raise ProofGenerationError("ciphertext validity proof data is truncated")
        handle = self._AUDITOR_HANDLE_OFFSET
        return grouped[:POINT_LEN] + grouped[handle : handle + POINT_LEN]

    @property
    def auditor_ciphertext_lo(self) -> bytes:
        """Transfer amount low half encrypted under the auditor key"""
        return self._auditor_ciphertext(0)

    @property
    def auditor_ciphertext_hi(self) -> bytes:
        return self._auditor_ciphertext(1)


class ProofGenerator(Protocol):
    """External zero-knowledge proof library"""

    def pubkey_validity_proof(self, keypair: ElGamalKeypair) -> bytes:
        """Proof data that the keypair's public key is well formed"""
        ...

    def withdraw_proofs(
        self,
        keypair: ElGamalKeypair,
        current_available_balance: int,
        current_available_ciphertext: ElGamalCiphertext,
        amount: int,
    ) -> WithdrawProofData:
        """Equality and u64 range proofs for the remaining balance"""
        ...

    def transfer_proofs(
        self,
        keypair: ElGamalKeypair,
        current_available_balance: int,
        current_available_ciphertext: ElGamalCiphertext,
        amount: int,
        destination_pubkey: ElGamalPubkey,
        auditor_pubkey: ElGamalPubkey,
    ) -> TransferProofData:
        """Equality, 3-handle validity and u128 range proofs for a transfer"""
        ...
