"""
Deterministic stand-in for the zero-knowledge proof library

Contexts are built exactly as the ledger expects them, from real ElGamal
ciphertexts and Pedersen commitments. The proof bytes themselves are a digest
of the context, which the ledger simulator checks instead of running a
verifier.
"""

import hashlib

from privwrap.balances import split_amount
from privwrap.encryption import (
    IDENTITY,
    ElGamalCiphertext,
    ElGamalKeypair,
    ElGamalPubkey,
    PedersenOpening,
    pedersen_commit,
)
from privwrap.proofs import ProofType, TransferProofData, WithdrawProofData

RANGE_COMMITMENT_SLOTS = 8


def fake_proof(proof_type: ProofType, context: bytes) -> bytes:
    digest = hashlib.sha256(bytes([proof_type.instruction]) + context).digest()
    repeats = proof_type.proof_len // len(digest) + 1
    return (digest * repeats)[: proof_type.proof_len]


def proof_data(proof_type: ProofType, context: bytes) -> bytes:
    assert len(context) == proof_type.context_len
    return context + fake_proof(proof_type, context)


def range_context(commitments, bit_lengths) -> bytes:
    padding = RANGE_COMMITMENT_SLOTS - len(commitments)
    points = b"".join(commitments) + IDENTITY * padding
    return points + bytes(bit_lengths) + bytes(padding)


class FakeProofGenerator:
    """Implements privwrap.proofs.ProofGenerator for tests"""

    def __init__(self):
        self.calls = []

    def pubkey_validity_proof(self, keypair: ElGamalKeypair) -> bytes:
        self.calls.append("pubkey_validity")
        return proof_data(ProofType.PUBKEY_VALIDITY, bytes(keypair.pubkey))

    def withdraw_proofs(
        self,
        keypair: ElGamalKeypair,
        current_available_balance: int,
        current_available_ciphertext: ElGamalCiphertext,
        amount: int,
    ) -> WithdrawProofData:
        self.calls.append("withdraw")
        remaining = current_available_balance - amount
        new_available = current_available_ciphertext.subtract_amount(amount)
        commitment = pedersen_commit(remaining, PedersenOpening.new_rand())

        equality_context = bytes(keypair.pubkey) + bytes(new_available) + commitment
        return WithdrawProofData(
            equality_proof_data=proof_data(
                ProofType.CIPHERTEXT_COMMITMENT_EQUALITY, equality_context
            ),
            range_proof_data=proof_data(
                ProofType.BATCHED_RANGE_PROOF_U64, range_context([commitment], [64])
            ),
        )

    def transfer_proofs(
        self,
        keypair: ElGamalKeypair,
        current_available_balance: int,
        current_available_ciphertext: ElGamalCiphertext,
        amount: int,
        destination_pubkey: ElGamalPubkey,
        auditor_pubkey: ElGamalPubkey,
    ) -> TransferProofData:
        self.calls.append("transfer")
        amount_lo, amount_hi = split_amount(amount)
        source_pubkey = keypair.pubkey

        grouped = []
        source_halves = []
        commitments = []
        for half in (amount_lo, amount_hi):
            opening = PedersenOpening.new_rand()
            commitment = pedersen_commit(half, opening)
            source_handle = source_pubkey.decrypt_handle(opening)
            grouped.append(
                commitment
                + source_handle
                + destination_pubkey.decrypt_handle(opening)
                + auditor_pubkey.decrypt_handle(opening)
            )
            source_halves.append(ElGamalCiphertext(commitment, source_handle))
            commitments.append(commitment)

        validity_context = (
            bytes(source_pubkey)
            + bytes(destination_pubkey)
            + bytes(auditor_pubkey)
            + grouped[0]
            + grouped[1]
        )

        new_available = current_available_ciphertext - (
            source_halves[0] + source_halves[1].scale(1 << 16)
        )
        remaining_commitment = pedersen_commit(
            current_available_balance - amount, PedersenOpening.new_rand()
        )
        equality_context = (
            bytes(source_pubkey) + bytes(new_available) + remaining_commitment
        )

        padding_commitment = pedersen_commit(0, PedersenOpening.new_rand())
        return TransferProofData(
            equality_proof_data=proof_data(
                ProofType.CIPHERTEXT_COMMITMENT_EQUALITY, equality_context
            ),
            ciphertext_validity_proof_data=proof_data(
                ProofType.BATCHED_GROUPED_CIPHERTEXT_3_HANDLES_VALIDITY,
                validity_context,
            ),
            range_proof_data=proof_data(
                ProofType.BATCHED_RANGE_PROOF_U128,
                range_context(
                    [remaining_commitment, commitments[0], commitments[1], padding_commitment],
                    [64, 16, 32, 16],
                ),
            ),
        )
