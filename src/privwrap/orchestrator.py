"""
Proof lifecycle orchestration for withdraw and transfer

A withdraw or transfer needs proofs too large for one transaction, so the
operation is split into an ordered plan: create the proof context accounts,
verify the proofs into them, run the token instruction that reads them, then
close them to recover rent. The range proof is always verified alone since
its payload fills a transaction by itself.
"""

import logging
from typing import Mapping, Optional

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .accounts import ConfidentialAccountView
from .balances import debit_decryptable_balance
from .encryption import IDENTITY, ElGamalPubkey
from .errors import ProofGenerationError, RequestError
from .instructions import ConfidentialInstructionBuilder
from .key_derivation import DerivedKeyMaterial
from .plan import PACKET_DATA_SIZE, LifecycleStage, PlanBuilder, SignerRole, TransactionPlan
from .proofs import (
    ProofArtifact,
    ProofGenerator,
    ProofType,
    TransferProofData,
    WithdrawProofData,
)

logger = logging.getLogger(__name__)

WITHDRAW_PROOF_TYPES = (
    ProofType.CIPHERTEXT_COMMITMENT_EQUALITY,
    ProofType.BATCHED_RANGE_PROOF_U64,
)
TRANSFER_PROOF_TYPES = (
    ProofType.CIPHERTEXT_COMMITMENT_EQUALITY,
    ProofType.BATCHED_GROUPED_CIPHERTEXT_3_HANDLES_VALIDITY,
    ProofType.BATCHED_RANGE_PROOF_U128,
)


def check_ephemeral_keypairs(authority: Pubkey, *keypairs: Keypair) -> None:
    """Proof account keypairs must be distinct from each other and the wallet"""
    addresses = [keypair.pubkey() for keypair in keypairs]
    if len(set(addresses)) != len(addresses):
        raise RequestError("proof account keypairs must be distinct")
    if authority in addresses:
        raise RequestError("proof account keypair must not be the wallet keypair")


def _rent_for(rent: Mapping[ProofType, int], proof_type: ProofType) -> int:
    try:
        return rent[proof_type]
    except KeyError:
        raise RequestError(f"missing rent for {proof_type.name}") from None


class ProofOrchestrator:
    """
    Builds withdraw and transfer plans

    Example:
        >>> orchestrator = ProofOrchestrator(generator)
        >>> plan = orchestrator.withdraw_plan(
        ...     authority=wallet, token_account=ata, mint=mint, decimals=6,
        ...     account=view, keys=keys, amount=100,
        ...     equality_keypair=Keypair(), range_keypair=Keypair(), rent=rent,
        ... )
        >>> len(plan)
        4
    """

    def __init__(
        self,
        proof_generator: ProofGenerator,
        instruction_builder: Optional[ConfidentialInstructionBuilder] = None,
        max_transaction_size: int = PACKET_DATA_SIZE,
    ):
        self.proof_generator = proof_generator
        self.instructions = instruction_builder or ConfidentialInstructionBuilder()
        self.max_transaction_size = max_transaction_size

    def _withdraw_proofs(self, keys, account, current, amount) -> WithdrawProofData:
        try:
            return self.proof_generator.withdraw_proofs(
                keys.elgamal, current, account.available_balance, amount
            )
        except ProofGenerationError:
            raise
        except (ValueError, ArithmeticError, RuntimeError) as e:
            raise ProofGenerationError(f"failed to generate withdraw proofs: {e}") from e

    def _transfer_proofs(
        self, keys, account, current, amount, destination_pubkey, auditor_pubkey
    ) -> TransferProofData:
        try:
            return self.proof_generator.transfer_proofs(
                keys.elgamal,
                current,
                account.available_balance,
                amount,
                destination_pubkey,
                auditor_pubkey,
            )
        except ProofGenerationError:
            raise
        except (ValueError, ArithmeticError, RuntimeError) as e:
            raise ProofGenerationError(f"failed to generate transfer proofs: {e}") from e

    def withdraw_plan(
        self,
        *,
        authority: Pubkey,
        token_account: Pubkey,
        mint: Pubkey,
        decimals: int,
        account: ConfidentialAccountView,
        keys: DerivedKeyMaterial,
        amount: int,
        equality_keypair: Keypair,
        range_keypair: Keypair,
        rent: Mapping[ProofType, int],
    ) -> TransactionPlan:
        """
        Build the 4-step withdraw plan

        Args:
            authority: Wallet that owns the token account and pays rent
            token_account: Confidential token account to withdraw from
            mint: Token mint
            decimals: Mint decimals, checked by the ledger
            account: Decoded confidential extension of the token account
            keys: Keys derived for this request
            amount: Base units to move from available to public balance
            equality_keypair: Fresh keypair for the equality proof account
            range_keypair: Fresh keypair for the range proof account
            rent: Rent-exempt lamports per proof type

        Returns:
            Plan: create and verify equality, verify range, withdraw, close

        Raises:
            ProofGenerationError: on insufficient balance or generator failure
            SerializationError: if a step cannot be packaged
        """
        check_ephemeral_keypairs(authority, equality_keypair, range_keypair)

        remaining, new_decryptable = debit_decryptable_balance(account, keys.ae_key, amount)
        current = remaining + amount
        proofs = self._withdraw_proofs(keys, account, current, amount)

        equality = ProofArtifact(
            ProofType.CIPHERTEXT_COMMITMENT_EQUALITY,
            SignerRole.EQUALITY_PROOF,
            equality_keypair,
            proofs.equality_proof_data,
            _rent_for(rent, ProofType.CIPHERTEXT_COMMITMENT_EQUALITY),
        )
        range_proof = ProofArtifact(
            ProofType.BATCHED_RANGE_PROOF_U64,
            SignerRole.RANGE_PROOF,
            range_keypair,
            proofs.range_proof_data,
            _rent_for(rent, ProofType.BATCHED_RANGE_PROOF_U64),
        )

        builder = self._plan_builder(authority, equality, range_proof)
        builder.add_step(
            "create proof accounts and verify equality proof",
            [
                equality.create_instruction(authority),
                range_proof.create_instruction(authority),
                equality.verify_instruction(authority),
            ],
            LifecycleStage.ACCOUNTS_CREATED,
        )
        builder.add_step(
            "verify range proof",
            [range_proof.verify_instruction(authority)],
            LifecycleStage.RANGE_VERIFIED,
        )
        builder.add_step(
            "withdraw",
            [
                self.instructions.withdraw(
                    token_account,
                    mint,
                    authority,
                    amount,
                    decimals,
                    bytes(new_decryptable),
                    equality.address,
                    range_proof.address,
                )
            ],
            LifecycleStage.OPERATION_EXECUTED,
        )
        builder.add_step(
            "close proof accounts",
            [
                equality.close_instruction(authority),
                range_proof.close_instruction(authority),
            ],
            LifecycleStage.CLOSED,
        )

        plan = builder.build()
        logger.info("Built withdraw plan for %s (%d steps)", token_account, len(plan))
        return plan

    def transfer_plan(
        self,
        *,
        authority: Pubkey,
        source: Pubkey,
        destination: Pubkey,
        mint: Pubkey,
        account: ConfidentialAccountView,
        keys: DerivedKeyMaterial,
        destination_pubkey: ElGamalPubkey,
        auditor_pubkey: Optional[ElGamalPubkey],
        amount: int,
        equality_keypair: Keypair,
        ciphertext_validity_keypair: Keypair,
        range_keypair: Keypair,
        rent: Mapping[ProofType, int],
    ) -> TransactionPlan:
        """
        Build the 5-step transfer plan

        Proofs are always generated against three handles. When the mint has
        no auditor the third handle is bound to the all-zero public key.

        Returns:
            Plan: create accounts, verify range, verify equality and validity,
            transfer, close
        """
        check_ephemeral_keypairs(
            authority, equality_keypair, ciphertext_validity_keypair, range_keypair
        )

        remaining, new_decryptable = debit_decryptable_balance(account, keys.ae_key, amount)
        current = remaining + amount
        proofs = self._transfer_proofs(
            keys,
            account,
            current,
            amount,
            destination_pubkey,
            auditor_pubkey or ElGamalPubkey(IDENTITY),
        )

        equality = ProofArtifact(
            ProofType.CIPHERTEXT_COMMITMENT_EQUALITY,
            SignerRole.EQUALITY_PROOF,
            equality_keypair,
            proofs.equality_proof_data,
            _rent_for(rent, ProofType.CIPHERTEXT_COMMITMENT_EQUALITY),
        )
        validity = ProofArtifact(
            ProofType.BATCHED_GROUPED_CIPHERTEXT_3_HANDLES_VALIDITY,
            SignerRole.CIPHERTEXT_VALIDITY_PROOF,
            ciphertext_validity_keypair,
            proofs.ciphertext_validity_proof_data,
            _rent_for(rent, ProofType.BATCHED_GROUPED_CIPHERTEXT_3_HANDLES_VALIDITY),
        )
        range_proof = ProofArtifact(
            ProofType.BATCHED_RANGE_PROOF_U128,
            SignerRole.RANGE_PROOF,
            range_keypair,
            proofs.range_proof_data,
            _rent_for(rent, ProofType.BATCHED_RANGE_PROOF_U128),
        )

        builder = self._plan_builder(authority, equality, validity, range_proof)
        builder.add_step(
            "create proof accounts",
            [
                range_proof.create_instruction(authority),
                equality.create_instruction(authority),
                validity.create_instruction(authority),
            ],
            LifecycleStage.ACCOUNTS_CREATED,
        )
        builder.add_step(
            "verify range proof",
            [range_proof.verify_instruction(authority)],
            LifecycleStage.RANGE_VERIFIED,
        )
        builder.add_step(
            "verify equality and ciphertext validity proofs",
            [
                equality.verify_instruction(authority),
                validity.verify_instruction(authority),
            ],
            LifecycleStage.OTHER_PROOFS_VERIFIED,
        )
        builder.add_step(
            "transfer",
            [
                self.instructions.transfer(
                    source,
                    mint,
                    destination,
                    authority,
                    bytes(new_decryptable),
                    proofs.auditor_ciphertext_lo,
                    proofs.auditor_ciphertext_hi,
                    equality.address,
                    validity.address,
                    range_proof.address,
                )
            ],
            LifecycleStage.OPERATION_EXECUTED,
        )
        builder.add_step(
            "close proof accounts",
            [
                equality.close_instruction(authority),
                validity.close_instruction(authority),
                range_proof.close_instruction(authority),
            ],
            LifecycleStage.CLOSED,
        )

        plan = builder.build()
        logger.info("Built transfer plan %s -> %s (%d steps)", source, destination, len(plan))
        return plan

    def _plan_builder(self, authority: Pubkey, *artifacts: ProofArtifact) -> PlanBuilder:
        return PlanBuilder(
            authority,
            {artifact.role: artifact.address for artifact in artifacts},
            self.max_transaction_size,
        )
