"""
Ordered transaction plans

A plan is the value returned for every transaction-producing operation. Its
steps must be submitted in list order, each one confirmed before the next,
because later steps address accounts created or verified by earlier ones.
Each step records exactly which signer roles must countersign it.
"""

import base64
import binascii
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional, Sequence

from solders.errors import BincodeError
from solders.instruction import Instruction
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from .errors import PreconditionError, SerializationError

logger = logging.getLogger(__name__)

# Maximum serialized transaction size accepted by the ledger
PACKET_DATA_SIZE = 1232


class SignerRole(Enum):
    """Who must sign a plan step"""

    WALLET = "wallet"
    EQUALITY_PROOF = "equality_proof"
    RANGE_PROOF = "range_proof"
    CIPHERTEXT_VALIDITY_PROOF = "ciphertext_validity_proof"


class LifecycleStage(Enum):
    """Proof lifecycle state reached once a step is confirmed"""

    PLANNED = "planned"
    ACCOUNTS_CREATED = "accounts_created"
    RANGE_VERIFIED = "range_verified"
    OTHER_PROOFS_VERIFIED = "other_proofs_verified"
    OPERATION_EXECUTED = "operation_executed"
    CLOSED = "closed"
    ABANDONED = "abandoned"


@dataclass
class PlanStep:
    description: str
    transaction: Transaction
    signers: tuple[SignerRole, ...]
    stage: LifecycleStage

    def serialize(self) -> bytes:
        return bytes(self.transaction)

    def encode(self) -> str:
        return base64.b64encode(self.serialize()).decode()


@dataclass
class TransactionPlan:
    """Ordered, unsigned transactions plus the signer routing for each"""

    steps: list[PlanStep]
    signer_addresses: dict[SignerRole, Pubkey] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self) -> Iterator[PlanStep]:
        return iter(self.steps)

    def __getitem__(self, index: int) -> PlanStep:
        return self.steps[index]

    @property
    def proof_accounts(self) -> dict[SignerRole, Pubkey]:
        """Proof context accounts this plan creates and closes"""
        return {
            role: address
            for role, address in self.signer_addresses.items()
            if role != SignerRole.WALLET
        }

    def encode(self) -> list[str]:
        """Base64 transactions in submission order"""
        return [step.encode() for step in self.steps]

    def decode_transactions(self) -> list[Transaction]:
        return [decode_transaction(encoded) for encoded in self.encode()]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary"""
        return {
            "transactions": self.encode(),
            "signers": [[role.value for role in step.signers] for step in self.steps],
            "signer_addresses": {
                role.value: str(address)
                for role, address in self.signer_addresses.items()
            },
        }


def decode_transaction(encoded: str) -> Transaction:
    """Decode one base64 transaction produced by ``TransactionPlan.encode``"""
    try:
        return Transaction.from_bytes(base64.b64decode(encoded, validate=True))
    except (binascii.Error, BincodeError, ValueError) as e:
        raise SerializationError(f"failed to decode transaction: {e}") from e


class PlanBuilder:
    """
    Accumulates plan steps for one payer

    Signer roles for a step are read back from the compiled transaction, so
    the recorded roles always match the signatures the ledger will demand.
    """

    def __init__(
        self,
        payer: Pubkey,
        signer_addresses: Optional[dict[SignerRole, Pubkey]] = None,
        max_transaction_size: int = PACKET_DATA_SIZE,
    ):
        self.payer = payer
        self.signer_addresses = {SignerRole.WALLET: payer}
        self.signer_addresses.update(signer_addresses or {})
        self.max_transaction_size = max_transaction_size
        self._roles_by_address = {
            address: role for role, address in self.signer_addresses.items()
        }
        self._steps: list[PlanStep] = []

    def add_step(
        self,
        description: str,
        instructions: Sequence[Instruction],
        stage: LifecycleStage = LifecycleStage.OPERATION_EXECUTED,
    ) -> PlanStep:
        """
        Compile instructions into one unsigned transaction

        Raises:
            SerializationError: if the transaction cannot be compiled, exceeds
                the size limit, or needs a signer with no known role
        """
        try:
            transaction = Transaction.new_with_payer(list(instructions), self.payer)
            size = len(bytes(transaction))
        except (TypeError, ValueError) as e:
            raise SerializationError(f"failed to build {description}: {e}") from e

        if size > self.max_transaction_size:
            raise SerializationError(
                f"{description} is {size} bytes, limit is {self.max_transaction_size}"
            )

        message = transaction.message
        required = message.account_keys[: message.header.num_required_signatures]
        signers = []
        for address in required:
            role = self._roles_by_address.get(address)
            if role is None:
                raise SerializationError(f"{description} requires unknown signer {address}")
            signers.append(role)

        step = PlanStep(description, transaction, tuple(signers), stage)
        self._steps.append(step)
        logger.debug("Planned %s (%d bytes, %d signers)", description, size, len(signers))
        return step

    def build(self) -> TransactionPlan:
        return TransactionPlan(list(self._steps), dict(self.signer_addresses))


class ProofLifecycle:
    """
    Tracks a caller's progress through a plan

    Steps are confirmed strictly in order. A plan abandoned after its proof
    accounts were created leaves them rent-locked until the wallet closes
    them; ``open_proof_accounts`` reports which.
    """

    def __init__(self, plan: TransactionPlan):
        self.plan = plan
        self.stage = LifecycleStage.PLANNED
        self.confirmed = 0
        self._accounts_open = False

    @property
    def is_terminal(self) -> bool:
        return self.confirmed == len(self.plan) or self.stage == LifecycleStage.ABANDONED

    def next_step(self) -> Optional[PlanStep]:
        if self.is_terminal:
            return None
        return self.plan[self.confirmed]

    def confirm(self, index: int) -> LifecycleStage:
        """Record that step ``index`` was confirmed by the ledger"""
        if self.stage == LifecycleStage.ABANDONED:
            raise PreconditionError("plan was abandoned")
        if index != self.confirmed:
            raise PreconditionError(
                f"step {index} confirmed out of order, expected step {self.confirmed}"
            )
        step = self.plan[index]
        self.stage = step.stage
        self.confirmed += 1
        if step.stage == LifecycleStage.ACCOUNTS_CREATED:
            self._accounts_open = True
        elif step.stage == LifecycleStage.CLOSED:
            self._accounts_open = False
        return self.stage

    def abandon(self) -> list[Pubkey]:
        """Stop the plan and return the proof accounts left open"""
        if self.is_terminal:
            raise PreconditionError("plan already finished")
        self.stage = LifecycleStage.ABANDONED
        leaked = self.open_proof_accounts()
        if leaked:
            logger.warning(
                "Plan abandoned with %d proof accounts still open", len(leaked)
            )
        return leaked

    def open_proof_accounts(self) -> list[Pubkey]:
        if not self._accounts_open:
            return []
        return list(self.plan.proof_accounts.values())
