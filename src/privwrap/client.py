"""
Main client for privwrap

Provides the high-level API for confidential token operations. Every method
handles one request statelessly and returns unsigned transactions for the
caller to sign and submit.
"""

import logging
from typing import Optional

from solders.pubkey import Pubkey

from .accounts import ExtensionType
from .auth import authenticate
from .balances import (
    BalanceSnapshot,
    apply_pending_decryptable_balance,
    decrypt_available_balance,
    decrypt_pending_balance,
)
from .config import ClientConfig
from .errors import PreconditionError, ProofGenerationError
from .instructions import ConfidentialInstructionBuilder
from .key_derivation import DerivedKeyMaterial
from .orchestrator import TRANSFER_PROOF_TYPES, WITHDRAW_PROOF_TYPES, ProofOrchestrator
from .plan import PlanBuilder, TransactionPlan
from .proofs import ProofGenerator, ProofType, verify_proof_instruction
from .solana_client import SolanaClient
from .token_utils import (
    TOKEN_PROGRAM_ID,
    create_ata_idempotent,
    get_associated_token_address,
)
from .types import Balances, Deposit, InitializeOrApply, Transfer, Withdraw, WrapTokens
from .validation import (
    LedgerReader,
    load_accounts,
    require_configured_account,
    require_confidential_mint,
    require_mint,
    require_token_account,
    require_unconfigured_account,
)
from .wrap import (
    BACKPOINTER_SIZE,
    WRAPPED_MINT_SIZE,
    build_create_wrapped_mint_plan,
    build_unwrap_plan,
    build_wrap_plan,
    get_wrapped_mint_address,
)

logger = logging.getLogger(__name__)


class ConfidentialClient:
    """
    Main client for confidential transfers on wrapped Token-2022 mints

    Example:
        ```python
        client = ConfidentialClient(proof_generator, config=ClientConfig.from_env())

        token_account = get_associated_token_address(wallet.pubkey(), mint)
        elgamal_sig, ae_sig = sign_key_messages(wallet, token_account)

        plan = await client.initialize(
            InitializeOrApply(wallet.pubkey(), mint, elgamal_sig, ae_sig)
        )
        await client.ledger.submit_plan(plan, {SignerRole.WALLET: wallet})
        ```
    """

    def __init__(
        self,
        proof_generator: ProofGenerator,
        ledger: Optional[LedgerReader] = None,
        config: Optional[ClientConfig] = None,
    ):
        """
        Initialize Confidential Client

        Args:
            proof_generator: Zero-knowledge proof library
            ledger: Ledger reader (defaults to a SolanaClient for config.rpc_url)
            config: Client settings (defaults to ClientConfig())
        """
        self.config = config or ClientConfig()
        self._owns_ledger = ledger is None
        self.ledger = ledger or SolanaClient(self.config.rpc_url, self.config.commitment)
        self.proof_generator = proof_generator
        self.instructions = ConfidentialInstructionBuilder()
        self.orchestrator = ProofOrchestrator(
            proof_generator, self.instructions, self.config.max_transaction_size
        )

    def _plan_builder(self, authority) -> PlanBuilder:
        return PlanBuilder(authority, max_transaction_size=self.config.max_transaction_size)

    async def _proof_rent(self, proof_types) -> dict[ProofType, int]:
        rent = {}
        for proof_type in proof_types:
            rent[proof_type] = await self.ledger.get_minimum_balance_for_rent_exemption(
                proof_type.context_state_size
            )
        return rent

    def _pubkey_validity_proof(self, keys: DerivedKeyMaterial) -> bytes:
        try:
            proof_data = self.proof_generator.pubkey_validity_proof(keys.elgamal)
        except ProofGenerationError:
            raise
        except (ValueError, ArithmeticError, RuntimeError) as e:
            raise ProofGenerationError("failed to generate proof data") from e
        if len(proof_data) != ProofType.PUBKEY_VALIDITY.proof_data_len:
            raise ProofGenerationError("failed to generate proof data")
        return proof_data

    # =========================================================================
    # Async Methods (read ledger state, return plans)
    # =========================================================================

    async def initialize(self, request: InitializeOrApply) -> TransactionPlan:
        """
        Configure the wallet's token account for confidential transfers

        Args:
            request: Wallet, mint and both key signatures

        Returns:
            Single-step plan: create the account if missing, reallocate,
            configure, and verify the ElGamal public key
        """
        request.validate()
        token_account = get_associated_token_address(request.authority, request.token_mint)
        keys = authenticate(
            request.authority,
            token_account,
            request.elgamal_signature,
            request.ae_signature,
        )

        mint_data, account_data = await load_accounts(
            self.ledger, [request.token_mint, token_account]
        )
        mint = require_mint(mint_data)
        require_unconfigured_account(account_data)
        require_confidential_mint(mint)

        proof_data = self._pubkey_validity_proof(keys)

        plan = self._plan_builder(request.authority)
        plan.add_step(
            "initialize",
            [
                create_ata_idempotent(request.authority, request.authority, request.token_mint),
                self.instructions.reallocate(
                    token_account,
                    request.authority,
                    request.authority,
                    [ExtensionType.CONFIDENTIAL_TRANSFER_ACCOUNT],
                ),
                self.instructions.configure_account(
                    token_account,
                    request.token_mint,
                    request.authority,
                    bytes(keys.ae_key.encrypt(0)),
                    self.config.maximum_pending_balance_credit_counter,
                    proof_instruction_offset=1,
                ),
                verify_proof_instruction(ProofType.PUBKEY_VALIDITY, proof_data),
            ],
        )
        logger.info("Built initialize plan for %s", token_account)
        return plan.build()

    async def deposit(self, request: Deposit) -> TransactionPlan:
        """
        Move public balance into the pending confidential balance

        No signatures are needed since deposit does not touch encrypted state.
        """
        request.validate()
        token_account = get_associated_token_address(request.authority, request.token_mint)

        mint_data, account_data = await load_accounts(
            self.ledger, [request.token_mint, token_account]
        )
        mint = require_mint(mint_data)
        account = require_token_account(account_data)
        require_configured_account(account)
        require_confidential_mint(mint)

        plan = self._plan_builder(request.authority)
        plan.add_step(
            "deposit",
            [
                self.instructions.deposit(
                    token_account,
                    request.token_mint,
                    request.authority,
                    request.amount,
                    mint.decimals,
                )
            ],
        )
        logger.info("Built deposit plan for %s", token_account)
        return plan.build()

    async def apply(self, request: InitializeOrApply) -> TransactionPlan:
        """Fold the pending balance into the available balance"""
        request.validate()
        token_account = get_associated_token_address(request.authority, request.token_mint)
        keys = authenticate(
            request.authority,
            token_account,
            request.elgamal_signature,
            request.ae_signature,
        )

        mint_data, account_data = await load_accounts(
            self.ledger, [request.token_mint, token_account]
        )
        mint = require_mint(mint_data)
        account = require_token_account(account_data)
        view = require_configured_account(account)
        require_confidential_mint(mint)

        new_decryptable = apply_pending_decryptable_balance(
            view, keys.elgamal.secret, keys.ae_key
        )

        plan = self._plan_builder(request.authority)
        plan.add_step(
            "apply pending balance",
            [
                self.instructions.apply_pending_balance(
                    token_account,
                    request.authority,
                    view.pending_balance_credit_counter,
                    bytes(new_decryptable),
                )
            ],
        )
        logger.info("Built apply plan for %s", token_account)
        return plan.build()

    async def withdraw(self, request: Withdraw) -> TransactionPlan:
        """
        Move available confidential balance back to public balance

        Returns:
            4-step plan; see ProofOrchestrator.withdraw_plan
        """
        request.validate()
        token_account = get_associated_token_address(request.authority, request.token_mint)
        keys = authenticate(
            request.authority,
            token_account,
            request.elgamal_signature,
            request.ae_signature,
        )

        mint_data, account_data = await load_accounts(
            self.ledger, [request.token_mint, token_account]
        )
        mint = require_mint(mint_data)
        account = require_token_account(account_data)
        view = require_configured_account(account)
        require_confidential_mint(mint)

        rent = await self._proof_rent(WITHDRAW_PROOF_TYPES)

        return self.orchestrator.withdraw_plan(
            authority=request.authority,
            token_account=token_account,
            mint=request.token_mint,
            decimals=mint.decimals,
            account=view,
            keys=keys,
            amount=request.amount,
            equality_keypair=request.equality_proof_keypair,
            range_keypair=request.range_proof_keypair,
            rent=rent,
        )

    async def transfer(self, request: Transfer) -> TransactionPlan:
        """
        Transfer confidential balance to another configured token account

        Returns:
            5-step plan; see ProofOrchestrator.transfer_plan
        """
        request.validate()
        token_account = get_associated_token_address(request.authority, request.token_mint)
        keys = authenticate(
            request.authority,
            token_account,
            request.elgamal_signature,
            request.ae_signature,
        )

        mint_data, source_data, destination_data = await load_accounts(
            self.ledger,
            [request.token_mint, token_account, request.receiving_token_account],
        )
        mint = require_mint(mint_data)
        source = require_token_account(source_data, "authority token account")
        destination = require_token_account(destination_data, "receiving token account")
        source_view = require_configured_account(source, "authority token account")
        destination_view = require_configured_account(
            destination, "receiving token account"
        )
        mint_view = require_confidential_mint(mint)
        if destination.mint != request.token_mint:
            raise PreconditionError("receiving token account belongs to a different mint")

        rent = await self._proof_rent(TRANSFER_PROOF_TYPES)

        return self.orchestrator.transfer_plan(
            authority=request.authority,
            source=token_account,
            destination=request.receiving_token_account,
            mint=request.token_mint,
            account=source_view,
            keys=keys,
            destination_pubkey=destination_view.elgamal_pubkey,
            auditor_pubkey=mint_view.auditor_elgamal_pubkey,
            amount=request.amount,
            equality_keypair=request.equality_proof_keypair,
            ciphertext_validity_keypair=request.ciphertext_validity_proof_keypair,
            range_keypair=request.range_proof_keypair,
            rent=rent,
        )

    async def balances(self, request: Balances) -> BalanceSnapshot:
        """
        Decrypt the wallet's pending, available and public balances

        Returns:
            UI-scaled snapshot for display only
        """
        request.validate()
        token_account = get_associated_token_address(request.authority, request.token_mint)
        keys = authenticate(
            request.authority,
            token_account,
            request.elgamal_signature,
            request.ae_signature,
        )

        mint_data, account_data = await load_accounts(
            self.ledger, [request.token_mint, token_account]
        )
        mint = require_mint(mint_data)
        account = require_token_account(account_data)
        view = require_configured_account(account)

        return BalanceSnapshot.from_amounts(
            pending=decrypt_pending_balance(view, keys.elgamal.secret),
            available=decrypt_available_balance(view, keys.ae_key),
            non_confidential=account.amount,
            decimals=mint.decimals,
        )

    async def create_wrapped_mint(
        self,
        payer: Pubkey,
        unwrapped_mint: Pubkey,
        unwrapped_token_program: Pubkey = TOKEN_PROGRAM_ID,
        auditor_elgamal_pubkey: Optional[bytes] = None,
    ) -> TransactionPlan:
        """
        Create the confidential Token-2022 wrapped mint for a base mint

        Args:
            payer: Wallet paying rent and signing
            unwrapped_mint: Base mint to wrap
            unwrapped_token_program: Program owning the base mint
            auditor_elgamal_pubkey: Auditor key for transfers (default: none)

        Returns:
            1-step plan signed by the payer

        Raises:
            NotFoundError: if the base mint does not exist
            PreconditionError: if the wrapped mint already exists
        """
        wrapped_mint = get_wrapped_mint_address(unwrapped_mint)
        unwrapped_data, wrapped_data = await load_accounts(
            self.ledger, [unwrapped_mint, wrapped_mint]
        )
        require_mint(unwrapped_data)
        if wrapped_data is not None:
            raise PreconditionError(f"wrapped mint {wrapped_mint} already exists")

        backpointer_rent = await self.ledger.get_minimum_balance_for_rent_exemption(
            BACKPOINTER_SIZE
        )
        mint_rent = await self.ledger.get_minimum_balance_for_rent_exemption(
            WRAPPED_MINT_SIZE
        )
        return build_create_wrapped_mint_plan(
            payer,
            unwrapped_mint,
            unwrapped_token_program,
            backpointer_rent,
            mint_rent,
            auditor_elgamal_pubkey or bytes(32),
        )

    # =========================================================================
    # Sync Methods (no ledger reads)
    # =========================================================================

    def wrap(self, request: WrapTokens) -> TransactionPlan:
        """Wrap base tokens into the confidential-capable wrapped mint"""
        request.validate()
        return build_wrap_plan(
            request.authority,
            request.unwrapped_token_mint,
            request.wrapped_token_mint,
            request.unwrapped_token_program,
            request.amount,
        )

    def unwrap(self, request: WrapTokens) -> TransactionPlan:
        """Unwrap wrapped tokens back into the base mint"""
        request.validate()
        return build_unwrap_plan(
            request.authority,
            request.unwrapped_token_mint,
            request.wrapped_token_mint,
            request.unwrapped_token_program,
            request.amount,
        )

    async def close(self) -> None:
        """Close RPC connection if this client opened it"""
        if self._owns_ledger:
            await self.ledger.close()
