"""
Solana ledger access for privwrap

This module provides the thin ledger collaborator the core depends on:
- Batched account reads and rent queries (read-only, shared across requests)
- Caller-side signing and in-order submission of transaction plans
"""

import logging
from typing import Mapping, Optional, Sequence

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.core import (
    RPCException,
    TransactionExpiredBlockheightExceededError,
    UnconfirmedTxError,
)
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from .config import DEFAULT_RPC_URL
from .errors import QueryError, RequestError
from .plan import SignerRole, TransactionPlan

logger = logging.getLogger(__name__)


class SolanaClient:
    """
    Low-level Solana client for confidential operations

    Handles direct blockchain interaction including:
    - Reading account state in batches
    - Rent-exemption queries for proof context accounts
    - Submitting a signed plan step by step
    """

    def __init__(
        self,
        rpc_url: str = DEFAULT_RPC_URL,
        commitment: Commitment = Confirmed,
        client: Optional[AsyncClient] = None,
    ):
        """
        Initialize Solana client

        Args:
            rpc_url: Solana RPC endpoint
            commitment: Commitment used for reads and confirmations
            client: Existing AsyncClient to share, if any
        """
        self.rpc_url = rpc_url
        self.commitment = commitment
        self.client = client or AsyncClient(rpc_url, commitment=commitment)

    async def get_multiple_accounts(
        self, addresses: Sequence[Pubkey]
    ) -> list[Optional[bytes]]:
        """
        Fetch raw data for several accounts in one request

        Returns:
            One entry per address, None where the account does not exist
        """
        try:
            response = await self.client.get_multiple_accounts(
                list(addresses), commitment=self.commitment
            )
        except (SolanaRpcException, RPCException) as e:
            raise QueryError("failed to query accounts") from e

        accounts = [
            None if account is None else bytes(account.data) for account in response.value
        ]
        logger.debug("Fetched %d accounts", len(accounts))
        return accounts

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        try:
            response = await self.client.get_minimum_balance_for_rent_exemption(
                size, commitment=self.commitment
            )
        except (SolanaRpcException, RPCException) as e:
            raise QueryError(f"failed to get rent for {size} bytes") from e
        logger.debug("Rent for %d bytes is %d lamports", size, response.value)
        return response.value

    async def get_latest_blockhash(self) -> Hash:
        """Get recent blockhash for transaction"""
        try:
            response = await self.client.get_latest_blockhash(commitment=self.commitment)
        except (SolanaRpcException, RPCException) as e:
            raise QueryError("failed to get latest blockhash") from e
        return response.value.blockhash

    async def send_and_confirm(self, transaction: Transaction) -> Signature:
        """
        Send a signed transaction and wait for confirmation, without retries

        Raises:
            QueryError: if sending fails, the transaction is not confirmed
                before its blockhash expires, or it executed with an error
        """
        try:
            response = await self.client.send_transaction(
                transaction, opts=TxOpts(preflight_commitment=self.commitment)
            )
            confirmation = await self.client.confirm_transaction(
                response.value, commitment=self.commitment
            )
        except (
            SolanaRpcException,
            RPCException,
            UnconfirmedTxError,
            TransactionExpiredBlockheightExceededError,
        ) as e:
            raise QueryError(f"failed to submit transaction: {e}") from e

        status = confirmation.value[0] if confirmation.value else None
        if status is not None and status.err is not None:
            raise QueryError(f"transaction {response.value} failed: {status.err}")
        return response.value

    async def submit_plan(
        self, plan: TransactionPlan, signers: Mapping[SignerRole, Keypair]
    ) -> list[Signature]:
        """
        Sign and submit every step of a plan in order

        Each step is confirmed before the next is sent. A failed step stops
        the plan; nothing is retried.

        Args:
            plan: Plan returned by a confidential operation
            signers: Keypair for each signer role the plan needs

        Returns:
            Transaction signatures in plan order
        """
        signatures = []
        for index, step in enumerate(plan):
            try:
                keypairs = [signers[role] for role in step.signers]
            except KeyError as e:
                raise RequestError(f"missing signer {e.args[0].value}") from None

            blockhash = await self.get_latest_blockhash()
            transaction = Transaction.new_unsigned(step.transaction.message)
            transaction.sign(keypairs, blockhash)

            signature = await self.send_and_confirm(transaction)
            logger.info("Confirmed step %d (%s): %s", index, step.description, signature)
            signatures.append(signature)
        return signatures

    async def close(self) -> None:
        """Close RPC connection"""
        await self.client.close()
