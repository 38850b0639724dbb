"""
Account state checks run before any plan is built

All accounts a request needs are fetched in one batched read. An absent
account is only ever inferred from an explicit ``None`` slot; a short
result is an infrastructure failure.
"""

import logging
from typing import Optional, Protocol, Sequence

from solders.pubkey import Pubkey

from .accounts import (
    ConfidentialAccountView,
    ConfidentialMintView,
    MintState,
    TokenAccountState,
    already_configured,
    decode_mint,
    decode_token_account,
)
from .errors import NotFoundError, PreconditionError, QueryError

logger = logging.getLogger(__name__)


class LedgerReader(Protocol):
    """Read-only ledger access the core depends on"""

    async def get_multiple_accounts(
        self, addresses: Sequence[Pubkey]
    ) -> list[Optional[bytes]]:
        ...

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        ...


async def load_accounts(
    ledger: LedgerReader, addresses: Sequence[Pubkey]
) -> list[Optional[bytes]]:
    """
    Fetch raw account data for every address in one request

    Raises:
        QueryError: if the ledger returns fewer entries than requested
    """
    results = list(await ledger.get_multiple_accounts(list(addresses)))
    if len(results) < len(addresses):
        logger.warning(
            "Batched fetch returned %d of %d accounts", len(results), len(addresses)
        )
        raise QueryError("failed to query accounts")
    return results[: len(addresses)]


def require_mint(data: Optional[bytes]) -> MintState:
    if data is None:
        raise NotFoundError("token mint does not exist")
    return decode_mint(data)


def require_confidential_mint(mint: MintState) -> ConfidentialMintView:
    view = mint.confidential_transfer
    if view is None:
        raise PreconditionError("token mint does not support confidential transfers")
    return view


def require_token_account(
    data: Optional[bytes], name: str = "token account"
) -> TokenAccountState:
    if data is None:
        raise NotFoundError(f"{name} does not exist")
    return decode_token_account(data)


def require_configured_account(
    account: TokenAccountState, name: str = "token account"
) -> ConfidentialAccountView:
    view = account.confidential_transfer
    if view is None:
        raise PreconditionError(f"{name} is not configured for confidential transfers")
    return view


def require_unconfigured_account(data: Optional[bytes]) -> None:
    """The account may be absent; if present it must lack the extension"""
    if data is None:
        return
    if already_configured(data):
        raise PreconditionError(
            "token account already configured for confidential transfers"
        )
