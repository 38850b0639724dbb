"""Client configuration"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from solana.rpc.commitment import Commitment, Confirmed

from .instructions import DEFAULT_MAXIMUM_PENDING_BALANCE_CREDIT_COUNTER
from .plan import PACKET_DATA_SIZE

DEFAULT_RPC_URL = "https://api.devnet.solana.com"

ENV_PREFIX = "PRIVWRAP_"


@dataclass
class ClientConfig:
    """Settings shared by every request a client handles"""

    rpc_url: str = DEFAULT_RPC_URL
    commitment: Commitment = Confirmed
    maximum_pending_balance_credit_counter: int = (
        DEFAULT_MAXIMUM_PENDING_BALANCE_CREDIT_COUNTER
    )
    max_transaction_size: int = PACKET_DATA_SIZE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        """
        Build a config from ``PRIVWRAP_*`` environment variables

        Recognized: PRIVWRAP_RPC_URL, PRIVWRAP_COMMITMENT,
        PRIVWRAP_MAX_PENDING_CREDITS, PRIVWRAP_MAX_TRANSACTION_SIZE
        """
        env = os.environ if environ is None else environ
        config = cls()
        config.rpc_url = env.get(ENV_PREFIX + "RPC_URL", config.rpc_url)
        config.commitment = Commitment(env.get(ENV_PREFIX + "COMMITMENT", config.commitment))
        config.maximum_pending_balance_credit_counter = int(
            env.get(
                ENV_PREFIX + "MAX_PENDING_CREDITS",
                config.maximum_pending_balance_credit_counter,
            )
        )
        config.max_transaction_size = int(
            env.get(ENV_PREFIX + "MAX_TRANSACTION_SIZE", config.max_transaction_size)
        )
        return config
