"""
privwrap - Confidential transfers for wrapped Token-2022 tokens on Solana

Builds unsigned, ordered transaction plans for confidential account setup,
deposit, apply, withdraw and transfer, plus wrapped mint creation, wrap and
unwrap through the token-wrap program. Wallets hand over signatures, never
secret keys.
"""

__version__ = "0.1.0"

# Export main API
from .client import ConfidentialClient
from .config import ClientConfig
from .errors import (
    AuthenticationError,
    ConfidentialError,
    DecodeError,
    DecryptionError,
    KeyDerivationError,
    NotFoundError,
    PreconditionError,
    ProofGenerationError,
    QueryError,
    RequestError,
    SerializationError,
)
from .key_derivation import KeypairType, sign_key_messages
from .plan import LifecycleStage, ProofLifecycle, SignerRole, TransactionPlan
from .proofs import ProofGenerator, TransferProofData, WithdrawProofData
from .solana_client import SolanaClient
from .token_utils import get_associated_token_address
from .types import (
    ApiTransactionResponse,
    Balances,
    Deposit,
    InitializeOrApply,
    Transfer,
    Withdraw,
    WrapTokens,
)
from .wrap import get_wrapped_mint_address

__all__ = [
    # Main client
    "ConfidentialClient",
    "ClientConfig",
    "SolanaClient",
    # Requests and responses
    "InitializeOrApply",
    "Balances",
    "Deposit",
    "Withdraw",
    "Transfer",
    "WrapTokens",
    "ApiTransactionResponse",
    # Plans
    "TransactionPlan",
    "SignerRole",
    "LifecycleStage",
    "ProofLifecycle",
    # Proof generation
    "ProofGenerator",
    "WithdrawProofData",
    "TransferProofData",
    # Wallet helpers
    "KeypairType",
    "sign_key_messages",
    "get_associated_token_address",
    "get_wrapped_mint_address",
    # Errors
    "ConfidentialError",
    "RequestError",
    "AuthenticationError",
    "PreconditionError",
    "NotFoundError",
    "DecodeError",
    "DecryptionError",
    "KeyDerivationError",
    "ProofGenerationError",
    "QueryError",
    "SerializationError",
    # Module info
    "__version__",
]
